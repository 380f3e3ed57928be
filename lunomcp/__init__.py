"""MCP server exposing Luno exchange accounts, markets, orders and transactions."""

__version__ = "0.1.0"