"""Balance, market and trading tools offered to MCP clients."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from lunomcp.discovery import PairDiscovery
from lunomcp.pairs import normalize_currency_pair, suggested_trading_pairs
from lunomcp.protocol import (
    LunoClient,
    Tool,
    ToolResult,
    tool_result_error,
    tool_result_text,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Optional[Mapping[str, Any]]], ToolResult]

ERR_API_CREDENTIALS_REQUIRED = (
    "API credentials are required for this operation. "
    "Please set LUNO_API_KEY_ID and LUNO_API_SECRET environment variables."
)
ERR_TRADING_PAIR_REQUIRED = "Trading pair is required"
ERR_TRADING_PAIR_DESC = "Trading pair (e.g., XBTZAR)"

GET_BALANCES_TOOL_ID = "get_balances"
GET_TICKER_TOOL_ID = "get_ticker"
GET_ORDER_BOOK_TOOL_ID = "get_order_book"
CREATE_ORDER_TOOL_ID = "create_order"
CANCEL_ORDER_TOOL_ID = "cancel_order"
LIST_ORDERS_TOOL_ID = "list_orders"

DEFAULT_ORDER_LIMIT = 100

_ORDER_TYPES = {"BUY": "BID", "SELL": "ASK"}


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _string_arg(arguments: Mapping[str, Any], name: str) -> str:
    """The argument as a string, or an empty string when absent or not a string."""
    value = arguments.get(name)
    return value if isinstance(value, str) else ""


def _number_arg(arguments: Mapping[str, Any], name: str) -> Optional[float]:
    value = arguments.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _amount(value: Any) -> str:
    return "0" if value in (None, "") else str(value)


def _parse_decimal(text: str) -> Decimal:
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError(f"can't convert {text!r} to decimal") from exc
    if not value.is_finite():
        raise ValueError(f"can't convert {text!r} to decimal")
    return value


def _pair_help(action: str, error: Exception) -> ToolResult:
    return tool_result_error(
        f"Failed to {action}: {error}\n\n"
        f"Common trading pairs on Luno: {suggested_trading_pairs()}"
    )


def _string_property(description: str, **extra: Any) -> dict[str, Any]:
    return {"type": "string", "description": description, **extra}


def _number_property(description: str) -> dict[str, Any]:
    return {"type": "number", "description": description}


# ----- balances -----


def new_get_balances_tool() -> Tool:
    """The tool that lists balances of all accounts."""
    return Tool(
        name=GET_BALANCES_TOOL_ID,
        description="Get balances for all Luno accounts",
    )


def handle_get_balances(client: LunoClient) -> ToolHandler:
    """A handler listing every account balance as JSON."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        try:
            balances = client.get_balances()
        except Exception as exc:
            return tool_result_error(f"Failed to get balances: {exc}")
        enhanced = [
            {
                "account_id": str(entry.get("account_id", "")),
                "asset": entry.get("asset", ""),
                "balance": _amount(entry.get("balance")),
                "reserved": _amount(entry.get("reserved")),
                "unconfirmed": _amount(entry.get("unconfirmed")),
                "name": entry.get("name", ""),
            }
            for entry in (balances or {}).get("balance") or []
        ]
        return tool_result_text(_to_json(enhanced))

    return handler


# ----- market -----


def new_get_ticker_tool() -> Tool:
    """The tool that returns a pair's ticker."""
    return Tool(
        name=GET_TICKER_TOOL_ID,
        description="Get ticker information for a trading pair",
        properties={"pair": _string_property(ERR_TRADING_PAIR_DESC)},
        required=("pair",),
    )


def handle_get_ticker(client: LunoClient) -> ToolHandler:
    """A handler returning the ticker of the requested pair."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        pair = _string_arg(arguments or {}, "pair")
        if not pair:
            return tool_result_error(ERR_TRADING_PAIR_REQUIRED)
        pair = normalize_currency_pair(pair)
        try:
            ticker = client.get_ticker(pair)
        except Exception as exc:
            return _pair_help("get ticker", exc)
        return tool_result_text(_to_json(ticker))

    return handler


def new_get_order_book_tool() -> Tool:
    """The tool that returns a pair's order book."""
    return Tool(
        name=GET_ORDER_BOOK_TOOL_ID,
        description="Get order book for a trading pair",
        properties={"pair": _string_property(ERR_TRADING_PAIR_DESC)},
        required=("pair",),
    )


def handle_get_order_book(client: LunoClient) -> ToolHandler:
    """A handler returning the order book of the requested pair."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        pair = _string_arg(arguments or {}, "pair")
        if not pair:
            return tool_result_error(ERR_TRADING_PAIR_REQUIRED)
        pair = normalize_currency_pair(pair)
        try:
            order_book = client.get_order_book(pair)
        except Exception as exc:
            return _pair_help("get order book", exc)
        return tool_result_text(_to_json(order_book))

    return handler


# ----- trading -----


def new_create_order_tool() -> Tool:
    """The tool that places a limit order."""
    return Tool(
        name=CREATE_ORDER_TOOL_ID,
        description="Create a new limit order",
        properties={
            "pair": _string_property("Trading pair (e.g., XBTZAR)"),
            "type": _string_property("Order type (BUY or SELL)", enum=["BUY", "SELL"]),
            "volume": _string_property(
                "Order volume (amount of cryptocurrency to buy or sell)"
            ),
            "price": _string_property("Limit price as a decimal string"),
        },
        required=("pair", "type", "volume", "price"),
    )


def handle_create_order(client: LunoClient, discovery: PairDiscovery) -> ToolHandler:
    """A handler that validates its arguments and places a limit order."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        arguments = arguments or {}
        pair = _string_arg(arguments, "pair")
        if not pair:
            return tool_result_error(
                "Trading pair is required. Please use one of these known working pairs: "
                + ", ".join(discovery.working_pairs())
            )
        logger.debug("Processing trading pair originalPair=%s", pair)
        original = pair
        pair = normalize_currency_pair(pair)
        logger.debug("Normalized trading pair originalPair=%s normalizedPair=%s", original, pair)

        is_valid, error_message, suggestions = discovery.validate_pair(pair)
        if not is_valid:
            return tool_result_error(
                f"Invalid trading pair: {pair}\n\n{error_message}\n\n"
                f"Please try one of these working pairs: {', '.join(suggestions)}"
            )

        order_type = _string_arg(arguments, "type")
        if order_type not in _ORDER_TYPES:
            return tool_result_error("Order type must be 'BUY' or 'SELL'")

        volume_text = _string_arg(arguments, "volume")
        if not volume_text:
            return tool_result_error("Order volume is required")

        price_text = _string_arg(arguments, "price")
        if not price_text:
            return tool_result_error("Limit price is required")

        try:
            volume = _parse_decimal(volume_text)
        except ValueError as exc:
            return tool_result_error(f"Invalid volume format: {exc}")
        try:
            price = _parse_decimal(price_text)
        except ValueError as exc:
            return tool_result_error(f"Invalid price format: {exc}")

        exchange_type = _ORDER_TYPES[order_type]
        market_info = discovery.market_info(pair)
        logger.debug("%s", market_info)
        logger.info(
            "Creating order pair=%s type=%s volume=%s price=%s",
            pair,
            exchange_type,
            volume,
            price,
        )

        try:
            order = client.post_limit_order(pair, exchange_type, volume, price)
        except Exception as exc:
            return tool_result_error(
                f"Failed to create limit order: {exc}\n\n"
                f"Here's what we know about this market:\n{market_info}\n\n"
                "This may be due to insufficient balance, market conditions, or API limits."
            )
        return tool_result_text(
            f"Order created successfully!\n\n{_to_json(order)}\n\n{market_info}"
        )

    return handler


def new_cancel_order_tool() -> Tool:
    """The tool that cancels an order."""
    return Tool(
        name=CANCEL_ORDER_TOOL_ID,
        description="Cancel an order",
        properties={"order_id": _string_property("Order ID to cancel")},
        required=("order_id",),
    )


def handle_cancel_order(client: LunoClient) -> ToolHandler:
    """A handler cancelling the order with the given ID."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        order_id = _string_arg(arguments or {}, "order_id")
        if not order_id:
            return tool_result_error("Order ID is required")
        try:
            result = client.stop_order(order_id)
        except Exception as exc:
            return tool_result_error(f"Failed to cancel order: {exc}")
        return tool_result_text(_to_json(result))

    return handler


def new_list_orders_tool() -> Tool:
    """The tool that lists open orders."""
    return Tool(
        name=LIST_ORDERS_TOOL_ID,
        description="List open orders",
        properties={
            "pair": _string_property("Trading pair (e.g., XBTZAR)"),
            "limit": _number_property(
                "Maximum number of orders to return (default: 100)"
            ),
        },
    )


def handle_list_orders(client: LunoClient) -> ToolHandler:
    """A handler listing orders, optionally for one pair and up to a limit."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        arguments = arguments or {}
        pair = _string_arg(arguments, "pair")
        limit = DEFAULT_ORDER_LIMIT
        requested = _number_arg(arguments, "limit")
        if requested is not None:
            limit = int(requested)
            if limit <= 0:
                limit = DEFAULT_ORDER_LIMIT
        try:
            orders = client.list_orders(pair, limit)
        except Exception as exc:
            return tool_result_error(f"Failed to list orders: {exc}")
        return tool_result_text(_to_json(orders))

    return handler