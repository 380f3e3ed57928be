"""Shared types: the exchange client interface and MCP wire objects."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Protocol, runtime_checkable

JSONObject = dict[str, Any]

BeforeAnyHook = Callable[[Any, str, Any], None]
OnSuccessHook = Callable[[Any, str, Any, Any], None]
OnErrorHook = Callable[[Any, str, Any, BaseException], None]


@runtime_checkable
class LunoClient(Protocol):
    """The exchange API calls the server relies on.

    Every call returns the decoded JSON body of the exchange's reply and
    raises an exception when the call fails.
    """

    def get_balances(self) -> JSONObject:
        """Return the balances of all accounts, under the key ``balance``."""

    def get_ticker(self, pair: str) -> JSONObject:
        """Return the ticker of a trading pair."""

    def get_order_book(self, pair: str) -> JSONObject:
        """Return the order book of a trading pair, with ``asks`` and ``bids``."""

    def post_limit_order(
        self, pair: str, order_type: str, volume: Decimal, price: Decimal
    ) -> JSONObject:
        """Place a limit order; ``order_type`` is ``BID`` or ``ASK``."""

    def stop_order(self, order_id: str) -> JSONObject:
        """Cancel an order."""

    def list_orders(self, pair: str, limit: int) -> JSONObject:
        """List orders, optionally restricted to one pair."""

    def list_transactions(
        self, account_id: int, min_row: int, max_row: int
    ) -> JSONObject:
        """List the transactions of an account between two row indexes."""

    def list_trades(self, pair: str, since: Optional[datetime] = None) -> JSONObject:
        """List recent trades of a pair, optionally only those after ``since``."""


class LoggingLevel(str, enum.Enum):
    """Log levels understood by MCP clients."""

    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    ALERT = "alert"
    EMERGENCY = "emergency"


@dataclass
class Tool:
    """A callable tool offered to MCP clients."""

    name: str
    description: str = ""
    properties: dict[str, dict[str, Any]] = field(default_factory=dict)
    required: tuple[str, ...] = ()

    def to_dict(self) -> JSONObject:
        schema: JSONObject = {
            "type": "object",
            "properties": {key: dict(value) for key, value in self.properties.items()},
        }
        if self.required:
            schema["required"] = list(self.required)
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": schema,
        }


@dataclass
class ToolResult:
    """The text outcome of a tool call."""

    text: str
    is_error: bool = False

    def to_dict(self) -> JSONObject:
        result: JSONObject = {"content": [{"type": "text", "text": self.text}]}
        if self.is_error:
            result["isError"] = True
        return result


def tool_result_text(text: str) -> ToolResult:
    """A successful tool result carrying ``text``."""
    return ToolResult(text=text)


def tool_result_error(text: str) -> ToolResult:
    """A failed tool result carrying the error message ``text``."""
    return ToolResult(text=text, is_error=True)


@dataclass
class Resource:
    """A fixed resource a client may read."""

    uri: str
    name: str
    description: str = ""
    mime_type: Optional[str] = None

    def to_dict(self) -> JSONObject:
        result: JSONObject = {"uri": self.uri, "name": self.name}
        if self.description:
            result["description"] = self.description
        if self.mime_type:
            result["mimeType"] = self.mime_type
        return result


@dataclass
class ResourceTemplate:
    """A family of resources addressed by a URI template."""

    uri_template: str
    name: str
    description: str = ""
    mime_type: Optional[str] = None

    def to_dict(self) -> JSONObject:
        result: JSONObject = {"uriTemplate": self.uri_template, "name": self.name}
        if self.description:
            result["description"] = self.description
        if self.mime_type:
            result["mimeType"] = self.mime_type
        return result


@dataclass
class TextResourceContents:
    """The text body of a resource that was read."""

    uri: str
    text: str
    mime_type: Optional[str] = None

    def to_dict(self) -> JSONObject:
        result: JSONObject = {"uri": self.uri, "text": self.text}
        if self.mime_type:
            result["mimeType"] = self.mime_type
        return result


@dataclass
class Hooks:
    """Callbacks run around every request the server handles."""

    before_any: list[BeforeAnyHook] = field(default_factory=list)
    on_success: list[OnSuccessHook] = field(default_factory=list)
    on_error: list[OnErrorHook] = field(default_factory=list)

    def add_before_any(self, callback: BeforeAnyHook) -> None:
        """Run ``callback(request_id, method, message)`` before each request."""
        self.before_any.append(callback)

    def add_on_success(self, callback: OnSuccessHook) -> None:
        """Run ``callback(request_id, method, message, result)`` after success."""
        self.on_success.append(callback)

    def add_on_error(self, callback: OnErrorHook) -> None:
        """Run ``callback(request_id, method, message, error)`` after a failure."""
        self.on_error.append(callback)