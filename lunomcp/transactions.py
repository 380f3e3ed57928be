"""Transaction and trade tools offered to MCP clients."""

from __future__ import annotations

import json
import math
import re
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from lunomcp.pairs import normalize_currency_pair, suggested_trading_pairs
from lunomcp.protocol import (
    LunoClient,
    Tool,
    ToolResult,
    tool_result_error,
    tool_result_text,
)
from lunomcp.tools import ERR_TRADING_PAIR_DESC, ERR_TRADING_PAIR_REQUIRED

ToolHandler = Callable[[Optional[Mapping[str, Any]]], ToolResult]

LIST_TRANSACTIONS_TOOL_ID = "list_transactions"
GET_TRANSACTION_TOOL_ID = "get_transaction"
LIST_TRADES_TOOL_ID = "list_trades"

DEFAULT_MIN_ROW = 1
DEFAULT_MAX_ROW = 100
TRANSACTION_SEARCH_MAX_ROW = 1000

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _string_arg(arguments: Mapping[str, Any], name: str) -> str:
    value = arguments.get(name)
    return value if isinstance(value, str) else ""


def _number_arg(arguments: Mapping[str, Any], name: str) -> Optional[int]:
    """A numeric argument truncated to an integer, or None when absent or unusable."""
    value = arguments.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return int(value)


def _parse_int64(text: str) -> int:
    """Parse a signed decimal integer that fits in 64 bits."""
    if not _INT_PATTERN.fullmatch(text):
        raise ValueError(f'parsing "{text}": invalid syntax')
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ValueError(f'parsing "{text}": value out of range')
    return value


def _row_index(entry: Mapping[str, Any]) -> Optional[int]:
    value = entry.get("row_index")
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return _parse_int64(value)
        except ValueError:
            return None
    return None


def _account_id(arguments: Mapping[str, Any]) -> tuple[Optional[int], Optional[ToolResult]]:
    text = _string_arg(arguments, "account_id")
    if not text:
        return None, tool_result_error("Account ID is required")
    try:
        return _parse_int64(text), None
    except ValueError as exc:
        return None, tool_result_error(
            f"Invalid account ID format: {exc}. Please provide a valid numeric account ID."
        )


# ----- transactions -----


def new_list_transactions_tool() -> Tool:
    """The tool that lists an account's transactions."""
    return Tool(
        name=LIST_TRANSACTIONS_TOOL_ID,
        description="List transactions for an account",
        properties={
            "account_id": {"type": "string", "description": "Account ID"},
            "min_row": {
                "type": "number",
                "description": "Minimum row ID to return (for pagination, inclusive)",
            },
            "max_row": {
                "type": "number",
                "description": "Maximum row ID to return (for pagination, exclusive)",
            },
        },
        required=("account_id",),
    )


def handle_list_transactions(client: LunoClient) -> ToolHandler:
    """A handler listing transactions of an account between two rows."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        arguments = arguments or {}
        account_id, failure = _account_id(arguments)
        if failure is not None:
            return failure

        min_row, max_row = DEFAULT_MIN_ROW, DEFAULT_MAX_ROW
        requested_min = _number_arg(arguments, "min_row")
        if requested_min is not None and requested_min >= 0:
            min_row = requested_min
        requested_max = _number_arg(arguments, "max_row")
        if requested_max is not None and requested_max > 0:
            max_row = requested_max

        try:
            transactions = client.list_transactions(account_id, min_row, max_row)
        except Exception as exc:
            return tool_result_error(f"Failed to list transactions: {exc}")
        return tool_result_text(_to_json(transactions))

    return handler


def new_get_transaction_tool() -> Tool:
    """The tool that returns one transaction of an account."""
    return Tool(
        name=GET_TRANSACTION_TOOL_ID,
        description="Get details of a specific transaction",
        properties={
            "account_id": {"type": "string", "description": "Account ID"},
            "transaction_id": {"type": "string", "description": "Transaction ID"},
        },
        required=("account_id", "transaction_id"),
    )


def handle_get_transaction(client: LunoClient) -> ToolHandler:
    """A handler finding a transaction by its row index."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        arguments = arguments or {}
        account_id, failure = _account_id(arguments)
        if failure is not None:
            return failure

        transaction_text = _string_arg(arguments, "transaction_id")
        if not transaction_text:
            return tool_result_error("Transaction ID is required")
        try:
            transaction_id = _parse_int64(transaction_text)
        except ValueError as exc:
            return tool_result_error(
                f"Invalid transaction ID format: {exc}. "
                "Please provide a valid numeric transaction ID."
            )

        try:
            transactions = client.list_transactions(
                account_id, 0, TRANSACTION_SEARCH_MAX_ROW
            )
        except Exception as exc:
            return tool_result_error(f"Failed to get transactions: {exc}")

        entries = (transactions or {}).get("transactions") or []
        found = next(
            (entry for entry in entries if _row_index(entry) == transaction_id), None
        )
        if found is None:
            return tool_result_error(f"Transaction not found: {transaction_text}")
        return tool_result_text(_to_json(found))

    return handler


# ----- trades -----


def new_list_trades_tool() -> Tool:
    """The tool that lists recent trades of a pair."""
    return Tool(
        name=LIST_TRADES_TOOL_ID,
        description="List recent trades for a currency pair",
        properties={
            "pair": {"type": "string", "description": ERR_TRADING_PAIR_DESC},
            "since": {
                "type": "string",
                "description": "Fetch trades executed after this timestamp (Unix milliseconds)",
            },
        },
        required=("pair",),
    )


def handle_list_trades(client: LunoClient) -> ToolHandler:
    """A handler listing trades of a pair, optionally after a timestamp."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        arguments = arguments or {}
        pair = _string_arg(arguments, "pair")
        if not pair:
            return tool_result_error(ERR_TRADING_PAIR_REQUIRED)
        pair = normalize_currency_pair(pair)

        since: Optional[datetime] = None
        since_text = _string_arg(arguments, "since")
        if since_text:
            try:
                since = _EPOCH + timedelta(milliseconds=_parse_int64(since_text))
            except (ValueError, OverflowError) as exc:
                return tool_result_error(f"Invalid since timestamp format: {exc}")

        try:
            trades = client.list_trades(pair, since=since)
        except Exception as exc:
            return tool_result_error(
                f"Failed to list trades: {exc}\n\n"
                f"Common trading pairs on Luno: {suggested_trading_pairs()}"
            )
        return tool_result_text(_to_json(trades))

    return handler