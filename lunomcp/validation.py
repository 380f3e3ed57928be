"""The tool that checks a trading pair without placing an order."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from typing import Any, Optional

from lunomcp.discovery import PairDiscovery
from lunomcp.pairs import normalize_currency_pair
from lunomcp.protocol import Tool, ToolResult, tool_result_error, tool_result_text

VALIDATE_PAIR_TOOL_ID = "validate_pair"
ERR_TRADING_PAIR_REQUIRED = "Trading pair is required"

ToolHandler = Callable[[Optional[Mapping[str, Any]]], ToolResult]


def new_validate_pair_tool() -> Tool:
    """The tool that validates a trading pair."""
    return Tool(
        name=VALIDATE_PAIR_TOOL_ID,
        description="Validate a trading pair without creating an order",
        properties={
            "pair": {
                "type": "string",
                "description": "Trading pair to validate (e.g., BTCGBP, XBT-ZAR)",
            }
        },
        required=("pair",),
    )


def handle_validate_pair(discovery: PairDiscovery) -> ToolHandler:
    """A handler reporting whether a pair is valid, with market info or suggestions."""

    def handler(arguments: Optional[Mapping[str, Any]] = None) -> ToolResult:
        value = (arguments or {}).get("pair")
        if not isinstance(value, str) or not value:
            return tool_result_error(ERR_TRADING_PAIR_REQUIRED)

        original = value
        pair = normalize_currency_pair(original)
        is_valid, error_message, suggestions = discovery.validate_pair(pair)

        result: dict[str, Any] = {
            "original_pair": original,
            "normalized_pair": pair,
            "is_valid": is_valid,
            "message": (
                f"Trading pair '{pair}' is valid. Original input: '{original}'"
                if is_valid
                else error_message
            ),
        }
        if not is_valid and suggestions:
            result["suggestions"] = list(suggestions)

        if is_valid:
            parts = [f"✅ Valid trading pair: {pair}\n\n", discovery.market_info(pair)]
        else:
            parts = [
                f"❌ Invalid trading pair: {pair}\n\n",
                f"Error: {error_message}\n\n",
                "Suggestions:\n",
                *(f"- {suggestion}\n" for suggestion in suggestions),
                "\nNote: Luno uses XBT instead of BTC for Bitcoin.",
            ]
        parts.append("\n\nRaw data:\n")
        parts.append(json.dumps(result, indent=2, ensure_ascii=False))
        return tool_result_text("".join(parts))

    return handler