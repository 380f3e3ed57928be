"""Readable resources: wallets, recent transactions and single accounts."""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from lunomcp.protocol import (
    LunoClient,
    Resource,
    ResourceTemplate,
    TextResourceContents,
)

WALLET_RESOURCE_URI = "luno://wallets"
TRANSACTIONS_RESOURCE_URI = "luno://transactions"
ACCOUNT_TEMPLATE_URI = "luno://accounts/{id}"

JSON_MIME_TYPE = "application/json"
RESOURCE_TRANSACTION_ROWS = 20
ACCOUNT_TRANSACTION_ROWS = 10

ResourceHandler = Callable[[str], list[TextResourceContents]]

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class ResourceError(Exception):
    """Reading a resource failed."""


def _to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _json_contents(uri: str, text: str) -> list[TextResourceContents]:
    return [TextResourceContents(uri=uri, text=text, mime_type=JSON_MIME_TYPE)]


def _parse_account_id(account_id: str) -> int:
    if not _INT_PATTERN.fullmatch(account_id):
        raise ResourceError(
            f'failed to parse account ID: parsing "{account_id}": invalid syntax'
        )
    value = int(account_id)
    if not _INT64_MIN <= value <= _INT64_MAX:
        raise ResourceError(
            f'failed to parse account ID: parsing "{account_id}": value out of range'
        )
    return value


def _is_nonzero(amount: Any) -> bool:
    if amount in (None, ""):
        return False
    try:
        return Decimal(str(amount)) != 0
    except InvalidOperation:
        return False


def _account_key(entry: Mapping[str, Any]) -> str:
    value = entry.get("account_id")
    return "" if value is None else str(value)


def _balances(client: LunoClient, action: str) -> list[Mapping[str, Any]]:
    try:
        balances = client.get_balances()
    except Exception as exc:
        raise ResourceError(f"failed to {action}: {exc}") from exc
    return list((balances or {}).get("balance") or [])


def _transactions(client: LunoClient, account_id: int, max_row: int) -> Any:
    try:
        return client.list_transactions(account_id, 0, max_row)
    except Exception as exc:
        raise ResourceError(f"failed to get transactions: {exc}") from exc


def new_wallet_resource() -> Resource:
    """The resource listing all wallets."""
    return Resource(
        uri=WALLET_RESOURCE_URI,
        name="Luno Wallets",
        description="Returns all wallets/balances from your Luno account",
        mime_type=JSON_MIME_TYPE,
    )


def handle_wallet_resource(client: LunoClient) -> ResourceHandler:
    """A handler returning every balance as JSON."""

    def handler(uri: str = WALLET_RESOURCE_URI) -> list[TextResourceContents]:
        try:
            balances = client.get_balances()
        except Exception as exc:
            raise ResourceError(f"failed to get balances: {exc}") from exc
        return _json_contents(WALLET_RESOURCE_URI, _to_json(balances))

    return handler


def new_transactions_resource() -> Resource:
    """The resource listing recent transactions."""
    return Resource(
        uri=TRANSACTIONS_RESOURCE_URI,
        name="Luno Transactions",
        description="Returns recent transactions from your Luno account",
        mime_type=JSON_MIME_TYPE,
    )


def handle_transactions_resource(client: LunoClient) -> ResourceHandler:
    """A handler returning recent transactions of the first funded account."""

    def handler(uri: str = TRANSACTIONS_RESOURCE_URI) -> list[TextResourceContents]:
        balances = _balances(client, "get balances")
        if not balances:
            return _json_contents(TRANSACTIONS_RESOURCE_URI, "[]")

        chosen = next(
            (entry for entry in balances if _is_nonzero(entry.get("balance"))),
            balances[0],
        )
        account_id = _parse_account_id(_account_key(chosen))
        transactions = _transactions(client, account_id, RESOURCE_TRANSACTION_ROWS)
        return _json_contents(TRANSACTIONS_RESOURCE_URI, _to_json(transactions))

    return handler


def new_account_template() -> ResourceTemplate:
    """The template addressing a single account."""
    return ResourceTemplate(
        uri_template=ACCOUNT_TEMPLATE_URI,
        name="Luno Account",
        description="Returns details for a specific Luno account",
    )


def handle_account_template(client: LunoClient) -> ResourceHandler:
    """A handler returning an account's balance and its latest transactions."""

    def handler(uri: str) -> list[TextResourceContents]:
        if not uri:
            raise ResourceError("account ID not provided")
        account_id = extract_account_id(uri)
        if not account_id:
            raise ResourceError("invalid account URI format")

        balances = _balances(client, "get account details")
        account: Optional[Mapping[str, Any]] = next(
            (entry for entry in balances if _account_key(entry) == account_id), None
        )
        numeric_id = _parse_account_id(account_id)
        transactions = _transactions(client, numeric_id, ACCOUNT_TRANSACTION_ROWS)

        result = {
            "account": account,
            "transactions": (transactions or {}).get("transactions"),
        }
        return _json_contents(uri, _to_json(result))

    return handler


def extract_account_id(uri: str) -> str:
    """The last path segment of a URI such as ``luno://accounts/123``, or ``""``."""
    parts = uri.split("/")
    if len(parts) < 3:
        return ""
    return parts[-1]