"""Trading pair spelling and the list of commonly traded pairs."""

from __future__ import annotations

import logging
from collections.abc import Iterable

logger = logging.getLogger(__name__)

BASE_CURRENCIES = ("XBT", "ETH", "XRP", "LTC", "BCH")
FIAT_CURRENCIES = ("ZAR", "NGN", "GBP", "EUR", "USD", "MYR", "IDR", "UGX")
CRYPTO_BASE = ("ETH", "XRP", "LTC", "BCH")

_SEPARATORS = ("-", "_", "/")
_CURRENCY_MAPPINGS = {
    "BTC": "XBT",
    "BITCOIN": "XBT",
}
_ETH_FIATS = frozenset({"ZAR", "NGN", "GBP", "EUR", "USD", "MYR", "IDR"})
_CRYPTO_CRYPTO_PAIRS = ("ETHXBT", "XRPXBT", "LTCXBT", "BCHXBT")


def normalize_currency_pair(pair: str) -> str:
    """Convert a pair such as ``btc-gbp`` to the exchange's spelling, ``XBTGBP``."""
    normalized = pair
    for separator in _SEPARATORS:
        normalized = normalized.replace(separator, "")
    normalized = normalized.upper()
    for common, exchange in _CURRENCY_MAPPINGS.items():
        normalized = normalized.replace(common, exchange)
    logger.debug("Currency pair normalization original=%s normalized=%s", pair, normalized)
    return normalized


def suggested_trading_pairs() -> str:
    """A comma separated list of common trading pairs."""
    pairs = [
        base + fiat
        for base in BASE_CURRENCIES
        for fiat in FIAT_CURRENCIES
        if base == "XBT" or (base == "ETH" and fiat in _ETH_FIATS)
    ]
    pairs.extend(_CRYPTO_CRYPTO_PAIRS)
    return ", ".join(pairs)


def contains_pair(pairs: Iterable[str], pair: str) -> bool:
    """Whether ``pair`` appears in ``pairs``, compared case-sensitively."""
    return pair in pairs