"""Discovery, caching and validation of trading pairs."""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

from lunomcp.pairs import (
    BASE_CURRENCIES,
    CRYPTO_BASE,
    FIAT_CURRENCIES,
    normalize_currency_pair,
)
from lunomcp.protocol import LunoClient

logger = logging.getLogger(__name__)

DEFAULT_WORKING_PAIRS = ("XBTZAR", "ETHZAR", "XBTNGN", "XBTGBP", "XBTUSD", "ETHXBT")
_MARKET_DEPTH = 3


def _candidate_pairs() -> list[str]:
    pairs = [base + fiat for base in BASE_CURRENCIES for fiat in FIAT_CURRENCIES]
    pairs.extend(coin + "XBT" for coin in CRYPTO_BASE)
    return pairs


def _amount(entry: Mapping[str, Any], key: str) -> str:
    value = entry.get(key)
    return "0" if value in (None, "") else str(value)


class PairDiscovery:
    """Keeps track of which trading pairs the exchange accepts."""

    def __init__(self, client: LunoClient) -> None:
        self._client = client
        self._lock = threading.Lock()
        self._valid: set[str] = set()
        self._discovered: list[str] = []

    def _remember(self, pair: str) -> None:
        with self._lock:
            self._valid.add(pair)
            if pair not in self._discovered:
                self._discovered.append(pair)

    def _fetch_ticker(self, pair: str) -> tuple[Any, Exception | None]:
        try:
            return self._client.get_ticker(pair), None
        except Exception as exc:  # any failure of the exchange call marks the pair invalid
            return None, exc

    def initialize(self) -> threading.Thread:
        """Seed the cache with known pairs and start discovery in the background.

        Returns the background thread so that callers may wait for it.
        """
        with self._lock:
            self._valid = set(DEFAULT_WORKING_PAIRS)
            self._discovered = list(DEFAULT_WORKING_PAIRS)
        thread = threading.Thread(
            target=self._discover_in_background, name="pair-discovery", daemon=True
        )
        thread.start()
        return thread

    def _discover_in_background(self) -> None:
        pairs = self.discover_available_pairs(False)
        logger.info("Background pair discovery complete count=%d", len(pairs))
        for pair in pairs:
            self._remember(pair)

    def discover_available_pairs(self, include_errors: bool = False) -> list[str]:
        """Ask the exchange for each candidate pair's ticker; return those that answer."""
        logger.info("Attempting to discover valid trading pairs")
        valid: list[str] = []
        for pair in _candidate_pairs():
            ticker, error = self._fetch_ticker(pair)
            if ticker is not None:
                valid.append(pair)
                logger.debug(
                    "Found valid trading pair pair=%s lastTradePrice=%s",
                    pair,
                    _amount(ticker, "last_trade"),
                )
                self._remember(pair)
            elif include_errors:
                logger.debug("Invalid trading pair pair=%s error=%s", pair, error)
        logger.info("Trading pair discovery complete count=%d", len(valid))
        return valid

    def working_pairs(self) -> list[str]:
        """The pairs found so far, or a built-in list when none have been found."""
        with self._lock:
            if self._discovered:
                return list(self._discovered)
        return list(DEFAULT_WORKING_PAIRS)

    def is_cached(self, pair: str) -> bool:
        """Whether ``pair``, exactly as given, is known to be valid."""
        with self._lock:
            return pair in self._valid

    def validate_pair(self, pair: str) -> tuple[bool, str, list[str]]:
        """Check a pair; return ``(valid, error message, suggestions)``."""
        normalized = normalize_currency_pair(pair)
        if self.is_cached(normalized):
            return True, "", []

        ticker, error = self._fetch_ticker(normalized)
        if ticker is not None:
            self._remember(normalized)
            return True, "", []

        reason = error if error is not None else "no ticker returned"
        message = f"Invalid trading pair: {normalized} ({reason})"
        return False, message, self.find_similar_pairs(normalized)

    def find_similar_pairs(self, pair: str) -> list[str]:
        """Known pairs resembling ``pair``, or all known pairs when none do."""
        base = pair[:3] if len(pair) >= 3 else ""
        working = self.working_pairs()
        if base == "BTC":
            suggestions = [p for p in working if p.startswith("XBT")]
        elif pair.startswith(("XBT", "ETH")):
            suggestions = [p for p in working if p.startswith(base)]
        else:
            suggestions = []
        return suggestions or working

    def market_info(self, pair: str) -> str:
        """A readable summary of the ticker and top of the order book for ``pair``."""
        try:
            ticker = self._client.get_ticker(pair)
        except Exception as exc:
            return f"Could not get market info for {pair}: {exc}"
        try:
            order_book = self._client.get_order_book(pair)
        except Exception as exc:
            return f"Got ticker but could not get order book for {pair}: {exc}"

        ticker = ticker or {}
        order_book = order_book or {}
        lines = [
            f"Market info for {pair}:\n",
            f"Last trade price: {_amount(ticker, 'last_trade')}\n",
            f"Ask (Sell) price: {_amount(ticker, 'ask')}\n",
            f"Bid (Buy) price: {_amount(ticker, 'bid')}\n",
            f"24-hour volume: {_amount(ticker, 'rolling_24_hour_volume')}\n\n",
            "Current Order Book:\n",
        ]
        for side, title in (("asks", "asks (Sell orders)"), ("bids", "bids (Buy orders)")):
            entries = order_book.get(side) or []
            if entries:
                lines.append(f"Top {_MARKET_DEPTH} {title}: \n")
                lines.extend(
                    f"  {_amount(entry, 'volume')} @ {_amount(entry, 'price')}\n"
                    for entry in entries[:_MARKET_DEPTH]
                )
        return "".join(lines)