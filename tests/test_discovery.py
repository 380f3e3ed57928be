import logging

import pytest

from lunomcp.discovery import DEFAULT_WORKING_PAIRS, PairDiscovery
from lunomcp.pairs import normalize_currency_pair


class FakeClient:
    def __init__(self, valid=(), asks=None, bids=None, book_error=None):
        self.valid = set(valid)
        self.calls = []
        self.asks = asks if asks is not None else []
        self.bids = bids if bids is not None else []
        self.book_error = book_error

    def get_ticker(self, pair):
        self.calls.append(pair)
        if pair not in self.valid:
            raise LookupError(f"unknown pair {pair}")
        return {
            "pair": pair,
            "last_trade": "100",
            "ask": "101",
            "bid": "99",
            "rolling_24_hour_volume": "5",
        }

    def get_order_book(self, pair):
        if self.book_error is not None:
            raise self.book_error
        return {"asks": self.asks, "bids": self.bids}


def test_working_pairs_contain_essential_pairs():
    pairs = PairDiscovery(FakeClient()).working_pairs()
    assert pairs
    assert "XBTZAR" in pairs
    assert "XBTGBP" in pairs


@pytest.mark.parametrize(
    ("pair", "expected"),
    [("BTCGBP", "XBTGBP"), ("XBTUSD", None), ("INVALIDPAIR", None)],
)
def test_find_similar_pairs(pair, expected):
    suggestions = PairDiscovery(FakeClient()).find_similar_pairs(pair)
    assert len(suggestions) > 0
    if expected is not None:
        assert expected in suggestions


def test_find_similar_pairs_keeps_base_currency():
    discovery = PairDiscovery(FakeClient())
    assert all(p.startswith("XBT") for p in discovery.find_similar_pairs("XBTUSD"))
    assert all(p.startswith("ETH") for p in discovery.find_similar_pairs("ETHUGX"))


def test_find_similar_pairs_for_short_input_falls_back():
    discovery = PairDiscovery(FakeClient())
    assert discovery.find_similar_pairs("XB") == list(DEFAULT_WORKING_PAIRS)


@pytest.fixture
def seeded():
    discovery = PairDiscovery(FakeClient(valid={"XBTZAR", "ETHZAR", "XBTGBP"}))
    discovery.discover_available_pairs(False)
    return discovery


@pytest.mark.parametrize("raw", ["XBTZAR", "btc-zar", "BITCOINGBP"])
def test_cached_pairs_after_normalization(seeded, raw):
    assert seeded.is_cached(normalize_currency_pair(raw)) is True


def test_uncached_pair(seeded):
    assert seeded.is_cached("LTCZAR") is False


@pytest.mark.parametrize(("raw", "expected"), [("BTCGBP", "XBTGBP"), ("INVALIDPAIR", "XBTZAR")])
def test_find_similar_pairs_for_validation(seeded, raw, expected):
    assert expected in seeded.find_similar_pairs(raw)


def test_discovered_pairs_replace_defaults(seeded):
    assert seeded.working_pairs() == ["XBTZAR", "XBTGBP", "ETHZAR"]


def test_discover_returns_pairs_in_candidate_order():
    client = FakeClient(valid={"ETHXBT", "XBTZAR", "LTCUSD"})
    pairs = PairDiscovery(client).discover_available_pairs(False)
    assert pairs == ["XBTZAR", "LTCUSD", "ETHXBT"]
    assert client.calls[0] == "XBTZAR"
    assert client.calls[-1] == "BCHXBT"
    assert len(set(client.calls)) == len(client.calls)


def test_discover_logs_errors_when_asked(caplog):
    discovery = PairDiscovery(FakeClient(valid={"XBTZAR"}))
    with caplog.at_level(logging.DEBUG, logger="lunomcp.discovery"):
        discovery.discover_available_pairs(True)
    messages = [record.getMessage() for record in caplog.records]
    assert any("Invalid trading pair" in m and "XBTNGN" in m for m in messages)
    assert not any("Invalid trading pair" in m and "pair=XBTZAR" in m for m in messages)


def test_initialize_keeps_defaults_and_adds_discovered():
    discovery = PairDiscovery(FakeClient(valid={"XBTZAR", "XRPZAR"}))
    thread = discovery.initialize()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert discovery.working_pairs() == list(DEFAULT_WORKING_PAIRS) + ["XRPZAR"]
    assert discovery.is_cached("ETHXBT") is True


def test_validate_cached_pair_makes_no_call(seeded):
    client_calls_before = len(seeded._client.calls)
    assert seeded.validate_pair("btc_zar") == (True, "", [])
    assert len(seeded._client.calls) == client_calls_before


def test_validate_pair_through_api_caches_it():
    discovery = PairDiscovery(FakeClient(valid={"SOLZAR"}))
    assert discovery.validate_pair("sol-zar") == (True, "", [])
    assert discovery.is_cached("SOLZAR") is True
    assert discovery.working_pairs() == ["SOLZAR"]


def test_validate_invalid_pair():
    discovery = PairDiscovery(FakeClient())
    valid, message, suggestions = discovery.validate_pair("doge-zar")
    assert valid is False
    assert message.startswith("Invalid trading pair: DOGEZAR (")
    assert "unknown pair DOGEZAR" in message
    assert suggestions == list(DEFAULT_WORKING_PAIRS)


def test_market_info_lists_top_three_orders():
    asks = [{"price": str(100 + i), "volume": "1"} for i in range(5)]
    bids = [{"price": "98", "volume": "2"}]
    info = PairDiscovery(FakeClient(valid={"XBTZAR"}, asks=asks, bids=bids)).market_info("XBTZAR")
    assert info.startswith("Market info for XBTZAR:\n")
    assert "Last trade price: 100\n" in info
    assert "24-hour volume: 5\n\n" in info
    assert "Top 3 asks (Sell orders): \n" in info
    assert info.count(" @ ") == 4
    assert "  2 @ 98\n" in info
    assert "  1 @ 104" not in info


def test_market_info_without_orders_has_no_sections():
    info = PairDiscovery(FakeClient(valid={"XBTZAR"})).market_info("XBTZAR")
    assert info.endswith("Current Order Book:\n")


def test_market_info_ticker_failure():
    info = PairDiscovery(FakeClient()).market_info("DOGEZAR")
    assert info == "Could not get market info for DOGEZAR: unknown pair DOGEZAR"


def test_market_info_order_book_failure():
    client = FakeClient(valid={"XBTZAR"}, book_error=RuntimeError("timeout"))
    info = PairDiscovery(client).market_info("XBTZAR")
    assert info == "Got ticker but could not get order book for XBTZAR: timeout"