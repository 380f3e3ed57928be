import pytest

from lunomcp.pairs import contains_pair, normalize_currency_pair, suggested_trading_pairs


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("BTC", "XBT"),
        ("BTCGBP", "XBTGBP"),
        ("BTC-GBP", "XBTGBP"),
        ("BTC/GBP", "XBTGBP"),
        ("BTC_GBP", "XBTGBP"),
        ("btcgbp", "XBTGBP"),
        ("xbTGbP", "XBTGBP"),
        ("ETHZAR", "ETHZAR"),
        ("ETH-ZAR", "ETHZAR"),
        ("BITCOIN", "XBT"),
        ("BITCOINUSD", "XBTUSD"),
        ("BTC-_/GBP", "XBTGBP"),
        ("BITCOIN/GBP", "XBTGBP"),
    ],
)
def test_normalize_currency_pair(raw, expected):
    assert normalize_currency_pair(raw) == expected


def test_normalize_is_idempotent():
    once = normalize_currency_pair("btc/zar")
    assert normalize_currency_pair(once) == once


@pytest.mark.parametrize(
    ("pair", "expected"),
    [
        ("XBTZAR", True),
        ("XBTGBP", False),
        ("xbtzar", False),
    ],
)
def test_contains_pair(pair, expected):
    assert contains_pair(["XBTZAR", "ETHZAR", "XBTUSD"], pair) is expected


def test_suggested_pairs_start_with_bitcoin_pairs():
    pairs = suggested_trading_pairs().split(", ")
    assert pairs[0] == "XBTZAR"
    assert pairs[-1] == "BCHXBT"
    assert "XBTUGX" in pairs


def test_suggested_pairs_limit_ether_fiats():
    pairs = suggested_trading_pairs().split(", ")
    assert "ETHIDR" in pairs
    assert "ETHUGX" not in pairs
    assert "XRPZAR" not in pairs
    assert "ETHXBT" in pairs


def test_suggested_pairs_have_no_duplicates():
    pairs = suggested_trading_pairs().split(", ")
    assert len(pairs) == len(set(pairs))
    assert all(len(pair) == 6 for pair in pairs)