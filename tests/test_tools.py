import json
from decimal import Decimal

import pytest

from lunomcp.discovery import PairDiscovery
from lunomcp.pairs import suggested_trading_pairs
from lunomcp.tools import (
    ERR_TRADING_PAIR_REQUIRED,
    handle_cancel_order,
    handle_create_order,
    handle_get_balances,
    handle_get_order_book,
    handle_get_ticker,
    handle_list_orders,
    new_create_order_tool,
    new_get_balances_tool,
    new_get_ticker_tool,
    new_list_orders_tool,
)


class FakeClient:
    def __init__(self, tickers=None, fail_with=None, order_fails=False):
        self.tickers = tickers if tickers is not None else {}
        self.fail_with = fail_with
        self.order_fails = order_fails
        self.calls = []
        self.posted = []

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise RuntimeError(self.fail_with)

    def get_balances(self):
        self._maybe_fail()
        return {
            "balance": [
                {
                    "account_id": "1001",
                    "asset": "XBT",
                    "balance": "0.5",
                    "reserved": "0.1",
                    "unconfirmed": "0",
                    "name": "Bitcoin",
                }
            ]
        }

    def get_ticker(self, pair):
        self.calls.append(("get_ticker", pair))
        self._maybe_fail()
        if pair not in self.tickers:
            raise ValueError(f"unknown pair {pair}")
        return self.tickers[pair]

    def get_order_book(self, pair):
        self.calls.append(("get_order_book", pair))
        self._maybe_fail()
        if pair not in self.tickers:
            raise ValueError(f"unknown pair {pair}")
        return {"asks": [{"price": "101", "volume": "1"}], "bids": [{"price": "99", "volume": "2"}]}

    def post_limit_order(self, pair, order_type, volume, price):
        self.posted.append((pair, order_type, volume, price))
        if self.order_fails:
            raise RuntimeError("insufficient funds")
        return {"order_id": "BXABC"}

    def stop_order(self, order_id):
        self.calls.append(("stop_order", order_id))
        self._maybe_fail()
        return {"success": True}

    def list_orders(self, pair, limit):
        self.calls.append(("list_orders", pair, limit))
        self._maybe_fail()
        return {"orders": []}


TICKER = {"pair": "XBTZAR", "last_trade": "100000", "ask": "100100", "bid": "99900"}


@pytest.fixture
def client():
    return FakeClient(tickers={"XBTZAR": TICKER})


def test_tool_definitions():
    ticker = new_get_ticker_tool().to_dict()
    assert ticker["name"] == "get_ticker"
    assert ticker["inputSchema"]["required"] == ["pair"]
    order = new_create_order_tool().to_dict()
    assert order["inputSchema"]["properties"]["type"]["enum"] == ["BUY", "SELL"]
    assert "required" not in new_list_orders_tool().to_dict()["inputSchema"]
    assert new_get_balances_tool().name == "get_balances"


def test_get_balances_round_trip(client):
    result = handle_get_balances(client)({})
    assert not result.is_error
    assert json.loads(result.text) == [
        {
            "account_id": "1001",
            "asset": "XBT",
            "balance": "0.5",
            "reserved": "0.1",
            "unconfirmed": "0",
            "name": "Bitcoin",
        }
    ]


def test_get_balances_error():
    result = handle_get_balances(FakeClient(fail_with="boom"))({})
    assert result.is_error
    assert result.text == "Failed to get balances: boom"


@pytest.mark.parametrize("arguments", [{}, {"pair": ""}, {"pair": 5}, None])
def test_get_ticker_requires_pair(client, arguments):
    result = handle_get_ticker(client)(arguments)
    assert result.is_error
    assert result.text == ERR_TRADING_PAIR_REQUIRED


def test_get_ticker_normalizes_pair(client):
    result = handle_get_ticker(client)({"pair": "btc-zar"})
    assert client.calls == [("get_ticker", "XBTZAR")]
    assert json.loads(result.text) == TICKER


def test_get_ticker_error_lists_suggestions(client):
    result = handle_get_ticker(client)({"pair": "DOGEZAR"})
    assert result.is_error
    assert result.text.startswith("Failed to get ticker: unknown pair DOGEZAR")
    assert result.text.endswith("Common trading pairs on Luno: " + suggested_trading_pairs())


def test_get_order_book(client):
    result = handle_get_order_book(client)({"pair": "XBT_ZAR"})
    assert json.loads(result.text)["bids"] == [{"price": "99", "volume": "2"}]
    error = handle_get_order_book(client)({"pair": "ETHZAR"})
    assert error.is_error
    assert error.text.startswith("Failed to get order book:")


def _create(client, **arguments):
    return handle_create_order(client, PairDiscovery(client))(arguments)


def test_create_order_missing_pair_lists_working_pairs(client):
    result = _create(client)
    assert result.is_error
    discovery = PairDiscovery(client)
    for pair in discovery.working_pairs():
        assert pair in result.text


def test_create_order_invalid_pair(client):
    result = _create(client, pair="DOGEZAR", type="BUY", volume="1", price="1")
    assert result.is_error
    assert result.text.startswith("Invalid trading pair: DOGEZAR")
    assert client.posted == []


@pytest.mark.parametrize(
    "arguments, message",
    [
        ({"type": "HOLD", "volume": "1", "price": "1"}, "Order type must be 'BUY' or 'SELL'"),
        ({"type": "BUY", "price": "1"}, "Order volume is required"),
        ({"type": "BUY", "volume": "1"}, "Limit price is required"),
    ],
)
def test_create_order_argument_errors(client, arguments, message):
    result = _create(client, pair="XBTZAR", **arguments)
    assert result.is_error
    assert result.text == message


@pytest.mark.parametrize(
    "volume, price, prefix",
    [
        ("abc", "1", "Invalid volume format"),
        ("1", "NaN", "Invalid price format"),
    ],
)
def test_create_order_bad_numbers(client, volume, price, prefix):
    result = _create(client, pair="XBTZAR", type="SELL", volume=volume, price=price)
    assert result.is_error
    assert result.text.startswith(prefix)


def test_create_order_success(client):
    result = _create(client, pair="btc/zar", type="BUY", volume="0.01", price="100000")
    assert not result.is_error
    assert client.posted == [("XBTZAR", "BID", Decimal("0.01"), Decimal("100000"))]
    assert result.text.startswith("Order created successfully!")
    assert '"order_id": "BXABC"' in result.text
    assert "Market info for XBTZAR:" in result.text


def test_create_order_sell_failure(client):
    client.order_fails = True
    result = _create(client, pair="XBTZAR", type="SELL", volume="1", price="2")
    assert result.is_error
    assert client.posted[0][1] == "ASK"
    assert result.text.startswith("Failed to create limit order: insufficient funds")


def test_cancel_order(client):
    assert handle_cancel_order(client)({}).text == "Order ID is required"
    result = handle_cancel_order(client)({"order_id": "BXABC"})
    assert client.calls == [("stop_order", "BXABC")]
    assert json.loads(result.text) == {"success": True}


def test_cancel_order_error():
    result = handle_cancel_order(FakeClient(fail_with="gone"))({"order_id": "BXABC"})
    assert result.is_error
    assert result.text == "Failed to cancel order: gone"


@pytest.mark.parametrize(
    "arguments, expected",
    [
        ({}, ("list_orders", "", 100)),
        ({"pair": "XBTZAR", "limit": 5.0}, ("list_orders", "XBTZAR", 5)),
        ({"limit": -3}, ("list_orders", "", 100)),
        ({"limit": "7"}, ("list_orders", "", 100)),
    ],
)
def test_list_orders_limits(client, arguments, expected):
    result = handle_list_orders(client)(arguments)
    assert client.calls == [expected]
    assert json.loads(result.text) == {"orders": []}


def test_list_orders_error():
    result = handle_list_orders(FakeClient(fail_with="down"))({})
    assert result.is_error
    assert result.text == "Failed to list orders: down"