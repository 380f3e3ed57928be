# lunomcp

A Model Context Protocol (MCP) server for the Luno cryptocurrency exchange.
An MCP client connected to it can read account balances, query markets,
place and cancel limit orders, and browse transactions and trades.

## What the server offers

### Tools

| Tool                | What it does                                              |
|---------------------|-----------------------------------------------------------|
| `get_balances`      | Balances of every account (reserved and unconfirmed too)  |
| `get_ticker`        | Ticker for a trading pair                                 |
| `get_order_book`    | Order book for a trading pair                             |
| `create_order`      | Place a limit order (`BUY` or `SELL`)                     |
| `cancel_order`      | Cancel an order by its ID                                 |
| `list_orders`       | Orders, optionally for one pair (default limit 100)       |
| `list_transactions` | Transactions of one account, with row-based paging        |
| `get_transaction`   | One transaction of an account, by its row index           |
| `list_trades`       | Recent trades of a pair, optionally since a Unix ms time  |
| `validate_pair`     | Check a trading pair without placing an order             |

The balance, market and trading tools live in `lunomcp.tools`, the
transaction and trade tools in `lunomcp.transactions`, and `validate_pair`
in `lunomcp.validation`. Each has a `new_..._tool()` function describing the
tool and a `handle_...()` function returning its handler. A handler takes the
call's arguments as a mapping and returns a `lunomcp.protocol.ToolResult`;
failures of the exchange call or of argument checks come back as error
results, not exceptions.

### Resources

| URI                    | Contents                                                      |
|------------------------|---------------------------------------------------------------|
| `luno://wallets`       | All wallets and balances, as JSON                             |
| `luno://transactions`  | Up to 20 transactions of the first account with a non-zero balance (or the first account) |
| `luno://accounts/{id}` | One account's balance and up to 10 of its transactions        |

They are defined in `lunomcp.resources`. Their handlers take the URI being
read and raise `lunomcp.resources.ResourceError` when reading fails.

## Trading pairs

Pairs are written the way Luno expects them: base and quote currency codes
run together in upper case, such as `XBTZAR` or `ETHXBT`. Input is forgiving:
separators (`-`, `_`, `/`) are dropped, case is ignored, and `BTC` or
`BITCOIN` become `XBT`, Luno's code for Bitcoin.

```python
from lunomcp.pairs import normalize_currency_pair

normalize_currency_pair("btc-gbp")      # "XBTGBP"
normalize_currency_pair("BITCOIN/USD")  # "XBTUSD"
normalize_currency_pair("ETH_ZAR")      # "ETHZAR"
```

`lunomcp.discovery.PairDiscovery` keeps a cache of pairs known to work. Its
`initialize()` seeds the cache with a short list of pairs known to trade and
starts a background thread that checks further candidates against the ticker
endpoint. `validate_pair()` returns `(valid, error message, suggestions)`;
for a rejected pair starting with `BTC` the suggestions are the known `XBT`
pairs, for one starting with `XBT` or `ETH` the known pairs with the same
base, and otherwise every known pair. `market_info()` gives a readable
summary of a pair's ticker and the top three asks and bids.

## Running a server

The package talks to Luno through any object that provides the methods of
`lunomcp.protocol.LunoClient`: `get_balances`, `get_ticker`,
`get_order_book`, `post_limit_order`, `stop_order`, `list_orders`,
`list_transactions` and `list_trades`, each returning the decoded JSON reply
and raising on failure.

```python
from lunomcp.logbridge import mcp_hooks
from lunomcp.server import new_mcp_server, serve_stdio

server = new_mcp_server("luno-mcp", "0.1.0", client, mcp_hooks())
serve_stdio(server)
```

`new_mcp_server(name, version, client, *hooks)` registers every tool and
resource and starts pair discovery. `lunomcp.protocol.Hooks` objects, such as
the one `lunomcp.logbridge.mcp_hooks()` returns, are called before each
request and after each success or error.

`serve_stdio(server, stdin, stdout)` answers line-delimited JSON-RPC messages
from standard input (or the given stream) until it ends.
`serve_sse(server, address)` serves over HTTP with Server-Sent Events at an
address such as `localhost:8080`: clients open `GET /sse`, receive an
`endpoint` event naming `/message?sessionId=...`, and post their requests
there. `MCPServer.handle_message()` can also be called directly with a
message as a dict or JSON text.

## Logging

`lunomcp.logbridge` connects the standard `logging` module to MCP. An
`MCPNotificationHandler` sends each log record to every connected client as a
`notifications/message` notification with the logger name `luno-mcp`, and
`MultiHandler` passes records on to several handlers at once, so the same
message can go to the console and to the clients.
`python_level_to_mcp_level()` maps Python levels to the MCP levels `debug`,
`info`, `warning` and `error`.

## What the package does not include

- An HTTP client for the Luno API. You supply an object meeting
  `lunomcp.protocol.LunoClient`, holding whatever credentials it needs;
  private endpoints (balances, orders, transactions) require them.
- A command-line program. There is no installed command; start the server
  from Python as shown above.
- Loading of configuration or `.env` files.