"""The MCP server: request dispatch, registration and the stdio and SSE transports."""

from __future__ import annotations

import json
import logging
import queue
import re
import sys
import threading
import uuid
from collections.abc import Callable, Iterable, Mapping
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Optional, TextIO
from urllib.parse import parse_qs, urlsplit

from lunomcp import resources, tools, transactions, validation
from lunomcp.discovery import PairDiscovery
from lunomcp.protocol import (
    Hooks,
    LoggingLevel,
    LunoClient,
    Resource,
    ResourceTemplate,
    TextResourceContents,
    Tool,
    ToolResult,
)

logger = logging.getLogger(__name__)

LATEST_PROTOCOL_VERSION = "2025-03-26"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
RESOURCE_NOT_FOUND = -32002

Message = dict[str, Any]
Sender = Callable[[Message], None]
ToolHandler = Callable[[Mapping[str, Any]], ToolResult]
ResourceHandler = Callable[[str], list[TextResourceContents]]


class _RPCError(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


def _error_response(request_id: Any, code: int, message: str) -> Message:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "error": {"code": code, "message": message},
    }


def _template_pattern(template: str) -> re.Pattern[str]:
    pieces = re.split(r"\{(\w+)\}", template)
    regex = "".join(
        re.escape(piece) if index % 2 == 0 else f"(?P<{piece}>[^/]+)"
        for index, piece in enumerate(pieces)
    )
    return re.compile(regex)


class MCPServer:
    """Dispatches MCP requests to registered tools and resources."""

    def __init__(
        self, name: str, version: str, hooks: Optional[Iterable[Hooks]] = None
    ) -> None:
        self.name = name
        self.version = version
        self.hooks: list[Hooks] = list(hooks or ())
        self.logging_level = LoggingLevel.INFO
        self._tools: dict[str, tuple[Tool, ToolHandler]] = {}
        self._resources: dict[str, tuple[Resource, ResourceHandler]] = {}
        self._templates: list[tuple[ResourceTemplate, re.Pattern[str], ResourceHandler]] = []
        self._clients: list[Sender] = []
        self._clients_lock = threading.Lock()

    # ----- registration -----

    def add_tool(self, tool: Tool, handler: ToolHandler) -> None:
        """Offer ``tool`` to clients, answered by ``handler(arguments)``."""
        self._tools[tool.name] = (tool, handler)

    def add_resource(self, resource: Resource, handler: ResourceHandler) -> None:
        """Offer ``resource`` to clients, read by ``handler(uri)``."""
        self._resources[resource.uri] = (resource, handler)

    def add_resource_template(
        self, template: ResourceTemplate, handler: ResourceHandler
    ) -> None:
        """Offer resources matching ``template``, read by ``handler(uri)``."""
        self._templates.append((template, _template_pattern(template.uri_template), handler))

    # ----- clients -----

    def add_client(self, send: Sender) -> None:
        """Register a callable that delivers notifications to one client."""
        with self._clients_lock:
            self._clients.append(send)

    def remove_client(self, send: Sender) -> None:
        """Stop delivering notifications through ``send``."""
        with self._clients_lock:
            if send in self._clients:
                self._clients.remove(send)

    def send_notification_to_all_clients(
        self, method: str, params: Optional[Mapping[str, Any]] = None
    ) -> None:
        """Send a notification to every registered client."""
        notification: Message = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            notification["params"] = dict(params)
        with self._clients_lock:
            clients = list(self._clients)
        for send in clients:
            try:
                send(notification)
            except Exception:  # a client that went away must not stop the others
                continue

    # ----- dispatch -----

    def handle_message(self, message: Any) -> Optional[Message]:
        """Handle one JSON-RPC message; return the response, or None for notifications."""
        if isinstance(message, (str, bytes, bytearray)):
            try:
                message = json.loads(message)
            except ValueError:
                return _error_response(None, PARSE_ERROR, "Parse error")
        if not isinstance(message, Mapping):
            return _error_response(None, INVALID_REQUEST, "Invalid Request")
        if "method" not in message and ("result" in message or "error" in message):
            return None
        method = message.get("method")
        if message.get("jsonrpc") != "2.0" or not isinstance(method, str):
            return _error_response(message.get("id"), INVALID_REQUEST, "Invalid Request")
        if "id" not in message:
            return None

        request_id = message["id"]
        for hooks in self.hooks:
            for callback in hooks.before_any:
                callback(request_id, method, message)
        try:
            params = message.get("params") or {}
            if not isinstance(params, Mapping):
                raise _RPCError(INVALID_PARAMS, "params must be an object")
            result = self._dispatch(method, params)
        except _RPCError as exc:
            self._run_error_hooks(request_id, method, message, exc)
            return _error_response(request_id, exc.code, exc.message)
        except Exception as exc:
            self._run_error_hooks(request_id, method, message, exc)
            return _error_response(request_id, INTERNAL_ERROR, str(exc))
        for hooks in self.hooks:
            for callback in hooks.on_success:
                callback(request_id, method, message, result)
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    def _run_error_hooks(
        self, request_id: Any, method: str, message: Any, error: BaseException
    ) -> None:
        for hooks in self.hooks:
            for callback in hooks.on_error:
                callback(request_id, method, message, error)

    def _dispatch(self, method: str, params: Mapping[str, Any]) -> Message:
        if method == "initialize":
            return self._initialize(params)
        if method == "ping":
            return {}
        if method == "tools/list":
            return {"tools": [tool.to_dict() for tool, _ in self._tools.values()]}
        if method == "tools/call":
            return self._call_tool(params)
        if method == "resources/list":
            return {"resources": [res.to_dict() for res, _ in self._resources.values()]}
        if method == "resources/templates/list":
            return {
                "resourceTemplates": [tpl.to_dict() for tpl, _, _ in self._templates]
            }
        if method == "resources/read":
            return self._read_resource(params)
        if method == "logging/setLevel":
            return self._set_level(params)
        raise _RPCError(METHOD_NOT_FOUND, f"Method {method} not found")

    def _initialize(self, params: Mapping[str, Any]) -> Message:
        requested = params.get("protocolVersion")
        return {
            "protocolVersion": requested if isinstance(requested, str) else LATEST_PROTOCOL_VERSION,
            "capabilities": {
                "resources": {"subscribe": True, "listChanged": True},
                "tools": {"listChanged": True},
                "logging": {},
            },
            "serverInfo": {"name": self.name, "version": self.version},
        }

    def _call_tool(self, params: Mapping[str, Any]) -> Message:
        name = params.get("name")
        entry = self._tools.get(name) if isinstance(name, str) else None
        if entry is None:
            raise _RPCError(INVALID_PARAMS, f"tool '{name}' not found")
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, Mapping):
            raise _RPCError(INVALID_PARAMS, "arguments must be an object")
        _, handler = entry
        return handler(arguments).to_dict()

    def _read_resource(self, params: Mapping[str, Any]) -> Message:
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise _RPCError(INVALID_PARAMS, "uri is required")
        handler: Optional[ResourceHandler] = None
        if uri in self._resources:
            handler = self._resources[uri][1]
        else:
            handler = next(
                (h for _, pattern, h in self._templates if pattern.fullmatch(uri)), None
            )
        if handler is None:
            raise _RPCError(RESOURCE_NOT_FOUND, f"resource not found: {uri}")
        try:
            contents = handler(uri)
        except Exception as exc:
            raise _RPCError(INTERNAL_ERROR, str(exc)) from exc
        return {"contents": [item.to_dict() for item in contents]}

    def _set_level(self, params: Mapping[str, Any]) -> Message:
        try:
            self.logging_level = LoggingLevel(params.get("level"))
        except ValueError as exc:
            raise _RPCError(INVALID_PARAMS, f"invalid logging level: {params.get('level')}") from exc
        return {}


def _register_resources(server: MCPServer, client: LunoClient) -> None:
    server.add_resource(resources.new_wallet_resource(), resources.handle_wallet_resource(client))
    server.add_resource(
        resources.new_transactions_resource(), resources.handle_transactions_resource(client)
    )
    server.add_resource_template(
        resources.new_account_template(), resources.handle_account_template(client)
    )


def _register_tools(server: MCPServer, client: LunoClient) -> None:
    logger.info("Initializing trading pair discovery...")
    discovery = PairDiscovery(client)
    discovery.initialize()

    server.add_tool(tools.new_get_balances_tool(), tools.handle_get_balances(client))
    server.add_tool(tools.new_get_ticker_tool(), tools.handle_get_ticker(client))
    server.add_tool(tools.new_get_order_book_tool(), tools.handle_get_order_book(client))
    server.add_tool(
        tools.new_create_order_tool(), tools.handle_create_order(client, discovery)
    )
    server.add_tool(tools.new_cancel_order_tool(), tools.handle_cancel_order(client))
    server.add_tool(tools.new_list_orders_tool(), tools.handle_list_orders(client))
    server.add_tool(
        transactions.new_list_transactions_tool(),
        transactions.handle_list_transactions(client),
    )
    server.add_tool(
        transactions.new_get_transaction_tool(), transactions.handle_get_transaction(client)
    )
    server.add_tool(
        transactions.new_list_trades_tool(), transactions.handle_list_trades(client)
    )
    server.add_tool(
        validation.new_validate_pair_tool(), validation.handle_validate_pair(discovery)
    )


def new_mcp_server(name: str, version: str, client: LunoClient, *args: Hooks) -> MCPServer:
    """Create a server with every tool and resource registered against ``client``."""
    server = MCPServer(name, version, args)
    _register_resources(server, client)
    _register_tools(server, client)
    return server


def serve_stdio(
    server: MCPServer, stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None
) -> None:
    """Answer line-delimited JSON-RPC messages from ``stdin`` until it ends."""
    source = stdin if stdin is not None else sys.stdin
    sink = stdout if stdout is not None else sys.stdout
    lock = threading.Lock()

    def send(message: Message) -> None:
        line = json.dumps(message, ensure_ascii=False)
        with lock:
            sink.write(line + "\n")
            sink.flush()

    server.add_client(send)
    try:
        for line in source:
            line = line.strip()
            if not line:
                continue
            response = server.handle_message(line)
            if response is not None:
                send(response)
    finally:
        server.remove_client(send)


# ----- SSE transport -----


def _parse_address(address: str) -> tuple[str, int]:
    host, separator, port_text = address.rpartition(":")
    if not separator or not port_text.isdigit():
        raise ValueError(f"invalid listen address: {address!r}")
    port = int(port_text)
    if port > 65535:
        raise ValueError(f"invalid listen address: {address!r}")
    return host, port


class _SSEServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], mcp: MCPServer) -> None:
        super().__init__(address, _SSEHandler)
        self.mcp = mcp
        self.sessions: dict[str, "queue.Queue[Message]"] = {}
        self.sessions_lock = threading.Lock()
        self.stopping = threading.Event()


class _SSEHandler(BaseHTTPRequestHandler):
    server: _SSEServer

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("SSE %s", format % args)

    def _reply(self, status: int, text: str) -> None:
        body = text.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _event(self, name: str, data: str) -> None:
        self.wfile.write(f"event: {name}\ndata: {data}\n\n".encode("utf-8"))
        self.wfile.flush()

    def do_GET(self) -> None:
        if urlsplit(self.path).path != "/sse":
            self._reply(404, "Not found")
            return
        session_id = uuid.uuid4().hex
        outbox: "queue.Queue[Message]" = queue.Queue()
        with self.server.sessions_lock:
            self.server.sessions[session_id] = outbox
        self.server.mcp.add_client(outbox.put)
        try:
            self.send_response(200)
            self.send_header("Content-Type", "text/event-stream")
            self.send_header("Cache-Control", "no-cache")
            self.send_header("Connection", "keep-alive")
            self.end_headers()
            self._event("endpoint", f"/message?sessionId={session_id}")
            while not self.server.stopping.is_set():
                try:
                    message = outbox.get(timeout=0.25)
                except queue.Empty:
                    continue
                self._event("message", json.dumps(message, ensure_ascii=False))
        except (BrokenPipeError, ConnectionResetError):
            pass
        finally:
            self.server.mcp.remove_client(outbox.put)
            with self.server.sessions_lock:
                self.server.sessions.pop(session_id, None)

    def do_POST(self) -> None:
        parts = urlsplit(self.path)
        if parts.path != "/message":
            self._reply(404, "Not found")
            return
        session_id = parse_qs(parts.query).get("sessionId", [""])[0]
        if not session_id:
            self._reply(400, "Missing sessionId")
            return
        with self.server.sessions_lock:
            outbox = self.server.sessions.get(session_id)
        if outbox is None:
            self._reply(404, "Invalid session ID")
            return
        length = int(self.headers.get("Content-Length") or 0)
        body = self.rfile.read(length)
        try:
            message = json.loads(body)
        except ValueError:
            self._reply(400, "Parse error")
            return
        response = self.server.mcp.handle_message(message)
        if response is not None:
            outbox.put(response)
        self._reply(202, "Accepted")


def _create_sse_server(server: MCPServer, address: str) -> _SSEServer:
    return _SSEServer(_parse_address(address), server)


def serve_sse(server: MCPServer, address: str) -> None:
    """Serve clients over server-sent events at ``address`` (``host:port``)."""
    http_server = _create_sse_server(server, address)
    logger.info("SSE server listening on " + address)
    try:
        http_server.serve_forever()
    finally:
        http_server.stopping.set()
        http_server.server_close()