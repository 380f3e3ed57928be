"""Logging handlers that fan records out and forward them to MCP clients."""

from __future__ import annotations

import copy
import logging
from typing import Any, Optional, Protocol

from lunomcp.protocol import Hooks, LoggingLevel

LOGGER_NAME = "luno-mcp"
NOTIFICATION_METHOD = "notifications/message"


class _Notifier(Protocol):
    def send_notification_to_all_clients(self, method: str, params: Any) -> None: ...


class MultiHandler(logging.Handler):
    """Forwards each record to every handler whose level admits it."""

    def __init__(self, *args: logging.Handler) -> None:
        super().__init__()
        self.handlers = list(args)

    def emit(self, record: logging.LogRecord) -> None:
        for handler in self.handlers:
            if record.levelno >= handler.level:
                handler.handle(copy.copy(record))


class MCPNotificationHandler(logging.Handler):
    """Sends log records to MCP clients as logging notifications."""

    def __init__(self, server: _Notifier, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.server = server

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = python_level_to_mcp_level(record.levelno)
            self.server.send_notification_to_all_clients(
                NOTIFICATION_METHOD,
                {"level": level.value, "logger": LOGGER_NAME, "data": record.getMessage()},
            )
        except Exception:
            self.handleError(record)


def python_level_to_mcp_level(level: int) -> LoggingLevel:
    """Map a numeric logging level to the nearest MCP logging level."""
    if level <= logging.DEBUG:
        return LoggingLevel.DEBUG
    if level <= logging.INFO:
        return LoggingLevel.INFO
    if level <= logging.WARNING:
        return LoggingLevel.WARNING
    return LoggingLevel.ERROR


def mcp_hooks(logger: Optional[logging.Logger] = None) -> Hooks:
    """Hooks that log every request, response and error through ``logger``."""
    log = logger if logger is not None else logging.getLogger("lunomcp")
    hooks = Hooks()

    def before_any(request_id: Any, method: str, message: Any) -> None:
        log.debug("MCP request received method=%s id=%s", method, request_id)

    def on_success(request_id: Any, method: str, message: Any, result: Any) -> None:
        log.debug("MCP response sent id=%s method=%s", request_id, method)

    def on_error(request_id: Any, method: str, message: Any, error: BaseException) -> None:
        log.error("MCP error occurred error=%s method=%s", error, method)

    hooks.add_before_any(before_any)
    hooks.add_on_success(on_success)
    hooks.add_on_error(on_error)
    return hooks