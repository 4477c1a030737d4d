import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from rich.logging import RichHandler

from logcontext.main.config import get_loglevel, get_settings
from logcontext.main.request_context import get_request_context
from logcontext.observability.live_logs import (
    install_live_log_handler,
    uninstall_live_log_handler,
)


FORMAT_STRING = "%(asctime)s | %(levelname)s | %(name)s : %(message)s"

_CONFIGURED = False
_HANDLER_MARKER = "_logcontext_handler"


class ContextFilter(logging.Filter):
    """Copy the current logging context onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        context = get_request_context()
        record.context = context
        for key, value in context.items():
            # Values passed explicitly through extra={} take precedence
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class ContextTextFormatter(logging.Formatter):
    """Append the logging context to the formatted line as ``[key=value ...]``."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context is None:
            context = get_request_context()
        if not context:
            return line
        rendered = " ".join(f"{key}={value}" for key, value in context.items())
        return f"{line} [{rendered}]"


class ContextJSONFormatter(logging.Formatter):
    """Serialize log records with the logging context into JSON."""

    RESERVED_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
        "context",
    }

    def format(self, record: logging.LogRecord) -> str:
        log: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Attach logging context values (userID, orderId, ...)
        for key, value in get_request_context().items():
            if key not in log:
                log[key] = value

        # Include extra attributes passed via logger(..., extra={})
        for key, value in record.__dict__.items():
            if key in self.RESERVED_ATTRS or key.startswith("_"):
                continue
            if value is None:
                continue
            log.setdefault(key, value)

        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            log["stack"] = record.stack_info

        return json.dumps(log, default=str)


def _build_console_handler(json_logs: bool, level: int) -> logging.Handler:
    handler: logging.Handler
    if json_logs:
        handler = logging.StreamHandler(stream=sys.stdout)
        handler.setFormatter(ContextJSONFormatter())
    else:
        # Use Rich for prettier console output when not using JSON logs
        handler = RichHandler(rich_tracebacks=True, markup=False, show_path=True)
        handler.setFormatter(ContextTextFormatter("%(message)s"))
    handler.setLevel(level)
    return handler


def configure_logging(
    level: Optional[int] = None,
    json_logs: Optional[bool] = None,
    log_file: Optional[str] = None,
    force: bool = False,
) -> logging.Logger:
    """Attach context-aware handlers to the root logger.

    Handlers previously installed by this function are replaced; foreign
    handlers are left alone. Calling it again is a no-op unless ``force`` is set.
    """
    global _CONFIGURED
    root = logging.getLogger()
    if _CONFIGURED and not force:
        return root

    settings = get_settings()
    level = level if level is not None else get_loglevel()
    json_logs = settings.json_logs if json_logs is None else json_logs
    log_file = log_file or settings.log_file

    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)

    root.setLevel(level)
    context_filter = ContextFilter()

    handlers = [_build_console_handler(json_logs, level)]
    if log_file:
        file_handler = logging.FileHandler(filename=log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            ContextJSONFormatter() if json_logs else ContextTextFormatter(FORMAT_STRING)
        )
        handlers.append(file_handler)

    for handler in handlers:
        handler.addFilter(context_filter)
        setattr(handler, _HANDLER_MARKER, True)
        root.addHandler(handler)

    if settings.live_logs_enabled:
        install_live_log_handler(capacity=settings.live_logs_capacity)

    # Route server loggers through the root handlers
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
        server_logger = logging.getLogger(logger_name)
        server_logger.handlers = []
        server_logger.propagate = True

    _CONFIGURED = True
    return root


def reset_logging() -> None:
    """Remove handlers installed by configure_logging, live logs buffer included."""
    global _CONFIGURED
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            root.removeHandler(handler)

    uninstall_live_log_handler()
    _CONFIGURED = False


def get_logger(module_name: str) -> logging.Logger:
    logger = logging.getLogger(module_name)
    logger.setLevel(get_loglevel())
    return logger
