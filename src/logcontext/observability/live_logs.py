"""In-memory buffer of the most recent log records.

The handler is attached to the root logger under a fixed name so that the
live logs endpoint can find it without holding a reference. Records are
formatted when they are captured:

    2023-12-01 11:50:45.123 INFO  [MainThread] --- app.orders: Order created
"""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime
from typing import Deque, List, Optional

IN_MEMORY_APPENDER_NAME = "IN_MEMORY_APPENDER"
DEFAULT_CAPACITY = 250

# Python level names mapped onto the five-letter family used in the output
_LEVEL_NAMES = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
}


class LiveLogFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        created = datetime.fromtimestamp(record.created)
        return f"{created:%Y-%m-%d %H:%M:%S}.{int(record.msecs):03d}"

    def format(self, record: logging.LogRecord) -> str:
        level = _LEVEL_NAMES.get(record.levelname, record.levelname)
        return (
            f"{self.formatTime(record)} {level:<5} [{record.threadName}] --- "
            f"{record.name}: {record.getMessage()}"
        )


class InMemoryLogHandler(logging.Handler):
    """Keeps the last ``capacity`` formatted records."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY, level: int = logging.NOTSET):
        if capacity <= 0:
            raise ValueError(f"capacity must be greater than zero, got {capacity}")
        super().__init__(level)
        self.set_name(IN_MEMORY_APPENDER_NAME)
        self.setFormatter(LiveLogFormatter())
        self.buffer: Deque[str] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self.buffer.maxlen

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.buffer.append(self.format(record))
        except Exception:
            self.handleError(record)

    def resize(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be greater than zero, got {capacity}")
        with self.lock:
            self.buffer = deque(self.buffer, maxlen=capacity)

    def get_lines(self) -> List[str]:
        with self.lock:
            return list(self.buffer)


def find_live_log_handler(logger: Optional[logging.Logger] = None) -> Optional[InMemoryLogHandler]:
    logger = logger or logging.getLogger()
    for handler in logger.handlers:
        if isinstance(handler, InMemoryLogHandler) and handler.get_name() == IN_MEMORY_APPENDER_NAME:
            return handler
    return None


def install_live_log_handler(capacity: int = DEFAULT_CAPACITY) -> InMemoryLogHandler:
    """Attach the buffer to the root logger, reusing an existing one."""
    root = logging.getLogger()
    handler = find_live_log_handler(root)
    if handler is None:
        handler = InMemoryLogHandler(capacity=capacity)
        root.addHandler(handler)
    elif handler.capacity != capacity:
        handler.resize(capacity)
    return handler


def uninstall_live_log_handler() -> None:
    root = logging.getLogger()
    handler = find_live_log_handler(root)
    if handler is not None:
        root.removeHandler(handler)
        handler.close()


def get_live_logs(logger: Optional[logging.Logger] = None) -> List[str]:
    """Return the buffered lines oldest first, or an error line when no buffer is installed."""
    handler = find_live_log_handler(logger)
    if handler is None:
        return [f"Error: In-memory appender named '{IN_MEMORY_APPENDER_NAME}' not found."]
    return handler.get_lines()
