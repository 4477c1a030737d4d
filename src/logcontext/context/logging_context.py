"""The logging context contract consumed by the injector and the middleware.

``LoggingContext`` is a small, testable facade over the per-task context store.
The default implementation keeps its state in a ``ContextVar`` (see
``logcontext.main.request_context``), so each asyncio task and each thread
works on its own mapping and no locking is required.

Example:
    context = ContextVarLoggingContext()
    with context.scoped("orderId", "123"):
        logger.info("Processing order")  # carries orderId=123
    # orderId is removed again here
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from logcontext.main.request_context import (
    clear_request_context,
    get_request_context,
    get_request_context_value,
    remove_request_context,
    set_request_context,
)


class ScopedHandle:
    """Removes one key from a logging context when released.

    Releasing more than once is a no-op, so the handle can be used both as a
    context manager and through an explicit ``release()`` call.
    """

    def __init__(self, context: LoggingContext, key: str):
        self._context = context
        self.key = key
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self._context.remove(self.key)

    def __enter__(self) -> ScopedHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


class LoggingContext(ABC):
    """Key-value store read implicitly by log formatters."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Add or replace ``key``. ``None`` removes the key."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for ``key`` or ``None`` when absent."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Remove ``key``; absent keys are ignored."""

    @abstractmethod
    def clear_all(self) -> None:
        """Drop every key owned by the current unit of execution."""

    @abstractmethod
    def snapshot(self) -> Dict[str, str]:
        """Return a copy of the current entries."""

    def scoped(self, key: str, value: Any) -> ScopedHandle:
        self.set(key, value)
        return ScopedHandle(self, key)


class ContextVarLoggingContext(LoggingContext):
    """Default ``LoggingContext`` backed by ``contextvars``."""

    def set(self, key: str, value: Any) -> None:
        _check_key(key)
        set_request_context(**{key: value})

    def get(self, key: str) -> Optional[str]:
        return get_request_context_value(key)

    def remove(self, key: str) -> None:
        remove_request_context(key)

    def clear_all(self) -> None:
        clear_request_context()

    def snapshot(self) -> Dict[str, str]:
        return get_request_context()


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValueError(f"Logging context keys must be non-empty strings, got {key!r}")
