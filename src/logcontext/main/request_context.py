"""Utilities for storing per-task logging context using contextvars."""

from __future__ import annotations

from contextvars import ContextVar
from typing import Any, Dict, Optional


_request_context: ContextVar[Dict[str, str]] = ContextVar("request_context", default={})


def get_request_context() -> Dict[str, str]:
    """Return a copy of the current logging context."""
    context = _request_context.get()
    # Ensure callers cannot mutate the stored context in place
    return dict(context) if context else {}


def get_request_context_value(key: str) -> Optional[str]:
    return _request_context.get().get(key)


def set_request_context(**values: Any) -> Dict[str, str]:
    """Merge provided values into the stored context.

    Values are stored as strings. Passing ``None`` clears the value for that key.
    """

    current = get_request_context()
    for key, value in values.items():
        if value is None:
            current.pop(key, None)
        else:
            current[key] = str(value)
    _request_context.set(current)
    return current


def remove_request_context(*keys: str) -> None:
    """Drop the given keys, ignoring keys that are not present."""

    stored = _request_context.get()
    if not any(key in stored for key in keys):
        return

    current = dict(stored)
    for key in keys:
        current.pop(key, None)
    _request_context.set(current)


def clear_request_context() -> None:
    """Remove all stored context for the active task."""

    _request_context.set({})
