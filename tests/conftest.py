"""
Root-level conftest for all tests.

Every test starts with default settings, a fresh default injector and an
empty logging context, so state written by one test never leaks into the next.
"""
from typing import Any, Dict, List, Optional, Tuple

import pytest

from logcontext.context.injection import ContextInjector, reset_injector
from logcontext.context.logging_context import LoggingContext
from logcontext.main.config import reset_settings
from logcontext.main.request_context import clear_request_context


class RecordingLoggingContext(LoggingContext):
    """Dict-backed LoggingContext that records every call it receives."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.entries: Dict[str, str] = dict(initial or {})
        self.calls: List[Tuple[str, Any]] = []

    def set(self, key: str, value: Any) -> None:
        self.calls.append(("set", (key, value)))
        if value is None:
            self.entries.pop(key, None)
        else:
            self.entries[key] = str(value)

    def get(self, key: str) -> Optional[str]:
        return self.entries.get(key)

    def remove(self, key: str) -> None:
        self.calls.append(("remove", key))
        self.entries.pop(key, None)

    def clear_all(self) -> None:
        self.calls.append(("clear_all", None))
        self.entries.clear()

    def snapshot(self) -> Dict[str, str]:
        return dict(self.entries)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


@pytest.fixture(autouse=True)
def clean_state():
    reset_settings()
    reset_injector()
    clear_request_context()
    yield
    clear_request_context()
    reset_injector()
    reset_settings()


@pytest.fixture
def recording_context() -> RecordingLoggingContext:
    return RecordingLoggingContext()


@pytest.fixture
def injector(recording_context) -> ContextInjector:
    return ContextInjector(logging_context=recording_context)
