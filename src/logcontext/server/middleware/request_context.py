"""ASGI middleware seeding the logging context from request headers."""

from __future__ import annotations

from typing import Optional

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from logcontext.context.logging_context import ContextVarLoggingContext, LoggingContext
from logcontext.main.logging import get_logger

logger = get_logger(__name__)

HEADER_USER_ID = "X-User-ID"
CONTEXT_USER_ID = "userID"


class RequestContextMiddleware:
    """Copy the user id header into the logging context for the whole request.

    The context is cleared entirely once the downstream app finishes, whether it
    returned, raised or was cancelled, so nothing written during a request
    outlives it.
    """

    def __init__(
        self,
        app: ASGIApp,
        header_name: str = HEADER_USER_ID,
        context_key: str = CONTEXT_USER_ID,
        logging_context: Optional[LoggingContext] = None,
    ):
        self.app = app
        self.header_name = header_name
        self.context_key = context_key
        self.logging_context = (
            logging_context if logging_context is not None else ContextVarLoggingContext()
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            value = Headers(scope=scope).get(self.header_name)
            # Blank values are ignored, but a non-blank value is stored as sent
            if value is not None and value.strip():
                self.logging_context.set(self.context_key, value)
                logger.debug(
                    "Seeded logging context key %s from header %s", self.context_key, self.header_name
                )
            await self.app(scope, receive, send)
        finally:
            self.logging_context.clear_all()
