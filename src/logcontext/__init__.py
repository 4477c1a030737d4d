from logcontext.context import (
    ContextInjector,
    ContextVarLoggingContext,
    LoggingContext,
    log_context,
)
from logcontext.main.exceptions import ExpressionEvaluationError, LogContextError

__all__ = [
    "ContextInjector",
    "ContextVarLoggingContext",
    "ExpressionEvaluationError",
    "LogContextError",
    "LoggingContext",
    "log_context",
]
