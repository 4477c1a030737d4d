"""
Declarative logging context.

This package provides:
- logging_context: the per-task key-value store read by log formatters
- declarations: parsing and precedence of key=expression declarations
- expressions: the pluggable expression evaluator
- injection: the injector that writes and removes context around a call
- decorators: the @log_context decorator
"""

from logcontext.context.declarations import Declaration, resolve_declarations
from logcontext.context.decorators import log_context
from logcontext.context.expressions import ExpressionEvaluator, SimpleExpressionEvaluator
from logcontext.context.injection import (
    ContextInjector,
    get_injector,
    reset_injector,
    set_injector,
)
from logcontext.context.logging_context import (
    ContextVarLoggingContext,
    LoggingContext,
    ScopedHandle,
)

__all__ = [
    "ContextInjector",
    "ContextVarLoggingContext",
    "Declaration",
    "ExpressionEvaluator",
    "LoggingContext",
    "ScopedHandle",
    "SimpleExpressionEvaluator",
    "get_injector",
    "log_context",
    "reset_injector",
    "resolve_declarations",
    "set_injector",
]
