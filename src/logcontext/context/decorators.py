"""The ``@log_context`` decorator.

Applied to a function or method, it declares the method-level set:

    @log_context("orderId=#id", "customerName=#customer.name")
    def process_order(id, customer): ...

Applied to a class, it declares the class-level set and wraps every public
function, staticmethod and classmethod defined in the class body. Methods
that carry their own ``@log_context`` keep it: a method-level set replaces the
class-level set, and ``@log_context()`` with no expressions switches the class
declarations off for that method.
"""

from __future__ import annotations

import inspect
from functools import wraps
from typing import Callable, Optional, TypeVar

from logcontext.context.binding import get_signature
from logcontext.context.declarations import (
    DECLARATIONS_ATTR,
    DeclarationSet,
    get_declarations,
    parse_declarations,
    resolve_declarations,
)
from logcontext.context.injection import ContextInjector, get_injector

T = TypeVar("T")

TYPE_DECLARATIONS_ATTR = "__log_context_type__"


def log_context(*expressions: str, injector: Optional[ContextInjector] = None):
    declarations = parse_declarations(expressions)

    def decorator(target: T) -> T:
        if isinstance(target, type):
            return _decorate_class(target, declarations, injector)
        if isinstance(target, (staticmethod, classmethod)):
            return type(target)(
                _wrap(target.__func__, declarations, None, injector)
            )
        if not callable(target):
            raise TypeError(f"@log_context cannot decorate {type(target).__name__} objects")
        return _wrap(target, declarations, None, injector)

    return decorator


def _decorate_class(
    cls: type, declarations: DeclarationSet, injector: Optional[ContextInjector]
) -> type:
    setattr(cls, DECLARATIONS_ATTR, declarations)

    for name, member in list(vars(cls).items()):
        if name.startswith("_"):
            continue

        if isinstance(member, (staticmethod, classmethod)):
            func = member.__func__
            if _is_declared(func):
                continue
            setattr(cls, name, type(member)(_wrap(func, None, declarations, injector)))
        elif inspect.isfunction(member):
            if _is_declared(member):
                continue
            setattr(cls, name, _wrap(member, None, declarations, injector))

    return cls


def _is_declared(func: Callable) -> bool:
    return get_declarations(func) is not None or hasattr(func, TYPE_DECLARATIONS_ATTR)


def _wrap(
    func: Callable,
    method_declarations: Optional[DeclarationSet],
    type_declarations: Optional[DeclarationSet],
    injector: Optional[ContextInjector],
) -> Callable:
    effective = resolve_declarations(method_declarations, type_declarations)
    signature = get_signature(func)

    if inspect.isasyncgenfunction(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            # Returns the relaying async generator; nothing runs until first iteration
            return (injector or get_injector()).call_async_generator(
                func, signature, effective, args, kwargs
            )

    elif inspect.iscoroutinefunction(func):

        @wraps(func)
        async def wrapper(*args, **kwargs):
            return await (injector or get_injector()).call_async(
                func, signature, effective, args, kwargs
            )

    elif inspect.isgeneratorfunction(func):

        @wraps(func)
        def wrapper(*args, **kwargs):
            return (
                yield from (injector or get_injector()).call_generator(
                    func, signature, effective, args, kwargs
                )
            )

    else:

        @wraps(func)
        def wrapper(*args, **kwargs):
            return (injector or get_injector()).call(func, signature, effective, args, kwargs)

    if method_declarations is not None:
        setattr(wrapper, DECLARATIONS_ATTR, method_declarations)
    else:
        setattr(wrapper, TYPE_DECLARATIONS_ATTR, type_declarations)
    return wrapper
