"""Parsing and precedence rules for ``key=expression`` declarations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

from logcontext.main.logging import get_logger

logger = get_logger(__name__)

DECLARATIONS_ATTR = "__log_context__"


@dataclass(frozen=True)
class Declaration:
    """One ``key=expression`` pair attached to a function or a class."""

    key: str
    expression: str

    def __str__(self) -> str:
        return f"{self.key}={self.expression}"


DeclarationSet = Tuple[Declaration, ...]


def parse_declaration(text: str) -> Optional[Declaration]:
    """Split ``text`` on its first ``=``.

    The expression may contain further ``=`` characters. Malformed entries are
    logged and dropped instead of raising.

    Examples:
        >>> parse_declaration("orderId=#id")
        Declaration(key='orderId', expression='#id')

        >>> parse_declaration("flag=#a == #b")
        Declaration(key='flag', expression='#a == #b')
    """
    index = text.find("=")
    if index == -1:
        logger.warning(
            "Invalid expression format '%s'. Expected format: key=#expression", text
        )
        return None

    key = text[:index].strip()
    expression = text[index + 1 :].strip()
    if not key:
        logger.warning("Invalid expression format '%s'. Key must not be empty", text)
        return None

    return Declaration(key=key, expression=expression)


def parse_declarations(expressions: Iterable[Union[str, Declaration]]) -> DeclarationSet:
    declarations = []
    for item in expressions:
        if isinstance(item, Declaration):
            declarations.append(item)
            continue
        if not isinstance(item, str):
            raise TypeError(
                f"Log context expressions must be strings, got {type(item).__name__}"
            )
        declaration = parse_declaration(item)
        if declaration is not None:
            declarations.append(declaration)
    return tuple(declarations)


def resolve_declarations(
    method_declarations: Optional[DeclarationSet],
    type_declarations: Optional[DeclarationSet],
) -> DeclarationSet:
    """Return the declaration set that applies to one call.

    A method-level set replaces the type-level set entirely, even when it is
    empty: ``@log_context()`` on a method suppresses the class declarations for
    that method. ``None`` means "not declared" and falls back to the type.
    """
    if method_declarations is not None:
        return method_declarations
    if type_declarations is not None:
        return type_declarations
    return ()


def get_declarations(target: object) -> Optional[DeclarationSet]:
    """Return the set declared directly on ``target`` (function or class)."""
    if isinstance(target, type):
        return target.__dict__.get(DECLARATIONS_ATTR)
    return getattr(target, DECLARATIONS_ATTR, None)
