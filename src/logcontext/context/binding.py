from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Optional


def get_signature(func: Callable) -> Optional[inspect.Signature]:
    """Return the signature of ``func`` or ``None`` when it exposes no parameter names."""
    try:
        return inspect.signature(func)
    except (TypeError, ValueError):
        return None


def bind_arguments(
    signature: inspect.Signature, args: tuple, kwargs: Dict[str, Any]
) -> Optional[Dict[str, Any]]:
    """Pair parameter names with the actual arguments of one call.

    Defaults are applied so expressions can reference omitted parameters.
    Returns ``None`` when the arguments do not fit the signature; the callee
    then raises its own ``TypeError``.
    """
    try:
        bound = signature.bind(*args, **kwargs)
    except TypeError:
        return None
    bound.apply_defaults()
    return dict(bound.arguments)
