"""Context injection around a single call.

The injector evaluates the effective declarations against the call's
arguments, writes the results into the logging context, runs the call and
then removes exactly the keys it wrote, whatever way the call ends.

Cleanup is driven by a per-call ledger rather than a snapshot of the whole
store: restoring a snapshot would wipe keys written concurrently by enclosing
scopes (outer injections, the request middleware) during the call.

Generators hold the context per step rather than for their whole life: the
keys are written before each resume and released before the value reaches
the caller. Scopes therefore stay strictly nested even when several
generators are interleaved or one is abandoned half way.
"""

from __future__ import annotations

import inspect
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import (
    Any,
    AsyncGenerator,
    Callable,
    Dict,
    Generator,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)

from logcontext.context.binding import bind_arguments, get_signature
from logcontext.context.declarations import (
    Declaration,
    DeclarationSet,
    parse_declarations,
)
from logcontext.context.expressions import ExpressionEvaluator, SimpleExpressionEvaluator
from logcontext.context.logging_context import ContextVarLoggingContext, LoggingContext
from logcontext.main.logging import get_logger

logger = get_logger(__name__)

# (key, rendered value) pairs produced by one evaluation pass
Entry = Tuple[str, str]


@dataclass
class AddedKeysLedger:
    """Keys written by one injection, with the values they shadowed."""

    keys: List[str] = field(default_factory=list)
    shadowed: Dict[str, str] = field(default_factory=dict)

    def record(self, key: str, previous: Optional[str]) -> None:
        self.keys.append(key)
        if previous is not None:
            self.shadowed[key] = previous

    def __contains__(self, key: object) -> bool:
        return key in self.keys

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys)

    def __len__(self) -> int:
        return len(self.keys)


class ContextInjector:
    def __init__(
        self,
        logging_context: Optional[LoggingContext] = None,
        evaluator: Optional[ExpressionEvaluator] = None,
    ):
        self.logging_context = (
            logging_context if logging_context is not None else ContextVarLoggingContext()
        )
        self.evaluator = evaluator if evaluator is not None else SimpleExpressionEvaluator()

    def evaluate(self, declarations: DeclarationSet, bindings: Dict[str, Any]) -> List[Entry]:
        """Evaluate ``declarations`` in order into the ``(key, text)`` pairs to write.

        Evaluation failures, ``None`` results and repeated keys are logged and
        skipped. Only keys that produced a value count towards duplicates.
        """
        entries: List[Entry] = []
        seen = set()
        for declaration in declarations:
            key, expression = declaration.key, declaration.expression
            try:
                value = self.evaluator.evaluate(expression, bindings)
            except Exception as e:
                logger.warning(
                    "Failed to evaluate expression '%s' for key '%s': %s", expression, key, e
                )
                continue

            logger.debug(
                "Evaluating expression '%s' for key '%s', result: '%s'", expression, key, value
            )

            if value is None:
                logger.debug("Skipped null value for key '%s'", key)
                continue

            if key in seen:
                logger.warning("Duplicate key '%s' detected. Skipping later occurrence.", key)
                continue

            seen.add(key)
            entries.append((key, str(value)))
        return entries

    def write(self, entries: List[Entry], ledger: AddedKeysLedger) -> None:
        """Write ``entries`` into the logging context, recording each in ``ledger``.

        A failing context write propagates; keys written so far are already in
        ``ledger`` for the caller to release.
        """
        for key, text in entries:
            previous = self.logging_context.get(key)
            self.logging_context.set(key, text)
            ledger.record(key, previous)
            logger.debug("Inserted '%s' = '%s' into the logging context", key, text)

    def populate(
        self,
        declarations: DeclarationSet,
        bindings: Dict[str, Any],
        ledger: AddedKeysLedger,
    ) -> None:
        self.write(self.evaluate(declarations, bindings), ledger)

    def release(self, ledger: AddedKeysLedger) -> None:
        """Undo every write recorded in ``ledger``. Never raises."""
        for key in reversed(ledger.keys):
            try:
                previous = ledger.shadowed.get(key)
                if previous is None:
                    self.logging_context.remove(key)
                else:
                    self.logging_context.set(key, previous)
            except Exception:
                logger.warning(
                    "Failed to remove key '%s' from the logging context", key, exc_info=True
                )

    @contextmanager
    def scope(self, entries: List[Entry]) -> Iterator[AddedKeysLedger]:
        """Hold ``entries`` in the logging context for the body of the ``with`` block."""
        ledger = AddedKeysLedger()
        try:
            self.write(entries, ledger)
            yield ledger
        finally:
            self.release(ledger)

    def collect(
        self,
        func: Callable,
        signature: Optional[inspect.Signature],
        declarations: DeclarationSet,
        args: tuple,
        kwargs: Dict[str, Any],
    ) -> List[Entry]:
        """Bind the call arguments and evaluate the declarations, if there is anything to do."""
        if not declarations:
            return []

        if signature is None:
            logger.warning("Parameter names are not available for method: %s", _describe(func))
            return []

        bindings = bind_arguments(signature, args, kwargs)
        if bindings is None:
            # The call itself will raise the TypeError for the bad arguments
            return []

        return self.evaluate(declarations, bindings)

    def call(
        self,
        func: Callable,
        signature: Optional[inspect.Signature],
        declarations: DeclarationSet,
        args: tuple,
        kwargs: Dict[str, Any],
    ) -> Any:
        with self.scope(self.collect(func, signature, declarations, args, kwargs)):
            return func(*args, **kwargs)

    async def call_async(
        self,
        func: Callable,
        signature: Optional[inspect.Signature],
        declarations: DeclarationSet,
        args: tuple,
        kwargs: Dict[str, Any],
    ) -> Any:
        # The scope also closes on asyncio.CancelledError
        with self.scope(self.collect(func, signature, declarations, args, kwargs)):
            return await func(*args, **kwargs)

    def call_generator(
        self,
        func: Callable,
        signature: Optional[inspect.Signature],
        declarations: DeclarationSet,
        args: tuple,
        kwargs: Dict[str, Any],
    ) -> Generator[Any, Any, Any]:
        """Drive a generator, holding the context only while it runs.

        Keys are written before each step and released before the value is
        handed back, so a suspended generator leaves nothing behind in the
        caller's context.
        """
        entries = self.collect(func, signature, declarations, args, kwargs)
        gen = func(*args, **kwargs)
        step, sent = gen.send, None
        while True:
            try:
                with self.scope(entries):
                    value = step(sent)
            except StopIteration as e:
                return e.value

            try:
                sent = yield value
            except GeneratorExit:
                with self.scope(entries):
                    gen.close()
                raise
            except BaseException as e:
                step, sent = gen.throw, e
            else:
                step = gen.send

    async def call_async_generator(
        self,
        func: Callable,
        signature: Optional[inspect.Signature],
        declarations: DeclarationSet,
        args: tuple,
        kwargs: Dict[str, Any],
    ) -> AsyncGenerator[Any, Any]:
        """Async counterpart of ``call_generator``, scoped per ``asend``/``athrow``."""
        entries = self.collect(func, signature, declarations, args, kwargs)
        agen = func(*args, **kwargs)
        step, sent = agen.asend, None
        while True:
            try:
                with self.scope(entries):
                    value = await step(sent)
            except StopAsyncIteration:
                return

            try:
                sent = yield value
            except GeneratorExit:
                with self.scope(entries):
                    await agen.aclose()
                raise
            except BaseException as e:
                step, sent = agen.athrow, e
            else:
                step = agen.asend

    def run(self, declarations: Iterable[Union[str, Declaration]], func: Callable, *args, **kwargs):
        """Call ``func`` with ``declarations`` applied, without decorating it."""
        return self.call(func, get_signature(func), parse_declarations(declarations), args, kwargs)

    async def run_async(
        self, declarations: Iterable[Union[str, Declaration]], func: Callable, *args, **kwargs
    ):
        return await self.call_async(
            func, get_signature(func), parse_declarations(declarations), args, kwargs
        )


def _describe(func: Callable) -> str:
    module = getattr(func, "__module__", None)
    name = getattr(func, "__qualname__", None) or repr(func)
    return f"{module}.{name}" if module else name


_injector: Optional[ContextInjector] = None


def get_injector() -> ContextInjector:
    """Get the default injector, creating it if needed."""
    global _injector
    if _injector is None:
        _injector = ContextInjector()
    return _injector


def set_injector(injector: ContextInjector) -> None:
    """Override the default injector (primarily for testing)."""
    global _injector
    _injector = injector


def reset_injector() -> None:
    global _injector
    _injector = None
