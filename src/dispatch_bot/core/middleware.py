"""Cooperative middleware chain used for the receive, listener and response stacks.

A middleware is any callable taking ``(context, next, done)``; it may be a
plain function or a coroutine function. Each middleware must do exactly one
of the following:

- call ``next()`` (or ``await next()``) to hand control to the following
  middleware, optionally passing a replacement finalizer (``next(new_done)``)
  that later stages and the final completion will invoke instead of the
  current one;
- call ``done()`` to stop the chain, nothing after it runs;
- raise, in which case its ``done`` is invoked once and the error propagates.

A middleware may also return an explicit :class:`Continue` or :class:`Halt`
instead of calling ``next``/``done``. A middleware that does neither is
treated as having called ``done()``.

Example:
    ```python
    stack = Middleware()

    async def timing(context, next, done):
        started = time.monotonic()

        def finished():
            logger.info("took %.3fs", time.monotonic() - started)
            return done()

        next(finished)

    stack.register(timing)
    await stack.execute(context, complete=handler)
    ```
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from .exceptions import MiddlewareError
from .logger import get_logger

if TYPE_CHECKING:
    from .listener import Listener
    from .response import Response

logger = get_logger(__name__)

Finalizer = Callable[[], Any]
NextFunction = Callable[..., Any]
MiddlewareFunc = Callable[[Any, NextFunction, Finalizer], Any]
CompleteFunc = Callable[[Any], Any]

ContextT = TypeVar("ContextT", bound="MiddlewareContext")

_POSITIONAL_KINDS = (
    inspect.Parameter.POSITIONAL_ONLY,
    inspect.Parameter.POSITIONAL_OR_KEYWORD,
)


@dataclass
class MiddlewareContext:
    """Mutable payload threaded through one middleware stack.

    Middleware may read and extend the context, but ``response`` must be
    preserved. ``extras`` is free-form storage for middleware to share data.
    """

    response: Response
    listener: Listener | None = None
    strings: list[str] | None = None
    method: str | None = None
    plaintext: bool = False
    extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Continue:
    """Explicit result: continue the chain, optionally replacing the finalizer."""

    finalizer: Finalizer | None = None


@dataclass(frozen=True)
class Halt:
    """Explicit result: stop the chain here."""


async def _noop() -> None:
    return None


class _PendingFinalizer:
    """Awaitable returned by calling a finalizer; runs it only when awaited."""

    __slots__ = ("_finalizer",)

    def __init__(self, finalizer: _Finalizer) -> None:
        self._finalizer = finalizer

    def __await__(self) -> Generator[Any, None, None]:
        return self._finalizer.run().__await__()


class _Proceed:
    """Awaitable returned by ``next()``; awaiting it is a no-op."""

    __slots__ = ()

    def __await__(self) -> Generator[Any, None, None]:
        return _noop().__await__()


class _Finalizer:
    """Run-once wrapper around a finalizer for one chain execution.

    Calling the wrapper only records the request; the chain runner flushes
    requested finalizers after each step, so middleware may either
    ``done()`` or ``await done()``.
    """

    def __init__(self, fn: Finalizer, registry: list[_Finalizer]) -> None:
        self._fn = fn
        self.requested = False
        self.finished = False
        registry.append(self)

    def __call__(self) -> _PendingFinalizer:
        self.requested = True
        return _PendingFinalizer(self)

    async def run(self) -> None:
        if self.finished:
            return
        self.finished = True
        result = self._fn()
        if inspect.isawaitable(result):
            await result


async def _flush(registry: list[_Finalizer]) -> None:
    """Run every finalizer that was requested but has not run yet."""
    while True:
        pending = [item for item in registry if item.requested and not item.finished]
        if not pending:
            return
        for item in pending:
            await item.run()


@dataclass
class ChainOutcome(Generic[ContextT]):
    """Result of running a middleware stack over one context.

    Attributes:
        context: The (possibly mutated) context.
        completed: True when every middleware continued.
        finalizer: The finalizer current at the end of the chain. Invoke it
            through :meth:`finalize` once the terminal step is done.
    """

    context: ContextT
    completed: bool
    finalizer: _Finalizer
    _registry: list[_Finalizer] = field(default_factory=list, repr=False)

    async def finalize(self) -> None:
        """Invoke the final finalizer (at most once)."""
        self.finalizer()
        await _flush(self._registry)


class Middleware(Generic[ContextT]):
    """An ordered stack of middleware functions."""

    def __init__(self, name: str = "middleware") -> None:
        self.name = name
        self._stack: list[MiddlewareFunc] = []

    def __len__(self) -> int:
        return len(self._stack)

    def register(self, middleware: MiddlewareFunc) -> None:
        """Register a middleware function.

        Args:
            middleware: Callable accepting exactly ``(context, next, done)``.

        Raises:
            MiddlewareError: If the callable does not take exactly three
                positional parameters.
        """
        if not callable(middleware):
            raise MiddlewareError(
                f"Middleware must be callable, got {type(middleware).__name__}", middleware
            )
        try:
            signature = inspect.signature(middleware)
        except (TypeError, ValueError) as exc:
            raise MiddlewareError(
                f"Cannot inspect middleware signature: {exc}", middleware
            ) from exc

        params = signature.parameters.values()
        positional = [p for p in params if p.kind in _POSITIONAL_KINDS]
        variadic = any(p.kind is inspect.Parameter.VAR_POSITIONAL for p in params)
        if len(positional) != 3 or variadic:
            raise MiddlewareError(
                "Incorrect number of arguments for middleware callback "
                f"(expected 3, got {len(positional)})",
                middleware,
            )
        self._stack.append(middleware)
        logger.debug(
            "Registered %s middleware %s",
            self.name,
            getattr(middleware, "__name__", repr(middleware)),
        )

    async def run(self, context: ContextT) -> ChainOutcome[ContextT]:
        """Run the stack over ``context`` without invoking the final finalizer.

        Returns:
            ChainOutcome telling whether the chain completed and which
            finalizer is current. The caller owns calling
            :meth:`ChainOutcome.finalize` after its terminal step.

        Raises:
            Exception: Whatever a middleware raised, after that middleware's
                ``done`` has been invoked.
        """
        registry: list[_Finalizer] = []
        done = _Finalizer(_noop, registry)

        for middleware in list(self._stack):
            outcome = await self._run_step(middleware, context, done, registry)
            if isinstance(outcome, Halt):
                logger.debug(
                    "%s chain halted by %s",
                    self.name,
                    getattr(middleware, "__name__", repr(middleware)),
                )
                return ChainOutcome(context, False, done, registry)
            if outcome.finalizer is not None:
                replacement = outcome.finalizer
                if isinstance(replacement, _Finalizer):
                    done = replacement
                else:
                    done = _Finalizer(replacement, registry)

        return ChainOutcome(context, True, done, registry)

    async def execute(
        self,
        context: ContextT,
        complete: CompleteFunc | None = None,
    ) -> ContextT:
        """Run the stack, then the terminal step, then the final finalizer.

        Args:
            context: Object passed through the stack. When handling errors
                this is assumed to carry a ``response``.
            complete: Optional terminal step called with the context when
                every middleware continued. Sync or async.

        Returns:
            The (possibly mutated) context.
        """
        outcome = await self.run(context)
        if not outcome.completed:
            return context

        try:
            if complete is not None:
                result = complete(context)
                if inspect.isawaitable(result):
                    await result
        finally:
            await outcome.finalize()
        return context

    async def _run_step(
        self,
        middleware: MiddlewareFunc,
        context: ContextT,
        done: _Finalizer,
        registry: list[_Finalizer],
    ) -> Continue | Halt:
        continued: list[Continue] = []

        def next_fn(new_done: Finalizer | None = None) -> _Proceed:
            if continued:
                logger.warning("next() called more than once by %r; ignoring", middleware)
            else:
                continued.append(Continue(new_done))
            return _Proceed()

        try:
            result: Any = middleware(context, next_fn, done)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            await done.run()
            await _flush(registry)
            raise

        outcome: Continue | Halt
        if isinstance(result, (Continue, Halt)):
            outcome = result
        elif continued:
            outcome = continued[0]
        else:
            outcome = Halt()

        if isinstance(outcome, Halt):
            await done.run()
        await _flush(registry)
        return outcome

