"""Process-wide event bus shared by the robot, listeners, adapters and the brain."""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .logger import get_logger

if TYPE_CHECKING:
    from .response import Response

logger = get_logger(__name__)

EventHandler = Callable[..., Any]


class EventBus:
    """Minimal publish/subscribe bus.

    Handlers run synchronously in registration order. Coroutine handlers are
    scheduled on the running event loop. A handler that raises is logged and
    does not stop the remaining handlers.

    Emitting ``"error"`` while no error handler is registered logs the error
    with its traceback, so failures are never silently dropped.

    Example:
        ```python
        bus = EventBus()
        bus.on("error", lambda err, response: print("failed:", err))
        bus.emit_error(RuntimeError("boom"))
        ```
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[tuple[EventHandler, bool]]] = {}
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: str, handler: EventHandler) -> EventBus:
        """Register ``handler`` for ``event``."""
        self._handlers.setdefault(event, []).append((handler, False))
        return self

    def once(self, event: str, handler: EventHandler) -> EventBus:
        """Register ``handler`` for the next ``event`` only."""
        self._handlers.setdefault(event, []).append((handler, True))
        return self

    def off(self, event: str, handler: EventHandler) -> bool:
        """Remove the first registration of ``handler`` for ``event``."""
        bindings = self._handlers.get(event, [])
        for binding in bindings:
            if binding[0] == handler:
                bindings.remove(binding)
                return True
        return False

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every handler registered for ``event`` with ``args``.

        Returns:
            True if at least one handler was registered.
        """
        bindings = list(self._handlers.get(event, []))
        if not bindings:
            if event == "error":
                self._report_unhandled(*args)
            return False

        for handler, once in bindings:
            if once:
                with contextlib.suppress(ValueError):
                    self._handlers[event].remove((handler, True))
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    self._schedule(event, result)
            except Exception:
                logger.exception("Handler %r for event '%s' failed", handler, event)
        return True

    def emit_error(self, error: BaseException, response: Response | None = None) -> bool:
        """Emit a standard ``"error"`` event."""
        return self.emit("error", error, response)

    def clear(self) -> None:
        self._handlers.clear()

    def _schedule(self, event: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._guard(event, awaitable))
            return
        task = loop.create_task(self._guard(event, awaitable))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _guard(self, event: str, awaitable: Any) -> None:
        try:
            await awaitable
        except Exception:
            logger.exception("Async handler for event '%s' failed", event)

    def _report_unhandled(self, *args: Any) -> None:
        error = args[0] if args else None
        if isinstance(error, BaseException):
            logger.error(
                "Unhandled error event: %s",
                error,
                exc_info=(type(error), error, error.__traceback__),
            )
        else:
            logger.error("Unhandled error event: %r", args)
