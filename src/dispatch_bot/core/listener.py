"""Listeners pair a matcher with a callback.

Every inbound message is offered to each listener in registration order.
A listener whose matcher returns a truthy value builds a :class:`Response`,
runs the listener middleware stack and finally invokes its callback.
"""

from __future__ import annotations

import inspect
import re
from collections.abc import Callable
from typing import Any

from .event_bus import EventBus
from .exceptions import ListenerError
from .logger import get_logger
from .message import Message, TextMessage
from .middleware import Middleware, MiddlewareContext
from .response import Response

logger = get_logger(__name__)

Matcher = Callable[[Message], Any]
ListenerCallback = Callable[[Response], Any]
ResponseFactory = Callable[[Message, Any], Response]


def regex_matcher(regex: str | re.Pattern[str]) -> Matcher:
    """Build a matcher that searches text messages for ``regex``."""
    pattern = re.compile(regex) if isinstance(regex, str) else regex

    def matcher(message: Message) -> re.Match[str] | None:
        if isinstance(message, TextMessage):
            return message.match(pattern)
        return None

    return matcher


class Listener:
    """A matcher + callback pair.

    Args:
        matcher: Called with each message; a truthy result means the
            listener wants the message and is passed on as ``response.match``.
        options: Extra metadata keyed on extension name. ``id`` identifies
            the listener and defaults to None. May be omitted, in which case
            the callback can be given as the second positional argument.
        callback: Called with a :class:`Response` when the matcher matches.
            Sync or async.
        event_bus: Bus that receives ``"error"`` events when the callback or
            middleware fails.
        response_factory: Builds the response for a matched message.
        regex: The pattern behind ``matcher``, when there is one.

    Raises:
        ListenerError: If the matcher is missing or the callback is not
            callable.
    """

    def __init__(
        self,
        matcher: Matcher | None,
        options: dict[str, Any] | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
        *,
        event_bus: EventBus | None = None,
        response_factory: ResponseFactory | None = None,
        regex: re.Pattern[str] | None = None,
    ) -> None:
        if not matcher:
            raise ListenerError("Missing a matcher for Listener")

        if callback is None and callable(options):
            callback, options = options, None

        if callback is None or not callable(callback):
            raise ListenerError("Missing a callback for Listener")

        self.matcher = matcher
        self.callback = callback
        self.options: dict[str, Any] = dict(options or {})
        if not self.options.get("id"):
            self.options["id"] = None
        self.regex = regex
        self._event_bus = event_bus
        self._response_factory = response_factory or Response

    @property
    def id(self) -> str | None:
        return self.options["id"]

    async def call(
        self,
        message: Message,
        middleware: Middleware[MiddlewareContext] | None = None,
    ) -> bool:
        """Offer ``message`` to this listener.

        If the matcher likes the message, a response is built and passed
        through ``middleware`` before the callback runs. Middleware can
        intercept the message and keep the callback from ever executing.

        Args:
            message: The inbound message.
            middleware: Listener middleware stack; a pass-through when None.

        Returns:
            True if the matcher matched, False otherwise.

        Raises:
            Exception: Whatever the middleware or callback raised, after it
                has been emitted on the event bus as ``(error, response)``.
        """
        try:
            match = self.matcher(message)
        except Exception as exc:
            self._report(exc, None)
            raise
        if not match:
            return False

        if self.regex is not None:
            logger.debug(
                "Message %r matched regex %r; listener options = %r",
                message,
                self.regex.pattern,
                self.options,
            )

        stack = middleware if middleware is not None else Middleware("listener")
        context = MiddlewareContext(response=self._response_factory(message, match), listener=self)
        try:
            await stack.execute(context, complete=self._invoke_callback)
        except Exception as exc:
            self._report(exc, context.response)
            raise
        return True

    async def _invoke_callback(self, context: MiddlewareContext) -> None:
        logger.debug("Executing listener callback for message %r", context.response.message)
        result = self.callback(context.response)
        if inspect.isawaitable(result):
            await result

    def _report(self, error: Exception, response: Response | None) -> None:
        if self._event_bus is not None:
            self._event_bus.emit_error(error, response)
        else:
            logger.error(
                "Listener %s failed: %s",
                self.id,
                error,
                exc_info=(type(error), error, error.__traceback__),
            )

    def __repr__(self) -> str:
        pattern = self.regex.pattern if self.regex is not None else None
        return f"<Listener id={self.id!r} regex={pattern!r}>"
