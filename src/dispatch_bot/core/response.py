"""Responses are handed to matching listeners.

A response knows the message (and therefore the user and room) it answers,
and how to send replies back through the robot's adapter. Every send-family
operation runs the response middleware stack first, so middleware can
rewrite or suppress outgoing text.
"""

from __future__ import annotations

import inspect
import random as _random
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from .exceptions import AdapterError
from .logger import get_logger
from .message import Envelope, Message
from .middleware import Middleware, MiddlewareContext

if TYPE_CHECKING:
    from ..robot import Robot

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class ResponseContext(MiddlewareContext):
    """Context passed through the response middleware stack.

    Attributes:
        strings: Outgoing strings, in order. Middleware may replace them.
        method: Adapter method that will deliver the strings.
        plaintext: Whether the strings are plain text.
    """

    strings: list[str] = field(default_factory=list)
    method: str = "send"
    plaintext: bool = True


class Response:
    """Reply handle bound to one inbound message.

    Args:
        message: The message being answered.
        match: The matcher's result, usually a ``re.Match``.
        robot: Robot providing the response middleware, the adapter and
            HTTP defaults. Without one, sends fail with AdapterError.

    Raises:
        ValueError: If ``message`` is None.

    Example:
        ```python
        @robot.hear(r"^echo (.+)$")
        async def echo(res: Response) -> None:
            await res.send(res.match.group(1))
        ```
    """

    def __init__(self, message: Message, match: Any = None, *, robot: Robot | None = None):
        if message is None:
            raise ValueError("Message parameter cannot be None.")
        self.message = message
        self.match = match
        self.envelope: Envelope = message.to_envelope()
        self._robot = robot

    async def send(self, *strings: str) -> None:
        """Post strings back to the chat source, in order."""
        await self._run_with_middleware("send", *strings)

    async def emote(self, *strings: str) -> None:
        """Post an emote back to the chat source."""
        await self._run_with_middleware("emote", *strings)

    async def reply(self, *strings: str) -> None:
        """Post strings mentioning the user that sent the message."""
        await self._run_with_middleware("reply", *strings)

    async def topic(self, *strings: str) -> None:
        """Set the topic of the room the message came from."""
        await self._run_with_middleware("topic", *strings)

    async def play(self, *strings: str) -> None:
        """Play sounds in the chat source."""
        await self._run_with_middleware("play", *strings)

    async def locked(self, *strings: str) -> None:
        """Post strings in an unlogged room."""
        await self._run_with_middleware("locked", *strings)

    def random(self, items: Sequence[T]) -> T:
        """Pick a uniformly random item from ``items``."""
        return _random.choice(items)

    def finish(self) -> None:
        """Tell the message to stop dispatching to further listeners."""
        self.message.finish()

    def http(self, url: str, **options: Any) -> httpx.AsyncClient:
        """Create an HTTP client scoped to ``url``.

        No request is made; use the returned client's ``get``/``post``
        methods (preferably inside ``async with``).
        """
        if self._robot is not None:
            return self._robot.http(url, **options)
        return httpx.AsyncClient(base_url=url, **options)

    async def _run_with_middleware(
        self, method: str, *strings: str, plaintext: bool = True
    ) -> None:
        context = ResponseContext(
            response=self,
            strings=list(strings),
            method=method,
            plaintext=plaintext,
        )
        stack: Middleware[ResponseContext]
        if self._robot is not None:
            stack = self._robot.middleware.response
        else:
            stack = Middleware("response")
        await stack.execute(context, complete=self._deliver)

    async def _deliver(self, context: ResponseContext) -> None:
        adapter = self._robot.adapter if self._robot is not None else None
        if adapter is None:
            raise AdapterError("No adapter available to deliver the response")

        deliver = getattr(adapter, context.method, None)
        if not callable(deliver):
            raise AdapterError(
                f"Adapter {type(adapter).__name__} has no '{context.method}' method",
                adapter=type(adapter).__name__,
            )
        logger.debug("Delivering %d string(s) via %s", len(context.strings), context.method)
        result = deliver(self.envelope, *context.strings)
        if inspect.isawaitable(result):
            await result

    def __repr__(self) -> str:
        return f"<Response message={self.message!r}>"
