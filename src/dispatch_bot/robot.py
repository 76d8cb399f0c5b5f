"""Robot: receives messages from an adapter and dispatches them to listeners.

The robot owns the ordered listener list and the three middleware stacks
(receive, listener, response). Scripts populate them during setup; once
dispatch starts they are only read.

Dispatch of one message:

1. run the receive middleware over a fresh response;
2. offer the message to every listener in registration order, stopping as
   soon as a listener marks the message done;
3. if nothing handled it (and it is not already a catch-all), dispatch a
   :class:`CatchAllMessage` wrapping it.
"""

from __future__ import annotations

import asyncio
import inspect
import re
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

import httpx

from .adapters import Adapter, create_adapter
from .core.brain import Brain
from .core.config import RobotConfig
from .core.event_bus import EventBus, EventHandler
from .core.exceptions import ListenerError
from .core.listener import Listener, ListenerCallback, Matcher, regex_matcher
from .core.logger import get_logger
from .core.message import (
    CatchAllMessage,
    EnterMessage,
    Envelope,
    LeaveMessage,
    Message,
    TopicMessage,
)
from .core.middleware import Middleware, MiddlewareContext, MiddlewareFunc
from .core.response import Response, ResponseContext

logger = get_logger("robot")

DOCUMENTATION_SECTIONS = (
    "description",
    "dependencies",
    "configuration",
    "commands",
    "notes",
    "author",
    "authors",
    "examples",
    "tags",
    "urls",
)

RobotModule = Callable[["Robot"], Any]
AdapterFactory = Callable[["Robot"], Adapter]
Options = dict[str, Any]

_INLINE_FLAGS = re.compile(r"^(?:\(\?[aiLmsux]+\))+")


@dataclass
class RobotMiddleware:
    """The three middleware stacks used by the robot."""

    receive: Middleware[MiddlewareContext] = field(
        default_factory=lambda: Middleware("receive")
    )
    listener: Middleware[MiddlewareContext] = field(
        default_factory=lambda: Middleware("listener")
    )
    response: Middleware[ResponseContext] = field(
        default_factory=lambda: Middleware("response")
    )


def parse_help(doc: str | None) -> dict[str, list[str]]:
    """Split a script docstring into documentation sections.

    Section headers are the names in ``DOCUMENTATION_SECTIONS`` (any case,
    optional trailing colon). Lines reading ``none`` are ignored.

    Example:
        ```python
        parse_help('''
        Description:
            Says hello
        Commands:
            dispatchbot hello - greet the robot
        ''')
        # {"description": ["Says hello"], "commands": ["dispatchbot hello - greet the robot"]}
        ```
    """
    sections: dict[str, list[str]] = {}
    current: str | None = None
    for raw in (doc or "").splitlines():
        line = raw.strip()
        if not line or line.lower() == "none":
            continue
        header = line.lower().replace(":", "")
        if header in DOCUMENTATION_SECTIONS:
            current = header
            sections[current] = []
        elif current is not None:
            sections[current].append(line)
    return sections


class Robot:
    """Receives messages from a chat source and dispatches them to listeners.

    Args:
        config: Robot configuration. Defaults to ``RobotConfig()``.
        adapter: An adapter instance, or a factory called with the robot.
            When omitted the adapter named by ``config.adapter`` is built.
        event_bus: Bus used for ``error``/``running``/``connected`` events.
        brain: Key/value store; one is created on the event bus if omitted.

    Example:
        ```python
        robot = Robot(RobotConfig(name="dispatchbot"))

        @robot.respond(r"ping$")
        async def ping(res: Response) -> None:
            await res.reply("PONG")

        await robot.run()
        ```
    """

    def __init__(
        self,
        config: RobotConfig | None = None,
        *,
        adapter: Adapter | AdapterFactory | None = None,
        event_bus: EventBus | None = None,
        brain: Brain | None = None,
    ) -> None:
        self.config = config or RobotConfig()
        self.name = self.config.name
        self.alias = self.config.alias
        self.middleware = RobotMiddleware()
        self.events = event_bus or EventBus()
        self.brain = brain or Brain(self.events, self.config.brain)
        self._listeners: list[Listener] = []
        self._commands: list[str] = []

        if adapter is None:
            self.adapter = create_adapter(self.config.adapter, self)
        elif isinstance(adapter, Adapter):
            self.adapter = adapter
        else:
            self.adapter = adapter(self)
        self.adapter_name = getattr(self.adapter, "name", type(self.adapter).__name__)

        self.on("running", self._start_autosave)

    @property
    def listeners(self) -> tuple[Listener, ...]:
        return tuple(self._listeners)

    # ------------------------------------------------------------------
    # Listener registration
    # ------------------------------------------------------------------

    def listen(
        self,
        matcher: Matcher,
        options: Options | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
    ) -> Any:
        """Add a listener with a custom matcher.

        Args:
            matcher: Returns a truthy value when the callback should run.
            options: Extra listener parameters (optional; the callback may
                be passed in its place).
            callback: Called with a :class:`Response` on match. When
                omitted, a decorator is returned.

        Returns:
            The new :class:`Listener`, or a decorator registering one.
        """
        return self._add_listener(matcher, options, callback)

    def hear(
        self,
        regex: str | re.Pattern[str],
        options: Options | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
    ) -> Any:
        """Add a listener triggered by text messages matching ``regex`` anywhere."""
        pattern = re.compile(regex) if isinstance(regex, str) else regex
        return self._add_listener(regex_matcher(pattern), options, callback, regex=pattern)

    def respond(
        self,
        regex: str | re.Pattern[str],
        options: Options | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
    ) -> Any:
        """Add a listener for messages addressed to the robot.

        The pattern is anchored after the robot's name or alias, so it is
        matched as if it began with ``^``.
        """
        return self.hear(self.respond_pattern(regex), options, callback)

    def enter(
        self,
        options: Options | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
    ) -> Any:
        """Add a listener triggered when anyone enters the room."""
        return self._add_listener(lambda msg: isinstance(msg, EnterMessage), options, callback)

    def leave(
        self,
        options: Options | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
    ) -> Any:
        """Add a listener triggered when anyone leaves the room."""
        return self._add_listener(lambda msg: isinstance(msg, LeaveMessage), options, callback)

    def topic(
        self,
        options: Options | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
    ) -> Any:
        """Add a listener triggered when anyone changes the topic."""
        return self._add_listener(lambda msg: isinstance(msg, TopicMessage), options, callback)

    def catch_all(
        self,
        options: Options | ListenerCallback | None = None,
        callback: ListenerCallback | None = None,
    ) -> Any:
        """Add a listener triggered when no other listener handled a message.

        The callback's ``response.message`` is the original message, not the
        catch-all wrapper.
        """
        if callback is None and callable(options):
            callback, options = options, None
        if callback is None:

            def decorator(fn: ListenerCallback) -> ListenerCallback:
                self.catch_all(options, fn)
                return fn

            return decorator

        if not callable(callback):
            raise ListenerError("Missing a callback for Listener")
        target = callback

        async def unwrap(response: Response) -> None:
            if isinstance(response.message, CatchAllMessage):
                response.message = response.message.message
                response.envelope = response.message.to_envelope()
            result = target(response)
            if inspect.isawaitable(result):
                await result

        return self._add_listener(
            lambda msg: isinstance(msg, CatchAllMessage), options, unwrap
        )

    def error(self, callback: EventHandler) -> EventHandler:
        """Register a handler for ``error`` events; usable as a decorator."""
        self.on("error", callback)
        return callback

    def _add_listener(
        self,
        matcher: Matcher,
        options: Options | ListenerCallback | None,
        callback: ListenerCallback | None,
        regex: re.Pattern[str] | None = None,
    ) -> Any:
        if not matcher:
            raise ListenerError("Missing a matcher for Listener")
        if callback is None and callable(options):
            callback, options = options, None
        if callback is None:

            def decorator(fn: ListenerCallback) -> ListenerCallback:
                self._add_listener(matcher, options, fn, regex=regex)
                return fn

            return decorator

        listener = Listener(
            matcher,
            options,
            callback,
            event_bus=self.events,
            response_factory=self.build_response,
            regex=regex,
        )
        self._listeners.append(listener)
        return listener

    def respond_pattern(self, regex: str | re.Pattern[str]) -> re.Pattern[str]:
        """Build a pattern matching ``regex`` only when addressed to the robot."""
        pattern = re.compile(regex) if isinstance(regex, str) else regex
        # inline global flags are carried by pattern.flags
        source = _INLINE_FLAGS.sub("", pattern.pattern)

        if source.startswith("^"):
            logger.warning("Anchors don't work well with respond, perhaps you want to use 'hear'")
            logger.warning("The regex in question was %r", source)

        name = re.escape(self.name)
        if self.alias:
            alias = re.escape(self.alias)
            first, second = (name, alias) if len(name) > len(alias) else (alias, name)
            addressed = rf"^\s*[@]?(?:{first}[:,]?|{second}[:,]?)\s*(?:{source})"
        else:
            addressed = rf"^\s*[@]?{name}[:,]?\s*(?:{source})"
        return re.compile(addressed, pattern.flags)

    # ------------------------------------------------------------------
    # Middleware registration
    # ------------------------------------------------------------------

    def listener_middleware(self, middleware: MiddlewareFunc) -> MiddlewareFunc:
        """Register middleware run after matching, before listener callbacks."""
        self.middleware.listener.register(middleware)
        return middleware

    def response_middleware(self, middleware: MiddlewareFunc) -> MiddlewareFunc:
        """Register middleware run for every outgoing response."""
        self.middleware.response.register(middleware)
        return middleware

    def receive_middleware(self, middleware: MiddlewareFunc) -> MiddlewareFunc:
        """Register middleware run before any listener is matched."""
        self.middleware.receive.register(middleware)
        return middleware

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def build_response(self, message: Message, match: Any = None) -> Response:
        return Response(message, match, robot=self)

    async def receive(self, message: Message) -> None:
        """Pass ``message`` to interested listeners after the receive middleware.

        Listeners can mark the message done to stop further dispatch.
        """
        response = self.build_response(message)
        context = MiddlewareContext(response=response)
        try:
            outcome = await self.middleware.receive.run(context)
        except Exception as exc:
            self.emit("error", exc, response)
            raise

        if not outcome.completed:
            logger.debug("Receive middleware stopped dispatch of %r", message)
            return

        try:
            await self._process_listeners(context)
        finally:
            await outcome.finalize()

    async def _process_listeners(self, context: MiddlewareContext) -> None:
        message = context.response.message
        handled = False

        for listener in list(self._listeners):
            try:
                matched = await listener.call(message, self.middleware.listener)
            except Exception as exc:
                # already reported on the event bus by the listener
                logger.debug("Listener %s failed with %r; continuing", listener.id, exc)
                matched = True
            handled = handled or matched
            if message.done:
                break

        if not isinstance(message, CatchAllMessage) and not handled:
            logger.debug("No listeners executed; falling back to catch-all")
            await self.receive(CatchAllMessage(message))

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    def load_modules(self, *modules: RobotModule) -> None:
        """Invoke each script callable against the robot, in order.

        Help commands are collected from each callable's docstring, falling
        back to the docstring of the module defining it.
        """
        for module in modules:
            logger.debug("Loading script %s", getattr(module, "__qualname__", module))
            module(self)
            self._commands.extend(parse_help(self._script_doc(module)).get("commands", []))

    def help_commands(self) -> list[str]:
        return sorted(self._commands)

    @staticmethod
    def _script_doc(module: RobotModule) -> str | None:
        doc = inspect.getdoc(module)
        if doc:
            return doc
        defining = sys.modules.get(getattr(module, "__module__", "") or "")
        return getattr(defining, "__doc__", None)

    # ------------------------------------------------------------------
    # Outgoing helpers
    # ------------------------------------------------------------------

    async def send(self, envelope: Envelope, *strings: str) -> None:
        await self._call_adapter("send", envelope, *strings)

    async def reply(self, envelope: Envelope, *strings: str) -> None:
        await self._call_adapter("reply", envelope, *strings)

    async def message_room(self, room: str, *strings: str) -> None:
        """Send strings to a room the robot is in."""
        await self._call_adapter("send", Envelope(room=room), *strings)

    async def _call_adapter(self, method: str, envelope: Envelope, *strings: str) -> None:
        result = getattr(self.adapter, method)(envelope, *strings)
        if inspect.isawaitable(result):
            await result

    def http(self, url: str, **options: Any) -> httpx.AsyncClient:
        """Create an HTTP client scoped to ``url`` with the configured defaults."""
        defaults = self.config.http
        headers = {**defaults.headers, **options.pop("headers", {})}
        timeout = options.pop("timeout", defaults.timeout)
        return httpx.AsyncClient(base_url=url, headers=headers, timeout=timeout, **options)

    # ------------------------------------------------------------------
    # Lifecycle and events
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Emit ``running`` and drive the adapter's event loop."""
        logger.info("Starting %s with adapter %s", self.name, self.adapter_name)
        self.emit("running")
        await self.adapter.run()

    def shutdown(self) -> None:
        """Close the adapter and the brain."""
        logger.info("Shutting down %s", self.name)
        self.adapter.close()
        self.brain.close()

    def on(self, event: str, handler: EventHandler) -> Robot:
        self.events.on(event, handler)
        return self

    def emit(self, event: str, *args: Any) -> None:
        self.events.emit(event, *args)

    def _start_autosave(self) -> None:
        if self.config.brain.auto_save:
            self.brain.reset_save_interval(self.config.brain.save_interval)

    def __repr__(self) -> str:
        return f"<Robot name={self.name!r} adapter={self.adapter_name!r}>"


def install_error_boundary(
    robot: Robot, loop: asyncio.AbstractEventLoop | None = None
) -> Callable[[], None]:
    """Forward uncaught exceptions to the robot's ``error`` event.

    Wraps ``sys.excepthook`` and, when ``loop`` is given, installs a loop
    exception handler. KeyboardInterrupt and SystemExit keep their default
    handling.

    Returns:
        A callable restoring the previous hooks.
    """
    previous_hook = sys.excepthook

    def excepthook(
        exc_type: type[BaseException], exc: BaseException, tb: TracebackType | None
    ) -> None:
        if issubclass(exc_type, (KeyboardInterrupt, SystemExit)):
            previous_hook(exc_type, exc, tb)
            return
        robot.emit("error", exc, None)

    sys.excepthook = excepthook

    previous_handler = loop.get_exception_handler() if loop is not None else None

    def loop_handler(event_loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        if isinstance(exc, Exception):
            robot.emit("error", exc, None)
        else:
            event_loop.default_exception_handler(context)

    if loop is not None:
        loop.set_exception_handler(loop_handler)

    def uninstall() -> None:
        sys.excepthook = previous_hook
        if loop is not None:
            loop.set_exception_handler(previous_handler)

    return uninstall
