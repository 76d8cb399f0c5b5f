"""Tests for listeners."""

from __future__ import annotations

import re
from unittest.mock import MagicMock

import pytest

from dispatch_bot.core.event_bus import EventBus
from dispatch_bot.core.exceptions import ListenerError
from dispatch_bot.core.listener import Listener, regex_matcher
from dispatch_bot.core.message import EnterMessage, TextMessage
from dispatch_bot.core.middleware import Middleware, MiddlewareContext
from dispatch_bot.core.response import Response
from dispatch_bot.core.user import User


@pytest.fixture
def message() -> TextMessage:
    return TextMessage(User("1", name="Alice", room="general"), "hello robot", "id-1")


class TestConstruction:
    """Tests for Listener construction."""

    def test_missing_matcher_raises(self) -> None:
        """Test a listener needs a matcher."""
        with pytest.raises(ListenerError, match="matcher"):
            Listener(None, {}, lambda response: None)

    def test_non_callable_callback_raises(self) -> None:
        """Test a listener needs a callable callback."""
        with pytest.raises(ListenerError, match="callback"):
            Listener(lambda message: True, {}, "nope")  # type: ignore[arg-type]

    def test_missing_callback_raises(self) -> None:
        """Test a listener without any callback is rejected."""
        with pytest.raises(ValueError):
            Listener(lambda message: True, {"id": "x"})

    def test_options_may_be_omitted(self) -> None:
        """Test the callback can be passed in place of options."""
        callback = MagicMock()
        listener = Listener(lambda message: True, callback)

        assert listener.callback is callback
        assert listener.options == {"id": None}
        assert listener.id is None

    def test_options_are_kept(self) -> None:
        """Test extra option keys survive alongside the id."""
        listener = Listener(lambda message: True, {"id": "greet", "rate": 3}, MagicMock())

        assert listener.id == "greet"
        assert listener.options["rate"] == 3


class TestCall:
    """Tests for Listener.call."""

    @pytest.mark.anyio
    async def test_no_match_returns_false(self, message) -> None:
        """Test a falsy matcher result skips the callback."""
        callback = MagicMock()
        listener = Listener(lambda msg: False, callback)

        assert await listener.call(message) is False
        callback.assert_not_called()

    @pytest.mark.anyio
    async def test_match_runs_callback_with_response(self, message) -> None:
        """Test the callback receives a response holding the match."""
        received: list[Response] = []
        listener = Listener(regex_matcher(r"hello (\w+)"), received.append)

        assert await listener.call(message) is True

        assert len(received) == 1
        response = received[0]
        assert response.message is message
        assert isinstance(response.match, re.Match)
        assert response.match.group(1) == "robot"

    @pytest.mark.anyio
    async def test_async_callback_is_awaited(self, message) -> None:
        """Test coroutine callbacks complete before call() returns."""
        seen: list[str] = []

        async def callback(response: Response) -> None:
            seen.append(str(response.message))

        listener = Listener(lambda msg: True, callback)
        await listener.call(message)

        assert seen == ["hello robot"]

    @pytest.mark.anyio
    async def test_matcher_result_passed_as_match(self, message) -> None:
        """Test arbitrary truthy matcher results become response.match."""
        received: list[Response] = []
        listener = Listener(lambda msg: {"score": 9}, received.append)

        await listener.call(message)

        assert received[0].match == {"score": 9}

    @pytest.mark.anyio
    async def test_regex_matcher_ignores_non_text(self) -> None:
        """Test regex matchers never match presence messages."""
        callback = MagicMock()
        listener = Listener(regex_matcher(".*"), callback)

        assert await listener.call(EnterMessage(User("1"))) is False
        callback.assert_not_called()

    @pytest.mark.anyio
    async def test_middleware_sees_listener_and_response(self, message) -> None:
        """Test listener middleware receives the listener in its context."""
        contexts: list[MiddlewareContext] = []
        stack: Middleware[MiddlewareContext] = Middleware()

        def record(context, next, done):
            contexts.append(context)
            next()

        stack.register(record)
        listener = Listener(lambda msg: True, MagicMock())
        await listener.call(message, stack)

        assert contexts[0].listener is listener
        assert contexts[0].response.message is message

    @pytest.mark.anyio
    async def test_halting_middleware_skips_callback(self, message) -> None:
        """Test halting middleware keeps the callback from running but still matches."""
        callback = MagicMock()
        stack: Middleware[MiddlewareContext] = Middleware()
        stack.register(lambda context, next, done: done())

        listener = Listener(lambda msg: True, callback)

        assert await listener.call(message, stack) is True
        callback.assert_not_called()

    @pytest.mark.anyio
    async def test_callback_error_reported_and_raised(self, message) -> None:
        """Test callback errors are emitted with the response, then re-raised."""
        bus = EventBus()
        errors: list[tuple[Exception, Response | None]] = []
        bus.on("error", lambda error, response: errors.append((error, response)))

        def callback(response: Response) -> None:
            raise RuntimeError("callback failed")

        listener = Listener(lambda msg: True, callback, event_bus=bus)

        with pytest.raises(RuntimeError, match="callback failed"):
            await listener.call(message)

        assert len(errors) == 1
        error, response = errors[0]
        assert isinstance(error, RuntimeError)
        assert response is not None
        assert response.message is message

    @pytest.mark.anyio
    async def test_middleware_error_reported_once(self, message) -> None:
        """Test a middleware failure is reported exactly once."""
        bus = EventBus()
        handler = MagicMock()
        bus.on("error", handler)

        def boom(context, next, done):
            raise KeyError("mw")

        stack: Middleware[MiddlewareContext] = Middleware()
        stack.register(boom)
        callback = MagicMock()
        listener = Listener(lambda msg: True, callback, event_bus=bus)

        with pytest.raises(KeyError):
            await listener.call(message, stack)

        handler.assert_called_once()
        callback.assert_not_called()

    @pytest.mark.anyio
    async def test_response_factory_used(self, message) -> None:
        """Test the listener builds responses through its factory."""
        factory = MagicMock(side_effect=lambda msg, match: Response(msg, match))
        listener = Listener(lambda msg: "yes", MagicMock(), response_factory=factory)

        await listener.call(message)

        factory.assert_called_once_with(message, "yes")
