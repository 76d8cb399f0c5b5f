"""Test configuration hooks."""

from __future__ import annotations

from typing import Any

import pytest

from dispatch_bot.adapters import Adapter
from dispatch_bot.core.config import BrainConfig, RobotConfig
from dispatch_bot.core.message import Envelope, TextMessage
from dispatch_bot.core.user import User
from dispatch_bot.robot import Robot


# Configure anyio to only use asyncio backend (skip trio tests)
@pytest.fixture(scope="session")
def anyio_backend():
    """Configure anyio to use only asyncio backend."""
    return "asyncio"


class RecordingAdapter(Adapter):
    """Adapter stub recording every outgoing call as (method, envelope, strings)."""

    name = "recording"

    def __init__(self, robot: Robot):
        super().__init__(robot)
        self.calls: list[tuple[str, Envelope, tuple[str, ...]]] = []
        self.closed = False
        self.ran = False

    def send(self, envelope: Envelope, *strings: str) -> None:
        self.calls.append(("send", envelope, strings))

    def reply(self, envelope: Envelope, *strings: str) -> None:
        self.calls.append(("reply", envelope, strings))

    async def emote(self, envelope: Envelope, *strings: str) -> None:
        self.calls.append(("emote", envelope, strings))

    def topic(self, envelope: Envelope, *strings: str) -> None:
        self.calls.append(("topic", envelope, strings))

    def play(self, envelope: Envelope, *strings: str) -> None:
        self.calls.append(("play", envelope, strings))

    def locked(self, envelope: Envelope, *strings: str) -> None:
        self.calls.append(("locked", envelope, strings))

    async def run(self) -> None:
        self.ran = True
        self.emit("connected")

    def close(self) -> None:
        self.closed = True

    def sent(self) -> list[tuple[str, tuple[str, ...]]]:
        return [(method, strings) for method, _, strings in self.calls]


@pytest.fixture
def adapter_class() -> type[RecordingAdapter]:
    return RecordingAdapter


@pytest.fixture
def robot() -> Robot:
    """Robot named ``dispatchbot`` (alias ``/``) with a recording adapter."""
    config = RobotConfig(
        name="dispatchbot",
        alias="/",
        brain=BrainConfig(auto_save=False),
    )
    return Robot(config, adapter=RecordingAdapter)


@pytest.fixture
def adapter(robot: Robot) -> RecordingAdapter:
    return robot.adapter  # type: ignore[return-value]


@pytest.fixture
def user() -> User:
    return User("1", name="Alice", room="general")


@pytest.fixture
def make_text(user: User) -> Any:
    """Factory building text messages from ``user``."""

    def factory(text: str) -> TextMessage:
        return TextMessage(user, text, "message-id")

    return factory
