"""Base adapter abstraction for chat transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from ..core.logger import get_logger
from ..core.message import Envelope, Message

if TYPE_CHECKING:
    from ..robot import Robot


class Adapter(ABC):
    """Abstract base class for chat transports.

    An adapter delivers outgoing strings to the chat network and feeds
    inbound events to the robot through :meth:`receive`. The send-family
    method names match the :class:`~dispatch_bot.core.response.Response`
    operations that call them. Methods may be sync or async.
    """

    name = "adapter"

    def __init__(self, robot: Robot):
        self.robot = robot
        self.logger = get_logger(f"adapter.{self.name}")

    @abstractmethod
    def send(self, envelope: Envelope, *strings: str) -> Any:
        pass

    @abstractmethod
    def reply(self, envelope: Envelope, *strings: str) -> Any:
        pass

    def emote(self, envelope: Envelope, *strings: str) -> Any:
        return self.send(envelope, *strings)

    def topic(self, envelope: Envelope, *strings: str) -> Any:
        return self.send(envelope, *strings)

    def play(self, envelope: Envelope, *strings: str) -> Any:
        return self.send(envelope, *strings)

    def locked(self, envelope: Envelope, *strings: str) -> Any:
        return self.send(envelope, *strings)

    @abstractmethod
    async def run(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    async def receive(self, message: Message) -> None:
        """Dispatch an inbound message through the robot."""
        await self.robot.receive(message)

    def emit(self, event: str, *args: Any) -> None:
        self.robot.emit(event, *args)

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} robot={self.robot.name}>"
