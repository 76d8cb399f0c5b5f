"""Inbound chat events.

This module provides the message model the dispatcher works on:

- Message: base event tied to a user and a room, with a cooperative
  ``done`` flag listeners use to stop further dispatch
- TextMessage / TopicMessage: events carrying text that regexes match against
- EnterMessage / LeaveMessage: presence notifications
- CatchAllMessage: wrapper dispatched when nothing handled the original
- Envelope: the addressing information adapters need to route a reply
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from .user import User


@dataclass
class Envelope:
    """Addressing info for an outgoing reply.

    Attributes:
        room: Room the reply goes to.
        user: User the reply is addressed to (None for room broadcasts).
        message: The inbound message being answered, if any.
    """

    room: str | None = None
    user: User | None = None
    message: Message | None = None


class Message:
    """An inbound event from the chat.

    Attributes:
        user: The user that produced the event.
        room: Room the event came from, copied from the user.
        done: Whether dispatch for this message is finished. Once set it
            stays set.
    """

    def __init__(self, user: User, done: bool = False) -> None:
        self.user = user
        self.room: str | None = getattr(user, "room", None)
        self._done = bool(done)

    @property
    def done(self) -> bool:
        return self._done

    @done.setter
    def done(self, value: bool) -> None:
        # finished messages stay finished
        self._done = self._done or bool(value)

    def finish(self) -> None:
        """Indicate that no other listener should be called for this message."""
        self._done = True

    def to_envelope(self) -> Envelope:
        """Build the envelope used to reply to this message."""
        return Envelope(room=self.room, user=self.user, message=self)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} user={self.user.id!r} room={self.room!r}>"


class TextMessage(Message):
    """A message carrying text."""

    def __init__(self, user: User, text: str, id: Any = None) -> None:
        super().__init__(user)
        self.text = text
        self.id = id

    def match(self, pattern: str | re.Pattern[str]) -> re.Match[str] | None:
        """Search the text for ``pattern``.

        Args:
            pattern: A regex source string or compiled pattern.

        Returns:
            The match object (with capture groups) or None.
        """
        if isinstance(pattern, re.Pattern):
            return pattern.search(self.text)
        return re.search(pattern, self.text)

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r} text={self.text!r}>"


class EnterMessage(Message):
    """A user entered the room."""


class LeaveMessage(Message):
    """A user left the room."""


class TopicMessage(TextMessage):
    """The room topic changed; ``text`` holds the new topic."""


class CatchAllMessage(Message):
    """A message that no listener handled.

    Attributes:
        message: The original, unhandled message.
    """

    def __init__(self, message: Message) -> None:
        super().__init__(message.user)
        self.message = message

    def __repr__(self) -> str:
        return f"<CatchAllMessage wrapping {self.message!r}>"
