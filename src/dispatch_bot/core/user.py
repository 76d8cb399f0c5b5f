"""Chat participant representation."""

from __future__ import annotations

from typing import Any


class User:
    """A participating user in the chat.

    Any extra keyword options are set as attributes on the user, so adapters
    can attach whatever their network exposes (``room``, ``email_address``,
    ...). ``name`` falls back to the stringified ``id``.

    Example:
        ```python
        user = User("42", name="Alice", room="general")
        user.room  # "general"
        User(7).name  # "7"
        ```
    """

    def __init__(self, id: Any, **options: Any) -> None:
        self.id = id
        self.room: str | None = None
        for key, value in options.items():
            setattr(self, key, value)
        if not getattr(self, "name", None):
            self.name = str(id)

    def to_dict(self) -> dict[str, Any]:
        """Return every attribute of the user as a plain dictionary."""
        return dict(vars(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<User id={self.id!r} name={self.name!r} room={self.room!r}>"
