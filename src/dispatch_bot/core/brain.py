"""In-memory key/value store and user registry.

The brain keeps no state on disk. Scripts that want persistence subscribe to
the ``brain.save`` / ``brain.close`` events and write the data somewhere.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

from .config import BrainConfig
from .event_bus import EventBus
from .logger import get_logger
from .user import User

logger = get_logger(__name__)


class Brain:
    """Somewhat persistent storage for the robot.

    Events emitted on the bus:
        - ``brain.loaded`` (data): after :meth:`set` or :meth:`merge_data`
        - ``brain.save`` (data): on :meth:`save` and every autosave tick
        - ``brain.close``: on :meth:`close`
    """

    def __init__(self, event_bus: EventBus, config: BrainConfig | None = None) -> None:
        self._event_bus = event_bus
        self.config = config or BrainConfig()
        self._users: dict[str, User] = {}
        self._private: dict[str, Any] = {}
        self._auto_save = self.config.auto_save
        self._save_task: asyncio.Task[None] | None = None

    @property
    def data(self) -> dict[str, Any]:
        return {"users": self._users, "_private": self._private}

    def set(self, key: str | Mapping[str, Any], value: Any = None) -> Brain:
        """Store a key/value pair, or every pair of a mapping."""
        pairs = dict(key) if isinstance(key, Mapping) else {key: value}
        self._private.update(pairs)
        self._event_bus.emit("brain.loaded", self.data)
        return self

    def get(self, key: str, default: Any = None) -> Any:
        return self._private.get(key, default)

    def remove(self, key: str) -> Brain:
        self._private.pop(key, None)
        return self

    def merge_data(self, data: Mapping[str, Any]) -> None:
        """Merge previously saved data (``users`` / ``_private``) into the brain."""
        for user_id, user in (data.get("users") or {}).items():
            if isinstance(user, User):
                self._users[str(user_id)] = user
            else:
                attributes = dict(user)
                attributes.pop("id", None)
                self._users[str(user_id)] = User(user_id, **attributes)
        self._private.update(data.get("_private") or {})
        self._event_bus.emit("brain.loaded", self.data)

    def users(self) -> dict[str, User]:
        return dict(self._users)

    def user_for_id(self, user_id: Any, **options: Any) -> User:
        """Get or create the user with ``user_id``.

        A new user replaces the stored one when ``options`` names a
        different room than the one on record.
        """
        key = str(user_id)
        user = self._users.get(key)
        if user is None:
            user = User(user_id, **options)
            self._users[key] = user

        room = options.get("room")
        if room and user.room != room:
            user = User(user_id, **options)
            self._users[key] = user
        return user

    def user_for_name(self, name: str) -> User | None:
        lowered = name.lower()
        for user in self._users.values():
            if str(user.name).lower() == lowered:
                return user
        return None

    def save(self) -> None:
        self._event_bus.emit("brain.save", self.data)

    def set_auto_save(self, enabled: bool) -> None:
        self._auto_save = enabled

    def reset_save_interval(self, seconds: float) -> None:
        """Restart the autosave loop with a new interval.

        Must be called while an event loop is running.
        """
        self._cancel_save_task()
        self._save_task = asyncio.get_running_loop().create_task(self._autosave(seconds))

    def close(self) -> None:
        """Stop autosaving, save one last time and emit ``brain.close``."""
        self._cancel_save_task()
        self.save()
        self._event_bus.emit("brain.close")

    async def _autosave(self, seconds: float) -> None:
        while True:
            await asyncio.sleep(seconds)
            if self._auto_save:
                logger.debug("Autosaving brain")
                self.save()

    def _cancel_save_task(self) -> None:
        if self._save_task is not None:
            self._save_task.cancel()
            self._save_task = None
