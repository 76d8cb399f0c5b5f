"""Tests for the brain key/value store."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import pytest

from dispatch_bot.core.brain import Brain
from dispatch_bot.core.config import BrainConfig
from dispatch_bot.core.event_bus import EventBus
from dispatch_bot.core.user import User


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def brain(bus: EventBus) -> Brain:
    return Brain(bus, BrainConfig(auto_save=False))


class TestStorage:
    """Tests for get/set/remove."""

    def test_set_and_get(self, brain) -> None:
        """Test stored values are returned."""
        brain.set("counter", 3)

        assert brain.get("counter") == 3
        assert brain.get("missing") is None
        assert brain.get("missing", "fallback") == "fallback"

    def test_set_mapping(self, brain) -> None:
        """Test a mapping stores every pair."""
        brain.set({"a": 1, "b": 2})

        assert brain.get("a") == 1
        assert brain.get("b") == 2

    def test_remove(self, brain) -> None:
        """Test remove() deletes a key and tolerates missing keys."""
        brain.set("a", 1).remove("a").remove("never-set")

        assert brain.get("a") is None

    def test_set_emits_loaded(self, brain, bus) -> None:
        """Test set() emits brain.loaded with the data."""
        handler = MagicMock()
        bus.on("brain.loaded", handler)

        brain.set("k", "v")

        handler.assert_called_once()
        assert handler.call_args.args[0]["_private"] == {"k": "v"}

    def test_merge_data(self, brain) -> None:
        """Test saved data is merged back, users included."""
        brain.merge_data(
            {
                "users": {"5": {"id": "5", "name": "Eve", "room": "ops"}},
                "_private": {"answer": 42},
            }
        )

        assert brain.get("answer") == 42
        assert brain.users()["5"].name == "Eve"
        assert brain.users()["5"].room == "ops"


class TestUsers:
    """Tests for the user registry."""

    def test_user_for_id_creates_and_reuses(self, brain) -> None:
        """Test the same id returns the same user."""
        first = brain.user_for_id("1", name="Alice", room="general")
        second = brain.user_for_id("1", name="Alice", room="general")

        assert first is second
        assert isinstance(first, User)

    def test_user_for_id_replaces_on_room_change(self, brain) -> None:
        """Test a different room yields a fresh user."""
        first = brain.user_for_id("1", name="Alice", room="general")
        moved = brain.user_for_id("1", name="Alice", room="random")

        assert moved is not first
        assert moved.room == "random"
        assert brain.users()["1"] is moved

    def test_user_for_name_case_insensitive(self, brain) -> None:
        """Test lookup by name ignores case."""
        alice = brain.user_for_id("1", name="Alice")

        assert brain.user_for_name("alice") is alice
        assert brain.user_for_name("bob") is None


class TestPersistenceEvents:
    """Tests for save/close events and autosave."""

    def test_save_emits_data(self, brain, bus) -> None:
        """Test save() emits brain.save."""
        handler = MagicMock()
        bus.on("brain.save", handler)

        brain.save()

        handler.assert_called_once_with(brain.data)

    def test_close_saves_and_emits_close(self, brain, bus) -> None:
        """Test close() saves once more then emits brain.close."""
        events: list[str] = []
        bus.on("brain.save", lambda data: events.append("save"))
        bus.on("brain.close", lambda: events.append("close"))

        brain.close()

        assert events == ["save", "close"]

    @pytest.mark.anyio
    async def test_autosave_interval(self, bus) -> None:
        """Test the autosave task emits brain.save periodically."""
        brain = Brain(bus, BrainConfig(auto_save=True))
        saves = MagicMock()
        bus.on("brain.save", saves)

        brain.reset_save_interval(0.01)
        await asyncio.sleep(0.05)
        brain.close()

        assert saves.call_count >= 2

    @pytest.mark.anyio
    async def test_autosave_disabled_skips_ticks(self, bus) -> None:
        """Test ticks do nothing while autosave is off."""
        brain = Brain(bus, BrainConfig(auto_save=True))
        saves = MagicMock()
        bus.on("brain.save", saves)

        brain.set_auto_save(False)
        brain.reset_save_interval(0.01)
        await asyncio.sleep(0.05)
        brain.close()

        # only the final save from close()
        saves.assert_called_once()
