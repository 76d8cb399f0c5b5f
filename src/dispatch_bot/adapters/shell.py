"""Interactive console adapter."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from rich.console import Console

from ..core.message import Envelope, TextMessage
from .base import Adapter

if TYPE_CHECKING:
    from ..robot import Robot

EXIT_COMMANDS = {"exit", "quit"}


class ShellAdapter(Adapter):
    """Talk to the robot from a terminal.

    Every line typed is dispatched as a :class:`TextMessage` from the user
    with id ``"1"`` named ``Shell`` in room ``Shell``. End of input, ``exit``
    or ``quit`` shuts the robot down.
    """

    name = "shell"

    def __init__(self, robot: Robot, console: Console | None = None):
        super().__init__(robot)
        self.console = console or Console()
        self._running = False

    def send(self, envelope: Envelope, *strings: str) -> None:
        for text in strings:
            self.console.print(text, markup=False, highlight=False)

    def emote(self, envelope: Envelope, *strings: str) -> None:
        self.send(envelope, *(f"* {text}" for text in strings))

    def reply(self, envelope: Envelope, *strings: str) -> None:
        name = envelope.user.name if envelope.user is not None else ""
        self.send(envelope, *(f"{name}: {text}" for text in strings))

    async def run(self) -> None:
        self._running = True
        self.emit("connected")
        prompt = f"{self.robot.name}> "

        while self._running:
            try:
                line = await asyncio.to_thread(self.console.input, prompt)
            except (EOFError, KeyboardInterrupt):
                break
            if line.strip().lower() in EXIT_COMMANDS:
                break
            await self.receive_line(line)

        if self._running:
            self.robot.shutdown()

    async def receive_line(self, line: str) -> None:
        """Dispatch one line of input as a text message."""
        user = self.robot.brain.user_for_id("1", name="Shell", room="Shell")
        await self.receive(TextMessage(user, line, "messageId"))

    def close(self) -> None:
        self._running = False
