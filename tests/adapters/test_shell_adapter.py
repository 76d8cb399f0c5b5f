"""Tests for the shell adapter."""

from __future__ import annotations

import io
from unittest.mock import MagicMock

import pytest
from rich.console import Console

from dispatch_bot.adapters import BUILTIN_ADAPTERS, ShellAdapter, create_adapter
from dispatch_bot.core.config import BrainConfig, RobotConfig
from dispatch_bot.core.exceptions import AdapterError
from dispatch_bot.core.message import Envelope, TextMessage
from dispatch_bot.core.user import User
from dispatch_bot.robot import Robot


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def shell_robot(output: io.StringIO) -> Robot:
    console = Console(file=output, width=120, color_system=None)
    config = RobotConfig(name="shellbot", brain=BrainConfig(auto_save=False))
    return Robot(config, adapter=lambda robot: ShellAdapter(robot, console=console))


class TestShellOutput:
    """Tests for shell adapter formatting."""

    def test_send_prints_each_string(self, shell_robot, output) -> None:
        """Test send() prints one line per string."""
        shell_robot.adapter.send(Envelope(room="Shell"), "one", "two")

        assert output.getvalue().splitlines() == ["one", "two"]

    def test_emote_prefix(self, shell_robot, output) -> None:
        """Test emotes are prefixed with an asterisk."""
        shell_robot.adapter.emote(Envelope(room="Shell"), "waves")

        assert output.getvalue().strip() == "* waves"

    def test_reply_prefixes_user_name(self, shell_robot, output) -> None:
        """Test replies mention the user."""
        envelope = Envelope(room="Shell", user=User("1", name="Shell"))
        shell_robot.adapter.reply(envelope, "hi there")

        assert output.getvalue().strip() == "Shell: hi there"

    def test_markup_not_interpreted(self, shell_robot, output) -> None:
        """Test square brackets are printed literally."""
        shell_robot.adapter.send(Envelope(), "[bold]x[/bold]")

        assert output.getvalue().strip() == "[bold]x[/bold]"

    def test_topic_falls_back_to_send(self, shell_robot, output) -> None:
        """Test the base adapter routes topic through send."""
        shell_robot.adapter.topic(Envelope(), "new topic")

        assert output.getvalue().strip() == "new topic"


class TestShellInput:
    """Tests for reading lines from the console."""

    @pytest.mark.anyio
    async def test_receive_line_dispatches_text_message(self, shell_robot) -> None:
        """Test a typed line becomes a TextMessage from the shell user."""
        received: list[TextMessage] = []
        shell_robot.hear(r".*", lambda response: received.append(response.message))

        await shell_robot.adapter.receive_line("hello")

        message = received[0]
        assert isinstance(message, TextMessage)
        assert message.text == "hello"
        assert message.id == "messageId"
        assert message.user.id == "1"
        assert message.user.name == "Shell"
        assert message.room == "Shell"

    @pytest.mark.anyio
    async def test_run_reads_until_exit(self, shell_robot, output) -> None:
        """Test run() dispatches lines and shuts down on exit."""
        lines = iter(["shellbot ping", "exit"])
        shell_robot.adapter.console.input = MagicMock(side_effect=lambda prompt: next(lines))
        shell_robot.respond(r"ping", lambda response: response.send("PONG"))
        connected = MagicMock()
        shell_robot.on("connected", connected)
        closed = MagicMock()
        shell_robot.on("brain.close", closed)

        await shell_robot.adapter.run()

        connected.assert_called_once_with()
        closed.assert_called_once_with()
        assert "PONG" in output.getvalue()

    @pytest.mark.anyio
    async def test_run_stops_on_eof(self, shell_robot) -> None:
        """Test end of input shuts the robot down."""
        shell_robot.adapter.console.input = MagicMock(side_effect=EOFError)
        closed = MagicMock()
        shell_robot.on("brain.close", closed)

        await shell_robot.adapter.run()

        closed.assert_called_once_with()


class TestCreateAdapter:
    """Tests for adapter resolution."""

    def test_builtin_shell(self, shell_robot) -> None:
        """Test the shell adapter is built in."""
        assert BUILTIN_ADAPTERS["shell"] is ShellAdapter
        assert isinstance(create_adapter("shell", shell_robot), ShellAdapter)

    def test_unknown_adapter(self, shell_robot) -> None:
        """Test an unknown adapter name raises AdapterError."""
        with pytest.raises(AdapterError):
            create_adapter("no_such_adapter_module_xyz", shell_robot)

    def test_module_without_use(self, shell_robot) -> None:
        """Test a module without use(robot) is rejected."""
        with pytest.raises(AdapterError, match="use"):
            create_adapter("json", shell_robot)
