"""Command-line entry point and composition root for dispatch-bot."""

from __future__ import annotations

import argparse
import asyncio
import importlib
from collections.abc import Sequence
from pathlib import Path

import yaml
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .core.config import RobotConfig
from .core.exceptions import ScriptLoadError
from .core.logger import get_logger, setup_logging
from .robot import Robot, RobotModule, install_error_boundary

logger = get_logger("cli")
console = Console()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser.

    Returns:
        ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="dispatch-bot",
        description="dispatch-bot - a chat robot built from listener scripts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Talk to the robot in the terminal
  dispatch-bot run -n mybot -r mybot.scripts.ping

  # Validate a config file and exit
  dispatch-bot run -c config.yaml --config-check

  # Generate default config
  dispatch-bot init -o config.yaml
        """,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s v{__version__}",
        help="Show program's version number and exit",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run the robot")
    run_parser.add_argument("-c", "--config", help="Path to a YAML or JSON configuration file")
    run_parser.add_argument("-a", "--adapter", help="Adapter to use (default: shell)")
    run_parser.add_argument("-n", "--name", help="The robot's name")
    run_parser.add_argument("-l", "--alias", help="Alternative name the robot responds to")
    run_parser.add_argument(
        "-r",
        "--require",
        action="append",
        default=[],
        metavar="MODULE",
        help="Dotted name of a script module to load (repeatable)",
    )
    run_parser.add_argument(
        "-t",
        "--config-check",
        action="store_true",
        help="Load the configuration and scripts, then exit",
    )
    run_parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    init_parser = subparsers.add_parser("init", help="Generate default configuration")
    init_parser.add_argument(
        "-o",
        "--output",
        default="config.yaml",
        help="Output config file path (default: config.yaml)",
    )
    init_parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite an existing file",
    )

    return parser


def load_config(args: argparse.Namespace) -> RobotConfig:
    """Build the robot configuration from a file and command-line overrides."""
    config = RobotConfig.from_file(args.config) if args.config else RobotConfig()

    overrides: dict[str, object] = {}
    if args.adapter:
        overrides["adapter"] = args.adapter
    if args.name:
        overrides["name"] = args.name
    if args.alias:
        overrides["alias"] = args.alias
    if args.require:
        overrides["require"] = [*config.require, *args.require]
    if args.debug:
        overrides["logging"] = config.logging.model_copy(update={"level": "DEBUG"})

    if overrides:
        config = RobotConfig.model_validate({**config.model_dump(), **overrides})
    return config


def load_script(module_name: str) -> RobotModule:
    """Import a script module and return its ``setup(robot)`` callable.

    Raises:
        ScriptLoadError: If the module cannot be imported or has no setup.
    """
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ScriptLoadError(module_name, str(exc)) from exc

    setup = getattr(module, "setup", None)
    if not callable(setup):
        raise ScriptLoadError(module_name, "module has no callable 'setup'")
    return setup


def print_banner(robot: Robot) -> None:
    """Print a startup banner with configuration info."""
    info = f"""[bold]dispatch-bot[/bold] [green]v{__version__}[/]
[dim]----------------------------------------[/]
[bold]Name:[/bold]    [yellow]{robot.name}[/]
[bold]Alias:[/bold]   [yellow]{robot.alias or "-"}[/]
[bold]Adapter:[/bold] [yellow]{robot.adapter_name}[/]
[bold]Scripts:[/bold] [yellow]{len(robot.config.require)}[/]"""

    console.print(
        Panel(info, title="[bold white]Startup[/]", border_style="blue", expand=False)
    )


def cmd_run(args: argparse.Namespace) -> int:
    """Handle run command.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    try:
        config = load_config(args)
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[red]Invalid configuration:[/] {exc}")
        return 1

    setup_logging(config.logging)

    try:
        robot = Robot(config)
        robot.load_modules(*(load_script(name) for name in config.require))
    except Exception as exc:
        logger.error("Error setting up robot: %s", exc, exc_info=True)
        return 1

    if args.config_check:
        console.print("[green]OK[/]")
        return 0

    print_banner(robot)
    try:
        asyncio.run(_serve(robot))
    except KeyboardInterrupt:
        logger.info("Robot interrupted by user")
        robot.shutdown()
    return 0


async def _serve(robot: Robot) -> None:
    uninstall = install_error_boundary(robot, asyncio.get_running_loop())
    try:
        await robot.run()
    finally:
        uninstall()


def cmd_init(args: argparse.Namespace) -> int:
    """Handle init command.

    Args:
        args: Parsed arguments

    Returns:
        Exit code
    """
    output_path = Path(args.output)

    if output_path.exists() and not args.force:
        console.print(f"[yellow]{output_path} already exists; use --force to overwrite.[/]")
        return 1

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(RobotConfig().to_dict(), handle, sort_keys=False, allow_unicode=True)

    console.print(f"[green]Configuration file created:[/] {output_path}")
    console.print(f"Start the robot: dispatch-bot run --config {output_path}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point.

    Args:
        argv: Optional sequence of CLI arguments (without the program name).

    Returns:
        Process exit code. 0 for success.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    handlers = {
        "run": cmd_run,
        "init": cmd_init,
    }

    handler = handlers.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
