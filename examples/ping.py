"""Example script module.

Load it with ``dispatch-bot run -r ping`` from this directory (or anywhere
``ping`` is importable).

Description:
    Utility commands surrounding robot uptime and echoing.

Commands:
    dispatchbot ping - Reply with pong
    dispatchbot echo <text> - Reply back with <text>
    dispatchbot time - Reply with current time
    dispatchbot help - List the commands the robot knows

Author:
    dispatch-bot contributors
"""

from __future__ import annotations

from datetime import datetime

from dispatch_bot import Response, Robot, get_logger

logger = get_logger("examples.ping")


def setup(robot: Robot) -> None:
    """Register the example listeners and middleware."""

    @robot.respond(r"ping$")
    async def ping(res: Response) -> None:
        await res.send("PONG")

    @robot.respond(r"echo (.*)$")
    async def echo(res: Response) -> None:
        await res.send(res.match.group(1))

    @robot.respond(r"time$")
    async def current_time(res: Response) -> None:
        await res.send(f"Server time is: {datetime.now():%Y-%m-%d %H:%M:%S}")

    @robot.respond(r"help$")
    async def help_(res: Response) -> None:
        await res.send(*robot.help_commands())

    @robot.catch_all
    async def unknown(res: Response) -> None:
        await res.reply("Sorry, I don't know that one. Try 'help'.")

    @robot.receive_middleware
    def log_incoming(context, next, done):
        logger.debug("Received %r", context.response.message)
        next()

    @robot.error
    def report(error: Exception, response: Response | None) -> None:
        logger.error("Script error: %s", error)
        if response is not None:
            return response.reply("Something went wrong, sorry.")
        return None
