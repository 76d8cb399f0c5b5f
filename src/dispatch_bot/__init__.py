"""dispatch-bot: a chat robot framework.

Scripts register listeners (a matcher plus a callback) and middleware on a
robot; an adapter feeds chat events in and delivers replies out.

Example:
    ```python
    from dispatch_bot import Robot, RobotConfig

    robot = Robot(RobotConfig(name="dispatchbot", alias="/"))

    @robot.respond(r"ping$")
    async def ping(res):
        await res.reply("PONG")

    asyncio.run(robot.run())
    ```
"""

from importlib.metadata import PackageNotFoundError, version

from .adapters import Adapter, ShellAdapter
from .core import (
    Brain,
    CatchAllMessage,
    Continue,
    EnterMessage,
    Envelope,
    EventBus,
    Halt,
    LeaveMessage,
    Listener,
    Message,
    Middleware,
    Response,
    RobotConfig,
    TextMessage,
    TopicMessage,
    User,
    get_logger,
    setup_logging,
)
from .robot import Robot, install_error_boundary, parse_help

__all__ = [
    "__version__",
    "Robot",
    "RobotConfig",
    "Adapter",
    "ShellAdapter",
    "Brain",
    "EventBus",
    "Listener",
    "Middleware",
    "Continue",
    "Halt",
    "Response",
    "User",
    "Envelope",
    "Message",
    "TextMessage",
    "EnterMessage",
    "LeaveMessage",
    "TopicMessage",
    "CatchAllMessage",
    "install_error_boundary",
    "parse_help",
    "get_logger",
    "setup_logging",
]

try:  # pragma: no cover - best-effort during development
    __version__ = version("dispatch-bot")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
