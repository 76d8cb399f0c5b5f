"""Core modules for dispatch-bot.

This package contains the dispatch building blocks:
- Message model (users, messages, envelopes)
- Middleware pipeline with explicit continue/halt results
- Listeners and responses
- Event bus and the in-memory brain
- Configuration management and logging utilities
"""

from .brain import Brain
from .config import BrainConfig, HTTPClientConfig, LoggingConfig, RobotConfig
from .event_bus import EventBus
from .exceptions import (
    AdapterError,
    DispatchBotError,
    ListenerError,
    MiddlewareError,
    ScriptLoadError,
)
from .listener import Listener, regex_matcher
from .logger import get_logger, log_exception, setup_logging
from .message import (
    CatchAllMessage,
    EnterMessage,
    Envelope,
    LeaveMessage,
    Message,
    TextMessage,
    TopicMessage,
)
from .middleware import ChainOutcome, Continue, Halt, Middleware, MiddlewareContext
from .response import Response, ResponseContext
from .user import User

__all__ = [
    # Messages
    "User",
    "Envelope",
    "Message",
    "TextMessage",
    "EnterMessage",
    "LeaveMessage",
    "TopicMessage",
    "CatchAllMessage",
    # Middleware
    "Middleware",
    "MiddlewareContext",
    "ChainOutcome",
    "Continue",
    "Halt",
    # Listeners and responses
    "Listener",
    "regex_matcher",
    "Response",
    "ResponseContext",
    # Events and storage
    "EventBus",
    "Brain",
    # Configuration
    "RobotConfig",
    "BrainConfig",
    "HTTPClientConfig",
    "LoggingConfig",
    # Errors
    "DispatchBotError",
    "ListenerError",
    "MiddlewareError",
    "AdapterError",
    "ScriptLoadError",
    # Logging
    "get_logger",
    "log_exception",
    "setup_logging",
]
