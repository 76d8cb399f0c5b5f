"""Custom exceptions for the dispatch core."""

from __future__ import annotations


class DispatchBotError(Exception):
    """Base exception for dispatch-bot errors."""

    pass


class ListenerError(DispatchBotError, ValueError):
    """Raised when a listener is constructed without a matcher or callback."""

    pass


class MiddlewareError(DispatchBotError, TypeError):
    """Raised when a middleware function has the wrong shape."""

    def __init__(self, message: str, middleware: object | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            middleware: The rejected middleware object
        """
        self.middleware = middleware
        super().__init__(message)


class AdapterError(DispatchBotError):
    """Raised when an adapter cannot be resolved or lacks a send method."""

    def __init__(self, message: str, adapter: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            adapter: Name of the offending adapter
        """
        self.adapter = adapter
        super().__init__(message)


class ScriptLoadError(DispatchBotError):
    """Raised when a required script module cannot be loaded."""

    def __init__(self, module_name: str, reason: str) -> None:
        """Initialize the exception.

        Args:
            module_name: Dotted name of the script module
            reason: Human readable cause
        """
        self.module_name = module_name
        super().__init__(f"Unable to load script '{module_name}': {reason}")
