"""Errors raised across the RPC boundary."""

from __future__ import annotations

from gitterm.errors import GittermError


class RpcError(GittermError):
    """The Git engine rejected an operation.

    ``message`` holds the text shown to the user after the subcommand name.
    """

    def __init__(self, message: str = "Git RPC error") -> None:
        super().__init__(message)
        self.message = message


class RpcUnavailableError(RpcError):
    """No Git engine has been wired into the invocation context."""

    def __init__(self, message: str = "RPC not available") -> None:
        super().__init__(message)


def error_message(exc: BaseException) -> str:
    """Return the user-facing text of a rejection.

    Prefers a non-empty ``message`` attribute, then ``str(exc)``, then the
    exception's class name.
    """
    message = getattr(exc, "message", None)
    if isinstance(message, str) and message:
        return message
    return str(exc) or type(exc).__name__
