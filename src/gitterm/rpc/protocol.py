"""GitRpc protocol definition."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class GitRpc(Protocol):
    """Protocol for the out-of-process Git engine.

    The embedding application supplies the transport (thread messaging,
    IPC, HTTP). Implementations resolve to an operation-specific result, or
    raise to signal a rejection; the exception's ``message`` attribute (or
    its string form) is surfaced verbatim to the user.
    """

    async def call(self, operation: str, params: dict[str, Any]) -> Any:
        """Perform *operation* (e.g. ``"git.status"``) with *params*."""
        ...
