"""RPC boundary between the command interpreter and the Git engine.

Public API:
- GitRpc: Protocol for engine implementations
- RpcError: Rejection raised by an engine
- RpcUnavailableError: Raised when no engine is configured
- error_message: Extract the user-facing text of a rejection
"""

from __future__ import annotations

from gitterm.rpc.errors import RpcError, RpcUnavailableError, error_message
from gitterm.rpc.protocol import GitRpc

__all__ = [
    "GitRpc",
    "RpcError",
    "RpcUnavailableError",
    "error_message",
]
