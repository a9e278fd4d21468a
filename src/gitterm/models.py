"""Core data models for gitterm."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from gitterm.rpc.protocol import GitRpc


class RepoRef(BaseModel):
    """Addresses one repository across the relay network and locally."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    relay: str = ""
    naddr: str = Field(default="", description="Globally addressable repository identifier.")
    npub: str = Field(default="", description="Owner identity.")
    repo_id: str = Field(default="", alias="repoId", description="Local repository id.")


class ProgressEvent(BaseModel):
    """Progress report emitted by long-running operations."""

    phase: str
    loaded: int = 0
    total: int | None = None
    note: str | None = None


class CommandResult(BaseModel):
    """POSIX-like outcome of one command line."""

    model_config = ConfigDict(frozen=True)

    code: int
    stdout: str | None = None
    stderr: str | None = None

    @property
    def ok(self) -> bool:
        return self.code == 0


class OutputLimit(BaseModel):
    """Per-command output and runtime budget."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    max_bytes: int = Field(default=1_000_000, alias="bytes")
    max_lines: int = Field(default=10_000, alias="lines")
    time_ms: int = Field(default=60_000, alias="timeMs")


@dataclasses.dataclass(frozen=True)
class InvocationContext:
    """Per-session configuration handed to every command. Never mutated."""

    repo_ref: RepoRef
    on_progress: Callable[[ProgressEvent], None] | None = None
    get_auth_token: Callable[[str], Awaitable[str | None]] | None = None
    rpc: GitRpc | None = None
