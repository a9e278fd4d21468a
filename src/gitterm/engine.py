"""Local Git engine backed by the ``git`` executable.

:class:`SubprocessGitRpc` implements the :class:`~gitterm.rpc.GitRpc`
protocol for hosts that have a real working copy, so the terminal can be
driven from the command line without a remote engine. Each ``repoId`` maps
to a repository directory.

Design follows Function Core / Imperative Shell:
- Pure functions: build_git_args (operation + params -> git argv)
- Subprocess wrapper: _run_git (thin, never raises on non-zero; uses
  SubprocessResult)
- Imperative shell: SubprocessGitRpc.call
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any

from gitterm.models import ProgressEvent
from gitterm.rpc.errors import RpcError

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

logger = logging.getLogger(__name__)

SUBPROCESS_TIMEOUT_SECONDS = 120

_PROGRESS_OPERATIONS = frozenset({"git.push", "git.pull"})


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class GitEngineError(RpcError):
    """A ``git`` subprocess exited with a non-zero status."""


@dataclasses.dataclass(frozen=True)
class SubprocessResult:
    """Result of a subprocess invocation. Internal transport only."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def build_git_args(operation: str, params: Mapping[str, Any]) -> list[str]:
    """Translate an RPC operation into a ``git`` argument vector.

    Raises:
        RpcError: For operations this engine does not support, or parameters
            ``git`` cannot act on non-interactively.
    """
    match operation:
        case "git.status":
            return ["status"]
        case "git.show":
            return ["show", params["object"]]
        case "git.log":
            depth = params.get("depth")
            args = ["log", "-n", str(50 if depth is None else depth)]
            if params.get("oneline"):
                args.append("--oneline")
            if params.get("branch"):
                args.append(params["branch"])
            return args
        case "git.branch":
            return ["branch", "--format=%(refname:short)"]
        case "git.checkout":
            return ["checkout", params["branch"]]
        case "git.diff":
            path = params.get("path")
            return ["diff", "--", path] if path else ["diff"]
        case "git.add":
            return ["add", "--", *params.get("paths", [])]
        case "git.commit":
            message = params.get("message")
            if message is None:
                msg = "no commit message given (use -m <msg>)"
                raise RpcError(msg)
            return ["commit", "-m", message]
        case "git.push":
            args = ["push"]
            if params.get("force"):
                args.append("--force")
            args.extend(v for v in (params.get("remote"), params.get("branch")) if v)
            return args
        case "git.pull":
            args = ["pull"]
            args.extend(v for v in (params.get("remote"), params.get("branch")) if v)
            return args
        case _:
            msg = f"unsupported operation: {operation}"
            raise RpcError(msg)


# ---------------------------------------------------------------------------
# Subprocess wrapper
# ---------------------------------------------------------------------------


def _run_git(*args: str, cwd: Path) -> SubprocessResult:
    """Execute ``git <args>`` and return the result.

    Does **not** raise on non-zero exit codes; callers decide what
    constitutes an error.
    """
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        timeout=SUBPROCESS_TIMEOUT_SECONDS,
    )
    return SubprocessResult(
        returncode=result.returncode,
        stdout=result.stdout.strip(),
        stderr=result.stderr.strip(),
    )


# ---------------------------------------------------------------------------
# Imperative shell
# ---------------------------------------------------------------------------


class SubprocessGitRpc:
    """:class:`~gitterm.rpc.GitRpc` that runs ``git`` in local working copies."""

    def __init__(
        self,
        repos: Mapping[str, str | Path],
        *,
        on_progress: Callable[[ProgressEvent], None] | None = None,
    ) -> None:
        self.repos = {repo_id: Path(path) for repo_id, path in repos.items()}
        self.on_progress = on_progress

    def _repo_dir(self, repo_id: str) -> Path:
        try:
            return self.repos[repo_id]
        except KeyError:
            msg = f"unknown repository: {repo_id}"
            raise RpcError(msg) from None

    def _report(self, phase: str, note: str | None = None) -> None:
        if self.on_progress is not None:
            self.on_progress(ProgressEvent(phase=phase, note=note))

    async def call(self, operation: str, params: dict[str, Any]) -> Any:
        repo_dir = self._repo_dir(params.get("repoId", ""))
        args = build_git_args(operation, params)
        phase = operation.removeprefix("git.")

        if operation == "git.add" and not params.get("paths"):
            return {"text": "Nothing specified, nothing added."}

        if operation in _PROGRESS_OPERATIONS:
            self._report(phase, note="started")

        logger.debug("Running git %s in %s", " ".join(args), repo_dir)
        try:
            result = await asyncio.to_thread(_run_git, *args, cwd=repo_dir)
        except subprocess.TimeoutExpired:
            msg = f"timed out after {SUBPROCESS_TIMEOUT_SECONDS}s"
            raise GitEngineError(msg) from None
        except OSError as e:
            msg = f"cannot run git: {e}"
            raise GitEngineError(msg) from e

        if not result.ok:
            msg = result.stderr or result.stdout or f"git exited with status {result.returncode}"
            raise GitEngineError(msg)

        if operation in _PROGRESS_OPERATIONS:
            self._report(phase, note="done")

        if operation == "git.branch":
            return {"branches": result.stdout.splitlines()}
        # Several porcelain commands (checkout, push, pull) report on stderr.
        return {"text": result.stdout or result.stderr or None}
