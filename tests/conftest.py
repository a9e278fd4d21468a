"""Shared test fixtures for gitterm."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, MagicMock

import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider

from gitterm.fs import LocalFileSystem
from gitterm.models import InvocationContext, RepoRef

if TYPE_CHECKING:
    from pathlib import Path


def build_mock_rpc(result: object = None, *, error: BaseException | None = None) -> MagicMock:
    """Build a mock GitRpc whose ``call`` resolves to *result* or raises *error*."""
    rpc = MagicMock()
    if error is not None:
        rpc.call = AsyncMock(side_effect=error)
    else:
        rpc.call = AsyncMock(return_value=result)
    return rpc


@pytest.fixture
def repo_ref() -> RepoRef:
    return RepoRef(
        relay="wss://relay.test",
        naddr="naddr1test",
        npub="npub1owner",
        repo_id="repo-1",
    )


@pytest.fixture
def rpc() -> MagicMock:
    """A mock engine that answers every operation with an empty string."""
    return build_mock_rpc("")


@pytest.fixture
def ctx(repo_ref: RepoRef, rpc: MagicMock) -> InvocationContext:
    return InvocationContext(repo_ref=repo_ref, rpc=rpc)


@pytest.fixture
def bare_ctx(repo_ref: RepoRef) -> InvocationContext:
    """A context without an engine."""
    return InvocationContext(repo_ref=repo_ref)


@pytest.fixture
def sandbox(tmp_path: Path) -> Path:
    """A sandbox directory with a small file tree.

    Layout::

        /notes.txt        "one\\ntwo\\nthree\\n"
        /docs/readme.md   "# Docs\\n"
    """
    root = tmp_path / "sandbox"
    root.mkdir()
    (root / "notes.txt").write_text("one\ntwo\nthree\n")
    (root / "docs").mkdir()
    (root / "docs" / "readme.md").write_text("# Docs\n")
    return root


@pytest.fixture
def local_fs(sandbox: Path) -> LocalFileSystem:
    return LocalFileSystem(sandbox)


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository with one initial commit.

    The repo has a committed ``README.md`` on the ``main`` branch.

    Returns the path to the repository root.
    """
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", "-b", "main"], cwd=repo, check=True, capture_output=True)
    subprocess.run(
        ["git", "config", "user.email", "test@gitterm.test"],
        cwd=repo,
        check=True,
        capture_output=True,
    )
    subprocess.run(
        ["git", "config", "user.name", "Gitterm Test"],
        cwd=repo,
        check=True,
        capture_output=True,
    )

    (repo / "README.md").write_text("# Test repo\n")
    subprocess.run(["git", "add", "README.md"], cwd=repo, check=True, capture_output=True)
    subprocess.run(
        ["git", "commit", "-m", "Initial commit"],
        cwd=repo,
        check=True,
        capture_output=True,
    )

    return repo


def _force_reset_otel_provider() -> None:
    once = trace._TRACER_PROVIDER_SET_ONCE
    with once._lock:
        once._done = False
    trace._TRACER_PROVIDER = None


@pytest.fixture
def reset_tracer_provider():
    """Reset the global tracer provider before and after a test.

    The OTel SDK uses a set-once guard that prevents subsequent calls to
    ``set_tracer_provider``. We reset the internal ``_done`` flag so each
    test can register its own provider cleanly.
    """
    _force_reset_otel_provider()
    yield
    provider = trace.get_tracer_provider()
    if isinstance(provider, TracerProvider):
        provider.shutdown()
    _force_reset_otel_provider()
