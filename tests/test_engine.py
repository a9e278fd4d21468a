"""Tests for gitterm.engine: the local subprocess git engine."""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

import pytest

from gitterm.engine import GitEngineError, SubprocessGitRpc, build_git_args
from gitterm.git_cli import execute
from gitterm.models import InvocationContext, ProgressEvent, RepoRef
from gitterm.rpc import GitRpc, RpcError

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def engine(git_repo: Path) -> SubprocessGitRpc:
    return SubprocessGitRpc({"repo-1": git_repo})


@pytest.fixture
def engine_ctx(engine: SubprocessGitRpc) -> InvocationContext:
    return InvocationContext(repo_ref=RepoRef(repo_id="repo-1"), rpc=engine)


# ---------------------------------------------------------------------------
# build_git_args
# ---------------------------------------------------------------------------


class TestBuildGitArgs:
    def test_log(self) -> None:
        args = build_git_args("git.log", {"branch": "main", "depth": 5, "oneline": True})
        assert args == ["log", "-n", "5", "--oneline", "main"]

    def test_log_defaults(self) -> None:
        assert build_git_args("git.log", {"branch": None}) == ["log", "-n", "50"]

    def test_log_zero_depth_is_kept(self) -> None:
        assert build_git_args("git.log", {"depth": 0}) == ["log", "-n", "0"]

    def test_diff_path(self) -> None:
        assert build_git_args("git.diff", {"path": "a.txt"}) == ["diff", "--", "a.txt"]

    def test_push(self) -> None:
        params = {"remote": "origin", "branch": None, "force": True}
        assert build_git_args("git.push", params) == ["push", "--force", "origin"]

    def test_commit_requires_message(self) -> None:
        with pytest.raises(RpcError, match="no commit message"):
            build_git_args("git.commit", {"message": None})

    def test_unsupported(self) -> None:
        with pytest.raises(RpcError, match="unsupported operation: git.rebase"):
            build_git_args("git.rebase", {})


# ---------------------------------------------------------------------------
# SubprocessGitRpc
# ---------------------------------------------------------------------------


class TestSubprocessGitRpc:
    def test_satisfies_protocol(self, engine: SubprocessGitRpc) -> None:
        assert isinstance(engine, GitRpc)

    @pytest.mark.asyncio
    async def test_unknown_repository(self, engine: SubprocessGitRpc) -> None:
        with pytest.raises(RpcError, match="unknown repository: other"):
            await engine.call("git.status", {"repoId": "other"})

    @pytest.mark.asyncio
    async def test_branch_list(self, engine: SubprocessGitRpc) -> None:
        assert await engine.call("git.branch", {"repoId": "repo-1"}) == {"branches": ["main"]}

    @pytest.mark.asyncio
    async def test_failure_raises_engine_error(self, engine: SubprocessGitRpc) -> None:
        with pytest.raises(GitEngineError):
            await engine.call("git.show", {"repoId": "repo-1", "object": "deadbeef"})

    @pytest.mark.asyncio
    async def test_add_nothing(self, engine: SubprocessGitRpc) -> None:
        result = await engine.call("git.add", {"repoId": "repo-1", "paths": []})
        assert result == {"text": "Nothing specified, nothing added."}

    @pytest.mark.asyncio
    async def test_push_reports_progress(self, git_repo: Path) -> None:
        events: list[ProgressEvent] = []
        engine = SubprocessGitRpc({"repo-1": git_repo}, on_progress=events.append)
        with pytest.raises(GitEngineError):
            # No remote configured.
            await engine.call("git.push", {"repoId": "repo-1", "remote": "origin"})
        assert [e.note for e in events] == ["started"]
        assert events[0].phase == "push"


# ---------------------------------------------------------------------------
# Interpreter over a real repository
# ---------------------------------------------------------------------------


class TestInterpreterEndToEnd:
    @pytest.mark.asyncio
    async def test_log_oneline(self, engine_ctx: InvocationContext) -> None:
        result = await execute(["git", "log", "--oneline", "-n", "1"], engine_ctx)
        assert result.code == 0
        assert result.stdout.endswith("Initial commit\n")

    @pytest.mark.asyncio
    async def test_add_commit_status(self, engine_ctx: InvocationContext, git_repo: Path) -> None:
        (git_repo / "new.txt").write_text("hello\n")

        assert (await execute(["git", "add", "new.txt"], engine_ctx)).code == 0
        commit = await execute(["git", "commit", "-m", "Add new.txt"], engine_ctx)
        assert commit.code == 0
        assert "Add new.txt" in commit.stdout

        status = await execute(["git", "status"], engine_ctx)
        assert "nothing to commit" in status.stdout

    @pytest.mark.asyncio
    async def test_switch_branch(self, engine_ctx: InvocationContext, git_repo: Path) -> None:
        subprocess.run(["git", "branch", "dev"], cwd=git_repo, check=True, capture_output=True)
        result = await execute(["git", "switch", "dev"], engine_ctx)
        assert result.code == 0
        assert "dev" in result.stdout

        branches = await execute(["git", "branch"], engine_ctx)
        assert branches.stdout == "dev\nmain\n"

    @pytest.mark.asyncio
    async def test_commit_without_message(self, engine_ctx: InvocationContext) -> None:
        result = await execute(["git", "commit"], engine_ctx)
        assert result.code == 1
        assert result.stderr.startswith("git commit: no commit message given")

    @pytest.mark.asyncio
    async def test_show_unknown_object(self, engine_ctx: InvocationContext) -> None:
        result = await execute(["git", "show", "deadbeef"], engine_ctx)
        assert result.code == 1
        assert result.stderr.startswith("git show: ")
