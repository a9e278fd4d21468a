"""Terminal shell session.

Routes a command line to a builtin, to the git interpreter, or reports
``command not found``. Owns the only mutable terminal state: the current
working directory and the commands currently running (so they can be
aborted).

Design follows Function Core / Imperative Shell:
- Pure functions: timeout_for, the result helpers
- Imperative shell: Shell (builtins over the FileSystem capability,
  timeouts, abort, tracing)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING

from gitterm.fs import EntryType, FileSystemError
from gitterm.git_cli import EXIT_FAILURE, EXIT_SUCCESS, execute, parse_args
from gitterm.models import CommandResult, OutputLimit
from gitterm.output import limit_output
from gitterm.paths import resolve_path
from gitterm.rpc.errors import error_message
from gitterm.tracing import command_attributes, get_tracer

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from gitterm.fs import FileSystem
    from gitterm.models import InvocationContext

logger = logging.getLogger(__name__)

EXIT_TIMEOUT = 124
EXIT_NOT_FOUND = 127
EXIT_ABORTED = 130

GIT_MIN_TIMEOUT_MS = 5 * 60_000
DEFAULT_HEAD_LINES = 10


def timeout_for(argv: Sequence[str], limit: OutputLimit) -> float | None:
    """Return the runtime bound in seconds for *argv*, or ``None`` for none.

    Git commands may legitimately run long, so they get at least five
    minutes. A non-positive budget disables the bound.
    """
    if limit.time_ms <= 0:
        return None
    if argv and argv[0] == "git":
        return max(limit.time_ms, GIT_MIN_TIMEOUT_MS) / 1000
    return limit.time_ms / 1000


def _ok(stdout: str | None = None) -> CommandResult:
    return CommandResult(code=EXIT_SUCCESS, stdout=stdout)


def _fail(cmd: str, message: str) -> CommandResult:
    return CommandResult(code=EXIT_FAILURE, stderr=f"{cmd}: {message}\n")


class Shell:
    """One terminal session over an invocation context and a file system."""

    def __init__(
        self,
        ctx: InvocationContext,
        fs: FileSystem,
        limit: OutputLimit | None = None,
        cwd: str = "/",
    ) -> None:
        self.ctx = ctx
        self.fs = fs
        self.limit = limit or OutputLimit()
        self.cwd = resolve_path("/", cwd)
        self._running: dict[str, asyncio.Task[CommandResult]] = {}
        self._aborted: set[str] = set()
        self._builtins: dict[str, Callable[[list[str]], Awaitable[CommandResult]]] = {
            "pwd": self._pwd,
            "echo": self._echo,
            "cd": self._cd,
            "ls": self._ls,
            "cat": self._cat,
            "mkdir": self._mkdir,
            "rm": self._rm,
            "mv": self._mv,
            "cp": self._cp,
            "head": self._head_tail,
            "tail": self._head_tail,
            "touch": self._touch,
        }

    # --- Session control ---

    @property
    def running(self) -> frozenset[str]:
        return frozenset(self._running)

    def abort(self, command_id: str) -> bool:
        """Cancel a running command. Returns False for unknown ids."""
        task = self._running.get(command_id)
        if task is None or task.done():
            return False
        logger.info("Aborting command %s", command_id)
        self._aborted.add(command_id)
        task.cancel()
        return True

    async def run(self, argv: Sequence[str], command_id: str | None = None) -> CommandResult:
        """Run one command line and return its result.

        Timeouts map to exit code 124, :meth:`abort` to 130, and unexpected
        exceptions to 1; none of them propagate.
        """
        command_id = command_id or uuid.uuid4().hex
        argv = list(argv)
        if not argv:
            return _ok()

        tracer = get_tracer()
        with tracer.start_as_current_span("gitterm.command") as span:
            task = asyncio.create_task(self._route(argv))
            self._running[command_id] = task
            try:
                async with asyncio.timeout(timeout_for(argv, self.limit)):
                    result = await task
            except TimeoutError:
                logger.warning("Command %s timed out: %s", command_id, argv[0])
                result = CommandResult(code=EXIT_TIMEOUT, stderr="command timed out\n")
            except asyncio.CancelledError:
                if command_id not in self._aborted:
                    raise
                result = CommandResult(code=EXIT_ABORTED, stderr="^C\n")
            except Exception as e:
                logger.exception("Command %s failed", command_id)
                result = CommandResult(code=EXIT_FAILURE, stderr=error_message(e) + "\n")
            finally:
                self._running.pop(command_id, None)
                self._aborted.discard(command_id)
            span.set_attributes(command_attributes(argv, result, command_id=command_id))
        return result

    async def _route(self, argv: list[str]) -> CommandResult:
        cmd = argv[0]
        builtin = self._builtins.get(cmd)
        if builtin is not None:
            return await builtin(argv)
        if cmd == "git":
            return await self._git(argv)
        return CommandResult(code=EXIT_NOT_FOUND, stderr=f"{cmd}: command not found\n")

    async def _git(self, argv: list[str]) -> CommandResult:
        res = await execute(argv, self.ctx)
        return CommandResult(
            code=res.code,
            stdout=limit_output(res.stdout, self.limit) if res.stdout else res.stdout,
            stderr=limit_output(res.stderr, self.limit) if res.stderr else res.stderr,
        )

    def _resolve(self, path: str) -> str:
        return resolve_path(self.cwd, path)

    # --- Builtins ---

    async def _pwd(self, argv: list[str]) -> CommandResult:
        return _ok(self.cwd + "\n")

    async def _echo(self, argv: list[str]) -> CommandResult:
        return _ok(" ".join(argv[1:]) + "\n")

    async def _cd(self, argv: list[str]) -> CommandResult:
        target_arg = argv[1] if len(argv) > 1 else "/"
        target = self._resolve(target_arg)
        try:
            st = await self.fs.stat(target)
        except (FileSystemError, OSError) as e:
            return _fail("cd", error_message(e))
        if st is None or st.type != EntryType.DIR:
            return _fail("cd", f"not a directory: {target_arg}")
        self.cwd = target
        return _ok()

    async def _ls(self, argv: list[str]) -> CommandResult:
        target_arg = parse_args(argv[1:]).operand(0)
        target = self._resolve(target_arg) if target_arg else self.cwd
        try:
            entries = await self.fs.readdir(target)
        except (FileSystemError, OSError) as e:
            return _fail("ls", error_message(e))
        return _ok("\t".join(entries) + "\n")

    async def _cat(self, argv: list[str]) -> CommandResult:
        if len(argv) < 2:
            return _fail("cat", "missing file")
        try:
            data = await self.fs.read_file(self._resolve(argv[1]))
        except (FileSystemError, OSError) as e:
            return _fail("cat", error_message(e))
        return _ok(limit_output(data, self.limit))

    async def _mkdir(self, argv: list[str]) -> CommandResult:
        if len(argv) < 2:
            return _fail("mkdir", "missing operand")
        try:
            await self.fs.mkdir(self._resolve(argv[1]))
        except (FileSystemError, OSError) as e:
            return _fail("mkdir", error_message(e))
        return _ok()

    async def _rm(self, argv: list[str]) -> CommandResult:
        parsed = parse_args(argv[1:])
        recursive = bool(parsed.flags & {"-r", "-R"})
        if not parsed.operands:
            return _fail("rm", "missing operand")
        for name in parsed.operands:
            try:
                await self.fs.rm(self._resolve(name), recursive=recursive)
            except (FileSystemError, OSError) as e:
                return _fail("rm", error_message(e))
        return _ok()

    async def _mv(self, argv: list[str]) -> CommandResult:
        return await self._transfer(argv, self.fs.mv)

    async def _cp(self, argv: list[str]) -> CommandResult:
        return await self._transfer(argv, self.fs.cp)

    async def _transfer(
        self, argv: list[str], op: Callable[[str, str], Awaitable[None]]
    ) -> CommandResult:
        cmd = argv[0]
        if len(argv) < 3:
            return _fail(cmd, "missing file operand")
        try:
            await op(self._resolve(argv[1]), self._resolve(argv[2]))
        except (FileSystemError, OSError) as e:
            return _fail(cmd, error_message(e))
        return _ok()

    async def _head_tail(self, argv: list[str]) -> CommandResult:
        cmd = argv[0]
        parsed = parse_args(argv[1:], {"-n": "lines", "--lines": "lines"})
        name = parsed.operand(0)
        if name is None:
            return _fail(cmd, "missing file")
        raw_count = parsed.values.get("lines")
        if raw_count and not (raw_count.isascii() and raw_count.isdigit()):
            return _fail(cmd, f"invalid number of lines: {raw_count}")
        count = int(raw_count) if raw_count else DEFAULT_HEAD_LINES
        try:
            data = await self.fs.read_file(self._resolve(name))
        except (FileSystemError, OSError) as e:
            return _fail(cmd, error_message(e))

        lines = data.splitlines()
        if cmd == "head":
            selected = lines[:count]
        else:
            selected = lines[max(0, len(lines) - count) :]
        return _ok(limit_output("\n".join(selected), self.limit))

    async def _touch(self, argv: list[str]) -> CommandResult:
        if len(argv) < 2:
            return _fail("touch", "missing file")
        try:
            await self.fs.touch(self._resolve(argv[1]))
        except (FileSystemError, OSError) as e:
            return _fail("touch", error_message(e))
        return _ok()
