"""Git command interpreter for the terminal.

Maps ``git <subcommand> ...`` command lines to at most one call on the
injected :class:`~gitterm.rpc.GitRpc` engine and shapes the answer as a
:class:`~gitterm.models.CommandResult`.

Design follows Function Core / Imperative Shell:
- Pure functions: help_for, parse_args, the per-subcommand extractors and
  renderers, terminate
- Async shell: execute (the only place that awaits the engine)
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from gitterm.errors import GittermError
from gitterm.models import CommandResult
from gitterm.rpc.errors import RpcUnavailableError, error_message

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from gitterm.models import InvocationContext
    from gitterm.rpc.protocol import GitRpc

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_UNAVAILABLE = 127

VERSION_TEXT = "git (browser-cli) 0.1.0"

HELP_FLAGS = frozenset({"-h", "--help"})
VERSION_FLAGS = frozenset({"--version", "-v"})


class UsageError(GittermError):
    """Malformed or incomplete invocation, detected before any RPC call."""


# ---------------------------------------------------------------------------
# Usage text
# ---------------------------------------------------------------------------

_GLOBAL_USAGE = "\n".join(
    [
        "usage: git <command> [<args>]\n",
        "Common commands:",
        "   status        Show working tree status",
        "   log           Show commit logs",
        "   diff          Show changes",
        "   add           Add file contents to the index",
        "   commit        Record changes to the repository",
        "   push          Update remote refs along with associated objects",
        "   pull          Fetch from and integrate with another repository or a local branch",
        "",
        "Run `git help <command>` for details.",
    ]
)


def help_for(topic: str | None = None) -> str:
    """Return the usage text for *topic*, or the global summary.

    Never fails: unknown and absent topics both get the global summary.
    """
    command = SUBCOMMANDS.get(topic) if topic else None
    if command is None:
        return _GLOBAL_USAGE
    return command.usage


# ---------------------------------------------------------------------------
# Argument scanning
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class ParsedArgs:
    """Flags, flag values and positional operands of one command line."""

    flags: frozenset[str]
    values: Mapping[str, str | None]
    operands: tuple[str, ...]

    def operand(self, index: int) -> str | None:
        return self.operands[index] if index < len(self.operands) else None


def parse_args(args: Sequence[str], value_flags: Mapping[str, str] | None = None) -> ParsedArgs:
    """Split *args* into flags and operands.

    A token is a flag when it starts with ``-``. Flags listed in
    *value_flags* (flag -> key) take the following token as their value;
    that token is not an operand. Only the first occurrence of a key counts,
    and a value-taking flag at the end of the line leaves its key ``None``.
    """
    value_flags = value_flags or {}
    flags: set[str] = set()
    values: dict[str, str | None] = {}
    operands: list[str] = []

    tokens = list(args)
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.startswith("-"):
            flags.add(token)
            key = value_flags.get(token)
            if key is not None:
                value = tokens[i + 1] if i + 1 < len(tokens) else None
                values.setdefault(key, value)
                i += 1
        else:
            operands.append(token)
        i += 1

    return ParsedArgs(
        flags=frozenset(flags),
        values=MappingProxyType(values),
        operands=tuple(operands),
    )


# ---------------------------------------------------------------------------
# Per-subcommand extraction
# ---------------------------------------------------------------------------

DEFAULT_LOG_DEPTH = 50
_DEPTH_PATTERN = re.compile(r"[0-9]+")


def _no_params(parsed: ParsedArgs) -> dict[str, Any]:
    return {}


def _show_params(parsed: ParsedArgs) -> dict[str, Any]:
    obj = parsed.operand(0)
    if not obj:
        msg = "missing object id"
        raise UsageError(msg)
    return {"object": obj}


def _log_params(parsed: ParsedArgs) -> dict[str, Any]:
    raw_depth = parsed.values.get("depth")
    if raw_depth:
        if not _DEPTH_PATTERN.fullmatch(raw_depth):
            msg = f"invalid max-count: {raw_depth}"
            raise UsageError(msg)
        depth = int(raw_depth)
    else:
        depth = DEFAULT_LOG_DEPTH
    return {
        "branch": parsed.operand(0),
        "depth": depth,
        "oneline": "--oneline" in parsed.flags,
    }


def _checkout_params(parsed: ParsedArgs) -> dict[str, Any]:
    branch = parsed.operand(0)
    if not branch:
        msg = "missing branch"
        raise UsageError(msg)
    return {"branch": branch}


def _diff_params(parsed: ParsedArgs) -> dict[str, Any]:
    return {"path": parsed.operand(0)}


def _add_params(parsed: ParsedArgs) -> dict[str, Any]:
    return {"paths": list(parsed.operands)}


def _commit_params(parsed: ParsedArgs) -> dict[str, Any]:
    return {"message": parsed.values.get("message")}


def _push_params(parsed: ParsedArgs) -> dict[str, Any]:
    return {
        "remote": parsed.operand(0),
        "branch": parsed.operand(1),
        "force": bool(parsed.flags & {"--force", "-f"}),
    }


def _pull_params(parsed: ParsedArgs) -> dict[str, Any]:
    return {"remote": parsed.operand(0), "branch": parsed.operand(1)}


# ---------------------------------------------------------------------------
# Output normalization
# ---------------------------------------------------------------------------


def _field(result: Any, name: str) -> Any:
    if isinstance(result, Mapping):
        return result.get(name)
    return getattr(result, name, None)


def _render_text(result: Any, params: Mapping[str, Any]) -> str:
    if isinstance(result, str):
        return result
    text = _field(result, "text") if result is not None else None
    if text is None:
        return ""
    return text if isinstance(text, str) else str(text)


def _render_branches(result: Any, params: Mapping[str, Any]) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, (list, tuple)):
        return "\n".join(str(b) for b in result)
    if result is None:
        return ""
    text = _field(result, "text")
    if isinstance(text, str):
        return text
    branches = _field(result, "branches")
    if isinstance(branches, (list, tuple)):
        return "\n".join(str(b) for b in branches)
    return ""


def _render_checkout(result: Any, params: Mapping[str, Any]) -> str:
    if isinstance(result, str):
        return result
    text = _field(result, "text") if result is not None else None
    if text is None:
        return f"Switched to branch '{params['branch']}'"
    return text if isinstance(text, str) else str(text)


def terminate(text: str) -> str:
    """Newline-terminate *text* once; empty text stays empty."""
    if not text or text.endswith("\n"):
        return text
    return text + "\n"


# ---------------------------------------------------------------------------
# Subcommand table
# ---------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Subcommand:
    """How one subcommand is validated, dispatched and rendered."""

    operation: str
    usage: str
    extract: Callable[[ParsedArgs], dict[str, Any]] = _no_params
    render: Callable[[Any, Mapping[str, Any]], str] = _render_text
    value_flags: Mapping[str, str] = dataclasses.field(default_factory=dict)


_CHECKOUT = Subcommand(
    operation="git.checkout",
    usage="usage: git checkout <branch> | git switch <branch>",
    extract=_checkout_params,
    render=_render_checkout,
)

SUBCOMMANDS: Mapping[str, Subcommand] = MappingProxyType(
    {
        "status": Subcommand(
            operation="git.status",
            usage="usage: git status\n\nShow working tree status.",
        ),
        "show": Subcommand(
            operation="git.show",
            usage="usage: git show <object>",
            extract=_show_params,
        ),
        "log": Subcommand(
            operation="git.log",
            usage="usage: git log [--oneline] [<path>]",
            extract=_log_params,
            value_flags={"-n": "depth", "--max-count": "depth"},
        ),
        "branch": Subcommand(
            operation="git.branch",
            usage="usage: git branch",
            render=_render_branches,
        ),
        "checkout": _CHECKOUT,
        "switch": _CHECKOUT,
        "diff": Subcommand(
            operation="git.diff",
            usage="usage: git diff [<path>]",
            extract=_diff_params,
        ),
        "add": Subcommand(
            operation="git.add",
            usage="usage: git add <pathspec>...",
            extract=_add_params,
        ),
        "commit": Subcommand(
            operation="git.commit",
            usage="usage: git commit -m <msg>",
            extract=_commit_params,
            value_flags={"-m": "message", "--message": "message"},
        ),
        "push": Subcommand(
            operation="git.push",
            usage="usage: git push [--force] [<remote>] [<branch>]",
            extract=_push_params,
        ),
        "pull": Subcommand(
            operation="git.pull",
            usage="usage: git pull [<remote>] [<branch>]",
            extract=_pull_params,
        ),
    }
)


# ---------------------------------------------------------------------------
# Async shell
# ---------------------------------------------------------------------------


def _require_rpc(ctx: InvocationContext) -> GitRpc:
    if ctx.rpc is None:
        raise RpcUnavailableError
    return ctx.rpc


async def execute(argv: Sequence[str], ctx: InvocationContext) -> CommandResult:
    """Interpret ``["git", <subcommand>, *args]`` against *ctx*.

    Never raises for invocation or engine failures; the outcome is always
    encoded in the returned result's ``code`` and streams.
    """
    sub = argv[1] if len(argv) > 1 else None
    args = list(argv[2:])

    if not sub or sub == "help" or sub in HELP_FLAGS or HELP_FLAGS.intersection(args):
        topic = (args[0] if args else None) if sub == "help" else sub
        return CommandResult(code=EXIT_SUCCESS, stdout=help_for(topic) + "\n")

    if sub in VERSION_FLAGS:
        return CommandResult(code=EXIT_SUCCESS, stdout=VERSION_TEXT + "\n")

    command = SUBCOMMANDS.get(sub)
    if command is None:
        return CommandResult(code=EXIT_USAGE, stderr=f"git: unknown subcommand: {sub}")

    label = f"git {sub}"
    try:
        rpc = _require_rpc(ctx)
        params = {
            "repoId": ctx.repo_ref.repo_id,
            **command.extract(parse_args(args, command.value_flags)),
        }
    except RpcUnavailableError as e:
        return CommandResult(code=EXIT_UNAVAILABLE, stderr=f"{label}: {error_message(e)}")
    except UsageError as e:
        return CommandResult(code=EXIT_USAGE, stderr=f"{label}: {e}")

    logger.debug("Dispatching %s with %s", command.operation, params)
    try:
        result = await rpc.call(command.operation, params)
    except Exception as e:
        logger.debug("%s rejected", command.operation, exc_info=True)
        return CommandResult(code=EXIT_FAILURE, stderr=f"{label}: {error_message(e)}")

    return CommandResult(code=EXIT_SUCCESS, stdout=terminate(command.render(result, params)))
