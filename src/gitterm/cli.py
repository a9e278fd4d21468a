"""CLI entry point for gitterm.

Provides ``gitterm exec`` (run one command line) and ``gitterm shell``
(interactive session) over a local working copy.

Follows Function Core / Imperative Shell:
- Pure functions: split_command_line, format_prompt, format_result_json
- Session setup: build_shell
- Click commands: main (logging and tracing setup), exec_command, shell
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from gitterm.config import ConfigError, load_config
from gitterm.engine import SubprocessGitRpc
from gitterm.fs import LocalFileSystem
from gitterm.models import InvocationContext, ProgressEvent
from gitterm.shell import Shell
from gitterm.tracing import GITTERM_OTEL_EXPORTER_ENV, init_tracing, shutdown_tracing

if TYPE_CHECKING:
    from gitterm.models import CommandResult

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 3

DEFAULT_REPO_ID = "local"
_EXIT_WORDS = frozenset({"exit", "quit"})


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------


def split_command_line(line: str) -> list[str]:
    """Split a typed command line into argv using shell quoting rules.

    Raises:
        ValueError: On unbalanced quotes.
    """
    return shlex.split(line)


def format_prompt(cwd: str) -> str:
    return f"{cwd} $"


def format_result_json(result: CommandResult) -> str:
    """Serialize a CommandResult, omitting absent streams."""
    return result.model_dump_json(exclude_none=True)


# ---------------------------------------------------------------------------
# Session setup
# ---------------------------------------------------------------------------


def _log_progress(event: ProgressEvent) -> None:
    logger.info("%s: %s", event.phase, event.note or event.loaded)


def build_shell(
    repo: Path,
    repo_id: str | None = None,
    root: Path | None = None,
    config_path: Path | None = None,
) -> Shell:
    """Wire a Shell to the git working copy at *repo*.

    The file-system builtins are confined to *root* (default: *repo*).

    Raises:
        ConfigError: If the configuration file holds invalid values.
    """
    config = load_config(config_path, project_root=repo)
    repo_ref = config.repo_ref
    repo_id = repo_id or repo_ref.repo_id or DEFAULT_REPO_ID
    if repo_ref.repo_id != repo_id:
        repo_ref = repo_ref.model_copy(update={"repo_id": repo_id})

    rpc = SubprocessGitRpc({repo_id: repo}, on_progress=_log_progress)
    ctx = InvocationContext(repo_ref=repo_ref, on_progress=_log_progress, rpc=rpc)
    return Shell(
        ctx,
        LocalFileSystem(root or repo),
        limit=config.output_limit,
        cwd=config.initial_cwd,
    )


def _echo_result(result: CommandResult, output_json: bool) -> None:
    if output_json:
        click.echo(format_result_json(result))
        return
    if result.stdout:
        click.echo(result.stdout, nl=False)
    if result.stderr:
        click.echo(result.stderr, nl=False, err=True)


def _session_options(func):
    """Attach the options shared by ``exec`` and ``shell``."""
    options = [
        click.option(
            "--repo",
            type=click.Path(exists=True, file_okay=False, path_type=Path),
            default=".",
            show_default=True,
            help="Git working copy the git subcommands operate on.",
        ),
        click.option("--repo-id", envvar="GITTERM_REPO_ID", default=None, help="Repository id."),
        click.option(
            "--root",
            type=click.Path(exists=True, file_okay=False, path_type=Path),
            default=None,
            help="Sandbox directory for file builtins. Defaults to --repo.",
        ),
        click.option(
            "--config",
            "config_path",
            envvar="GITTERM_CONFIG",
            type=click.Path(dir_okay=False, path_type=Path),
            default=None,
            help="Terminal configuration JSON. Defaults to <repo>/gitterm.json.",
        ),
        click.option("--json", "output_json", is_flag=True, help="Print results as JSON."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_or_exit(
    repo: Path, repo_id: str | None, root: Path | None, config_path: Path | None
) -> Shell:
    try:
        return build_shell(repo.resolve(), repo_id, root, config_path)
    except ConfigError as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_CONFIG_ERROR)


# ---------------------------------------------------------------------------
# Click commands
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="gitterm")
@click.option(
    "--log-level",
    envvar="GITTERM_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
@click.pass_context
def main(ctx: click.Context, log_level: str) -> None:
    """gitterm: a sandboxed terminal with a git command interpreter."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        init_tracing()
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=GITTERM_OTEL_EXPORTER_ENV) from e
    ctx.call_on_close(shutdown_tracing)


@main.command(
    name="exec",
    context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False},
)
@_session_options
@click.argument("argv", nargs=-1, type=click.UNPROCESSED, required=True)
def exec_command(
    repo: Path,
    repo_id: str | None,
    root: Path | None,
    config_path: Path | None,
    output_json: bool,
    argv: tuple[str, ...],
) -> None:
    """Run one command line, e.g. ``gitterm exec git log --oneline -n 5``."""
    session = _build_or_exit(repo, repo_id, root, config_path)
    result = asyncio.run(session.run(list(argv)))
    _echo_result(result, output_json)
    sys.exit(result.code)


@main.command()
@_session_options
def shell(
    repo: Path,
    repo_id: str | None,
    root: Path | None,
    config_path: Path | None,
    output_json: bool,
) -> None:
    """Start an interactive session. ``exit``, ``quit`` or EOF leave it."""
    session = _build_or_exit(repo, repo_id, root, config_path)
    last_code = EXIT_SUCCESS

    with asyncio.Runner() as runner:
        while True:
            try:
                line = click.prompt(
                    format_prompt(session.cwd),
                    default="",
                    show_default=False,
                    prompt_suffix=" ",
                )
            except click.Abort:
                click.echo()
                break

            try:
                argv = split_command_line(line)
            except ValueError as e:
                click.echo(f"gitterm: {e}", err=True)
                last_code = EXIT_FAILURE
                continue

            if not argv:
                continue
            if argv[0] in _EXIT_WORDS:
                break

            result = runner.run(session.run(argv))
            _echo_result(result, output_json)
            last_code = result.code

    sys.exit(last_code)
