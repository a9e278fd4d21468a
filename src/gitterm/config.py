"""Terminal configuration loading and validation.

Loads ``gitterm.json`` configuration files, in the shape the UI sends to
the terminal back-end (camelCase keys). Supports environment variable
interpolation in string values (``${VAR}`` syntax).

Design follows Function Core / Imperative Shell:
- Pure functions: interpolate_env, parse_config
- I/O shell: load_config (reads file)
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gitterm.errors import GittermError
from gitterm.models import OutputLimit, RepoRef

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "gitterm.json"

_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(GittermError):
    """Configuration values failed validation."""


class TerminalConfig(BaseModel):
    """Session configuration for one terminal."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    repo_ref: RepoRef = Field(default_factory=RepoRef, alias="repoRef")
    url_allowlist: list[str] = Field(
        default_factory=list,
        alias="urlAllowlist",
        description="URL prefixes remote fetches may use. Carried for the UI; unused here.",
    )
    output_limit: OutputLimit = Field(default_factory=OutputLimit, alias="outputLimit")
    initial_cwd: str = Field(default="/", alias="initialCwd")


def interpolate_env(value: str) -> str:
    """Replace ${VAR} patterns with environment variable values.

    Missing variables are replaced with empty strings and a warning is logged.
    """

    def _replace(match: re.Match[str]) -> str:
        var_name = match.group(1)
        result = os.environ.get(var_name)
        if result is None:
            logger.warning("Environment variable %s not set, using empty string", var_name)
            return ""
        return result

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate(raw: Any) -> Any:
    if isinstance(raw, str):
        return interpolate_env(raw)
    if isinstance(raw, dict):
        return {k: _interpolate(v) for k, v in raw.items()}
    if isinstance(raw, list):
        return [_interpolate(v) for v in raw]
    return raw


def parse_config(raw: dict) -> TerminalConfig:
    """Parse a raw JSON dict into a TerminalConfig, applying env interpolation.

    Expected format:

    .. code-block:: json

        {
            "repoRef": {"relay": "wss://relay.example", "repoId": "${REPO_ID}"},
            "outputLimit": {"bytes": 1000000, "lines": 10000, "timeMs": 60000},
            "initialCwd": "/"
        }

    Raises:
        ConfigError: If the values do not validate.
    """
    try:
        return TerminalConfig.model_validate(_interpolate(raw))
    except ValidationError as e:
        msg = f"Invalid terminal configuration: {e}"
        raise ConfigError(msg) from e


def load_config(
    config_path: str | Path | None = None, project_root: str | Path = "."
) -> TerminalConfig:
    """Load terminal configuration from a JSON file.

    If config_path is None, looks for gitterm.json in the project root.
    Returns a default TerminalConfig if no config file is found or it cannot
    be read; invalid values still raise ConfigError.
    """
    if config_path is not None:
        path = Path(config_path)
    else:
        path = Path(project_root) / DEFAULT_CONFIG_FILENAME

    if not path.is_file():
        logger.debug("No terminal config found at %s", path)
        return TerminalConfig()

    try:
        raw = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to read terminal config at %s: %s", path, e)
        return TerminalConfig()

    if not isinstance(raw, dict):
        logger.warning("Ignoring terminal config at %s: expected object, got %s", path, type(raw))
        return TerminalConfig()

    logger.info("Loaded terminal config from %s", path)
    return parse_config(raw)
