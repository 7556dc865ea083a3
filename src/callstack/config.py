"""Callstack configuration management.

Handles:
- .env file loading with precedence: CLI > .env > env vars
- Output format and log level selection
- Which applications are rendered as hidden rows
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

ENV_PREFIX = "CALLSTACK_"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class OutputFormat(str, Enum):
    """How the record set is written."""

    JSON = "json"
    TEXT = "text"


@dataclass
class Config:
    """Callstack runtime configuration."""

    registry_file: Path | None = None
    output_format: OutputFormat = OutputFormat.TEXT
    log_level: str = "WARNING"
    hidden_applications: list[str] = field(default_factory=list)
    filtered_title: str = "..."
    env_file_path: Path | None = None

    def is_hidden(self, application_id: str) -> bool:
        """Check if rows of this application are rendered hidden."""
        return application_id in self.hidden_applications

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "registry_file": str(self.registry_file) if self.registry_file else None,
            "output_format": self.output_format.value,
            "log_level": self.log_level,
            "hidden_applications": self.hidden_applications,
            "filtered_title": self.filtered_title,
            "env_file_path": str(self.env_file_path) if self.env_file_path else None,
        }


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def parse_env_file(env_file: Path) -> dict[str, str]:
    """Read KEY=value pairs from a .env file.

    Blank lines, ``#`` comments and lines without ``=`` are skipped. An
    ``export`` prefix is allowed and one level of matching quotes is removed
    from values. A missing file gives an empty mapping.
    """
    if not env_file.exists():
        return {}

    values: dict[str, str] = {}
    for raw in env_file.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = _unquote(value.strip())
    return values


def _find_env_file(start: Path | None = None) -> Path | None:
    """Nearest .env at or above `start` (default: cwd).

    The search does not go past a git checkout root, the home directory or
    the filesystem root.
    """
    home = Path.home().resolve()
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / ".env"
        if candidate.exists():
            return candidate
        if candidate_dir == home or (candidate_dir / ".git").exists():
            return None
    return None


def _split_list(value: str) -> list[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


def _parse_log_level(value: str) -> str:
    level = value.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ValueError(f"Invalid log level: {value}")
    return level


def load_config(
    env_file: str | Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> Config:
    """Load configuration with precedence: CLI > .env > env vars.

    Args:
        env_file: Path to .env file to load (auto-discovered when omitted)
        cli_overrides: Values given on the command line; None values are ignored

    Returns:
        Loaded Config instance

    Raises:
        ValueError: If the output format or log level is not recognized
    """
    cli_overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}

    # Step 1: Load environment variables as base
    env_vars = dict(os.environ)

    # Step 2: Load .env file and merge (overrides env vars)
    env_file_path = Path(env_file) if env_file else _find_env_file()
    if env_file_path and env_file_path.exists():
        env_vars.update(parse_env_file(env_file_path))

    def setting(name: str, default: str) -> str:
        return env_vars.get(f"{ENV_PREFIX}{name.upper()}", default)

    # Step 3: Resolve values, CLI last
    registry_file_str = cli_overrides.get("registry_file") or setting("registry_file", "")
    registry_file = Path(registry_file_str) if registry_file_str else None

    output_format_str = str(cli_overrides.get("output_format") or setting("output_format", "text"))
    try:
        output_format = OutputFormat(output_format_str.lower())
    except ValueError as e:
        raise ValueError(
            f"Invalid output format: {output_format_str} (use json or text)"
        ) from e

    log_level = _parse_log_level(str(cli_overrides.get("log_level") or setting("log_level", "WARNING")))

    if "hidden_applications" in cli_overrides:
        hidden_applications = list(cli_overrides["hidden_applications"])
    else:
        hidden_applications = _split_list(setting("hidden_applications", ""))

    filtered_title = cli_overrides.get("filtered_title") or setting("filtered_title", "...")

    return Config(
        registry_file=registry_file,
        output_format=output_format,
        log_level=log_level,
        hidden_applications=hidden_applications,
        filtered_title=filtered_title,
        env_file_path=env_file_path if env_file_path and env_file_path.exists() else None,
    )


def configure_logging(level: str = "WARNING") -> None:
    """Send callstack log records to stderr at `level`.

    Only the "callstack" logger is touched, so embedding applications keep
    their own logging setup.
    """
    logger = logging.getLogger("callstack")
    logger.setLevel(level)
    # Replace rather than stack handlers when called more than once
    for old in [h for h in logger.handlers if getattr(h, "_callstack_handler", False)]:
        logger.removeHandler(old)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._callstack_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


# Global config instance (set by CLI)
_config: Config | None = None


def get_config() -> Config:
    """Get the current configuration.

    Raises:
        RuntimeError: If config not initialized (call load_config first)
    """
    if _config is None:
        raise RuntimeError("Config not initialized. Call load_config() first.")
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration."""
    global _config
    _config = config
