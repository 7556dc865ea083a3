"""Tests for callstack.config module."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest

from callstack.config import (
    Config,
    OutputFormat,
    configure_logging,
    get_config,
    load_config,
    parse_env_file,
    set_config,
)


class TestParseEnvFile:
    """Tests for parse_env_file."""

    def test_parses_formats(self, tmp_path: Path) -> None:
        env = tmp_path / ".env"
        env.write_text(
            "# comment\n"
            "\n"
            "CALLSTACK_OUTPUT_FORMAT=json\n"
            'CALLSTACK_FILTERED_TITLE="hidden call"\n'
            "export CALLSTACK_LOG_LEVEL='info'\n"
            "NOT_A_PAIR\n",
            encoding="utf-8",
        )

        assert parse_env_file(env) == {
            "CALLSTACK_OUTPUT_FORMAT": "json",
            "CALLSTACK_FILTERED_TITLE": "hidden call",
            "CALLSTACK_LOG_LEVEL": "info",
        }

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert parse_env_file(tmp_path / "nope.env") == {}


class TestLoadConfig:
    """Tests for load_config precedence and parsing."""

    def test_defaults(self, tmp_path: Path) -> None:
        with patch.dict("os.environ", {}, clear=True):
            config = load_config(env_file=tmp_path / "absent.env")

        assert config.registry_file is None
        assert config.output_format == OutputFormat.TEXT
        assert config.log_level == "WARNING"
        assert config.hidden_applications == []
        assert config.filtered_title == "..."
        assert config.env_file_path is None

    def test_env_vars(self, tmp_path: Path) -> None:
        env = {
            "CALLSTACK_REGISTRY_FILE": "/etc/callstack/registry.yaml",
            "CALLSTACK_OUTPUT_FORMAT": "JSON",
            "CALLSTACK_HIDDEN_APPLICATIONS": "billing, audit ,",
        }
        with patch.dict("os.environ", env, clear=True):
            config = load_config(env_file=tmp_path / "absent.env")

        assert config.registry_file == Path("/etc/callstack/registry.yaml")
        assert config.output_format == OutputFormat.JSON
        assert config.hidden_applications == ["billing", "audit"]
        assert config.is_hidden("audit")
        assert not config.is_hidden("front")

    def test_env_file_overrides_env_vars(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("CALLSTACK_OUTPUT_FORMAT=json\n", encoding="utf-8")

        with patch.dict("os.environ", {"CALLSTACK_OUTPUT_FORMAT": "text"}, clear=True):
            config = load_config(env_file=env_file)

        assert config.output_format == OutputFormat.JSON
        assert config.env_file_path == env_file

    def test_cli_overrides_env_file(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(
            "CALLSTACK_OUTPUT_FORMAT=json\nCALLSTACK_HIDDEN_APPLICATIONS=billing\n",
            encoding="utf-8",
        )

        with patch.dict("os.environ", {}, clear=True):
            config = load_config(
                env_file=env_file,
                cli_overrides={
                    "output_format": "text",
                    "hidden_applications": ["audit"],
                    "log_level": "debug",
                    "filtered_title": None,
                },
            )

        assert config.output_format == OutputFormat.TEXT
        assert config.hidden_applications == ["audit"]
        assert config.log_level == "DEBUG"
        assert config.filtered_title == "..."

    def test_invalid_output_format(self, tmp_path: Path) -> None:
        with patch.dict("os.environ", {"CALLSTACK_OUTPUT_FORMAT": "xml"}, clear=True):
            with pytest.raises(ValueError, match="Invalid output format"):
                load_config(env_file=tmp_path / "absent.env")

    def test_invalid_log_level(self, tmp_path: Path) -> None:
        with patch.dict("os.environ", {}, clear=True):
            with pytest.raises(ValueError, match="Invalid log level"):
                load_config(env_file=tmp_path / "absent.env", cli_overrides={"log_level": "loud"})

    def test_env_file_discovered_upward(self, tmp_path: Path) -> None:
        (tmp_path / ".git").mkdir()
        (tmp_path / ".env").write_text("CALLSTACK_FILTERED_TITLE=found\n", encoding="utf-8")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)

        with patch.dict("os.environ", {}, clear=True), patch("pathlib.Path.cwd", return_value=nested):
            config = load_config()

        assert config.filtered_title == "found"
        assert config.env_file_path == (tmp_path / ".env").resolve()


class TestConfigHelpers:
    """Tests for global config and logging setup."""

    def test_to_dict(self) -> None:
        config = Config(registry_file=Path("r.yaml"), output_format=OutputFormat.JSON)

        data = config.to_dict()

        assert data["registry_file"] == "r.yaml"
        assert data["output_format"] == "json"
        assert data["env_file_path"] is None

    def test_set_and_get_config(self) -> None:
        config = Config(filtered_title="x")
        set_config(config)

        assert get_config() is config

    def test_configure_logging_replaces_handler(self) -> None:
        logger = logging.getLogger("callstack")

        configure_logging("INFO")
        configure_logging("DEBUG")

        own = [h for h in logger.handlers if getattr(h, "_callstack_handler", False)]
        assert len(own) == 1
        assert logger.level == logging.DEBUG
