from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from taskdeck.config import AGENT_BIN_ENV, AppConfig, get_config_path, load_config


@pytest.fixture(autouse=True)
def _clear_agent_env(monkeypatch) -> None:
    monkeypatch.delenv(AGENT_BIN_ENV, raising=False)


def test_load_defaults_when_config_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "config.toml")

    assert cfg.max_sessions == 4
    assert cfg.output_buffer_bytes == 100 * 1024
    assert cfg.line_buffer_lines == 100
    assert cfg.resize_debounce_ms == 100
    assert (cfg.min_cols, cfg.min_rows) == (10, 5)
    assert cfg.parser_buffer_bytes == 1024 * 1024
    assert cfg.agent_executable == "claude"
    assert cfg.log_level == "INFO"


def test_load_config_applies_valid_keys(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                'log_level = "debug"',
                "max_sessions = 2",
                'shell = "/bin/zsh"',
                'agent_extra_args = ["--model", "sonnet"]',
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg.log_level == "DEBUG"
    assert cfg.max_sessions == 2
    assert cfg.shell == "/bin/zsh"
    assert cfg.agent_extra_args == ["--model", "sonnet"]


def test_invalid_values_are_skipped_individually(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        "\n".join(
            [
                "max_sessions = 99",
                "resize_debounce_ms = 250",
                'log_level = "chatty"',
                'mystery = "value"',
            ]
        ),
        encoding="utf-8",
    )

    cfg = load_config(path)

    assert cfg.max_sessions == 4
    assert cfg.resize_debounce_ms == 250
    assert cfg.log_level == "INFO"


def test_unreadable_toml_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("max_sessions = [broken", encoding="utf-8")

    assert load_config(path) == AppConfig()


def test_environment_overrides_agent_executable(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv(AGENT_BIN_ENV, "/opt/agent/bin/claude")

    cfg = load_config(tmp_path / "missing.toml")

    assert cfg.agent_executable == "/opt/agent/bin/claude"


def test_assignment_is_validated() -> None:
    cfg = AppConfig()

    with pytest.raises(ValidationError):
        cfg.output_buffer_bytes = 10
    with pytest.raises(ValidationError):
        cfg.agent_executable = "   "


def test_get_config_path_expands_user() -> None:
    assert get_config_path("~/custom.toml").is_absolute()
    assert get_config_path().name == "config.toml"


def test_log_level_aliases_share_cli_vocabulary() -> None:
    assert AppConfig(log_level="warning").log_level == "WARN"
    assert AppConfig(log_level=" error ").log_level == "ERROR"
    with pytest.raises(ValidationError):
        AppConfig(log_level="CRITICAL")
