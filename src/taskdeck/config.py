"""XDG config loading."""

from __future__ import annotations

import logging as py_logging
import os
import sys
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .logging import normalize_log_level

if sys.version_info >= (3, 11):
    import tomllib
else:  # pragma: no cover
    import tomli as tomllib

logger = py_logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/taskdeck/config.toml").expanduser()
AGENT_BIN_ENV = "TASKDECK_AGENT_BIN"

DEFAULT_MAX_SESSIONS = 4
DEFAULT_OUTPUT_BUFFER_BYTES = 100 * 1024
DEFAULT_LINE_BUFFER_LINES = 100
DEFAULT_RESIZE_DEBOUNCE_MS = 100
DEFAULT_MIN_COLS = 10
DEFAULT_MIN_ROWS = 5
DEFAULT_COLS = 80
DEFAULT_ROWS = 24
DEFAULT_PARSER_BUFFER_BYTES = 1024 * 1024
DEFAULT_AGENT_EXECUTABLE = "claude"


class AppConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    log_level: str = "INFO"
    max_sessions: int = Field(default=DEFAULT_MAX_SESSIONS, ge=1, le=16)
    output_buffer_bytes: int = Field(default=DEFAULT_OUTPUT_BUFFER_BYTES, ge=1024)
    line_buffer_lines: int = Field(default=DEFAULT_LINE_BUFFER_LINES, ge=1)
    resize_debounce_ms: int = Field(default=DEFAULT_RESIZE_DEBOUNCE_MS, ge=0, le=5000)
    min_cols: int = Field(default=DEFAULT_MIN_COLS, ge=1)
    min_rows: int = Field(default=DEFAULT_MIN_ROWS, ge=1)
    default_cols: int = Field(default=DEFAULT_COLS, ge=1)
    default_rows: int = Field(default=DEFAULT_ROWS, ge=1)
    shell: str = ""
    terminal_name: str = "xterm-256color"
    agent_executable: str = DEFAULT_AGENT_EXECUTABLE
    agent_extra_args: list[str] = Field(default_factory=list)
    parser_buffer_bytes: int = Field(default=DEFAULT_PARSER_BUFFER_BYTES, ge=1024)

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        normalized = normalize_log_level(value)
        if normalized is None:
            raise ValueError(f"Invalid log level: {value}")
        return normalized

    @field_validator("agent_executable")
    @classmethod
    def _validate_agent_executable(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Agent executable cannot be empty")
        return value.strip()


def get_config_path(path: str | Path | None = None) -> Path:
    if path is None:
        return DEFAULT_CONFIG_PATH
    return Path(path).expanduser()


def _sanitize(raw: dict[str, object]) -> AppConfig:
    cfg = AppConfig()
    known = set(AppConfig.model_fields)
    for key, value in raw.items():
        if key not in known:
            logger.warning("Ignoring unknown config key=%s", key)
            continue
        try:
            setattr(cfg, key, value)
        except ValidationError as exc:
            logger.warning("Ignoring invalid config value key=%s errors=%s", key, exc.error_count())

    env_agent = os.getenv(AGENT_BIN_ENV, "").strip()
    if env_agent:
        cfg.agent_executable = env_agent
    return cfg


def load_config(path: str | Path | None = None) -> AppConfig:
    resolved = get_config_path(path)
    if not resolved.exists():
        return _sanitize({})
    try:
        with resolved.open("rb") as handle:
            raw = tomllib.load(handle)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Config unreadable path=%s error=%s", resolved, exc)
        return _sanitize({})
    if not isinstance(raw, dict):
        return _sanitize({})
    return _sanitize(raw)
