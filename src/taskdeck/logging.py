"""Logging setup for the ``taskdeck`` logger tree.

Every module logs through ``py_logging.getLogger(__name__)``; this module owns
the level vocabulary shared by the config file and ``--log-level`` and wires
the handlers once per process entrypoint.
"""

from __future__ import annotations

import logging as py_logging
import sys
from pathlib import Path
from typing import TextIO

LOG_LEVEL_NAMES = ("DEBUG", "INFO", "WARN", "ERROR")
LOG_LEVELS = {
    "DEBUG": py_logging.DEBUG,
    "INFO": py_logging.INFO,
    "WARN": py_logging.WARNING,
    "ERROR": py_logging.ERROR,
}
_LEVEL_ALIASES = {"WARNING": "WARN"}
DEFAULT_LOG_PATH = Path("~/.config/taskdeck/logs/taskdeck.log")
_FALLBACK_LOG_PATH = Path(".taskdeck/logs/taskdeck.log")
_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d [%(threadName)s] %(message)s"


def normalize_log_level(value: str) -> str | None:
    """Return the canonical level name for ``value`` (``warning`` -> ``WARN``), or None if unknown."""
    name = value.strip().upper()
    name = _LEVEL_ALIASES.get(name, name)
    return name if name in LOG_LEVELS else None


def default_log_path() -> Path:
    try:
        resolved = DEFAULT_LOG_PATH.expanduser()
    except RuntimeError:
        resolved = (Path.cwd() / _FALLBACK_LOG_PATH).resolve()
    else:
        if not resolved.is_absolute():
            resolved = resolved.resolve()
    return resolved


def _resolve_log_file(log_file: str | Path) -> Path:
    try:
        path = Path(log_file).expanduser()
    except RuntimeError:
        path = Path(log_file)
    return path if path.is_absolute() else path.resolve()


def configure_logging(
    level: str = "INFO",
    stream: TextIO | None = None,
    *,
    log_file: str | Path | None = None,
) -> py_logging.Logger:
    """Reset the ``taskdeck`` logger to one stream handler plus an optional DEBUG file handler.

    Unknown level names fall back to INFO. A log file that cannot be opened is
    reported on the stream handler and otherwise ignored.
    """
    resolved = LOG_LEVELS[normalize_log_level(level) or "INFO"]

    logger = py_logging.getLogger("taskdeck")
    logger.setLevel(resolved)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    formatter = py_logging.Formatter(_FORMAT)

    handler = py_logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    if log_file:
        log_path = _resolve_log_file(log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = py_logging.FileHandler(log_path, encoding="utf-8")
        except OSError as exc:
            logger.warning("Log file unavailable path=%s error=%s", log_path, exc)
        else:
            file_handler.setLevel(py_logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
