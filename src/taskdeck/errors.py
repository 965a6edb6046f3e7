"""Deterministic error model and exit code contract."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum


class ExitCode(IntEnum):
    SUCCESS = 0
    INVALID_ARGS = 2
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4
    VALIDATION_ERROR = 7
    UNSUPPORTED_PLATFORM = 8


class ErrorKind(str, Enum):
    ALREADY_EXISTS = "already_exists"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    NOT_FOUND = "not_found"
    INVALID_DIMENSIONS = "invalid_dimensions"
    INVALID_ARGUMENTS = "invalid_arguments"
    START_FAILURE = "start_failure"
    SIGNAL_FAILURE = "signal_failure"
    RUNTIME = "runtime"


_DEFAULT_CODES = {
    ErrorKind.ALREADY_EXISTS: ExitCode.VALIDATION_ERROR,
    ErrorKind.CAPACITY_EXCEEDED: ExitCode.VALIDATION_ERROR,
    ErrorKind.NOT_FOUND: ExitCode.VALIDATION_ERROR,
    ErrorKind.INVALID_DIMENSIONS: ExitCode.VALIDATION_ERROR,
    ErrorKind.INVALID_ARGUMENTS: ExitCode.INVALID_ARGS,
    ErrorKind.START_FAILURE: ExitCode.RUNTIME_ERROR,
    ErrorKind.SIGNAL_FAILURE: ExitCode.RUNTIME_ERROR,
    ErrorKind.RUNTIME: ExitCode.RUNTIME_ERROR,
}


def default_exit_code(kind: ErrorKind) -> ExitCode:
    return _DEFAULT_CODES.get(kind, ExitCode.RUNTIME_ERROR)


@dataclass
class TaskDeckError(Exception):
    message: str
    kind: ErrorKind = ErrorKind.RUNTIME
    hint: str = ""
    code: ExitCode | None = None

    def __post_init__(self) -> None:
        if self.code is None:
            self.code = default_exit_code(self.kind)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} Hint: {self.hint}"
        return self.message


def user_facing_error(message: str, *, hint: str = "") -> str:
    if hint:
        return f"Error: {message}. Next step: {hint}"
    return f"Error: {message}."
