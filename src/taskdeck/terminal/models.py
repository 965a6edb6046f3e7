"""Terminal session domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


class PtyProcessLike(Protocol):
    """Byte-oriented view of a pseudo-terminal child process."""

    pid: int

    def read(self, size: int = 4096) -> bytes: ...

    def write(self, data: bytes) -> None: ...

    def resize(self, cols: int, rows: int) -> None: ...

    def terminate(self) -> None: ...

    def wait(self) -> int: ...


@dataclass(frozen=True)
class SpawnOptions:
    cwd: str | None = None
    env: dict[str, str] | None = None
    cols: int | None = None
    rows: int | None = None


@dataclass(frozen=True)
class SpawnResult:
    id: str
    pid: int


@dataclass(frozen=True)
class TerminalSnapshot:
    blob: str
    cursor_row: int
    cursor_col: int


@dataclass
class TerminalSession:
    session_id: str
    name: str
    command: tuple[str, ...]
    cwd: str
    process: PtyProcessLike
    cols: int
    rows: int
    env: dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid
