"""Persistence contract for agent run outcomes."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from taskdeck.agent.models import RunOutcome


class TaskStore(Protocol):
    def finish_run(
        self,
        task_id: str,
        *,
        status: RunOutcome,
        exit_code: int,
        completed_at: datetime,
    ) -> None: ...

    def append_log(
        self,
        task_id: str,
        *,
        level: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None: ...


@dataclass(frozen=True)
class TaskLogEntry:
    task_id: str
    level: str
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class TaskRecord:
    task_id: str
    status: RunOutcome | None = None
    exit_code: int | None = None
    completed_at: datetime | None = None
    terminal_id: str | None = None
    session_id: str | None = None


class InMemoryTaskStore:
    """Process-local task store used by the CLI and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, TaskRecord] = {}
        self._logs: list[TaskLogEntry] = []

    def attach_run(self, task_id: str, *, terminal_id: str, session_id: str) -> None:
        with self._lock:
            record = self._records.setdefault(task_id, TaskRecord(task_id=task_id))
            record.terminal_id = terminal_id
            record.session_id = session_id

    def finish_run(
        self,
        task_id: str,
        *,
        status: RunOutcome,
        exit_code: int,
        completed_at: datetime,
    ) -> None:
        with self._lock:
            record = self._records.setdefault(task_id, TaskRecord(task_id=task_id))
            record.status = status
            record.exit_code = exit_code
            record.completed_at = completed_at
            record.terminal_id = None
            record.session_id = None

    def append_log(
        self,
        task_id: str,
        *,
        level: str,
        message: str,
        metadata: dict[str, Any],
    ) -> None:
        with self._lock:
            self._logs.append(
                TaskLogEntry(task_id=task_id, level=level, message=message, metadata=dict(metadata))
            )

    def get(self, task_id: str) -> TaskRecord | None:
        with self._lock:
            return self._records.get(task_id)

    def logs(self, task_id: str | None = None) -> list[TaskLogEntry]:
        with self._lock:
            return [entry for entry in self._logs if task_id is None or entry.task_id == task_id]
