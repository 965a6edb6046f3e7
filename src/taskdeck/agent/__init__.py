"""Headless coding-agent runs and stream-json status parsing."""

from .models import (
    PhaseScoping,
    RunOutcome,
    StartTaskOptions,
    StatusEvent,
    StatusKind,
    TaskStartResult,
    ToolUseRecord,
    terminal_id_for,
)
from .parser import StreamEventParser
from .supervisor import AgentProcessSupervisor
from .task_store import InMemoryTaskStore, TaskLogEntry, TaskStore

__all__ = [
    "AgentProcessSupervisor",
    "InMemoryTaskStore",
    "PhaseScoping",
    "RunOutcome",
    "StartTaskOptions",
    "StatusEvent",
    "StatusKind",
    "StreamEventParser",
    "TaskLogEntry",
    "TaskStartResult",
    "TaskStore",
    "terminal_id_for",
    "ToolUseRecord",
]
