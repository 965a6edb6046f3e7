"""Agent run domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StatusKind(str, Enum):
    TOOL_START = "tool_start"
    TOOL_END = "tool_end"
    THINKING = "thinking"
    TEXT = "text"
    ERROR = "error"
    COMMAND_FAILED = "command_failed"
    SYSTEM = "system"
    AWAITING_INPUT = "awaiting_input"


class RunOutcome(str, Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    PAUSED = "PAUSED"


@dataclass(frozen=True)
class StatusEvent:
    kind: StatusKind
    message: str
    timestamp: int
    tool: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.tool is not None:
            payload["tool"] = self.tool
        return payload


@dataclass(frozen=True)
class ToolUseRecord:
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PhaseScoping:
    phase: str = ""
    feature: str = ""
    in_scope: tuple[str, ...] = ()
    out_of_scope: tuple[str, ...] = ()

    @property
    def empty(self) -> bool:
        return not (self.phase or self.feature or self.in_scope or self.out_of_scope)


@dataclass(frozen=True)
class StartTaskOptions:
    task_id: str
    title: str
    project_path: str
    session_id: str
    description: str = ""
    max_turns: int | None = None
    max_budget_usd: float | None = None
    allowed_tools: tuple[str, ...] = ()
    append_system_prompt: str = ""
    resume_session_id: str = ""
    scoping: PhaseScoping | None = None


@dataclass(frozen=True)
class TaskStartResult:
    terminal_id: str
    session_id: str


def terminal_id_for(task_id: str) -> str:
    return f"agent-{task_id}"
