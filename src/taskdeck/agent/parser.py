"""Incremental parser for the agent's line-delimited JSON event stream.

The parser is fed raw stdout text in arbitrary chunks and turns complete
lines into :class:`~taskdeck.agent.models.StatusEvent` values. Malformed
input is never an error: non-JSON lines are ordinary terminal chatter and
are skipped, and an oversized pending line resets the buffer.
"""

from __future__ import annotations

import json
import logging as py_logging
import re
import time
from collections.abc import Callable
from typing import Any

from taskdeck.agent.models import StatusEvent, StatusKind, ToolUseRecord
from taskdeck.agent.tool_messages import format_tool_message, truncate_command
from taskdeck.config import DEFAULT_PARSER_BUFFER_BYTES
from taskdeck.security import PREVIEW_TRUNCATE_LIMIT, truncate_log

logger = py_logging.getLogger(__name__)

LINE_BREAK = re.compile(r"\r\n|\n|\r")
CONTROL_SEQUENCE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-_]"
    r"|[\x00-\x08\x0b-\x1f\x7f]"
)
EXIT_CODE = re.compile(r"Exit code[:\s]+(-?\d+)", re.IGNORECASE)

AWAITING_INPUT_PLACEHOLDER = "Waiting for your input"
THINKING_MESSAGE = "Thinking..."
FILTERED_SYSTEM_SUBTYPES = frozenset(
    {"init", "hook_started", "hook_response", "compact_boundary", "status"}
)

JsonObject = dict[str, Any]


def strip_control_sequences(text: str) -> str:
    return CONTROL_SEQUENCE.sub("", text)


def extract_question(tool_input: Any) -> str:
    """First question text of an ``AskUserQuestion`` input, or the placeholder."""
    if not isinstance(tool_input, dict):
        return AWAITING_INPUT_PLACEHOLDER
    questions = tool_input.get("questions")
    if not isinstance(questions, list) or not questions:
        return AWAITING_INPUT_PLACEHOLDER
    first = questions[0]
    if not isinstance(first, dict):
        return AWAITING_INPUT_PLACEHOLDER
    question = first.get("question")
    if not isinstance(question, str) or not question.strip():
        return AWAITING_INPUT_PLACEHOLDER
    return question.strip()


def _blocks(message: Any) -> list[JsonObject]:
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def _result_text(block: JsonObject) -> str:
    content = block.get("content")
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            item.get("text", "")
            for item in content
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        ]
        return "\n".join(parts)
    return ""


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


def system_message(data: JsonObject) -> str | None:
    """User-facing text of a ``system`` event, or None for internal chatter."""
    subtype = data.get("subtype")
    subtype = subtype if isinstance(subtype, str) else ""
    if subtype in FILTERED_SYSTEM_SUBTYPES or "hook" in subtype:
        return None
    for key in ("message", "content", "text"):
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            message = value.strip()
            break
    else:
        return None
    if message.startswith(("{", "[")):
        return None
    return message


class StreamEventParser:
    def __init__(
        self,
        *,
        max_buffer_size: int = DEFAULT_PARSER_BUFFER_BYTES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_buffer_size = max_buffer_size
        self._clock = clock
        self._buffer = ""
        self._tool_uses: dict[str, ToolUseRecord] = {}
        self._last_tool_use: ToolUseRecord | None = None
        self._handlers: dict[str, Callable[[JsonObject], list[StatusEvent]]] = {
            "assistant": self._on_assistant,
            "user": self._on_user,
            "system": self._on_system,
            "result": self._on_result,
            "stream_event": self._on_stream_event,
        }

    @property
    def pending(self) -> str:
        return self._buffer

    @property
    def pending_tool_uses(self) -> int:
        return len(self._tool_uses)

    def parse(self, chunk: str) -> list[StatusEvent]:
        if not chunk:
            return []
        self._buffer += chunk
        if len(self._buffer) > self.max_buffer_size:
            logger.warning(
                "Stream buffer exceeded %s characters; discarding pending output",
                self.max_buffer_size,
            )
            self._buffer = ""
            return []

        lines = LINE_BREAK.split(self._buffer)
        self._buffer = lines.pop()
        events: list[StatusEvent] = []
        for line in lines:
            events.extend(self._parse_line(line))
        return events

    def flush(self) -> list[StatusEvent]:
        line, self._buffer = self._buffer, ""
        return self._parse_line(line)

    def reset(self) -> None:
        self._buffer = ""
        self._tool_uses.clear()
        self._last_tool_use = None

    def _parse_line(self, line: str) -> list[StatusEvent]:
        cleaned = strip_control_sequences(line).strip()
        if not cleaned.startswith("{"):
            return []
        try:
            data = json.loads(cleaned)
        except ValueError:
            return []
        if not isinstance(data, dict):
            return []
        event_type = data.get("type")
        handler = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if handler is None:
            return []
        try:
            return handler(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.debug("Skipping malformed stream event type=%s error=%s", data.get("type"), exc)
            return []

    def _event(self, kind: StatusKind, message: str, tool: str | None = None) -> StatusEvent:
        return StatusEvent(
            kind=kind,
            message=message,
            timestamp=int(self._clock() * 1000),
            tool=tool,
        )

    def _record_tool_use(self, block: JsonObject) -> ToolUseRecord:
        tool_id = block.get("id")
        name = block.get("name")
        tool_input = block.get("input")
        record = ToolUseRecord(
            id=tool_id if isinstance(tool_id, str) else "",
            name=name if isinstance(name, str) and name else "unknown",
            input=tool_input if isinstance(tool_input, dict) else {},
        )
        if record.id:
            self._tool_uses[record.id] = record
        self._last_tool_use = record
        return record

    def _resolve_tool_use(self, tool_use_id: Any) -> ToolUseRecord | None:
        if isinstance(tool_use_id, str) and tool_use_id in self._tool_uses:
            record = self._tool_uses.pop(tool_use_id)
            if self._last_tool_use is record:
                self._last_tool_use = None
            return record
        if isinstance(tool_use_id, str) and tool_use_id:
            return None
        record = self._last_tool_use
        self._last_tool_use = None
        if record is not None and record.id:
            self._tool_uses.pop(record.id, None)
        return record

    def _on_assistant(self, data: JsonObject) -> list[StatusEvent]:
        last_tool: ToolUseRecord | None = None
        text = ""
        thinking = False
        for block in _blocks(data.get("message")):
            block_type = block.get("type")
            if block_type == "tool_use":
                last_tool = self._record_tool_use(block)
            elif block_type == "text" and not text:
                value = block.get("text")
                if isinstance(value, str):
                    text = value.strip()
            elif block_type == "thinking":
                thinking = True

        if last_tool is not None:
            message = format_tool_message(last_tool.name, last_tool.input)
            return [self._event(StatusKind.TOOL_START, message, tool=last_tool.name)]
        if text:
            return [self._event(StatusKind.TEXT, truncate_log(text, PREVIEW_TRUNCATE_LIMIT))]
        if thinking:
            return [self._event(StatusKind.THINKING, THINKING_MESSAGE)]
        return []

    def _on_user(self, data: JsonObject) -> list[StatusEvent]:
        events: list[StatusEvent] = []
        for block in _blocks(data.get("message")):
            if block.get("type") != "tool_result":
                continue
            record = self._resolve_tool_use(block.get("tool_use_id"))
            if block.get("is_error") is not True:
                continue
            events.append(self._tool_error_event(record, _result_text(block)))
        return events

    def _tool_error_event(self, record: ToolUseRecord | None, text: str) -> StatusEvent:
        tool = record.name if record is not None else None
        if tool == "AskUserQuestion":
            return self._event(
                StatusKind.AWAITING_INPUT,
                extract_question(record.input),
                tool=tool,
            )
        if tool == "Bash":
            match = EXIT_CODE.search(text)
            if match and int(match.group(1)) != 0:
                command = record.input.get("command")
                message = f"Command failed (exit {match.group(1)})"
                if isinstance(command, str) and command.strip():
                    message = f"{message}: {truncate_command(command.strip())}"
                return self._event(StatusKind.COMMAND_FAILED, message, tool=tool)

        detail = _first_line(text)
        message = f"{tool or 'Tool'} failed"
        if detail:
            message = f"{message}: {truncate_log(detail, PREVIEW_TRUNCATE_LIMIT)}"
        return self._event(StatusKind.ERROR, message, tool=tool)

    def _on_system(self, data: JsonObject) -> list[StatusEvent]:
        message = system_message(data)
        if message is None:
            return []
        return [self._event(StatusKind.SYSTEM, truncate_log(message, PREVIEW_TRUNCATE_LIMIT))]

    def _on_result(self, data: JsonObject) -> list[StatusEvent]:
        subtype = data.get("subtype")
        if subtype == "success" and data.get("is_error") is not True:
            return [self._event(StatusKind.SYSTEM, "Task completed")]
        if subtype == "error_max_turns":
            return [self._event(StatusKind.ERROR, "Reached the maximum number of turns")]
        if (isinstance(subtype, str) and subtype.startswith("error")) or data.get("is_error") is True:
            return [self._event(StatusKind.ERROR, "Agent run ended with an error")]
        return []

    def _on_stream_event(self, data: JsonObject) -> list[StatusEvent]:
        event = data.get("event")
        if not isinstance(event, dict) or event.get("type") != "content_block_start":
            return []
        return self._on_content_block_start(event)

    def _on_content_block_start(self, data: JsonObject) -> list[StatusEvent]:
        block = data.get("content_block")
        if not isinstance(block, dict):
            return []
        if block.get("type") == "tool_use":
            record = self._record_tool_use(block)
            return [
                self._event(
                    StatusKind.TOOL_START,
                    format_tool_message(record.name, {}),
                    tool=record.name,
                )
            ]
        if block.get("type") == "thinking":
            return [self._event(StatusKind.THINKING, THINKING_MESSAGE)]
        return []
