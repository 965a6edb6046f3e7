"""Bounded replay buffers and snapshot slots for terminal sessions."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass

from taskdeck.config import DEFAULT_LINE_BUFFER_LINES, DEFAULT_OUTPUT_BUFFER_BYTES
from taskdeck.terminal.models import TerminalSnapshot


@dataclass
class _SessionBuffers:
    data: bytearray
    lines: deque[str]
    carry: str = ""


class SessionBufferStore:
    """Byte ring-buffer, line ring-buffer and snapshot slot per session id.

    Snapshots live in their own map: discarding a session's buffers keeps its
    last snapshot as a durable backup until it is overwritten or cleared.
    """

    def __init__(
        self,
        *,
        max_bytes: int = DEFAULT_OUTPUT_BUFFER_BYTES,
        max_lines: int = DEFAULT_LINE_BUFFER_LINES,
    ) -> None:
        if max_bytes <= 0 or max_lines <= 0:
            raise ValueError("Buffer capacities must be positive")
        self.max_bytes = max_bytes
        self.max_lines = max_lines
        self._lock = threading.Lock()
        self._buffers: dict[str, _SessionBuffers] = {}
        self._snapshots: dict[str, TerminalSnapshot] = {}

    def init(self, session_id: str) -> None:
        with self._lock:
            self._buffers[session_id] = _SessionBuffers(
                data=bytearray(),
                lines=deque(maxlen=self.max_lines),
            )

    def has(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._buffers

    def append_bytes(self, session_id: str, data: bytes) -> None:
        with self._lock:
            buffers = self._buffers.get(session_id)
            if buffers is None:
                return
            buffers.data += data
            overflow = len(buffers.data) - self.max_bytes
            if overflow > 0:
                del buffers.data[:overflow]

    def append_text(self, session_id: str, text: str) -> list[str]:
        """Reassemble lines across chunks; returns the complete lines produced."""
        with self._lock:
            buffers = self._buffers.get(session_id)
            if buffers is None:
                return []
            parts = (buffers.carry + text).split("\n")
            buffers.carry = parts.pop()
            buffers.lines.extend(parts)
            return parts

    def get_bytes(self, session_id: str) -> bytes:
        with self._lock:
            buffers = self._buffers.get(session_id)
            return bytes(buffers.data) if buffers is not None else b""

    def clear_bytes(self, session_id: str) -> None:
        with self._lock:
            buffers = self._buffers.get(session_id)
            if buffers is not None:
                buffers.data.clear()

    def get_lines(self, session_id: str) -> list[str]:
        with self._lock:
            buffers = self._buffers.get(session_id)
            return list(buffers.lines) if buffers is not None else []

    def clear_lines(self, session_id: str) -> None:
        with self._lock:
            buffers = self._buffers.get(session_id)
            if buffers is not None:
                buffers.lines.clear()
                buffers.carry = ""

    def carry(self, session_id: str) -> str:
        with self._lock:
            buffers = self._buffers.get(session_id)
            return buffers.carry if buffers is not None else ""

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._buffers.pop(session_id, None)

    def save_snapshot(self, session_id: str, blob: str, cursor_row: int, cursor_col: int) -> bool:
        if not blob:
            return False
        with self._lock:
            self._snapshots[session_id] = TerminalSnapshot(
                blob=blob,
                cursor_row=cursor_row,
                cursor_col=cursor_col,
            )
        return True

    def get_snapshot(self, session_id: str) -> TerminalSnapshot | None:
        with self._lock:
            return self._snapshots.get(session_id)

    def clear_snapshot(self, session_id: str) -> None:
        with self._lock:
            self._snapshots.pop(session_id, None)

    def clear(self) -> None:
        """Drop every session's buffers; snapshots are kept."""
        with self._lock:
            self._buffers.clear()
