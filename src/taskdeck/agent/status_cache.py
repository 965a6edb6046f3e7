"""Most recent status event per terminal, kept for reconnecting viewers."""

from __future__ import annotations

import threading

from taskdeck.agent.models import StatusEvent


class StatusCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: dict[str, StatusEvent] = {}

    def put(self, terminal_id: str, event: StatusEvent) -> None:
        with self._lock:
            self._latest[terminal_id] = event

    def get(self, terminal_id: str) -> StatusEvent | None:
        with self._lock:
            return self._latest.get(terminal_id)

    def discard(self, terminal_id: str) -> None:
        with self._lock:
            self._latest.pop(terminal_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._latest)
