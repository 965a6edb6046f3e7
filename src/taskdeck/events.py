"""Per-session event channels used to push output and exit notifications."""

from __future__ import annotations

import logging as py_logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

logger = py_logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionEvent:
    key: str
    kind: str
    payload: object = None


Subscriber = Callable[[SessionEvent], None]
Unsubscribe = Callable[[], None]


class EventChannel:
    """Ordered fan-out of events for one session key.

    Emission holds the channel lock, so subscribers observe events in the
    order they were emitted even when producers run on different threads.
    Subscriber failures are logged and never reach the producer.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        self._lock = threading.RLock()
        self._subscribers: list[Subscriber] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: Subscriber) -> Unsubscribe:
        with self._lock:
            if not self._closed:
                self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, kind: str, payload: object = None) -> bool:
        event = SessionEvent(key=self.key, kind=kind, payload=payload)
        with self._lock:
            if self._closed:
                return False
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    logger.exception("Subscriber failed key=%s kind=%s", self.key, kind)
            return True

    def close(self) -> None:
        with self._lock:
            self._closed = True
            self._subscribers.clear()


class EventHub:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._channels: dict[str, EventChannel] = {}

    def channel(self, key: str) -> EventChannel:
        with self._lock:
            channel = self._channels.get(key)
            if channel is None or channel.closed:
                channel = EventChannel(key)
                self._channels[key] = channel
            return channel

    def subscribe(self, key: str, callback: Subscriber) -> Unsubscribe:
        return self.channel(key).subscribe(callback)

    def emit(self, key: str, kind: str, payload: object = None) -> bool:
        with self._lock:
            channel = self._channels.get(key)
        if channel is None:
            return False
        return channel.emit(kind, payload)

    def close(self, key: str) -> None:
        with self._lock:
            channel = self._channels.pop(key, None)
        if channel is not None:
            channel.close()

    def detach(self, channel: EventChannel) -> None:
        """Forget ``channel`` if it is still the live one for its key, leaving it open.

        Existing subscribers keep receiving whatever the channel's owner still
        emits; new subscriptions for the key get a fresh channel.
        """
        with self._lock:
            if self._channels.get(channel.key) is channel:
                del self._channels[channel.key]

    def discard(self, channel: EventChannel) -> None:
        """Close ``channel`` and forget it only if it is still the live one for its key."""
        self.detach(channel)
        channel.close()

    def close_all(self) -> None:
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            channel.close()

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._channels)
