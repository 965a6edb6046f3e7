"""Lifecycle of PTY-backed interactive terminal sessions."""

from __future__ import annotations

import atexit
import codecs
import logging as py_logging
import os
import threading
from collections.abc import Callable
from typing import Protocol

from taskdeck.config import (
    DEFAULT_COLS,
    DEFAULT_MAX_SESSIONS,
    DEFAULT_MIN_COLS,
    DEFAULT_MIN_ROWS,
    DEFAULT_RESIZE_DEBOUNCE_MS,
    DEFAULT_ROWS,
    AppConfig,
)
from taskdeck.errors import ErrorKind, TaskDeckError
from taskdeck.events import EventChannel, EventHub, Subscriber, Unsubscribe
from taskdeck.security import preview
from taskdeck.terminal.buffers import SessionBufferStore
from taskdeck.terminal.capture import SessionInsight, summarize_session
from taskdeck.terminal.models import (
    SpawnOptions,
    SpawnResult,
    TerminalSession,
    TerminalSnapshot,
)
from taskdeck.terminal.process_groups import ProcessGroupSignaler
from taskdeck.terminal.pty_backend import (
    PtySpawn,
    build_session_env,
    build_shell_command,
    default_shell,
    platform_spawn,
)

logger = py_logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class TimerLike(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], TimerLike]


def _thread_timer(delay: float, callback: Callable[[], None]) -> TimerLike:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


class TerminalSessionManager:
    def __init__(
        self,
        *,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        shell: str = "",
        term_name: str = "xterm-256color",
        default_cols: int = DEFAULT_COLS,
        default_rows: int = DEFAULT_ROWS,
        min_cols: int = DEFAULT_MIN_COLS,
        min_rows: int = DEFAULT_MIN_ROWS,
        resize_debounce_ms: int = DEFAULT_RESIZE_DEBOUNCE_MS,
        spawn: PtySpawn | None = None,
        buffers: SessionBufferStore | None = None,
        signaler: ProcessGroupSignaler | None = None,
        timer_factory: TimerFactory | None = None,
        events: EventHub | None = None,
    ) -> None:
        if max_sessions < 1:
            raise TaskDeckError(
                f"Invalid max session count: {max_sessions}",
                kind=ErrorKind.INVALID_ARGUMENTS,
                hint="Use a positive session limit.",
            )
        self.max_sessions = max_sessions
        self.shell = shell
        self.term_name = term_name
        self.default_cols = default_cols
        self.default_rows = default_rows
        self.min_cols = min_cols
        self.min_rows = min_rows
        self.resize_debounce_seconds = resize_debounce_ms / 1000.0
        self._spawn = spawn or platform_spawn()
        self._buffers = buffers or SessionBufferStore()
        self._signaler = signaler or ProcessGroupSignaler()
        self._timer_factory = timer_factory or _thread_timer
        self._events = events or EventHub()
        self._lock = threading.RLock()
        self._sessions: dict[str, TerminalSession] = {}
        self._channels: dict[str, EventChannel] = {}
        self._resize_timers: dict[str, tuple[TimerLike, int, int]] = {}
        atexit.register(self.kill_all)

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: object) -> TerminalSessionManager:
        buffers = SessionBufferStore(
            max_bytes=config.output_buffer_bytes,
            max_lines=config.line_buffer_lines,
        )
        return cls(
            max_sessions=config.max_sessions,
            shell=config.shell,
            term_name=config.terminal_name,
            default_cols=config.default_cols,
            default_rows=config.default_rows,
            min_cols=config.min_cols,
            min_rows=config.min_rows,
            resize_debounce_ms=config.resize_debounce_ms,
            buffers=buffers,
            **kwargs,
        )

    @property
    def events(self) -> EventHub:
        return self._events

    def subscribe(self, session_id: str, callback: Subscriber) -> Unsubscribe:
        return self._events.subscribe(session_id, callback)

    def spawn(
        self,
        session_id: str,
        name: str,
        options: SpawnOptions | None = None,
    ) -> SpawnResult:
        options = options or SpawnOptions()
        with self._lock:
            if session_id in self._sessions:
                raise TaskDeckError(
                    f"Terminal already exists: {session_id}",
                    kind=ErrorKind.ALREADY_EXISTS,
                    hint="Use a unique terminal id.",
                )
            if len(self._sessions) >= self.max_sessions:
                raise TaskDeckError(
                    f"Terminal limit reached: {self.max_sessions}",
                    kind=ErrorKind.CAPACITY_EXCEEDED,
                    hint="Close another terminal before opening a new one.",
                )

            cols = options.cols or self.default_cols
            rows = options.rows or self.default_rows
            command = build_shell_command(default_shell(self.shell))
            cwd = options.cwd or os.getcwd()
            env = build_session_env(
                os.environ,
                options.env,
                cols=cols,
                rows=rows,
                term_name=self.term_name,
            )

            self._buffers.init(session_id)
            try:
                process = self._spawn(command, cwd, env, cols, rows)
            except Exception as exc:
                self._buffers.discard(session_id)
                logger.error("Failed to spawn terminal id=%s command=%s error=%s", session_id, command, exc)
                hint = exc.hint if isinstance(exc, TaskDeckError) else str(exc)
                raise TaskDeckError(
                    f"Failed to start terminal {session_id}.",
                    kind=ErrorKind.START_FAILURE,
                    hint=hint or "Check the shell installation.",
                ) from exc

            session = TerminalSession(
                session_id=session_id,
                name=name,
                command=tuple(command),
                cwd=cwd,
                process=process,
                cols=cols,
                rows=rows,
                env=env,
            )
            channel = self._events.channel(session_id)
            self._sessions[session_id] = session
            self._channels[session_id] = channel
            reader = threading.Thread(
                target=self._pump,
                args=(session, channel),
                name=f"pty-{session_id}",
                daemon=True,
            )
            reader.start()

        logger.info(
            "Spawned terminal name=%r id=%s pid=%s shell=%s cwd=%s size=%sx%s",
            name,
            session_id,
            process.pid,
            command[0],
            cwd,
            cols,
            rows,
        )
        return SpawnResult(id=session_id, pid=process.pid)

    def write(self, session_id: str, data: str | bytes) -> None:
        session = self._require_session(session_id)
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        logger.debug("Writing to terminal id=%s bytes=%s preview=%s", session_id, len(payload), preview(payload))
        try:
            session.process.write(payload)
        except Exception as exc:
            raise TaskDeckError(
                f"Failed to write to terminal {session_id}.",
                kind=ErrorKind.RUNTIME,
                hint=str(exc) or "Verify terminal process health.",
            ) from exc

    def resize(self, session_id: str, cols: int, rows: int) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                logger.debug("Terminal %s not found for resize; it may have closed", session_id)
                return False
            if cols < self.min_cols or rows < self.min_rows:
                raise TaskDeckError(
                    f"Invalid terminal dimensions: {cols}x{rows}",
                    kind=ErrorKind.INVALID_DIMENSIONS,
                    hint=f"Minimum size is {self.min_cols}x{self.min_rows}.",
                )
            self._cancel_resize(session_id)
            if session.cols == cols and session.rows == rows:
                logger.debug("Skipping resize for terminal %s; size unchanged (%sx%s)", session_id, cols, rows)
                return True
            timer = self._timer_factory(
                self.resize_debounce_seconds,
                lambda: self._apply_resize(session, cols, rows),
            )
            self._resize_timers[session_id] = (timer, cols, rows)
            timer.start()
        return True

    def kill(self, session_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                logger.debug("Terminal %s not found; already cleaned up", session_id)
                return False
            self._cancel_resize(session_id)
            channel = self._channels.pop(session_id, None)

        self._buffers.discard(session_id)
        if channel is not None:
            self._events.detach(channel)
        try:
            session.process.terminate()
        except Exception:
            logger.warning("Failed to terminate terminal id=%s pid=%s", session_id, session.pid, exc_info=True)
        logger.info("Killed terminal id=%s", session_id)
        return True

    def kill_all(self) -> None:
        with self._lock:
            ids = list(self._sessions)
            for timer, _cols, _rows in self._resize_timers.values():
                timer.cancel()
            self._resize_timers.clear()
        if ids:
            logger.info("Killing all terminals count=%s", len(ids))
        for session_id in ids:
            self.kill(session_id)

    def close(self) -> None:
        """Kill every session and drop the interpreter-exit hook registered at construction."""
        self.kill_all()
        atexit.unregister(self.kill_all)

    def pause(self, session_id: str) -> bool:
        if not self._signaler.supported:
            logger.debug("Pause unsupported on this platform id=%s", session_id)
            return False
        session = self.get(session_id)
        if session is None:
            logger.warning("Terminal %s not found for pause", session_id)
            return False
        groups = self._signaler.pause(session.pid)
        if groups:
            logger.info("Paused terminal id=%s groups=%s", session_id, groups)
            return True
        logger.error("Failed to pause any process group for terminal id=%s", session_id)
        return False

    def resume(self, session_id: str) -> bool:
        if not self._signaler.supported:
            logger.debug("Resume unsupported on this platform id=%s", session_id)
            return False
        session = self.get(session_id)
        if session is None:
            logger.warning("Terminal %s not found for resume", session_id)
            return False
        groups = self._signaler.resume(session.pid)
        if groups:
            logger.info("Resumed terminal id=%s groups=%s", session_id, groups)
            return True
        logger.error("Failed to resume any process group for terminal id=%s", session_id)
        return False

    def get(self, session_id: str) -> TerminalSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def has(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def list_sessions(self) -> list[TerminalSession]:
        with self._lock:
            return [self._sessions[key] for key in sorted(self._sessions)]

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get_line_buffer(self, session_id: str) -> list[str]:
        return self._buffers.get_lines(session_id)

    def clear_line_buffer(self, session_id: str) -> None:
        self._buffers.clear_lines(session_id)

    def get_output_buffer(self, session_id: str) -> bytes:
        return self._buffers.get_bytes(session_id)

    def clear_output_buffer(self, session_id: str) -> None:
        self._buffers.clear_bytes(session_id)

    def save_snapshot(self, session_id: str, blob: str, cursor_row: int, cursor_col: int) -> bool:
        saved = self._buffers.save_snapshot(session_id, blob, cursor_row, cursor_col)
        if saved:
            logger.debug("Saved snapshot id=%s length=%s cursor=%s,%s", session_id, len(blob), cursor_row, cursor_col)
        else:
            logger.debug("Ignoring empty snapshot id=%s; keeping previous backup", session_id)
        return saved

    def get_snapshot(self, session_id: str) -> TerminalSnapshot | None:
        return self._buffers.get_snapshot(session_id)

    def clear_snapshot(self, session_id: str) -> None:
        self._buffers.clear_snapshot(session_id)

    def capture_insight(self, session_id: str, title: str = "") -> SessionInsight:
        output = self._buffers.get_bytes(session_id).decode("utf-8", errors="replace")
        return summarize_session(output, title=title)

    def _require_session(self, session_id: str) -> TerminalSession:
        session = self.get(session_id)
        if session is None:
            raise TaskDeckError(
                f"Terminal not found: {session_id}",
                kind=ErrorKind.NOT_FOUND,
                hint="Spawn the terminal before writing to it.",
            )
        return session

    def _is_current(self, session: TerminalSession) -> bool:
        with self._lock:
            return self._sessions.get(session.session_id) is session

    def _cancel_resize(self, session_id: str) -> None:
        pending = self._resize_timers.pop(session_id, None)
        if pending is not None:
            pending[0].cancel()

    def _apply_resize(self, session: TerminalSession, cols: int, rows: int) -> None:
        session_id = session.session_id
        with self._lock:
            pending = self._resize_timers.get(session_id)
            if pending is None or pending[1:] != (cols, rows):
                return
            del self._resize_timers[session_id]
            if self._sessions.get(session_id) is not session:
                logger.debug("Terminal %s closed before deferred resize", session_id)
                return
            if session.cols == cols and session.rows == rows:
                return
        try:
            session.process.resize(cols, rows)
        except Exception:
            logger.warning("Failed to resize terminal id=%s", session_id, exc_info=True)
            return
        with self._lock:
            session.cols = cols
            session.rows = rows
        logger.info("Resized terminal id=%s size=%sx%s", session_id, cols, rows)

    def _pump(self, session: TerminalSession, channel: EventChannel) -> None:
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        exit_code = -1
        try:
            while True:
                chunk = session.process.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                self._handle_output(session, channel, chunk, decoder.decode(chunk))
            tail = decoder.decode(b"", final=True)
            if tail:
                self._handle_output(session, channel, b"", tail)
            exit_code = session.process.wait()
        except Exception:
            logger.exception("Output pump failed id=%s", session.session_id)
        finally:
            self._handle_exit(session, channel, exit_code)

    def _handle_output(
        self,
        session: TerminalSession,
        channel: EventChannel,
        data: bytes,
        text: str,
    ) -> None:
        if not self._is_current(session):
            return
        session_id = session.session_id
        logger.debug("Terminal output id=%s bytes=%s preview=%s", session_id, len(data), preview(text))
        if data:
            self._buffers.append_bytes(session_id, data)
        if text:
            self._buffers.append_text(session_id, text)
            channel.emit("output", text)

    def _handle_exit(self, session: TerminalSession, channel: EventChannel, exit_code: int) -> None:
        session_id = session.session_id
        with self._lock:
            current = self._sessions.get(session_id) is session
            if current:
                del self._sessions[session_id]
                self._channels.pop(session_id, None)
                self._cancel_resize(session_id)
        if current:
            self._buffers.discard(session_id)
            logger.info("Terminal exited id=%s code=%s", session_id, exit_code)
        channel.emit("exit", exit_code)
        self._events.discard(channel)
