"""Lifecycle of headless agent runs, one child process per task."""

from __future__ import annotations

import codecs
import logging as py_logging
import os
import signal
import subprocess
import threading
from collections.abc import Callable, Sequence
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import IO, Any

from taskdeck.agent.formatting import DisplayFormatter, build_startup_banner, format_stderr
from taskdeck.agent.models import (
    RunOutcome,
    StartTaskOptions,
    StatusEvent,
    TaskStartResult,
    terminal_id_for,
)
from taskdeck.agent.parser import StreamEventParser
from taskdeck.agent.prompt import build_agent_argv, build_task_prompt
from taskdeck.agent.status_cache import StatusCache
from taskdeck.agent.task_store import TaskStore
from taskdeck.config import DEFAULT_AGENT_EXECUTABLE, DEFAULT_PARSER_BUFFER_BYTES, AppConfig
from taskdeck.errors import ErrorKind, TaskDeckError
from taskdeck.events import EventChannel, EventHub, Subscriber, Unsubscribe
from taskdeck.security import command_for_log, preview

logger = py_logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096

SIGSTOP = getattr(signal, "SIGSTOP", None)
SIGCONT = getattr(signal, "SIGCONT", None)
SIGKILL = getattr(signal, "SIGKILL", signal.SIGTERM)

PopenFactory = Callable[..., Any]
SignalSender = Callable[[Any, int], None]


def signal_process_group(process: Any, signum: int) -> None:
    """Signal the run's process group, falling back to the process itself."""
    killpg = getattr(os, "killpg", None)
    if killpg is not None:
        try:
            killpg(process.pid, signum)
            return
        except ProcessLookupError:
            raise
        except OSError as exc:
            logger.debug("Group signal failed pid=%s signal=%s error=%s", process.pid, signum, exc)
    process.send_signal(signum)


def _read_chunk(stream: IO[bytes]) -> bytes:
    reader = getattr(stream, "read1", None) or stream.read
    try:
        return reader(READ_CHUNK_SIZE)
    except (OSError, ValueError):
        return b""


@dataclass
class AgentRun:
    task_id: str
    terminal_id: str
    session_id: str
    process: Any
    parser: StreamEventParser
    formatter: DisplayFormatter
    channel: EventChannel
    pausing: bool = False

    @property
    def pid(self) -> int:
        return int(self.process.pid)


class AgentProcessSupervisor:
    def __init__(
        self,
        *,
        task_store: TaskStore,
        executable: str = DEFAULT_AGENT_EXECUTABLE,
        extra_args: Sequence[str] = (),
        parser_buffer_bytes: int = DEFAULT_PARSER_BUFFER_BYTES,
        popen: PopenFactory = subprocess.Popen,
        send_signal: SignalSender = signal_process_group,
        now: Callable[[], datetime] | None = None,
        events: EventHub | None = None,
        status_cache: StatusCache | None = None,
    ) -> None:
        self.executable = executable
        self.extra_args = tuple(extra_args)
        self.parser_buffer_bytes = parser_buffer_bytes
        self._task_store = task_store
        self._popen = popen
        self._send_signal = send_signal
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._events = events or EventHub()
        self._status_cache = status_cache or StatusCache()
        self._lock = threading.RLock()
        self._runs: dict[str, AgentRun] = {}
        self._shutting_down = False

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        task_store: TaskStore,
        **kwargs: Any,
    ) -> AgentProcessSupervisor:
        return cls(
            task_store=task_store,
            executable=config.agent_executable,
            extra_args=config.agent_extra_args,
            parser_buffer_bytes=config.parser_buffer_bytes,
            **kwargs,
        )

    @property
    def events(self) -> EventHub:
        return self._events

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def subscribe(self, terminal_id: str, callback: Subscriber) -> Unsubscribe:
        return self._events.subscribe(terminal_id, callback)

    def start_task(self, options: StartTaskOptions) -> TaskStartResult:
        _validate_options(options)
        task_id = options.task_id
        terminal_id = terminal_id_for(task_id)

        with self._lock:
            if task_id in self._runs:
                raise TaskDeckError(
                    f"Task already has a running agent: {task_id}",
                    kind=ErrorKind.ALREADY_EXISTS,
                    hint="Pause or kill the current run first.",
                )

            prompt = build_task_prompt(options)
            argv = build_agent_argv(
                options,
                prompt,
                executable=self.executable,
                extra_args=self.extra_args,
            )
            logger.info(
                "Starting agent task=%s command=%s prompt_chars=%s cwd=%s",
                task_id,
                command_for_log(argv[:-1]),
                len(prompt),
                options.project_path,
            )
            try:
                process = self._popen(
                    argv,
                    cwd=options.project_path,
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    start_new_session=os.name != "nt",
                )
            except (OSError, ValueError) as exc:
                logger.error("Failed to start agent task=%s error=%s", task_id, exc)
                raise TaskDeckError(
                    f"Failed to start agent for task {task_id}.",
                    kind=ErrorKind.START_FAILURE,
                    hint=str(exc) or f"Check that {self.executable} is installed.",
                ) from exc

            if process.stdin is not None:
                with suppress(OSError):
                    process.stdin.close()

            run = AgentRun(
                task_id=task_id,
                terminal_id=terminal_id,
                session_id=options.session_id,
                process=process,
                parser=StreamEventParser(max_buffer_size=self.parser_buffer_bytes),
                formatter=DisplayFormatter(),
                channel=self._events.channel(terminal_id),
            )
            self._runs[task_id] = run
            run.channel.emit("raw_output", build_startup_banner(argv, options))

            readers = [
                threading.Thread(
                    target=self._pump,
                    args=(process.stdout, lambda text: self._handle_stdout(run, text)),
                    name=f"agent-{task_id}-stdout",
                    daemon=True,
                ),
                threading.Thread(
                    target=self._pump,
                    args=(process.stderr, lambda text: self._handle_stderr(run, text)),
                    name=f"agent-{task_id}-stderr",
                    daemon=True,
                ),
            ]
            for reader in readers:
                reader.start()
            threading.Thread(
                target=self._wait_for_exit,
                args=(run, readers),
                name=f"agent-{task_id}-wait",
                daemon=True,
            ).start()

        logger.info("Agent started task=%s pid=%s terminal=%s", task_id, run.pid, terminal_id)
        return TaskStartResult(terminal_id=terminal_id, session_id=options.session_id)

    def pause_task(self, task_id: str) -> bool:
        if SIGSTOP is None:
            logger.debug("Pause unsupported on this platform task=%s", task_id)
            return False
        with self._lock:
            run = self._runs.get(task_id)
            if run is None:
                logger.warning("No running agent to pause task=%s", task_id)
                return False
            run.pausing = True
        try:
            self._send_signal(run.process, SIGSTOP)
        except OSError as exc:
            with self._lock:
                run.pausing = False
            logger.warning("Failed to pause agent task=%s pid=%s error=%s", task_id, run.pid, exc)
            return False
        logger.info("Paused agent task=%s pid=%s", task_id, run.pid)
        return True

    def resume_task(self, task_id: str) -> bool:
        if SIGCONT is None:
            logger.debug("Resume unsupported on this platform task=%s", task_id)
            return False
        with self._lock:
            run = self._runs.get(task_id)
            if run is None:
                logger.warning("No running agent to resume task=%s", task_id)
                return False
            run.pausing = False
        try:
            self._send_signal(run.process, SIGCONT)
        except OSError as exc:
            logger.warning("Failed to resume agent task=%s pid=%s error=%s", task_id, run.pid, exc)
            return False
        logger.info("Resumed agent task=%s pid=%s", task_id, run.pid)
        return True

    def kill_task(self, task_id: str) -> bool:
        with self._lock:
            run = self._runs.pop(task_id, None)
            if run is not None:
                self._events.detach(run.channel)
        if run is None:
            logger.debug("No running agent to kill task=%s", task_id)
            return False
        self._status_cache.discard(run.terminal_id)
        try:
            self._send_signal(run.process, SIGKILL)
        except OSError as exc:
            logger.debug("Group kill failed task=%s error=%s; killing process", task_id, exc)
            try:
                run.process.kill()
            except OSError:
                logger.warning("Failed to kill agent task=%s pid=%s", task_id, run.pid, exc_info=True)
        logger.info("Killed agent task=%s pid=%s", task_id, run.pid)
        return True

    def has_active_process(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._runs

    def active_task_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._runs)

    def get_last_status(self, terminal_id: str) -> StatusEvent | None:
        return self._status_cache.get(terminal_id)

    def shutdown(self) -> None:
        with self._lock:
            self._shutting_down = True
            task_ids = list(self._runs)
        if task_ids:
            logger.info("Shutting down; killing agent runs count=%s", len(task_ids))
        for task_id in task_ids:
            self.kill_task(task_id)

    def _pump(self, stream: IO[bytes] | None, handle: Callable[[str], None]) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                chunk = _read_chunk(stream)
                if not chunk:
                    break
                text = decoder.decode(chunk)
                if text:
                    handle(text)
            tail = decoder.decode(b"", final=True)
            if tail:
                handle(tail)
        except Exception:
            logger.exception("Agent output reader failed")

    def _publish_status(self, run: AgentRun, event: StatusEvent) -> None:
        with self._lock:
            current = self._runs.get(run.task_id) is run
        if current:
            self._status_cache.put(run.terminal_id, event)
        run.channel.emit("status", event)

    def _handle_stdout(self, run: AgentRun, text: str) -> None:
        logger.debug("Agent stdout task=%s chars=%s preview=%s", run.task_id, len(text), preview(text))
        display = run.formatter.feed(text)
        if display:
            run.channel.emit("raw_output", display)
        for event in run.parser.parse(text):
            self._publish_status(run, event)

    def _handle_stderr(self, run: AgentRun, text: str) -> None:
        logger.debug("Agent stderr task=%s preview=%s", run.task_id, preview(text))
        run.channel.emit("raw_output", format_stderr(text))

    def _wait_for_exit(self, run: AgentRun, readers: list[threading.Thread]) -> None:
        for reader in readers:
            reader.join()
        try:
            exit_code = int(run.process.wait())
        except Exception:
            logger.exception("Failed to collect agent exit status task=%s", run.task_id)
            exit_code = -1
        display = run.formatter.flush()
        if display:
            run.channel.emit("raw_output", display)
        for event in run.parser.flush():
            self._publish_status(run, event)
        self._handle_exit(run, exit_code)

    def _handle_exit(self, run: AgentRun, exit_code: int) -> None:
        with self._lock:
            if run.pausing:
                outcome = RunOutcome.PAUSED
            elif exit_code == 0:
                outcome = RunOutcome.COMPLETED
            else:
                outcome = RunOutcome.FAILED
            run.pausing = False
            registered = self._runs.get(run.task_id)
            current = registered is run
            if current:
                del self._runs[run.task_id]
            superseded = registered is not None and not current
            shutting_down = self._shutting_down

        if current:
            self._status_cache.discard(run.terminal_id)
        if shutting_down:
            logger.debug("Skipping persistence during shutdown task=%s", run.task_id)
        elif superseded:
            logger.debug("Skipping persistence for replaced run task=%s pid=%s", run.task_id, run.pid)
        else:
            self._persist_outcome(run, outcome, exit_code)

        logger.info("Agent exited task=%s code=%s outcome=%s", run.task_id, exit_code, outcome.value)
        run.channel.emit("exit", exit_code)
        self._events.discard(run.channel)

    def _persist_outcome(self, run: AgentRun, outcome: RunOutcome, exit_code: int) -> None:
        if outcome is RunOutcome.COMPLETED:
            level = "success"
        elif outcome is RunOutcome.PAUSED:
            level = "info"
        else:
            level = "error"
        try:
            self._task_store.finish_run(
                run.task_id,
                status=outcome,
                exit_code=exit_code,
                completed_at=self._now(),
            )
            self._task_store.append_log(
                run.task_id,
                level=level,
                message=f"Agent run {outcome.value.lower()} with exit code {exit_code}",
                metadata={"exit_code": exit_code, "session_id": run.session_id},
            )
        except Exception:
            logger.exception("Failed to persist agent outcome task=%s", run.task_id)


def _validate_options(options: StartTaskOptions) -> None:
    for field_name in ("task_id", "title", "project_path", "session_id"):
        value = getattr(options, field_name)
        if not isinstance(value, str) or not value.strip():
            raise TaskDeckError(
                f"Missing required field: {field_name}",
                kind=ErrorKind.INVALID_ARGUMENTS,
                hint="Provide a task id, title, project path and session id.",
            )
