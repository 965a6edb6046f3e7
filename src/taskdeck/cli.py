"""Public CLI contract and entrypoint."""

from __future__ import annotations

import argparse
import json
import logging as py_logging
import sys
import threading
import uuid
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TextIO

from .agent.models import RunOutcome, StartTaskOptions, StatusEvent, terminal_id_for
from .agent.parser import StreamEventParser
from .agent.supervisor import AgentProcessSupervisor
from .agent.task_store import InMemoryTaskStore, TaskStore
from .config import AppConfig, load_config
from .errors import ErrorKind, ExitCode, TaskDeckError, user_facing_error
from .events import SessionEvent
from .logging import LOG_LEVEL_NAMES, configure_logging, default_log_path, normalize_log_level

SupervisorFactory = Callable[[AppConfig, TaskStore], AgentProcessSupervisor]


def _log_level_type(value: str) -> str:
    normalized = normalize_log_level(value)
    if normalized is None:
        accepted = ", ".join(LOG_LEVEL_NAMES)
        raise argparse.ArgumentTypeError(f"--log-level must be one of: {accepted}")
    return normalized


def _positive_int(value: str) -> int:
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--max-turns must be an integer") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("--max-turns must be at least 1")
    return parsed


def _budget_type(value: str) -> float:
    try:
        parsed = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("--max-budget must be a number") from exc
    if parsed <= 0:
        raise argparse.ArgumentTypeError("--max-budget must be greater than 0")
    return parsed


def _tools_type(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="taskdeck")
    parser.add_argument("--log-level", type=_log_level_type, default=None)
    parser.add_argument("--log-file", type=Path, default=None)
    parser.add_argument("--config", type=Path, default=None)
    commands = parser.add_subparsers(dest="command", required=True)

    run_parser = commands.add_parser("run", help="Run one agent task headless")
    run_parser.add_argument("--project", type=Path, required=True)
    run_parser.add_argument("--title", required=True)
    run_parser.add_argument("--description", default="")
    run_parser.add_argument("--task-id", default=None)
    run_parser.add_argument("--session-id", default=None)
    run_parser.add_argument("--max-turns", type=_positive_int, default=None)
    run_parser.add_argument("--max-budget", type=_budget_type, default=None)
    run_parser.add_argument("--allowed-tools", type=_tools_type, default=())
    run_parser.add_argument("--append-system-prompt", default="")
    run_parser.add_argument("--resume", dest="resume_session_id", default="")

    replay_parser = commands.add_parser("replay", help="Parse a recorded stream-json log")
    replay_parser.add_argument("file", type=Path)
    replay_parser.add_argument("--json", action="store_true", help="Print events as JSON lines")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = build_parser()
    return parser.parse_args(argv)


def format_status_line(event: StatusEvent) -> str:
    tool = f" {event.tool}" if event.tool else ""
    return f"[{event.kind.value}{tool}] {event.message}"


def options_from_namespace(namespace: argparse.Namespace) -> StartTaskOptions:
    return StartTaskOptions(
        task_id=namespace.task_id or uuid.uuid4().hex[:12],
        title=namespace.title,
        project_path=str(namespace.project.expanduser().resolve()),
        session_id=namespace.session_id or str(uuid.uuid4()),
        description=namespace.description,
        max_turns=namespace.max_turns,
        max_budget_usd=namespace.max_budget,
        allowed_tools=namespace.allowed_tools,
        append_system_prompt=namespace.append_system_prompt,
        resume_session_id=namespace.resume_session_id,
    )


def run_agent_task(
    namespace: argparse.Namespace,
    config: AppConfig,
    *,
    supervisor_factory: SupervisorFactory | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    out = stdout or sys.stdout
    err = stderr or sys.stderr
    options = options_from_namespace(namespace)
    if not Path(options.project_path).is_dir():
        raise TaskDeckError(
            f"Project directory not found: {options.project_path}",
            kind=ErrorKind.INVALID_ARGUMENTS,
            hint="Pass an existing directory with --project.",
        )

    store = InMemoryTaskStore()
    factory = supervisor_factory or (lambda cfg, task_store: AgentProcessSupervisor.from_config(cfg, task_store))
    supervisor = factory(config, store)
    finished = threading.Event()

    def on_event(event: SessionEvent) -> None:
        if event.kind == "raw_output":
            out.write(str(event.payload))
            out.flush()
        elif event.kind == "status" and isinstance(event.payload, StatusEvent):
            print(format_status_line(event.payload), file=err)
        elif event.kind == "exit":
            finished.set()

    terminal_id = terminal_id_for(options.task_id)
    unsubscribe = supervisor.subscribe(terminal_id, on_event)
    try:
        result = supervisor.start_task(options)
        store.attach_run(options.task_id, terminal_id=result.terminal_id, session_id=result.session_id)
        try:
            finished.wait()
        except KeyboardInterrupt:
            supervisor.shutdown()
            finished.wait(timeout=5)
            return int(ExitCode.RUNTIME_ERROR)
    finally:
        unsubscribe()

    record = store.get(options.task_id)
    if record is not None and record.status is RunOutcome.COMPLETED:
        return int(ExitCode.SUCCESS)
    return int(ExitCode.RUNTIME_ERROR)


def replay_log(
    namespace: argparse.Namespace,
    config: AppConfig,
    *,
    stdout: TextIO | None = None,
) -> int:
    out = stdout or sys.stdout
    path: Path = namespace.file.expanduser()
    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        raise TaskDeckError(
            f"Cannot read stream log: {path}",
            kind=ErrorKind.INVALID_ARGUMENTS,
            hint=str(exc),
        ) from exc

    parser = StreamEventParser(max_buffer_size=config.parser_buffer_bytes)
    events = parser.parse(content) + parser.flush()
    for event in events:
        line = json.dumps(event.to_dict(), ensure_ascii=False) if namespace.json else format_status_line(event)
        print(line, file=out)
    return int(ExitCode.SUCCESS)


def main(
    argv: Sequence[str] | None = None,
    *,
    supervisor_factory: SupervisorFactory | None = None,
    stdout: TextIO | None = None,
    stderr: TextIO | None = None,
) -> int:
    log_path = default_log_path()
    logger = configure_logging(log_file=log_path)
    parser = build_parser()
    try:
        namespace = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code not in (None, 0):
            logger.warning("Argument parsing failed with exit code %s", exc.code)
        return int(exc.code or 0)

    if namespace.log_file is not None:
        log_path = namespace.log_file.expanduser()
    config = load_config(namespace.config)
    logger = configure_logging(level=namespace.log_level or config.log_level, log_file=log_path)

    try:
        if namespace.command == "replay":
            logger.debug("Replaying stream log %s", namespace.file)
            return replay_log(namespace, config, stdout=stdout)
        logger.debug("Starting headless agent run")
        return run_agent_task(
            namespace,
            config,
            supervisor_factory=supervisor_factory,
            stdout=stdout,
            stderr=stderr,
        )
    except TaskDeckError as exc:
        logger.error(
            "Handled TaskDeckError (code=%s kind=%s): %s",
            int(exc.code),
            exc.kind.value,
            exc.message,
            exc_info=logger.isEnabledFor(py_logging.DEBUG),
        )
        print(user_facing_error(exc.message, hint=exc.hint), file=stderr or sys.stderr)
        return int(exc.code)
    except Exception:
        logger.exception("Unhandled exception in CLI entrypoint")
        hint = f"Inspect logs: {log_path}"
        print(user_facing_error("Unexpected runtime failure", hint=hint), file=stderr or sys.stderr)
        return int(ExitCode.RUNTIME_ERROR)


def run(argv: Sequence[str] | None = None) -> int:
    return main(argv)
