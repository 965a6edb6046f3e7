from __future__ import annotations

import io
import json
from pathlib import Path

from taskdeck import cli
from taskdeck.agent.models import StatusEvent, StatusKind
from taskdeck.agent.supervisor import AgentProcessSupervisor
from taskdeck.errors import ExitCode


class _ScriptedProcess:
    def __init__(self, stdout: bytes, stderr: bytes = b"", code: int = 0) -> None:
        self.pid = 5150
        self.stdin = io.BytesIO()
        self.stdout = io.BytesIO(stdout)
        self.stderr = io.BytesIO(stderr)
        self._code = code

    def wait(self) -> int:
        return self._code

    def send_signal(self, signum: int) -> None:
        del signum

    def kill(self) -> None:
        pass


def _stream(*payloads: dict) -> bytes:
    return "".join(json.dumps(payload) + "\n" for payload in payloads).encode("utf-8")


def _factory(process: _ScriptedProcess, calls: list):
    def popen(argv, **kwargs):
        calls.append((argv, kwargs))
        return process

    def build(config, store):
        return AgentProcessSupervisor.from_config(config, store, popen=popen)

    return build


def _base_args(tmp_path: Path) -> list[str]:
    return ["--log-file", str(tmp_path / "taskdeck.log"), "--config", str(tmp_path / "missing.toml")]


def test_cli_help_includes_public_commands() -> None:
    help_text = cli.build_parser().format_help()
    assert "run" in help_text
    assert "replay" in help_text
    assert "--log-level" in help_text

    run_help = cli.build_parser().parse_args(["run", "--project", ".", "--title", "x"])
    assert run_help.allowed_tools == ()
    assert run_help.resume_session_id == ""


def test_run_streams_display_and_status(tmp_path: Path) -> None:
    calls: list = []
    process = _ScriptedProcess(
        _stream(
            {"type": "assistant", "message": {"content": [{"type": "text", "text": "Looking at tests"}]}},
            {"type": "result", "subtype": "success", "result": "Fixed"},
        )
    )
    stdout = io.StringIO()
    stderr = io.StringIO()

    code = cli.main(
        [
            *_base_args(tmp_path),
            "run",
            "--project",
            str(tmp_path),
            "--title",
            "Fix tests",
            "--task-id",
            "cli-1",
            "--max-turns",
            "3",
            "--allowed-tools",
            "Read, Bash",
        ],
        supervisor_factory=_factory(process, calls),
        stdout=stdout,
        stderr=stderr,
    )

    assert code == ExitCode.SUCCESS
    argv, kwargs = calls[0]
    assert "--max-turns" in argv
    assert argv[argv.index("--allowedTools") + 1] == "Read,Bash"
    assert kwargs["cwd"] == str(tmp_path.resolve())
    assert "Starting agent" in stdout.getvalue()
    assert "Looking at tests" in stdout.getvalue()
    assert "[text] Looking at tests" in stderr.getvalue()
    assert "[system] Task completed" in stderr.getvalue()


def test_run_failure_exit_maps_to_runtime_error(tmp_path: Path) -> None:
    process = _ScriptedProcess(b"", stderr=b"auth required\n", code=1)
    stdout = io.StringIO()

    code = cli.main(
        [*_base_args(tmp_path), "run", "--project", str(tmp_path), "--title", "Broken"],
        supervisor_factory=_factory(process, []),
        stdout=stdout,
        stderr=io.StringIO(),
    )

    assert code == ExitCode.RUNTIME_ERROR
    assert "auth required" in stdout.getvalue()


def test_run_rejects_missing_project(tmp_path: Path) -> None:
    stderr = io.StringIO()

    code = cli.main(
        [*_base_args(tmp_path), "run", "--project", str(tmp_path / "nope"), "--title", "x"],
        supervisor_factory=_factory(_ScriptedProcess(b""), []),
        stderr=stderr,
    )

    assert code == ExitCode.INVALID_ARGS
    assert "Project directory not found" in stderr.getvalue()


def test_replay_prints_status_lines(tmp_path: Path) -> None:
    log = tmp_path / "run.jsonl"
    log.write_bytes(
        _stream(
            {
                "type": "assistant",
                "message": {"content": [{"type": "tool_use", "id": "a", "name": "Bash", "input": {"command": "git diff"}}]},
            },
            {"type": "result", "subtype": "success"},
        ).rstrip(b"\n")
    )
    stdout = io.StringIO()

    code = cli.main([*_base_args(tmp_path), "replay", str(log)], stdout=stdout)

    assert code == ExitCode.SUCCESS
    assert stdout.getvalue().splitlines() == ["[tool_start Bash] Reviewing changes", "[system] Task completed"]


def test_replay_json_output(tmp_path: Path) -> None:
    log = tmp_path / "run.jsonl"
    log.write_bytes(_stream({"type": "result", "subtype": "error_max_turns"}))
    stdout = io.StringIO()

    code = cli.main([*_base_args(tmp_path), "replay", "--json", str(log)], stdout=stdout)

    assert code == ExitCode.SUCCESS
    payload = json.loads(stdout.getvalue())
    assert payload["type"] == "error"
    assert payload["message"] == "Reached the maximum number of turns"
    assert isinstance(payload["timestamp"], int)


def test_format_status_line() -> None:
    event = StatusEvent(kind=StatusKind.COMMAND_FAILED, message="Command failed (exit 1): make", timestamp=1, tool="Bash")

    assert cli.format_status_line(event) == "[command_failed Bash] Command failed (exit 1): make"
