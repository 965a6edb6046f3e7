"""Pseudo-terminal spawning for interactive shell sessions.

POSIX hosts use ``ptyprocess``; Windows hosts use ``pywinpty``. Both are
wrapped into the byte-oriented :class:`~taskdeck.terminal.models.PtyProcessLike`
contract so the session manager never deals with backend differences.
"""

from __future__ import annotations

import os
import subprocess
from collections.abc import Callable, Mapping
from contextlib import suppress

from taskdeck.errors import ErrorKind, TaskDeckError
from taskdeck.terminal.models import PtyProcessLike

PtySpawn = Callable[[list[str], str, dict[str, str], int, int], PtyProcessLike]

_READ_ERRORS = (EOFError, OSError, ValueError)


def default_shell(configured: str = "") -> str:
    if configured.strip():
        return configured.strip()
    if os.name == "nt":
        return "powershell.exe"
    return os.environ.get("SHELL") or "/bin/bash"


def build_shell_command(shell: str) -> list[str]:
    if os.name == "nt" and shell.lower().endswith("powershell.exe"):
        return [shell, "-NoLogo"]
    return [shell]


def build_session_env(
    base: Mapping[str, str],
    overrides: Mapping[str, str] | None,
    *,
    cols: int,
    rows: int,
    term_name: str = "xterm-256color",
) -> dict[str, str]:
    """Compose a child environment for an embedded terminal.

    Text-UI clients that size themselves from ``COLUMNS``/``CLI_WIDTH`` see
    the real dimensions even though the PTY does not inherit a console.
    ``TMPDIR`` is dropped unless the caller asked for one, because sandboxed
    tools launched in the shell create their scratch directories under it.
    """
    env = dict(base)
    env.update(overrides or {})
    if not (overrides or {}).get("TMPDIR"):
        env.pop("TMPDIR", None)
    env.setdefault("TERM", term_name)
    env["COLUMNS"] = str(cols)
    env["LINES"] = str(rows)
    env["CLI_WIDTH"] = str(cols)
    return env


class PosixPty:
    def __init__(self, process: object) -> None:
        self._process = process
        self.pid: int = int(getattr(process, "pid"))

    def read(self, size: int = 4096) -> bytes:
        try:
            return self._process.read(size)
        except _READ_ERRORS:
            return b""

    def write(self, data: bytes) -> None:
        self._process.write(data)

    def resize(self, cols: int, rows: int) -> None:
        self._process.setwinsize(rows, cols)

    def terminate(self) -> None:
        with suppress(OSError):
            self._process.close(force=True)
        if self._process.isalive():
            self._process.terminate(force=True)

    def wait(self) -> int:
        try:
            status = self._process.wait()
        except Exception:
            return -1
        if status is None:
            signal_status = getattr(self._process, "signalstatus", None)
            return -int(signal_status) if signal_status else -1
        return int(status)


class WindowsPty:
    def __init__(self, process: object) -> None:
        self._process = process
        self.pid = int(getattr(process, "pid"))

    def read(self, size: int = 4096) -> bytes:
        try:
            chunk = self._process.read(size)
        except _READ_ERRORS:
            return b""
        if isinstance(chunk, bytes):
            return chunk
        return str(chunk).encode("utf-8")

    def write(self, data: bytes) -> None:
        self._process.write(data.decode("utf-8", errors="replace"))

    def resize(self, cols: int, rows: int) -> None:
        self._process.setwinsize(rows, cols)

    def terminate(self) -> None:
        try:
            self._process.close()
        except TypeError:
            self._process.close(True)
        except Exception:
            pass
        if _is_alive(self._process):
            with suppress(Exception):
                self._process.terminate(force=True)

    def wait(self) -> int:
        waiter = getattr(self._process, "wait", None)
        try:
            status = waiter() if callable(waiter) else getattr(self._process, "exitstatus", None)
        except Exception:
            return -1
        return int(status) if status is not None else -1


def _spawn_with_ptyprocess(
    command: list[str],
    cwd: str,
    env: dict[str, str],
    cols: int,
    rows: int,
) -> PtyProcessLike:
    try:
        from ptyprocess import PtyProcess
    except Exception as exc:
        raise TaskDeckError(
            "ptyprocess backend is unavailable.",
            kind=ErrorKind.START_FAILURE,
            hint="Install the ptyprocess package.",
        ) from exc
    process = PtyProcess.spawn(command, cwd=cwd, env=env, dimensions=(rows, cols))
    return PosixPty(process)


def _spawn_with_pywinpty(
    command: list[str],
    cwd: str,
    env: dict[str, str],
    cols: int,
    rows: int,
) -> PtyProcessLike:
    try:
        from winpty import PtyProcess
    except Exception as exc:
        raise TaskDeckError(
            "pywinpty backend is unavailable.",
            kind=ErrorKind.START_FAILURE,
            hint="Install the pywinpty package on Windows.",
        ) from exc
    process = PtyProcess.spawn(
        subprocess.list2cmdline(command),
        cwd=cwd,
        env=env,
        dimensions=(rows, cols),
    )
    return WindowsPty(process)


def platform_spawn() -> PtySpawn:
    return _spawn_with_pywinpty if os.name == "nt" else _spawn_with_ptyprocess


def _is_alive(process: object) -> bool:
    if hasattr(process, "isalive"):
        try:
            return bool(process.isalive())
        except Exception:
            return True
    return True
