"""Process-group discovery and signalling for pausing shell sessions.

Interactive shells put each foreground job into its own process group, so
stopping the shell's group leaves the job running. The foreground group is
discovered from the shell's direct children at call time; this is a
best-effort heuristic over a process-table snapshot that can change between
discovery and delivery.
"""

from __future__ import annotations

import logging as py_logging
import os
import signal
from collections.abc import Callable

import psutil

logger = py_logging.getLogger(__name__)

SIGSTOP = getattr(signal, "SIGSTOP", None)
SIGCONT = getattr(signal, "SIGCONT", None)


def supports_process_groups() -> bool:
    return hasattr(os, "killpg") and SIGSTOP is not None and SIGCONT is not None


def _list_children(pid: int) -> list[int]:
    try:
        return [child.pid for child in psutil.Process(pid).children(recursive=False)]
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def _getpgid(pid: int) -> int | None:
    try:
        return os.getpgid(pid)
    except (ProcessLookupError, PermissionError, OSError):
        return None


def find_foreground_pgid(
    shell_pid: int,
    *,
    list_children: Callable[[int], list[int]] = _list_children,
    getpgid: Callable[[int], int | None] = _getpgid,
) -> int | None:
    if not supports_process_groups():
        return None

    groups: list[tuple[int, int]] = []
    for child_pid in list_children(shell_pid):
        pgid = getpgid(child_pid)
        if pgid is not None:
            groups.append((child_pid, pgid))

    if not groups:
        logger.debug("No child processes found for shell pid=%s", shell_pid)
        return None

    for child_pid, pgid in groups:
        if pgid != shell_pid and pgid == child_pid:
            logger.debug("Foreground group leader pgid=%s shell=%s", pgid, shell_pid)
            return pgid

    for _child_pid, pgid in groups:
        if pgid != shell_pid:
            logger.debug("Foreground group pgid=%s shell=%s", pgid, shell_pid)
            return pgid

    logger.debug("All children share shell group pgid=%s", shell_pid)
    return None


class ProcessGroupSignaler:
    """Delivers stop/continue signals to a shell's groups."""

    def __init__(
        self,
        *,
        killpg: Callable[[int, int], None] | None = None,
        find_foreground: Callable[[int], int | None] = find_foreground_pgid,
    ) -> None:
        self._killpg = killpg or getattr(os, "killpg", None)
        self._find_foreground = find_foreground

    @property
    def supported(self) -> bool:
        return self._killpg is not None and SIGSTOP is not None and SIGCONT is not None

    def signal_group(self, pgid: int, signum: int) -> bool:
        if self._killpg is None:
            return False
        try:
            self._killpg(pgid, signum)
        except OSError as exc:
            logger.debug("Signal delivery failed pgid=%s signal=%s error=%s", pgid, signum, exc)
            return False
        return True

    def pause(self, shell_pid: int) -> list[int]:
        """Stop the foreground group, then the shell's own group."""
        if not self.supported:
            return []
        signalled: list[int] = []
        foreground = self._find_foreground(shell_pid)
        if foreground is not None and foreground != shell_pid:
            if self.signal_group(foreground, SIGSTOP):
                signalled.append(foreground)
            else:
                logger.warning("Failed to stop foreground group pgid=%s", foreground)
        if self.signal_group(shell_pid, SIGSTOP):
            signalled.append(shell_pid)
        return signalled

    def resume(self, shell_pid: int) -> list[int]:
        """Continue the shell's group, then the foreground group."""
        if not self.supported:
            return []
        signalled: list[int] = []
        if self.signal_group(shell_pid, SIGCONT):
            signalled.append(shell_pid)
        foreground = self._find_foreground(shell_pid)
        if foreground is not None and foreground != shell_pid:
            if self.signal_group(foreground, SIGCONT):
                signalled.append(foreground)
            else:
                logger.warning("Failed to continue foreground group pgid=%s", foreground)
        return signalled
