"""Interactive PTY terminal sessions."""

from .buffers import SessionBufferStore
from .capture import SessionInsight, summarize_session
from .manager import TerminalSessionManager
from .models import SpawnOptions, SpawnResult, TerminalSession, TerminalSnapshot
from .process_groups import ProcessGroupSignaler, find_foreground_pgid
from .pty_backend import build_session_env, build_shell_command, default_shell

__all__ = [
    "build_session_env",
    "build_shell_command",
    "default_shell",
    "find_foreground_pgid",
    "ProcessGroupSignaler",
    "SessionBufferStore",
    "SessionInsight",
    "SpawnOptions",
    "SpawnResult",
    "summarize_session",
    "TerminalSession",
    "TerminalSessionManager",
    "TerminalSnapshot",
]
