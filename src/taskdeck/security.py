"""Log sanitization for terminal traffic and agent command lines."""

from __future__ import annotations

import re
import shlex

PREVIEW_TRUNCATE_LIMIT = 100
DEFAULT_LOG_TRUNCATE_LIMIT = 700

AUTH_BEARER_PATTERN = re.compile(r"(Authorization:\s*Bearer)\s+\S+", re.IGNORECASE)
URL_CREDENTIAL_PATTERN = re.compile(r"(https?://)([^/\s:@]+):([^@\s]+)@")
GH_TOKEN_PATTERN = re.compile(r"\bgh[pousr]_[A-Za-z0-9_]+\b")
API_KEY_PATTERN = re.compile(r"\bsk-(?:ant-)?[A-Za-z0-9_\-]{16,}\b")
_SECRET_ENV_PATTERN = re.compile(
    r"\b([A-Z0-9_]*(?:API_KEY|TOKEN|SECRET|PASSWORD)[A-Z0-9_]*)=(\S+)",
)


def truncate_log(value: str, limit: int = DEFAULT_LOG_TRUNCATE_LIMIT) -> str:
    """Truncate log text to the specified limit with ellipsis."""
    value = value.strip()
    if len(value) <= limit:
        return value
    return value[: max(0, limit - 3)] + "..."


def sanitize_log_text(value: str, limit: int = DEFAULT_LOG_TRUNCATE_LIMIT) -> str:
    """Mask sensitive values and return a bounded-length log string."""
    if not value:
        return ""

    sanitized = AUTH_BEARER_PATTERN.sub(r"\1 ***", value)
    sanitized = URL_CREDENTIAL_PATTERN.sub(r"\1***:***@", sanitized)
    sanitized = GH_TOKEN_PATTERN.sub("***", sanitized)
    sanitized = API_KEY_PATTERN.sub("***", sanitized)
    sanitized = _SECRET_ENV_PATTERN.sub(r"\1=***", sanitized)
    return truncate_log(sanitized, limit)


def preview(value: str | bytes) -> str:
    """Short, repr-escaped preview of a data chunk for debug logs."""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return repr(sanitize_log_text(value, limit=PREVIEW_TRUNCATE_LIMIT))


def command_for_log(args: list[str]) -> str:
    """Return a shell-safe command string bounded for logging."""
    if not args:
        return ""
    return sanitize_log_text(" ".join(shlex.quote(part) for part in args))
