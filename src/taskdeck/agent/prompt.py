"""Agent command line and task prompt construction."""

from __future__ import annotations

from collections.abc import Sequence

from taskdeck.agent.models import PhaseScoping, StartTaskOptions
from taskdeck.config import DEFAULT_AGENT_EXECUTABLE

STREAM_FLAGS = ("-p", "--output-format", "stream-json", "--verbose")


def _scope_lines(scoping: PhaseScoping) -> list[str]:
    lines = ["## Scope", ""]
    if scoping.phase:
        lines.append(f"Phase: {scoping.phase}")
    if scoping.feature:
        lines.append(f"Feature: {scoping.feature}")
    if scoping.in_scope:
        lines.extend(["", "In scope:"])
        lines.extend(f"- {item}" for item in scoping.in_scope)
    if scoping.out_of_scope:
        lines.extend(["", "Out of scope (do not implement):"])
        lines.extend(f"- {item}" for item in scoping.out_of_scope)
    lines.append("")
    return lines


def build_task_prompt(options: StartTaskOptions) -> str:
    lines = [f"# Task: {options.title}", ""]

    if options.description.strip():
        lines.extend(["## Requirements", "", options.description.strip(), ""])

    if options.scoping is not None and not options.scoping.empty:
        lines.extend(_scope_lines(options.scoping))

    lines.extend(
        [
            "## Context",
            "",
            "This task is tracked by taskdeck.",
            f"Task ID: {options.task_id}",
            f"Session ID: {options.session_id}",
            "",
            "## Instructions",
            "",
            "Implement the requirements above following the project's conventions.",
            "When complete, provide a summary of the changes made.",
        ]
    )
    return "\n".join(lines)


def build_agent_argv(
    options: StartTaskOptions,
    prompt: str,
    *,
    executable: str = DEFAULT_AGENT_EXECUTABLE,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Argument vector for a non-interactive streaming agent run; the prompt is last."""
    argv = [executable, *extra_args, *STREAM_FLAGS]
    if options.max_turns is not None:
        argv.extend(["--max-turns", str(options.max_turns)])
    if options.max_budget_usd is not None:
        argv.extend(["--max-budget-usd", format(options.max_budget_usd, "g")])
    if options.allowed_tools:
        argv.extend(["--allowedTools", ",".join(options.allowed_tools)])
    if options.append_system_prompt:
        argv.extend(["--append-system-prompt", options.append_system_prompt])
    if options.resume_session_id:
        argv.extend(["--resume", options.resume_session_id])
    argv.append(prompt)
    return argv
