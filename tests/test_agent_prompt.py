from __future__ import annotations

from taskdeck.agent.models import PhaseScoping, StartTaskOptions
from taskdeck.agent.prompt import STREAM_FLAGS, build_agent_argv, build_task_prompt


def _options(**overrides) -> StartTaskOptions:
    values = {
        "task_id": "task-7",
        "title": "Add OAuth login",
        "project_path": "/work/app",
        "session_id": "sess-42",
    }
    values.update(overrides)
    return StartTaskOptions(**values)


def test_minimal_prompt_has_title_context_and_instructions() -> None:
    prompt = build_task_prompt(_options())

    assert prompt.startswith("# Task: Add OAuth login\n")
    assert "## Requirements" not in prompt
    assert "## Scope" not in prompt
    assert "Task ID: task-7" in prompt
    assert "Session ID: sess-42" in prompt
    assert prompt.index("## Context") < prompt.index("## Instructions")


def test_prompt_includes_requirements_and_scope() -> None:
    scoping = PhaseScoping(
        phase="Phase 2",
        feature="Auth",
        in_scope=("Google provider",),
        out_of_scope=("SAML",),
    )

    prompt = build_task_prompt(_options(description="  Use PKCE.  ", scoping=scoping))

    assert "## Requirements\n\nUse PKCE.\n" in prompt
    assert "Phase: Phase 2" in prompt
    assert "Feature: Auth" in prompt
    assert "In scope:\n- Google provider" in prompt
    assert "Out of scope (do not implement):\n- SAML" in prompt
    assert prompt.index("## Requirements") < prompt.index("## Scope") < prompt.index("## Context")


def test_empty_scoping_is_omitted() -> None:
    prompt = build_task_prompt(_options(scoping=PhaseScoping()))

    assert "## Scope" not in prompt


def test_argv_defaults_to_streaming_flags_with_prompt_last() -> None:
    argv = build_agent_argv(_options(), "do it", executable="agent-bin")

    assert argv == ["agent-bin", *STREAM_FLAGS, "do it"]


def test_argv_carries_optional_limits_in_order() -> None:
    options = _options(
        max_turns=12,
        max_budget_usd=2.5,
        allowed_tools=("Read", "Bash"),
        append_system_prompt="Be brief.",
        resume_session_id="prev-1",
    )

    argv = build_agent_argv(options, "prompt text", executable="agent-bin", extra_args=("--model", "fast"))

    assert argv == [
        "agent-bin",
        "--model",
        "fast",
        "-p",
        "--output-format",
        "stream-json",
        "--verbose",
        "--max-turns",
        "12",
        "--max-budget-usd",
        "2.5",
        "--allowedTools",
        "Read,Bash",
        "--append-system-prompt",
        "Be brief.",
        "--resume",
        "prev-1",
        "prompt text",
    ]
