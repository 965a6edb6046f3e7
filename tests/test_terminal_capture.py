from __future__ import annotations

from taskdeck.terminal.capture import (
    extract_commands,
    extract_errors,
    extract_file_paths,
    strip_ansi,
    summarize_session,
)


def test_strip_ansi_removes_color_and_title_sequences() -> None:
    raw = "\x1b]0;user@host\x07\x1b[1;32m$ \x1b[0mls\x1b[K"

    assert strip_ansi(raw) == "$ ls"


def test_extract_commands_recognizes_common_prompts() -> None:
    output = "\n".join(
        [
            "$ npm install",
            "added 12 packages",
            "% git status",
            "PS C:\\work> dir",
            "$ ",
            "plain output",
        ]
    )

    assert extract_commands(output) == ["npm install", "git status", "dir"]


def test_extract_file_paths_deduplicates_in_order() -> None:
    output = "\n".join(
        [
            " M src/app.py",
            "A  README.md",
            "compiling src/main.ts and src/main.ts",
            "added 3 packages in 2s",
        ]
    )

    assert extract_file_paths(output) == ["src/app.py", "README.md", "src/main.ts", "3 packages in 2s"]


def test_extract_errors_matches_markers_and_is_bounded() -> None:
    output = "\n".join(
        [
            "error: pathspec 'x' did not match",
            "fatal: not a git repository",
            "TypeError: undefined is not a function",
            "FAILED tests/test_app.py::test_it",
            "everything fine",
            "error: pathspec 'x' did not match",
        ]
    )

    errors = extract_errors(output)

    assert errors == [
        "error: pathspec 'x' did not match",
        "fatal: not a git repository",
        "TypeError: undefined is not a function",
        "FAILED tests/test_app.py::test_it",
    ]
    assert len(extract_errors("\n".join(f"Error: {i}" for i in range(50)), limit=5)) == 5


def test_summarize_session_titles_by_first_command() -> None:
    assert summarize_session("$ git commit -m wip\n").title == "Git commit"
    assert summarize_session("$ pnpm build\n").title == "Package management: pnpm"
    assert summarize_session("$ mkdir out\n").title == "File operations: mkdir"
    assert summarize_session("$ python manage.py\n").title == "Running python script"
    assert summarize_session("$ htop\n").title == "Terminal session: htop"
    assert summarize_session("no prompt here").title == "Terminal session"


def test_summarize_session_flags_errors_and_builds_summary() -> None:
    insight = summarize_session("\x1b[31m$ make\x1b[0m\nmake: *** [all] Error 2\nError: build failed\n")

    assert insight.title == "Session with errors: make"
    assert insight.commands == ["make"]
    assert insight.errors == ["Error: build failed"]
    assert "Commands executed:\n  - make" in insight.summary
    assert "Errors encountered:" in insight.summary


def test_summarize_session_uses_explicit_title_and_empty_summary() -> None:
    insight = summarize_session("", title="Nightly build")

    assert insight.title == "Nightly build"
    assert insight.summary == "No significant activity recorded in this session."
