"""Module entrypoint for `python -m taskdeck`."""

from taskdeck.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
