from __future__ import annotations

import pytest

from taskdeck.terminal.buffers import SessionBufferStore


def test_byte_buffer_keeps_tail_at_capacity() -> None:
    store = SessionBufferStore(max_bytes=8, max_lines=4)
    store.init("t1")

    store.append_bytes("t1", b"abcdef")
    store.append_bytes("t1", b"ghijkl")

    assert store.get_bytes("t1") == b"efghijkl"


def test_line_reassembly_carries_fragments_across_chunks() -> None:
    store = SessionBufferStore()
    store.init("t1")

    assert store.append_text("t1", "hel") == []
    assert store.append_text("t1", "lo\nwor") == ["hello"]
    assert store.append_text("t1", "ld\n\nnext") == ["world", ""]

    assert store.get_lines("t1") == ["hello", "world", ""]
    assert store.carry("t1") == "next"


def test_line_buffer_is_capped() -> None:
    store = SessionBufferStore(max_lines=3)
    store.init("t1")

    store.append_text("t1", "".join(f"line{i}\n" for i in range(10)))

    assert store.get_lines("t1") == ["line7", "line8", "line9"]


def test_clear_lines_drops_carry() -> None:
    store = SessionBufferStore()
    store.init("t1")
    store.append_text("t1", "done\npartial")

    store.clear_lines("t1")

    assert store.get_lines("t1") == []
    assert store.carry("t1") == ""


def test_appends_to_unknown_sessions_are_ignored() -> None:
    store = SessionBufferStore()

    store.append_bytes("ghost", b"data")

    assert store.append_text("ghost", "line\n") == []
    assert store.get_bytes("ghost") == b""
    assert store.get_lines("ghost") == []
    assert not store.has("ghost")


def test_discard_keeps_snapshot() -> None:
    store = SessionBufferStore()
    store.init("t1")
    store.append_bytes("t1", b"data")
    assert store.save_snapshot("t1", "serialized", 3, 7)

    store.discard("t1")

    assert not store.has("t1")
    assert store.get_bytes("t1") == b""
    snapshot = store.get_snapshot("t1")
    assert snapshot is not None
    assert (snapshot.blob, snapshot.cursor_row, snapshot.cursor_col) == ("serialized", 3, 7)


def test_empty_snapshot_does_not_overwrite_backup() -> None:
    store = SessionBufferStore()
    store.save_snapshot("t1", "first", 0, 0)

    assert store.save_snapshot("t1", "", 1, 1) is False
    assert store.get_snapshot("t1").blob == "first"

    assert store.save_snapshot("t1", "second", 2, 2) is True
    assert store.get_snapshot("t1").blob == "second"

    store.clear_snapshot("t1")
    assert store.get_snapshot("t1") is None


def test_reinit_resets_buffers() -> None:
    store = SessionBufferStore()
    store.init("t1")
    store.append_bytes("t1", b"old")
    store.append_text("t1", "old\n")

    store.init("t1")

    assert store.get_bytes("t1") == b""
    assert store.get_lines("t1") == []


def test_clear_removes_buffers_but_not_snapshots() -> None:
    store = SessionBufferStore()
    store.init("t1")
    store.save_snapshot("t1", "blob", 0, 0)

    store.clear()

    assert not store.has("t1")
    assert store.get_snapshot("t1") is not None


def test_rejects_non_positive_capacities() -> None:
    with pytest.raises(ValueError):
        SessionBufferStore(max_bytes=0)
    with pytest.raises(ValueError):
        SessionBufferStore(max_lines=0)
