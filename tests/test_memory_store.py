from pathlib import Path

from memochat.memory.store import MemoryStore


def test_read_missing_file_is_empty(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path)
    assert store.read_lines() == []


def test_write_then_read_roundtrip_format(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path)
    store.write_lines(["one", "two"])

    assert store.path.read_text(encoding="utf-8") == "one\ntwo\n"
    assert store.read_lines() == ["one", "two"]

    store.write_lines([])
    assert store.path.read_text(encoding="utf-8") == ""


def test_read_normalizes_crlf_and_missing_trailing_newline(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path)
    store.path.write_bytes(b"one\r\ntwo\rthree")

    assert store.read_lines() == ["one", "two", "three"]


def test_write_truncates_to_cap_keeping_earliest_lines(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path, max_lines=2)

    written = store.write_lines(["a", "b", "c"])

    assert written == ["a", "b"]
    assert store.read_lines() == ["a", "b"]


def test_apply_persists_and_reports_counts(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path)
    store.write_lines(["User lives in Berlin", "User likes tea"])

    result = store.apply({
        "remove": [{"lineStart": 1, "exactText": "User lives in Berlin"}],
        "add": ["User lives in Hamburg"],
    })

    assert result.applied == {"removed": 1, "added": 1, "deduped": 0}
    assert store.read_lines() == ["User likes tea", "User lives in Hamburg"]


def test_apply_against_snapshot_uses_snapshot_numbering(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path)
    snapshot = ["a", "b"]
    store.write_lines(["something else entirely"])

    result = store.apply({"remove": [{"lineStart": 2, "exactText": "b"}]}, base_lines=snapshot)

    assert result.lines == ["a"]
    assert store.read_lines() == ["a"]


def test_apply_cap_is_applied_after_edits(tmp_path: Path) -> None:
    store = MemoryStore(tmp_path, max_lines=2)
    store.write_lines(["a", "b"])

    result = store.apply({"add": ["c"]})

    assert result.added == 1
    assert result.lines == ["a", "b"]
    assert store.read_lines() == ["a", "b"]


def test_render_numbered() -> None:
    assert MemoryStore.render_numbered([]) == "(empty)"
    assert MemoryStore.render_numbered(["x", "y"]) == "1. x\n2. y"
