from __future__ import annotations

import json
import os
from datetime import UTC, datetime
from pathlib import Path

import pytest

from scopegate.exceptions import SnapshotCorruptError, SnapshotPublishError
from scopegate.models.scope import ScopeSnapshot
from scopegate.snapshot_store import SnapshotStore, load_snapshot


def _snapshot(*scopes: str) -> ScopeSnapshot:
    return ScopeSnapshot.from_scopes(scopes, now=datetime(2026, 1, 1, tzinfo=UTC))


def test_read_absent_returns_none(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path / "shared", "ratify-config.json")
    assert store.read() is None
    assert load_snapshot(tmp_path / "missing.json") is None


def test_publish_then_read(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path / "shared", "ratify-config.json")
    path = store.publish(_snapshot("r1", "r2"))

    assert path == tmp_path / "shared" / "ratify-config.json"
    assert json.loads(path.read_text())["scopeMap"] == {"r1": True, "r2": True}
    loaded = store.read()
    assert loaded is not None
    assert loaded.scopes == frozenset({"r1", "r2"})
    assert not store.temp_path.exists()


def test_publish_replaces_previous(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path, "snap.json")
    store.publish(_snapshot("old"))
    store.publish(_snapshot("new"))
    loaded = store.read()
    assert loaded is not None
    assert loaded.scopes == frozenset({"new"})


@pytest.mark.parametrize("content", ["", "{", "[]", '{"scopeMap": ["a"]}', '{"scopeMap": {"a": "yes"}}'])
def test_corrupt_snapshot_raises(tmp_path: Path, content: str) -> None:
    path = tmp_path / "snap.json"
    path.write_text(content)
    with pytest.raises(SnapshotCorruptError):
        load_snapshot(path)


def test_publish_cleans_up_leftover_temp_files(tmp_path: Path) -> None:
    (tmp_path / "snap.json.tmp").write_text("partial")
    (tmp_path / "other.tmp").write_text("partial")
    (tmp_path / "keep.txt").write_text("keep")

    SnapshotStore(tmp_path, "snap.json").publish(_snapshot("a"))

    assert sorted(p.name for p in tmp_path.iterdir()) == ["keep.txt", "snap.json"]


def test_cleanup_failure_is_not_fatal(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "stuck.tmp").write_text("partial")
    original_unlink = Path.unlink

    def _unlink(self: Path, missing_ok: bool = False) -> None:
        if self.name == "stuck.tmp":
            raise PermissionError("busy")
        original_unlink(self, missing_ok=missing_ok)

    monkeypatch.setattr(Path, "unlink", _unlink)
    store = SnapshotStore(tmp_path, "snap.json")
    store.publish(_snapshot("a"))

    assert store.read() is not None
    assert (tmp_path / "stuck.tmp").exists()


def test_rename_failure_keeps_previous_snapshot(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SnapshotStore(tmp_path, "snap.json")
    store.publish(_snapshot("old"))

    def _fail_replace(_src: object, _dst: object) -> None:
        raise OSError("cross-device link")

    monkeypatch.setattr(os, "replace", _fail_replace)
    with pytest.raises(SnapshotPublishError):
        store.publish(_snapshot("new"))

    monkeypatch.undo()
    loaded = store.read()
    assert loaded is not None
    assert loaded.scopes == frozenset({"old"})
    assert not store.temp_path.exists()


def test_write_failure_raises_publish_error(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("file")
    with pytest.raises(SnapshotPublishError):
        SnapshotStore(blocker, "snap.json").publish(_snapshot("a"))


def test_write_failure_removes_partial_temp_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = SnapshotStore(tmp_path, "snap.json")
    store.publish(_snapshot("old"))

    def _fail_fsync(_fd: int) -> None:
        raise OSError("no space left on device")

    monkeypatch.setattr(os, "fsync", _fail_fsync)
    with pytest.raises(SnapshotPublishError):
        store.publish(_snapshot("new"))

    assert not store.temp_path.exists()
    loaded = store.read()
    assert loaded is not None
    assert loaded.scopes == frozenset({"old"})


def test_reader_never_sees_partial_write(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path, "snap.json")
    store.publish(_snapshot("v1"))

    # Interleave reader opens between every writer step.
    store.cleanup_temp_files()
    first = store.read()
    temp = store.write_temp(_snapshot("v2", "extra"))
    during = store.read()
    store.commit(temp)
    after = store.read()

    assert first is not None and first.scopes == frozenset({"v1"})
    assert during is not None and during.scopes == frozenset({"v1"})
    assert after is not None and after.scopes == frozenset({"v2", "extra"})


def test_temp_file_lives_beside_target(tmp_path: Path) -> None:
    store = SnapshotStore(tmp_path / "d", "snap.json")
    temp = store.write_temp(_snapshot("a"))
    assert temp.parent == store.path.parent
    assert temp.name == "snap.json.tmp"
