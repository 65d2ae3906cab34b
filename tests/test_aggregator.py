from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import pytest

from scopegate.aggregator import (
    Aggregator,
    AggregatorState,
    ChangeKind,
    Observation,
    detect_change,
    observe,
)
from scopegate.exceptions import ConfigStoreError, SnapshotPublishError
from scopegate.models.config_object import ConfigObject
from scopegate.models.scope import ScopeSnapshot
from scopegate.snapshot_store import SnapshotStore

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _decl(*scopes: str) -> str:
    return json.dumps({"version": "1", "scopes": list(scopes), "lastUpdated": "2026-01-01T00:00:00Z"})


def _cm(name: str, version: str, **data: str) -> ConfigObject:
    return ConfigObject(name=name, version=version, data=data)


@dataclass
class FakeStore:
    objects: list[ConfigObject] = field(default_factory=list)
    fail_next: int = 0
    calls: int = 0

    async def list_objects(self) -> list[ConfigObject]:
        self.calls += 1
        if self.fail_next:
            self.fail_next -= 1
            raise ConfigStoreError("apiserver unavailable", status_code=503)
        return list(self.objects)


class CountingSnapshotStore(SnapshotStore):
    def __init__(self, directory: Path, file_name: str = "ratify-config.json") -> None:
        super().__init__(directory, file_name)
        self.published: list[ScopeSnapshot] = []
        self.fail_next = 0

    def publish(self, snapshot: ScopeSnapshot) -> Path:
        if self.fail_next:
            self.fail_next -= 1
            raise SnapshotPublishError("disk full", path=str(self.path))
        self.published.append(snapshot)
        return super().publish(snapshot)


def _aggregator(store: FakeStore, snapshots: SnapshotStore) -> Aggregator:
    return Aggregator(store, snapshots, interval=0, clock=lambda: NOW)


# ------------------------------------------------------------------
# observe / detect_change
# ------------------------------------------------------------------


def test_observe_filters_by_prefix_and_flattens_scopes() -> None:
    current = observe(
        [
            _cm("scoped-config-a", "1", k=_decl("a", "b")),
            _cm("unrelated", "9", k=_decl("zzz")),
            _cm("scoped-config-b", "2", k1=_decl("b"), k2=_decl("c")),
        ],
        "scoped-config-",
    )
    assert current.names == frozenset({"scoped-config-a", "scoped-config-b"})
    assert current.versions == {"scoped-config-a": "1", "scoped-config-b": "2"}
    assert current.scopes == ["a", "b", "b", "c"]


def test_observe_skips_malformed_payload_only(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="scopegate.aggregator"):
        current = observe(
            [_cm("scoped-config-a", "1", bad="{not json", good=_decl("ok"), wrong='{"scopes": "x"}')],
            "scoped-config-",
        )
    assert current.scopes == ["ok"]
    assert current.names == frozenset({"scoped-config-a"})
    assert "Failed to parse JSON from ConfigMap scoped-config-a, key bad" in caplog.text


def _obs(**versions: str) -> Observation:
    return Observation(names=frozenset(versions), versions=dict(versions))


def _state(**versions: str) -> AggregatorState:
    return AggregatorState(names=frozenset(versions), versions=dict(versions))


def test_detect_change_none() -> None:
    assert detect_change(_state(a="1", b="1"), _obs(a="1", b="1")) is ChangeKind.NONE


def test_detect_change_empty_first_run_is_noop() -> None:
    assert detect_change(AggregatorState(), _obs()) is ChangeKind.NONE


def test_detect_change_addition() -> None:
    assert detect_change(_state(a="1"), _obs(a="1", b="1")) is ChangeKind.IDENTITY


def test_detect_change_removal() -> None:
    assert detect_change(_state(a="1", b="1"), _obs(a="1")) is ChangeKind.IDENTITY


def test_detect_change_swap_keeps_count() -> None:
    assert detect_change(_state(a="1", b="1"), _obs(a="1", c="1")) is ChangeKind.IDENTITY


def test_detect_change_version_only() -> None:
    assert detect_change(_state(a="1", b="1"), _obs(a="1", b="2")) is ChangeKind.CONTENT


# ------------------------------------------------------------------
# run_cycle
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_union_and_dedup(tmp_path: Path) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a", "b")), _cm("scoped-config-b", "1", k=_decl("b", "c"))])
    snapshots = CountingSnapshotStore(tmp_path)

    result = await _aggregator(store, snapshots).run_cycle(AggregatorState())

    assert result.published
    assert result.change is ChangeKind.IDENTITY
    doc = json.loads(snapshots.path.read_text())
    assert doc["scopeMap"] == {"a": True, "b": True, "c": True}
    assert doc["lastUpdated"] == "2026-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_second_cycle_without_change_is_noop(tmp_path: Path) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a"))])
    snapshots = CountingSnapshotStore(tmp_path)
    aggregator = _aggregator(store, snapshots)

    first = await aggregator.run_cycle(AggregatorState())
    second = await aggregator.run_cycle(first.state)

    assert first.published
    assert not second.published
    assert second.change is ChangeKind.NONE
    assert second.state == first.state
    assert len(snapshots.published) == 1


@pytest.mark.asyncio
async def test_new_object_triggers_publish(tmp_path: Path) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a"))])
    snapshots = CountingSnapshotStore(tmp_path)
    aggregator = _aggregator(store, snapshots)
    state = (await aggregator.run_cycle(AggregatorState())).state

    store.objects.append(_cm("scoped-config-b", "1", k=_decl("b")))
    result = await aggregator.run_cycle(state)

    assert result.change is ChangeKind.IDENTITY
    assert result.snapshot is not None
    assert result.snapshot.scopes == frozenset({"a", "b"})


@pytest.mark.asyncio
async def test_version_change_triggers_publish(tmp_path: Path) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a"))])
    snapshots = CountingSnapshotStore(tmp_path)
    aggregator = _aggregator(store, snapshots)
    state = (await aggregator.run_cycle(AggregatorState())).state

    store.objects = [_cm("scoped-config-a", "2", k=_decl("a"))]
    result = await aggregator.run_cycle(state)

    assert result.change is ChangeKind.CONTENT
    assert len(snapshots.published) == 2
    assert result.state.versions == {"scoped-config-a": "2"}


@pytest.mark.asyncio
async def test_removed_object_drops_its_scopes(tmp_path: Path) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a")), _cm("scoped-config-b", "1", k=_decl("b"))])
    snapshots = CountingSnapshotStore(tmp_path)
    aggregator = _aggregator(store, snapshots)
    state = (await aggregator.run_cycle(AggregatorState())).state

    store.objects = store.objects[:1]
    result = await aggregator.run_cycle(state)

    assert result.snapshot is not None
    assert result.snapshot.scopes == frozenset({"a"})
    assert result.state.names == frozenset({"scoped-config-a"})
    assert "scoped-config-b" not in result.state.versions


@pytest.mark.asyncio
async def test_publish_failure_keeps_state_and_retries(tmp_path: Path) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a"))])
    snapshots = CountingSnapshotStore(tmp_path)
    snapshots.fail_next = 1
    aggregator = _aggregator(store, snapshots)
    state = AggregatorState()

    with pytest.raises(SnapshotPublishError):
        await aggregator.run_cycle(state)
    assert snapshots.read() is None

    retry = await aggregator.run_cycle(state)
    assert retry.published
    assert retry.state.names == frozenset({"scoped-config-a"})


@pytest.mark.asyncio
async def test_store_failure_aborts_cycle(tmp_path: Path) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a"))], fail_next=1)
    snapshots = CountingSnapshotStore(tmp_path)

    with pytest.raises(ConfigStoreError):
        await _aggregator(store, snapshots).run_cycle(AggregatorState())
    assert snapshots.published == []
    assert snapshots.read() is None


# ------------------------------------------------------------------
# run_forever
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_run_forever_survives_cycle_errors(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    store = FakeStore([_cm("scoped-config-a", "1", k=_decl("a"))], fail_next=1)
    snapshots = CountingSnapshotStore(tmp_path)

    with caplog.at_level(logging.ERROR, logger="scopegate.aggregator"):
        state = await _aggregator(store, snapshots).run_forever(max_cycles=3)

    assert store.calls == 3
    assert len(snapshots.published) == 1
    assert state.names == frozenset({"scoped-config-a"})
    assert "Error processing ConfigMaps" in caplog.text


@pytest.mark.asyncio
async def test_end_to_end_snapshot(tmp_path: Path) -> None:
    store = FakeStore(
        [
            _cm(
                "scoped-config-a",
                "1",
                k='{"version":"1","scopes":["r1"],"lastUpdated":"2025-06-01T00:00:00Z"}',
            ),
            _cm("scoped-config-b", "1", k='{"scopes":["r2"]}'),
        ]
    )
    snapshots = SnapshotStore(tmp_path, "ratify-config.json")
    await _aggregator(store, snapshots).run_forever(max_cycles=1)

    assert json.loads(snapshots.path.read_text())["scopeMap"] == {"r1": True, "r2": True}
