"""Scope aggregation: poll the store, detect change, publish a snapshot.

The last-seen names and versions live in an :class:`AggregatorState` value
that :meth:`Aggregator.run_cycle` takes and returns.  The state only advances
after a successful publish, so a failed publish is retried on the next cycle.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from scopegate._constants import CONFIGMAP_PREFIX, DEFAULT_INTERVAL_S
from scopegate._transport import ConfigStore
from scopegate.models.config_object import ConfigObject
from scopegate.models.scope import ScopeDeclaration, ScopeSnapshot
from scopegate.snapshot_store import SnapshotStore

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ChangeKind(enum.Enum):
    NONE = "none"
    IDENTITY = "identity"
    """The set of matching object names changed."""
    CONTENT = "content"
    """Same names, but at least one version token moved."""


class AggregatorState(BaseModel):
    """Names and versions observed at the last successful publish."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    names: frozenset[str] = frozenset()
    versions: dict[str, str] = Field(default_factory=dict)


@dataclass(frozen=True)
class Observation:
    """What one listing contributed: matching names, versions and raw scopes."""

    names: frozenset[str]
    versions: dict[str, str]
    scopes: list[str] = field(default_factory=list)

    def as_state(self) -> AggregatorState:
        return AggregatorState(names=self.names, versions=dict(self.versions))


@dataclass(frozen=True)
class CycleResult:
    state: AggregatorState
    change: ChangeKind
    snapshot: ScopeSnapshot | None = None

    @property
    def published(self) -> bool:
        return self.snapshot is not None


def parse_declarations(obj: ConfigObject) -> list[ScopeDeclaration]:
    """Decode every payload of *obj*; malformed payloads are logged and skipped."""
    declarations: list[ScopeDeclaration] = []
    for key, value in obj.data.items():
        _logger.info("Processing ConfigMap %s, key: %s", obj.name, key)
        try:
            declarations.append(ScopeDeclaration.model_validate_json(value))
        except ValidationError as exc:
            _logger.warning("Failed to parse JSON from ConfigMap %s, key %s: %s", obj.name, key, exc)
    return declarations


def observe(objects: Iterable[ConfigObject], prefix: str) -> Observation:
    """Filter *objects* by name prefix and flatten their declared scopes."""
    names: set[str] = set()
    versions: dict[str, str] = {}
    scopes: list[str] = []
    for obj in objects:
        if not obj.name.startswith(prefix):
            continue
        names.add(obj.name)
        versions[obj.name] = obj.version
        for declaration in parse_declarations(obj):
            scopes.extend(declaration.scopes)
    return Observation(names=frozenset(names), versions=versions, scopes=scopes)


def detect_change(previous: AggregatorState, current: Observation) -> ChangeKind:
    """Classify the difference between *previous* and *current*.

    Identity is checked first: a differing count, or any current name not
    seen before.  Together these imply set equality, so removals are
    caught through the count.  Content is only checked when identity is
    unchanged.
    """
    if len(current.names) != len(previous.names):
        _logger.info("Quantity of ConfigMaps changed")
        return ChangeKind.IDENTITY
    for name in current.names:
        if name not in previous.names:
            _logger.info("ConfigMap %s added", name)
            return ChangeKind.IDENTITY

    for name, version in current.versions.items():
        last = previous.versions.get(name)
        if last != version:
            _logger.info("ConfigMap %s content changed (version %s -> %s)", name, last or "", version)
            return ChangeKind.CONTENT
    return ChangeKind.NONE


class Aggregator:
    """Merges scope declarations from a :class:`ConfigStore` into a :class:`SnapshotStore`."""

    def __init__(
        self,
        store: ConfigStore,
        snapshots: SnapshotStore,
        *,
        prefix: str = CONFIGMAP_PREFIX,
        interval: float = DEFAULT_INTERVAL_S,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._snapshots = snapshots
        self._prefix = prefix
        self._interval = interval
        self._clock = clock

    async def run_cycle(self, state: AggregatorState) -> CycleResult:
        """Run one poll/compare/publish cycle.

        Store and publish failures propagate; in both cases *state* is
        what the next cycle should be given.
        """
        objects = await self._store.list_objects()
        current = observe(objects, self._prefix)

        change = detect_change(state, current)
        if change is ChangeKind.NONE:
            return CycleResult(state=state, change=change)

        _logger.info("ConfigMap set or content changed, processing...")
        snapshot = ScopeSnapshot.from_scopes(current.scopes, now=self._clock())
        _logger.info(
            "Collected %d scopes, deduplicated to %d unique scopes",
            len(current.scopes),
            len(snapshot.scope_map),
        )
        self._snapshots.publish(snapshot)
        _logger.info("Processed %d ConfigMaps into %s", len(current.names), self._snapshots.path)
        return CycleResult(state=current.as_state(), change=change, snapshot=snapshot)

    async def run_forever(
        self,
        state: AggregatorState | None = None,
        *,
        max_cycles: int | None = None,
    ) -> AggregatorState:
        """Run cycles separated by the fixed interval.

        Cycle errors are logged and never stop the loop.  *max_cycles*
        bounds the loop for one-shot runs; ``None`` loops until cancelled.
        """
        state = state if state is not None else AggregatorState()
        cycles = 0
        while max_cycles is None or cycles < max_cycles:
            try:
                state = (await self.run_cycle(state)).state
            except Exception:
                _logger.exception("Error processing ConfigMaps")
            cycles += 1
            if max_cycles is None or cycles < max_cycles:
                await asyncio.sleep(self._interval)
        return state
