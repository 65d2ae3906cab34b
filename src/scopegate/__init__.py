"""scopegate - scope-gated container image verification."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("scopegate")
except PackageNotFoundError:
    __version__ = "0+local"
from scopegate.aggregator import Aggregator, AggregatorState, ChangeKind, CycleResult
from scopegate.config import MonitorConfig, VerifierConfig
from scopegate.exceptions import (
    ConfigStoreError,
    EngineError,
    EngineLaunchError,
    EngineOutputError,
    EngineTimeoutError,
    ImageReferenceError,
    ScopeGateConfigError,
    ScopeGateError,
    SnapshotCorruptError,
    SnapshotError,
    SnapshotPublishError,
)
from scopegate.gate import Gate
from scopegate.models import ConfigObject, ScopeDeclaration, ScopeSnapshot, VerifyOutput
from scopegate.snapshot_store import SnapshotStore, load_snapshot

__all__ = [
    "__version__",
    "Aggregator",
    "AggregatorState",
    "ChangeKind",
    "ConfigObject",
    "ConfigStoreError",
    "CycleResult",
    "EngineError",
    "EngineLaunchError",
    "EngineOutputError",
    "EngineTimeoutError",
    "Gate",
    "ImageReferenceError",
    "MonitorConfig",
    "ScopeDeclaration",
    "ScopeGateConfigError",
    "ScopeGateError",
    "ScopeSnapshot",
    "SnapshotCorruptError",
    "SnapshotError",
    "SnapshotPublishError",
    "SnapshotStore",
    "VerifierConfig",
    "VerifyOutput",
    "load_snapshot",
]
