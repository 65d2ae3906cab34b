"""Custom exception hierarchy for scopegate."""

from __future__ import annotations


class ScopeGateError(Exception):
    """Base exception for all scopegate errors."""


class ScopeGateConfigError(ScopeGateError):
    """Invalid or missing configuration (env, flags, kubeconfig)."""


class ConfigStoreError(ScopeGateError):
    """Listing objects from the configuration store failed."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class SnapshotError(ScopeGateError):
    """Base for snapshot file failures."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class SnapshotPublishError(SnapshotError):
    """Writing or renaming the snapshot failed.

    The previously published snapshot, if any, is left untouched.
    """


class SnapshotCorruptError(SnapshotError):
    """The snapshot file exists but cannot be read or parsed.

    Unlike a missing snapshot this never fails open.
    """


class ImageReferenceError(ScopeGateError):
    """An image name could not be parsed as ``registry/repository[:tag][@digest]``."""


class EngineError(ScopeGateError):
    """Base for verification engine failures."""


class EngineLaunchError(EngineError):
    """The engine process could not be started (missing binary, permissions)."""


class EngineTimeoutError(EngineError):
    """The engine did not exit within the configured timeout."""


class EngineOutputError(EngineError):
    """The engine ran but produced no parseable result envelope."""

    def __init__(self, message: str, *, raw_output: str = "") -> None:
        self.raw_output = raw_output
        super().__init__(message)
