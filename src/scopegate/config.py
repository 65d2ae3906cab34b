"""Process configuration for the monitor and the verifier."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from scopegate import _constants as C
from scopegate.exceptions import ScopeGateConfigError


def _env_seconds(name: str, value: str | None) -> float | None:
    """Parse an optional positive number of seconds; empty means unset."""
    if value is None or not value.strip():
        return None
    try:
        seconds = float(value)
    except ValueError as exc:
        raise ScopeGateConfigError(f"{name} must be a number of seconds, got {value!r}") from exc
    if seconds <= 0:
        raise ScopeGateConfigError(f"{name} must be positive, got {value!r}")
    return seconds


def default_kubeconfig_path() -> str:
    """Local kubeconfig location: first entry of ``$KUBECONFIG`` or ``~/.kube/config``."""
    env = os.environ.get("KUBECONFIG", "")
    first = env.split(os.pathsep)[0].strip() if env else ""
    if first:
        return first
    return str(Path.home() / ".kube" / "config")


@dataclasses.dataclass(frozen=True)
class MonitorConfig:
    """Aggregator configuration.

    Parameters
    ----------
    namespace : str
        Namespace whose ConfigMaps are listed.
    prefix : str
        ConfigMap name prefix that marks a scope declaration.
    output_dir : str
        Directory the snapshot is published into.
    file_name : str
        Snapshot file name inside ``output_dir``.
    interval : float
        Seconds to sleep between cycles.
    kubeconfig : str or None
        Local kubeconfig path tried before in-cluster credentials.
        ``None`` resolves to :func:`default_kubeconfig_path`.
    store_timeout : float or None
        Total timeout in seconds for one listing request.  ``None``
        waits indefinitely.
    """

    namespace: str = C.DEFAULT_NAMESPACE
    prefix: str = C.CONFIGMAP_PREFIX
    output_dir: str = C.SHARED_VOLUME_PATH
    file_name: str = C.SNAPSHOT_FILE_NAME
    interval: float = C.DEFAULT_INTERVAL_S
    kubeconfig: str | None = None
    store_timeout: float | None = None

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ScopeGateConfigError(f"interval must not be negative, got {self.interval}")
        if not self.file_name or os.sep in self.file_name:
            raise ScopeGateConfigError(f"invalid snapshot file name {self.file_name!r}")

    @property
    def snapshot_path(self) -> Path:
        return Path(self.output_dir) / self.file_name

    @classmethod
    def from_env(cls, **overrides: Any) -> MonitorConfig:
        """Create configuration from ``SCOPEGATE_*`` environment variables.

        Explicit keyword arguments take precedence; ``None`` overrides are
        ignored so CLI flags that were not given fall through to the env.
        """
        env = os.environ
        overrides = {k: v for k, v in overrides.items() if v is not None}

        _ENV_CONFIG_MAP = {
            "SCOPEGATE_NAMESPACE": "namespace",
            "SCOPEGATE_CONFIGMAP_PREFIX": "prefix",
            "SCOPEGATE_SHARED_VOLUME_PATH": "output_dir",
            "SCOPEGATE_SNAPSHOT_FILE": "file_name",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        interval_env = env.get("SCOPEGATE_INTERVAL")
        if interval_env is not None and "interval" not in overrides:
            try:
                config_kwargs["interval"] = float(interval_env)
            except ValueError as exc:
                raise ScopeGateConfigError(f"SCOPEGATE_INTERVAL must be a number, got {interval_env!r}") from exc

        if "store_timeout" not in overrides:
            config_kwargs["store_timeout"] = _env_seconds(
                "SCOPEGATE_STORE_TIMEOUT",
                env.get("SCOPEGATE_STORE_TIMEOUT"),
            )

        config_kwargs.update(overrides)
        return cls(**config_kwargs)


@dataclasses.dataclass(frozen=True)
class VerifierConfig:
    """Gate configuration.

    Parameters
    ----------
    snapshot_path : str
        Well-known path of the published snapshot as seen by the verifier.
    engine_bin : str
        Verification engine executable.
    engine_config : str
        Engine configuration file.  When it does not exist verification
        is skipped.
    home_dir : str
        ``HOME`` value passed to the engine process.
    verify_timeout : float or None
        Seconds to wait for the engine.  ``None`` waits indefinitely.
    log_file : str or None
        Optional file that receives a copy of the verifier's log records.
    """

    snapshot_path: str = C.DEFAULT_SNAPSHOT_PATH
    engine_bin: str = C.RATIFY_BIN_PATH
    engine_config: str = C.RATIFY_CONFIG_PATH
    home_dir: str = C.DEFAULT_HOME_DIR
    verify_timeout: float | None = None
    log_file: str | None = None

    @classmethod
    def from_env(cls, **overrides: Any) -> VerifierConfig:
        """Create configuration from ``SCOPEGATE_*`` environment variables."""
        env = os.environ

        _ENV_CONFIG_MAP = {
            "SCOPEGATE_SNAPSHOT_PATH": "snapshot_path",
            "SCOPEGATE_RATIFY_BIN": "engine_bin",
            "SCOPEGATE_RATIFY_CONFIG": "engine_config",
            "SCOPEGATE_HOME_DIR": "home_dir",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "verify_timeout" not in overrides:
            config_kwargs["verify_timeout"] = _env_seconds(
                "SCOPEGATE_VERIFY_TIMEOUT",
                env.get("SCOPEGATE_VERIFY_TIMEOUT"),
            )

        log_file = env.get("SCOPEGATE_VERIFIER_LOG")
        if log_file:
            config_kwargs["log_file"] = log_file

        config_kwargs.update(overrides)
        return cls(**config_kwargs)
