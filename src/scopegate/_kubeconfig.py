"""Kubernetes API credentials.

Two sources are supported, tried in this order by :func:`load_credentials`:

1. a local kubeconfig file (``~/.kube/config`` or ``$KUBECONFIG``), using
   its current context;
2. the in-cluster service account mounted into every pod.

Only static credentials are handled: bearer tokens, token files and client
certificates.  ``exec`` and ``auth-provider`` plugins are rejected.
"""

from __future__ import annotations

import base64
import contextlib
import logging
import os
import ssl
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from scopegate import _constants as C
from scopegate._redact import redact_for_log
from scopegate.exceptions import ScopeGateConfigError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KubeCredentials:
    """Everything needed to talk to one API server."""

    server: str
    token: str | None = None
    token_file: str | None = None
    ssl_context: ssl.SSLContext | None = None
    source: str = ""

    def bearer_token(self) -> str | None:
        """Current bearer token.

        Token files are re-read on every call because projected service
        account tokens are rotated by the kubelet.
        """
        if self.token_file:
            try:
                return Path(self.token_file).read_text(encoding="utf-8").strip()
            except OSError as exc:
                raise ScopeGateConfigError(f"failed to read token file {self.token_file}: {exc}") from exc
        return self.token

    def auth_headers(self) -> dict[str, str]:
        token = self.bearer_token()
        return {"Authorization": f"Bearer {token}"} if token else {}


def _named(entries: Any, name: str, kind: str) -> Mapping[str, Any]:
    for entry in entries or []:
        if isinstance(entry, Mapping) and entry.get("name") == name:
            body = entry.get(kind)
            return body if isinstance(body, Mapping) else {}
    raise ScopeGateConfigError(f"kubeconfig has no {kind} named {name!r}")


def _resolve(base: Path, value: str | None) -> str | None:
    if not value:
        return None
    path = Path(value).expanduser()
    return str(path if path.is_absolute() else base / path)


def _decode_data(field: str, value: str) -> bytes:
    try:
        return base64.b64decode(value, validate=True)
    except ValueError as exc:
        raise ScopeGateConfigError(f"kubeconfig {field} is not valid base64") from exc


def _load_client_cert(
    ctx: ssl.SSLContext,
    *,
    cert_file: str | None,
    key_file: str | None,
    cert_data: bytes | None,
    key_data: bytes | None,
) -> None:
    """Load a client certificate, spilling inline PEM data to private temp files."""
    if not (cert_file or cert_data):
        return
    if not (key_file or key_data):
        raise ScopeGateConfigError("kubeconfig client certificate has no matching client key")

    spilled: list[str] = []
    try:
        for data in (cert_data, key_data):
            if data is None:
                spilled.append("")
                continue
            fd, path = tempfile.mkstemp(prefix="scopegate-", suffix=".pem")
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            spilled.append(path)
        ctx.load_cert_chain(certfile=cert_file or spilled[0], keyfile=key_file or spilled[1])
    except (OSError, ssl.SSLError) as exc:
        raise ScopeGateConfigError(f"failed to load kubeconfig client certificate: {exc}") from exc
    finally:
        for path in spilled:
            if path:
                with contextlib.suppress(OSError):
                    os.remove(path)


def load_kubeconfig(path: str | os.PathLike[str], *, context: str | None = None) -> KubeCredentials:
    """Build credentials from a kubeconfig file.

    Raises :class:`ScopeGateConfigError` if the file is missing, malformed,
    or uses an unsupported auth mechanism.
    """
    config_path = Path(path).expanduser()
    try:
        doc = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ScopeGateConfigError(f"failed to read kubeconfig {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ScopeGateConfigError(f"invalid kubeconfig {config_path}: {exc}") from exc
    if not isinstance(doc, Mapping):
        raise ScopeGateConfigError(f"invalid kubeconfig {config_path}: not a mapping")

    context_name = context or doc.get("current-context")
    if not context_name:
        raise ScopeGateConfigError(f"kubeconfig {config_path} has no current-context")

    ctx = _named(doc.get("contexts"), context_name, "context")
    cluster = _named(doc.get("clusters"), ctx.get("cluster", ""), "cluster")
    user: Mapping[str, Any] = _named(doc.get("users"), ctx["user"], "user") if ctx.get("user") else {}
    _logger.debug("kubeconfig context=%s cluster=%s user=%s", context_name, cluster, redact_for_log(user))

    if "exec" in user or "auth-provider" in user:
        raise ScopeGateConfigError(f"kubeconfig user for context {context_name!r} uses an unsupported auth plugin")

    server = str(cluster.get("server") or "").rstrip("/")
    if not server:
        raise ScopeGateConfigError(f"kubeconfig cluster for context {context_name!r} has no server")

    base = config_path.parent
    ssl_context: ssl.SSLContext | None = None
    if server.startswith("https://"):
        ca_data = cluster.get("certificate-authority-data")
        try:
            ssl_context = ssl.create_default_context(
                cafile=_resolve(base, cluster.get("certificate-authority")),
                cadata=_decode_data("certificate-authority-data", ca_data).decode("ascii") if ca_data else None,
            )
        except (OSError, ssl.SSLError) as exc:
            raise ScopeGateConfigError(f"failed to load kubeconfig certificate authority: {exc}") from exc
        if cluster.get("insecure-skip-tls-verify"):
            ssl_context.check_hostname = False
            ssl_context.verify_mode = ssl.CERT_NONE
        cert_data = user.get("client-certificate-data")
        key_data = user.get("client-key-data")
        _load_client_cert(
            ssl_context,
            cert_file=_resolve(base, user.get("client-certificate")),
            key_file=_resolve(base, user.get("client-key")),
            cert_data=_decode_data("client-certificate-data", cert_data) if cert_data else None,
            key_data=_decode_data("client-key-data", key_data) if key_data else None,
        )

    return KubeCredentials(
        server=server,
        token=user.get("token") or None,
        token_file=_resolve(base, user.get("tokenFile")),
        ssl_context=ssl_context,
        source=str(config_path),
    )


def load_incluster(account_dir: str = C.SERVICE_ACCOUNT_DIR) -> KubeCredentials:
    """Build credentials from the pod's service account."""
    host = os.environ.get(C.SERVICE_HOST_ENV, "")
    port = os.environ.get(C.SERVICE_PORT_ENV, "")
    if not host or not port:
        raise ScopeGateConfigError(
            f"not running in a cluster: {C.SERVICE_HOST_ENV} and {C.SERVICE_PORT_ENV} must be set"
        )
    if ":" in host:
        host = f"[{host}]"

    token_file = Path(account_dir) / "token"
    if not token_file.is_file():
        raise ScopeGateConfigError(f"service account token not found at {token_file}")

    try:
        ssl_context = ssl.create_default_context(cafile=str(Path(account_dir) / "ca.crt"))
    except (OSError, ssl.SSLError) as exc:
        raise ScopeGateConfigError(f"failed to load service account CA: {exc}") from exc

    return KubeCredentials(
        server=f"https://{host}:{port}",
        token_file=str(token_file),
        ssl_context=ssl_context,
        source="in-cluster",
    )


def load_credentials(kubeconfig: str | os.PathLike[str]) -> KubeCredentials:
    """Prefer the local kubeconfig, falling back to in-cluster credentials."""
    try:
        creds = load_kubeconfig(kubeconfig)
    except ScopeGateConfigError as exc:
        _logger.error("failed to build kubeconfig in %r: %s", str(kubeconfig), exc)
        _logger.info("Attempting to use in-cluster configuration...")
        creds = load_incluster()
    _logger.info("Using credentials from %s (server %s)", creds.source, creds.server)
    return creds
