"""Configuration store access: listing ConfigMaps from the Kubernetes API."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp
from pydantic import ValidationError

from scopegate import _constants as C
from scopegate._kubeconfig import KubeCredentials
from scopegate.exceptions import ConfigStoreError, ScopeGateConfigError
from scopegate.models.config_object import ConfigObject

_logger = logging.getLogger(__name__)

_PAGE_SIZE = 500


class ConfigStore(Protocol):
    """Structural store interface consumed by the aggregator.

    Tests pass simple in-memory doubles; production uses
    :class:`KubeConfigMapStore`.
    """

    async def list_objects(self) -> list[ConfigObject]:
        ...


class KubeConfigMapStore:
    """Lists every ConfigMap in one namespace over the Kubernetes REST API.

    Usage::

        async with KubeConfigMapStore(creds, "default") as store:
            objects = await store.list_objects()
    """

    def __init__(
        self,
        credentials: KubeCredentials,
        namespace: str,
        *,
        session: aiohttp.ClientSession | None = None,
        timeout: float | None = None,
        page_size: int = _PAGE_SIZE,
    ) -> None:
        self._credentials = credentials
        self._namespace = namespace
        self._external_session = session is not None
        self._http = session
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._page_size = page_size

    async def __aenter__(self) -> KubeConfigMapStore:
        if self._http is None:
            self._http = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if not self._external_session and self._http is not None:
            await self._http.close()
            self._http = None

    @property
    def endpoint(self) -> str:
        return C.CONFIGMAPS_ENDPOINT.format(namespace=self._namespace)

    def _require_session(self) -> aiohttp.ClientSession:
        if self._http is None:
            raise ConfigStoreError("Store not initialized. Use 'async with KubeConfigMapStore(...) as store:'")
        return self._http

    async def _get_page(self, continue_token: str | None) -> dict[str, Any]:
        http = self._require_session()
        url = f"{self._credentials.server}{self.endpoint}"
        params: dict[str, str] = {"limit": str(self._page_size)}
        if continue_token:
            params["continue"] = continue_token
        try:
            headers = {"Accept": "application/json", **self._credentials.auth_headers()}
        except ScopeGateConfigError as exc:
            raise ConfigStoreError(str(exc), endpoint=self.endpoint) from exc

        _logger.debug("GET %s params=%s", url, params)
        try:
            async with http.get(
                url,
                params=params,
                headers=headers,
                ssl=self._credentials.ssl_context if self._credentials.ssl_context is not None else True,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                if resp.status != 200:
                    raise ConfigStoreError(
                        f"HTTP {resp.status} from {self.endpoint}: {text[:200]}",
                        status_code=resp.status,
                        endpoint=self.endpoint,
                    )
        except ConfigStoreError:
            raise
        except asyncio.TimeoutError as exc:
            raise ConfigStoreError(f"Request to {self.endpoint} timed out", endpoint=self.endpoint) from exc
        except aiohttp.ClientError as exc:
            raise ConfigStoreError(f"Request to {self.endpoint} failed: {exc}", endpoint=self.endpoint) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigStoreError(f"Invalid JSON from {self.endpoint}: {text[:200]}", endpoint=self.endpoint) from exc
        if not isinstance(body, dict):
            raise ConfigStoreError(f"Unexpected response from {self.endpoint}", endpoint=self.endpoint)
        return body

    async def list_objects(self) -> list[ConfigObject]:
        """Return all ConfigMaps in the namespace, following ``continue`` pages."""
        objects: list[ConfigObject] = []
        continue_token: str | None = None
        while True:
            body = await self._get_page(continue_token)
            for item in body.get("items") or []:
                try:
                    objects.append(ConfigObject.model_validate(item))
                except ValidationError as exc:
                    raise ConfigStoreError(
                        f"Malformed ConfigMap in {self.endpoint}: {exc}",
                        endpoint=self.endpoint,
                    ) from exc
            continue_token = (body.get("metadata") or {}).get("continue") or None
            if not continue_token:
                return objects
