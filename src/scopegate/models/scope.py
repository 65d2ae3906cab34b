"""Scope declaration and published snapshot models."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from pydantic import Field, StrictBool, field_validator

from scopegate.models._base import ScopeGateModel


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ScopeDeclaration(ScopeGateModel):
    """One ConfigMap payload listing repositories that must be verified.

    Every field is optional: ``{"scopes": ["r2"]}`` is a valid declaration.
    Non-string scope entries make the whole payload invalid.
    """

    version: str = ""
    """Schema version (semver)."""
    scopes: tuple[str, ...] = ()
    """Repositories (``registry/repository``) that need verification."""
    last_updated: datetime | None = None

    @field_validator("scopes", mode="before")
    @classmethod
    def _null_scopes(cls, value: Any) -> Any:
        return () if value is None else value


class ScopeSnapshot(ScopeGateModel):
    """Merged set of in-scope repositories, published as a membership map.

    The on-disk form is ``{"scopeMap": {"<repo>": true}, "lastUpdated": ...}``
    so readers get O(1) lookups without rebuilding a set.
    """

    scope_map: dict[str, StrictBool] = Field(default_factory=dict)
    last_updated: datetime | None = None

    @field_validator("scope_map", mode="before")
    @classmethod
    def _null_map(cls, value: Any) -> Any:
        return {} if value is None else value

    @classmethod
    def from_scopes(cls, scopes: Iterable[str], *, now: datetime | None = None) -> ScopeSnapshot:
        """Deduplicate *scopes* into a new snapshot stamped with *now* (UTC)."""
        return cls(
            scope_map={scope: True for scope in scopes},
            last_updated=now if now is not None else _utcnow(),
        )

    @property
    def scopes(self) -> frozenset[str]:
        return frozenset(scope for scope, enabled in self.scope_map.items() if enabled)

    def has_scope(self, repository: str) -> bool:
        """Exact, case-sensitive membership test."""
        return self.scope_map.get(repository, False) is True
