"""Base model for scopegate's wire formats.

Every JSON document scopegate reads or writes (scope declarations, the
published snapshot, the engine's result envelope) uses camelCase keys.
:class:`ScopeGateModel` maps them to snake_case fields with
``alias_generator=to_camel`` and always serializes by alias, so the
on-disk format stays byte-compatible with other producers.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ScopeGateModel(BaseModel):
    """Frozen camelCase model."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_json(self, *, indent: int | None = 2, exclude_none: bool = False) -> str:
        """Serialize with camelCase keys."""
        return self.model_dump_json(by_alias=True, indent=indent, exclude_none=exclude_none)

    def to_dict(self, *, exclude_none: bool = False) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)
