"""Configuration store object model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ConfigObject(BaseModel):
    """A named record from the configuration store.

    Built either directly (``ConfigObject(name=..., version=..., data=...)``)
    or from a raw Kubernetes ConfigMap item, whose ``metadata.name`` and
    ``metadata.resourceVersion`` are lifted to the top level.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    version: str = ""
    """Opaque version token; any change means the content may have changed."""
    data: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten_metadata(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "metadata" not in values:
            return values
        metadata = values.get("metadata") or {}
        return {
            "name": metadata.get("name", ""),
            "version": metadata.get("resourceVersion", ""),
            "data": values.get("data"),
        }

    @field_validator("data", mode="before")
    @classmethod
    def _null_data(cls, value: Any) -> Any:
        return {} if value is None else value
