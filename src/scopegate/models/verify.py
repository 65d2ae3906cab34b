"""Verification engine result envelope."""

from __future__ import annotations

import json
from typing import Any

from pydantic import Field

from scopegate.models._base import ScopeGateModel


class VerifyOutput(ScopeGateModel):
    """``{"isSuccess": bool, "result"?: any, "error"?: str}`` emitted by the engine.

    A missing ``isSuccess`` reads as a failed verification.
    """

    is_success: bool = Field(default=False, strict=True)
    result: Any = None
    error: str | None = None

    def to_json(self, *, indent: int | None = 2, exclude_none: bool = True) -> str:
        """Serialize, omitting an absent or empty ``result``/``error``."""
        payload = self.to_dict(exclude_none=exclude_none)
        if exclude_none and payload.get("error") == "":
            del payload["error"]
        return json.dumps(payload, indent=indent, ensure_ascii=False)
