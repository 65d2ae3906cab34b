"""Data models for scope declarations, snapshots and engine results."""

from scopegate.models._base import ScopeGateModel
from scopegate.models.config_object import ConfigObject
from scopegate.models.scope import ScopeDeclaration, ScopeSnapshot
from scopegate.models.verify import VerifyOutput

__all__ = [
    "ConfigObject",
    "ScopeDeclaration",
    "ScopeGateModel",
    "ScopeSnapshot",
    "VerifyOutput",
]
