"""
Entitlement DTOs: Role, AccessLevel, Viewer, and AccessContext (input of decide_access).
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Closed set of viewer roles supplied by the identity provider."""

    CREATOR = "creator"
    CONSUMER = "consumer"
    ADMIN = "admin"


class AccessLevel(str, Enum):
    NO_ACCESS = "no-access"
    PREVIEW_ONLY = "preview-only"
    FULL_RESOLUTION = "full-resolution"
    PRINT_READY = "print-ready"

    @property
    def grants_original(self) -> bool:
        return self in (AccessLevel.FULL_RESOLUTION, AccessLevel.PRINT_READY)


class Viewer(BaseModel):
    """Request-scoped identity. Passed explicitly into every core call; never stored."""

    user_id: str | None = Field(None, min_length=1)
    role: Role = Role.CONSUMER

    model_config = {"frozen": True}

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


class AccessContext(BaseModel):
    """Everything decide_access needs, gathered from the ledger in one resolution call."""

    viewer: Viewer
    asset_exists: bool = False
    asset_active: bool = False
    asset_creator_id: str | None = None
    # Lines whose parent order is currently fulfilled (a refund replaces that status)
    has_fulfilled_digital: bool = False
    has_fulfilled_print: bool = False

    model_config = {"frozen": True}
