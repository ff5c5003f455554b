"""
Request dependencies: the viewer from the identity provider's trusted headers,
role guards, and the asset store.
"""
import logging

from fastapi import Depends, Header, HTTPException
from pydantic import ValidationError as PydanticValidationError

from marketplace.entitlements.models import Role, Viewer
from marketplace.storage.base import AssetStore
from marketplace.storage.local import LocalAssetStore

logger = logging.getLogger(__name__)


def get_viewer(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> Viewer:
    """Unparseable identity headers degrade to an anonymous viewer (preview at most)."""
    try:
        return Viewer(user_id=x_user_id or None, role=x_user_role or Role.CONSUMER)
    except PydanticValidationError:
        logger.warning("invalid_viewer_headers", extra={"user_id": x_user_id, "role": x_user_role})
        return Viewer()


def require_user(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    if not viewer.is_authenticated:
        raise HTTPException(401, "Authentication required")
    return viewer


def require_admin(viewer: Viewer = Depends(require_user)) -> Viewer:
    if viewer.role != Role.ADMIN:
        raise HTTPException(403, "Admin role required")
    return viewer


def get_store() -> AssetStore:
    return LocalAssetStore()
