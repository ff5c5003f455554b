from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from marketplace.api.deps import get_store, get_viewer
from marketplace.db.session import get_db
from marketplace.entitlements.access import resolve_access
from marketplace.entitlements.models import Viewer
from marketplace.ledger.service import OrderLedger
from marketplace.preview.delivery import prepare_delivery
from marketplace.storage.base import AssetStore


router = APIRouter(prefix="/assets", tags=["assets"])


@router.get("/{asset_id}/access")
def get_access(asset_id: str, viewer: Viewer = Depends(get_viewer), db: Session = Depends(get_db)) -> dict:
    level = resolve_access(viewer, asset_id, OrderLedger(db))
    return {"asset_id": asset_id, "access_level": level.value}


@router.get("/{asset_id}/view")
def view_asset(
    asset_id: str,
    viewer: Viewer = Depends(get_viewer),
    db: Session = Depends(get_db),
    store: AssetStore = Depends(get_store),
):
    """Watermarked PNG for preview-only viewers, original URL otherwise."""
    result = prepare_delivery(viewer, asset_id, OrderLedger(db), store)
    if result.is_preview:
        flags = [name for name, on in result.interaction.model_dump().items() if on]
        return Response(
            content=result.preview_png,
            media_type="image/png",
            headers={
                "Cache-Control": "private, no-store",
                "X-Access-Level": result.access_level.value,
                "X-Interaction-Flags": ",".join(flags),
            },
        )
    return {
        "asset_id": result.asset_id,
        "access_level": result.access_level.value,
        "original_url": result.original_url,
        "downloadable": result.downloadable,
    }
