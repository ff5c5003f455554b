"""
Delivery boundary: prepare_delivery(viewer, asset_id, ledger, store) -> DeliveryResult.
Full-resolution / print-ready -> original URL. Preview-only -> watermarked PNG bytes.
The original bytes are read for rendering only and never leave in a preview result.
"""
from __future__ import annotations

import logging
import time

from sqlalchemy.exc import SQLAlchemyError

from marketplace.entitlements.access import resolve_access
from marketplace.entitlements.models import AccessLevel, Viewer
from marketplace.ledger.errors import DependencyUnavailable, ValidationError
from marketplace.ledger.service import OrderLedger
from marketplace.preview.models import DeliveryResult
from marketplace.preview.renderer import render_preview
from marketplace.preview.watermark import rasterize_preview
from marketplace.storage.base import AssetStore
from marketplace.utils.metrics import preview_render_duration_seconds, preview_renders_total

logger = logging.getLogger(__name__)


class AssetUnavailableError(ValidationError):
    """Asset does not exist or is not visible to this viewer."""


def prepare_delivery(
    viewer: Viewer,
    asset_id: str,
    ledger: OrderLedger,
    store: AssetStore,
) -> DeliveryResult:
    level = resolve_access(viewer, asset_id, ledger)
    if level == AccessLevel.NO_ACCESS:
        raise AssetUnavailableError(f"Asset not available: {asset_id}")

    try:
        asset = ledger.get_asset(asset_id)
    except SQLAlchemyError as e:
        raise DependencyUnavailable("Ledger unavailable") from e
    if asset is None:
        raise AssetUnavailableError(f"Asset not available: {asset_id}")

    view = render_preview(asset, level)
    if view.is_original:
        return DeliveryResult(
            asset_id=asset.id,
            access_level=level,
            is_preview=False,
            original_url=store.original_url(view.storage_key),
            downloadable=level == AccessLevel.FULL_RESOLUTION,
            interaction=view.interaction,
        )

    start = time.time()
    png = rasterize_preview(store.read_original(asset.storage_key), view)
    preview_render_duration_seconds.observe(time.time() - start)
    preview_renders_total.inc()
    logger.info(
        "preview_delivered",
        extra={"asset_id": asset.id, "user_id": viewer.user_id, "access_level": level.value},
    )
    return DeliveryResult(
        asset_id=asset.id,
        access_level=level,
        is_preview=True,
        preview_png=png,
        downloadable=False,
        interaction=view.interaction,
    )
