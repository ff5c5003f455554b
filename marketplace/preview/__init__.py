"""
Preview renderer: render_preview (pure description) -> rasterize_preview (Pillow)
-> prepare_delivery (what actually leaves the service).
"""
from marketplace.preview.delivery import AssetUnavailableError, prepare_delivery
from marketplace.preview.models import (
    CornerMark,
    DeliveryResult,
    InteractionFlags,
    OverlaySpec,
    RenderedView,
)
from marketplace.preview.renderer import render_preview
from marketplace.preview.watermark import rasterize_preview

__all__ = [
    "AssetUnavailableError",
    "CornerMark",
    "DeliveryResult",
    "InteractionFlags",
    "OverlaySpec",
    "RenderedView",
    "prepare_delivery",
    "rasterize_preview",
    "render_preview",
]
