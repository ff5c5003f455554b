"""
render_preview(asset, access_level) -> RenderedView.
Pure: reads only the asset's id/storage_key and watermark config, so equal
inputs give equal views and calling it again never stacks protection.
"""
from __future__ import annotations

from typing import Protocol

from marketplace.entitlements.models import AccessLevel
from marketplace.preview.config import (
    get_corner_mark_opacity,
    get_grid_size,
    get_rotation_degrees,
    get_watermark_opacity,
    get_watermark_text,
)
from marketplace.preview.models import CornerMark, InteractionFlags, OverlaySpec, RenderedView


class RenderableAsset(Protocol):
    id: str
    storage_key: str


PROTECTED_INTERACTION = InteractionFlags(
    disable_context_menu=True,
    disable_drag=True,
    disable_selection=True,
    disable_copy=True,
)


def render_preview(asset: RenderableAsset, access_level: AccessLevel) -> RenderedView:
    if access_level.grants_original:
        return RenderedView(
            asset_id=asset.id,
            access_level=access_level,
            is_original=True,
            storage_key=asset.storage_key,
        )

    text = get_watermark_text()
    grid = get_grid_size()
    corner_opacity = get_corner_mark_opacity()
    return RenderedView(
        asset_id=asset.id,
        access_level=access_level,
        is_original=False,
        overlay=OverlaySpec(
            text=text,
            rows=grid,
            cols=grid,
            opacity=get_watermark_opacity(),
            rotation_degrees=get_rotation_degrees(),
        ),
        corner_marks=(
            CornerMark(position="top-left", text=text, opacity=corner_opacity),
            CornerMark(position="bottom-right", text=text, opacity=corner_opacity),
        ),
        interaction=PROTECTED_INTERACTION,
    )
