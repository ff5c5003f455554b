"""
Preview DTOs: RenderedView (output of render_preview) and DeliveryResult
(output of prepare_delivery, what the API hands to the client).
"""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from marketplace.entitlements.models import AccessLevel


class OverlaySpec(BaseModel):
    """Regular tiled overlay over the whole frame: fixed grid, fixed opacity, brand text."""

    text: str
    rows: int = Field(..., ge=1)
    cols: int = Field(..., ge=1)
    opacity: float = Field(..., gt=0, le=1)
    rotation_degrees: int = 45
    # Low-opacity diagonal hatch between tiles, so no crop is overlay-free
    hatch_spacing_ratio: float = 0.04
    hatch_opacity: float = 0.05

    model_config = {"frozen": True}


class CornerMark(BaseModel):
    """Mark placed independently of the tiling (survives cropping the tiles away)."""

    position: Literal["top-left", "bottom-right"]
    text: str
    opacity: float = Field(..., gt=0, le=1)
    inset_ratio: float = 0.03

    model_config = {"frozen": True}


class InteractionFlags(BaseModel):
    """
    Advisory hints for the client: suppress save/drag/copy affordances.
    Not a security boundary; withholding the original bytes is.
    """

    disable_context_menu: bool = False
    disable_drag: bool = False
    disable_selection: bool = False
    disable_copy: bool = False

    model_config = {"frozen": True}


class RenderedView(BaseModel):
    """Either a pass-through of the original or a protected description. Never both."""

    asset_id: str
    access_level: AccessLevel
    is_original: bool = Field(
        ...,
        description="True = deliver the original unmodified; storage_key is set",
    )
    storage_key: str | None = Field(
        None,
        description="Set only when is_original; protected views never reference the original",
    )
    overlay: OverlaySpec | None = None
    corner_marks: tuple[CornerMark, ...] = ()
    interaction: InteractionFlags = InteractionFlags()

    model_config = {"frozen": True}


class DeliveryResult(BaseModel):
    """What the delivery boundary sends: an original URL or rasterised preview bytes."""

    asset_id: str
    access_level: AccessLevel
    is_preview: bool
    original_url: str | None = Field(None, description="Only for full-resolution / print-ready")
    preview_png: bytes | None = Field(None, description="Watermarked rendering; only when is_preview")
    downloadable: bool = Field(False, description="Raw-file download allowed (full-resolution only)")
    interaction: InteractionFlags = InteractionFlags()

    model_config = {"frozen": True}
