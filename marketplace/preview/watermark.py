"""
Watermark rasteriser — draws a RenderedView's protection onto a copy of the original.
Always starts from the original bytes, never from a previous preview, and saves
PNG (no timestamps), so the same input always yields byte-identical output.
"""
import io
import logging
import math
import os

from PIL import Image, ImageDraw, ImageFont

from marketplace.preview.config import get_preview_max_edge
from marketplace.preview.models import CornerMark, OverlaySpec, RenderedView

logger = logging.getLogger(__name__)

_FONT_PATHS = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans-Bold.ttf",
)


def _get_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """TrueType font of the given size, Pillow default as fallback."""
    for path in _FONT_PATHS:
        if os.path.exists(path):
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue
    return ImageFont.load_default()


def _text_stamp(
    text: str,
    font: ImageFont.FreeTypeFont | ImageFont.ImageFont,
    alpha: int,
    rotation: int,
) -> Image.Image:
    """Text on a transparent tile with a dark shadow, rotated around its centre."""
    probe = ImageDraw.Draw(Image.new("RGBA", (1, 1)))
    left, top, right, bottom = probe.textbbox((0, 0), text, font=font)
    pad = 4
    stamp = Image.new("RGBA", (right - left + pad * 2, bottom - top + pad * 2), (0, 0, 0, 0))
    draw = ImageDraw.Draw(stamp)
    draw.text((pad - left + 2, pad - top + 2), text, font=font, fill=(0, 0, 0, int(alpha * 0.8)))
    draw.text((pad - left, pad - top), text, font=font, fill=(255, 255, 255, alpha))
    if rotation:
        stamp = stamp.rotate(rotation, resample=Image.BICUBIC, expand=True)
    return stamp


def _draw_hatch(layer: Image.Image, overlay: OverlaySpec) -> None:
    width, height = layer.size
    spacing = max(8, int(max(width, height) * overlay.hatch_spacing_ratio))
    alpha = max(1, int(round(255 * overlay.hatch_opacity)))
    draw = ImageDraw.Draw(layer)
    for offset in range(-height, width, spacing):
        draw.line([(offset, height), (offset + height, 0)], fill=(255, 255, 255, alpha), width=2)


def _draw_tiles(layer: Image.Image, overlay: OverlaySpec, font_size: int) -> None:
    width, height = layer.size
    font = _get_font(font_size)
    stamp = _text_stamp(overlay.text, font, int(round(255 * overlay.opacity)), overlay.rotation_degrees)
    tile_w = width / overlay.cols
    tile_h = height / overlay.rows
    for row in range(overlay.rows):
        for col in range(overlay.cols):
            cx = int(tile_w * (col + 0.5))
            cy = int(tile_h * (row + 0.5))
            layer.paste(stamp, (cx - stamp.width // 2, cy - stamp.height // 2), stamp)


def _draw_corner(layer: Image.Image, mark: CornerMark, font_size: int) -> None:
    width, height = layer.size
    font = _get_font(font_size)
    stamp = _text_stamp(mark.text, font, int(round(255 * mark.opacity)), 0)
    inset_x = int(width * mark.inset_ratio)
    inset_y = int(height * mark.inset_ratio)
    if mark.position == "top-left":
        xy = (inset_x, inset_y)
    else:
        xy = (width - inset_x - stamp.width, height - inset_y - stamp.height)
    layer.paste(stamp, xy, stamp)


def rasterize_preview(original: bytes, view: RenderedView) -> bytes:
    """
    Produce the protected PNG for a non-original view.

    Args:
        original: original asset bytes (never returned or embedded)
        view: protected RenderedView from render_preview

    Returns:
        PNG bytes of the downscaled, watermarked rendering
    """
    if view.is_original or view.overlay is None:
        raise ValueError("rasterize_preview only handles protected views")
    try:
        with Image.open(io.BytesIO(original)) as src:
            img = src.convert("RGBA")
        max_edge = get_preview_max_edge()
        if max(img.size) > max_edge:
            img.thumbnail((max_edge, max_edge), Image.LANCZOS)
        width, height = img.size

        layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        diag = math.sqrt(width ** 2 + height ** 2)
        _draw_hatch(layer, view.overlay)
        _draw_tiles(layer, view.overlay, max(12, int(diag * 0.04)))
        for mark in view.corner_marks:
            _draw_corner(layer, mark, max(10, int(diag * 0.02)))

        result = Image.alpha_composite(img, layer).convert("RGB")
        out = io.BytesIO()
        result.save(out, "PNG")
        return out.getvalue()
    except Exception:
        logger.exception("preview_rasterize_failed", extra={"asset_id": view.asset_id})
        raise
