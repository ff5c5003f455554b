"""
Preview config — typed wrapper over marketplace.core.config for watermark settings.
"""
from __future__ import annotations

from marketplace.core.config import settings


def get_watermark_text() -> str:
    return settings.watermark_text


def get_grid_size() -> int:
    return settings.watermark_grid_size


def get_watermark_opacity() -> float:
    return settings.watermark_opacity


def get_corner_mark_opacity() -> float:
    return settings.corner_mark_opacity


def get_rotation_degrees() -> int:
    return settings.watermark_rotation_degrees


def get_preview_max_edge() -> int:
    return settings.preview_max_edge
