"""
Decision: decide_access(ctx) -> AccessLevel is a pure function, no I/O.
Lookup: resolve_access(viewer, asset_id, ledger) reads current ledger state on
every call and fails closed to preview-only on any lookup failure.
"""
from __future__ import annotations

import logging

from marketplace.entitlements.models import AccessContext, AccessLevel, Role, Viewer
from marketplace.ledger.service import OrderLedger
from marketplace.models.enums import ItemType, OrderStatus
from marketplace.utils.metrics import access_decisions_total, access_fail_closed_total

logger = logging.getLogger(__name__)


def decide_access(ctx: AccessContext) -> AccessLevel:
    """
    First match wins:
    - admin -> full-resolution
    - creator viewing own asset -> full-resolution
    - asset missing -> no-access
    - fulfilled, non-refunded digital line -> full-resolution
    - fulfilled, non-refunded print line -> print-ready
    - deactivated asset -> no-access
    - otherwise -> preview-only
    """
    viewer = ctx.viewer
    role = viewer.role

    if role == Role.ADMIN:
        return AccessLevel.FULL_RESOLUTION
    elif role == Role.CREATOR:
        if viewer.is_authenticated and ctx.asset_exists and viewer.user_id == ctx.asset_creator_id:
            return AccessLevel.FULL_RESOLUTION
    elif role == Role.CONSUMER:
        pass
    else:
        raise ValueError(f"Unknown viewer role: {role!r}")

    if not ctx.asset_exists:
        return AccessLevel.NO_ACCESS

    # Licence checks only for authenticated viewers
    if viewer.is_authenticated:
        if ctx.has_fulfilled_digital:
            return AccessLevel.FULL_RESOLUTION
        if ctx.has_fulfilled_print:
            return AccessLevel.PRINT_READY

    # Deactivated assets stay visible only to owners and licence holders
    if not ctx.asset_active:
        return AccessLevel.NO_ACCESS

    return AccessLevel.PREVIEW_ONLY


def build_access_context(viewer: Viewer, asset_id: str, ledger: OrderLedger) -> AccessContext:
    """Gather asset ownership and the viewer's fulfilled lines from the ledger."""
    asset = ledger.get_asset(asset_id)
    if asset is None:
        return AccessContext(viewer=viewer)

    has_digital = False
    has_print = False
    if viewer.is_authenticated and viewer.role != Role.ADMIN:
        for line in ledger.lines_for_asset(viewer.user_id, asset_id):
            if line.order.status != OrderStatus.FULFILLED:
                continue
            if line.item_type == ItemType.DIGITAL:
                has_digital = True
            elif line.item_type == ItemType.PRINT:
                has_print = True

    return AccessContext(
        viewer=viewer,
        asset_exists=True,
        asset_active=bool(asset.is_active),
        asset_creator_id=asset.creator_id,
        has_fulfilled_digital=has_digital,
        has_fulfilled_print=has_print,
    )


def resolve_access(viewer: Viewer | dict, asset_id: str, ledger: OrderLedger) -> AccessLevel:
    """
    Answer what the viewer may do with the asset right now.
    Never cached: a purchase or refund is visible on the next call.
    Any failure (ledger unavailable, malformed viewer) -> preview-only.
    """
    try:
        if not isinstance(viewer, Viewer):
            viewer = Viewer.model_validate(viewer)
        ctx = build_access_context(viewer, asset_id, ledger)
        level = decide_access(ctx)
    except Exception as exc:
        access_fail_closed_total.inc()
        logger.warning(
            "access_fail_closed",
            extra={"asset_id": asset_id, "error": type(exc).__name__},
        )
        return AccessLevel.PREVIEW_ONLY

    access_decisions_total.labels(level=level.value).inc()
    logger.debug(
        "access_resolved",
        extra={
            "asset_id": asset_id,
            "user_id": viewer.user_id,
            "role": viewer.role.value,
            "access_level": level.value,
        },
    )
    return level
