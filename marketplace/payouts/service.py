"""
PayoutService — aggregates paid, non-refunded order lines into creator payouts.

- Per-line floor of price * (1 - commission) so the platform never under-collects
- Lines already covered by a pending/processed record are skipped (re-runs are idempotent)
- Each creator group is written in its own savepoint: all lines or none
"""
import logging
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.ledger.errors import ConflictError, ValidationError
from marketplace.models.asset import Asset
from marketplace.models.enums import COVERING_PAYOUT_STATUSES, OrderStatus, PayoutStatus
from marketplace.models.order import Order, OrderLine
from marketplace.models.payout import PayoutRecord
from marketplace.payouts.schemas import PayoutPeriod
from marketplace.services.audit import AuditService
from marketplace.utils.metrics import payout_amount_total, payouts_created_total

logger = logging.getLogger(__name__)


def get_commission_rate() -> Decimal:
    return Decimal(str(settings.platform_commission_rate))


def creator_share(price: int, commission_rate: Decimal) -> int:
    """floor(price * (1 - commission_rate)) in minor units."""
    share = Decimal(price) * (Decimal(1) - commission_rate)
    return int(share.to_integral_value(rounding=ROUND_FLOOR))


class PayoutService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Batch computation (called by Celery beat)
    # ------------------------------------------------------------------

    def compute_payouts(
        self,
        period: PayoutPeriod,
        commission_rate: Decimal | None = None,
    ) -> list[PayoutRecord]:
        """Create one pending PayoutRecord per creator with uncovered paid lines in the period."""
        rate = commission_rate if commission_rate is not None else get_commission_rate()
        if rate < 0 or rate >= 1:
            raise ValidationError(f"Invalid commission rate: {rate}")

        covered = self._covered_line_ids()
        rows = (
            self.db.query(OrderLine, Asset.creator_id)
            .join(Order, Order.id == OrderLine.order_id)
            .join(Asset, Asset.id == OrderLine.asset_id)
            .filter(
                Order.status == OrderStatus.FULFILLED.value,
                Order.fulfilled_at >= period.start,
                Order.fulfilled_at < period.end,
            )
            .order_by(Asset.creator_id, OrderLine.id)
            .all()
        )

        groups: dict[str, list[OrderLine]] = {}
        for line, creator_id in rows:
            if line.id in covered:
                continue
            groups.setdefault(creator_id, []).append(line)

        records: list[PayoutRecord] = []
        for creator_id, lines in groups.items():
            amount = sum(creator_share(line.price, rate) for line in lines)
            try:
                with self.db.begin_nested():
                    record = PayoutRecord(
                        id=str(uuid4()),
                        creator_id=creator_id,
                        amount=amount,
                        order_line_ids=[line.id for line in lines],
                        commission_rate=rate,
                        period_start=period.start,
                        period_end=period.end,
                        status=PayoutStatus.PENDING.value,
                    )
                    self.db.add(record)
                    self.db.flush()
            except SQLAlchemyError:
                # Savepoint rolled back: this creator gets nothing this run, lines stay uncovered
                logger.exception("payout_group_failed", extra={"creator_id": creator_id, "count": len(lines)})
                continue

            records.append(record)
            payouts_created_total.inc()
            payout_amount_total.inc(amount)
            logger.info(
                "payout_created",
                extra={"payout_id": record.id, "creator_id": creator_id, "amount": amount, "count": len(lines)},
            )

        logger.info(
            "payouts_computed",
            extra={"count": len(records), "amount": sum(r.amount for r in records)},
        )
        return records

    def _covered_line_ids(self) -> set[str]:
        covered: set[str] = set()
        records = (
            self.db.query(PayoutRecord.order_line_ids)
            .filter(PayoutRecord.status.in_([s.value for s in COVERING_PAYOUT_STATUSES]))
            .all()
        )
        for (line_ids,) in records:
            covered.update(line_ids or [])
        return covered

    # ------------------------------------------------------------------
    # Status changes (after the transfer is attempted)
    # ------------------------------------------------------------------

    def mark_processed(self, payout_id: str, transfer_reference: str) -> PayoutRecord:
        record = self._lock_pending(payout_id)
        record.status = PayoutStatus.PROCESSED.value
        record.transfer_reference = transfer_reference
        record.processed_at = datetime.now(timezone.utc)
        self.audit.log(
            actor_type="system",
            actor_id=None,
            action="payout_processed",
            entity_type="payout",
            entity_id=record.id,
            payload={"transfer_reference": transfer_reference, "amount": record.amount},
        )
        self.db.flush()
        logger.info("payout_processed", extra={"payout_id": record.id, "creator_id": record.creator_id})
        return record

    def mark_failed(self, payout_id: str, reason: str) -> PayoutRecord:
        """Failed records release their lines to the next computation run."""
        record = self._lock_pending(payout_id)
        record.status = PayoutStatus.FAILED.value
        record.failure_reason = reason
        self.audit.log(
            actor_type="system",
            actor_id=None,
            action="payout_failed",
            entity_type="payout",
            entity_id=record.id,
            payload={"reason": reason},
        )
        self.db.flush()
        logger.warning(
            "payout_failed",
            extra={"payout_id": record.id, "creator_id": record.creator_id, "error": reason},
        )
        return record

    def _lock_pending(self, payout_id: str) -> PayoutRecord:
        record = (
            self.db.query(PayoutRecord)
            .filter(PayoutRecord.id == payout_id)
            .with_for_update()
            .one_or_none()
        )
        if record is None:
            raise ValidationError(f"Payout not found: {payout_id}")
        if record.status != PayoutStatus.PENDING:
            raise ConflictError(f"Payout {payout_id} is {record.status}", reason="not_pending")
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_payout(self, payout_id: str) -> PayoutRecord | None:
        return self.db.query(PayoutRecord).filter(PayoutRecord.id == payout_id).one_or_none()

    def list_payouts(self, creator_id: str, limit: int = 50) -> list[PayoutRecord]:
        return (
            self.db.query(PayoutRecord)
            .filter(PayoutRecord.creator_id == creator_id)
            .order_by(PayoutRecord.created_at.desc())
            .limit(limit)
            .all()
        )
