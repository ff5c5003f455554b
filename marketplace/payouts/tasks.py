"""
Celery periodic task: compute creator payouts over the trailing window.
Overlapping windows are safe: lines already on a pending/processed record are skipped.
"""
import logging

from marketplace.core.celery_app import celery_app
from marketplace.core.config import settings
from marketplace.db.session import SessionLocal
from marketplace.payouts.schemas import PayoutPeriod
from marketplace.payouts.service import PayoutService
from marketplace.services.locks import batch_lock, release_batch_lock

logger = logging.getLogger(__name__)

PAYOUT_LOCK_NAME = "compute_payouts"


@celery_app.task(
    name="marketplace.payouts.tasks.compute_payouts",
    time_limit=900,
    soft_time_limit=850,
)
def compute_payouts() -> dict:
    """Create pending payout records; one batch at a time across workers."""
    lock = batch_lock(PAYOUT_LOCK_NAME, settings.payout_lock_ttl_seconds)
    if not lock.acquire():
        logger.info("compute_payouts_skipped", extra={"error": "locked"})
        return {"ok": True, "skipped": "locked"}

    db = SessionLocal()
    try:
        period = PayoutPeriod.trailing(days=settings.payout_lookback_days)
        records = PayoutService(db).compute_payouts(period)
        db.commit()
        total = sum(r.amount for r in records)
        logger.info("compute_payouts_done", extra={"count": len(records), "amount": total})
        return {"ok": True, "created": len(records), "amount": total}
    except Exception:
        db.rollback()
        logger.exception("compute_payouts_error")
        return {"ok": False, "error": "exception"}
    finally:
        db.close()
        release_batch_lock(lock)
