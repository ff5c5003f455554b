"""
Celery task: submit a paid order's print lines to the print partner.
Queued by the payment webhook once an order becomes fulfilled.
"""
import logging

from marketplace.core.celery_app import celery_app
from marketplace.db.session import SessionLocal
from marketplace.fulfillment.service import FulfillmentService
from marketplace.ledger.errors import ConflictError

logger = logging.getLogger(__name__)


@celery_app.task(
    name="marketplace.fulfillment.tasks.submit_print_jobs_for_order",
    time_limit=300,
    soft_time_limit=280,
)
def submit_print_jobs_for_order(order_id: str) -> dict:
    db = SessionLocal()
    service = FulfillmentService(db)
    try:
        lines = service.submit_order(order_id)
        db.commit()
        submitted = sum(1 for line in lines if line.fulfillment_status == "submitted")
        logger.info(
            "print_jobs_for_order_done",
            extra={"order_id": order_id, "count": len(lines)},
        )
        return {"ok": True, "lines": len(lines), "submitted": submitted}
    except ConflictError as e:
        # Order refunded or cancelled before the worker picked this up
        db.rollback()
        logger.warning("print_jobs_for_order_skipped", extra={"order_id": order_id, "error": e.reason})
        return {"ok": True, "skipped": e.reason}
    except Exception:
        db.rollback()
        logger.exception("print_jobs_for_order_error", extra={"order_id": order_id})
        return {"ok": False, "error": "exception"}
    finally:
        service.client.close()
        db.close()
