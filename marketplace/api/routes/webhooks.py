"""
Inbound webhooks: payment gateway events and print partner status callbacks.
Both are delivered at-least-once; the services make redelivery a no-op.
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from marketplace.db.session import get_db
from marketplace.fulfillment.service import FulfillmentService
from marketplace.fulfillment.tasks import submit_print_jobs_for_order
from marketplace.ledger.schemas import OrderOut, PaymentEventIn
from marketplace.ledger.service import OrderLedger
from marketplace.models.enums import FulfillmentStatus, ItemType, OrderStatus


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


class PrintPartnerUpdateIn(BaseModel):
    reference: str
    status: FulfillmentStatus
    error: str | None = None


@router.post("/payments", response_model=OrderOut)
def payment_webhook(event: PaymentEventIn, db: Session = Depends(get_db)) -> OrderOut:
    result = OrderLedger(db).process_payment_event(event)
    db.commit()
    order = result.order

    has_pending_prints = any(
        line.item_type == ItemType.PRINT and line.fulfillment_status == FulfillmentStatus.PENDING
        for line in order.lines
    )
    # Only the delivery that fulfilled the order enqueues; redeliveries are no-ops
    if result.applied and order.status == OrderStatus.FULFILLED and has_pending_prints:
        submit_print_jobs_for_order.delay(order.id)
        logger.info("print_jobs_enqueued", extra={"order_id": order.id})
    return OrderOut.model_validate(order)


@router.post("/print-partner")
def print_partner_webhook(payload: PrintPartnerUpdateIn, db: Session = Depends(get_db)) -> dict:
    line = FulfillmentService(db).apply_partner_update(payload.reference, payload.status, payload.error)
    db.commit()
    return {"ok": True, "line_id": line.id, "fulfillment_status": line.fulfillment_status}
