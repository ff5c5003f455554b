from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.api.deps import require_admin
from marketplace.db.session import get_db
from marketplace.payouts.schemas import PayoutFailedIn, PayoutOut, PayoutProcessedIn
from marketplace.payouts.service import PayoutService
from marketplace.payouts.tasks import compute_payouts


router = APIRouter(prefix="/admin/payouts", tags=["payouts"], dependencies=[Depends(require_admin)])


@router.post("/compute", status_code=202)
def trigger_compute() -> dict:
    """Queue a payout run; the worker takes the batch lock."""
    result = compute_payouts.delay()
    return {"ok": True, "task_id": result.id}


@router.get("", response_model=list[PayoutOut])
def list_payouts(
    creator_id: str = Query(...),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> list[PayoutOut]:
    return [PayoutOut.model_validate(r) for r in PayoutService(db).list_payouts(creator_id, limit=limit)]


@router.post("/{payout_id}/processed", response_model=PayoutOut)
def mark_processed(payout_id: str, payload: PayoutProcessedIn, db: Session = Depends(get_db)) -> PayoutOut:
    record = PayoutService(db).mark_processed(payout_id, payload.transfer_reference)
    db.commit()
    return PayoutOut.model_validate(record)


@router.post("/{payout_id}/failed", response_model=PayoutOut)
def mark_failed(payout_id: str, payload: PayoutFailedIn, db: Session = Depends(get_db)) -> PayoutOut:
    record = PayoutService(db).mark_failed(payout_id, payload.reason)
    db.commit()
    return PayoutOut.model_validate(record)
