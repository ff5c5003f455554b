from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from marketplace.api.deps import require_user
from marketplace.db.session import get_db
from marketplace.entitlements.models import Role, Viewer
from marketplace.ledger.schemas import CreateOrderIn, OrderOut
from marketplace.ledger.service import OrderLedger
from marketplace.models.order import Order


router = APIRouter(prefix="/orders", tags=["orders"])


def _visible_order(ledger: OrderLedger, order_id: str, viewer: Viewer) -> Order:
    order = ledger.get_order(order_id)
    # Other buyers' orders are indistinguishable from missing ones
    if order is None or (viewer.role != Role.ADMIN and order.buyer_id != viewer.user_id):
        raise HTTPException(404, "Order not found")
    return order


@router.post("", response_model=OrderOut, status_code=201)
def create_order(
    payload: CreateOrderIn,
    viewer: Viewer = Depends(require_user),
    db: Session = Depends(get_db),
) -> OrderOut:
    order = OrderLedger(db).create_order(viewer.user_id, payload.lines, payload.expected_total)
    db.commit()
    return OrderOut.model_validate(order)


@router.get("", response_model=list[OrderOut])
def list_orders(viewer: Viewer = Depends(require_user), db: Session = Depends(get_db)) -> list[OrderOut]:
    return [OrderOut.model_validate(o) for o in OrderLedger(db).list_orders(viewer.user_id)]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: str, viewer: Viewer = Depends(require_user), db: Session = Depends(get_db)) -> OrderOut:
    return OrderOut.model_validate(_visible_order(OrderLedger(db), order_id, viewer))


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: str, viewer: Viewer = Depends(require_user), db: Session = Depends(get_db)) -> OrderOut:
    ledger = OrderLedger(db)
    _visible_order(ledger, order_id, viewer)
    order = ledger.cancel_order(order_id, actor_id=viewer.user_id)
    db.commit()
    return OrderOut.model_validate(order)
