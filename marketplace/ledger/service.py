"""
OrderLedger — durable record of orders and their payment lifecycle.

Responsibilities:
- Create orders with totals recomputed from the catalog (never trusted from input)
- Apply payment webhook events idempotently (idempotency key + per-order sequence)
- Explicit cancellation of pending orders
- Lookups used by the entitlement resolver (always current state, no cache)
- Print fulfillment sub-status, isolated from payment state
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, contains_eager

from marketplace.ledger.errors import (
    ConflictError,
    OrderNotFoundError,
    PriceMismatchError,
    ValidationError,
)
from marketplace.ledger.schemas import OrderLineIn, PaymentEventIn
from marketplace.models.asset import Asset
from marketplace.models.enums import (
    FulfillmentStatus,
    ItemType,
    OrderStatus,
    PaymentEventOutcome,
    PaymentEventStatus,
)
from marketplace.models.order import Order, OrderLine
from marketplace.models.payment_event import PaymentEvent
from marketplace.models.print_spec import PrintSpec
from marketplace.services.audit import AuditService
from marketplace.utils.metrics import orders_created_total, payment_events_total

logger = logging.getLogger(__name__)

# (current order status, event status) -> next order status.
# Anything missing is a conflict: fulfilled never goes back to pending,
# refunded/cancelled are final.
ORDER_TRANSITIONS: dict[tuple[OrderStatus, PaymentEventStatus], OrderStatus] = {
    (OrderStatus.PENDING, PaymentEventStatus.PAID): OrderStatus.FULFILLED,
    (OrderStatus.PENDING, PaymentEventStatus.REFUNDED): OrderStatus.REFUNDED,
    (OrderStatus.FULFILLED, PaymentEventStatus.REFUNDED): OrderStatus.REFUNDED,
    (OrderStatus.PENDING, PaymentEventStatus.CANCELLED): OrderStatus.CANCELLED,
}


@dataclass
class PaymentEventResult:
    """Order state after an event, and whether this delivery changed it."""
    order: Order
    applied: bool


class OrderLedger:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditService(db)

    # ------------------------------------------------------------------
    # Order creation
    # ------------------------------------------------------------------

    def create_order(
        self,
        buyer_id: str,
        lines: list[OrderLineIn],
        expected_total: int | None = None,
    ) -> Order:
        """
        Create a pending order. Unit prices come from the catalog; a client
        unit_price or expected_total that disagrees raises PriceMismatchError.
        Nothing is added to the session unless every line validates.
        """
        if not buyer_id:
            raise ValidationError("buyer_id is required")
        if not lines:
            raise ValidationError("order must contain at least one line")

        assets = {
            a.id: a
            for a in self.db.query(Asset).filter(Asset.id.in_(list({l.asset_id for l in lines}))).all()
        }
        spec_ids = {l.print_spec_id for l in lines if l.print_spec_id}
        specs = (
            {s.id: s for s in self.db.query(PrintSpec).filter(PrintSpec.id.in_(list(spec_ids))).all()}
            if spec_ids
            else {}
        )

        order = Order(
            id=str(uuid4()),
            buyer_id=buyer_id,
            status=OrderStatus.PENDING.value,
            total_amount=0,
            last_event_sequence=0,
            refunded_amount=0,
        )
        digital_assets: set[str] = set()
        for position, line_in in enumerate(lines):
            asset = assets.get(line_in.asset_id)
            if asset is None or not asset.is_active:
                raise ValidationError(f"Asset is not available for purchase: {line_in.asset_id}")

            if line_in.item_type == ItemType.DIGITAL:
                if asset.id in digital_assets:
                    raise ValidationError(f"Duplicate digital licence line for asset {asset.id}")
                digital_assets.add(asset.id)
                unit_price = asset.digital_price
                quantity = 1
                fulfillment_status = FulfillmentStatus.NOT_APPLICABLE
            else:
                spec = specs.get(line_in.print_spec_id)
                if spec is None or not spec.is_active:
                    raise ValidationError(f"Print option is not available: {line_in.print_spec_id}")
                unit_price = spec.price
                quantity = line_in.quantity
                fulfillment_status = FulfillmentStatus.PENDING

            if line_in.unit_price is not None and line_in.unit_price != unit_price:
                raise PriceMismatchError(
                    f"Price changed for asset {asset.id}",
                    expected=unit_price,
                    actual=line_in.unit_price,
                )

            order.lines.append(
                OrderLine(
                    id=str(uuid4()),
                    position=position,
                    asset_id=asset.id,
                    item_type=line_in.item_type.value,
                    print_spec_id=line_in.print_spec_id,
                    unit_price=unit_price,
                    quantity=quantity,
                    fulfillment_status=fulfillment_status.value,
                )
            )

        total = order.lines_total
        if expected_total is not None and expected_total != total:
            raise PriceMismatchError("Order total mismatch", expected=total, actual=expected_total)
        order.total_amount = total

        self.db.add(order)
        self.db.flush()
        orders_created_total.inc()
        logger.info(
            "order_created",
            extra={"order_id": order.id, "buyer_id": buyer_id, "amount": total, "count": len(order.lines)},
        )
        return order

    # ------------------------------------------------------------------
    # Payment events
    # ------------------------------------------------------------------

    def apply_payment_event(self, event: PaymentEventIn) -> Order:
        """Apply a gateway event and return the order; see process_payment_event."""
        return self.process_payment_event(event).order

    def process_payment_event(self, event: PaymentEventIn) -> PaymentEventResult:
        """
        Apply a gateway event to its order. Idempotent:
        - a known idempotency_key returns the current order unchanged;
        - an event with sequence_number <= last applied is dropped;
        - an event the state machine does not allow is dropped.
        Dropped events are recorded so their redelivery short-circuits too.
        A paid event whose amount differs from the total raises PriceMismatchError.
        `applied` is True only for the delivery that moved the order.
        """
        existing = self._get_event(event.idempotency_key)
        if existing:
            payment_events_total.labels(outcome="duplicate").inc()
            logger.info(
                "payment_event_already_processed",
                extra={"order_id": existing.order_id, "idempotency_key": event.idempotency_key},
            )
            return PaymentEventResult(self._require_order(existing.order_id), applied=False)

        try:
            # Row lock serializes concurrent deliveries for the same order
            order = (
                self.db.query(Order)
                .filter(Order.id == event.order_id)
                .with_for_update()
                .one_or_none()
            )
            if order is None:
                raise OrderNotFoundError(event.order_id)

            # Another delivery of the same key may have committed while we waited on the lock
            if self._get_event(event.idempotency_key):
                payment_events_total.labels(outcome="duplicate").inc()
                return PaymentEventResult(order, applied=False)

            try:
                target = self._next_status(order, event)
            except ConflictError as exc:
                self._record_event(order, event, PaymentEventOutcome.DROPPED, drop_reason=exc.reason)
                self.db.flush()
                payment_events_total.labels(outcome="dropped").inc()
                logger.warning(
                    "payment_event_dropped",
                    extra={
                        "order_id": order.id,
                        "idempotency_key": event.idempotency_key,
                        "sequence_number": event.sequence_number,
                        "event_status": event.status.value,
                        "from_status": order.status,
                        "error": exc.reason,
                    },
                )
                return PaymentEventResult(order, applied=False)

            from_status = order.status
            self._transition(order, event, target)
            self._record_event(order, event, PaymentEventOutcome.APPLIED)
            self.audit.log(
                actor_type="gateway",
                actor_id=None,
                action=f"order_{target.value}",
                entity_type="order",
                entity_id=order.id,
                payload={
                    "idempotency_key": event.idempotency_key,
                    "sequence_number": event.sequence_number,
                    "amount": event.amount,
                    "from_status": from_status,
                },
            )
            self.db.flush()
            payment_events_total.labels(outcome="applied").inc()
            logger.info(
                "payment_event_applied",
                extra={
                    "order_id": order.id,
                    "idempotency_key": event.idempotency_key,
                    "sequence_number": event.sequence_number,
                    "from_status": from_status,
                    "to_status": order.status,
                },
            )
            return PaymentEventResult(order, applied=True)
        except IntegrityError:
            # Unique idempotency_key lost a race with a concurrent delivery
            self.db.rollback()
            logger.warning(
                "payment_event_duplicate",
                extra={"order_id": event.order_id, "idempotency_key": event.idempotency_key},
            )
            existing = self._get_event(event.idempotency_key)
            if existing is None:
                raise
            return PaymentEventResult(self._require_order(existing.order_id), applied=False)

    def _next_status(self, order: Order, event: PaymentEventIn) -> OrderStatus:
        if event.sequence_number <= order.last_event_sequence:
            raise ConflictError(
                f"Stale event {event.sequence_number} <= {order.last_event_sequence}",
                reason="stale_sequence",
            )
        target = ORDER_TRANSITIONS.get((OrderStatus(order.status), event.status))
        if target is None:
            raise ConflictError(
                f"Event {event.status.value} not allowed for order in {order.status}",
                reason="invalid_transition",
            )
        if event.status == PaymentEventStatus.PAID and event.amount != order.total_amount:
            raise PriceMismatchError(
                f"Paid amount does not match order {order.id}",
                expected=order.total_amount,
                actual=event.amount,
            )
        return target

    def _transition(self, order: Order, event: PaymentEventIn, target: OrderStatus) -> None:
        now = datetime.now(timezone.utc)
        order.status = target.value
        order.last_event_sequence = event.sequence_number
        if event.payment_reference:
            order.payment_reference = event.payment_reference
        if target == OrderStatus.FULFILLED:
            order.fulfilled_at = now
        elif target == OrderStatus.REFUNDED:
            # amount 0 = full refund; partial refunds are capped at the total
            refunded = event.amount or order.total_amount
            order.refunded_amount = min(refunded, order.total_amount)
            order.refunded_at = now
            in_flight = [
                line.id
                for line in order.lines
                if line.fulfillment_status == FulfillmentStatus.SUBMITTED
            ]
            if in_flight:
                # Print job cancellation is an external decision; we only surface it
                logger.warning(
                    "order_refunded_with_print_in_flight",
                    extra={"order_id": order.id, "count": len(in_flight)},
                )
        elif target == OrderStatus.CANCELLED:
            order.cancelled_at = now
        order.updated_at = now

    def _record_event(
        self,
        order: Order,
        event: PaymentEventIn,
        outcome: PaymentEventOutcome,
        drop_reason: str | None = None,
    ) -> PaymentEvent:
        record = PaymentEvent(
            id=str(uuid4()),
            order_id=order.id,
            idempotency_key=event.idempotency_key,
            sequence_number=event.sequence_number,
            status=event.status.value,
            amount=event.amount,
            outcome=outcome.value,
            resulting_status=order.status,
            drop_reason=drop_reason,
        )
        self.db.add(record)
        return record

    def _get_event(self, idempotency_key: str) -> PaymentEvent | None:
        return (
            self.db.query(PaymentEvent)
            .filter(PaymentEvent.idempotency_key == idempotency_key)
            .one_or_none()
        )

    # ------------------------------------------------------------------
    # Explicit cancellation
    # ------------------------------------------------------------------

    def cancel_order(self, order_id: str, actor_id: str | None = None) -> Order:
        """Cancel a pending order on explicit request. Raises ConflictError otherwise."""
        order = (
            self.db.query(Order)
            .filter(Order.id == order_id)
            .with_for_update()
            .one_or_none()
        )
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status != OrderStatus.PENDING:
            raise ConflictError(
                f"Order {order_id} is {order.status}, only pending orders can be cancelled",
                reason="not_pending",
            )
        now = datetime.now(timezone.utc)
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = now
        order.updated_at = now
        self.audit.log(
            actor_type="user",
            actor_id=actor_id,
            action="order_cancelled",
            entity_type="order",
            entity_id=order.id,
        )
        self.db.flush()
        logger.info("order_cancelled", extra={"order_id": order.id, "buyer_id": order.buyer_id})
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order | None:
        return self.db.query(Order).filter(Order.id == order_id).one_or_none()

    def _require_order(self, order_id: str) -> Order:
        order = self.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(self, buyer_id: str, limit: int = 50) -> list[Order]:
        return (
            self.db.query(Order)
            .filter(Order.buyer_id == buyer_id)
            .order_by(Order.created_at.desc())
            .limit(limit)
            .all()
        )

    def lines_for_asset(self, buyer_id: str, asset_id: str) -> list[OrderLine]:
        """Every line the buyer holds for the asset, in any order status."""
        return (
            self.db.query(OrderLine)
            .join(Order, Order.id == OrderLine.order_id)
            .options(contains_eager(OrderLine.order))
            .filter(Order.buyer_id == buyer_id, OrderLine.asset_id == asset_id)
            .all()
        )

    def get_asset(self, asset_id: str) -> Asset | None:
        return self.db.query(Asset).filter(Asset.id == asset_id).one_or_none()

    def get_line(self, line_id: str, for_update: bool = False) -> OrderLine | None:
        query = self.db.query(OrderLine).filter(OrderLine.id == line_id)
        if for_update:
            query = query.with_for_update()
        return query.one_or_none()

    # ------------------------------------------------------------------
    # Print fulfillment sub-status
    # ------------------------------------------------------------------

    def record_fulfillment_result(
        self,
        line_id: str,
        status: FulfillmentStatus,
        *,
        reference: str | None = None,
        error: str | None = None,
    ) -> OrderLine:
        """Update a print line's fulfillment status. Never touches the order's payment state."""
        line = (
            self.db.query(OrderLine)
            .filter(OrderLine.id == line_id)
            .with_for_update()
            .one_or_none()
        )
        if line is None:
            raise ValidationError(f"Order line not found: {line_id}")
        if line.item_type != ItemType.PRINT:
            raise ValidationError(f"Order line {line_id} is not a print line")
        line.fulfillment_status = status.value
        if reference is not None:
            line.fulfillment_reference = reference
        line.fulfillment_error = error
        self.db.flush()
        logger.info(
            "print_fulfillment_updated",
            extra={"line_id": line.id, "order_id": line.order_id, "to_status": status.value, "error": error},
        )
        return line
