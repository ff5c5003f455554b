"""Tests for OrderLedger: order creation, payment events, cancellation, print sub-status."""
from unittest.mock import patch
from uuid import uuid4

import pytest

from marketplace.ledger.errors import (
    ConflictError,
    OrderNotFoundError,
    PriceMismatchError,
    ValidationError,
)
from marketplace.ledger.schemas import OrderLineIn, PaymentEventIn
from marketplace.ledger.service import OrderLedger
from marketplace.models.enums import FulfillmentStatus, ItemType, OrderStatus, PaymentEventStatus
from marketplace.models.order import Order
from marketplace.models.payment_event import PaymentEvent


def _digital(asset, **kwargs):
    return OrderLineIn(item_type=ItemType.DIGITAL, asset_id=asset.id, **kwargs)


def _print(asset, spec, quantity=1, **kwargs):
    return OrderLineIn(
        item_type=ItemType.PRINT,
        asset_id=asset.id,
        print_spec_id=spec.id,
        quantity=quantity,
        **kwargs,
    )


def _event(order, seq, status=PaymentEventStatus.PAID, amount=None, key=None):
    return PaymentEventIn(
        order_id=order.id,
        idempotency_key=key or f"evt_{uuid4().hex}",
        sequence_number=seq,
        status=status,
        amount=order.total_amount if amount is None else amount,
    )


def _snapshot(order):
    return (
        order.status,
        order.total_amount,
        order.refunded_amount,
        order.last_event_sequence,
        [(line.id, line.price, line.fulfillment_status) for line in order.lines],
    )


class TestCreateOrder:
    def test_digital_order_is_pending_with_catalog_total(self, db, make_asset):
        asset = make_asset(digital_price=2500)
        order = OrderLedger(db).create_order("buyer-1", [_digital(asset)])

        assert order.status == OrderStatus.PENDING
        assert order.total_amount == 2500
        assert order.lines[0].fulfillment_status == FulfillmentStatus.NOT_APPLICABLE

    def test_total_equals_sum_of_line_prices(self, db, make_asset, make_print_spec):
        asset = make_asset(digital_price=2500)
        spec = make_print_spec(price=4000)
        order = OrderLedger(db).create_order(
            "buyer-1",
            [_digital(asset), _print(asset, spec, quantity=2)],
            expected_total=10500,
        )

        assert order.total_amount == 10500
        assert order.total_amount == sum(line.price for line in order.lines)
        assert order.lines[1].fulfillment_status == FulfillmentStatus.PENDING

    def test_client_price_mismatch_persists_nothing(self, db, make_asset):
        asset = make_asset(digital_price=2500)
        with pytest.raises(PriceMismatchError) as exc_info:
            OrderLedger(db).create_order("buyer-1", [_digital(asset, unit_price=1999)])

        assert exc_info.value.expected == 2500
        assert exc_info.value.actual == 1999
        assert db.query(Order).count() == 0

    def test_expected_total_mismatch(self, db, make_asset):
        asset = make_asset(digital_price=2500)
        with pytest.raises(PriceMismatchError):
            OrderLedger(db).create_order("buyer-1", [_digital(asset)], expected_total=2000)
        assert db.query(Order).count() == 0

    def test_inactive_asset_rejected(self, db, make_asset):
        asset = make_asset(is_active=False)
        with pytest.raises(ValidationError):
            OrderLedger(db).create_order("buyer-1", [_digital(asset)])

    def test_unknown_asset_rejected(self, db):
        line = OrderLineIn(item_type=ItemType.DIGITAL, asset_id="missing")
        with pytest.raises(ValidationError):
            OrderLedger(db).create_order("buyer-1", [line])

    def test_duplicate_digital_line_rejected(self, db, make_asset):
        asset = make_asset()
        with pytest.raises(ValidationError):
            OrderLedger(db).create_order("buyer-1", [_digital(asset), _digital(asset)])

    def test_inactive_print_spec_rejected(self, db, make_asset, make_print_spec):
        asset = make_asset()
        spec = make_print_spec(is_active=False)
        with pytest.raises(ValidationError):
            OrderLedger(db).create_order("buyer-1", [_print(asset, spec)])

    def test_print_line_requires_spec(self):
        with pytest.raises(ValueError):
            OrderLineIn(item_type=ItemType.PRINT, asset_id="a1")

    def test_digital_line_quantity_is_one(self):
        with pytest.raises(ValueError):
            OrderLineIn(item_type=ItemType.DIGITAL, asset_id="a1", quantity=2)


class TestPaymentEvents:
    def test_paid_replay_then_refund(self, db, make_asset):
        ledger = OrderLedger(db)
        asset = make_asset(digital_price=2500)
        order = ledger.create_order("buyer-1", [_digital(asset)])

        paid = _event(order, seq=1)
        ledger.apply_payment_event(paid)
        assert order.status == OrderStatus.FULFILLED
        assert order.fulfilled_at is not None
        before = _snapshot(order)

        ledger.apply_payment_event(paid)
        assert _snapshot(order) == before
        assert db.query(PaymentEvent).count() == 1

        ledger.apply_payment_event(_event(order, seq=2, status=PaymentEventStatus.REFUNDED))
        assert order.status == OrderStatus.REFUNDED
        assert order.refunded_amount == 2500
        assert order.total_amount == 2500

    def test_lower_sequence_is_dropped(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        ledger.apply_payment_event(_event(order, seq=3))
        before = _snapshot(order)

        ledger.apply_payment_event(_event(order, seq=2, status=PaymentEventStatus.CANCELLED, amount=0))

        assert _snapshot(order) == before
        dropped = db.query(PaymentEvent).filter(PaymentEvent.outcome == "dropped").one()
        assert dropped.drop_reason == "stale_sequence"

    def test_dropped_event_redelivery_short_circuits(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        ledger.apply_payment_event(_event(order, seq=2))
        stale = _event(order, seq=1, status=PaymentEventStatus.REFUNDED, amount=0)

        ledger.apply_payment_event(stale)
        ledger.apply_payment_event(stale)

        assert db.query(PaymentEvent).count() == 2

    def test_fulfilled_order_cannot_be_cancelled_by_event(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        ledger.apply_payment_event(_event(order, seq=1))

        ledger.apply_payment_event(_event(order, seq=2, status=PaymentEventStatus.CANCELLED, amount=0))

        assert order.status == OrderStatus.FULFILLED
        assert order.last_event_sequence == 1
        dropped = db.query(PaymentEvent).filter(PaymentEvent.outcome == "dropped").one()
        assert dropped.drop_reason == "invalid_transition"

    def test_refunded_is_final(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        ledger.apply_payment_event(_event(order, seq=1))
        ledger.apply_payment_event(_event(order, seq=2, status=PaymentEventStatus.REFUNDED))

        ledger.apply_payment_event(_event(order, seq=3))

        assert order.status == OrderStatus.REFUNDED

    def test_paid_amount_mismatch_rejected(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset(digital_price=2500))])

        with pytest.raises(PriceMismatchError):
            ledger.apply_payment_event(_event(order, seq=1, amount=100))

        assert order.status == OrderStatus.PENDING
        assert db.query(PaymentEvent).count() == 0

    def test_partial_refund_keeps_total(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset(digital_price=2500))])
        ledger.apply_payment_event(_event(order, seq=1))

        ledger.apply_payment_event(_event(order, seq=2, status=PaymentEventStatus.REFUNDED, amount=1000))

        assert order.status == OrderStatus.REFUNDED
        assert order.refunded_amount == 1000
        assert order.total_amount == sum(line.price for line in order.lines)

    def test_payment_reference_is_stored(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        event = PaymentEventIn(
            order_id=order.id,
            idempotency_key="evt_1",
            sequence_number=1,
            status=PaymentEventStatus.PAID,
            amount=order.total_amount,
            payment_reference="pi_123",
        )

        ledger.apply_payment_event(event)

        assert order.payment_reference == "pi_123"

    def test_unknown_order(self, db):
        event = PaymentEventIn(
            order_id="missing",
            idempotency_key="evt_x",
            sequence_number=1,
            status=PaymentEventStatus.PAID,
            amount=100,
        )
        with pytest.raises(OrderNotFoundError):
            OrderLedger(db).apply_payment_event(event)

    def test_process_reports_whether_delivery_applied(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        paid = _event(order, seq=1)

        assert ledger.process_payment_event(paid).applied is True
        redelivery = ledger.process_payment_event(paid)
        stale = ledger.process_payment_event(_event(order, seq=1, status=PaymentEventStatus.REFUNDED))

        assert redelivery.applied is False
        assert redelivery.order is order
        assert stale.applied is False

    def test_lost_race_on_idempotency_key_returns_winner_state(self, db, session_factory, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        paid = _event(order, seq=1, key="evt_race")
        db.commit()

        # A concurrent delivery of the same event commits from another session
        other = session_factory()
        OrderLedger(other).apply_payment_event(paid)
        other.commit()
        other.close()

        real_get_event = ledger._get_event
        lookups = []

        def lookup_before_winner_commits(key):
            # Both duplicate checks ran before the other session committed
            lookups.append(key)
            return None if len(lookups) <= 2 else real_get_event(key)

        with patch.object(ledger, "_get_event", side_effect=lookup_before_winner_commits):
            result = ledger.process_payment_event(paid)

        assert len(lookups) == 3
        assert result.applied is False
        assert result.order.status == OrderStatus.FULFILLED
        assert result.order.last_event_sequence == 1
        assert db.query(PaymentEvent).filter(PaymentEvent.idempotency_key == "evt_race").count() == 1


class TestCancelOrder:
    def test_cancel_pending(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])

        ledger.cancel_order(order.id, actor_id="buyer-1")

        assert order.status == OrderStatus.CANCELLED
        assert order.cancelled_at is not None

    def test_cancel_fulfilled_conflicts(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])
        ledger.apply_payment_event(_event(order, seq=1))

        with pytest.raises(ConflictError) as exc_info:
            ledger.cancel_order(order.id)

        assert exc_info.value.reason == "not_pending"
        assert order.status == OrderStatus.FULFILLED

    def test_cancel_missing(self, db):
        with pytest.raises(OrderNotFoundError):
            OrderLedger(db).cancel_order("missing")


class TestFulfillmentSubStatus:
    def test_failure_does_not_touch_order(self, db, make_asset, make_print_spec):
        ledger = OrderLedger(db)
        asset = make_asset()
        order = ledger.create_order("buyer-1", [_print(asset, make_print_spec())])
        ledger.apply_payment_event(_event(order, seq=1))

        line = ledger.record_fulfillment_result(
            order.lines[0].id, FulfillmentStatus.FAILED, error="partner timeout"
        )

        assert line.fulfillment_status == FulfillmentStatus.FAILED
        assert line.fulfillment_error == "partner timeout"
        assert order.status == OrderStatus.FULFILLED
        assert order.refunded_amount == 0

    def test_digital_line_has_no_fulfillment(self, db, make_asset):
        ledger = OrderLedger(db)
        order = ledger.create_order("buyer-1", [_digital(make_asset())])

        with pytest.raises(ValidationError):
            ledger.record_fulfillment_result(order.lines[0].id, FulfillmentStatus.SUBMITTED)


class TestQueries:
    def test_lines_for_asset_only_returns_buyers_lines(self, db, make_asset):
        ledger = OrderLedger(db)
        asset = make_asset()
        ledger.create_order("buyer-1", [_digital(asset)])
        ledger.create_order("buyer-2", [_digital(asset)])

        lines = ledger.lines_for_asset("buyer-1", asset.id)

        assert len(lines) == 1
        assert lines[0].order.buyer_id == "buyer-1"

    def test_list_orders(self, db, make_asset):
        ledger = OrderLedger(db)
        ledger.create_order("buyer-1", [_digital(make_asset())])
        ledger.create_order("buyer-1", [_digital(make_asset())])
        ledger.create_order("buyer-2", [_digital(make_asset())])

        assert len(ledger.list_orders("buyer-1")) == 2
