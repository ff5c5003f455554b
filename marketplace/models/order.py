"""
Order / OrderLine — durable ledger of purchases.
total_amount is computed once from catalog prices at creation and never changed;
refunds are tracked in refunded_amount so total == sum(line.price) always holds.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from marketplace.db.base import Base
from marketplace.models.enums import FulfillmentStatus, OrderStatus


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    buyer_id = Column(String, nullable=False, index=True)
    total_amount = Column(Integer, nullable=False)  # minor units
    status = Column(String, nullable=False, default=OrderStatus.PENDING.value, index=True)
    payment_reference = Column(String, nullable=True, index=True)  # gateway payment intent / charge id
    last_event_sequence = Column(Integer, nullable=False, default=0)  # highest applied webhook sequence
    refunded_amount = Column(Integer, nullable=False, default=0)
    fulfilled_at = Column(DateTime(timezone=True), nullable=True, index=True)
    refunded_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.position",
    )

    @property
    def lines_total(self) -> int:
        return sum(line.price for line in self.lines)


class OrderLine(Base):
    __tablename__ = "order_lines"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    asset_id = Column(String, ForeignKey("assets.id"), nullable=False, index=True)
    item_type = Column(String, nullable=False)  # digital / print
    print_spec_id = Column(String, ForeignKey("print_specs.id"), nullable=True)
    unit_price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)  # digital always 1
    # Print fulfillment sub-status; never feeds back into Order.status
    fulfillment_status = Column(String, nullable=False, default=FulfillmentStatus.NOT_APPLICABLE.value)
    fulfillment_reference = Column(String, nullable=True)
    fulfillment_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    order = relationship("Order", back_populates="lines")

    @property
    def price(self) -> int:
        return self.unit_price * self.quantity
