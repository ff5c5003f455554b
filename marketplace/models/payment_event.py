"""
PaymentEvent — every webhook delivery the ledger has seen, applied or dropped.
idempotency_key is unique and used to short-circuit redelivery.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from marketplace.db.base import Base


class PaymentEvent(Base):
    __tablename__ = "payment_events"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    order_id = Column(String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    idempotency_key = Column(String, unique=True, nullable=False)
    sequence_number = Column(Integer, nullable=False)
    status = Column(String, nullable=False)  # paid / refunded / cancelled
    amount = Column(Integer, nullable=False)
    outcome = Column(String, nullable=False)  # applied / dropped
    resulting_status = Column(String, nullable=False)  # order status right after this event
    drop_reason = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
