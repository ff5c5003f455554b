"""
PayoutRecord — one creator's share over a period, net of platform commission.
order_line_ids lists exactly the lines covered; pending/processed records own
their lines, failed records release them. Processed records are immutable.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text

from marketplace.db.base import Base
from marketplace.models.enums import PayoutStatus


class PayoutRecord(Base):
    __tablename__ = "payout_records"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    creator_id = Column(String, nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # minor units
    order_line_ids = Column(JSON, nullable=False, default=list)
    commission_rate = Column(Numeric(5, 4), nullable=False)
    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=False)
    status = Column(String, nullable=False, default=PayoutStatus.PENDING.value, index=True)
    transfer_reference = Column(String, nullable=True)  # bank / gateway transfer id
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    processed_at = Column(DateTime(timezone=True), nullable=True)
