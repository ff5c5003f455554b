"""
Asset — an uploaded photograph offered for sale. Upload itself is external;
the core only reads ownership, price and the active flag.
Never hard-deleted while an order line references it (is_active=False instead).
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from marketplace.db.base import Base


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    creator_id = Column(String, nullable=False, index=True)
    title = Column(String, nullable=True)
    digital_price = Column(Integer, nullable=False)  # minor units (cents)
    is_active = Column(Boolean, nullable=False, default=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    storage_key = Column(String, nullable=False)  # key in the asset store (original bytes)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
