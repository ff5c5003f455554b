from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String

from marketplace.db.base import Base


class PrintSpec(Base):
    """Print catalog entry. Read-only to the ledger core."""

    __tablename__ = "print_specs"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    name = Column(String, nullable=False)
    medium = Column(String, nullable=False)  # matte_paper / canvas / metal / acrylic
    width_inches = Column(Numeric(6, 2), nullable=False)
    height_inches = Column(Numeric(6, 2), nullable=False)
    price = Column(Integer, nullable=False)  # minor units, per print
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
