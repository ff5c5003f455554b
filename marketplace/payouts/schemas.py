from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, model_validator


class PayoutPeriod(BaseModel):
    """Half-open window [start, end) over Order.fulfilled_at."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def check_bounds(self) -> "PayoutPeriod":
        if self.end <= self.start:
            raise ValueError("period end must be after start")
        return self

    @classmethod
    def trailing(cls, days: int, now: datetime | None = None) -> "PayoutPeriod":
        end = now or datetime.now(timezone.utc)
        return cls(start=end - timedelta(days=days), end=end)


class PayoutOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    creator_id: str
    amount: int
    order_line_ids: list[str]
    status: str
    period_start: datetime
    period_end: datetime
    transfer_reference: str | None = None
    failure_reason: str | None = None
    created_at: datetime
    processed_at: datetime | None = None


class PayoutProcessedIn(BaseModel):
    transfer_reference: str


class PayoutFailedIn(BaseModel):
    reason: str
