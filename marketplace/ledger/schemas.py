"""
Ledger DTOs: order-line input, payment webhook event, and API output models.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from marketplace.models.enums import ItemType, PaymentEventStatus


class OrderLineIn(BaseModel):
    """One requested line. unit_price is what the client saw; it is checked, never trusted."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    item_type: ItemType
    asset_id: str = Field(..., min_length=1)
    print_spec_id: str | None = None
    quantity: int = Field(1, ge=1)
    unit_price: int | None = Field(None, ge=0)

    @model_validator(mode="after")
    def check_shape(self) -> "OrderLineIn":
        if self.item_type == ItemType.DIGITAL:
            if self.quantity != 1:
                raise ValueError("digital lines always have quantity 1")
            if self.print_spec_id is not None:
                raise ValueError("digital lines do not take a print spec")
        elif self.print_spec_id is None:
            raise ValueError("print lines require print_spec_id")
        return self


class CreateOrderIn(BaseModel):
    lines: list[OrderLineIn] = Field(..., min_length=1)
    expected_total: int | None = Field(None, ge=0)


class PaymentEventIn(BaseModel):
    """Gateway webhook. Delivered at-least-once, possibly out of order."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    order_id: str = Field(..., min_length=1)
    idempotency_key: str = Field(..., min_length=1)
    sequence_number: int = Field(..., ge=1)
    status: PaymentEventStatus
    amount: int = Field(..., ge=0)
    payment_reference: str | None = None


class OrderLineOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    asset_id: str
    item_type: str
    print_spec_id: str | None = None
    unit_price: int
    quantity: int
    price: int
    fulfillment_status: str


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    buyer_id: str
    total_amount: int
    status: str
    payment_reference: str | None = None
    refunded_amount: int = 0
    created_at: datetime
    updated_at: datetime
    lines: list[OrderLineOut]
