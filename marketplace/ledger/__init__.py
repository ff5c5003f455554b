"""
Order ledger: the only source of truth for "did this buyer pay for this asset".
"""
from marketplace.ledger.errors import (
    ConflictError,
    DependencyUnavailable,
    FulfillmentError,
    MarketplaceError,
    OrderNotFoundError,
    PriceMismatchError,
    ValidationError,
)
from marketplace.ledger.schemas import OrderLineIn, PaymentEventIn
from marketplace.ledger.service import ORDER_TRANSITIONS, OrderLedger

__all__ = [
    "ORDER_TRANSITIONS",
    "ConflictError",
    "DependencyUnavailable",
    "FulfillmentError",
    "MarketplaceError",
    "OrderLedger",
    "OrderLineIn",
    "OrderNotFoundError",
    "PaymentEventIn",
    "PriceMismatchError",
    "ValidationError",
]
