"""
Closed vocabularies shared by the ledger tables and services.
Stored in the database as plain strings (the enum value).
"""
from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class ItemType(str, Enum):
    DIGITAL = "digital"
    PRINT = "print"


class FulfillmentStatus(str, Enum):
    """Print-line sub-status. Independent of the parent order's payment state."""

    NOT_APPLICABLE = "not_applicable"  # digital lines
    PENDING = "pending"
    SUBMITTED = "submitted"
    SHIPPED = "shipped"
    FAILED = "failed"


class PaymentEventStatus(str, Enum):
    PAID = "paid"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class PaymentEventOutcome(str, Enum):
    APPLIED = "applied"
    DROPPED = "dropped"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


# Records in these states own their order lines; failed records release them.
COVERING_PAYOUT_STATUSES = frozenset({PayoutStatus.PENDING, PayoutStatus.PROCESSED})
