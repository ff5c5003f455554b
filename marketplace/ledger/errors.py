"""
Error taxonomy of the ledger core.

ValidationError: malformed input / price mismatch; nothing persisted.
ConflictError: stale sequence, already-terminal order; dropped and logged.
DependencyUnavailable: ledger or store unreachable; callers fail closed.
FulfillmentError: print partner failure; recorded on the line only.
"""
from __future__ import annotations


class MarketplaceError(Exception):
    """Base for all errors raised by the marketplace core."""


class ValidationError(MarketplaceError):
    pass


class OrderNotFoundError(ValidationError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id


class PriceMismatchError(ValidationError):
    def __init__(self, message: str, *, expected: int, actual: int) -> None:
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class ConflictError(MarketplaceError):
    def __init__(self, message: str, *, reason: str = "conflict") -> None:
        super().__init__(message)
        self.reason = reason


class DependencyUnavailable(MarketplaceError):
    pass


class FulfillmentError(MarketplaceError):
    pass
