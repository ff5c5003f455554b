from marketplace.models.asset import Asset
from marketplace.models.audit_log import AuditLog
from marketplace.models.order import Order, OrderLine
from marketplace.models.payment_event import PaymentEvent
from marketplace.models.payout import PayoutRecord
from marketplace.models.print_spec import PrintSpec

__all__ = [
    "Asset",
    "AuditLog",
    "Order",
    "OrderLine",
    "PaymentEvent",
    "PayoutRecord",
    "PrintSpec",
]
