from marketplace.fulfillment.client import PrintJob, PrintPartnerClient
from marketplace.fulfillment.service import FulfillmentService

__all__ = [
    "FulfillmentService",
    "PrintJob",
    "PrintPartnerClient",
]
