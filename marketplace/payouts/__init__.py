from marketplace.payouts.schemas import PayoutPeriod
from marketplace.payouts.service import PayoutService, creator_share, get_commission_rate

__all__ = [
    "PayoutPeriod",
    "PayoutService",
    "creator_share",
    "get_commission_rate",
]
