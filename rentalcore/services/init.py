from .availability_service import AvailabilityService
from .booking_service import BookingService
from .discount_service import DiscountService
from .quote_service import QuoteService
from .rate_service import RateService
from .settlement_service import SettlementService

__all__ = [
    "RateService",
    "AvailabilityService",
    "DiscountService",
    "QuoteService",
    "SettlementService",
    "BookingService",
]
