"""Final invoice at vehicle return: the confirmed quote plus post-hoc charges."""

import logging
from decimal import Decimal

from rentalcore.exceptions import InvalidChargeError, PricingInvariantError
from rentalcore.models.booking import Booking, PickupRecord, ReturnRecord, SettlementAdjustment
from rentalcore.services.quote_service import QuoteService
from rentalcore.utils.constants import DEFAULT_EXTRA_KM_RATE, DEFAULT_KM_PER_DAY
from rentalcore.utils.money import round_money, to_decimal

logger = logging.getLogger(__name__)


def _charge(name: str, value) -> Decimal:
    try:
        amount = to_decimal(value, Decimal("0"))
    except ValueError:
        raise InvalidChargeError(f"Error: {name.replace('_', ' ')} is not a valid amount") from None
    if amount < 0:
        raise InvalidChargeError(f"Error: {name.replace('_', ' ')} cannot be negative")
    return amount


class SettlementService:

    @staticmethod
    def extra_km(pickup_mileage: int, return_mileage: int, km_included: int) -> int:
        """
        Kilometers beyond the allowance. An odometer reading lower at return than at
        pickup (rollback or typo) counts as zero driven; it never reduces the bill.
        """
        driven = return_mileage - pickup_mileage
        if driven < 0:
            logger.warning("Return mileage %s below pickup mileage %s; treating as 0 km driven",
                           return_mileage, pickup_mileage)
            driven = 0
        return max(0, driven - km_included)

    @staticmethod
    def compute_settlement(booking: Booking, pickup: PickupRecord, ret: ReturnRecord, *,
                           extra_km_rate=DEFAULT_EXTRA_KM_RATE,
                           default_km_per_day: int = DEFAULT_KM_PER_DAY) -> SettlementAdjustment:
        """
        Settle a booking against its persisted quote.
          km_included     = km_per_day * days
          extra_km        = max(0, driven - km_included)
          extra_km_charge = extra_km * rate  (rate frozen on the quote, else `extra_km_rate`)
          final_total     = round(quote.total + all charges)
        Charges are summed unrounded; the grand total is rounded once.
        Same inputs give the same adjustment.
        """
        quote = booking.quote
        if quote is None:
            raise PricingInvariantError("Error: booking has no confirmed quote to settle against")
        QuoteService.verify(quote)

        charges = {name: _charge(name, getattr(ret, name)) for name in ReturnRecord.CHARGE_FIELDS}

        days = booking.date_range.days
        km_per_day = quote.km_per_day if quote.km_per_day is not None else default_km_per_day
        if quote.unlimited_km:
            extra_km = 0
        else:
            extra_km = SettlementService.extra_km(pickup.mileage, ret.mileage, km_per_day * days)
        rate = quote.extra_km_rate if quote.extra_km_rate is not None else to_decimal(extra_km_rate)
        extra_km_charge = Decimal(extra_km) * rate

        grand = quote.total + extra_km_charge + sum(charges.values(), Decimal("0"))
        return SettlementAdjustment(
            extra_km=extra_km,
            extra_km_charge=extra_km_charge,
            original_total=quote.total,
            final_total=round_money(grand),
            **charges,
        )
