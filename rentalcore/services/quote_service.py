"""
Customer-facing quote: rate, extras, location surcharge and discount composed
into subtotal / tax / total.

subtotal   = base_price + extras_total + location_surcharge - discount_amount
tax_amount = subtotal * tax_rate / 100
total      = round(subtotal + tax_amount)

`totals()` is the only place this is computed; quotes and invoices both go through it.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence, Tuple

from rentalcore.exceptions import DifferentReturnNotAllowedError, ExtraQuantityError, PricingInvariantError
from rentalcore.models.booking import DateRange, ExtraLineItem, Quote
from rentalcore.models.discount import DiscountCode
from rentalcore.models.location import Location
from rentalcore.models.vehicle import VehicleGroup
from rentalcore.services.discount_service import DiscountService
from rentalcore.services.rate_service import RateService
from rentalcore.utils.constants import DEFAULT_EXTRA_KM_RATE, DEFAULT_KM_PER_DAY, DEFAULT_TAX_RATE, DiscountReason
from rentalcore.utils.money import ZERO, round_money, to_decimal

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class QuoteDraft:
    """Everything a quote depends on. `today` is only needed when a discount code is given."""
    group: VehicleGroup
    date_range: DateRange
    pickup_location: Location
    return_location: Location
    extras: Sequence[ExtraLineItem] = field(default_factory=tuple)
    discount_code: Optional[str] = None
    discount: Optional[DiscountCode] = None  # resolved code, None if unknown
    today: Optional[date] = None


class QuoteService:

    @staticmethod
    def totals(base_price: Decimal, extras_total: Decimal, location_surcharge: Decimal,
               discount_amount: Decimal, tax_rate: Decimal) -> Tuple[Decimal, Decimal, Decimal]:
        """(subtotal, tax_amount, total). Full precision until the single final rounding."""
        subtotal = base_price + extras_total + location_surcharge - discount_amount
        tax_amount = subtotal * tax_rate / HUNDRED
        total = round_money(subtotal + tax_amount)
        return subtotal, tax_amount, total

    @staticmethod
    def verify(quote: Quote) -> Quote:
        """Recompute totals from the parts; raise rather than hand out a quote that does not add up."""
        if quote.discount_amount < 0 or quote.discount_amount > (
                quote.base_price + quote.extras_total + quote.location_surcharge):
            raise PricingInvariantError("Error: discount outside the amount it applies to")
        expected = QuoteService.totals(
            quote.base_price, quote.extras_total, quote.location_surcharge, quote.discount_amount, quote.tax_rate
        )
        if expected != (quote.subtotal, quote.tax_amount, quote.total):
            raise PricingInvariantError()
        return quote

    # -------- validators --------
    @staticmethod
    def validate_extras(extras: Sequence[ExtraLineItem]):
        """Quantities must be positive integers within each extra's max_quantity."""
        for x in extras:
            if isinstance(x.quantity, bool) or not isinstance(x.quantity, int) or x.quantity < 1:
                raise ExtraQuantityError(f"Error: invalid quantity for extra '{x.name}'")
            if x.max_quantity is not None and x.quantity > x.max_quantity:
                raise ExtraQuantityError(
                    f"Error: at most {x.max_quantity} x '{x.name}' can be added to a booking"
                )
            if x.unit_price < 0:
                raise ExtraQuantityError(f"Error: invalid price for extra '{x.name}'")

    @staticmethod
    def validate_return(pickup: Location, ret: Location):
        """The return location's own flag governs whether it accepts vehicles from elsewhere."""
        if pickup.location_id != ret.location_id and not ret.allows_different_return:
            raise DifferentReturnNotAllowedError(
                f"Error: vehicles picked up at {pickup.name or pickup.location_id} "
                f"cannot be returned to {ret.name or ret.location_id}"
            )

    # -------- parts --------
    @staticmethod
    def extras_total(extras: Sequence[ExtraLineItem], days: int) -> Decimal:
        return sum((x.total_for(days) for x in extras), ZERO)

    @staticmethod
    def location_surcharge(pickup: Location, ret: Location) -> Decimal:
        if pickup.location_id != ret.location_id and ret.allows_different_return:
            return ret.different_return_fee
        return ZERO

    @staticmethod
    def compute_quote(draft: QuoteDraft, tax_rate=DEFAULT_TAX_RATE,
                      default_km_per_day: int = DEFAULT_KM_PER_DAY,
                      extra_km_rate=DEFAULT_EXTRA_KM_RATE) -> Quote:
        """
        Price a booking draft. Deterministic: same draft, same quote.
        The extra-km rate (group override, else `extra_km_rate`) is frozen on the
        quote so a later catalog edit cannot change the settlement.
        An invalid discount code does not fail the quote; it is priced without
        discount and the rejection reason is reported on the quote.
        """
        QuoteService.validate_extras(draft.extras)
        tax_rate = to_decimal(tax_rate)
        days = draft.date_range.days

        rate = RateService.resolve_rate(draft.group, draft.date_range, default_km_per_day)
        base_price = rate.daily_price * days
        extras_total = QuoteService.extras_total(draft.extras, days)
        surcharge = QuoteService.location_surcharge(draft.pickup_location, draft.return_location)

        discount_amount = ZERO
        applied_code = None
        rejection = None
        if draft.discount_code or draft.discount is not None:
            if draft.discount is None:
                rejection = DiscountReason.NOT_FOUND
            else:
                if draft.today is None:
                    raise ValueError("today is required to evaluate a discount code")
                result = DiscountService.evaluate(
                    draft.discount,
                    days=days,
                    subtotal_before_discount=base_price + extras_total + surcharge,
                    today=draft.today,
                    group_id=draft.group.group_id,
                )
                if result.valid:
                    discount_amount = result.amount
                    applied_code = result.code
                else:
                    rejection = result.reason

        subtotal, tax_amount, total = QuoteService.totals(
            base_price, extras_total, surcharge, discount_amount, tax_rate
        )
        return QuoteService.verify(Quote(
            days=days,
            daily_price=rate.daily_price,
            km_per_day=rate.km_per_day,
            unlimited_km=rate.unlimited_km,
            extra_km_rate=(draft.group.extra_km_price if draft.group.extra_km_price is not None
                           else to_decimal(extra_km_rate)),
            base_price=base_price,
            extras_total=extras_total,
            location_surcharge=surcharge,
            discount_code=applied_code,
            discount_rejection=rejection,
            discount_amount=discount_amount,
            subtotal=subtotal,
            tax_rate=tax_rate,
            tax_amount=tax_amount,
            total=total,
            deposit_amount=draft.group.deposit_amount,
        ))
