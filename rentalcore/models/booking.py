from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from rentalcore.exceptions import InvalidDateRangeError
from rentalcore.utils.constants import BookingStatus, DEFAULT_FUEL_LEVEL
from rentalcore.utils.dates import parse_when
from rentalcore.utils.money import ZERO, money_str

ONE_DAY = timedelta(days=1)


def _day(x) -> date:
    return x.date() if isinstance(x, datetime) else x


@dataclass(frozen=True)
class DateRange:
    """
    Rental period. `start`/`end` are calendar dates, or naive datetimes when the
    pickup/return time of day is known.

    Bare-date ranges overlap on calendar days as the half-open range
    [start_day, occupied_end): a return on day X and a new pickup on day X do
    not conflict. Ranges that both carry times overlap on the times themselves.
    start == end is a one-day rental; end before start is rejected.
    """
    start: date
    end: date

    def __post_init__(self):
        start, end = self.start, self.end
        # date vs datetime cannot be compared directly; lift the bare date to midnight
        if isinstance(start, datetime) != isinstance(end, datetime):
            if not isinstance(start, datetime):
                start = datetime.combine(start, datetime.min.time())
            else:
                end = datetime.combine(end, datetime.min.time())
            object.__setattr__(self, "start", start)
            object.__setattr__(self, "end", end)
        if end < start:
            raise InvalidDateRangeError()

    @classmethod
    def parse(cls, start, end) -> "DateRange":
        try:
            s = parse_when(start)
            e = parse_when(end)
        except (TypeError, ValueError):
            raise InvalidDateRangeError("Error: invalid dates (YYYY-MM-DD)") from None
        return cls(s, e)

    @property
    def days(self) -> int:
        """Billable days: partial days round up, minimum 1."""
        delta = self.end - self.start
        days = delta.days + (1 if (delta.seconds or delta.microseconds) else 0)
        return max(1, days)

    @property
    def start_day(self) -> date:
        return _day(self.start)

    @property
    def end_day(self) -> date:
        return _day(self.end)

    @property
    def occupied_end(self) -> date:
        """Exclusive end of the occupied calendar days."""
        return max(self.end_day, self.start_day + ONE_DAY)

    @property
    def has_times(self) -> bool:
        return isinstance(self.start, datetime)

    @property
    def occupied_until(self) -> datetime:
        """Exclusive end of a timed range; a zero-length range holds the vehicle for a day."""
        return self.end if self.end > self.start else self.start + ONE_DAY

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def overlaps(a: DateRange, b: DateRange) -> bool:
    """
    Half-open overlap rule: a_start < b_end and b_start < a_end.
    - both ranges timed: compared on the datetimes, so a return at 10:00 and a
      pickup at 10:00 do not conflict but a pickup at 09:00 does
    - otherwise on calendar days [start_day, occupied_end); a booking
      2025-10-22 -> 2025-10-23 occupies the night of 22 only
    """
    if a.has_times and b.has_times:
        return a.start < b.occupied_until and b.start < a.occupied_until
    return a.start_day < b.occupied_end and b.start_day < a.occupied_end


@dataclass(frozen=True)
class ExtraLineItem:
    """A selected extra (GPS, child seat, ...) with its price frozen at booking time."""
    name: str
    unit_price: Decimal
    quantity: int = 1
    is_per_rental: bool = False
    max_quantity: Optional[int] = None
    extra_id: Optional[str] = None

    def total_for(self, days: int) -> Decimal:
        line = self.unit_price * self.quantity
        return line if self.is_per_rental else line * days

    def to_dict(self) -> dict:
        return {
            "extra_id": self.extra_id,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "is_per_rental": self.is_per_rental,
            "max_quantity": self.max_quantity,
        }


@dataclass(frozen=True)
class Quote:
    """
    Customer-facing price breakdown. `subtotal` and `tax_amount` keep full
    precision; only `total` is rounded.
    """
    days: int
    daily_price: Decimal
    km_per_day: Optional[int]
    base_price: Decimal
    extras_total: Decimal
    location_surcharge: Decimal
    discount_amount: Decimal
    subtotal: Decimal
    tax_rate: Decimal  # percent
    tax_amount: Decimal
    total: Decimal
    deposit_amount: Decimal = ZERO
    discount_code: Optional[str] = None
    discount_rejection: Optional[str] = None
    unlimited_km: bool = False
    extra_km_rate: Optional[Decimal] = None  # per km over the allowance, frozen at quote time

    MONEY_FIELDS = (
        "daily_price", "base_price", "extras_total", "location_surcharge",
        "discount_amount", "subtotal", "tax_amount", "total", "deposit_amount",
    )

    def as_dict(self) -> dict:
        """Flat record for documents and JSON; money as strings."""
        d = {
            "days": self.days,
            "km_per_day": self.km_per_day,
            "unlimited_km": self.unlimited_km,
            "tax_rate": str(self.tax_rate),
            "discount_code": self.discount_code,
            "discount_rejection": self.discount_rejection,
            "extra_km_rate": money_str(self.extra_km_rate),
        }
        for name in self.MONEY_FIELDS:
            d[name] = money_str(getattr(self, name))
        return d

    def to_record(self) -> dict:
        """Fields persisted verbatim onto the booking at confirmation."""
        return {
            "days": self.days,
            "daily_price": self.daily_price,
            "km_per_day": self.km_per_day,
            "unlimited_km": self.unlimited_km,
            "extra_km_rate": self.extra_km_rate,
            "base_price": self.base_price,
            "extras_total": self.extras_total,
            "location_surcharge": self.location_surcharge,
            "discount_code": self.discount_code,
            "discount_amount": self.discount_amount,
            "subtotal": self.subtotal,
            "tax_rate": self.tax_rate,
            "tax_amount": self.tax_amount,
            "total": self.total,
            "deposit_amount": self.deposit_amount,
        }


@dataclass(frozen=True)
class PickupRecord:
    mileage: int
    fuel_level: str = DEFAULT_FUEL_LEVEL
    notes: str = ""

    def to_dict(self) -> dict:
        return {"mileage": self.mileage, "fuel_level": self.fuel_level, "notes": self.notes}


@dataclass(frozen=True)
class ReturnRecord:
    """Odometer/fuel at return plus the staff-entered charges."""
    mileage: int
    fuel_level: str = DEFAULT_FUEL_LEVEL
    fuel_charge: Decimal = ZERO
    cleaning_charge: Decimal = ZERO
    damage_charge: Decimal = ZERO
    late_return_charge: Decimal = ZERO
    other_charge: Decimal = ZERO
    notes: str = ""

    CHARGE_FIELDS = ("fuel_charge", "cleaning_charge", "damage_charge", "late_return_charge", "other_charge")

    def to_dict(self) -> dict:
        d = {"mileage": self.mileage, "fuel_level": self.fuel_level, "notes": self.notes}
        for name in self.CHARGE_FIELDS:
            d[name] = getattr(self, name)
        return d


@dataclass(frozen=True)
class SettlementAdjustment:
    extra_km: int
    extra_km_charge: Decimal
    fuel_charge: Decimal
    cleaning_charge: Decimal
    damage_charge: Decimal
    late_return_charge: Decimal
    other_charge: Decimal
    original_total: Decimal
    final_total: Decimal

    @property
    def total_adjustments(self) -> Decimal:
        return (self.extra_km_charge + self.fuel_charge + self.cleaning_charge
                + self.damage_charge + self.late_return_charge + self.other_charge)

    def to_record(self) -> dict:
        return {
            "extra_km": self.extra_km,
            "extra_km_charge": self.extra_km_charge,
            "fuel_charge": self.fuel_charge,
            "cleaning_charge": self.cleaning_charge,
            "damage_charge": self.damage_charge,
            "late_return_charge": self.late_return_charge,
            "other_charge": self.other_charge,
            "original_total": self.original_total,
            "final_total": self.final_total,
        }

    def as_dict(self) -> dict:
        d = {k: (v if k == "extra_km" else money_str(v)) for k, v in self.to_record().items()}
        d["total_adjustments"] = money_str(self.total_adjustments)
        return d


@dataclass
class Booking:
    """
    Reservation of one vehicle group. The vehicle is assigned at confirmation.
    The Store keeps raw dicts; services wrap them into this object.
    """
    booking_id: str
    group_id: str
    pickup_location_id: str
    return_location_id: str
    date_range: DateRange
    customer_id: Optional[str] = None
    booking_number: str = ""
    vehicle_id: Optional[str] = None
    extras: List[ExtraLineItem] = field(default_factory=list)
    discount_code: Optional[str] = None
    status: str = BookingStatus.PENDING
    quote: Optional[Quote] = None
    pickup: Optional[PickupRecord] = None
    settlement: Optional[SettlementAdjustment] = None
    return_record: Optional[ReturnRecord] = None
