"""Rate table resolution: daily price and included kilometers per group."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from rentalcore.models.booking import DateRange
from rentalcore.models.vehicle import VehicleGroup
from rentalcore.utils.constants import DEFAULT_KM_PER_DAY


@dataclass(frozen=True)
class ResolvedRate:
    daily_price: Decimal
    km_per_day: int
    unlimited_km: bool = False
    min_days: Optional[int] = None  # tier that matched, None for the group default


class RateService:
    """Pure read of reference data; no seasonal pricing."""

    @staticmethod
    def resolve_rate(group: VehicleGroup, date_range: DateRange,
                     default_km_per_day: int = DEFAULT_KM_PER_DAY) -> ResolvedRate:
        """
        Daily price and km allowance for renting `group` over `date_range`.
        - A length-of-rental tier covering the duration wins (first match in list order)
        - Otherwise the group's flat daily price
        - km_per_day falls back to the configured default when neither sets it
        """
        days = date_range.days
        fallback_km = group.km_per_day if group.km_per_day is not None else default_km_per_day

        for tier in group.rate_tiers:
            if tier.covers(days):
                return ResolvedRate(
                    daily_price=tier.daily_price,
                    km_per_day=tier.km_per_day if tier.km_per_day is not None else fallback_km,
                    unlimited_km=tier.unlimited_km,
                    min_days=tier.min_days,
                )

        return ResolvedRate(daily_price=group.daily_price, km_per_day=fallback_km)
