from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from rentalcore.utils.constants import VehicleStatus, OUT_OF_SERVICE_STATES


@dataclass(frozen=True)
class RateTier:
    """
    Length-of-rental price band for a group, e.g. 1-3 days at 45/day,
    4-7 days at 40/day, 8+ days (max_days=None) at 35/day.
    """
    min_days: int
    daily_price: Decimal
    km_per_day: Optional[int] = None
    max_days: Optional[int] = None
    unlimited_km: bool = False

    def covers(self, days: int) -> bool:
        if days < self.min_days:
            return False
        return self.max_days is None or days <= self.max_days


@dataclass(frozen=True)
class VehicleGroup:
    """
    Rental category (e.g. "Economy"). Reference data owned by the catalog;
    bookings point at it by id.
    """
    group_id: str
    name: str
    daily_price: Decimal
    km_per_day: Optional[int] = None  # None -> configured default
    deposit_amount: Decimal = Decimal("0")
    code: str = ""
    extra_km_price: Optional[Decimal] = None  # None -> configured rate
    rate_tiers: List[RateTier] = field(default_factory=list)
    is_active: bool = True


@dataclass
class Vehicle:
    """A physical unit of exactly one group."""
    vehicle_id: str
    group_id: str
    plate: str = ""
    brand: str = ""
    model: str = ""
    current_location_id: Optional[str] = None
    current_mileage: int = 0
    status: str = VehicleStatus.AVAILABLE
    is_active: bool = True

    @property
    def in_service(self) -> bool:
        """False for retired units and units in maintenance/unavailable."""
        return self.is_active and self.status not in OUT_OF_SERVICE_STATES
