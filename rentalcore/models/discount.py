from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from rentalcore.utils.constants import DiscountType


def normalize_code(code: Optional[str]) -> str:
    """Codes are stored and compared in upper case, without surrounding spaces."""
    return (code or "").strip().upper()


@dataclass(frozen=True)
class DiscountCode:
    """
    Promotional code. `max_uses == 0` means unlimited redemptions;
    an empty `vehicle_groups` tuple means the code applies to every group.
    """
    code: str
    type: str  # "percentage" | "fixed"
    value: Decimal
    min_days: Optional[int] = None
    min_amount: Optional[Decimal] = None
    max_uses: int = 0
    current_uses: int = 0
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    is_active: bool = True
    vehicle_groups: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "code", normalize_code(self.code))
        if self.type not in (DiscountType.PERCENTAGE, DiscountType.FIXED):
            raise ValueError(f"Unknown discount type: {self.type!r}")
        if self.value < 0:
            raise ValueError("Discount value cannot be negative")

    @property
    def has_uses_left(self) -> bool:
        return self.max_uses <= 0 or self.current_uses < self.max_uses
