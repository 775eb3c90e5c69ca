from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Location:
    """Pickup/return office."""
    location_id: str
    name: str = ""
    allows_different_return: bool = False
    different_return_fee: Decimal = Decimal("0")
    is_active: bool = True
