"""Shared service helpers and dict -> model mappers."""

from decimal import Decimal
from typing import Optional

from rentalcore.models.booking import (
    Booking,
    DateRange,
    ExtraLineItem,
    PickupRecord,
    Quote,
    ReturnRecord,
    SettlementAdjustment,
    overlaps,
)
from rentalcore.models.discount import DiscountCode
from rentalcore.models.location import Location
from rentalcore.models.store import Store
from rentalcore.models.vehicle import RateTier, Vehicle, VehicleGroup
from rentalcore.utils.constants import BookingStatus, DEFAULT_FUEL_LEVEL
from rentalcore.utils.dates import parse_optional_date
from rentalcore.utils.money import ZERO, round_money, to_decimal

__all__ = [
    "overlaps",
    "round_money",
    "to_decimal",
    "_store",
    "group_from_dict",
    "vehicle_from_dict",
    "location_from_dict",
    "discount_from_dict",
    "line_item_from_dict",
    "quote_from_record",
    "booking_from_dict",
]


def _store() -> Store:
    """Get the singleton store instance."""
    return Store.instance()


def _opt_int(value) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _opt_decimal(value) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value)


# -------- dict -> rich model mappers --------
def group_from_dict(d: Optional[dict]) -> Optional[VehicleGroup]:
    """Map a stored group dict to a VehicleGroup."""
    if not d:
        return None
    tiers = [
        RateTier(
            min_days=int(t.get("min_days") or 1),
            max_days=_opt_int(t.get("max_days")),
            daily_price=to_decimal(t.get("daily_price")),
            km_per_day=_opt_int(t.get("km_per_day")),
            unlimited_km=bool(t.get("unlimited_km", False)),
        )
        for t in (d.get("rate_tiers") or [])
    ]
    return VehicleGroup(
        group_id=str(d.get("group_id") or d.get("id")),
        name=d.get("name") or "",
        code=d.get("code") or "",
        daily_price=to_decimal(d.get("daily_price"), ZERO),
        km_per_day=_opt_int(d.get("km_per_day")),
        deposit_amount=to_decimal(d.get("deposit_amount"), ZERO),
        extra_km_price=_opt_decimal(d.get("extra_km_price")),
        rate_tiers=tiers,
        is_active=bool(d.get("is_active", True)),
    )


def vehicle_from_dict(d: Optional[dict]) -> Optional[Vehicle]:
    """Map a stored vehicle dict to a Vehicle."""
    if not d:
        return None
    loc = d.get("current_location_id")
    return Vehicle(
        vehicle_id=str(d.get("vehicle_id") or d.get("id")),
        group_id=str(d.get("group_id")),
        plate=d.get("plate") or "",
        brand=d.get("brand") or "",
        model=d.get("model") or "",
        current_location_id=str(loc) if loc is not None else None,
        current_mileage=int(d.get("current_mileage") or 0),
        status=(d.get("status") or "available").lower(),
        is_active=bool(d.get("is_active", True)),
    )


def location_from_dict(d: Optional[dict]) -> Optional[Location]:
    if not d:
        return None
    return Location(
        location_id=str(d.get("location_id") or d.get("id")),
        name=d.get("name") or "",
        allows_different_return=bool(d.get("allows_different_return", False)),
        different_return_fee=to_decimal(d.get("different_return_fee"), ZERO),
        is_active=bool(d.get("is_active", True)),
    )


def discount_from_dict(d: Optional[dict]) -> Optional[DiscountCode]:
    if not d:
        return None
    return DiscountCode(
        code=d.get("code") or "",
        type=(d.get("type") or d.get("discount_type") or "").lower(),
        value=to_decimal(d.get("value", d.get("discount_value"))),
        min_days=_opt_int(d.get("min_days")),
        min_amount=_opt_decimal(d.get("min_amount")),
        max_uses=int(d.get("max_uses") or 0),
        current_uses=int(d.get("current_uses") or 0),
        valid_from=parse_optional_date(d.get("valid_from")),
        valid_until=parse_optional_date(d.get("valid_until")),
        is_active=bool(d.get("is_active", True)),
        vehicle_groups=tuple(str(g) for g in (d.get("vehicle_groups") or ())),
    )


def line_item_from_dict(d: dict) -> ExtraLineItem:
    return ExtraLineItem(
        extra_id=d.get("extra_id"),
        name=d.get("name") or "",
        unit_price=to_decimal(d.get("unit_price")),
        quantity=int(d.get("quantity") or 1),
        is_per_rental=bool(d.get("is_per_rental", False)),
        max_quantity=_opt_int(d.get("max_quantity")),
    )


def quote_from_record(d: dict) -> Optional[Quote]:
    """Rebuild the Quote persisted verbatim on a booking (no recomputation)."""
    if d.get("total") is None:
        return None
    return Quote(
        days=int(d["days"]),
        daily_price=to_decimal(d["daily_price"]),
        km_per_day=_opt_int(d.get("km_per_day")),
        unlimited_km=bool(d.get("unlimited_km", False)),
        extra_km_rate=_opt_decimal(d.get("extra_km_rate")),
        base_price=to_decimal(d["base_price"]),
        extras_total=to_decimal(d["extras_total"]),
        location_surcharge=to_decimal(d["location_surcharge"]),
        discount_code=d.get("discount_code"),
        discount_amount=to_decimal(d["discount_amount"]),
        subtotal=to_decimal(d["subtotal"]),
        tax_rate=to_decimal(d["tax_rate"]),
        tax_amount=to_decimal(d["tax_amount"]),
        total=to_decimal(d["total"]),
        deposit_amount=to_decimal(d.get("deposit_amount"), ZERO),
    )


def _pickup_from_dict(d: dict) -> Optional[PickupRecord]:
    if d.get("pickup_mileage") is None:
        return None
    return PickupRecord(
        mileage=int(d["pickup_mileage"]),
        fuel_level=d.get("pickup_fuel_level") or DEFAULT_FUEL_LEVEL,
        notes=d.get("pickup_notes") or "",
    )


def _return_from_dict(d: dict) -> Optional[ReturnRecord]:
    if d.get("return_mileage") is None:
        return None
    return ReturnRecord(
        mileage=int(d["return_mileage"]),
        fuel_level=d.get("return_fuel_level") or DEFAULT_FUEL_LEVEL,
        fuel_charge=to_decimal(d.get("fuel_charge"), ZERO),
        cleaning_charge=to_decimal(d.get("cleaning_charge"), ZERO),
        damage_charge=to_decimal(d.get("damage_charge"), ZERO),
        late_return_charge=to_decimal(d.get("late_return_charge"), ZERO),
        other_charge=to_decimal(d.get("other_charge"), ZERO),
        notes=d.get("return_notes") or "",
    )


def _settlement_from_dict(d: dict) -> Optional[SettlementAdjustment]:
    if d.get("final_total") is None:
        return None
    return SettlementAdjustment(
        extra_km=int(d.get("extra_km") or 0),
        extra_km_charge=to_decimal(d.get("extra_km_charge"), ZERO),
        fuel_charge=to_decimal(d.get("fuel_charge"), ZERO),
        cleaning_charge=to_decimal(d.get("cleaning_charge"), ZERO),
        damage_charge=to_decimal(d.get("damage_charge"), ZERO),
        late_return_charge=to_decimal(d.get("late_return_charge"), ZERO),
        other_charge=to_decimal(d.get("other_charge"), ZERO),
        original_total=to_decimal(d["original_total"]),
        final_total=to_decimal(d["final_total"]),
    )


def booking_from_dict(d: Optional[dict]) -> Optional[Booking]:
    """Map a stored booking dict to a Booking with its persisted quote/settlement."""
    if not d:
        return None
    return Booking(
        booking_id=str(d.get("booking_id")),
        booking_number=d.get("booking_number") or "",
        customer_id=d.get("customer_id"),
        group_id=str(d.get("group_id")),
        vehicle_id=d.get("vehicle_id"),
        pickup_location_id=str(d.get("pickup_location_id")),
        return_location_id=str(d.get("return_location_id")),
        date_range=DateRange.parse(d.get("pickup_date"), d.get("return_date")),
        extras=[line_item_from_dict(x) for x in (d.get("extras") or [])],
        discount_code=d.get("discount_code"),
        status=d.get("status") or BookingStatus.PENDING,
        quote=quote_from_record(d),
        pickup=_pickup_from_dict(d),
        return_record=_return_from_dict(d),
        settlement=_settlement_from_dict(d),
    )
