from flask import Blueprint, current_app, jsonify, request

from ..config import PricingSettings
from ..exceptions import InvalidChargeError
from ..models.booking import PickupRecord, ReturnRecord
from ..services.booking_service import BookingService
from ..utils.constants import DEFAULT_FUEL_LEVEL, FUEL_LEVELS
from ..utils.dates import business_now
from ..utils.money import ZERO, to_decimal

bp = Blueprint("staff", __name__, url_prefix="/staff")


def _settings() -> PricingSettings:
    return PricingSettings.from_mapping(current_app.config)


def _fuel(value) -> str:
    """Unknown or missing fuel readings default to a full tank."""
    value = (value or "").strip().lower()
    return value if value in FUEL_LEVELS else DEFAULT_FUEL_LEVEL


def _mileage(value) -> int:
    try:
        km = int(value)
    except (TypeError, ValueError):
        raise InvalidChargeError("Error: mileage must be a whole number") from None
    if km < 0:
        raise InvalidChargeError("Error: mileage cannot be negative")
    return km


def _amount(data: dict, key: str):
    try:
        return to_decimal(data.get(key), ZERO)
    except ValueError:
        raise InvalidChargeError(f"Error: {key.replace('_', ' ')} is not a valid amount") from None


@bp.post("/bookings/<bid>/pickup")
def pickup(bid):
    """Vehicle handed to the customer: odometer and fuel at pickup."""
    data = request.get_json(silent=True) or {}
    record = None
    if data.get("mileage") is not None:
        record = PickupRecord(
            mileage=_mileage(data.get("mileage")),
            fuel_level=_fuel(data.get("fuel_level")),
            notes=data.get("notes") or "",
        )
    return jsonify(BookingService.start_rental(bid, record))


@bp.post("/bookings/<bid>/return")
def return_vehicle(bid):
    """Vehicle back: odometer, fuel and staff charges; responds with the settled booking."""
    data = request.get_json(silent=True) or {}
    record = ReturnRecord(
        mileage=_mileage(data.get("mileage")),
        fuel_level=_fuel(data.get("fuel_level")),
        fuel_charge=_amount(data, "fuel_charge"),
        cleaning_charge=_amount(data, "cleaning_charge"),
        damage_charge=_amount(data, "damage_charge"),
        late_return_charge=_amount(data, "late_return_charge"),
        other_charge=_amount(data, "other_charge"),
        notes=data.get("notes") or "",
    )
    return jsonify(BookingService.complete_rental(bid, record, settings=_settings()))


@bp.post("/bookings/<bid>/cancel")
def cancel(bid):
    """Staff cancellation ignores the customer cancellation window."""
    settings = _settings()
    booking = BookingService.cancel_booking(
        bid,
        now=business_now(settings.timezone),
        reason=(request.get_json(silent=True) or {}).get("reason") or "",
        is_staff=True,
        settings=settings,
    )
    return jsonify(booking)
