from dataclasses import asdict

from flask import Blueprint, current_app, jsonify, request

from ..config import PricingSettings
from ..exceptions import MissingParameterError, VehicleGroupNotFoundError
from ..models.booking import DateRange
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingService
from ..services.common import _store, group_from_dict
from ..utils.dates import business_now, business_today

bp = Blueprint("bookings", __name__, url_prefix="/api")


def _settings() -> PricingSettings:
    return PricingSettings.from_mapping(current_app.config)


def _payload() -> dict:
    return request.get_json(silent=True) or {}


@bp.get("/availability")
def availability():
    """
    Storefront search. With ?group=<id> list the free vehicles of that group,
    otherwise one row per group with its price, cheapest first.
    """
    args = request.args
    settings = _settings()
    date_range = DateRange.parse(args.get("pickup_date"), args.get("return_date"))
    location = (args.get("pickup_location") or "").strip()
    if not location:
        raise MissingParameterError("Error: pickup_location is required")
    group_id = args.get("group")

    if group_id:
        group = group_from_dict(_store().get_group(group_id))
        if group is None:
            raise VehicleGroupNotFoundError()
        vehicles = AvailabilityService.find_available(group, location, date_range)
        return jsonify({"group_id": group.group_id, "days": date_range.days,
                        "vehicles": [asdict(v) for v in vehicles]})

    rows = AvailabilityService.search(location, date_range, default_km_per_day=settings.default_km_per_day)
    return jsonify({
        "days": date_range.days,
        "results": [
            {
                "group": asdict(r["group"]),
                "available_count": r["available_count"],
                "daily_price": r["daily_price"],
                "km_per_day": r["km_per_day"],
                "unlimited_km": r["unlimited_km"],
                "base_price": r["base_price"],
                "deposit_amount": r["deposit_amount"],
            }
            for r in rows
        ],
    })


@bp.post("/quote")
def quote():
    """Price breakdown shown before payment; an invalid code is reported, not fatal."""
    data = _payload()
    settings = _settings()
    q = BookingService.quote(
        data.get("group_id"),
        data.get("pickup_location_id"),
        data.get("return_location_id") or data.get("pickup_location_id"),
        data.get("pickup_date"),
        data.get("return_date"),
        extras=data.get("extras") or [],
        discount_code=data.get("discount_code"),
        today=business_today(settings.timezone),
        settings=settings,
    )
    return jsonify(q.as_dict())


@bp.post("/bookings")
def create_booking():
    data = _payload()
    settings = _settings()
    booking = BookingService.create_booking(
        customer_id=data.get("customer_id"),
        group_id=data.get("group_id"),
        pickup_location_id=data.get("pickup_location_id"),
        return_location_id=data.get("return_location_id") or data.get("pickup_location_id"),
        pickup_date=data.get("pickup_date"),
        return_date=data.get("return_date"),
        extras=data.get("extras") or [],
        discount_code=data.get("discount_code"),
        notes=data.get("notes") or "",
        today=business_today(settings.timezone),
        settings=settings,
    )
    return jsonify(booking), 201


@bp.post("/bookings/<bid>/confirm")
def confirm_booking(bid):
    settings = _settings()
    booking = BookingService.confirm_booking(bid, today=business_today(settings.timezone), settings=settings)
    return jsonify(booking)


@bp.post("/bookings/<bid>/cancel")
def cancel_booking(bid):
    """Customer cancellation, subject to the cancellation window."""
    settings = _settings()
    booking = BookingService.cancel_booking(
        bid,
        now=business_now(settings.timezone),
        reason=_payload().get("reason") or "",
        settings=settings,
    )
    return jsonify(booking)


@bp.get("/bookings/<bid>/invoice")
def invoice(bid):
    return jsonify(BookingService.invoice(bid))
