"""Booking lifecycle: create, confirm, pick up, return, cancel."""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from rentalcore.config import PricingSettings
from rentalcore.exceptions import (
    BookingNotFoundError,
    CancellationWindowError,
    DiscountRejectedError,
    InvalidDateRangeError,
    InvalidExtrasError,
    InvalidStatusTransitionError,
    LocationNotFoundError,
    NotFoundError,
    SettlementAlreadyRecordedError,
    VehicleGroupNotFoundError,
    VehicleUnavailableError,
)
from rentalcore.models.booking import DateRange, ExtraLineItem, PickupRecord, Quote, ReturnRecord
from rentalcore.models.discount import normalize_code
from rentalcore.services.availability_service import AvailabilityService
from rentalcore.services.common import (
    _store,
    booking_from_dict,
    group_from_dict,
    location_from_dict,
    to_decimal,
)
from rentalcore.services.discount_service import DiscountService
from rentalcore.services.quote_service import QuoteDraft, QuoteService
from rentalcore.services.settlement_service import SettlementService
from rentalcore.utils.constants import (
    BOOKING_TRANSITIONS,
    BookingStatus,
    DISCOUNT_REASON_MESSAGES,
    VehicleStatus,
)

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _check_transition(current: str, target: str):
    if target not in BOOKING_TRANSITIONS.get(current, set()):
        raise InvalidStatusTransitionError(f"Error: cannot move a {current} booking to {target}")


class BookingService:
    """
    Booking workflow around the pricing engine. Every method takes an optional
    `store` (tests inject one) and `settings` (defaults: 21% tax, 0.15/km, ...).
    """

    # ---------- lookups ----------
    @staticmethod
    def _booking(st, booking_id: str) -> dict:
        b = st.get_booking(booking_id)
        if b is None:
            raise BookingNotFoundError(f"Error: booking '{booking_id}' not found")
        return b

    @staticmethod
    def _group(st, group_id: str):
        g = group_from_dict(st.get_group(group_id))
        if g is None:
            raise VehicleGroupNotFoundError(f"Error: vehicle group '{group_id}' not found")
        return g

    @staticmethod
    def _location(st, location_id: str):
        loc = location_from_dict(st.get_location(location_id))
        if loc is None or not loc.is_active:
            raise LocationNotFoundError(f"Error: location '{location_id}' not found")
        return loc

    @staticmethod
    def line_items(selections: Iterable[dict], store=None) -> list[ExtraLineItem]:
        """
        Resolve [{"extra_id": ..., "quantity": n}, ...] against the extras catalog,
        freezing the current price onto the booking.
        """
        st = store or _store()
        if selections and not isinstance(selections, (list, tuple)):
            raise InvalidExtrasError()
        items = []
        for sel in selections or ():
            if not isinstance(sel, dict):
                raise InvalidExtrasError()
            extra = st.get_extra(sel.get("extra_id"))
            if extra is None or not extra.get("is_active", True):
                raise NotFoundError(f"Error: extra '{sel.get('extra_id')}' not found")
            try:
                quantity = int(sel.get("quantity", 1))
            except (TypeError, ValueError):
                quantity = 0
            max_q = extra.get("max_quantity")
            items.append(ExtraLineItem(
                extra_id=extra["extra_id"],
                name=extra.get("name") or "",
                unit_price=to_decimal(extra.get("unit_price")),
                quantity=quantity,
                is_per_rental=bool(extra.get("is_per_rental", False)),
                max_quantity=int(max_q) if max_q is not None else None,
            ))
        return items

    @staticmethod
    def _draft(st, group_id, pickup_location_id, return_location_id, date_range: DateRange,
               extras, discount_code: Optional[str], today: Optional[date]) -> QuoteDraft:
        code = normalize_code(discount_code) or None
        return QuoteDraft(
            group=BookingService._group(st, group_id),
            date_range=date_range,
            pickup_location=BookingService._location(st, pickup_location_id),
            return_location=BookingService._location(st, return_location_id),
            extras=tuple(extras),
            discount_code=code,
            discount=DiscountService.lookup(code, st) if code else None,
            today=today,
        )

    @staticmethod
    def _raise_discount_rejection(quote: Quote):
        if quote.discount_rejection:
            reason = quote.discount_rejection
            raise DiscountRejectedError(reason, f"Error: {DISCOUNT_REASON_MESSAGES.get(reason, reason)}")

    # ---------- quote ----------
    @staticmethod
    def quote(group_id: str, pickup_location_id: str, return_location_id: str, pickup_date, return_date, *,
              extras: Iterable[dict] = (), discount_code: Optional[str] = None, today: Optional[date] = None,
              settings: Optional[PricingSettings] = None, store=None) -> Quote:
        """Price a prospective booking. An invalid code yields a quote without discount."""
        st = store or _store()
        settings = settings or PricingSettings()
        date_range = DateRange.parse(pickup_date, return_date)
        draft = BookingService._draft(
            st, group_id, pickup_location_id, return_location_id, date_range,
            BookingService.line_items(extras, st), discount_code, today,
        )
        return QuoteService.compute_quote(draft, settings.tax_rate, settings.default_km_per_day, settings.extra_km_rate)

    # ---------- create ----------
    @staticmethod
    def create_booking(customer_id: str, group_id: str, pickup_location_id: str, return_location_id: str,
                       pickup_date, return_date, *, today: date, extras: Iterable[dict] = (),
                       discount_code: Optional[str] = None, vehicle_id: Optional[str] = None,
                       notes: str = "", settings: Optional[PricingSettings] = None, store=None) -> dict:
        """
        Validate and store a `pending` booking with its quote.
        Rejects (with a specific reason): dates not in order or in the past, a return
        location that does not take vehicles from elsewhere, extra quantities over
        their maximum, and a discount code failing any of its rules.
        """
        st = store or _store()
        settings = settings or PricingSettings()
        date_range = DateRange.parse(pickup_date, return_date)
        if date_range.start_day < today:
            raise InvalidDateRangeError("Error: pickup date cannot be in the past")

        draft = BookingService._draft(
            st, group_id, pickup_location_id, return_location_id, date_range,
            BookingService.line_items(extras, st), discount_code, today,
        )
        QuoteService.validate_return(draft.pickup_location, draft.return_location)
        quote = QuoteService.compute_quote(draft, settings.tax_rate, settings.default_km_per_day, settings.extra_km_rate)
        BookingService._raise_discount_rejection(quote)

        record = {
            "booking_number": st.next_booking_number(today.year),
            "customer_id": customer_id,
            "group_id": draft.group.group_id,
            "vehicle_id": str(vehicle_id) if vehicle_id else None,
            "pickup_location_id": draft.pickup_location.location_id,
            "return_location_id": draft.return_location.location_id,
            "pickup_date": date_range.start.isoformat(),
            "return_date": date_range.end.isoformat(),
            "extras": [x.to_dict() for x in draft.extras],
            "notes": notes,
            "status": BookingStatus.PENDING,
            "created_at": _utcnow_iso(),
        }
        record.update(quote.to_record())
        record["discount_code"] = draft.discount_code
        bid = st.create_booking(record)
        logger.info("Booking %s created (%s, total %s)", record["booking_number"], bid, quote.total)
        return st.get_booking(bid)

    # ---------- confirm ----------
    @staticmethod
    def confirm_booking(booking_id: str, *, today: date, settings: Optional[PricingSettings] = None,
                        store=None) -> dict:
        """
        Re-check availability, assign a vehicle, redeem the discount and persist the
        quote, all under one store transaction. Two confirmations racing for the last
        vehicle serialize here: the second sees it busy and gets VehicleUnavailableError,
        after which the caller must search again.
        """
        st = store or _store()
        settings = settings or PricingSettings()

        with st.transaction():
            b = BookingService._booking(st, booking_id)
            _check_transition(b.get("status"), BookingStatus.CONFIRMED)
            booking = booking_from_dict(b)

            draft = BookingService._draft(
                st, booking.group_id, booking.pickup_location_id, booking.return_location_id,
                booking.date_range, booking.extras, booking.discount_code, today,
            )
            QuoteService.validate_return(draft.pickup_location, draft.return_location)
            quote = QuoteService.compute_quote(draft, settings.tax_rate, settings.default_km_per_day, settings.extra_km_rate)
            BookingService._raise_discount_rejection(quote)

            free = AvailabilityService.find_available(
                draft.group, booking.pickup_location_id, booking.date_range,
                store=st, exclude_booking_id=booking.booking_id,
            )
            if booking.vehicle_id:
                chosen = next((v for v in free if v.vehicle_id == str(booking.vehicle_id)), None)
            else:
                chosen = free[0] if free else None
            if chosen is None:
                logger.info("Booking %s lost its vehicle before confirmation", booking.booking_number)
                raise VehicleUnavailableError(
                    "Error: no vehicle is available anymore for these dates; please search again"
                )

            if quote.discount_code:
                DiscountService.redeem(quote.discount_code, st)

            updates = quote.to_record()
            updates.update({
                "status": BookingStatus.CONFIRMED,
                "vehicle_id": chosen.vehicle_id,
                "confirmed_at": _utcnow_iso(),
            })
            st.update_booking(booking.booking_id, updates)

        logger.info("Booking %s confirmed on vehicle %s", booking.booking_number, chosen.vehicle_id)
        return st.get_booking(booking.booking_id)

    # ---------- pickup ----------
    @staticmethod
    def start_rental(booking_id: str, pickup: Optional[PickupRecord] = None, store=None) -> dict:
        """Hand the vehicle over: confirmed -> in_progress. Mileage defaults to the vehicle's odometer."""
        st = store or _store()
        with st.transaction():
            b = BookingService._booking(st, booking_id)
            _check_transition(b.get("status"), BookingStatus.IN_PROGRESS)
            vehicle = st.get_vehicle(b.get("vehicle_id")) or {}
            if pickup is None:
                pickup = PickupRecord(mileage=int(vehicle.get("current_mileage") or 0))

            st.update_booking(b["booking_id"], {
                "status": BookingStatus.IN_PROGRESS,
                "pickup_mileage": pickup.mileage,
                "pickup_fuel_level": pickup.fuel_level,
                "pickup_notes": pickup.notes,
                "pickup_completed_at": _utcnow_iso(),
            })
            if vehicle:
                st.update_vehicle(b["vehicle_id"], status=VehicleStatus.RENTED)
        return st.get_booking(booking_id)

    # ---------- return ----------
    @staticmethod
    def complete_rental(booking_id: str, ret: ReturnRecord, *, settings: Optional[PricingSettings] = None,
                        store=None) -> dict:
        """
        Settle the booking: in_progress -> completed. Running it again with the same
        return data returns the recorded settlement; different data is refused
        (amending a settlement is a separate operation).
        """
        st = store or _store()
        settings = settings or PricingSettings()

        with st.transaction():
            b = BookingService._booking(st, booking_id)
            booking = booking_from_dict(b)
            # the rate frozen on the confirmed quote wins; config only covers older records
            rate = settings.extra_km_rate

            if booking.status == BookingStatus.COMPLETED:
                again = SettlementService.compute_settlement(
                    booking, booking.pickup, ret, extra_km_rate=rate,
                    default_km_per_day=settings.default_km_per_day,
                )
                if again == booking.settlement and ret.mileage == booking.return_record.mileage:
                    return b
                raise SettlementAlreadyRecordedError()

            _check_transition(booking.status, BookingStatus.COMPLETED)
            adj = SettlementService.compute_settlement(
                booking, booking.pickup, ret, extra_km_rate=rate,
                default_km_per_day=settings.default_km_per_day,
            )

            updates = {
                "status": BookingStatus.COMPLETED,
                "return_mileage": ret.mileage,
                "return_fuel_level": ret.fuel_level,
                "return_notes": ret.notes,
                "return_completed_at": _utcnow_iso(),
                "total_additional_charges": adj.total_adjustments,
            }
            updates.update(adj.to_record())
            st.update_booking(booking.booking_id, updates)

            vehicle = st.get_vehicle(booking.vehicle_id)
            if vehicle is not None:
                st.update_vehicle(
                    booking.vehicle_id,
                    status=VehicleStatus.AVAILABLE,
                    current_mileage=max(int(vehicle.get("current_mileage") or 0), ret.mileage),
                    current_location_id=booking.return_location_id,
                )

        logger.info("Booking %s settled: %s -> %s", booking.booking_number, adj.original_total, adj.final_total)
        return st.get_booking(booking.booking_id)

    # ---------- cancel ----------
    @staticmethod
    def cancel_booking(booking_id: str, *, now: datetime, reason: str = "", is_staff: bool = False,
                       settings: Optional[PricingSettings] = None, store=None) -> dict:
        """
        Cancel a pending/confirmed booking. Customers cannot cancel within
        `cancellation_hours` of pickup; staff always can.
        """
        st = store or _store()
        settings = settings or PricingSettings()

        with st.transaction():
            b = BookingService._booking(st, booking_id)
            _check_transition(b.get("status"), BookingStatus.CANCELLED)

            if not is_staff:
                start = booking_from_dict(b).date_range.start
                pickup_at = start if isinstance(start, datetime) else datetime.combine(start, datetime.min.time())
                if now > pickup_at - timedelta(hours=settings.cancellation_hours):
                    raise CancellationWindowError(
                        f"Error: bookings can only be cancelled up to {settings.cancellation_hours}h before pickup"
                    )

            st.update_booking(b["booking_id"], {
                "status": BookingStatus.CANCELLED,
                "cancellation_reason": reason,
                "cancelled_at": _utcnow_iso(),
            })
        logger.info("Booking %s cancelled", b.get("booking_number"))
        return st.get_booking(booking_id)

    @staticmethod
    def invoice(booking_id: str, store=None) -> dict:
        """Flat invoice record: persisted quote plus settlement, no recomputation."""
        st = store or _store()
        booking = booking_from_dict(BookingService._booking(st, booking_id))
        return {
            "booking_id": booking.booking_id,
            "booking_number": booking.booking_number,
            "status": booking.status,
            "dates": booking.date_range.to_dict(),
            "quote": booking.quote.as_dict() if booking.quote else None,
            "settlement": booking.settlement.as_dict() if booking.settlement else None,
        }
