"""
Booking lifecycle end to end at the service layer:
create (pending) -> confirm -> pickup (in_progress) -> return (completed), plus cancellation.
"""

import threading
from datetime import date, datetime
from decimal import Decimal

import pytest

from rentalcore.config import PricingSettings
from rentalcore.exceptions import (
    CancellationWindowError,
    DifferentReturnNotAllowedError,
    DiscountRejectedError,
    ExtraQuantityError,
    InvalidChargeError,
    InvalidDateRangeError,
    InvalidExtrasError,
    InvalidStatusTransitionError,
    LocationNotFoundError,
    NotFoundError,
    SettlementAlreadyRecordedError,
    VehicleGroupNotFoundError,
    VehicleUnavailableError,
)
from rentalcore.models.booking import PickupRecord, ReturnRecord
from rentalcore.services.booking_service import BookingService

TODAY = date(2030, 6, 1)


def create(store, start="2030-07-01", end="2030-07-04", **kw):
    args = dict(customer_id="cust-1", group_id="eco", pickup_location_id="A", return_location_id="A",
                pickup_date=start, return_date=end)
    args.update(kw)
    return BookingService.create_booking(today=TODAY, store=store, **args)


def test_create_stores_pending_booking_with_quote(catalog):
    b = create(catalog, extras=[{"extra_id": "gps"}, {"extra_id": "seat", "quantity": 1}])
    assert b["status"] == "pending"
    assert b["vehicle_id"] is None
    assert b["booking_number"] == "RNT-2030-00001"
    assert b["extras_total"] == Decimal("14")
    assert b["total"] == Decimal("162.14")
    assert b["deposit_amount"] == Decimal("300")


def test_booking_numbers_are_sequential(catalog):
    assert create(catalog)["booking_number"] == "RNT-2030-00001"
    assert create(catalog)["booking_number"] == "RNT-2030-00002"


def test_create_rejects_past_pickup(catalog):
    with pytest.raises(InvalidDateRangeError):
        create(catalog, start="2030-05-30", end="2030-06-02")


def test_create_rejects_reversed_dates(catalog):
    with pytest.raises(InvalidDateRangeError):
        create(catalog, start="2030-07-04", end="2030-07-01")


def test_same_date_pickup_and_return_is_one_day(catalog):
    b = create(catalog, start="2030-07-01", end="2030-07-01")
    assert b["days"] == 1
    assert b["base_price"] == Decimal("40")


def test_create_rejects_malformed_extras(catalog):
    with pytest.raises(InvalidExtrasError):
        create(catalog, extras=["gps"])
    with pytest.raises(InvalidExtrasError):
        create(catalog, extras={"gps": 1})


def test_create_rejects_return_location_without_different_returns(catalog):
    with pytest.raises(DifferentReturnNotAllowedError):
        create(catalog, return_location_id="C")


def test_create_adds_different_return_fee(catalog):
    b = create(catalog, return_location_id="B")
    assert b["location_surcharge"] == Decimal("15")


def test_create_rejects_unknown_references(catalog):
    with pytest.raises(VehicleGroupNotFoundError):
        create(catalog, group_id="nope")
    with pytest.raises(LocationNotFoundError):
        create(catalog, pickup_location_id="Z")
    with pytest.raises(NotFoundError):
        create(catalog, extras=[{"extra_id": "jetpack"}])


def test_create_rejects_extra_quantity_over_max(catalog):
    with pytest.raises(ExtraQuantityError):
        create(catalog, extras=[{"extra_id": "seat", "quantity": 3}])


def test_create_rejects_invalid_code_with_reason(catalog):
    catalog.create_discount({"code": "LONG", "type": "percentage", "value": "10", "min_days": 5})
    with pytest.raises(DiscountRejectedError) as exc:
        create(catalog, discount_code="long")
    assert exc.value.reason == "min_days_not_met"
    with pytest.raises(DiscountRejectedError) as exc:
        create(catalog, discount_code="GHOST")
    assert exc.value.reason == "not_found"


def test_quote_reports_rejection_instead_of_failing(catalog):
    q = BookingService.quote("eco", "A", "A", "2030-07-01", "2030-07-04",
                             discount_code="ghost", today=TODAY, store=catalog)
    assert q.discount_rejection == "not_found"
    assert q.total == Decimal("145.20")


def test_confirm_assigns_lowest_mileage_vehicle(catalog):
    b = create(catalog)
    c = BookingService.confirm_booking(b["booking_id"], today=TODAY, store=catalog)
    assert c["status"] == "confirmed"
    assert c["vehicle_id"] == "v2"
    assert c["confirmed_at"]


def test_confirm_respects_requested_vehicle(catalog):
    b = create(catalog, vehicle_id="v1")
    assert BookingService.confirm_booking(b["booking_id"], today=TODAY, store=catalog)["vehicle_id"] == "v1"


def test_confirm_fails_when_sold_out(catalog):
    first = create(catalog)
    second = create(catalog)
    third = create(catalog, start="2030-07-02", end="2030-07-03")
    BookingService.confirm_booking(first["booking_id"], today=TODAY, store=catalog)
    BookingService.confirm_booking(second["booking_id"], today=TODAY, store=catalog)
    with pytest.raises(VehicleUnavailableError):
        BookingService.confirm_booking(third["booking_id"], today=TODAY, store=catalog)
    assert catalog.get_booking(third["booking_id"])["status"] == "pending"


def test_timed_bookings_overlapping_overnight_conflict(catalog):
    catalog.update_vehicle("v1", status="maintenance")
    first = create(catalog, start="2030-07-01T20:00", end="2030-07-02T08:00")
    BookingService.confirm_booking(first["booking_id"], today=TODAY, store=catalog)

    early = create(catalog, start="2030-07-02T06:00", end="2030-07-03T06:00")
    with pytest.raises(VehicleUnavailableError):
        BookingService.confirm_booking(early["booking_id"], today=TODAY, store=catalog)

    after_return = create(catalog, start="2030-07-02T08:00", end="2030-07-03T08:00")
    c = BookingService.confirm_booking(after_return["booking_id"], today=TODAY, store=catalog)
    assert c["vehicle_id"] == "v2"


def test_confirm_twice_is_a_transition_error(catalog):
    b = create(catalog)
    BookingService.confirm_booking(b["booking_id"], today=TODAY, store=catalog)
    with pytest.raises(InvalidStatusTransitionError):
        BookingService.confirm_booking(b["booking_id"], today=TODAY, store=catalog)


def test_confirm_redeems_discount_once(catalog):
    catalog.create_discount({"code": "SUMMER10", "type": "percentage", "value": "10",
                             "min_days": 2, "max_uses": 1})
    b = create(catalog, discount_code="summer10")
    c = BookingService.confirm_booking(b["booking_id"], today=TODAY, store=catalog)
    assert c["discount_code"] == "SUMMER10"
    assert c["total"] == Decimal("130.68")
    assert catalog.get_discount("SUMMER10")["current_uses"] == 1


def test_confirm_fails_when_code_used_up_meanwhile(catalog):
    catalog.create_discount({"code": "ONCE", "type": "fixed", "value": "10", "max_uses": 1})
    a = create(catalog, discount_code="ONCE")
    b = create(catalog, discount_code="ONCE")
    BookingService.confirm_booking(a["booking_id"], today=TODAY, store=catalog)
    with pytest.raises(DiscountRejectedError) as exc:
        BookingService.confirm_booking(b["booking_id"], today=TODAY, store=catalog)
    assert exc.value.reason == "exhausted"
    assert catalog.get_booking(b["booking_id"])["vehicle_id"] is None


def test_concurrent_confirmations_for_last_vehicle(catalog):
    """Two customers racing for the sole remaining vehicle: exactly one wins."""
    catalog.update_vehicle("v1", status="maintenance")
    ids = [create(catalog)["booking_id"] for _ in range(2)]

    barrier = threading.Barrier(2)
    outcomes = {}

    def worker(bid):
        barrier.wait()
        try:
            BookingService.confirm_booking(bid, today=TODAY, store=catalog)
            outcomes[bid] = "ok"
        except VehicleUnavailableError:
            outcomes[bid] = "conflict"

    threads = [threading.Thread(target=worker, args=(bid,)) for bid in ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes.values()) == ["conflict", "ok"]
    confirmed = [catalog.get_booking(bid) for bid in ids if outcomes[bid] == "ok"]
    assert confirmed[0]["vehicle_id"] == "v2"


def confirmed_booking(store, settings=None, **kw):
    b = create(store, settings=settings, **kw)
    return BookingService.confirm_booking(b["booking_id"], today=TODAY, settings=settings, store=store)


def test_full_rental_settles_extra_km(catalog):
    b = confirmed_booking(catalog)
    started = BookingService.start_rental(b["booking_id"], store=catalog)
    assert started["status"] == "in_progress"
    assert started["pickup_mileage"] == 10000
    assert catalog.get_vehicle("v2")["status"] == "rented"

    done = BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10520), store=catalog)
    assert done["status"] == "completed"
    assert done["extra_km"] == 70
    assert done["extra_km_charge"] == Decimal("10.50")
    assert done["original_total"] == Decimal("145.20")
    assert done["final_total"] == Decimal("155.70")

    vehicle = catalog.get_vehicle("v2")
    assert vehicle["status"] == "available"
    assert vehicle["current_mileage"] == 10520


def test_return_moves_vehicle_to_return_location(catalog):
    b = confirmed_booking(catalog, return_location_id="B")
    BookingService.start_rental(b["booking_id"], store=catalog)
    BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10100), store=catalog)
    assert catalog.get_vehicle(b["vehicle_id"])["current_location_id"] == "B"


def test_group_extra_km_price_overrides_configured_rate(catalog):
    catalog.groups["eco"]["extra_km_price"] = "0.25"
    b = confirmed_booking(catalog)
    BookingService.start_rental(b["booking_id"], PickupRecord(mileage=10000), store=catalog)
    done = BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10520), store=catalog)
    assert done["extra_km_charge"] == Decimal("17.50")


def test_extra_km_rate_is_frozen_at_confirmation(catalog):
    b = confirmed_booking(catalog)
    assert b["extra_km_rate"] == Decimal("0.15")
    catalog.groups["eco"]["extra_km_price"] = "0.25"
    BookingService.start_rental(b["booking_id"], PickupRecord(mileage=10000), store=catalog)
    done = BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10520), store=catalog)
    assert done["extra_km_charge"] == Decimal("10.50")


def test_settlement_charges_and_configured_rate(catalog):
    settings = PricingSettings(extra_km_rate=Decimal("0.20"))
    b = confirmed_booking(catalog, settings)
    BookingService.start_rental(b["booking_id"], PickupRecord(mileage=10000, fuel_level="full"), store=catalog)
    ret = ReturnRecord(mileage=10460, fuel_level="1/2", fuel_charge=Decimal("25"),
                       cleaning_charge=Decimal("12.5"), late_return_charge=Decimal("40"))
    done = BookingService.complete_rental(b["booking_id"], ret, settings=settings, store=catalog)
    assert done["extra_km_charge"] == Decimal("2.00")
    assert done["total_additional_charges"] == Decimal("79.50")
    assert done["final_total"] == Decimal("224.70")
    assert done["return_fuel_level"] == "1/2"


def test_settlement_is_idempotent(catalog):
    b = confirmed_booking(catalog)
    BookingService.start_rental(b["booking_id"], store=catalog)
    ret = ReturnRecord(mileage=10520, damage_charge=Decimal("100"))
    first = BookingService.complete_rental(b["booking_id"], ret, store=catalog)
    again = BookingService.complete_rental(b["booking_id"], ret, store=catalog)
    assert again["final_total"] == first["final_total"] == Decimal("255.70")

    with pytest.raises(SettlementAlreadyRecordedError):
        BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10600), store=catalog)


def test_negative_charge_rejected(catalog):
    b = confirmed_booking(catalog)
    BookingService.start_rental(b["booking_id"], store=catalog)
    with pytest.raises(InvalidChargeError):
        BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10100, other_charge=Decimal("-5")),
                                       store=catalog)
    assert catalog.get_booking(b["booking_id"])["status"] == "in_progress"


def test_return_before_pickup_is_transition_error(catalog):
    b = confirmed_booking(catalog)
    with pytest.raises(InvalidStatusTransitionError):
        BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10100), store=catalog)


def test_customer_cancel_outside_window(catalog):
    b = confirmed_booking(catalog)
    c = BookingService.cancel_booking(b["booking_id"], now=datetime(2030, 6, 29, 12, 0),
                                      reason="plans changed", store=catalog)
    assert c["status"] == "cancelled"
    assert c["cancellation_reason"] == "plans changed"


def test_cancelled_booking_frees_vehicle(catalog):
    catalog.update_vehicle("v1", status="maintenance")
    b = confirmed_booking(catalog)
    BookingService.cancel_booking(b["booking_id"], now=datetime(2030, 6, 1), store=catalog)
    assert confirmed_booking(catalog)["vehicle_id"] == "v2"


def test_customer_cannot_cancel_inside_window(catalog):
    b = confirmed_booking(catalog)
    with pytest.raises(CancellationWindowError):
        BookingService.cancel_booking(b["booking_id"], now=datetime(2030, 6, 30, 12, 0), store=catalog)
    staff = BookingService.cancel_booking(b["booking_id"], now=datetime(2030, 6, 30, 12, 0),
                                          is_staff=True, store=catalog)
    assert staff["status"] == "cancelled"


def test_in_progress_booking_cannot_be_cancelled(catalog):
    b = confirmed_booking(catalog)
    BookingService.start_rental(b["booking_id"], store=catalog)
    with pytest.raises(InvalidStatusTransitionError):
        BookingService.cancel_booking(b["booking_id"], now=datetime(2030, 6, 1), is_staff=True, store=catalog)


def test_invoice_reads_persisted_figures(catalog):
    b = confirmed_booking(catalog)
    BookingService.start_rental(b["booking_id"], store=catalog)
    BookingService.complete_rental(b["booking_id"], ReturnRecord(mileage=10520), store=catalog)

    # a later price change must not alter the recorded invoice
    catalog.groups["eco"]["daily_price"] = "99"
    inv = BookingService.invoice(b["booking_id"], store=catalog)
    assert inv["quote"]["total"] == "145.20"
    assert inv["settlement"]["extra_km_charge"] == "10.50"
    assert inv["settlement"]["final_total"] == "155.70"
    assert inv["dates"] == {"start": "2030-07-01", "end": "2030-07-04"}
