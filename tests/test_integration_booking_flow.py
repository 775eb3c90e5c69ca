"""
HTTP flow: search -> quote -> book -> confirm -> pickup -> return -> invoice,
plus the error payloads each rejection produces.
"""

from datetime import date, timedelta

import pytest

START = date.today() + timedelta(days=60)
END = START + timedelta(days=3)


def _assert_status(resp, code: int, step: str):
    """Helper: assert response code, showing the body on failure."""
    assert resp.status_code == code, f"{step} failed: {resp.status_code}\n{resp.data[:300]}"


def _booking_payload(**kw):
    data = {
        "customer_id": "cust-1",
        "group_id": "eco",
        "pickup_location_id": "A",
        "return_location_id": "A",
        "pickup_date": START.isoformat(),
        "return_date": END.isoformat(),
    }
    data.update(kw)
    return data


@pytest.fixture
def api(client, catalog):
    return client


def test_full_flow(api, store):
    r = api.get("/api/availability", query_string={
        "pickup_date": START.isoformat(), "return_date": END.isoformat(), "pickup_location": "A",
    })
    _assert_status(r, 200, "search")
    results = r.get_json()["results"]
    assert [row["group"]["group_id"] for row in results] == ["eco"]
    assert results[0]["available_count"] == 2

    r = api.post("/api/quote", json=_booking_payload(extras=[{"extra_id": "gps"}, {"extra_id": "seat"}]))
    _assert_status(r, 200, "quote")
    assert r.get_json()["total"] == "162.14"

    r = api.post("/api/bookings", json=_booking_payload())
    _assert_status(r, 201, "create")
    bid = r.get_json()["booking_id"]
    assert r.get_json()["status"] == "pending"

    r = api.post(f"/api/bookings/{bid}/confirm")
    _assert_status(r, 200, "confirm")
    assert r.get_json()["vehicle_id"] == "v2"

    r = api.post(f"/staff/bookings/{bid}/pickup", json={"mileage": 10000, "fuel_level": "FULL"})
    _assert_status(r, 200, "pickup")
    assert r.get_json()["status"] == "in_progress"

    r = api.post(f"/staff/bookings/{bid}/return", json={"mileage": 10520, "cleaning_charge": "20"})
    _assert_status(r, 200, "return")
    assert r.get_json()["status"] == "completed"

    r = api.get(f"/api/bookings/{bid}/invoice")
    _assert_status(r, 200, "invoice")
    inv = r.get_json()
    assert inv["quote"]["total"] == "145.20"
    assert inv["settlement"]["extra_km"] == 70
    assert inv["settlement"]["final_total"] == "175.70"
    assert store.get_vehicle("v2")["current_mileage"] == 10520


def test_group_availability_lists_vehicles(api):
    r = api.get("/api/availability", query_string={
        "pickup_date": START.isoformat(), "return_date": END.isoformat(),
        "pickup_location": "A", "group": "eco",
    })
    _assert_status(r, 200, "group search")
    assert [v["vehicle_id"] for v in r.get_json()["vehicles"]] == ["v2", "v1"]


def test_availability_requires_pickup_location(api):
    r = api.get("/api/availability", query_string={
        "pickup_date": START.isoformat(), "return_date": END.isoformat(),
    })
    _assert_status(r, 400, "search without location")
    assert r.get_json()["error"] == "missing_parameter"


def test_same_day_booking_is_one_day(api):
    r = api.post("/api/bookings", json=_booking_payload(return_date=START.isoformat()))
    _assert_status(r, 201, "same-day create")
    assert r.get_json()["days"] == 1


def test_quote_with_invalid_code_reports_reason(api):
    r = api.post("/api/quote", json=_booking_payload(discount_code="NOPE"))
    _assert_status(r, 200, "quote")
    assert r.get_json()["discount_rejection"] == "not_found"


@pytest.mark.parametrize("payload, code, reason", [
    ({"return_date": (START - timedelta(days=1)).isoformat()}, 400, "invalid_date_range"),
    ({"return_location_id": "C"}, 400, "different_return_not_allowed"),
    ({"discount_code": "NOPE"}, 400, "not_found"),
    ({"extras": [{"extra_id": "seat", "quantity": 5}]}, 400, "extra_quantity_exceeded"),
    ({"extras": {"gps": 1}}, 400, "invalid_extras"),
    ({"extras": ["gps"]}, 400, "invalid_extras"),
    ({"group_id": "ghost"}, 404, "not_found"),
])
def test_create_rejections_carry_reason(api, payload, code, reason):
    r = api.post("/api/bookings", json=_booking_payload(**payload))
    _assert_status(r, code, "create")
    body = r.get_json()
    assert body["error"] == reason
    assert body["message"]


def test_sold_out_confirm_is_conflict(api, store):
    store.update_vehicle("v1", status="maintenance")
    a = api.post("/api/bookings", json=_booking_payload()).get_json()["booking_id"]
    b = api.post("/api/bookings", json=_booking_payload()).get_json()["booking_id"]
    _assert_status(api.post(f"/api/bookings/{a}/confirm"), 200, "first confirm")
    r = api.post(f"/api/bookings/{b}/confirm")
    _assert_status(r, 409, "second confirm")
    assert r.get_json()["error"] == "vehicle_unavailable"


def test_unknown_booking_is_404(api):
    r = api.post("/api/bookings/nope/confirm")
    _assert_status(r, 404, "confirm unknown")


def test_customer_and_staff_cancel(api):
    bid = api.post("/api/bookings", json=_booking_payload()).get_json()["booking_id"]
    r = api.post(f"/api/bookings/{bid}/cancel", json={"reason": "changed plans"})
    _assert_status(r, 200, "customer cancel")
    assert r.get_json()["status"] == "cancelled"

    r = api.post(f"/staff/bookings/{bid}/cancel")
    _assert_status(r, 409, "cancel twice")
    assert r.get_json()["error"] == "invalid_status_transition"


def test_return_with_negative_charge_rejected(api):
    bid = api.post("/api/bookings", json=_booking_payload()).get_json()["booking_id"]
    api.post(f"/api/bookings/{bid}/confirm")
    api.post(f"/staff/bookings/{bid}/pickup")
    r = api.post(f"/staff/bookings/{bid}/return", json={"mileage": 10100, "damage_charge": "-10"})
    _assert_status(r, 400, "negative charge")
    assert r.get_json()["error"] == "invalid_charge"


def test_tax_rate_comes_from_config(store, catalog):
    from rentalcore import create_app
    app = create_app({"TESTING": True, "TAX_RATE": "10"})
    with app.test_client() as c:
        r = c.post("/api/quote", json=_booking_payload())
    assert r.get_json()["total"] == "132.00"
