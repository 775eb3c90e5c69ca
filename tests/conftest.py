import os
import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
os.environ.setdefault("APP_ENV", "test")

import pytest

from rentalcore.models.store import Store


@pytest.fixture(autouse=True)
def store(monkeypatch):
    """
    Provide a fresh in-memory store and install it as the singleton, so services
    that fall back to Store.instance() and tests that pass `store=` see the SAME object.
    """
    st = Store()
    monkeypatch.setattr(Store, "_inst", st, raising=True)
    yield st


def seed_catalog(store):
    """
    Small catalog used across tests:
    - locations: A (allows different return, fee 30), B (fee 15), C (no different returns)
    - group "eco": 40/day, 150 km/day, deposit 300, two vehicles at A
    - extras: GPS (5 per rental, max 1), child seat (3 per day, max 2)
    """
    store.create_location({"location_id": "A", "name": "Airport",
                           "allows_different_return": True, "different_return_fee": "30"})
    store.create_location({"location_id": "B", "name": "Centre",
                           "allows_different_return": True, "different_return_fee": "15"})
    store.create_location({"location_id": "C", "name": "Village",
                           "allows_different_return": False, "different_return_fee": "50"})
    store.create_group({"group_id": "eco", "name": "Economy", "daily_price": "40",
                        "km_per_day": 150, "deposit_amount": "300"})
    store.create_vehicle({"vehicle_id": "v1", "group_id": "eco", "plate": "1111AAA",
                          "current_location_id": "A", "current_mileage": 20000})
    store.create_vehicle({"vehicle_id": "v2", "group_id": "eco", "plate": "2222AAA",
                          "current_location_id": "A", "current_mileage": 10000})
    store.create_extra({"extra_id": "gps", "name": "GPS", "unit_price": "5",
                        "is_per_rental": True, "max_quantity": 1})
    store.create_extra({"extra_id": "seat", "name": "Child seat", "unit_price": "3",
                        "is_per_rental": False, "max_quantity": 2})
    return store


@pytest.fixture
def catalog(store):
    return seed_catalog(store)


@pytest.fixture
def client(store):
    """Flask test client wired to the per-test store."""
    from rentalcore import create_app
    app = create_app({"TESTING": True})
    with app.test_client() as c:
        yield c
