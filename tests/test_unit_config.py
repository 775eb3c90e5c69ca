from datetime import date, datetime
from decimal import Decimal

import pytest

from rentalcore.config import DEFAULTS, PricingSettings
from rentalcore.utils.dates import business_today, parse_date, parse_when
from rentalcore.utils.money import money_str, round_money, to_decimal


def test_defaults():
    s = PricingSettings.from_mapping({})
    assert s.tax_rate == Decimal("21")
    assert s.extra_km_rate == Decimal("0.15")
    assert s.default_km_per_day == 150
    assert s.cancellation_hours == 24
    assert s.timezone == DEFAULTS["BUSINESS_TIMEZONE"] == "Europe/Madrid"
    assert s == PricingSettings()


def test_overrides_from_config_strings():
    s = PricingSettings.from_mapping({"TAX_RATE": "10", "EXTRA_KM_RATE": 0.2, "DEFAULT_KM_PER_DAY": "200"})
    assert s.tax_rate == Decimal("10")
    assert s.extra_km_rate == Decimal("0.2")
    assert s.default_km_per_day == 200


def test_env_prefix_overrides(monkeypatch, store):
    from rentalcore import create_app
    monkeypatch.setenv("RENTALCORE_CANCELLATION_HOURS", "48")
    app = create_app({"TESTING": True})
    assert PricingSettings.from_mapping(app.config).cancellation_hours == 48


def test_services_package_exports():
    from rentalcore.services import init
    assert set(init.__all__) == {
        "RateService", "AvailabilityService", "DiscountService",
        "QuoteService", "SettlementService", "BookingService",
    }


def test_money_helpers():
    assert to_decimal(0.15) == Decimal("0.15")
    assert to_decimal(None, Decimal("0")) == 0
    with pytest.raises(ValueError):
        to_decimal("abc")
    with pytest.raises(ValueError):
        to_decimal(True)
    assert round_money(Decimal("0.125")) == Decimal("0.13")
    assert money_str(Decimal("25.2")) == "25.20"
    assert money_str(Decimal("0.158")) == "0.158"


def test_date_parsing():
    assert parse_when("2030-01-10") == date(2030, 1, 10)
    assert parse_when("2030-01-10T09:30") == datetime(2030, 1, 10, 9, 30)
    assert parse_when("2030-01-10T09:30:00Z") == datetime(2030, 1, 10, 9, 30)
    assert parse_date("2030-01-10 18:00") == date(2030, 1, 10)
    with pytest.raises(ValueError):
        parse_when("")
    assert isinstance(business_today(), date)
