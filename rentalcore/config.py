"""Pricing configuration: Flask config keys and the settings object the services take."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from rentalcore.utils.constants import (
    DEFAULT_CANCELLATION_HOURS,
    DEFAULT_CURRENCY,
    DEFAULT_EXTRA_KM_RATE,
    DEFAULT_KM_PER_DAY,
    DEFAULT_TAX_RATE,
    DEFAULT_TIMEZONE,
)
from rentalcore.utils.money import to_decimal

# Loaded into app.config; each key can be overridden with a RENTALCORE_<KEY> env variable.
DEFAULTS = {
    "TAX_RATE": DEFAULT_TAX_RATE,
    "EXTRA_KM_RATE": DEFAULT_EXTRA_KM_RATE,
    "DEFAULT_KM_PER_DAY": DEFAULT_KM_PER_DAY,
    "CANCELLATION_HOURS": DEFAULT_CANCELLATION_HOURS,
    "BUSINESS_TIMEZONE": DEFAULT_TIMEZONE,
    "CURRENCY": DEFAULT_CURRENCY,
    "DATA_PATH": None,
}


@dataclass(frozen=True)
class PricingSettings:
    tax_rate: Decimal = Decimal(DEFAULT_TAX_RATE)  # percent
    extra_km_rate: Decimal = Decimal(DEFAULT_EXTRA_KM_RATE)
    default_km_per_day: int = DEFAULT_KM_PER_DAY
    cancellation_hours: int = DEFAULT_CANCELLATION_HOURS
    timezone: str = DEFAULT_TIMEZONE
    currency: str = DEFAULT_CURRENCY

    @classmethod
    def from_mapping(cls, config: Mapping) -> "PricingSettings":
        """Build from app.config (or any mapping using the DEFAULTS keys)."""
        get = lambda key: config.get(key, DEFAULTS[key])  # noqa: E731
        return cls(
            tax_rate=to_decimal(get("TAX_RATE")),
            extra_km_rate=to_decimal(get("EXTRA_KM_RATE")),
            default_km_per_day=int(get("DEFAULT_KM_PER_DAY")),
            cancellation_hours=int(get("CANCELLATION_HOURS")),
            timezone=str(get("BUSINESS_TIMEZONE")),
            currency=str(get("CURRENCY")),
        )
