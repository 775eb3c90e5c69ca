"""Date parsing and business-timezone helpers."""
from datetime import datetime, date
from typing import Optional

import pytz

from rentalcore.utils.constants import DEFAULT_TIMEZONE


def parse_when(value):
    """
    Coerce a date-like value to a `date` or a naive `datetime`.
    Supports:
      - date / datetime objects (aware datetimes are made naive, keeping wall time)
      - 'YYYY-MM-DD'
      - 'YYYY-MM-DD HH:MM[:SS]' and 'YYYY-MM-DDTHH:MM[:SS]'
    Raises ValueError on anything else.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Unsupported date: {value!r}")

    s = value.strip()
    if not s:
        raise ValueError("Empty date")
    s_norm = s.replace("T", " ")
    if ":" not in s_norm:
        return date.fromisoformat(s_norm)
    if s_norm.endswith("Z"):
        s_norm = s_norm[:-1] + "+00:00"
    dt = datetime.fromisoformat(s_norm)
    return dt.replace(tzinfo=None) if dt.tzinfo else dt


def parse_date(value) -> date:
    """Like parse_when, but always returns a calendar date."""
    when = parse_when(value)
    return when.date() if isinstance(when, datetime) else when


def parse_optional_date(value) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_date(value)


def business_now(tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Current wall-clock time at the rental company, as a naive datetime."""
    tz = pytz.timezone(tz_name)
    return datetime.now(pytz.utc).astimezone(tz).replace(tzinfo=None)


def business_today(tz_name: str = DEFAULT_TIMEZONE) -> date:
    """Calendar date at the rental company; this is the `today` handed to discount checks."""
    return business_now(tz_name).date()
