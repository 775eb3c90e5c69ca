# rentalcore/utils/constants.py

"""
Global constants for statuses, discount types and rejection reasons.
These constants are imported by both models and services.
"""


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Bookings in these states occupy their vehicle
BLOCKING_BOOKING_STATES = frozenset({BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS})

# from-state -> allowed to-states
BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED},
    BookingStatus.IN_PROGRESS: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}


class VehicleStatus:
    AVAILABLE = "available"
    RENTED = "rented"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"
    UNAVAILABLE = "unavailable"


# A vehicle in one of these states is never offered
OUT_OF_SERVICE_STATES = frozenset({VehicleStatus.MAINTENANCE, VehicleStatus.UNAVAILABLE})


class DiscountType:
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DiscountReason:
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    NOT_YET_VALID = "not_yet_valid"
    EXPIRED = "expired"
    EXHAUSTED = "exhausted"
    MIN_DAYS_NOT_MET = "min_days_not_met"
    MIN_AMOUNT_NOT_MET = "min_amount_not_met"
    GROUP_NOT_ELIGIBLE = "group_not_eligible"


DISCOUNT_REASON_MESSAGES = {
    DiscountReason.NOT_FOUND: "Discount code does not exist",
    DiscountReason.INACTIVE: "Discount code is not active",
    DiscountReason.NOT_YET_VALID: "Discount code is not valid yet",
    DiscountReason.EXPIRED: "Discount code has expired",
    DiscountReason.EXHAUSTED: "Discount code has reached its usage limit",
    DiscountReason.MIN_DAYS_NOT_MET: "Rental is too short for this discount code",
    DiscountReason.MIN_AMOUNT_NOT_MET: "Booking amount is below the minimum for this discount code",
    DiscountReason.GROUP_NOT_ELIGIBLE: "Discount code does not apply to this vehicle group",
}

FUEL_LEVELS = ("empty", "1/4", "1/2", "3/4", "full")
DEFAULT_FUEL_LEVEL = "full"

# --- Configuration defaults ---
DEFAULT_TAX_RATE = "21"  # percent
DEFAULT_EXTRA_KM_RATE = "0.15"  # currency per km
DEFAULT_KM_PER_DAY = 150
DEFAULT_CANCELLATION_HOURS = 24
DEFAULT_TIMEZONE = "Europe/Madrid"
DEFAULT_CURRENCY = "EUR"
BOOKING_NUMBER_PREFIX = "RNT"
