"""
Custom exception classes for the rental booking engine.

Every exception carries a stable ``reason`` code next to its human-readable
message, so controllers can tell the customer exactly what to fix instead of
rendering a blanket "invalid booking".
"""


class RentalError(Exception):
    """Base class for all booking engine errors."""

    reason = "rental_error"

    def __init__(self, message: str = "Error: booking could not be processed", reason: str = None) -> None:
        self.message = message
        if reason is not None:
            self.reason = reason
        super().__init__(self.message)

    def __str__(self) -> str:  # pragma: no cover
        return self.message


# ---------- validation ----------
class ValidationError(RentalError):
    """Input rejected before any computation takes place."""

    reason = "invalid_input"


class InvalidDateRangeError(ValidationError):
    """Raised when the return date is before the pickup date."""

    reason = "invalid_date_range"

    def __init__(self, message: str = "Error: return date cannot be before pickup date") -> None:
        super().__init__(message)


class DifferentReturnNotAllowedError(ValidationError):
    """Raised when the return location does not accept vehicles picked up elsewhere."""

    reason = "different_return_not_allowed"

    def __init__(self, message: str = "Error: return location does not accept different-location returns") -> None:
        super().__init__(message)


class DiscountRejectedError(ValidationError):
    """Raised when a discount code fails one of its rules; ``reason`` names the rule."""

    def __init__(self, reason: str, message: str = "Error: discount code rejected") -> None:
        super().__init__(message, reason=reason)


class ExtraQuantityError(ValidationError):
    """Raised when an extra is requested with a quantity outside 1..max_quantity."""

    reason = "extra_quantity_exceeded"

    def __init__(self, message: str = "Error: extra quantity exceeds the allowed maximum") -> None:
        super().__init__(message)


class InvalidChargeError(ValidationError):
    """Raised when a staff-entered settlement charge is negative or not a number."""

    reason = "invalid_charge"

    def __init__(self, message: str = "Error: settlement charges must be non-negative amounts") -> None:
        super().__init__(message)


class CancellationWindowError(ValidationError):
    """Raised when a customer tries to cancel too close to pickup."""

    reason = "cancellation_window_passed"

    def __init__(self, message: str = "Error: booking can no longer be cancelled online") -> None:
        super().__init__(message)


class MissingParameterError(ValidationError):
    """Raised when a required request parameter is absent."""

    reason = "missing_parameter"

    def __init__(self, message: str = "Error: a required parameter is missing") -> None:
        super().__init__(message)


class InvalidExtrasError(ValidationError):
    """Raised when the extras selection is not a list of {extra_id, quantity} entries."""

    reason = "invalid_extras"

    def __init__(self, message: str = "Error: extras must be a list of {extra_id, quantity} entries") -> None:
        super().__init__(message)


# ---------- lookup ----------
class NotFoundError(RentalError):
    reason = "not_found"


class BookingNotFoundError(NotFoundError):
    """Raised when a booking ID cannot be found in the system."""

    def __init__(self, message: str = "Error: booking not found") -> None:
        super().__init__(message)


class VehicleGroupNotFoundError(NotFoundError):
    """Raised when a vehicle group ID cannot be found in the catalog."""

    def __init__(self, message: str = "Error: vehicle group not found") -> None:
        super().__init__(message)


class LocationNotFoundError(NotFoundError):
    """Raised when a location ID cannot be found in the system."""

    def __init__(self, message: str = "Error: location not found") -> None:
        super().__init__(message)


# ---------- conflict / state ----------
class VehicleUnavailableError(RentalError):
    """Raised when no vehicle is free for the requested dates at confirmation time."""

    reason = "vehicle_unavailable"

    def __init__(self, message: str = "Error: vehicle is not available") -> None:
        super().__init__(message)


class InvalidStatusTransitionError(RentalError):
    """Raised when a booking is moved to a status its lifecycle does not allow."""

    reason = "invalid_status_transition"

    def __init__(self, message: str = "Error: booking status change not allowed") -> None:
        super().__init__(message)


class SettlementAlreadyRecordedError(RentalError):
    """Raised when a completed booking is settled again with different charges."""

    reason = "settlement_already_recorded"

    def __init__(self, message: str = "Error: settlement already recorded for this booking") -> None:
        super().__init__(message)


class PricingInvariantError(RentalError):
    """Raised when a quote's parts do not add up to its totals; such a quote is never returned."""

    reason = "pricing_invariant_violated"

    def __init__(self, message: str = "Error: quote totals do not match their components") -> None:
        super().__init__(message)
