import logging

from flask import Flask, jsonify

from .config import DEFAULTS
from .controllers.bookings import bp as bookings_bp
from .controllers.staff import bp as staff_bp
from .exceptions import NotFoundError, PricingInvariantError, RentalError, ValidationError
from .models.store import Store

logger = logging.getLogger(__name__)


def _status_for(err: RentalError) -> int:
    if isinstance(err, ValidationError):
        return 400
    if isinstance(err, NotFoundError):
        return 404
    if isinstance(err, PricingInvariantError):
        return 500
    return 409  # conflicts and lifecycle violations


def handle_rental_error(err: RentalError):
    """Every rejection goes out with its specific reason code."""
    status = _status_for(err)
    if status == 500:
        logger.error("Pricing invariant violated: %s", err.message)
    return jsonify({"error": err.reason, "message": err.message}), status


def create_app(config: dict | None = None):
    app = Flask(__name__)
    app.config.from_mapping(DEFAULTS)
    app.config.from_prefixed_env("RENTALCORE")
    if config:
        app.config.update(config)

    Store.instance(app.config.get("DATA_PATH"))  # load data.pkl or init empty
    app.register_blueprint(bookings_bp)
    app.register_blueprint(staff_bp)
    app.register_error_handler(RentalError, handle_rental_error)

    return app
