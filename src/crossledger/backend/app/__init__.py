"""Application factory for CrossLedger backend services."""

import logging
import os
from warnings import warn

from flask import Flask, jsonify
from flask_cors import CORS
from werkzeug.exceptions import BadRequest

from crossledger.backend.config.rule_config import ConfigurationError

from .http import STORE_EXTENSION_KEY, problem_response
from .routes import register_routes
from .routes.jurisdictions import get_configuration_metadata
from .services.calculators import MissingExchangeRateError, UnconvertedEntryError
from .services.repositories import RecordStore, build_record_store

_LOGGER = logging.getLogger(__name__)


def _parse_allowed_origins(raw: str | None) -> set[str]:
    """Convert an environment variable into a normalised set of origins."""

    if not raw:
        return set()

    return {origin.strip() for origin in raw.split(",") if origin.strip()}


def create_app(store: RecordStore | None = None) -> Flask:
    """Create and configure the Flask application instance.

    ``store`` overrides the repositories otherwise chosen from
    ``CROSSLEDGER_DB``.
    """

    app = Flask(__name__)

    allowed_origins = _parse_allowed_origins(os.getenv("CROSSLEDGER_ALLOWED_ORIGINS"))

    if not allowed_origins:
        warn(
            "No allowed origins configured; cross-origin requests will be rejected.",
            stacklevel=1,
        )

    CORS(
        app,
        resources={r"/api/*": {"origins": sorted(allowed_origins)}},
        supports_credentials=False,
        methods=["GET", "OPTIONS", "POST"],
        allow_headers=["Content-Type"],
    )

    app.extensions[STORE_EXTENSION_KEY] = store if store is not None else build_record_store()

    register_routes(app)

    @app.route("/health", methods=["GET"])
    def health_check():
        """Simple health check endpoint for infrastructure monitoring."""

        payload = {"status": "ok", **get_configuration_metadata()}
        return jsonify(payload)

    @app.errorhandler(BadRequest)
    def handle_bad_request(error: BadRequest):
        """Return consistent JSON responses for malformed payloads."""

        message = error.description or "Invalid request"
        return problem_response("bad_request", status=400, message=message).to_response()

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError):
        """Gracefully surface domain validation errors to clients."""

        return problem_response(
            "validation_error", status=400, message=str(error)
        ).to_response()

    @app.errorhandler(MissingExchangeRateError)
    def handle_missing_exchange_rate(error: MissingExchangeRateError):
        return problem_response(
            "missing_exchange_rate",
            status=400,
            message=str(error),
            currency=error.currency,
            base_currency=error.base_currency,
        ).to_response()

    @app.errorhandler(UnconvertedEntryError)
    def handle_unconverted_entry(error: UnconvertedEntryError):
        _LOGGER.warning("Report refused an unconverted ledger entry: %s", error)
        return problem_response(
            "unconverted_entry", status=422, message=str(error)
        ).to_response()

    @app.errorhandler(ConfigurationError)
    def handle_configuration_error(error: ConfigurationError):
        _LOGGER.error("Tax rule configuration error: %s", error)
        return problem_response(
            "configuration_error", status=500, message=str(error)
        ).to_response()

    return app
