"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging for the billsettle logger hierarchy
  3. Register all route blueprints under /api/v1
  4. Register global error handlers (AppError → JSON, Exception → 500)
  5. Register a custom JSON provider to serialise Decimal as string
     (exchange rates are Decimal; they must not lose precision as floats)

Run locally:
    flask --app "billsettle.app:create_app('development')" run
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from billsettle.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Money leaves the API as integer minor units. The only Decimals in a
# response are exchange rates, which are serialised as strings.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("1.0850") → "1.0850" (not 1.085)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".

    Returns:
        A fully configured Flask app ready to serve requests.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    app.json.sort_keys = app.config["JSON_SORT_KEYS"]

    _configure_logging(app)

    # ── Blueprints ─────────────────────────────────────────────────────────
    _register_blueprints(app)

    # ── Error handlers ─────────────────────────────────────────────────────
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to app.logger and to the `billsettle` logger hierarchy
    the services log through (logging.getLogger(__name__)).
    """
    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)
    logging.getLogger("billsettle").setLevel(level)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource.
    """
    from billsettle.app.routes.health import health_bp
    from billsettle.app.routes.splits import splits_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(splits_bp, url_prefix="/api/v1/splits")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD / registered-code responses (400)
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from billsettle.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        into the standard error envelope. Routes never catch AppError.
        """
        if error.http_status >= 500:
            app.logger.error("Internal invariant failure: %r", error)
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Nested schemas produce nested message dicts, e.g.
          {"items": {0: {"split_mode": ["INVALID_SPLIT_MODE"]}}}
        The FIRST leaf message is reported, with a dotted field path
        ("items.0.split_mode"). If the message is a registered ErrorCode it
        is used as the code; otherwise MISSING_FIELD / INVALID_FIELD.
        """
        field, raw_message = _first_leaf(error.messages)
        known_codes = vars(ErrorCode).values()

        if raw_message in known_codes:
            code = raw_message
        elif str(raw_message).startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD

        response_body = {
            "error": {
                "code": code,
                "message": raw_message if raw_message not in known_codes
                else _code_to_message(code),
            }
        }
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        """
        Routing and transport errors raised by Werkzeug (unknown URL, wrong
        method, oversized snapshot) keep their status but use the envelope.
        """
        code = {
            404: ErrorCode.NOT_FOUND,
            405: ErrorCode.METHOD_NOT_ALLOWED,
            413: ErrorCode.PAYLOAD_TOO_LARGE,
        }.get(error.code, ErrorCode.BAD_REQUEST)
        return jsonify({
            "error": {
                "code": code,
                "message": error.description or error.name,
            }
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        The full traceback is logged to the application logger. Stack traces
        NEVER leave the server in the response body.
        """
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when CORS_ALLOW_ALL is set (development and testing configs) so
    a frontend served from another local port can post snapshots.
    """

    @app.after_request
    def add_cors_headers(response):
        if app.config.get("CORS_ALLOW_ALL"):
            origin = request.headers.get("Origin")
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"

        return response


def _first_leaf(messages, path: tuple = ()) -> tuple[str | None, str]:
    """
    Walks a marshmallow messages structure to its first leaf message.

    Returns (dotted field path or None, message). "_schema" segments are
    dropped from the path.
    """
    if isinstance(messages, dict):
        for key, value in messages.items():
            segment = () if key == "_schema" else (str(key),)
            return _first_leaf(value, path + segment)
        return (".".join(path) or None), "Invalid input."

    if isinstance(messages, list):
        if not messages:
            return (".".join(path) or None), "Invalid value."
        return _first_leaf(messages[0], path)

    return (".".join(path) or None), str(messages)


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself.
    """
    _messages = {
        "INVALID_AMOUNT_PRECISION": "A fixed service charge must be a whole number of minor units.",
        "INVALID_SPLIT_MODE": "split_mode must be 'equal', 'percentage' or 'exact'.",
        "INVALID_SERVICE_CHARGE_TYPE": "service_charge.type must be 'fixed' or 'percentage'.",
        "DUPLICATE_PARTICIPANT": "The same participant id appears more than once.",
        "DUPLICATE_RECEIPT": "The same receipt id appears more than once.",
        "DUPLICATE_ITEM": "The same item id appears more than once.",
        "DUPLICATE_ASSIGNEE": "The same participant is assigned to an item more than once.",
    }
    return _messages.get(code, "Invalid input.")
