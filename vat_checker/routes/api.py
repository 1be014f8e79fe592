# vat_checker/routes/api.py
# REST API: перевірка VAT через VIES (з резервним vatlayer), health, документація

import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..adapters.base import ValidationResult
from ..config import LookupSettings
from ..errors import VatCheckError
from ..extensions import error_response
from ..services import check_service
from ..utils.logging import get_logger

api_bp = Blueprint("api", __name__)

_started_at = time.monotonic()


def _settings() -> LookupSettings:
    return LookupSettings.from_mapping(current_app.config)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def to_api_response(result: ValidationResult) -> dict:
    return {
        "valid": result.valid,
        "country_code": result.country_code,
        "vat_number": result.vat_number,
        "company_name": result.name or None,
        "address": result.address or None,
        "consultation_number": result.consultation_number,
        "request_date": result.request_date or None,
        "checked_at": _utc_now_iso(),
    }


@api_bp.get("/")
def index():
    return jsonify({
        "message": "Welcome to the VAT Validator API",
        "description": "Validate EU VAT numbers via the official VIES system. Returns company name, "
                       "address, and validation status in a clean JSON format.",
        "version": current_app.config.get("VERSION", "1.0.0"),
        "documentation": {
            "base_url": "Use this API's base URL as the prefix for all endpoints below.",
            "authentication": "Optional: set API_KEY in the server environment to require X-API-Key or "
                              "Authorization: Bearer <key> for validation endpoints. / and /health remain public.",
            "rate_limits": "Applied per IP (configurable via RATE_LIMIT_MAX and RATE_LIMIT_WINDOW_SECONDS). "
                           "/ and /health are not rate limited.",
        },
        "endpoints": [
            {"method": "GET", "path": "/", "description": "This welcome and API documentation."},
            {"method": "GET", "path": "/health",
             "description": "Health check. Returns status, timestamp, and uptime."},
            {
                "method": "GET",
                "path": "/validate/<country_code>/<vat_number>",
                "description": "Validate a VAT number using path parameters.",
                "example": "/validate/IE/6388047V",
            },
            {
                "method": "GET",
                "path": "/v1/validate",
                "description": "Validate a VAT number using query parameter (full identifier).",
                "example": "/v1/validate?vat_number=IE6388047V",
            },
        ],
    })


@api_bp.get("/health")
def health():
    return jsonify({
        "status": "ok",
        "timestamp": _utc_now_iso(),
        "uptime_seconds": int(time.monotonic() - _started_at),
        "service": current_app.config.get("SERVICE_NAME", "vat-validator-api"),
    })


@api_bp.get("/validate/<country_code>/<vat_number>")
def validate_path(country_code: str, vat_number: str):
    result = check_service.lookup(country_code, vat_number, _settings())
    return jsonify(to_api_response(result))


@api_bp.get("/v1/validate")
def validate_query():
    raw = request.args.get("vat_number", "")
    result = check_service.lookup_full_identifier(raw, _settings())
    return jsonify(to_api_response(result))


@api_bp.app_errorhandler(VatCheckError)
def handle_vat_check_error(e: VatCheckError):
    return jsonify(e.to_dict()), e.status_code


@api_bp.app_errorhandler(HTTPException)
def handle_http_exception(e: HTTPException):
    if e.code == 404:
        return error_response(404, "NOT_FOUND", "The requested endpoint was not found.")
    return error_response(e.code, e.name.upper().replace(" ", "_"), e.description)


@api_bp.app_errorhandler(Exception)
def handle_unexpected(e: Exception):
    get_logger().exception("Unhandled error on %s", request.path)
    return error_response(500, "INTERNAL_ERROR", "An unexpected error occurred. Please try again.", str(e))
