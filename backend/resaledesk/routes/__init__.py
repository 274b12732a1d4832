# Overview: Shared helpers for API routes (error mapping, query parsing).

from flask import current_app, jsonify, request
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..services.credential_vault import DecryptionFailedError
from ..time_utils import parse_iso_date
from ..validation import ValidationError, ConflictError, NotFoundError


def service_error_response(exc: Exception, action: str):
    """
    Map a service exception to a JSON error response.

    - ValidationError -> 400
    - NotFoundError -> 404
    - ConflictError -> 409
    - OperationalError / StaleDataError -> 503 (retryable storage failure)
    - anything else -> logged, 500
    """
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, (OperationalError, StaleDataError)):
        current_app.logger.warning("%s: storage unavailable (%s)", action, type(exc).__name__)
        response = jsonify({"error": "Storage temporarily unavailable, retry the request"})
        response.headers["Retry-After"] = "1"
        return response, 503
    if isinstance(exc, DecryptionFailedError):
        # Never log the envelope itself
        current_app.logger.error("%s: stored secret could not be decrypted", action)
        return jsonify({"error": "Stored secret could not be decrypted"}), 500

    current_app.logger.exception(action)
    return jsonify({"error": "Internal server error"}), 500


def date_arg(name: str):
    """Optional ISO date query parameter; raises ValidationError when malformed."""
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date")


def pagination_args() -> tuple[int, int]:
    page = request.args.get("page", 1, type=int)
    limit = request.args.get("limit", 20, type=int)
    return page, limit


def pagination_meta(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit,
    }
