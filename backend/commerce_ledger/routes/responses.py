# Overview: Shared request parsing and error-to-JSON mapping for API routes.

from flask import current_app, jsonify, request

from ..errors import LedgerError, ValidationError
from ..time_utils import parse_iso_date


def error_response(exc: LedgerError):
    """Stable code, reason and details; never database text."""
    return jsonify(exc.to_dict()), exc.http_status


def internal_error(log_message: str):
    current_app.logger.exception(log_message)
    return jsonify({"error": "INTERNAL_ERROR", "message": "Internal server error"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError as exc:
        raise ValidationError(f"{name} must be YYYY-MM-DD", details={name: request.args.get(name)}) from exc


def limit_arg(default: int = 200, maximum: int = 1000) -> int:
    limit = request.args.get("limit", default, type=int)
    return max(1, min(limit, maximum))
