# Overview: Request parsing and error mapping shared by every blueprint.

from __future__ import annotations

from flask import request, jsonify

from ..errors import LedgerError
from ..validation import ValidationError, ConflictError


def listing_params() -> dict:
    """
    Read page/limit/sort/sortField from the query string.

    Malformed values are passed through as None; the listing layer replaces
    them with defaults.
    """
    return {
        "page": request.args.get("page", type=int),
        "per_page": request.args.get("limit", type=int),
        "sort": request.args.get("sort"),
        "sort_field": request.args.get("sortField"),
    }


def json_body() -> dict:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def error_response(exc: Exception):
    """Map a known domain error to (body, status)."""
    if isinstance(exc, LedgerError):
        return jsonify(exc.to_dict()), exc.http_status
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc), "kind": "ConflictError"}), 409
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc), "kind": "ValidationError"}), 400
    raise exc


HANDLED_ERRORS = (LedgerError, ValidationError, ConflictError)
