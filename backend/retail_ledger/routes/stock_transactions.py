# Overview: Flask API routes for stock movements; parses input and returns JSON responses.

"""
Stock transaction routes.

The ledger is append-only: there is no PUT or DELETE. A wrong movement is
corrected by recording the opposite movement.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..core import get_ledger
from ..decorators import require_auth
from .common import HANDLED_ERRORS, error_response, json_body, listing_params

stock_transactions_bp = Blueprint("stock_transactions", __name__, url_prefix="/stock-transactions")


@stock_transactions_bp.get("")
@require_auth
def list_stock_transactions_route():
    """
    Query params:
    - product_variant_id: int (optional)
    - type: 'in' | 'out' (optional)
    - page, limit, sort, sortField
    """
    try:
        result = get_ledger().stock.list_movements(
            variant_id=request.args.get("product_variant_id", type=int),
            movement_type=request.args.get("type"),
            **listing_params(),
        )
    except Exception:
        current_app.logger.exception("Failed to list stock transactions")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@stock_transactions_bp.post("")
@require_auth
def record_stock_transaction_route():
    """
    Record an 'in' or 'out' movement.

    Body: {"product_variant_id": int, "qty": int > 0, "type": "in"|"out", "note"?: str}

    Returns 409 with requested_quantity/on_hand details when an 'out' would
    drive stock below zero.
    """
    try:
        payload = json_body()
        variant_id = payload.get("product_variant_id")
        if isinstance(variant_id, bool) or not isinstance(variant_id, int):
            return jsonify({"error": "product_variant_id must be an integer"}), 400
        note = payload.get("note")
        if note is not None and not isinstance(note, str):
            return jsonify({"error": "note must be a string"}), 400

        tx = get_ledger().stock.record_movement(
            variant_id,
            payload.get("qty", payload.get("quantity")),
            payload.get("type"),
            user_id=g.current_user.id,
            note=note,
        )
        variant = get_ledger().catalog.get_variant(variant_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record stock transaction")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"transaction": tx.to_dict(), "stock": variant.stock}), 201


@stock_transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_stock_transaction_route(transaction_id: int):
    try:
        tx = get_ledger().stock.get_movement(transaction_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify(tx.to_dict()), 200
