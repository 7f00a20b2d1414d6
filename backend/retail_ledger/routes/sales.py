# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/retail_ledger/routes/sales.py
"""
Sales API routes.

A sale is opened by the authenticated user. Its line-items ("salesRecords")
are always replaced as a whole; the server captures each item's price from
the variant and recomputes total_price. Clients never send prices or totals.

Status lifecycle: pending -> completed | cancelled.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..core import get_ledger
from ..decorators import require_auth
from ..validation import ValidationError
from .common import HANDLED_ERRORS, error_response, json_body, listing_params

sales_bp = Blueprint("sales", __name__, url_prefix="/sales")


def _items_from(payload: dict):
    """Line-items may be sent as salesRecords or items. None means absent."""
    if "salesRecords" in payload:
        return payload["salesRecords"]
    return payload.get("items")


def _sale_body(sale) -> dict:
    body = sale.to_dict()
    body["salesRecords"] = [record.to_dict() for record in get_ledger().sales.line_items(sale.id)]
    return body


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params:
    - user_id: int (optional)
    - status: pending | completed | cancelled (optional)
    - page, limit, sort, sortField
    """
    try:
        result = get_ledger().sales.list_sales(
            user_id=request.args.get("user_id", type=int),
            status=request.args.get("status"),
            **listing_params(),
        )
    except Exception:
        current_app.logger.exception("Failed to list sales")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@sales_bp.post("")
@require_auth
def create_sale_route():
    """
    Open a pending sale owned by the caller.

    Optional body: {"salesRecords": [{"product_variant_id": int, "qty": int}, ...]}
    Header and items are created together or not at all.
    """
    try:
        payload = json_body()
        sale = get_ledger().sales.open_sale(g.current_user.id, _items_from(payload))
        body = _sale_body(sale)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(body), 201


@sales_bp.get("/<int:sales_id>")
@require_auth
def get_sale_route(sales_id: int):
    try:
        sale = get_ledger().sales.get_sale(sales_id)
        body = _sale_body(sale)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify(body), 200


@sales_bp.put("/<int:sales_id>")
@require_auth
def update_sale_route(sales_id: int):
    """
    Replace line-items and/or change status.

    Body: {"salesRecords"?: [...], "status"?: str}
    Items and status are applied together or not at all, so a sale can be
    filled and completed in one call.
    """
    try:
        payload = json_body()
        items = _items_from(payload)
        status = payload.get("status")
        if items is None and status is None:
            raise ValidationError("Nothing to update: send salesRecords and/or status")

        sale = get_ledger().sales.update_sale(sales_id, items=items, status=status)
        body = _sale_body(sale)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale %s", sales_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(body), 200


@sales_bp.post("/<int:sales_id>/status")
@require_auth
def set_sale_status_route(sales_id: int):
    """Body: {"status": "completed" | "cancelled" | "pending"}"""
    try:
        status = json_body().get("status")
        if not isinstance(status, str):
            raise ValidationError("status is required")
        sale = get_ledger().sales.set_status(sales_id, status)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to change status of sale %s", sales_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(sale.to_dict()), 200


@sales_bp.get("/<int:sales_id>/total")
@require_auth
def sale_total_route(sales_id: int):
    """Total recomputed from the line-items (resyncs a stale stored total)."""
    try:
        total = get_ledger().sales.sale_total(sales_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"sales_id": sales_id, "total_price": f"{total:.2f}"}), 200


@sales_bp.delete("/<int:sales_id>")
@require_auth
def delete_sale_route(sales_id: int):
    try:
        get_ledger().sales.delete_sale(sales_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale %s", sales_id)
        return jsonify({"error": "Internal server error"}), 500
    return "", 204
