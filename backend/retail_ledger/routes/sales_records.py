# Overview: Read-only routes over sale line-items.

"""
Sales records are written only through /sales (replace as a whole), so this
resource has no POST, PUT or DELETE.
"""
from flask import Blueprint, current_app, jsonify, request

from ..core import get_ledger
from ..decorators import require_auth
from .common import HANDLED_ERRORS, error_response, listing_params

sales_records_bp = Blueprint("sales_records", __name__, url_prefix="/sales-records")


@sales_records_bp.get("")
@require_auth
def list_sales_records_route():
    try:
        result = get_ledger().sales.list_line_items(
            sales_id=request.args.get("sales_id", type=int),
            variant_id=request.args.get("product_variant_id", type=int),
            **listing_params(),
        )
    except Exception:
        current_app.logger.exception("Failed to list sales records")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@sales_records_bp.get("/<int:record_id>")
@require_auth
def get_sales_record_route(record_id: int):
    try:
        record = get_ledger().sales.get_line_item(record_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify(record.to_dict()), 200
