# Overview: Flask API routes for product variants; parses input and returns JSON responses.

# backend/retail_ledger/routes/variants.py
"""
Product variant routes.

`stock` is read-only here. It is the cached balance of the variant's stock
transactions; change it by POSTing to /stock-transactions. A variant may be
created with `initial_stock`, which is booked as an opening 'in' movement.
"""
from flask import Blueprint, current_app, g, jsonify, request

from ..core import get_ledger
from ..models import ProductVariant
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_variant
from ..decorators import require_auth
from .common import HANDLED_ERRORS, error_response, json_body, listing_params

VARIANT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "color", "size", "price"},
    required_on_create={"product_id", "price"},
    extra_fields={"initial_stock"},
)

VARIANT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"color", "size", "price"},
)

variants_bp = Blueprint("variants", __name__, url_prefix="/product-variants")


@variants_bp.get("")
@require_auth
def list_variants_route():
    """
    Query params:
    - product_id: int (optional)
    - page, limit, sort, sortField
    """
    try:
        result = get_ledger().catalog.list_variants(
            product_id=request.args.get("product_id", type=int),
            **listing_params(),
        )
    except Exception:
        current_app.logger.exception("Failed to list product variants")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@variants_bp.post("")
@require_auth
def create_variant_route():
    try:
        patch = validate_payload(
            model=ProductVariant,
            payload=json_body(),
            policy=VARIANT_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_variant(patch)
        product_id = patch.pop("product_id")
        initial_stock = patch.pop("initial_stock", 0) or 0
        variant = get_ledger().catalog.create_variant(
            product_id,
            patch,
            initial_stock=initial_stock,
            user_id=g.current_user.id,
        )
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product variant")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(variant.to_dict()), 201


@variants_bp.get("/<int:variant_id>")
@require_auth
def get_variant_route(variant_id: int):
    try:
        variant = get_ledger().catalog.get_variant(variant_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify(variant.to_dict()), 200


@variants_bp.put("/<int:variant_id>")
@require_auth
def update_variant_route(variant_id: int):
    """Edit color/size/price. Sales already recorded keep their captured price."""
    try:
        patch = validate_payload(
            model=ProductVariant,
            payload=json_body(),
            policy=VARIANT_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_variant(patch)
        variant = get_ledger().catalog.update_variant(variant_id, patch)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product variant %s", variant_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(variant.to_dict()), 200


@variants_bp.get("/<int:variant_id>/stock")
@require_auth
def variant_stock_route(variant_id: int):
    """On-hand quantity from the stock ledger."""
    try:
        on_hand = get_ledger().stock.current_stock(variant_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to read stock for variant %s", variant_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify({"product_variant_id": variant_id, "stock": on_hand}), 200
