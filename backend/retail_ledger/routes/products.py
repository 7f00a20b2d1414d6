# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/retail_ledger/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
Deleting a product is refused while it still has variants; their stock and
sales history would otherwise be orphaned.
"""
from flask import Blueprint, current_app, jsonify, request

from ..core import get_ledger
from ..models import Product
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_auth
from .common import HANDLED_ERRORS, error_response, json_body, listing_params

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category"},
    required_on_create={"name"},
)

products_bp = Blueprint("products", __name__, url_prefix="/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products.

    Query params:
    - category: str (optional) - exact match filter
    - page, limit, sort, sortField - see listing defaults
    """
    try:
        result = get_ledger().catalog.list_products(
            category=request.args.get("category"),
            **listing_params(),
        )
    except Exception:
        current_app.logger.exception("Failed to list products")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 200


@products_bp.post("")
@require_auth
def create_product_route():
    try:
        patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_POLICY, partial=False)
        product = get_ledger().catalog.create_product(patch)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(product.to_dict()), 201


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = get_ledger().catalog.get_product(product_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify(product.to_dict()), 200


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        patch = validate_payload(model=Product, payload=json_body(), policy=PRODUCT_POLICY, partial=True)
        product = get_ledger().catalog.update_product(product_id, patch)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        get_ledger().catalog.delete_product(product_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product %s", product_id)
        return jsonify({"error": "Internal server error"}), 500
    return "", 204


@products_bp.get("/<int:product_id>/variants")
@require_auth
def list_product_variants_route(product_id: int):
    try:
        variants = get_ledger().catalog.list_variants_by_product(product_id)
    except HANDLED_ERRORS as e:
        return error_response(e)
    return jsonify({"data": [v.to_dict() for v in variants]}), 200
