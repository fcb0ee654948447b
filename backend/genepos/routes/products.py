# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/genepos/routes/products.py
"""
Product catalog routes.

MULTI-TENANT: All product operations are scoped to the caller's shop.
SECURITY: All routes require authentication.
"""
from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..errors import GeneposError, error_response
from ..services import products_service

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products(principal):
    """
    List products of the caller's shop.

    Query params:
    - include_inactive: bool (optional) - also return deactivated products
    - category: str (optional) - exact category match
    - search: str (optional) - substring of name, sku or barcode
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}

    try:
        return products_service.list_products(
            principal,
            include_inactive=include_inactive,
            category=request.args.get("category") or None,
            search=request.args.get("search") or None,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except GeneposError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
def create_product_route(principal):
    payload = request.get_json(silent=True) or {}

    try:
        product = products_service.create_product(principal, payload)
        return {"message": "Product created successfully", "product": product.to_dict()}, 201
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"message": "Internal server error"}, 500


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int, principal):
    try:
        return products_service.get_product(principal, product_id).to_dict()
    except GeneposError as e:
        return error_response(e)


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int, principal):
    """Partial update of a product in the caller's shop."""
    payload = request.get_json(silent=True) or {}

    try:
        product = products_service.update_product(principal, product_id, payload)
        return {"message": "Product updated successfully", "product": product.to_dict()}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"message": "Internal server error"}, 500


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int, principal):
    """
    Deactivate a product.

    Soft delete: the product moves to the inactive state and stays
    referenced by past sales.
    """
    try:
        products_service.deactivate_product(principal, product_id)
        return {"message": "Product deactivated successfully"}
    except GeneposError as e:
        return error_response(e)
