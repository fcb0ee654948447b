# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/genepos/routes/sales.py
"""
Sales ledger routes.

POST /api/sales runs the posting workflow: header, items and stock
decrements are written together or not at all.
"""
from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..errors import GeneposError, error_response
from ..services import sales_service

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route(principal):
    """
    Sales of the caller's shop, newest first.

    Query params:
    - status: pending | completed | cancelled | refunded (optional)
    - page, per_page: optional pagination
    """
    try:
        return sales_service.list_sales(
            principal,
            status=request.args.get("status") or None,
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
    except GeneposError as e:
        return error_response(e)


@sales_bp.post("")
@require_auth
def post_sale_route(principal):
    """
    Record a completed sale.

    Request body:
    {
        "subtotal_cents": 3000, "tax_cents": 0, "discount_cents": 0, "total_cents": 3000,
        "payment_method": "cash",
        "customer_name": "optional",
        "items": [
            {"product_id": 1, "quantity": 3, "unit_price_cents": 1000, "subtotal_cents": 3000}
        ]
    }

    cashier and shop come from the session; any such fields in the body are ignored.
    """
    payload = request.get_json(silent=True)

    try:
        sale = sales_service.post_sale(principal, payload)
        return {"message": "Sale created successfully", "sale": sale.to_dict()}, 201
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return {"message": "Failed to create sale"}, 500


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int, principal):
    try:
        return sales_service.get_sale(principal, sale_id).to_dict()
    except GeneposError as e:
        return error_response(e)


@sales_bp.put("/<int:sale_id>")
@require_auth
def update_sale_route(sale_id: int, principal):
    """Only status (cancelled/refunded) and notes can change."""
    payload = request.get_json(silent=True)

    try:
        sale = sales_service.update_sale(principal, sale_id, payload)
        return {"message": "Sale updated successfully", "sale": sale.to_dict()}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update sale %s", sale_id)
        return {"message": "Internal server error"}, 500


@sales_bp.delete("/<int:sale_id>")
@require_auth
def delete_sale_route(sale_id: int, principal):
    try:
        sales_service.delete_sale(principal, sale_id)
        return {"message": "Sale deleted successfully"}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete sale %s", sale_id)
        return {"message": "Internal server error"}, 500
