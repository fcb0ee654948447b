# Overview: Flask API routes for shop (tenant) management; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..errors import GeneposError, error_response
from ..services import shop_service

shops_bp = Blueprint("shops", __name__, url_prefix="/api/shops")


@shops_bp.get("")
@require_auth
def list_shops_route(principal):
    try:
        shops = shop_service.list_shops(principal)
        return {"items": [s.to_dict(include_team=True) for s in shops], "count": len(shops)}
    except GeneposError as e:
        return error_response(e)


@shops_bp.post("")
@require_auth
def create_shop_route(principal):
    """Create a shop owned by the caller (owners only). The caller joins it."""
    payload = request.get_json(silent=True) or {}

    try:
        shop = shop_service.create_shop(principal, payload)
        return {"message": "Shop created successfully", "shop": shop.to_dict(include_team=True)}, 201
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create shop")
        return {"message": "Internal server error"}, 500


@shops_bp.get("/<int:shop_id>")
@require_auth
def get_shop_route(shop_id: int, principal):
    try:
        return shop_service.get_shop(principal, shop_id).to_dict(include_team=True)
    except GeneposError as e:
        return error_response(e)


@shops_bp.put("/<int:shop_id>")
@require_auth
def update_shop_route(shop_id: int, principal):
    payload = request.get_json(silent=True) or {}

    try:
        shop = shop_service.update_shop(principal, shop_id, payload)
        return {"message": "Shop updated successfully", "shop": shop.to_dict(include_team=True)}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update shop %s", shop_id)
        return {"message": "Internal server error"}, 500


@shops_bp.delete("/<int:shop_id>")
@require_auth
def delete_shop_route(shop_id: int, principal):
    try:
        shop_service.delete_shop(principal, shop_id)
        return {"message": "Shop deleted successfully"}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete shop %s", shop_id)
        return {"message": "Internal server error"}, 500


@shops_bp.get("/<int:shop_id>/statistics")
@require_auth
def shop_statistics_route(shop_id: int, principal):
    try:
        return shop_service.shop_statistics(principal, shop_id)
    except GeneposError as e:
        return error_response(e)
