# Overview: Flask API routes for team management; parses input and returns JSON responses.

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..errors import GeneposError, error_response
from ..services import team_service

team_bp = Blueprint("team", __name__, url_prefix="/api/team")


@team_bp.get("")
@require_auth
def list_team_route(principal):
    try:
        members = team_service.list_team(principal)
        return {"items": [m.to_member_dict() for m in members], "count": len(members)}
    except GeneposError as e:
        return error_response(e)


@team_bp.post("")
@require_auth
def add_member_route(principal):
    """
    Add a sales person to the caller's shop (owners only).

    Request body: {"name", "email", "password", "role": "sales_person"}
    """
    payload = request.get_json(silent=True) or {}

    try:
        member = team_service.add_member(principal, payload)
        return {"message": "Sales person added successfully", "user": member.to_member_dict()}, 201
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add team member")
        return {"message": "Internal server error"}, 500


@team_bp.get("/<int:user_id>")
@require_auth
def get_member_route(user_id: int, principal):
    try:
        return team_service.get_member(principal, user_id).to_member_dict()
    except GeneposError as e:
        return error_response(e)


@team_bp.put("/<int:user_id>")
@require_auth
def update_member_route(user_id: int, principal):
    payload = request.get_json(silent=True) or {}

    try:
        member = team_service.update_member(principal, user_id, payload)
        return {"message": "Team member updated successfully", "user": member.to_member_dict()}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update team member %s", user_id)
        return {"message": "Internal server error"}, 500


@team_bp.delete("/<int:user_id>")
@require_auth
def remove_member_route(user_id: int, principal):
    try:
        team_service.remove_member(principal, user_id)
        return {"message": "Team member removed successfully"}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove team member %s", user_id)
        return {"message": "Internal server error"}, 500


@team_bp.patch("/<int:user_id>/toggle-status")
@require_auth
def toggle_member_status_route(user_id: int, principal):
    try:
        member = team_service.toggle_member_status(principal, user_id)
        status = "activated" if member.is_active else "deactivated"
        return {"message": f"Team member {status} successfully", "user": member.to_member_dict()}
    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to toggle team member %s", user_id)
        return {"message": "Internal server error"}, 500
