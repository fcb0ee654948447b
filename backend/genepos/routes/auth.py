# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/genepos/routes/auth.py
"""
Authentication API routes

- Local register/login with bcrypt passwords and strength validation
- Google sign-in via verified ID token
- Session management with token-based auth (Authorization: Bearer <token>)
"""

from flask import Blueprint, request, jsonify, current_app

from ..decorators import bearer_token, require_auth
from ..errors import GeneposError, error_response
from ..services import auth_service
from ..services import identity_service
from ..services import session_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _session_response(user, message: str, status: int = 200):
    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
        "message": message,
    }), status


@auth_bp.post("/register")
def register_route():
    """Self-registration with email and password. Returns user + session token."""
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.register_user(
            data.get("name"),
            data.get("email"),
            data.get("password"),
        )
        return _session_response(user, "Registration successful", 201)

    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"message": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = request.get_json(silent=True) or {}
        user = auth_service.authenticate(data.get("email"), data.get("password"))
        return _session_response(user, "Login successful")

    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"message": "Internal server error"}), 500


@auth_bp.post("/google")
def google_login_route():
    """
    Sign in with a Google ID token.

    Request body: {"id_token": "<credential from Google Identity Services>"}
    Creates the user on first sign-in, refreshes profile fields afterwards.
    """
    try:
        data = request.get_json(silent=True) or {}
        token = data.get("id_token") or data.get("credential")
        identity = identity_service.verify_google_id_token(token)
        user = auth_service.upsert_google_user(identity)
        return _session_response(user, "Login successful")

    except GeneposError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed Google login")
        return jsonify({"message": "Authentication failed"}), 401


@auth_bp.post("/logout")
@require_auth
def logout_route(principal):
    """
    Revoke the presented session token only.

    Other sessions of the same user stay valid.
    """
    try:
        session_service.revoke_session(bearer_token(), reason="User logout")
        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"message": "Internal server error"}), 500


@auth_bp.get("/user")
@require_auth
def current_user_route(principal):
    """Return the authenticated caller."""
    user = principal.user
    data = user.to_dict()
    data["shop"] = user.shop.to_dict() if user.shop else None
    return jsonify(data), 200
