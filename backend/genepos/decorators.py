# Overview: Request decorators for API routes.

from functools import wraps
from flask import request

from .errors import Unauthenticated, error_response
from .services import session_service


def bearer_token() -> str | None:
    """Token from "Authorization: Bearer <token>", or None."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid session and hand the caller to the view.

    The resolved Principal is passed as the `principal` keyword argument;
    views pass it on to services explicitly.

    Returns 401 if:
    - No Authorization header
    - Invalid, expired or revoked token
    - User account deactivated
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return error_response(Unauthenticated())

        principal = session_service.validate_session(token)
        if principal is None:
            return error_response(Unauthenticated())

        kwargs["principal"] = principal
        return f(*args, **kwargs)

    return decorated_function
