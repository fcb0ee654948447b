# Overview: Domain error taxonomy shared by services and routes.

"""
Every failure a caller can observe is one of these exceptions. The HTTP status
encodes the error kind; clients branch on status, never on message text.
"""

from flask import jsonify


class GeneposError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"message": self.message}


class ValidationFailed(GeneposError):
    """Malformed or missing input (422). Carries per-field messages."""
    status_code = 422
    default_message = "The given data was invalid."

    def __init__(self, message: str | None = None, errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class Unauthenticated(GeneposError):
    status_code = 401
    default_message = "Unauthenticated."


class InvalidCredentials(GeneposError):
    status_code = 401
    default_message = "Invalid credentials"


class InvalidExternalToken(GeneposError):
    status_code = 401
    default_message = "Invalid ID token"


class AccessDenied(GeneposError):
    status_code = 403
    default_message = "Access denied"


class AccountDeactivated(GeneposError):
    status_code = 403
    default_message = "Your account has been deactivated. Please contact your shop owner."


class CrossTenantReference(GeneposError):
    status_code = 403
    default_message = "One or more products do not belong to your shop"


class NotFound(GeneposError):
    status_code = 404
    default_message = "Resource not found"


class InsufficientStock(GeneposError):
    status_code = 422
    default_message = "Insufficient stock to post sale"

    def __init__(self, message: str | None = None, items: list[dict] | None = None):
        super().__init__(message)
        self.items = items or []

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["items"] = self.items
        return payload


class SalePostingFailed(GeneposError):
    status_code = 500
    default_message = "Failed to create sale"


def error_response(exc: GeneposError):
    """JSON envelope + status for a domain error."""
    return jsonify(exc.to_dict()), exc.status_code
