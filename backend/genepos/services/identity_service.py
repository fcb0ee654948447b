# Overview: Verifies Google ID tokens and maps their claims to an external identity.

from dataclasses import dataclass

from flask import current_app
from google.auth import exceptions as google_exceptions
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token as google_id_token

from ..errors import InvalidExternalToken


@dataclass(frozen=True)
class ExternalIdentity:
    subject: str
    email: str | None
    name: str | None
    picture: str | None
    email_verified: bool


def verify_google_id_token(token: str) -> ExternalIdentity:
    """
    Verify a Google ID token (signature, expiry, audience = GOOGLE_CLIENT_ID).

    Any verification or transport failure raises InvalidExternalToken (401).
    The call is made once; there is no retry.
    """
    if not isinstance(token, str) or not token.strip():
        raise InvalidExternalToken()

    audience = current_app.config.get("GOOGLE_CLIENT_ID")
    if not audience:
        current_app.logger.error("GOOGLE_CLIENT_ID is not configured")
        raise InvalidExternalToken("Authentication failed")

    try:
        claims = google_id_token.verify_oauth2_token(
            token.strip(), google_requests.Request(), audience
        )
    except ValueError as e:
        current_app.logger.info("Rejected Google ID token: %s", e)
        raise InvalidExternalToken()
    except google_exceptions.GoogleAuthError as e:
        # TransportError and RefreshError are GoogleAuthError subclasses
        current_app.logger.warning("Google token verification failed: %s", e)
        raise InvalidExternalToken("Authentication failed")

    subject = claims.get("sub")
    email = claims.get("email")
    if not subject or not email:
        raise InvalidExternalToken()

    return ExternalIdentity(
        subject=str(subject),
        email=email,
        name=claims.get("name"),
        picture=claims.get("picture"),
        email_verified=bool(claims.get("email_verified", False)),
    )
