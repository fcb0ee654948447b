# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every action must be attributable. Uses bcrypt for secure password
hashing and validates password strength.

Two credential kinds lead to the same User row:
- local email + password (register / login)
- Google identity, keyed on the stable subject id (google_id)

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Failed logins are written to security_events
"""

import bcrypt
import re
from flask import current_app
from ..errors import AccountDeactivated, InvalidCredentials
from ..extensions import db
from ..models import User, USER_ROLES
from ..validation import ErrorBag, validate_email
from .authorization_service import log_security_event
from .identity_service import ExternalIdentity
from genepos.time_utils import utcnow


class PasswordValidationError(ValueError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str):
        raise PasswordValidationError("Password must be a string")

    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for users without a local password (Google-only accounts).
    bcrypt.checkpw() is timing-safe.
    """
    if not password_hash or not isinstance(password, str):
        return False

    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def check_password(bag: ErrorBag, password, key: str = "password") -> str | None:
    """Collect strength problems into `bag`; returns the bcrypt hash when valid."""
    if password is None or password == "":
        bag.add(key, f"The {key} field is required.")
        return None
    try:
        return hash_password(password)
    except PasswordValidationError as e:
        bag.add(key, str(e))
        return None


def check_name(bag: ErrorBag, name, key: str = "name") -> str | None:
    if not isinstance(name, str) or not name.strip():
        bag.add(key, f"The {key} field is required.")
        return None
    if len(name.strip()) > 255:
        bag.add(key, f"{key} exceeds max length 255")
        return None
    return name.strip()


def email_taken(email: str, exclude_user_id: int | None = None) -> bool:
    query = db.session.query(User.id).filter(db.func.lower(User.email) == email.lower())
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def register_user(name, email, password) -> User:
    """
    Create a local-credential user with the configured signup role.

    Raises ValidationFailed (422) listing every field problem.
    """
    bag = ErrorBag()
    name = check_name(bag, name)
    email = validate_email(email, bag)
    if email and email_taken(email):
        bag.add("email", "The email has already been taken.")
    password_hash = check_password(bag, password)
    bag.raise_if_any()

    role = current_app.config.get("DEFAULT_SIGNUP_ROLE", "owner")
    if role not in USER_ROLES:
        raise RuntimeError(f"DEFAULT_SIGNUP_ROLE {role!r} is not a known role")

    user = User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()

    current_app.logger.info("Registered user %s with role %s", user.id, role)
    return user


def authenticate(email: str, password: str) -> User:
    """
    Authenticate user with email and password.

    Raises:
        InvalidCredentials: unknown email, wrong password, or no local password
        AccountDeactivated: password matches but the account is deactivated

    Updates last_login_at timestamp on successful authentication.
    """
    if not isinstance(email, str) or not email.strip():
        raise InvalidCredentials()

    user = db.session.query(User).filter(
        db.func.lower(User.email) == email.strip().lower()
    ).first()

    if not user or not verify_password(password, user.password_hash):
        log_security_event(
            user_id=user.id if user else None,
            event_type="LOGIN_FAILED",
            success=False,
            action="auth.login",
            reason="Invalid credentials",
            shop_id=user.shop_id if user else None,
        )
        raise InvalidCredentials()

    if not user.is_active:
        log_security_event(
            user_id=user.id,
            event_type="LOGIN_DEACTIVATED",
            success=False,
            action="auth.login",
            reason="Account deactivated",
            shop_id=user.shop_id,
        )
        raise AccountDeactivated()

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def upsert_google_user(identity: ExternalIdentity) -> User:
    """
    Create or update the user bound to a verified Google identity.

    Lookup order:
    1. google_id == identity.subject: refresh name, email, avatar
    2. verified email matches an existing user: link google_id to it
    3. otherwise create a user with DEFAULT_SIGNUP_ROLE

    Raises AccountDeactivated for a deactivated user.
    """
    now = utcnow()
    user = db.session.query(User).filter_by(google_id=identity.subject).first()

    if user is None and identity.email and identity.email_verified:
        user = db.session.query(User).filter(
            db.func.lower(User.email) == identity.email.lower()
        ).first()
        if user is not None:
            current_app.logger.info("Linking Google identity to existing user %s", user.id)
            user.google_id = identity.subject

    if user is None:
        role = current_app.config.get("DEFAULT_SIGNUP_ROLE", "owner")
        user = User(
            name=identity.name or identity.email,
            email=identity.email.lower(),
            google_id=identity.subject,
            avatar_url=identity.picture,
            role=role,
            is_active=True,
        )
        db.session.add(user)
    else:
        if not user.is_active:
            db.session.rollback()
            log_security_event(
                user_id=user.id,
                event_type="LOGIN_DEACTIVATED",
                success=False,
                action="auth.google",
                reason="Account deactivated",
                shop_id=user.shop_id,
            )
            raise AccountDeactivated()
        if identity.name:
            user.name = identity.name
        if identity.email and not email_taken(identity.email, exclude_user_id=user.id):
            user.email = identity.email.lower()
        if identity.picture:
            user.avatar_url = identity.picture

    user.last_login_at = now
    db.session.commit()
    return user
