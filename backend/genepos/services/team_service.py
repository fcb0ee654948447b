# Overview: Service-layer operations for team management; encapsulates business logic and database work.

"""
Team management

Owners add sales people to their own shop and manage them afterwards.
Through this path an owner can never modify another owner or themself
(see the team.* rules in genepos.policies).

Deactivating a member revokes every session they hold, so the change takes
effect on their next request rather than at token expiry.
"""

from flask import current_app

from ..errors import NotFound, ValidationFailed
from ..extensions import db
from ..models import ROLE_SALES_PERSON, Sale, User
from ..validation import ErrorBag, validate_email
from .auth_service import check_name, check_password, email_taken
from .authorization_service import authorize
from .session_service import Principal, revoke_all_user_sessions


# Only role an owner may hand out through the team path
ASSIGNABLE_ROLES = (ROLE_SALES_PERSON,)

MEMBER_UPDATABLE_FIELDS = {"name", "email", "password", "is_active"}


def _get_member_or_404(user_id: int) -> User:
    member = db.session.query(User).filter_by(id=user_id).first()
    if not member:
        raise NotFound("Team member not found")
    return member


def list_team(principal: Principal) -> list[User]:
    authorize(principal, "team.list")
    return (
        db.session.query(User)
        .filter(User.shop_id == principal.shop_id)
        .order_by(User.id.asc())
        .all()
    )


def add_member(principal: Principal, payload: dict) -> User:
    """Create a sales person bound to the caller's shop."""
    authorize(principal, "team.add")

    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    bag = ErrorBag()
    name = check_name(bag, payload.get("name"))
    email = validate_email(payload.get("email"), bag)
    if email and email_taken(email):
        bag.add("email", "The email has already been taken.")
    password_hash = check_password(bag, payload.get("password"))

    role = payload.get("role")
    if role is None:
        bag.add("role", "The role field is required.")
    elif role not in ASSIGNABLE_ROLES:
        bag.add("role", f"role must be one of: {', '.join(ASSIGNABLE_ROLES)}")
    bag.raise_if_any()

    member = User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        shop_id=principal.shop_id,
        is_active=True,
    )
    db.session.add(member)
    db.session.commit()

    current_app.logger.info(
        "User %s added team member %s to shop %s", principal.user_id, member.id, principal.shop_id
    )
    return member


def get_member(principal: Principal, user_id: int) -> User:
    member = _get_member_or_404(user_id)
    authorize(principal, "team.view", member)
    return member


def _set_active(member: User, active: bool) -> None:
    member.is_active = active
    if not active:
        revoke_all_user_sessions(member.id, reason="Deactivated by shop owner", commit=False)


def update_member(principal: Principal, user_id: int, payload: dict) -> User:
    """Update name, email, password and/or is_active. Role cannot change here."""
    member = _get_member_or_404(user_id)
    authorize(principal, "team.update", member)

    if not isinstance(payload, dict):
        raise ValidationFailed("Invalid JSON payload")

    bag = ErrorBag()
    for k in payload.keys():
        if k not in MEMBER_UPDATABLE_FIELDS:
            bag.add(k, f"Field not allowed: {k}")

    patch: dict = {}
    if "name" in payload:
        patch["name"] = check_name(bag, payload["name"])
    if "email" in payload:
        email = validate_email(payload["email"], bag)
        if email and email_taken(email, exclude_user_id=member.id):
            bag.add("email", "The email has already been taken.")
        patch["email"] = email
    if payload.get("password") is not None:
        patch["password_hash"] = check_password(bag, payload["password"])
    if "is_active" in payload:
        if not isinstance(payload["is_active"], bool):
            bag.add("is_active", "is_active must be true or false")
        patch["is_active"] = payload["is_active"]
    bag.raise_if_any()

    active = patch.pop("is_active", None)
    for k, v in patch.items():
        setattr(member, k, v)
    if active is not None and active != member.is_active:
        _set_active(member, active)

    db.session.commit()
    return member


def remove_member(principal: Principal, user_id: int) -> None:
    """
    Delete a team member and their sessions.

    Members who have recorded sales stay in the ledger as cashiers; they can
    only be deactivated.
    """
    member = _get_member_or_404(user_id)
    authorize(principal, "team.remove", member)

    has_sales = db.session.query(Sale.id).filter(Sale.cashier_id == member.id).first() is not None
    if has_sales:
        raise ValidationFailed(
            "Cannot remove a team member with recorded sales; deactivate them instead",
            errors={"user": ["Team member has recorded sales"]},
        )

    db.session.delete(member)
    db.session.commit()
    current_app.logger.info("User %s removed team member %s", principal.user_id, user_id)


def toggle_member_status(principal: Principal, user_id: int) -> User:
    """Flip is_active. Returns the member with the new state."""
    member = _get_member_or_404(user_id)
    authorize(principal, "team.toggle", member)

    _set_active(member, not member.is_active)
    db.session.commit()

    current_app.logger.info(
        "User %s %s team member %s",
        principal.user_id,
        "activated" if member.is_active else "deactivated",
        member.id,
    )
    return member
