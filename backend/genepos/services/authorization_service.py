# Overview: Service-layer operations for authorization; evaluates the policy table and audits denials.

"""
Transaction Authorization Gate

Every scoped read and every mutation calls authorize() once with the
resolved caller, an operation code and (when there is one) the target
resource. The rule for the operation comes from genepos.policies.POLICIES;
deployments may tighten role requirements with AUTHZ_ROLE_OVERRIDES.

Checks, in order:
1. the caller belongs to a shop (when the rule requires one)
2. role gate
3. tenant match between caller and resource
4. owner/self protection for team targets

Any failure raises AccessDenied and appends a security event.
"""

from dataclasses import replace

from flask import current_app, has_request_context, request

from ..errors import AccessDenied
from ..extensions import db
from ..models import SecurityEvent, Shop, User
from ..policies import (
    PolicyRule,
    TENANT_MEMBER,
    TENANT_MEMBER_OR_OWNER,
    TENANT_NONE,
    TENANT_SHOP_OWNER,
    get_policy,
)
from .session_service import Principal
from genepos.time_utils import utcnow


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    action: str | None = None,
    reason: str | None = None,
    shop_id: int | None = None,
) -> SecurityEvent:
    """
    Log security event to audit trail with tenant context.

    Request path, client address and user agent are taken from the active
    request when there is one.

    event_type examples:
    - PERMISSION_DENIED
    - CROSS_TENANT_ACCESS_DENIED
    - LOGIN_FAILED
    - LOGIN_DEACTIVATED
    - EXTERNAL_LOGIN_FAILED
    """
    resource = ip_address = user_agent = None
    if has_request_context():
        resource = request.path
        ip_address = request.remote_addr
        user_agent = request.headers.get("User-Agent")

    event = SecurityEvent(
        user_id=user_id,
        shop_id=shop_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    db.session.commit()
    return event


def effective_policy(operation: str) -> PolicyRule:
    """Policy rule with deployment role overrides applied."""
    rule = get_policy(operation)
    overrides = current_app.config.get("AUTHZ_ROLE_OVERRIDES") or {}
    override = overrides.get(operation)
    if override is None:
        return rule
    roles = frozenset([override]) if isinstance(override, str) else frozenset(override)
    return replace(rule, roles=roles)


def _resource_shop_id(resource) -> int | None:
    if isinstance(resource, Shop):
        return resource.id
    return getattr(resource, "shop_id", None)


def _tenant_ok(principal: Principal, tenant: str, resource) -> bool:
    if tenant == TENANT_NONE or resource is None:
        return True

    is_member = principal.shop_id is not None and principal.shop_id == _resource_shop_id(resource)
    is_shop_owner = isinstance(resource, Shop) and resource.owner_id == principal.user_id

    if tenant == TENANT_MEMBER:
        return is_member
    if tenant == TENANT_SHOP_OWNER:
        return is_shop_owner
    if tenant == TENANT_MEMBER_OR_OWNER:
        return is_member or is_shop_owner
    raise ValueError(f"Unknown tenant relationship: {tenant}")


def _deny(principal: Principal, operation: str, event_type: str, message: str, reason: str):
    log_security_event(
        user_id=principal.user_id,
        event_type=event_type,
        success=False,
        action=operation,
        reason=reason,
        shop_id=principal.shop_id,
    )
    current_app.logger.info(
        "Denied %s for user %s: %s", operation, principal.user_id, reason
    )
    raise AccessDenied(message)


def authorize(principal: Principal, operation: str, resource=None) -> None:
    """
    Evaluate the policy for `operation` against `principal` and `resource`.

    Raises AccessDenied (403) on any failed check.
    """
    rule = effective_policy(operation)

    if rule.requires_shop and principal.shop_id is None:
        _deny(principal, operation, "PERMISSION_DENIED", rule.no_shop_message, "Caller has no shop")

    if rule.roles is not None and principal.role not in rule.roles:
        _deny(
            principal,
            operation,
            "PERMISSION_DENIED",
            rule.role_message,
            f"Role {principal.role} not in {sorted(rule.roles)}",
        )

    if not _tenant_ok(principal, rule.tenant, resource):
        _deny(
            principal,
            operation,
            "CROSS_TENANT_ACCESS_DENIED",
            rule.tenant_message,
            f"Resource shop {_resource_shop_id(resource)} does not match caller shop {principal.shop_id}",
        )

    if rule.protect_owners and isinstance(resource, User):
        if resource.is_owner or resource.id == principal.user_id:
            _deny(
                principal,
                operation,
                "PERMISSION_DENIED",
                rule.protect_message,
                f"Protected target user {resource.id}",
            )
