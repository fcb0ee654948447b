# Overview: Authorization policy table. One rule per operation code.
# Operation codes are "<resource>.<action>"; evaluated by authorization_service.authorize().

from dataclasses import dataclass

from .models import ROLE_OWNER


# Tenant relationship between the caller and the resource
TENANT_NONE = "none"                        # no resource-level check
TENANT_MEMBER = "member"                    # caller.shop_id == resource's shop
TENANT_SHOP_OWNER = "shop_owner"            # caller owns the shop resource
TENANT_MEMBER_OR_OWNER = "member_or_owner"  # either of the above

OWNER_ONLY = frozenset({ROLE_OWNER})


@dataclass(frozen=True)
class PolicyRule:
    roles: frozenset[str] | None = None  # None: any authenticated role
    tenant: str = TENANT_NONE
    requires_shop: bool = False
    # Target user may be neither an owner nor the caller (team management)
    protect_owners: bool = False
    role_message: str = "Access denied"
    tenant_message: str = "Access denied"
    protect_message: str = "Access denied"
    no_shop_message: str = "User is not associated with any shop"


POLICIES: dict[str, PolicyRule] = {
    # -- Shops --
    "shop.list": PolicyRule(),
    "shop.create": PolicyRule(
        roles=OWNER_ONLY,
        role_message="Only owners can create shops",
    ),
    "shop.view": PolicyRule(tenant=TENANT_MEMBER_OR_OWNER),
    "shop.update": PolicyRule(
        roles=OWNER_ONLY,
        tenant=TENANT_SHOP_OWNER,
        role_message="Only shop owners can update shop details",
        tenant_message="Only shop owners can update shop details",
    ),
    "shop.delete": PolicyRule(
        roles=OWNER_ONLY,
        tenant=TENANT_SHOP_OWNER,
        role_message="Only shop owners can delete shops",
        tenant_message="Only shop owners can delete shops",
    ),
    "shop.statistics": PolicyRule(tenant=TENANT_MEMBER_OR_OWNER),

    # -- Catalog --
    "product.list": PolicyRule(requires_shop=True),
    "product.create": PolicyRule(requires_shop=True, role_message="Only shop owners can add products"),
    "product.view": PolicyRule(requires_shop=True, tenant=TENANT_MEMBER),
    "product.update": PolicyRule(
        requires_shop=True,
        tenant=TENANT_MEMBER,
        role_message="Only shop owners can update products",
    ),
    "product.delete": PolicyRule(
        requires_shop=True,
        tenant=TENANT_MEMBER,
        role_message="Only shop owners can deactivate products",
    ),

    # -- Sales ledger --
    "sale.list": PolicyRule(requires_shop=True),
    "sale.create": PolicyRule(requires_shop=True, role_message="Not allowed to record sales"),
    "sale.view": PolicyRule(requires_shop=True, tenant=TENANT_MEMBER),
    "sale.update": PolicyRule(
        requires_shop=True,
        tenant=TENANT_MEMBER,
        role_message="Only shop owners can update sales",
    ),
    "sale.delete": PolicyRule(
        requires_shop=True,
        tenant=TENANT_MEMBER,
        role_message="Only shop owners can delete sales",
    ),

    # -- Team --
    "team.list": PolicyRule(requires_shop=True),
    "team.add": PolicyRule(
        roles=OWNER_ONLY,
        requires_shop=True,
        role_message="Only shop owners can add team members",
        no_shop_message="Owner must have a shop first",
    ),
    "team.view": PolicyRule(requires_shop=True, tenant=TENANT_MEMBER),
    "team.update": PolicyRule(
        roles=OWNER_ONLY,
        requires_shop=True,
        tenant=TENANT_MEMBER,
        protect_owners=True,
        role_message="Only shop owners can update team members",
        protect_message="Cannot update another shop owner",
    ),
    "team.remove": PolicyRule(
        roles=OWNER_ONLY,
        requires_shop=True,
        tenant=TENANT_MEMBER,
        protect_owners=True,
        role_message="Only shop owners can remove team members",
        protect_message="Cannot delete shop owner",
    ),
    "team.toggle": PolicyRule(
        roles=OWNER_ONLY,
        requires_shop=True,
        tenant=TENANT_MEMBER,
        protect_owners=True,
        role_message="Only shop owners can change team member status",
        protect_message="Cannot change shop owner status",
    ),

    # -- Reporting --
    "dashboard.view": PolicyRule(),
    "report.sales": PolicyRule(),
}


def get_policy(operation: str) -> PolicyRule:
    """Rule for an operation code. Unknown codes are a programming error."""
    try:
        return POLICIES[operation]
    except KeyError:
        raise KeyError(f"No authorization policy for operation {operation!r}")
