"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Sales people are denied owner-only operations (403)
- Callers without a shop are denied shop-scoped operations
- AUTHZ_ROLE_OVERRIDES tightens role requirements per deployment
- Denials are written to security_events
"""

import pytest

from genepos.errors import AccessDenied
from genepos.models import SecurityEvent
from genepos.policies import (
    POLICIES,
    TENANT_MEMBER,
    TENANT_MEMBER_OR_OWNER,
    TENANT_NONE,
    TENANT_SHOP_OWNER,
)
from genepos.services.authorization_service import authorize

from conftest import auth_headers, make_user, principal_for, sale_payload, token_for


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/user"),
            ("POST", "/api/auth/logout"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/products/1"),
            ("PUT", "/api/products/1"),
            ("DELETE", "/api/products/1"),
            ("GET", "/api/sales"),
            ("POST", "/api/sales"),
            ("GET", "/api/sales/1"),
            ("PUT", "/api/sales/1"),
            ("DELETE", "/api/sales/1"),
            ("GET", "/api/shops"),
            ("POST", "/api/shops"),
            ("GET", "/api/shops/1"),
            ("PUT", "/api/shops/1"),
            ("DELETE", "/api/shops/1"),
            ("GET", "/api/shops/1/statistics"),
            ("GET", "/api/team"),
            ("POST", "/api/team"),
            ("GET", "/api/team/1"),
            ("PUT", "/api/team/1"),
            ("DELETE", "/api/team/1"),
            ("PATCH", "/api/team/1/toggle-status"),
            ("GET", "/api/dashboard"),
            ("GET", "/api/reports/sales"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json() == {"message": "Unauthenticated."}


# =============================================================================
# ROLE GATE — 403
# =============================================================================


class TestSalesPersonDenied:
    """Sales people cannot perform owner-only operations."""

    def test_cannot_create_shop(self, client, seller_a_headers):
        resp = client.post("/api/shops", json={"name": "Side Shop"}, headers=seller_a_headers)
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Only owners can create shops"

    def test_cannot_update_shop(self, client, shop_a, seller_a_headers):
        resp = client.put(f"/api/shops/{shop_a.id}", json={"name": "Mine"}, headers=seller_a_headers)
        assert resp.status_code == 403

    def test_cannot_add_team_member(self, client, seller_a_headers):
        resp = client.post("/api/team", json={
            "name": "Friend",
            "email": "friend@example.com",
            "password": "Password123!",
            "role": "sales_person",
        }, headers=seller_a_headers)
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Only shop owners can add team members"

    def test_cannot_toggle_colleague(self, client, db_session, shop_a, seller_a_headers):
        colleague = make_user(
            db_session, name="Colleague", email="col@shop-a.test", role="sales_person", shop_id=shop_a.id
        )
        resp = client.patch(f"/api/team/{colleague.id}/toggle-status", headers=seller_a_headers)
        assert resp.status_code == 403


class TestSalesPersonAllowed:
    """Catalog and sale posting are open to every member of the shop by default."""

    def test_can_list_and_create_products(self, client, seller_a_headers):
        resp = client.post("/api/products", json={
            "name": "Pen",
            "price_cents": 150,
            "cost_price_cents": 50,
            "category": "Stationery",
        }, headers=seller_a_headers)
        assert resp.status_code == 201
        assert client.get("/api/products", headers=seller_a_headers).status_code == 200

    def test_can_post_sale(self, client, product_a, seller_a_headers):
        resp = client.post(
            "/api/sales", json=sale_payload((product_a.id, 1, 1000)), headers=seller_a_headers
        )
        assert resp.status_code == 201

    def test_can_view_own_shop(self, client, shop_a, seller_a_headers):
        resp = client.get(f"/api/shops/{shop_a.id}", headers=seller_a_headers)
        assert resp.status_code == 200


class TestCallerWithoutShop:

    def test_shop_scoped_routes_denied(self, client, owner_a):
        headers = auth_headers(token_for(owner_a))
        resp = client.get("/api/products", headers=headers)
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "User is not associated with any shop"

    def test_team_add_needs_shop_first(self, client, owner_a):
        resp = client.post("/api/team", json={}, headers=auth_headers(token_for(owner_a)))
        assert resp.status_code == 403
        assert resp.get_json()["message"] == "Owner must have a shop first"

    def test_shop_list_is_empty(self, client, seller_a, db_session):
        loner = make_user(db_session, name="Loner", email="loner@example.com", role="sales_person")
        resp = client.get("/api/shops", headers=auth_headers(token_for(loner)))
        assert resp.status_code == 200
        assert resp.get_json()["items"] == []


# =============================================================================
# ROLE OVERRIDES
# =============================================================================


class TestRoleOverrides:

    def test_owner_only_product_create(self, app, client, monkeypatch, seller_a_headers, owner_a_headers):
        monkeypatch.setitem(app.config, "AUTHZ_ROLE_OVERRIDES", {"product.create": "owner"})
        body = {"name": "Pen", "price_cents": 150, "cost_price_cents": 50, "category": "Stationery"}

        denied = client.post("/api/products", json=body, headers=seller_a_headers)
        assert denied.status_code == 403
        assert denied.get_json()["message"] == "Only shop owners can add products"

        allowed = client.post("/api/products", json=body, headers=owner_a_headers)
        assert allowed.status_code == 201

    def test_override_accepts_role_list(self, app, monkeypatch, db_session, seller_a, product_a):
        monkeypatch.setitem(app.config, "AUTHZ_ROLE_OVERRIDES", {"sale.create": ["owner", "manager"]})
        with pytest.raises(AccessDenied):
            authorize(principal_for(seller_a), "sale.create")


# =============================================================================
# AUDIT AND TABLE SHAPE
# =============================================================================


class TestDenialAudit:

    def test_role_denial_logged(self, client, db_session, seller_a_headers, seller_a):
        client.post("/api/shops", json={"name": "X"}, headers=seller_a_headers)
        event = db_session.query(SecurityEvent).filter_by(event_type="PERMISSION_DENIED").one()
        assert event.user_id == seller_a.id
        assert event.action == "shop.create"
        assert event.success is False
        assert event.resource == "/api/shops"

    def test_cross_tenant_denial_logged(self, client, db_session, product_b, owner_a_headers, owner_a):
        resp = client.get(f"/api/products/{product_b.id}", headers=owner_a_headers)
        assert resp.status_code == 403
        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").one()
        assert event.user_id == owner_a.id
        assert event.action == "product.view"


class TestPolicyTable:

    def test_every_rule_uses_known_tenant_relation(self):
        known = {TENANT_NONE, TENANT_MEMBER, TENANT_SHOP_OWNER, TENANT_MEMBER_OR_OWNER}
        for operation, rule in POLICIES.items():
            assert rule.tenant in known, operation
            assert "." in operation

    def test_unknown_operation_is_an_error(self, db_session, owner_a):
        with pytest.raises(KeyError):
            authorize(principal_for(owner_a), "product.explode")

    def test_team_mutations_protect_owners(self):
        for operation in ("team.update", "team.remove", "team.toggle"):
            assert POLICIES[operation].protect_owners is True
