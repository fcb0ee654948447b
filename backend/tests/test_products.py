"""
Catalog tests: create/update validation, uniqueness, soft delete, listing filters.
"""

from genepos.models import Product, ProductStatus

from conftest import make_product


def product_body(**overrides):
    body = {
        "name": "Notebook",
        "price_cents": 499,
        "cost_price_cents": 200,
        "category": "Stationery",
        "stock_quantity": 25,
        "sku": "NB-001",
        "barcode": "4006381333931",
    }
    body.update(overrides)
    return body


class TestCreateProduct:

    def test_create_binds_caller_shop(self, client, shop_a, owner_a_headers):
        resp = client.post("/api/products", json=product_body(), headers=owner_a_headers)
        assert resp.status_code == 201
        product = resp.get_json()["product"]
        assert product["shop_id"] == shop_a.id
        assert product["status"] == "active"
        assert product["is_active"] is True
        assert product["stock_quantity"] == 25

    def test_stock_defaults_to_zero(self, client, owner_a_headers):
        body = product_body()
        del body["stock_quantity"]
        resp = client.post("/api/products", json=body, headers=owner_a_headers)
        assert resp.status_code == 201
        assert resp.get_json()["product"]["stock_quantity"] == 0

    def test_required_fields(self, client, owner_a_headers):
        resp = client.post("/api/products", json={}, headers=owner_a_headers)
        assert resp.status_code == 422
        errors = resp.get_json()["errors"]
        assert set(errors) >= {"name", "price_cents", "cost_price_cents", "category"}

    def test_negative_values_rejected(self, client, owner_a_headers):
        resp = client.post(
            "/api/products",
            json=product_body(price_cents=-1, stock_quantity=-5),
            headers=owner_a_headers,
        )
        assert resp.status_code == 422
        errors = resp.get_json()["errors"]
        assert "price_cents" in errors
        assert "stock_quantity" in errors

    def test_decimal_price_rejected(self, client, owner_a_headers):
        resp = client.post("/api/products", json=product_body(price_cents=4.99), headers=owner_a_headers)
        assert resp.status_code == 422

    def test_stock_beyond_integer_range_rejected(self, client, db_session, owner_a_headers):
        resp = client.post(
            "/api/products", json=product_body(stock_quantity=10**20), headers=owner_a_headers
        )
        assert resp.status_code == 422
        assert "stock_quantity" in resp.get_json()["errors"]
        assert db_session.query(Product).count() == 0

    def test_stock_at_integer_limit_accepted(self, client, owner_a_headers):
        resp = client.post(
            "/api/products", json=product_body(stock_quantity=2**31 - 1), headers=owner_a_headers
        )
        assert resp.status_code == 201

    def test_duplicate_barcode_rejected(self, client, product_a, owner_a_headers):
        resp = client.post(
            "/api/products", json=product_body(barcode=product_a.barcode), headers=owner_a_headers
        )
        assert resp.status_code == 422
        assert "barcode" in resp.get_json()["errors"]

    def test_blank_sku_stored_as_null(self, client, db_session, product_a, owner_a_headers):
        first = client.post("/api/products", json=product_body(sku="", barcode=None), headers=owner_a_headers)
        second = client.post(
            "/api/products", json=product_body(name="Other", sku="", barcode=None), headers=owner_a_headers
        )
        assert first.status_code == 201
        assert second.status_code == 201
        assert second.get_json()["product"]["sku"] is None


class TestUpdateProduct:

    def test_partial_update(self, client, product_a, owner_a_headers):
        resp = client.put(
            f"/api/products/{product_a.id}", json={"price_cents": 1250}, headers=owner_a_headers
        )
        assert resp.status_code == 200
        product = resp.get_json()["product"]
        assert product["price_cents"] == 1250
        assert product["name"] == "Product A"

    def test_uniqueness_ignores_self(self, client, product_a, owner_a_headers):
        resp = client.put(
            f"/api/products/{product_a.id}",
            json={"sku": product_a.sku, "barcode": product_a.barcode},
            headers=owner_a_headers,
        )
        assert resp.status_code == 200

    def test_sku_of_other_product_rejected(self, client, db_session, shop_a, product_a, owner_a_headers):
        other = make_product(db_session, shop_a, name="Other", sku="A-002")
        resp = client.put(f"/api/products/{other.id}", json={"sku": "A-001"}, headers=owner_a_headers)
        assert resp.status_code == 422

    def test_unknown_status_rejected(self, client, product_a, owner_a_headers):
        resp = client.put(
            f"/api/products/{product_a.id}", json={"status": "archived"}, headers=owner_a_headers
        )
        assert resp.status_code == 422


class TestDeactivateProduct:

    def test_delete_is_soft(self, client, db_session, product_a, owner_a_headers):
        resp = client.delete(f"/api/products/{product_a.id}", headers=owner_a_headers)
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Product deactivated successfully"

        product = db_session.get(Product, product_a.id)
        assert product is not None
        assert product.status == ProductStatus.INACTIVE

    def test_inactive_hidden_from_default_listing(self, client, product_a, owner_a_headers):
        client.delete(f"/api/products/{product_a.id}", headers=owner_a_headers)

        default = client.get("/api/products", headers=owner_a_headers).get_json()
        assert default["count"] == 0

        everything = client.get("/api/products?include_inactive=true", headers=owner_a_headers).get_json()
        assert [p["id"] for p in everything["items"]] == [product_a.id]

    def test_reactivate_through_update(self, client, product_a, owner_a_headers):
        client.delete(f"/api/products/{product_a.id}", headers=owner_a_headers)
        resp = client.put(
            f"/api/products/{product_a.id}", json={"status": "active"}, headers=owner_a_headers
        )
        assert resp.get_json()["product"]["is_active"] is True


class TestListProducts:

    def test_ordered_by_name_then_id(self, client, db_session, shop_a, owner_a_headers):
        make_product(db_session, shop_a, name="Banana")
        make_product(db_session, shop_a, name="Apple")
        make_product(db_session, shop_a, name="Apple")

        items = client.get("/api/products", headers=owner_a_headers).get_json()["items"]
        names = [p["name"] for p in items]
        assert names == ["Apple", "Apple", "Banana"]
        assert items[0]["id"] < items[1]["id"]

    def test_filters_and_pagination(self, client, db_session, shop_a, owner_a_headers):
        make_product(db_session, shop_a, name="Red Pen", category="Pens", sku="PEN-R")
        make_product(db_session, shop_a, name="Blue Pen", category="Pens", sku="PEN-B")
        make_product(db_session, shop_a, name="Stapler", category="Tools", sku="TL-1")

        pens = client.get("/api/products?category=Pens", headers=owner_a_headers).get_json()
        assert pens["count"] == 2

        search = client.get("/api/products?search=stap", headers=owner_a_headers).get_json()
        assert [p["name"] for p in search["items"]] == ["Stapler"]

        page = client.get("/api/products?page=2&per_page=2", headers=owner_a_headers).get_json()
        assert page["count"] == 1
        assert page["pagination"]["total"] == 3
        assert page["pagination"]["has_prev"] is True
        assert page["pagination"]["has_next"] is False

    def test_per_page_clamped_to_at_least_one(self, client, db_session, shop_a, owner_a_headers):
        make_product(db_session, shop_a, name="One", sku="ONE")
        make_product(db_session, shop_a, name="Two", sku="TWO")

        page = client.get("/api/products?page=1&per_page=-1", headers=owner_a_headers).get_json()
        assert page["pagination"]["per_page"] == 1
        assert page["count"] == 1
        assert page["pagination"]["total_pages"] == 2
