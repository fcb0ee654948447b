"""
Pytest fixtures for GenePos backend tests.

Provides test database setup, two-tenant fixtures (shop A and shop B, each
with an owner, a sales person and a product), and test client helpers.
"""

import pytest
from genepos import create_app
from genepos.extensions import db
from genepos.models import Product, Shop, User, ROLE_OWNER, ROLE_SALES_PERSON
from genepos.services.auth_service import hash_password
from genepos.services.session_service import create_session, validate_session


PASSWORD = "Password123!"

_password_hash_cache = {}


def password_hash() -> str:
    """bcrypt at cost 12 is slow; hash the shared test password once."""
    if PASSWORD not in _password_hash_cache:
        _password_hash_cache[PASSWORD] = hash_password(PASSWORD)
    return _password_hash_cache[PASSWORD]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'GOOGLE_CLIENT_ID': 'test-client-id.apps.googleusercontent.com',
        'DEFAULT_SIGNUP_ROLE': 'owner',
        'APP_TIMEZONE': 'UTC',
        'LOW_STOCK_THRESHOLD': 10,
        'ENFORCE_STOCK_FLOOR': False,
        'DASHBOARD_SCOPE': 'shop',
        'AUTHZ_ROLE_OVERRIDES': {},
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_user(db_session, *, name, email, role, shop_id=None, is_active=True) -> User:
    user = User(
        name=name,
        email=email,
        password_hash=password_hash(),
        role=role,
        shop_id=shop_id,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


def make_shop(db_session, owner: User, *, name: str, slug: str) -> Shop:
    """Shop owned by `owner`; the owner is attached to it."""
    shop = Shop(name=name, slug=slug, owner_id=owner.id)
    db_session.add(shop)
    db_session.flush()
    owner.shop_id = shop.id
    db_session.commit()
    return shop


def make_product(db_session, shop: Shop, **overrides) -> Product:
    fields = {
        "name": "Widget",
        "price_cents": 1000,
        "cost_price_cents": 600,
        "stock_quantity": 10,
        "category": "General",
    }
    fields.update(overrides)
    product = Product(shop_id=shop.id, **fields)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def owner_a(db_session):
    return make_user(db_session, name="Owner A", email="owner_a@shop-a.test", role=ROLE_OWNER)


@pytest.fixture(scope='function')
def shop_a(db_session, owner_a):
    return make_shop(db_session, owner_a, name="Shop A", slug="shop-a")


@pytest.fixture(scope='function')
def seller_a(db_session, shop_a):
    return make_user(
        db_session,
        name="Seller A",
        email="seller_a@shop-a.test",
        role=ROLE_SALES_PERSON,
        shop_id=shop_a.id,
    )


@pytest.fixture(scope='function')
def product_a(db_session, shop_a):
    return make_product(db_session, shop_a, name="Product A", sku="A-001", barcode="1000000000001")


@pytest.fixture(scope='function')
def owner_b(db_session):
    return make_user(db_session, name="Owner B", email="owner_b@shop-b.test", role=ROLE_OWNER)


@pytest.fixture(scope='function')
def shop_b(db_session, owner_b):
    return make_shop(db_session, owner_b, name="Shop B", slug="shop-b")


@pytest.fixture(scope='function')
def seller_b(db_session, shop_b):
    return make_user(
        db_session,
        name="Seller B",
        email="seller_b@shop-b.test",
        role=ROLE_SALES_PERSON,
        shop_id=shop_b.id,
    )


@pytest.fixture(scope='function')
def product_b(db_session, shop_b):
    return make_product(db_session, shop_b, name="Product B", sku="B-001", barcode="2000000000001")


def token_for(user: User) -> str:
    """Session token for `user` without going through the login route."""
    _, token = create_session(user_id=user.id)
    return token


def principal_for(user: User):
    """Resolved caller for calling services directly."""
    return validate_session(token_for(user))


def get_auth_token(client, email: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def sale_payload(*items, payment_method="cash", **overrides) -> dict:
    """
    Sale request body. Each item is (product_id, quantity, unit_price_cents);
    header totals are the sum of the item subtotals.
    """
    lines = [
        {
            "product_id": product_id,
            "quantity": quantity,
            "unit_price_cents": unit_price,
            "subtotal_cents": quantity * unit_price,
        }
        for product_id, quantity, unit_price in items
    ]
    subtotal = sum(line["subtotal_cents"] for line in lines)
    payload = {
        "subtotal_cents": subtotal,
        "tax_cents": 0,
        "discount_cents": 0,
        "total_cents": subtotal,
        "payment_method": payment_method,
        "items": lines,
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope='function')
def owner_a_headers(owner_a, shop_a):
    return auth_headers(token_for(owner_a))


@pytest.fixture(scope='function')
def seller_a_headers(seller_a):
    return auth_headers(token_for(seller_a))


@pytest.fixture(scope='function')
def owner_b_headers(owner_b, shop_b):
    return auth_headers(token_for(owner_b))
