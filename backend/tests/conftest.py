"""
Pytest fixtures for storefront backend tests.

Provides the in-memory app, a clean database per test, user/product
factories and auth helpers.
"""

import pytest

from storefront import create_app
from storefront.extensions import db
from storefront.services import catalog_service
from storefront.services.auth_service import create_user


DEFAULT_PASSWORD = "Password123!"

VALID_SHIPPING = {
    "full_name": "Asha Verma",
    "phone": "9876543210",
    "address": "12 MG Road",
    "city": "Jaipur",
    "state": "Rajasthan",
    "pincode": "302001",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_LOG_ROUNDS': 4,
        'USER_CACHE_COOKIE_SECURE': False,
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user(email, account_type='customer', password=DEFAULT_PASSWORD)."""
    def _make(email, account_type="customer", password=DEFAULT_PASSWORD, **kwargs):
        return create_user(email, password, account_type=account_type, **kwargs)
    return _make


@pytest.fixture(scope='function')
def customer(make_user):
    return make_user("asha@example.com", first_name="Asha", last_name="Verma")


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin@ehsaasjewellery.com", account_type="admin", first_name="Store", last_name="Admin")


@pytest.fixture(scope='function')
def customer_headers(client, customer):
    return auth_headers(get_auth_token(client, customer.email, DEFAULT_PASSWORD))


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.email, DEFAULT_PASSWORD))


@pytest.fixture(scope='function')
def simple_product(db_session):
    """Product without variants: ₹2,000 list, ₹1,600 sale, 10 in stock."""
    return catalog_service.create_product(
        patch={
            "sku": "EJ-EAR-001",
            "name": "Jhumka Earrings",
            "price_paise": 200000,
            "sale_price_paise": 160000,
            "stock_quantity": 10,
            "category": "Earrings",
        },
        images=[{"url": "https://cdn.test/jhumka-1.jpg"}],
    )


@pytest.fixture(scope='function')
def ring_product(db_session):
    """
    Ring with size (S, M) x color (Red, Green) options:
    - base variant "Standard": no price, stock 10
    - "Red / M": ₹1,800, stock 3, second gallery image
    - "Green / S": ₹1,750, out of stock
    """
    product = catalog_service.create_product(
        patch={
            "sku": "EJ-RING-042",
            "name": "Kundan Ring",
            "price_paise": 200000,
            "sale_price_paise": 160000,
            "stock_quantity": 10,
            "category": "Rings",
        },
        images=[{"url": "https://cdn.test/ring-1.jpg"}, {"url": "https://cdn.test/ring-2.jpg"}],
    )
    image_ids = [img.id for img in product.images]

    catalog_service.create_product_variants(
        product.id,
        options=[
            {"name": "size", "display_name": "Size", "values": [{"value": "S"}, {"value": "M"}]},
            {"name": "color", "display_name": "Color", "values": [{"value": "Red"}, {"value": "Green"}]},
        ],
        variants=[
            {"name": "Standard", "stock_quantity": 10, "option_values": []},
            {
                "name": "Red / M",
                "price_paise": 180000,
                "stock_quantity": 3,
                "option_values": [{"option_name": "color", "value": "Red"}, {"option_name": "size", "value": "M"}],
                "image_ids": [image_ids[1]],
                "primary_image_id": image_ids[1],
            },
            {
                "name": "Green / S",
                "price_paise": 175000,
                "stock_quantity": 0,
                "option_values": [{"option_name": "color", "value": "Green"}, {"option_name": "size", "value": "S"}],
            },
        ],
    )
    return product


def variant_id_by_name(product_id: int, name: str) -> int:
    catalog = catalog_service.load_variant_catalog(product_id)
    return next(v.id for v in catalog.variants if v.name == name)


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
