"""
Pytest fixtures for retail ledger tests.

Provides test database setup, ledger registry, model factories and an
authenticated test client.
"""

import pytest

from retail_ledger import create_app
from retail_ledger.config import TestConfig
from retail_ledger.core import get_ledger
from retail_ledger.extensions import db
from retail_ledger.models import User
from retail_ledger.services.auth_service import hash_password

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt at cost 12 is slow; hash the shared test password once."""
    return hash_password(TEST_PASSWORD)


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
def ledger(db_session):
    return get_ledger()


@pytest.fixture(scope='function')
def user(db_session, password_hash):
    user = User(
        name="Staff One",
        email="staff@example.com",
        password_hash=password_hash,
        role="staff",
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def product(ledger):
    return ledger.catalog.create_product({"name": "Oxford Shirt", "category": "Shirts"})


@pytest.fixture(scope='function')
def variant(ledger, product):
    """Variant priced 12.49 with no stock."""
    return ledger.catalog.create_variant(product.id, {"color": "Blue", "size": "M", "price": "12.49"})


@pytest.fixture(scope='function')
def make_variant(ledger, product):
    def _make(price="10.00", initial_stock=0, **attrs):
        attrs["price"] = price
        return ledger.catalog.create_variant(product.id, attrs, initial_stock=initial_stock)
    return _make


def get_auth_token(client, email: str, password: str = TEST_PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def headers(client, user):
    return auth_headers(get_auth_token(client, user.email))
