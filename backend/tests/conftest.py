"""
Pytest fixtures for Resale Desk backend tests.

Provides test database setup, the credential vault, purchase factories,
and actor header helpers.
"""

import pytest

from resaledesk import create_app, get_vault
from resaledesk.extensions import db
from resaledesk.services import purchase_service


TEST_DATA_KEY = "4f1c2b9e7a6d5c3b8e0f1a2d3c4b5a6978e6d5c4b3a29180f7e6d5c4b3a29180"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'DATA_KEY': TEST_DATA_KEY,
        'ORDER_ID_PREFIX': 'PH',
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
def vault(app):
    return get_vault(app)


def purchase_payload(**overrides) -> dict:
    """Minimal valid purchase body (amounts in minor units)."""
    payload = {
        "client_id": "client-1",
        "product_id": "product-1",
        "vendor_id": "vendor-1",
        "purchase_date": "2025-01-31",
        "client_pay_total_minor": 200000,
        "vendor_pay_total_minor": 150000,
        "activation": {"method": "COUPON_CODE", "coupon_code": "NETFLIX-XYZ"},
    }
    payload.update(overrides)
    return payload


@pytest.fixture(scope='function')
def make_purchase(db_session, vault):
    """Factory creating purchases through the service layer."""
    def _make(**overrides):
        return purchase_service.create_purchase(purchase_payload(**overrides), "user-1", vault)
    return _make


def actor_headers(role: str = "admin", actor_id: str = "user-1") -> dict:
    """Headers the upstream gateway forwards for an authenticated actor."""
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}


@pytest.fixture
def admin_headers():
    return actor_headers("admin", "admin-1")


@pytest.fixture
def sales_headers():
    return actor_headers("sales", "sales-1")


@pytest.fixture
def viewer_headers():
    return actor_headers("viewer", "viewer-1")
