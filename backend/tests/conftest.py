"""
Pytest fixtures for pasal backend tests.

Provides an in-memory database, a test client, configured staff accounts
and a few catalog/customer records.
"""

import pytest

from pasal import create_app
from pasal.config import load_staff_accounts
from pasal.extensions import db
from pasal.services import customer_service, products_service, settings_service


ADMIN_PASSWORD = "admin-pass-123"
STAFF_PASSWORD = "staff-pass-123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    accounts = load_staff_accounts(
        {
            "ADMIN_USERNAME": "admin",
            "ADMIN_PASSWORD": ADMIN_PASSWORD,
            "ADMIN_NAME": "Owner",
            "STAFF_USERNAME": "cashier",
            "STAFF_PASSWORD": STAFF_PASSWORD,
        },
        rounds=4,
    )
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'STAFF_ACCOUNTS': accounts,
        'DEFAULT_TAX_RATE': '0.07',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh database for each test."""
    db.session.remove()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture
def no_tax(db_session):
    """Zero tax so totals equal subtotals."""
    return settings_service.update_settings({"tax_rate": 0})


@pytest.fixture
def product(db_session):
    """pc (2.00) / pack of 10 (18.00), 25 pc on hand."""
    return products_service.create_product({
        "name": "Biscuits",
        "category": "Snacks",
        "units": [
            {"level": 0, "name": "pc", "multiplier": 1, "price": 2},
            {"level": 1, "name": "pack", "multiplier": 10, "price": 18},
        ],
        "quantity": 25,
    })


@pytest.fixture
def rice(db_session):
    """kg (5.00) / sack of 25 with no explicit sack price, 100 kg on hand."""
    return products_service.create_product({
        "name": "Rice",
        "category": "Grains",
        "units": [
            {"name": "kg", "price": 5},
            {"name": "sack", "multiplier": 25},
        ],
        "quantity": 4,
        "stock_input_unit_level": 1,
    })


@pytest.fixture
def customer(db_session):
    return customer_service.create_customer({"name": "Asha", "phone": "555-0101"})


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to log in and return the bearer token."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password,
    })
    assert response.status_code == 200, response.get_json()
    return response.get_json()['token']


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client):
    return auth_headers(get_auth_token(client, "admin", ADMIN_PASSWORD))


@pytest.fixture
def staff_headers(client):
    return auth_headers(get_auth_token(client, "cashier", STAFF_PASSWORD))
