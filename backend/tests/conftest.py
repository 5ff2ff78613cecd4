"""
Pytest fixtures for back-office stock engine tests.

Provides test database setup, tenant fixtures, seeded products and test client.
"""

import pytest
from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import (
    Characteristic,
    CharacteristicOption,
    Location,
    Organization,
    Product,
)
from backoffice.services.store import StockStore


class SeededProduct:
    """A product with its characteristics, addressable by name and value."""

    def __init__(self, product: Product):
        self.product = product
        self.id = product.id

    def characteristic(self, name: str) -> Characteristic:
        for characteristic in self.product.characteristics:
            if characteristic.name == name:
                return characteristic
        raise KeyError(name)

    def option(self, name: str, value: str) -> int:
        for option in self.characteristic(name).options:
            if option.value == value:
                return option.id
        raise KeyError(f"{name}={value}")

    def selection(self, **values) -> dict:
        """Row "options" payload: {str(characteristic_id): option_id}."""
        return {str(self.characteristic(n).id): self.option(n, v) for n, v in values.items()}

    def option_ids(self, **values) -> list:
        return sorted(self.option(n, v) for n, v in values.items())


def seed_product(session, org, name, characteristics=None) -> SeededProduct:
    product = Product(org_id=org.id, name=name)
    for characteristic_name, values in (characteristics or {}).items():
        characteristic = Characteristic(name=characteristic_name)
        characteristic.options = [CharacteristicOption(value=v) for v in values]
        product.characteristics.append(characteristic)
    session.add(product)
    session.commit()
    return SeededProduct(product)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'API_TOKENS': {},
        'STOCK_WRITE_RETRY_BACKOFF': 0,
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
        app.config['API_TOKENS'] = {}

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def location_a(db_session, org_a):
    """Location 1 of Organization A."""
    location = Location(org_id=org_a.id, name="Centro")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def location_a2(db_session, org_a):
    """Location 2 of Organization A."""
    location = Location(org_id=org_a.id, name="Norte")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def location_b(db_session, org_b):
    """Location of Organization B."""
    location = Location(org_id=org_b.id, name="Bodega B")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def shirt(db_session, org_a):
    """Product "Shirt" with Size {S, M, L}."""
    return seed_product(db_session, org_a, "Shirt", {"Size": ["S", "M", "L"]})


@pytest.fixture(scope='function')
def sneaker(db_session, org_a):
    """Product "Sneaker" with Size {38, 40} and Color {Red, Blue}."""
    return seed_product(db_session, org_a, "Sneaker", {"Size": ["38", "40"], "Color": ["Red", "Blue"]})


@pytest.fixture(scope='function')
def gift_card(db_session, org_a):
    """Product without characteristics."""
    return seed_product(db_session, org_a, "Gift Card")


@pytest.fixture(scope='function')
def shirt_b(db_session, org_b):
    """Product "Shirt" of Organization B."""
    return seed_product(db_session, org_b, "Shirt", {"Size": ["S", "M", "L"]})


@pytest.fixture(scope='function')
def stock_store(org_a):
    """Data store bound to Organization A."""
    return StockStore(org_a.id, actor_user_id="user-a")


def _issue_token(app, token, *, user_id, org_id, role):
    app.config['API_TOKENS'][token] = {"user_id": user_id, "org_id": org_id, "role": role}
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def admin_headers_a(app, org_a):
    return _issue_token(app, "token-admin-a", user_id="admin-a", org_id=org_a.id, role="admin")


@pytest.fixture(scope='function')
def employee_headers_a(app, org_a):
    return _issue_token(app, "token-employee-a", user_id="employee-a", org_id=org_a.id, role="employee")


@pytest.fixture(scope='function')
def viewer_headers_a(app, org_a):
    """Caller with a role that may read but not submit batches."""
    return _issue_token(app, "token-viewer-a", user_id="viewer-a", org_id=org_a.id, role="viewer")


@pytest.fixture(scope='function')
def admin_headers_b(app, org_b):
    return _issue_token(app, "token-admin-b", user_id="admin-b", org_id=org_b.id, role="admin")
