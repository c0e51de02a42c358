"""
Pytest fixtures for commerce ledger tests.

Provides the application on an in-memory database, a clean database per
test, actors for every role, seeded products and request headers.
"""

import pytest

from commerce_ledger import create_app
from commerce_ledger.extensions import db
from commerce_ledger.services import stock_service
from commerce_ledger.services.permission_service import Actor

STORE_ID = 1
OTHER_STORE_ID = 2


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_ATTEMPTS': 2,
        'ALLOW_NEGATIVE_STOCK': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture
def file_app(tmp_path):
    """Application on a database file, so each thread gets its own connection."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'ledger.sqlite3'}",
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_ATTEMPTS': 2,
        'ALLOW_NEGATIVE_STOCK': False,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.engine.dispose()


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
        db.session.info.clear()


# =============================================================================
# ACTORS
# =============================================================================

@pytest.fixture
def owner():
    return Actor(actor_id=1, store_id=STORE_ID, role="owner")


@pytest.fixture
def admin():
    return Actor(actor_id=2, store_id=STORE_ID, role="admin")


@pytest.fixture
def seller():
    return Actor(actor_id=3, store_id=STORE_ID, role="seller")


@pytest.fixture
def technician():
    return Actor(actor_id=4, store_id=STORE_ID, role="technician")


@pytest.fixture
def other_store_owner():
    return Actor(actor_id=9, store_id=OTHER_STORE_ID, role="owner")


# =============================================================================
# PRODUCTS
# =============================================================================

@pytest.fixture
def phone(db_session, owner):
    """Serialized product on the shelf."""
    return stock_service.register_serialized_product(
        owner,
        "356938035643809",
        "Phone X 128GB",
        buy_price=30000,
        sell_price=45000,
    )


@pytest.fixture
def incoming_phone(db_session, owner):
    """Serialized product registered ahead of its purchase."""
    return stock_service.register_serialized_product(
        owner,
        "490154203237518",
        "Phone Y 256GB",
        buy_price=50000,
        sell_price=65000,
        status="reserved",
    )


@pytest.fixture
def cable(db_session, owner):
    """Quantity product with 10 units, minimum 2."""
    return stock_service.create_quantity_product(
        owner,
        "USB-C cable",
        sku="CAB-USBC-1M",
        buy_price=300,
        sell_price=900,
        quantity=10,
        min_qty=2,
    )


# =============================================================================
# HTTP
# =============================================================================

def actor_headers(actor: Actor) -> dict:
    """Helper to create identity headers for an actor."""
    return {
        'X-Actor-Id': str(actor.actor_id),
        'X-Store-Id': str(actor.store_id),
        'X-Actor-Role': actor.role,
    }


@pytest.fixture
def owner_headers(owner):
    return actor_headers(owner)


@pytest.fixture
def seller_headers(seller):
    return actor_headers(seller)


@pytest.fixture
def technician_headers(technician):
    return actor_headers(technician)


@pytest.fixture
def admin_headers(admin):
    return actor_headers(admin)


@pytest.fixture
def other_store_headers(other_store_owner):
    return actor_headers(other_store_owner)
