"""
Pytest fixtures for tokopos backend tests.

Provides the test database, the test client and small factories for stores,
staff, members, products and warehouse stock.
"""

import pytest

from tokopos import create_app
from tokopos.extensions import db
from tokopos.models import Member, PriceTier, Product, Store, User, WarehouseProduct
from tokopos.services import provisioning_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TRANSACTION_RETRY_ATTEMPTS': 1,
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
def store(db_session):
    """Target store for sales and distributions."""
    store = Store(name="Toko Utama", code="TK01", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def head_office(db_session):
    """Store owning the catalog rows held by the central warehouse."""
    store = Store(name="Kantor Pusat", code="PUSAT", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def cashier(db_session, store):
    user = User(name="Budi", username="budi", role="CASHIER", store_id=store.id, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def attendant(db_session, store):
    user = User(name="Siti", username="siti", role="ATTENDANT", store_id=store.id, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def warehouse_user(db_session):
    user = User(name="Andi", username="andi", role="WAREHOUSE", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def member(db_session, store):
    """Registered member with a 10% discount."""
    member = Member(
        store_id=store.id,
        name="Ibu Rina",
        phone="081234567890",
        discount_percent=10,
        membership_type="GOLD",
    )
    db_session.add(member)
    db_session.commit()
    return member


@pytest.fixture(scope='function')
def default_customer(db_session):
    customer = provisioning_service.ensure_default_customer()
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def warehouse(db_session):
    warehouse = provisioning_service.get_or_create_central_warehouse()
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(store, code, stock=..., tiers=[(min_qty, price), ...])."""
    def _make(store, code, *, name=None, stock=0, tiers=((1, 10000),), purchase_price=0):
        product = Product(
            store_id=store.id,
            code=code,
            name=name or f"Produk {code}",
            stock=stock,
            purchase_price=purchase_price,
        )
        for min_qty, price in tiers:
            product.price_tiers.append(PriceTier(min_qty=min_qty, price=price))
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def stock_warehouse(db_session, warehouse):
    """Factory: put `quantity` units of `product` in the central warehouse."""
    def _stock(product, quantity):
        row = WarehouseProduct(warehouse_id=warehouse.id, product_id=product.id, quantity=quantity)
        db_session.add(row)
        db_session.commit()
        return row

    return _stock
