"""
Shared fixtures for the order lifecycle tests.

Provides:
- engine: a fresh file-backed SQLite database per test, built with the
  production engine factory (BEGIN IMMEDIATE, foreign keys on)
- session_factory / db: sessions bound to that engine
- seed: users, stores, products and addresses committed before the test
"""

import os
from decimal import Decimal
from types import SimpleNamespace
import uuid

# Settings are read at import time; tests never touch this default database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./.pytest_marketplace.db")

import pytest
import pytest_asyncio

from marketplace.database import create_engine, create_session_factory, init_db
from marketplace.models import (
    User,
    UserRole,
    Store,
    Product,
    ProductStatus,
    Address,
)


@pytest_asyncio.fixture
async def engine(tmp_path):
    test_engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
    await init_db(bind=test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


def _product(store: Store, name: str, price: str, stock: int, status: ProductStatus = ProductStatus.LISTED) -> Product:
    return Product(
        id=uuid.uuid4(),
        store_id=store.id,
        name=name,
        price=Decimal(price),
        stock=stock,
        sales=0,
        status=status.value,
    )


@pytest_asyncio.fixture
async def seed(session_factory):
    """Committed reference data; every id is available on the returned namespace."""
    buyer = User(id=uuid.uuid4(), username="buyer", role=UserRole.BUYER.value)
    other_buyer = User(id=uuid.uuid4(), username="other-buyer", role=UserRole.BUYER.value)
    merchant = User(id=uuid.uuid4(), username="merchant", role=UserRole.MERCHANT.value)
    other_merchant = User(id=uuid.uuid4(), username="other-merchant", role=UserRole.MERCHANT.value)
    admin = User(id=uuid.uuid4(), username="admin", role=UserRole.ADMIN.value)

    store = Store(id=uuid.uuid4(), owner_id=merchant.id, name="Tea House")
    other_store = Store(id=uuid.uuid4(), owner_id=other_merchant.id, name="Coffee Corner")

    teapot = _product(store, "Clay Teapot", "19.99", 5)
    cups = _product(store, "Cup Set", "7.50", 10)
    last_unit = _product(store, "Limited Kettle", "120.00", 1)
    delisted = _product(store, "Old Tin", "3.00", 10, ProductStatus.DELISTED)
    foreign = _product(other_store, "Espresso Beans", "12.00", 10)

    address = Address(
        id=uuid.uuid4(),
        user_id=buyer.id,
        receiver_name="Ada Buyer",
        receiver_phone="555-0100",
        province="North",
        city="Harbor",
        district="Old Town",
        detail_address="12 Quay Street",
        is_default=True,
    )
    other_address = Address(
        id=uuid.uuid4(),
        user_id=other_buyer.id,
        receiver_name="Bo Other",
        receiver_phone="555-0199",
        province="South",
        city="Field",
        detail_address="3 Mill Lane",
    )

    async with session_factory() as session:
        session.add_all([buyer, other_buyer, merchant, other_merchant, admin])
        await session.flush()
        session.add_all([store, other_store])
        await session.flush()
        session.add_all([teapot, cups, last_unit, delisted, foreign, address, other_address])
        await session.commit()

    return SimpleNamespace(
        buyer=buyer,
        other_buyer=other_buyer,
        merchant=merchant,
        other_merchant=other_merchant,
        admin=admin,
        store=store,
        other_store=other_store,
        teapot=teapot,
        cups=cups,
        last_unit=last_unit,
        delisted=delisted,
        foreign=foreign,
        address=address,
        other_address=other_address,
    )
