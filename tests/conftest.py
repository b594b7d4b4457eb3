"""Shared fixtures: in-memory database, fresh topic registry, API client."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tableside.core.database import Base, get_db
from tableside.core.registry import TopicRegistry
from tableside.main import app
from tableside.models.order import DiningTable, MenuItem, Order, OrderItem, OrderStatus
from tableside.services.store import OrderStore


class Recorder:
    """Registry listener that remembers every payload it receives"""

    def __init__(self):
        self.payloads = []

    def __call__(self, payload):
        self.payloads.append(payload)

    @property
    def count(self):
        return len(self.payloads)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def registry():
    return TopicRegistry()


@pytest.fixture
def store(db):
    return OrderStore(db)


@pytest.fixture
def menu(db):
    items = [
        MenuItem(id=1, name="Nachos", category="Starters", price=6.5, stock=20, stripe_id="price_nachos"),
        MenuItem(id=2, name="Tacos", category="Mains", price=9.25, stock=15, stripe_id="price_tacos"),
        MenuItem(id=3, name="Churros", category="Desserts", price=4.0, stock=10, stripe_id=None),
        MenuItem(id=4, name="Mole", category="Mains", price=12.0, stock=0, available=False),
    ]
    db.add_all(items)
    db.add_all([DiningTable(id=1, number=1, seats=2), DiningTable(id=5, number=5, seats=6)])
    db.commit()
    return items


@pytest.fixture
def make_order(db, menu):
    def _make(order_id=None, status=OrderStatus.PENDING, customer_id=5, table_id=5):
        order = Order(
            id=order_id,
            customer_id=customer_id,
            table_id=table_id,
            status=status,
            total_price=13.0,
            paid=False,
            items=[OrderItem(menu_item_id=1, quantity=2, unit_price=6.5)],
        )
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    return _make


@pytest.fixture
def client(db, registry):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.state.registry = registry
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def recorder():
    return Recorder()
