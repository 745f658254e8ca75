"""
Pytest configuration and fixtures for backend tests.
"""

import os

# Settings are read at import time: configure before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SWEEPERS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dinein_api.main import app
from dinein_api.models import Addon, Base, Category, MenuItem, Table
from shared.infrastructure.db import get_db
from tests.helpers import FrozenClock, session_headers


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    """Factory handing out new sessions on the test database (for sweepers)."""
    return TestingSessionLocal


@pytest.fixture(scope="function")
def client(db_session):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            # Mirror get_db closing the session: drop anything left uncommitted
            db_session.rollback()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def clock():
    return FrozenClock()


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def seed_tables(db_session):
    """Free tables 5 and 6."""
    tables = [Table(number=n, is_occupied=False, pax=0) for n in (5, 6)]
    db_session.add_all(tables)
    db_session.commit()
    for table in tables:
        db_session.refresh(table)
    return tables


@pytest.fixture
def table5(seed_tables):
    return seed_tables[0]


@pytest.fixture
def table6(seed_tables):
    return seed_tables[1]


@pytest.fixture
def seed_category(db_session):
    category = Category(
        name="Mains",
        prefix="M",
        description="Main dishes",
        display_order=1,
        is_active=True,
        last_sequence=1,
    )
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


@pytest.fixture
def seed_menu_item(db_session, seed_category):
    """M001 Burger at 10.00."""
    item = MenuItem(
        id="M001",
        category_id=seed_category.id,
        name="Burger",
        description="Beef burger",
        price=Decimal("10.00"),
        image_path="/Images/burger.jpg",
        is_available=True,
    )
    db_session.add(item)
    db_session.commit()
    db_session.refresh(item)
    return item


@pytest.fixture
def seed_addons(db_session, seed_menu_item):
    """Cheese (+1.50), Bacon (+2.00) and Vegan patty (+0.00) for M001, no conflicts yet."""
    addons = [
        Addon(menu_item_id=seed_menu_item.id, name="Cheese", price=Decimal("1.50")),
        Addon(menu_item_id=seed_menu_item.id, name="Bacon", price=Decimal("2.00")),
        Addon(menu_item_id=seed_menu_item.id, name="Vegan patty", price=Decimal("0.00")),
    ]
    db_session.add_all(addons)
    db_session.commit()
    for addon in addons:
        db_session.refresh(addon)
    return addons


@pytest.fixture
def diner_headers():
    return session_headers("session-alice")


@pytest.fixture
def other_diner_headers():
    return session_headers("session-bob")
