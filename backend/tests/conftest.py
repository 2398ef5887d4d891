# backend/tests/conftest.py
"""
Pytest configuration for the studio backend.

Every test that touches the database gets a fresh in-memory SQLite
engine, so tests never share rows. Settings are forced to safe values
BEFORE any application import.
"""

import os

# CRITICAL: Set test environment BEFORE any app imports!
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.pop("REDIS_URL", None)
os.environ["CI"] = "true"  # skip .env loading

from typing import List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from alma_studio.core.config import settings
from alma_studio.database import Base, init_db
from alma_studio.models import Instructor, Product
from alma_studio.services.email_sender import ConsoleEmailSender
from tests.factories.studio_builders import (
    intro_product_row,
    package_product_row,
    subscription_product_row,
)


@pytest.fixture(autouse=True)
def _default_settings(monkeypatch):
    """Reset the admission policy for every test."""
    monkeypatch.setattr(settings, "enforce_capacity_on_admission", True)
    monkeypatch.setattr(settings, "capacity_counts_pending_bookings", False)
    monkeypatch.setattr(settings, "redis_url", None)
    monkeypatch.setattr(settings, "session_lock_wait_s", 0.2)
    monkeypatch.setattr(settings, "default_class_capacity", 8)


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Session:
    TestingSessionLocal = sessionmaker(
        bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
    )
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def sender() -> ConsoleEmailSender:
    return ConsoleEmailSender()


@pytest.fixture
def catalog(db) -> List[Product]:
    """Instructors 1-3 plus one product of each scheduled kind."""
    db.add_all(
        [
            Instructor(id=1, name="Carolina", color_scheme="amber"),
            Instructor(id=2, name="Ana", color_scheme="teal"),
            Instructor(id=3, name="Lucía", color_scheme="rose"),
        ]
    )
    products = [
        Product(**intro_product_row()),
        Product(**package_product_row()),
        Product(**subscription_product_row()),
    ]
    db.add_all(products)
    db.commit()
    return products
