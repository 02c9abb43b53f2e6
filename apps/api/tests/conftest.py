"""
Pytest configuration and fixtures

IMPORTANT: All database tests use transactional rollback isolation.
Nothing created during a test persists past it, including rows the code
under test commits.
"""
import pytest
import sys
import os
from uuid import uuid4
from datetime import datetime, timezone

# In-memory SQLite for the whole run; must be set before core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FORMAT", "text")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session
from core.database import Base, engine
from models import User


@pytest.fixture(scope="session", autouse=True)
def _create_schema():
    """Create every table once for the run."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a database session with transactional rollback.

    All changes made during the test are rolled back after the test completes.
    """
    connection = engine.connect()
    transaction = connection.begin()

    # commit()/rollback() inside the code under test only touch a savepoint
    session = Session(bind=connection, join_transaction_mode="create_savepoint")

    yield session

    # Rollback everything - nothing persists
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def test_user(db_session):
    """
    Create a test user.

    No cleanup needed - transactional rollback handles it automatically.
    """
    user = User(
        email=f"test_{uuid4()}@example.com",
        display_name="Test User",
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def fixed_now():
    """Reference instant used by context-driven tests (a Wednesday)."""
    return datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

