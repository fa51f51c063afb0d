"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.auth import get_current_user
from api.plaid import _get_plaid_client
from api.transactions import get_transaction_sync_service
from database import Base, enable_sqlite_foreign_keys, get_db
from main import app
from services.transaction_sync_service import TransactionSyncService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    institution_link,
    other_user,
    receipt,
    user,
)
from tests.fixtures.mocks import MockPlaidClient


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mock_plaid_client")
def mock_plaid_client_fixture():
    """Create a mock Plaid client with no pending sync data."""
    return MockPlaidClient()


def _install_overrides(db, plaid_client, current_user=None, **service_kwargs):
    # Fail fast instead of waiting on a busy link
    service_kwargs.setdefault("lock_timeout", 0)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    def override_get_plaid_client():
        return plaid_client

    def override_get_sync_service():
        return TransactionSyncService(provider=plaid_client, **service_kwargs)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[_get_plaid_client] = override_get_plaid_client
    app.dependency_overrides[get_transaction_sync_service] = override_get_sync_service
    if current_user is not None:
        app.dependency_overrides[get_current_user] = lambda: current_user


@pytest.fixture(name="client")
def client_fixture(db, user, mock_plaid_client):
    """Create a test client signed in as the test user."""
    _install_overrides(db, mock_plaid_client, current_user=user)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="anonymous_client")
def anonymous_client_fixture(db, mock_plaid_client):
    """Create a test client that goes through real token verification."""
    _install_overrides(db, mock_plaid_client)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="client_for")
def client_for_fixture(db, user):
    """Build a test client signed in as the test user around a given Plaid client."""

    def _build(plaid_client, **service_kwargs):
        _install_overrides(db, plaid_client, current_user=user, **service_kwargs)
        return TestClient(app)

    yield _build
    app.dependency_overrides.clear()
