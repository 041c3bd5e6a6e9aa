"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.cron import get_cron_secret
from api.plaid import _get_plaid_client
from api.snaptrade import _get_snaptrade_client
from database import Base, get_db
from main import app
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    categories,
    plaid_item,
    snaptrade_user,
)
from tests.fixtures.mocks import (
    SAMPLE_BANK_ACCOUNTS,
    SAMPLE_BROKERAGE_ACCOUNTS,
    SAMPLE_BROKERAGE_CONNECTIONS,
    SAMPLE_BROKERAGE_POSITIONS,
    MockPlaidClient,
    MockSnapTradeClient,
)

CRON_SECRET = "test-cron-secret"


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
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
    """Mock bank provider with two sample accounts and an empty change feed."""
    return MockPlaidClient(accounts=SAMPLE_BANK_ACCOUNTS)


@pytest.fixture(name="mock_snaptrade_client")
def mock_snaptrade_client_fixture():
    """Mock brokerage provider with sample connections, accounts and positions."""
    return MockSnapTradeClient(
        connections=SAMPLE_BROKERAGE_CONNECTIONS,
        accounts=SAMPLE_BROKERAGE_ACCOUNTS,
        positions=SAMPLE_BROKERAGE_POSITIONS,
    )


@pytest.fixture(name="client")
def client_fixture(db, mock_plaid_client, mock_snaptrade_client):
    """Create a test client with the test database and mocked providers."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[_get_plaid_client] = lambda: mock_plaid_client
    app.dependency_overrides[_get_snaptrade_client] = lambda: mock_snaptrade_client
    app.dependency_overrides[get_cron_secret] = lambda: CRON_SECRET
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="cron_headers")
def cron_headers_fixture():
    """Headers carrying the shared cron secret used by the test client."""
    return {"X-Cron-Secret": CRON_SECRET}
