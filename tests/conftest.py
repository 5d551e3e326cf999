"""
Test configuration and fixtures for AllergyCare.

- Function-scoped in-memory SQLite engine, so every test starts empty
- TestClient with database dependency override
- In-memory record store for service-level tests
- Mock advisory summarizer
"""

import os

# Point the app's own engine at a throwaway database before app modules load
os.environ["DATABASE_URL"] = "sqlite://"

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401  (registers models on Base.metadata)
from app.database import Base, get_db
from app.main import app
from app.services.record_store import InMemoryRecordStore, SqlRecordStore


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
def test_engine():
    """
    Fresh in-memory database for a single test.

    StaticPool keeps one connection alive so the schema and data survive
    across sessions and TestClient worker threads.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(test_engine) -> Generator[Session, None, None]:
    """Database session on the per-test engine."""
    TestingSessionLocal = sessionmaker(bind=test_engine, autoflush=False)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def sql_store(db: Session) -> SqlRecordStore:
    return SqlRecordStore(db)


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()


# =============================================================================
# TestClient Fixtures
# =============================================================================


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """
    TestClient with database dependency override.

    The database session is injected into the app's get_db dependency.
    """

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - managed by db fixture

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        # Set default Referer so CSRF Origin middleware allows requests
        test_client.headers["referer"] = "http://testserver/"
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_advisory(monkeypatch):
    """
    Mock advisory summarizer wired into the analysis API.

    Configure the response or error per test on the returned mock.
    """
    from tests.fixtures.mocks import MockAdvisorySummarizer

    mock_summarizer = MockAdvisorySummarizer()
    monkeypatch.setattr("app.api.analysis.advisory_summarizer", mock_summarizer)

    return mock_summarizer
