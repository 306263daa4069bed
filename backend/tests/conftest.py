"""
Pytest configuration and fixtures for the backend API tests.

Provides:
- Async SQLite in-memory database setup
- Token services built from a test-only secret
- FastAPI app with dependency overrides
- AsyncClient for testing async endpoints
- AsyncSession bound to the same test database
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

import models  # noqa: F401  (registers tables on Base.metadata)
from auth.jwt_service import TokenIssuer, TokenVerifier
from database import Base, get_db
from main import app

TEST_SECRET = "secret"
ACCESS_TTL = timedelta(minutes=15)
REFRESH_TTL = timedelta(days=30)


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(TEST_SECRET, ACCESS_TTL, REFRESH_TTL)


@pytest.fixture
def verifier() -> TokenVerifier:
    return TokenVerifier(TEST_SECRET)


@pytest_asyncio.fixture
async def session_factory():
    """
    Create an in-memory test database and yield its session factory.

    The engine is disposed after the test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        future=True,
    )

    async_session = sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        future=True,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_session

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Yield a session on the test database, closed in teardown."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(session_factory, issuer, verifier):
    """
    Create an AsyncClient pointing to the FastAPI app with an in-memory
    test database and token services signed with ``TEST_SECRET``.

    Yields:
        httpx.AsyncClient: Async HTTP client for making requests to the app.
    """
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_issuer = app.state.token_issuer
    original_verifier = app.state.token_verifier
    app.state.token_issuer = issuer
    app.state.token_verifier = verifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    # Cleanup
    app.state.token_issuer = original_issuer
    app.state.token_verifier = original_verifier
    app.dependency_overrides.clear()
