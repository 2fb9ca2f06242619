"""
Pytest fixtures for API tests.

Provides:
- The application with the database dependency bound to the test session
- An async HTTP client over ASGI
- A synchronous client for the realtime socket
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from carhaus.db.postgres.session import get_db
from carhaus.main import create_application


@pytest.fixture
def app() -> FastAPI:
    """Create a fresh application instance."""
    return create_application()


@pytest_asyncio.fixture
async def async_client(app: FastAPI, db_session) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client for testing."""

    # Override the database dependency
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def socket_client(app: FastAPI) -> TestClient:
    """Synchronous client for WebSocket routes, which never touch the database."""
    return TestClient(app)
