"""
Conftest for API integration tests
Defines fixtures specific to API testing

Note: These tests use ASGI transport for testing without requiring a running server.
The lifespan is not triggered, so the per-test database comes from the `database` fixture
and MinIO calls are replaced by the `storage` fixture.
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from docgov.main import app


@pytest_asyncio.fixture
async def client(database) -> AsyncClient:
    """
    Test HTTP client using ASGI transport
    Tests the FastAPI app directly without requiring a running server
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
