"""
Configuration for E2E tests
Fixtures for end-to-end testing
"""

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from docgov.main import app


@pytest_asyncio.fixture
async def client(database) -> AsyncClient:
    """HTTP client against the app, backed by the per-test database"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
