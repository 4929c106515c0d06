"""
API test fixtures.
An app wired to the test engine and database, served in-process over httpx.
"""
from typing import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from taskflow.database import get_db
from taskflow.main import create_app


def as_member(member_id: int) -> dict:
    """Headers identifying the viewer."""
    return {"X-Member-Id": str(member_id)}


@pytest_asyncio.fixture
async def app(comment_engine, async_session):
    """Application bound to the test engine and session."""
    application = create_app(comment_engine)

    async def override_get_db():
        yield async_session

    application.dependency_overrides[get_db] = override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for the test app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
