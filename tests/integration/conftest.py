"""API test fixtures over an in-memory database."""

from collections.abc import AsyncGenerator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from payout_engine.api.app import create_app
from payout_engine.api.dependencies import get_db_session, get_dispatcher
from payout_engine.database import create_session_factory


@pytest_asyncio.fixture
async def client(engine, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    """Create async HTTP client bound to the per-test database."""
    session_factory = create_session_factory(engine)

    async def override_db_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
