"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Catalog rows are seeded here; the engine only reads restaurants and products.
"""

import uuid
from collections.abc import AsyncIterator

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.fd_common.database import async_session_factory
from src.main import app


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncIterator[AsyncClient]:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def seeded_restaurant(client: AsyncClient) -> dict[str, str]:
    """A fresh active restaurant (12% commission) with two products."""
    suffix = uuid.uuid4().hex[:8]
    ids = {
        "restaurant_id": f"rest-{suffix}",
        "burger": f"burger-{suffix}",
        "pasta": f"pasta-{suffix}",
    }
    async with async_session_factory() as db:
        await db.execute(
            text(
                "INSERT INTO restaurants (id, name, is_active, commission_rate_bps) "
                "VALUES (:id, :name, TRUE, 1200)"
            ),
            {"id": ids["restaurant_id"], "name": f"Integration {suffix}"},
        )
        await db.execute(
            text(
                "INSERT INTO products (id, restaurant_id, name, price) VALUES "
                "(:burger, :rid, 'Burger', 1000), (:pasta, :rid, 'Pasta', 1500)"
            ),
            {"burger": ids["burger"], "pasta": ids["pasta"], "rid": ids["restaurant_id"]},
        )
        await db.commit()
    return ids
