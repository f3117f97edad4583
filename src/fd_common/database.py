import asyncio
from collections.abc import AsyncGenerator, Awaitable
from typing import TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from config.settings import settings
from src.fd_common.errors import StoreUnavailableError

T = TypeVar("T")


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
    pool_timeout=settings.STORE_TIMEOUT_SECONDS,
    connect_args={"command_timeout": settings.STORE_TIMEOUT_SECONDS},
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an AsyncSession, auto-closes after request."""
    async with async_session_factory() as session:
        yield session


async def with_store_timeout(
    operation: Awaitable[T], timeout: float | None = None
) -> T:
    """Await a store operation with a bounded timeout.

    Timeouts and connection-level driver failures become the retryable
    StoreUnavailableError; business errors raised inside pass through untouched.
    """
    limit = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        return await asyncio.wait_for(operation, timeout=limit)
    except asyncio.TimeoutError:
        raise StoreUnavailableError(f"Store operation exceeded {limit}s") from None
    except OperationalError as exc:
        raise StoreUnavailableError(f"Store unavailable: {exc.orig}") from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StoreUnavailableError("Store connection lost") from exc
        raise
