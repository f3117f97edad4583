"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.fd_commission.api.router import router as commission_router
from src.fd_common.database import engine
from src.fd_common.errors import AppError
from src.fd_common.logging_config import setup_logging
from src.fd_common.redis_client import close_redis, get_redis
from src.fd_common.response import error_response, request_id_of
from src.fd_delivery.api.router import router as delivery_router
from src.fd_gateway.middleware.request_log import RequestLogMiddleware
from src.fd_notify.api.router import router as events_router
from src.fd_notify.infrastructure.bus import get_notification_bus
from src.fd_order.api.router import router as order_router
from src.fd_payment.api.router import router as payment_router
from src.fd_payment.infrastructure.gateway_client import close_gateway_client

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections, wire the event mirror. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    redis = await get_redis()
    await redis.ping()
    bus = get_notification_bus()
    bus.attach_redis(redis)
    listener = asyncio.create_task(bus.listen(redis))
    logger.info("%s %s started", settings.APP_NAME, VERSION)
    yield
    # Shutdown
    bus.attach_redis(None)
    listener.cancel()
    with suppress(asyncio.CancelledError):
        await listener
    await close_gateway_client()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version=VERSION,
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, retryable=exc.retryable)
    resp.request_id = request_id_of(request)
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
    )


app.include_router(order_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(commission_router, prefix="/api/v1")
app.include_router(delivery_router, prefix="/api/v1")
app.include_router(events_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": VERSION}
