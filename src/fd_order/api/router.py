"""Order API router: create, track, transition, cancel, list.

All endpoints return ApiResponse. Guests may create and track orders; every
other endpoint needs a Bearer token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.database import get_db_session
from src.fd_common.enums import OrderStatus
from src.fd_common.response import ApiResponse, respond
from src.fd_gateway.auth.capabilities import Actor
from src.fd_gateway.auth.dependencies import get_current_actor, get_optional_actor
from src.fd_order.application.schemas import (
    CreateOrderRequest,
    RestaurantScope,
    UpdateStatusRequest,
    order_to_response,
    order_to_tracking,
    page,
)
from src.fd_order.application.service import OrderLifecycleService, get_lifecycle_service

router = APIRouter(prefix="/orders", tags=["orders"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Service = Annotated[OrderLifecycleService, Depends(get_lifecycle_service)]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def create_order(
    request: Request,
    body: CreateOrderRequest,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor | None, Depends(get_optional_actor)],
) -> ApiResponse:
    order = await service.create_order(db, body.to_draft(), actor)
    return respond(request, order_to_response(order).model_dump(mode="json"), "Order created")


@router.get("/track/{tracking_number}", response_model=ApiResponse)
async def track_order(
    request: Request, tracking_number: str, db: DbSession, service: Service
) -> ApiResponse:
    order = await service.track(db, tracking_number)
    return respond(request, order_to_tracking(order).model_dump(mode="json"))


@router.get("/mine", response_model=ApiResponse)
async def list_my_orders(
    request: Request,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
    limit: int = Query(20, ge=1, le=100),
    cursor: str | None = Query(None, description="Pagination cursor (order ID)"),
) -> ApiResponse:
    orders = await service.list_for_customer(db, actor, limit + 1, cursor)
    return respond(request, page(orders, limit).model_dump(mode="json"))


@router.get("/restaurant", response_model=ApiResponse)
async def list_restaurant_orders(
    request: Request,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
    scope: RestaurantScope = Query("all"),
    limit: int = Query(50, ge=1, le=200),
    cursor: str | None = Query(None),
) -> ApiResponse:
    orders = await service.list_for_restaurant(db, actor, scope, limit + 1, cursor)
    return respond(request, page(orders, limit).model_dump(mode="json"))


@router.get("", response_model=ApiResponse)
async def list_all_orders(
    request: Request,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
    restaurant_id: str | None = Query(None),
    order_status: OrderStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    cursor: str | None = Query(None),
) -> ApiResponse:
    orders = await service.list_all(
        db, actor, restaurant_id=restaurant_id, status=order_status, limit=limit + 1, cursor=cursor
    )
    return respond(request, page(orders, limit).model_dump(mode="json"))


@router.get("/{order_id}", response_model=ApiResponse)
async def get_order(
    request: Request,
    order_id: str,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> ApiResponse:
    order = await service.get(db, order_id, actor)
    return respond(request, order_to_response(order).model_dump(mode="json"))


@router.patch("/{order_id}/status", response_model=ApiResponse)
async def update_order_status(
    request: Request,
    order_id: str,
    body: UpdateStatusRequest,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> ApiResponse:
    order = await service.transition(db, order_id, actor, body.expected_status, body.status)
    return respond(request, order_to_response(order).model_dump(mode="json"), "Status updated")


@router.post("/{order_id}/cancel", response_model=ApiResponse)
async def cancel_order(
    request: Request,
    order_id: str,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> ApiResponse:
    order = await service.cancel(db, order_id, actor)
    return respond(request, order_to_response(order).model_dump(mode="json"), "Order cancelled")
