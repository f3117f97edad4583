"""Delivery API router: courier claims, pickup/delivery, location, earnings."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.database import get_db_session
from src.fd_common.response import ApiResponse, respond
from src.fd_delivery.application.schemas import (
    LocationRequest,
    delivery_to_response,
    earnings_to_response,
    position_to_response,
)
from src.fd_delivery.application.service import DeliveryService, get_delivery_service
from src.fd_gateway.auth.capabilities import Actor
from src.fd_gateway.auth.dependencies import get_current_actor
from src.fd_order.application.schemas import order_to_response

router = APIRouter(prefix="/delivery", tags=["delivery"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Service = Annotated[DeliveryService, Depends(get_delivery_service)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]


@router.get("/orders/claimable", response_model=ApiResponse)
async def list_claimable(
    request: Request,
    db: DbSession,
    service: Service,
    actor: CurrentActor,
    limit: int = Query(50, ge=1, le=200),
) -> ApiResponse:
    orders = await service.list_claimable(db, actor, limit)
    return respond(request, [order_to_response(o).model_dump(mode="json") for o in orders])


@router.get("/orders/mine", response_model=ApiResponse)
async def list_assigned(
    request: Request, db: DbSession, service: Service, actor: CurrentActor
) -> ApiResponse:
    orders = await service.assigned(db, actor)
    return respond(request, [order_to_response(o).model_dump(mode="json") for o in orders])


@router.get("/orders/current", response_model=ApiResponse)
async def current_order(
    request: Request, db: DbSession, service: Service, actor: CurrentActor
) -> ApiResponse:
    order = await service.current(db, actor)
    return respond(request, order_to_response(order).model_dump(mode="json") if order else None)


@router.post("/orders/{order_id}/claim", response_model=ApiResponse)
async def claim_order(
    request: Request, order_id: str, db: DbSession, service: Service, actor: CurrentActor
) -> ApiResponse:
    order = await service.claim(db, order_id, actor)
    return respond(request, order_to_response(order).model_dump(mode="json"), "Order claimed")


@router.post("/orders/{order_id}/release", response_model=ApiResponse)
async def release_order(
    request: Request, order_id: str, db: DbSession, service: Service, actor: CurrentActor
) -> ApiResponse:
    order = await service.release(db, order_id, actor)
    return respond(request, order_to_response(order).model_dump(mode="json"), "Order released")


@router.post("/orders/{order_id}/picked-up", response_model=ApiResponse)
async def mark_picked_up(
    request: Request, order_id: str, db: DbSession, service: Service, actor: CurrentActor
) -> ApiResponse:
    order = await service.mark_picked_up(db, order_id, actor)
    return respond(request, order_to_response(order).model_dump(mode="json"), "Order on the way")


@router.post("/orders/{order_id}/delivered", response_model=ApiResponse)
async def mark_delivered(
    request: Request, order_id: str, db: DbSession, service: Service, actor: CurrentActor
) -> ApiResponse:
    order = await service.mark_delivered(db, order_id, actor)
    return respond(request, order_to_response(order).model_dump(mode="json"), "Order delivered")


@router.get("/orders/{order_id}/position", response_model=ApiResponse)
async def order_courier_position(
    request: Request, order_id: str, db: DbSession, service: Service, actor: CurrentActor
) -> ApiResponse:
    position = await service.last_position(db, order_id, actor)
    return respond(request, position_to_response(position).model_dump() if position else None)


@router.put("/location", response_model=ApiResponse)
async def update_location(
    request: Request,
    body: LocationRequest,
    db: DbSession,
    service: Service,
    actor: CurrentActor,
) -> ApiResponse:
    position = await service.update_location(db, actor, body.latitude, body.longitude)
    if position is None:
        return respond(request, None, "No order on the way; location not broadcast")
    return respond(request, position_to_response(position).model_dump(), "Location updated")


@router.get("/history", response_model=ApiResponse)
async def delivery_history(
    request: Request,
    db: DbSession,
    service: Service,
    actor: CurrentActor,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    records = await service.history(db, actor, limit, offset)
    return respond(request, [delivery_to_response(r).model_dump(mode="json") for r in records])


@router.get("/earnings", response_model=ApiResponse)
async def delivery_earnings(
    request: Request,
    db: DbSession,
    service: Service,
    actor: CurrentActor,
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
) -> ApiResponse:
    summary = await service.earnings(db, actor, start, end)
    return respond(request, earnings_to_response(summary).model_dump(mode="json"))
