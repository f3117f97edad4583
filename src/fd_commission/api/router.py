"""Commission API router: admin ledger management and team-member self service."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_commission.application.ledger import CommissionLedger, get_commission_ledger
from src.fd_commission.application.schemas import (
    MySummaryResponse,
    OverallSummaryResponse,
    RecordPaymentRequest,
    UpdateCommissionStatusRequest,
    payment_to_response,
    record_to_response,
    summary_to_response,
    totals_to_response,
)
from src.fd_common.database import get_db_session
from src.fd_common.enums import CommissionStatus
from src.fd_common.response import ApiResponse, respond
from src.fd_gateway.auth.capabilities import Actor
from src.fd_gateway.auth.dependencies import get_current_actor

router = APIRouter(prefix="/commissions", tags=["commissions"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Ledger = Annotated[CommissionLedger, Depends(get_commission_ledger)]
CurrentActor = Annotated[Actor, Depends(get_current_actor)]


@router.get("/me", response_model=ApiResponse)
async def my_commissions(
    request: Request,
    db: DbSession,
    ledger: Ledger,
    actor: CurrentActor,
    commission_status: CommissionStatus | None = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    records = await ledger.my_commissions(db, actor, commission_status, limit, offset)
    return respond(request, [record_to_response(r).model_dump(mode="json") for r in records])


@router.get("/me/summary", response_model=ApiResponse)
async def my_summary(request: Request, db: DbSession, ledger: Ledger, actor: CurrentActor) -> ApiResponse:
    member, summary = await ledger.my_summary(db, actor)
    data = MySummaryResponse(
        member_id=member.id,
        percentage_bps=member.percentage_bps,
        summary=summary_to_response(summary),
    )
    return respond(request, data.model_dump(mode="json"))


@router.get("", response_model=ApiResponse)
async def list_commissions(
    request: Request,
    db: DbSession,
    ledger: Ledger,
    actor: CurrentActor,
    member_id: str | None = Query(None),
    commission_status: CommissionStatus | None = Query(None, alias="status"),
    start_date: datetime | None = Query(None),
    end_date: datetime | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiResponse:
    records = await ledger.list_commissions(
        db,
        actor,
        member_id=member_id,
        status=commission_status,
        created_from=start_date,
        created_to=end_date,
        limit=limit,
        offset=offset,
    )
    return respond(request, [record_to_response(r).model_dump(mode="json") for r in records])


@router.get("/summary", response_model=ApiResponse)
async def overall_summary(
    request: Request, db: DbSession, ledger: Ledger, actor: CurrentActor
) -> ApiResponse:
    overall, by_member = await ledger.summary(db, actor)
    data = OverallSummaryResponse(
        overall=summary_to_response(overall),
        by_member=[totals_to_response(t) for t in by_member],
    )
    return respond(request, data.model_dump(mode="json"))


@router.get("/orders/{order_id}", response_model=ApiResponse)
async def order_commissions(
    request: Request, order_id: str, db: DbSession, ledger: Ledger, actor: CurrentActor
) -> ApiResponse:
    records = await ledger.list_for_order(db, order_id, actor)
    return respond(request, [record_to_response(r).model_dump(mode="json") for r in records])


@router.post(
    "/orders/{order_id}/materialize",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse,
)
async def materialize_order(
    request: Request, order_id: str, db: DbSession, ledger: Ledger, actor: CurrentActor
) -> ApiResponse:
    """Manual materialization; a repeat attempt is rejected with 409."""
    records = await ledger.materialize_now(db, order_id, actor)
    return respond(
        request,
        [record_to_response(r).model_dump(mode="json") for r in records],
        "Commissions materialized",
    )


@router.patch("/{commission_id}/status", response_model=ApiResponse)
async def update_commission_status(
    request: Request,
    commission_id: str,
    body: UpdateCommissionStatusRequest,
    db: DbSession,
    ledger: Ledger,
    actor: CurrentActor,
) -> ApiResponse:
    record = await ledger.update_status(db, commission_id, body.status, actor)
    return respond(request, record_to_response(record).model_dump(mode="json"), f"Commission {record.status.value}")


@router.post("/payments", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def record_payment(
    request: Request,
    body: RecordPaymentRequest,
    db: DbSession,
    ledger: Ledger,
    actor: CurrentActor,
) -> ApiResponse:
    payment = await ledger.record_payment(
        db,
        actor,
        member_id=body.member_id,
        amount=body.amount,
        payment_method=body.payment_method,
        notes=body.notes,
        commission_ids=body.commission_ids,
    )
    return respond(request, payment_to_response(payment).model_dump(mode="json"), "Payment recorded")
