"""Payment API router: checkout intents, gateway webhook, refunds, listings.

The webhook answers HTTP 200 for every request it receives, whatever happens
inside; reconciliation failures are logged, never surfaced to the gateway.
"""

import json
import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.database import get_db_session
from src.fd_common.response import ApiResponse, respond
from src.fd_gateway.auth.capabilities import Actor
from src.fd_gateway.auth.dependencies import get_current_actor, get_optional_actor
from src.fd_payment.application.reconciliation import (
    PaymentReconciliationWorker,
    get_reconciliation_worker,
)
from src.fd_payment.application.schemas import (
    CreateIntentRequest,
    RefundRequest,
    WebhookAck,
    envelope_payment_id,
    intent_to_response,
    outcome_to_ack,
    parse_resolved_notification,
    payment_to_response,
)
from src.fd_payment.application.service import PaymentService, get_payment_service
from src.fd_payment.domain.models import GatewayNotification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Service = Annotated[PaymentService, Depends(get_payment_service)]
Worker = Annotated[PaymentReconciliationWorker, Depends(get_reconciliation_worker)]


@router.post("/intents", status_code=status.HTTP_201_CREATED, response_model=ApiResponse)
async def create_intent(
    request: Request,
    body: CreateIntentRequest,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor | None, Depends(get_optional_actor)],
) -> ApiResponse:
    payment, intent = await service.create_payment_intent(db, body.order_id, actor, body.payer_email)
    return respond(request, intent_to_response(payment, intent).model_dump(), "Payment intent created")


async def _resolve(service: PaymentService, body: dict[str, Any]) -> GatewayNotification | None:
    notification = parse_resolved_notification(body)
    if notification is not None:
        return notification
    payment_id = envelope_payment_id(body)
    if payment_id is None:
        return None
    gateway_payment = await service.gateway.get_payment(payment_id)
    if not gateway_payment.external_reference:
        logger.warning("Gateway payment %s carries no order reference", payment_id)
        return None
    return GatewayNotification(
        external_payment_id=gateway_payment.id,
        order_reference=gateway_payment.external_reference,
        gateway_status=gateway_payment.status,
    )


@router.post("/webhook", status_code=status.HTTP_200_OK, response_model=ApiResponse)
async def payment_webhook(
    request: Request,
    db: DbSession,
    service: Service,
    worker: Worker,
) -> ApiResponse:
    raw = await request.body()
    notification: GatewayNotification | None = None
    try:
        body = json.loads(raw) if raw else None
        if isinstance(body, dict):
            notification = await _resolve(service, body)
    except Exception:
        logger.exception("Could not resolve payment webhook body: %r", raw[:500])

    if notification is None:
        logger.info("Payment webhook ignored: %r", raw[:200])
        return respond(request, WebhookAck(detail="ignored").model_dump(), "OK")

    outcome = await worker.handle_notification(db, notification)
    return respond(request, outcome_to_ack(outcome).model_dump(), "OK")


@router.get("/orders/{order_id}", response_model=ApiResponse)
async def list_order_payments(
    request: Request,
    order_id: str,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> ApiResponse:
    payments = await service.list_payments_for_order(db, order_id, actor)
    return respond(request, [payment_to_response(p).model_dump(mode="json") for p in payments])


@router.post("/{payment_id}/refund", response_model=ApiResponse)
async def request_refund(
    request: Request,
    payment_id: str,
    body: RefundRequest,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> ApiResponse:
    payment = await service.request_refund(db, payment_id, actor, body.reason)
    return respond(request, payment_to_response(payment).model_dump(mode="json"), "Refund requested")


@router.post("/{payment_id}/refund/process", response_model=ApiResponse)
async def process_refund(
    request: Request,
    payment_id: str,
    db: DbSession,
    service: Service,
    actor: Annotated[Actor, Depends(get_current_actor)],
) -> ApiResponse:
    payment = await service.process_refund(db, payment_id, actor)
    return respond(request, payment_to_response(payment).model_dump(mode="json"), "Refund processed")
