from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.fd_payment.domain.models import (
    GatewayNotification,
    Payment,
    PaymentIntent,
    ReconciliationOutcome,
)


class CreateIntentRequest(BaseModel):
    order_id: str
    payer_email: str | None = None


class RefundRequest(BaseModel):
    reason: str = Field(min_length=3, max_length=500)


class IntentResponse(BaseModel):
    payment_id: str
    intent_id: str
    redirect_url: str
    simulated: bool


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    amount: int
    payment_method: str
    status: str
    intent_id: str | None
    external_payment_id: str | None
    gateway_status: str | None
    refund_reason: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class WebhookAck(BaseModel):
    received: bool = True
    applied: bool = False
    status: str | None = None
    detail: str = ""


def payment_to_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        order_id=payment.order_id,
        amount=payment.amount,
        payment_method=payment.payment_method.value,
        status=payment.status.value,
        intent_id=payment.intent_id,
        external_payment_id=payment.external_payment_id,
        gateway_status=payment.gateway_status,
        refund_reason=payment.refund_reason,
        created_at=payment.created_at,
        updated_at=payment.updated_at,
    )


def intent_to_response(payment: Payment, intent: PaymentIntent) -> IntentResponse:
    return IntentResponse(
        payment_id=payment.id,
        intent_id=intent.intent_id,
        redirect_url=intent.redirect_url,
        simulated=intent.simulated,
    )


def outcome_to_ack(outcome: ReconciliationOutcome) -> WebhookAck:
    return WebhookAck(
        applied=outcome.applied,
        status=outcome.status.value if outcome.status else None,
        detail=outcome.detail,
    )


def parse_resolved_notification(body: dict[str, Any]) -> GatewayNotification | None:
    """Accept an already-resolved notification body; None when fields are missing."""
    external_id = body.get("external_payment_id")
    order_reference = body.get("order_reference")
    status = body.get("status")
    if not external_id or not order_reference or not status:
        return None
    return GatewayNotification(
        external_payment_id=str(external_id),
        order_reference=str(order_reference),
        gateway_status=str(status),
    )


def envelope_payment_id(body: dict[str, Any]) -> str | None:
    """Gateway envelope {"type": "payment", "data": {"id": ...}} -> payment id."""
    if body.get("type") != "payment":
        return None
    data = body.get("data")
    if not isinstance(data, dict) or data.get("id") is None:
        return None
    return str(data["id"])
