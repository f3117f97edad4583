"""Payment domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fd_common.enums import PaymentMethod, PaymentStatus


@dataclass
class Payment:
    id: str
    order_id: str
    amount: int
    payment_method: PaymentMethod
    status: PaymentStatus = PaymentStatus.PENDING
    intent_id: str | None = None  # gateway preference / checkout id
    external_payment_id: str | None = None  # gateway payment id, set by notifications
    gateway_status: str | None = None  # raw last status reported by the gateway
    refund_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class GatewayNotification:
    """A gateway status report, already resolved to payment id + order reference."""

    external_payment_id: str
    order_reference: str
    gateway_status: str


@dataclass(frozen=True)
class GatewayPayment:
    id: str
    status: str
    external_reference: str
    amount: int | None = None


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    redirect_url: str
    simulated: bool = False


@dataclass(frozen=True)
class ReconciliationOutcome:
    """What one notification did. Returned to the webhook, which always acks."""

    external_payment_id: str
    order_id: str
    status: PaymentStatus | None
    applied: bool
    materialized: int = 0
    detail: str = ""
