"""PaymentService — checkout intents, refunds and payment listings.

No row lock is held across a gateway call: the order is read, the gateway is
called, and only then are payment rows written (and locked) in a short
transaction.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.database import with_store_timeout
from src.fd_common.enums import ActorRole, PaymentStatus
from src.fd_common.errors import (
    ForbiddenError,
    IllegalPaymentTransitionError,
    InvalidCredentialsError,
    PaymentNotFoundError,
)
from src.fd_common.id_generator import generate_id
from src.fd_gateway.auth.capabilities import Actor, Capability, require
from src.fd_notify.domain.events import payment_status_changed
from src.fd_notify.infrastructure.bus import EventPublisherProtocol, get_notification_bus
from src.fd_order.application.service import ensure_owner
from src.fd_order.application.store import OrderStore
from src.fd_order.domain.models import Order
from src.fd_payment.domain.models import Payment, PaymentIntent
from src.fd_payment.domain.repository import PaymentRepositoryProtocol
from src.fd_payment.domain.status import ensure_refund_transition
from src.fd_payment.infrastructure.gateway_client import PaymentGatewayClient, get_gateway_client
from src.fd_payment.infrastructure.persistence import PaymentRepository

logger = logging.getLogger(__name__)

_SETTLED = (PaymentStatus.PAID, PaymentStatus.REFUND_REQUESTED, PaymentStatus.REFUNDED)


class PaymentService:
    def __init__(
        self,
        payments: PaymentRepositoryProtocol | None = None,
        orders: OrderStore | None = None,
        gateway: PaymentGatewayClient | None = None,
        publisher: EventPublisherProtocol | None = None,
    ) -> None:
        self._payments: PaymentRepositoryProtocol = payments or PaymentRepository()
        self._orders = orders or OrderStore()
        self._gateway = gateway or get_gateway_client()
        self._publisher: EventPublisherProtocol = publisher or get_notification_bus()

    @property
    def gateway(self) -> PaymentGatewayClient:
        return self._gateway

    async def create_payment_intent(
        self,
        db: AsyncSession,
        order_id: str,
        actor: Actor | None,
        payer_email: str | None = None,
    ) -> tuple[Payment, PaymentIntent]:
        """Open a gateway checkout for the order total.

        Guest orders (no customer) can be paid without a token; an order that
        belongs to a customer can only be paid by that customer or an admin.
        """
        if actor is not None:
            require(actor, Capability.CREATE_PAYMENT)
        order = await with_store_timeout(self._orders.get(db, order_id))
        if order.customer_id is not None:
            if actor is None:
                raise ForbiddenError("order belongs to a registered customer")
            ensure_owner(actor, order)
        if order.payment_status in _SETTLED:
            raise IllegalPaymentTransitionError(order.payment_status.value, PaymentStatus.PENDING.value)

        intent = await self._gateway.create_intent(order, payer_email)
        payment = Payment(
            id=generate_id(),
            order_id=order.id,
            amount=order.total,
            payment_method=order.payment_method,
            intent_id=intent.intent_id,
        )
        stored = await with_store_timeout(self._insert_tx(db, payment))
        logger.info("Payment intent %s for order %s (simulated=%s)", intent.intent_id, order.id, intent.simulated)
        return stored, intent

    async def _insert_tx(self, db: AsyncSession, payment: Payment) -> Payment:
        try:
            stored = await self._payments.insert(payment, db)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return stored

    async def _load(self, db: AsyncSession, payment_id: str) -> Payment:
        payment = await self._payments.get_by_id(payment_id, db, for_update=True)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    async def request_refund(
        self, db: AsyncSession, payment_id: str, actor: Actor | None, reason: str
    ) -> Payment:
        """paid -> refund_requested, by the paying customer or an admin."""
        actor = require(actor, Capability.REQUEST_REFUND)
        return await with_store_timeout(self._request_refund_tx(db, payment_id, actor, reason))

    async def _request_refund_tx(
        self, db: AsyncSession, payment_id: str, actor: Actor, reason: str
    ) -> Payment:
        try:
            payment = await self._load(db, payment_id)
            order = await self._orders.get(db, payment.order_id)
            if actor.role is not ActorRole.ADMIN and order.customer_id != actor.id:
                raise ForbiddenError(f"payment {payment_id} does not belong to {actor.id}")
            ensure_refund_transition(payment.status, PaymentStatus.REFUND_REQUESTED)
            updated = await self._payments.set_status(
                payment.id, PaymentStatus.REFUND_REQUESTED, db, refund_reason=reason
            )
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        logger.info("Refund requested for payment %s by %s", payment_id, actor.id)
        return updated

    async def process_refund(
        self, db: AsyncSession, payment_id: str, actor: Actor | None
    ) -> Payment:
        """refund_requested -> refunded (admin); mirrored onto the order's payment status."""
        require(actor, Capability.PROCESS_REFUND)
        payment = await with_store_timeout(self._payments.get_by_id(payment_id, db))
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        ensure_refund_transition(payment.status, PaymentStatus.REFUNDED)
        if payment.external_payment_id:
            await self._gateway.refund(payment.external_payment_id)

        updated, order, previous = await with_store_timeout(self._process_refund_tx(db, payment_id))
        await self._publisher.publish(payment_status_changed(order, previous.value))
        return updated

    async def _process_refund_tx(
        self, db: AsyncSession, payment_id: str
    ) -> tuple[Payment, Order, PaymentStatus]:
        try:
            payment = await self._load(db, payment_id)
            ensure_refund_transition(payment.status, PaymentStatus.REFUNDED)
            updated = await self._payments.set_status(payment.id, PaymentStatus.REFUNDED, db)
            current = await self._orders.get(db, payment.order_id)
            order = await self._orders.update_payment_status(db, payment.order_id, PaymentStatus.REFUNDED)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        logger.info("Refund processed for payment %s (order %s)", payment_id, order.id)
        return updated, order, current.payment_status

    async def list_payments_for_order(
        self, db: AsyncSession, order_id: str, actor: Actor | None
    ) -> list[Payment]:
        if actor is None:
            raise InvalidCredentialsError()
        order = await with_store_timeout(self._orders.get(db, order_id))
        ensure_owner(actor, order)
        return await with_store_timeout(self._payments.list_for_order(order_id, db))


_service: PaymentService | None = None


def get_payment_service() -> PaymentService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = PaymentService()
    return _service
