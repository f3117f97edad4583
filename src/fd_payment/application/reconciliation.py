"""PaymentReconciliationWorker — applies gateway notifications to payments and orders.

Delivery is at-least-once and unordered, so every notification is reduced to
"move forward or do nothing" by the monotonic guard in domain/status.py.

One notification = one transaction, bounded by the store timeout:
  1. lock the order row (serialises concurrent redeliveries for one order);
  2. upsert the payment record keyed by external_payment_id;
  3. apply the mapped status to the payment and to the order's payment status;
  4. on the first `paid`, materialize commissions and stamp revenue recognition;
  5. commit, then publish events.
``handle_notification`` never raises: failures are logged and the outcome is
still an acknowledgement, so the gateway never enters a retry storm.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fd_commission.application.ledger import CommissionLedger
from src.fd_common.database import with_store_timeout
from src.fd_common.enums import PaymentMethod, PaymentStatus
from src.fd_common.errors import CommissionAlreadyMaterializedError
from src.fd_common.id_generator import generate_id
from src.fd_notify.domain.events import (
    DomainEvent,
    commission_materialized,
    payment_status_changed,
)
from src.fd_notify.infrastructure.bus import EventPublisherProtocol, get_notification_bus
from src.fd_order.application.store import OrderStore
from src.fd_payment.domain.models import GatewayNotification, Payment, ReconciliationOutcome
from src.fd_payment.domain.repository import PaymentRepositoryProtocol
from src.fd_payment.domain.status import GuardDecision, decide, map_gateway_status
from src.fd_payment.infrastructure.persistence import PaymentRepository

logger = logging.getLogger(__name__)


class PaymentReconciliationWorker:
    def __init__(
        self,
        payments: PaymentRepositoryProtocol | None = None,
        orders: OrderStore | None = None,
        ledger: CommissionLedger | None = None,
        publisher: EventPublisherProtocol | None = None,
        timeout: float | None = None,
    ) -> None:
        self._payments: PaymentRepositoryProtocol = payments or PaymentRepository()
        self._orders = orders or OrderStore()
        self._ledger = ledger or CommissionLedger(orders=self._orders.repo)
        self._publisher: EventPublisherProtocol = publisher or get_notification_bus()
        self._timeout = settings.STORE_TIMEOUT_SECONDS if timeout is None else timeout

    async def handle_notification(
        self, db: AsyncSession, notification: GatewayNotification
    ) -> ReconciliationOutcome:
        try:
            outcome, events = await with_store_timeout(
                self._reconcile(db, notification), self._timeout
            )
        except Exception:
            logger.exception(
                "Payment notification %s (order %s, gateway status %s) failed; acknowledged anyway",
                notification.external_payment_id,
                notification.order_reference,
                notification.gateway_status,
            )
            return ReconciliationOutcome(
                external_payment_id=notification.external_payment_id,
                order_id=notification.order_reference,
                status=None,
                applied=False,
                detail="failed",
            )

        for event in events:
            await self._publisher.publish(event)
        return outcome

    async def _reconcile(
        self, db: AsyncSession, n: GatewayNotification
    ) -> tuple[ReconciliationOutcome, list[DomainEvent]]:
        try:
            result = await self._apply(db, n)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return result

    async def _resolve_payment(
        self, db: AsyncSession, n: GatewayNotification, order_amount: int, order_method: PaymentMethod
    ) -> Payment:
        payment = await self._payments.get_by_external_id(n.external_payment_id, db)
        if payment is not None:
            return payment
        payment = await self._payments.attach_external_id(
            n.order_reference, n.external_payment_id, n.gateway_status, db
        )
        if payment is not None:
            return payment
        return await self._payments.upsert_by_external_id(
            Payment(
                id=generate_id(),
                order_id=n.order_reference,
                amount=order_amount,
                payment_method=order_method,
                external_payment_id=n.external_payment_id,
                gateway_status=n.gateway_status,
            ),
            db,
        )

    async def _apply(
        self, db: AsyncSession, n: GatewayNotification
    ) -> tuple[ReconciliationOutcome, list[DomainEvent]]:
        incoming = map_gateway_status(n.gateway_status)
        order = await self._orders.get(db, n.order_reference, for_update=True)
        payment = await self._resolve_payment(db, n, order.total, order.payment_method)
        events: list[DomainEvent] = []

        decision = decide(payment.status, incoming)
        if decision is not GuardDecision.APPLY:
            level = logging.DEBUG if decision is GuardDecision.NOOP else logging.WARNING
            logger.log(
                level,
                "Payment %s: %s -> %s %s",
                payment.id,
                payment.status.value,
                incoming.value,
                "already applied" if decision is GuardDecision.NOOP else "ignored (would regress)",
            )
            outcome = ReconciliationOutcome(
                external_payment_id=n.external_payment_id,
                order_id=order.id,
                status=payment.status,
                applied=False,
                detail=decision.value,
            )
            return outcome, events

        await self._payments.set_status(payment.id, incoming, db)
        logger.info("Payment %s (order %s): %s -> %s", payment.id, order.id, payment.status.value, incoming.value)

        if decide(order.payment_status, incoming) is GuardDecision.APPLY:
            previous = order.payment_status
            order = await self._orders.update_payment_status(db, order.id, incoming)
            events.append(payment_status_changed(order, previous.value))

        materialized = 0
        if incoming is PaymentStatus.PAID and not order.revenue_recognized:
            try:
                records = await self._ledger.materialize(db, order.id)
            except CommissionAlreadyMaterializedError:
                logger.warning("Commissions for order %s already materialized; continuing", order.id)
                records = []
            await self._orders.repo.mark_revenue_recognized(order.id, db)
            materialized = len(records)
            if records:
                events.append(
                    commission_materialized(order.id, {r.member_id: r.amount for r in records})
                )

        outcome = ReconciliationOutcome(
            external_payment_id=n.external_payment_id,
            order_id=order.id,
            status=incoming,
            applied=True,
            materialized=materialized,
            detail=GuardDecision.APPLY.value,
        )
        return outcome, events


_worker: PaymentReconciliationWorker | None = None


def get_reconciliation_worker() -> PaymentReconciliationWorker:
    global _worker  # noqa: PLW0603
    if _worker is None:
        _worker = PaymentReconciliationWorker()
    return _worker
