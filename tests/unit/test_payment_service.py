"""Tests for PaymentService — checkout intents, refunds and listings."""

from unittest.mock import AsyncMock

import pytest

from src.fd_common.enums import EventType, PaymentStatus
from src.fd_common.errors import (
    ForbiddenError,
    IllegalPaymentTransitionError,
    InvalidCredentialsError,
    PaymentNotFoundError,
)
from src.fd_order.domain.models import Order
from src.fd_payment.domain.models import GatewayNotification, Payment
from tests.fakes import Engine, admin, build_engine, customer, make_draft


async def _paid(engine: Engine, owner: str = "c1") -> tuple[Order, Payment]:
    order = await engine.lifecycle.create_order(engine.session(), make_draft(), customer(owner))
    await engine.worker.handle_notification(
        engine.session(),
        GatewayNotification(external_payment_id="mp-1", order_reference=order.id, gateway_status="approved"),
    )
    return order, engine.rows("payments")[0]


class TestCreateIntent:
    async def test_simulated_intent_for_guest_order(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), None)

        payment, intent = await engine.payments.create_payment_intent(engine.session(), order.id, None)

        assert intent.simulated
        assert "simulated" in intent.intent_id
        assert order.tracking_number in intent.redirect_url
        assert payment.amount == order.total == 7500
        assert payment.intent_id == intent.intent_id
        assert payment.status is PaymentStatus.PENDING

    async def test_owner_pays_own_order(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), customer("c1"))
        payment, _ = await engine.payments.create_payment_intent(engine.session(), order.id, customer("c1"))
        assert payment.order_id == order.id

    async def test_guest_cannot_pay_customer_order(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), customer("c1"))
        with pytest.raises(ForbiddenError):
            await engine.payments.create_payment_intent(engine.session(), order.id, None)

    async def test_other_customer_cannot_pay(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), customer("c1"))
        with pytest.raises(ForbiddenError):
            await engine.payments.create_payment_intent(engine.session(), order.id, customer("c2"))

    async def test_paid_order_cannot_open_new_intent(self) -> None:
        engine = build_engine()
        order, _ = await _paid(engine)
        with pytest.raises(IllegalPaymentTransitionError):
            await engine.payments.create_payment_intent(engine.session(), order.id, customer("c1"))

    async def test_gateway_failure_writes_nothing(self) -> None:
        engine = build_engine()
        engine.payments.gateway.create_intent = AsyncMock(side_effect=RuntimeError("down"))  # type: ignore[method-assign]
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), None)
        with pytest.raises(RuntimeError):
            await engine.payments.create_payment_intent(engine.session(), order.id, None)
        assert engine.rows("payments") == []


class TestRefunds:
    async def test_customer_requests_refund(self) -> None:
        engine = build_engine()
        _, payment = await _paid(engine)

        updated = await engine.payments.request_refund(
            engine.session(), payment.id, customer("c1"), "food arrived cold"
        )

        assert updated.status is PaymentStatus.REFUND_REQUESTED
        assert updated.refund_reason == "food arrived cold"

    async def test_refund_of_pending_payment_is_illegal(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), customer("c1"))
        payment, _ = await engine.payments.create_payment_intent(engine.session(), order.id, customer("c1"))
        with pytest.raises(IllegalPaymentTransitionError):
            await engine.payments.request_refund(engine.session(), payment.id, customer("c1"), "changed mind")

    async def test_stranger_cannot_request_refund(self) -> None:
        engine = build_engine()
        _, payment = await _paid(engine)
        with pytest.raises(ForbiddenError):
            await engine.payments.request_refund(engine.session(), payment.id, customer("c2"), "nope")
        assert engine.rows("payments")[0].status is PaymentStatus.PAID

    async def test_admin_processes_refund(self) -> None:
        engine = build_engine()
        order, payment = await _paid(engine)
        await engine.payments.request_refund(engine.session(), payment.id, customer("c1"), "missing items")

        refunded = await engine.payments.process_refund(engine.session(), payment.id, admin())

        assert refunded.status is PaymentStatus.REFUNDED
        assert refunded.refund_reason == "missing items"
        assert engine.rows("orders")[0].payment_status is PaymentStatus.REFUNDED
        event = engine.publisher.events[-1]
        assert event.type is EventType.PAYMENT_STATUS_CHANGED
        assert event.payload["previous_payment_status"] == "paid"
        assert event.payload["order_id"] == order.id

    async def test_process_refund_calls_gateway(self) -> None:
        engine = build_engine()
        _, payment = await _paid(engine)
        engine.payments.gateway.refund = AsyncMock()  # type: ignore[method-assign]
        await engine.payments.request_refund(engine.session(), payment.id, admin(), "duplicate charge")
        await engine.payments.process_refund(engine.session(), payment.id, admin())
        engine.payments.gateway.refund.assert_awaited_once_with("mp-1")

    async def test_process_refund_requires_request_first(self) -> None:
        engine = build_engine()
        _, payment = await _paid(engine)
        with pytest.raises(IllegalPaymentTransitionError):
            await engine.payments.process_refund(engine.session(), payment.id, admin())

    async def test_customer_cannot_process_refund(self) -> None:
        engine = build_engine()
        _, payment = await _paid(engine)
        with pytest.raises(ForbiddenError):
            await engine.payments.process_refund(engine.session(), payment.id, customer("c1"))

    async def test_unknown_payment(self) -> None:
        engine = build_engine()
        with pytest.raises(PaymentNotFoundError):
            await engine.payments.process_refund(engine.session(), "nope", admin())

    async def test_notification_cannot_undo_refund(self) -> None:
        engine = build_engine()
        order, payment = await _paid(engine)
        await engine.payments.request_refund(engine.session(), payment.id, customer("c1"), "wrong order")
        outcome = await engine.worker.handle_notification(
            engine.session(),
            GatewayNotification(external_payment_id="mp-1", order_reference=order.id, gateway_status="approved"),
        )
        assert not outcome.applied
        assert engine.rows("payments")[0].status is PaymentStatus.REFUND_REQUESTED


class TestListPayments:
    async def test_owner_lists_payments(self) -> None:
        engine = build_engine()
        order, payment = await _paid(engine)
        payments = await engine.payments.list_payments_for_order(engine.session(), order.id, customer("c1"))
        assert [p.id for p in payments] == [payment.id]

    async def test_anonymous_cannot_list(self) -> None:
        engine = build_engine()
        order, _ = await _paid(engine)
        with pytest.raises(InvalidCredentialsError):
            await engine.payments.list_payments_for_order(engine.session(), order.id, None)
