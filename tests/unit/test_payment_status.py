"""Tests for the payment status mapping and the monotonic notification guard."""

import itertools

import pytest

from src.fd_common.enums import PaymentStatus
from src.fd_common.errors import IllegalPaymentTransitionError
from src.fd_payment.application.schemas import envelope_payment_id, parse_resolved_notification
from src.fd_payment.domain.status import (
    GuardDecision,
    decide,
    ensure_refund_transition,
    map_gateway_status,
)

P = PaymentStatus


class TestMapGatewayStatus:
    def test_known_statuses(self) -> None:
        assert map_gateway_status("approved") is P.PAID
        assert map_gateway_status("rejected") is P.FAILED

    def test_case_and_whitespace(self) -> None:
        assert map_gateway_status(" APPROVED ") is P.PAID

    @pytest.mark.parametrize("raw", ["pending", "in_process", "authorized", "cancelled", ""])
    def test_everything_else_is_pending(self, raw: str) -> None:
        assert map_gateway_status(raw) is P.PENDING


class TestDecide:
    def test_forward_moves_apply(self) -> None:
        assert decide(P.PENDING, P.PAID) is GuardDecision.APPLY
        assert decide(P.PENDING, P.FAILED) is GuardDecision.APPLY
        assert decide(P.FAILED, P.PAID) is GuardDecision.APPLY

    @pytest.mark.parametrize("status", list(PaymentStatus))
    def test_same_status_is_noop(self, status: PaymentStatus) -> None:
        assert decide(status, status) is GuardDecision.NOOP

    def test_paid_never_regresses(self) -> None:
        assert decide(P.PAID, P.PENDING) is GuardDecision.IGNORE
        assert decide(P.PAID, P.FAILED) is GuardDecision.IGNORE

    def test_refund_branch_is_closed_to_notifications(self) -> None:
        for current, incoming in itertools.product(
            [P.REFUND_REQUESTED, P.REFUNDED], [P.PENDING, P.PAID, P.FAILED]
        ):
            assert decide(current, incoming) is GuardDecision.IGNORE

    def test_replaying_any_sequence_is_idempotent(self) -> None:
        reports = [P.PENDING, P.FAILED, P.PAID, P.PENDING, P.FAILED, P.PAID]
        for sequence in itertools.permutations(reports, 4):
            status = P.PENDING
            for incoming in sequence:
                if decide(status, incoming) is GuardDecision.APPLY:
                    status = incoming
            replayed = status
            for incoming in sequence:
                if decide(replayed, incoming) is GuardDecision.APPLY:
                    replayed = incoming
            assert replayed == status


class TestRefundTransitions:
    def test_legal(self) -> None:
        ensure_refund_transition(P.PAID, P.REFUND_REQUESTED)
        ensure_refund_transition(P.REFUND_REQUESTED, P.REFUNDED)

    @pytest.mark.parametrize(
        ("current", "requested"),
        [(P.PENDING, P.REFUND_REQUESTED), (P.PAID, P.REFUNDED), (P.REFUNDED, P.REFUND_REQUESTED)],
    )
    def test_illegal(self, current: PaymentStatus, requested: PaymentStatus) -> None:
        with pytest.raises(IllegalPaymentTransitionError):
            ensure_refund_transition(current, requested)


class TestWebhookBodies:
    def test_resolved_body(self) -> None:
        n = parse_resolved_notification(
            {"external_payment_id": 42, "order_reference": "o1", "status": "approved"}
        )
        assert n is not None
        assert (n.external_payment_id, n.order_reference, n.gateway_status) == ("42", "o1", "approved")

    def test_incomplete_body(self) -> None:
        assert parse_resolved_notification({"external_payment_id": "1", "status": "approved"}) is None

    def test_envelope(self) -> None:
        assert envelope_payment_id({"type": "payment", "data": {"id": 123}}) == "123"

    def test_other_envelopes(self) -> None:
        assert envelope_payment_id({"type": "merchant_order", "data": {"id": 1}}) is None
        assert envelope_payment_id({"type": "payment", "data": "x"}) is None
        assert envelope_payment_id({}) is None
