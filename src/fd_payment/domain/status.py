"""Payment status vocabulary and the monotonic guard over notifications.

Gateway -> internal:  approved -> paid, rejected -> failed, anything else -> pending.

Notifications may arrive duplicated or out of order, so a reported status is
only applied when it moves the payment forward:

    pending -> paid | failed
    failed  -> paid            (customer retried on the same checkout)

Re-reporting the current status is a no-op. Everything else (pending after a
final status, failed after paid, anything once the refund branch started) is
ignored. The refund branch (paid -> refund_requested -> refunded) is driven
only by explicit refund operations, never by notifications.
"""

from enum import Enum

from src.fd_common.enums import PaymentStatus
from src.fd_common.errors import IllegalPaymentTransitionError

_GATEWAY_STATUS_MAP = {
    "approved": PaymentStatus.PAID,
    "rejected": PaymentStatus.FAILED,
}

NOTIFICATION_TRANSITIONS = frozenset(
    {
        (PaymentStatus.PENDING, PaymentStatus.PAID),
        (PaymentStatus.PENDING, PaymentStatus.FAILED),
        (PaymentStatus.FAILED, PaymentStatus.PAID),
    }
)

REFUND_TRANSITIONS = frozenset(
    {
        (PaymentStatus.PAID, PaymentStatus.REFUND_REQUESTED),
        (PaymentStatus.REFUND_REQUESTED, PaymentStatus.REFUNDED),
    }
)


class GuardDecision(str, Enum):
    APPLY = "apply"
    NOOP = "noop"  # already applied
    IGNORE = "ignore"  # would regress


def map_gateway_status(gateway_status: str) -> PaymentStatus:
    return _GATEWAY_STATUS_MAP.get(gateway_status.strip().lower(), PaymentStatus.PENDING)


def decide(current: PaymentStatus, incoming: PaymentStatus) -> GuardDecision:
    if current is incoming:
        return GuardDecision.NOOP
    if (current, incoming) in NOTIFICATION_TRANSITIONS:
        return GuardDecision.APPLY
    return GuardDecision.IGNORE


def ensure_refund_transition(current: PaymentStatus, requested: PaymentStatus) -> None:
    if (current, requested) not in REFUND_TRANSITIONS:
        raise IllegalPaymentTransitionError(current.value, requested.value)
