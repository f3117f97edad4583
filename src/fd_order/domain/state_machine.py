"""Order status state machine.

Legal transitions and the role that performs each one:

    received   -> preparing   restaurant
    received   -> cancelled   customer (own order) | admin
    preparing  -> ready       restaurant
    ready      -> on_the_way  courier holding the claim
    on_the_way -> delivered   courier holding the claim

Orders that no platform courier handles (pickup, restaurant-operated delivery)
have the two courier steps performed by the restaurant instead. An admin may
drive any legal transition. Holding the claim is enforced by the delivery
service; this module only answers "is this pair legal, and for whom".
"""

from src.fd_common.enums import ActorRole, OrderStatus
from src.fd_common.errors import (
    ForbiddenError,
    IllegalTransitionError,
    OrderFinalizedError,
)

TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], frozenset[ActorRole]] = {
    (OrderStatus.RECEIVED, OrderStatus.PREPARING): frozenset({ActorRole.RESTAURANT}),
    (OrderStatus.RECEIVED, OrderStatus.CANCELLED): frozenset({ActorRole.CUSTOMER}),
    (OrderStatus.PREPARING, OrderStatus.READY): frozenset({ActorRole.RESTAURANT}),
    (OrderStatus.READY, OrderStatus.ON_THE_WAY): frozenset({ActorRole.COURIER}),
    (OrderStatus.ON_THE_WAY, OrderStatus.DELIVERED): frozenset({ActorRole.COURIER}),
}


def is_legal(current: OrderStatus, requested: OrderStatus) -> bool:
    return (current, requested) in TRANSITIONS


def allowed_roles(
    current: OrderStatus, requested: OrderStatus, courier_operated: bool = True
) -> frozenset[ActorRole]:
    roles = TRANSITIONS.get((current, requested), frozenset())
    if not roles:
        return roles
    if not courier_operated and ActorRole.COURIER in roles:
        roles = (roles - {ActorRole.COURIER}) | {ActorRole.RESTAURANT}
    return roles | {ActorRole.ADMIN}


def validate_transition(
    order_id: str,
    current: OrderStatus,
    requested: OrderStatus,
    role: ActorRole,
    courier_operated: bool = True,
) -> None:
    """Raise unless `role` may move the order from `current` to `requested`.

    Check order: terminal state, then table membership, then role.
    """
    if current.is_terminal:
        raise OrderFinalizedError(order_id, current.value)
    if not is_legal(current, requested):
        raise IllegalTransitionError(current.value, requested.value)
    if role not in allowed_roles(current, requested, courier_operated):
        raise ForbiddenError(
            f"{role.value} cannot move order from {current.value} to {requested.value}"
        )


def next_statuses(current: OrderStatus) -> list[OrderStatus]:
    return [to for (frm, to) in TRANSITIONS if frm is current]


def can_advance_status(
    role: ActorRole, from_state: OrderStatus, courier_operated: bool = True
) -> bool:
    """True if `role` may perform some non-cancelling transition out of `from_state`."""
    return any(
        role in allowed_roles(from_state, to, courier_operated)
        for to in next_statuses(from_state)
        if to is not OrderStatus.CANCELLED
    )
