"""Actor identity and capability sets.

Authentication happens upstream; the engine only sees an opaque Actor
(id + role, plus the owned restaurant for restaurant staff). Every core
operation performs exactly one capability check at its boundary via
``require(actor, Capability.X)`` instead of branching on role strings.
"""

from dataclasses import dataclass
from enum import Enum

from src.fd_common.enums import ActorRole
from src.fd_common.errors import ForbiddenError, InvalidCredentialsError


class Capability(str, Enum):
    CREATE_ORDER = "CREATE_ORDER"
    VIEW_ANY_ORDER = "VIEW_ANY_ORDER"
    CANCEL_OWN_ORDER = "CANCEL_OWN_ORDER"
    CANCEL_ANY_ORDER = "CANCEL_ANY_ORDER"
    ADVANCE_KITCHEN_STATUS = "ADVANCE_KITCHEN_STATUS"
    CLAIM_DELIVERY = "CLAIM_DELIVERY"
    REPORT_LOCATION = "REPORT_LOCATION"
    CREATE_PAYMENT = "CREATE_PAYMENT"
    REQUEST_REFUND = "REQUEST_REFUND"
    PROCESS_REFUND = "PROCESS_REFUND"
    VIEW_OWN_COMMISSIONS = "VIEW_OWN_COMMISSIONS"
    MANAGE_COMMISSIONS = "MANAGE_COMMISSIONS"
    SUBSCRIBE_ADMIN_ROOM = "SUBSCRIBE_ADMIN_ROOM"
    OVERRIDE_ORDER_STATUS = "OVERRIDE_ORDER_STATUS"


ROLE_CAPABILITIES: dict[ActorRole, frozenset[Capability]] = {
    ActorRole.CUSTOMER: frozenset(
        {
            Capability.CREATE_ORDER,
            Capability.CANCEL_OWN_ORDER,
            Capability.CREATE_PAYMENT,
            Capability.REQUEST_REFUND,
        }
    ),
    ActorRole.RESTAURANT: frozenset({Capability.ADVANCE_KITCHEN_STATUS}),
    ActorRole.COURIER: frozenset({Capability.CLAIM_DELIVERY, Capability.REPORT_LOCATION}),
    ActorRole.ADMIN: frozenset(
        {
            Capability.CREATE_ORDER,
            Capability.VIEW_ANY_ORDER,
            Capability.CANCEL_ANY_ORDER,
            Capability.CREATE_PAYMENT,
            Capability.REQUEST_REFUND,
            Capability.PROCESS_REFUND,
            Capability.VIEW_OWN_COMMISSIONS,
            Capability.MANAGE_COMMISSIONS,
            Capability.SUBSCRIBE_ADMIN_ROOM,
            Capability.OVERRIDE_ORDER_STATUS,
        }
    ),
}


@dataclass(frozen=True)
class Actor:
    id: str
    role: ActorRole
    restaurant_id: str | None = None  # set for restaurant staff only
    is_team_member: bool = False  # platform staff sharing the commission pool

    def can(self, capability: Capability) -> bool:
        if capability is Capability.VIEW_OWN_COMMISSIONS and self.is_team_member:
            return True
        return capability in ROLE_CAPABILITIES.get(self.role, frozenset())


def require(actor: Actor | None, capability: Capability) -> Actor:
    """Return the actor if it holds `capability`; raise otherwise."""
    if actor is None:
        raise InvalidCredentialsError()
    if not actor.can(capability):
        raise ForbiddenError(f"{actor.role.value} lacks {capability.value}")
    return actor
