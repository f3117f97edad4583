"""Who may listen to which room.

  admin               -> actors holding SUBSCRIBE_ADMIN_ROOM
  restaurant:<id>     -> staff of that restaurant, admins
  courier:<id>        -> that courier, admins
  order:<id>          -> anyone who knows the order id (guest tracking page)
"""

from src.fd_common.enums import ActorRole
from src.fd_gateway.auth.capabilities import Actor, Capability
from src.fd_notify.domain.events import ADMIN_ROOM

_ROOM_KINDS = ("restaurant", "order", "courier")


class RoomAccessError(Exception):
    def __init__(self, room: str) -> None:
        self.room = room
        super().__init__(f"Not allowed to subscribe to {room}")


def parse_rooms(raw: str) -> list[str]:
    """Comma-separated room list -> de-duplicated, order-preserving list."""
    rooms: list[str] = []
    for part in raw.split(","):
        room = part.strip()
        if room and room not in rooms:
            rooms.append(room)
    return rooms


def can_subscribe(actor: Actor | None, room: str) -> bool:
    if room == ADMIN_ROOM:
        return actor is not None and actor.can(Capability.SUBSCRIBE_ADMIN_ROOM)
    kind, _, target = room.partition(":")
    if kind not in _ROOM_KINDS or not target:
        return False
    if kind == "order":
        return True
    if actor is None:
        return False
    if actor.role is ActorRole.ADMIN:
        return True
    if kind == "restaurant":
        return actor.role is ActorRole.RESTAURANT and actor.restaurant_id == target
    return actor.role is ActorRole.COURIER and actor.id == target


def authorize_rooms(actor: Actor | None, rooms: list[str]) -> frozenset[str]:
    """Return the rooms as a set, or raise RoomAccessError on the first forbidden one."""
    for room in rooms:
        if not can_subscribe(actor, room):
            raise RoomAccessError(room)
    return frozenset(rooms)
