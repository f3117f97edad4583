"""Typed state-change events and room naming.

Rooms:
  restaurant:<restaurant_id>  — restaurant dashboard
  order:<order_id>            — customer tracking page (guests included)
  courier:<courier_id>        — courier app
  admin                       — platform dashboard
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from src.fd_common.datetime_utils import to_iso, utc_now
from src.fd_common.enums import EventType
from src.fd_order.domain.models import Order

ADMIN_ROOM = "admin"


def restaurant_room(restaurant_id: str) -> str:
    return f"restaurant:{restaurant_id}"


def order_room(order_id: str) -> str:
    return f"order:{order_id}"


def courier_room(courier_id: str) -> str:
    return f"courier:{courier_id}"


@dataclass(frozen=True)
class DomainEvent:
    type: EventType
    rooms: tuple[str, ...]
    payload: dict[str, Any]
    occurred_at: datetime = field(default_factory=utc_now)

    def to_message(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "occurred_at": to_iso(self.occurred_at),
            "data": self.payload,
        }

    def to_wire(self) -> dict[str, Any]:
        """Message plus target rooms, as mirrored between API processes."""
        return {"rooms": list(self.rooms), **self.to_message()}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> "DomainEvent":
        return cls(
            type=EventType(data["type"]),
            rooms=tuple(data["rooms"]),
            payload=dict(data["data"]),
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
        )


def _order_rooms(order: Order) -> tuple[str, ...]:
    rooms = [restaurant_room(order.restaurant_id), order_room(order.id), ADMIN_ROOM]
    if order.courier_id:
        rooms.append(courier_room(order.courier_id))
    return tuple(rooms)


def order_created(order: Order) -> DomainEvent:
    return DomainEvent(
        type=EventType.ORDER_CREATED,
        rooms=(restaurant_room(order.restaurant_id), ADMIN_ROOM),
        payload={
            "order_id": order.id,
            "tracking_number": order.tracking_number,
            "restaurant_id": order.restaurant_id,
            "order_type": order.order_type.value,
            "total": order.total,
            "items": [
                {"name": item.name, "quantity": item.quantity, "notes": item.notes}
                for item in order.items
            ],
        },
    )


def order_status_changed(order: Order, previous: str) -> DomainEvent:
    return DomainEvent(
        type=EventType.ORDER_STATUS_CHANGED,
        rooms=_order_rooms(order),
        payload={
            "order_id": order.id,
            "tracking_number": order.tracking_number,
            "previous_status": previous,
            "status": order.order_status.value,
            "courier_id": order.courier_id,
            "updated_at": to_iso(order.updated_at),
        },
    )


def payment_status_changed(order: Order, previous: str) -> DomainEvent:
    return DomainEvent(
        type=EventType.PAYMENT_STATUS_CHANGED,
        rooms=(restaurant_room(order.restaurant_id), order_room(order.id), ADMIN_ROOM),
        payload={
            "order_id": order.id,
            "previous_payment_status": previous,
            "payment_status": order.payment_status.value,
        },
    )


def commission_materialized(order_id: str, amounts: dict[str, int]) -> DomainEvent:
    return DomainEvent(
        type=EventType.COMMISSION_MATERIALIZED,
        rooms=(ADMIN_ROOM,),
        payload={"order_id": order_id, "amounts_by_member": amounts, "total": sum(amounts.values())},
    )


def courier_location(order_id: str, courier_id: str, latitude: float, longitude: float) -> DomainEvent:
    return DomainEvent(
        type=EventType.COURIER_LOCATION,
        rooms=(order_room(order_id),),
        payload={
            "order_id": order_id,
            "courier_id": courier_id,
            "latitude": latitude,
            "longitude": longitude,
        },
    )
