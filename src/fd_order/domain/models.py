"""Order domain model — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from src.fd_common.enums import (
    DeliveryMethod,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
)
from src.fd_common.errors import InvalidOrderDraftError
from src.fd_pricing.domain.models import LineRequest, PricedLine


@dataclass
class OrderDraft:
    """Unpriced order as submitted by a customer (or guest)."""

    restaurant_id: str
    items: list[LineRequest]
    order_type: OrderType
    payment_method: PaymentMethod
    customer_name: str
    customer_phone: str
    customer_id: str | None = None  # None for guest checkout
    customer_email: str | None = None
    delivery_method: DeliveryMethod | None = None
    delivery_address: str | None = None
    delivery_latitude: float | None = None
    delivery_longitude: float | None = None
    delivery_instructions: str | None = None
    delivery_zone: str | None = None
    delivery_fee_override: int | None = None

    def validate(self) -> None:
        if not self.items:
            raise InvalidOrderDraftError("order must contain at least one item")
        if not self.customer_name.strip() or not self.customer_phone.strip():
            raise InvalidOrderDraftError("customer name and phone are required")
        if self.order_type is OrderType.DELIVERY:
            if self.delivery_method is None:
                raise InvalidOrderDraftError("delivery orders require a delivery method")
            if not self.delivery_address or not self.delivery_address.strip():
                raise InvalidOrderDraftError("delivery orders require an address")
        elif self.delivery_method is not None or self.delivery_address:
            raise InvalidOrderDraftError("pickup orders carry no delivery details")


@dataclass
class Order:
    id: str
    tracking_number: str
    restaurant_id: str
    customer_name: str
    customer_phone: str
    items: list[PricedLine]  # price snapshot, never recomputed
    order_type: OrderType
    payment_method: PaymentMethod
    # Money (minor units)
    subtotal: int
    delivery_fee: int
    platform_commission: int
    total: int
    customer_id: str | None = None
    customer_email: str | None = None
    # Delivery details (delivery orders only)
    delivery_method: DeliveryMethod | None = None
    delivery_address: str | None = None
    delivery_latitude: float | None = None
    delivery_longitude: float | None = None
    delivery_instructions: str | None = None
    # Lifecycle
    order_status: OrderStatus = OrderStatus.RECEIVED
    payment_status: PaymentStatus = PaymentStatus.PENDING
    courier_id: str | None = None
    revenue_recognized_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    delivered_at: datetime | None = None

    @property
    def is_platform_delivery(self) -> bool:
        return (
            self.order_type is OrderType.DELIVERY
            and self.delivery_method is DeliveryMethod.PLATFORM_OPERATED
        )

    @property
    def revenue_recognized(self) -> bool:
        return self.revenue_recognized_at is not None


def items_to_json(items: list[PricedLine]) -> list[dict[str, Any]]:
    return [
        {
            "product_id": i.product_id,
            "name": i.name,
            "unit_price": i.unit_price,
            "quantity": i.quantity,
            "notes": i.notes,
        }
        for i in items
    ]


def items_from_json(raw: list[dict[str, Any]]) -> list[PricedLine]:
    return [
        PricedLine(
            product_id=str(i["product_id"]),
            name=i["name"],
            unit_price=int(i["unit_price"]),
            quantity=int(i["quantity"]),
            notes=i.get("notes") or "",
        )
        for i in raw
    ]
