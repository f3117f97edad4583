from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from src.fd_common.cents import cents_to_display
from src.fd_common.enums import DeliveryMethod, OrderStatus, OrderType, PaymentMethod
from src.fd_order.domain.models import Order, OrderDraft
from src.fd_pricing.domain.models import LineRequest


class OrderItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    notes: str = Field("", max_length=500)


class CreateOrderRequest(BaseModel):
    restaurant_id: str
    items: list[OrderItemRequest] = Field(min_length=1)
    order_type: OrderType
    payment_method: PaymentMethod
    customer_name: str = Field(min_length=1, max_length=120)
    customer_phone: str = Field(min_length=5, max_length=30)
    customer_email: str | None = None
    delivery_method: DeliveryMethod | None = None
    delivery_address: str | None = None
    delivery_latitude: float | None = Field(None, ge=-90, le=90)
    delivery_longitude: float | None = Field(None, ge=-180, le=180)
    delivery_instructions: str | None = None
    delivery_zone: str | None = None

    @model_validator(mode="after")
    def delivery_fields_match_type(self) -> "CreateOrderRequest":
        if self.order_type is OrderType.DELIVERY:
            if self.delivery_method is None or not self.delivery_address:
                raise ValueError("delivery orders require delivery_method and delivery_address")
        elif self.delivery_method is not None or self.delivery_address:
            raise ValueError("pickup orders must not carry delivery details")
        return self

    def to_draft(self) -> OrderDraft:
        return OrderDraft(
            restaurant_id=self.restaurant_id,
            items=[
                LineRequest(product_id=i.product_id, quantity=i.quantity, notes=i.notes)
                for i in self.items
            ],
            order_type=self.order_type,
            payment_method=self.payment_method,
            customer_name=self.customer_name,
            customer_phone=self.customer_phone,
            customer_email=self.customer_email,
            delivery_method=self.delivery_method,
            delivery_address=self.delivery_address,
            delivery_latitude=self.delivery_latitude,
            delivery_longitude=self.delivery_longitude,
            delivery_instructions=self.delivery_instructions,
            delivery_zone=self.delivery_zone,
        )


class UpdateStatusRequest(BaseModel):
    expected_status: OrderStatus
    status: OrderStatus


class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    unit_price: int
    quantity: int
    line_total: int
    notes: str


class OrderResponse(BaseModel):
    id: str
    tracking_number: str
    restaurant_id: str
    customer_id: str | None
    customer_name: str
    items: list[OrderItemResponse]
    order_type: str
    delivery_method: str | None
    delivery_address: str | None
    subtotal: int
    delivery_fee: int
    platform_commission: int
    total: int
    total_display: str
    payment_method: str
    payment_status: str
    order_status: str
    courier_id: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    delivered_at: datetime | None = None


class TrackingResponse(BaseModel):
    """Guest-safe view: no customer contact data, no commission figures."""

    tracking_number: str
    order_status: str
    payment_status: str
    order_type: str
    items: list[OrderItemResponse]
    total: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    delivered_at: datetime | None = None


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    next_cursor: str | None
    has_more: bool


RestaurantScope = Literal["all", "active", "history"]


def _items(order: Order) -> list[OrderItemResponse]:
    return [
        OrderItemResponse(
            product_id=i.product_id,
            name=i.name,
            unit_price=i.unit_price,
            quantity=i.quantity,
            line_total=i.line_total,
            notes=i.notes,
        )
        for i in order.items
    ]


def order_to_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        tracking_number=order.tracking_number,
        restaurant_id=order.restaurant_id,
        customer_id=order.customer_id,
        customer_name=order.customer_name,
        items=_items(order),
        order_type=order.order_type.value,
        delivery_method=order.delivery_method.value if order.delivery_method else None,
        delivery_address=order.delivery_address,
        subtotal=order.subtotal,
        delivery_fee=order.delivery_fee,
        platform_commission=order.platform_commission,
        total=order.total,
        total_display=cents_to_display(order.total),
        payment_method=order.payment_method.value,
        payment_status=order.payment_status.value,
        order_status=order.order_status.value,
        courier_id=order.courier_id,
        created_at=order.created_at,
        updated_at=order.updated_at,
        delivered_at=order.delivered_at,
    )


def order_to_tracking(order: Order) -> TrackingResponse:
    return TrackingResponse(
        tracking_number=order.tracking_number,
        order_status=order.order_status.value,
        payment_status=order.payment_status.value,
        order_type=order.order_type.value,
        items=_items(order),
        total=order.total,
        created_at=order.created_at,
        updated_at=order.updated_at,
        delivered_at=order.delivered_at,
    )


def page(orders: list[Order], limit: int) -> OrderListResponse:
    """Orders fetched with limit + 1; the extra row only signals has_more."""
    has_more = len(orders) > limit
    if has_more:
        orders = orders[:limit]
    return OrderListResponse(
        items=[order_to_response(o) for o in orders],
        next_cursor=orders[-1].id if has_more else None,
        has_more=has_more,
    )
