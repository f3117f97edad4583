"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class OrderStatus(str, Enum):
    RECEIVED = "received"
    PREPARING = "preparing"
    READY = "ready"
    ON_THE_WAY = "on_the_way"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)


ACTIVE_ORDER_STATUSES = (
    OrderStatus.RECEIVED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.ON_THE_WAY,
)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUND_REQUESTED = "refund_requested"
    REFUNDED = "refunded"


class OrderType(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class DeliveryMethod(str, Enum):
    RESTAURANT_OPERATED = "restaurant_operated"
    PLATFORM_OPERATED = "platform_operated"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    MERCADOPAGO = "mercadopago"
    PSE = "pse"
    NEQUI = "nequi"


class CommissionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    CANCELLED = "cancelled"


class ActorRole(str, Enum):
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    COURIER = "courier"
    ADMIN = "admin"


class EventType(str, Enum):
    ORDER_CREATED = "OrderCreated"
    ORDER_STATUS_CHANGED = "OrderStatusChanged"
    PAYMENT_STATUS_CHANGED = "PaymentStatusChanged"
    COMMISSION_MATERIALIZED = "CommissionMaterialized"
    COURIER_LOCATION = "CourierLocation"
