"""OrderRepository — raw SQL persistence implementation.

Every status mutation is a single conditional UPDATE ... RETURNING: the row is
only changed when its current state still matches what the caller observed, so
two concurrent actors can never both succeed on the same transition or claim.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.enums import (
    DeliveryMethod,
    OrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
)
from src.fd_common.query import FilterSet
from src.fd_order.domain.models import Order, items_from_json, items_to_json

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_COLUMNS = """
    id, tracking_number, restaurant_id, customer_id,
    customer_name, customer_phone, customer_email, items,
    order_type, delivery_method, delivery_address,
    delivery_latitude, delivery_longitude, delivery_instructions,
    subtotal, delivery_fee, platform_commission, total,
    payment_method, payment_status, order_status, courier_id,
    revenue_recognized_at, created_at, updated_at, delivered_at
"""

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders (id, tracking_number, restaurant_id, customer_id,
        customer_name, customer_phone, customer_email, items,
        order_type, delivery_method, delivery_address,
        delivery_latitude, delivery_longitude, delivery_instructions,
        subtotal, delivery_fee, platform_commission, total,
        payment_method, payment_status, order_status)
    VALUES (:id, :tracking_number, :restaurant_id, :customer_id,
        :customer_name, :customer_phone, :customer_email, :items,
        :order_type, :delivery_method, :delivery_address,
        :delivery_latitude, :delivery_longitude, :delivery_instructions,
        :subtotal, :delivery_fee, :platform_commission, :total,
        :payment_method, 'pending', 'received')
    RETURNING {_COLUMNS}
""")

_GET_ORDER_BY_ID_SQL = text(f"SELECT {_COLUMNS} FROM orders WHERE id = :id")

_GET_ORDER_BY_ID_FOR_UPDATE_SQL = text(f"SELECT {_COLUMNS} FROM orders WHERE id = :id FOR UPDATE")

_GET_ORDER_BY_TRACKING_SQL = text(
    f"SELECT {_COLUMNS} FROM orders WHERE tracking_number = :tracking_number"
)

_CAS_STATUS_SQL = text(f"""
    UPDATE orders
    SET order_status = :new_status,
        delivered_at = CASE WHEN CAST(:new_status AS TEXT) = 'delivered' THEN NOW() ELSE delivered_at END,
        updated_at = NOW()
    WHERE id = :id AND order_status = :expected_status
      AND (CAST(:courier_id AS TEXT) IS NULL OR courier_id = :courier_id)
    RETURNING {_COLUMNS}
""")

_SET_PAYMENT_STATUS_SQL = text(f"""
    UPDATE orders
    SET payment_status = :payment_status, updated_at = NOW()
    WHERE id = :id
    RETURNING {_COLUMNS}
""")

_MARK_REVENUE_RECOGNIZED_SQL = text("""
    UPDATE orders
    SET revenue_recognized_at = NOW(), updated_at = NOW()
    WHERE id = :id AND revenue_recognized_at IS NULL
    RETURNING id
""")

_CLAIM_SQL = text(f"""
    UPDATE orders
    SET courier_id = :courier_id, updated_at = NOW()
    WHERE id = :id AND order_status = 'ready' AND courier_id IS NULL
    RETURNING {_COLUMNS}
""")

_RELEASE_SQL = text(f"""
    UPDATE orders
    SET courier_id = NULL, updated_at = NOW()
    WHERE id = :id AND courier_id = :courier_id AND order_status = 'ready'
    RETURNING {_COLUMNS}
""")

_FIND_ON_THE_WAY_SQL = text(f"""
    SELECT {_COLUMNS} FROM orders
    WHERE courier_id = :courier_id AND order_status = 'on_the_way'
    ORDER BY updated_at DESC
    LIMIT 1
""")

_LIST_FILTER_COLUMNS = {
    "customer_id": "customer_id",
    "restaurant_id": "restaurant_id",
    "courier_id": "courier_id",
    "order_status": "order_status",
    "delivery_method": "delivery_method",
    "created_from": "created_at",
    "created_to": "created_at",
    "cursor_id": "id",
}


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_order(row: Any) -> Order:
    """Convert a DB result row to an Order domain object."""
    raw_items = row.items
    if isinstance(raw_items, str):
        raw_items = json.loads(raw_items)
    return Order(
        id=str(row.id),
        tracking_number=row.tracking_number,
        restaurant_id=str(row.restaurant_id),
        customer_id=str(row.customer_id) if row.customer_id is not None else None,
        customer_name=row.customer_name,
        customer_phone=row.customer_phone,
        customer_email=row.customer_email,
        items=items_from_json(raw_items),
        order_type=OrderType(row.order_type),
        delivery_method=DeliveryMethod(row.delivery_method) if row.delivery_method else None,
        delivery_address=row.delivery_address,
        delivery_latitude=row.delivery_latitude,
        delivery_longitude=row.delivery_longitude,
        delivery_instructions=row.delivery_instructions,
        subtotal=row.subtotal,
        delivery_fee=row.delivery_fee,
        platform_commission=row.platform_commission,
        total=row.total,
        payment_method=PaymentMethod(row.payment_method),
        payment_status=PaymentStatus(row.payment_status),
        order_status=OrderStatus(row.order_status),
        courier_id=str(row.courier_id) if row.courier_id is not None else None,
        revenue_recognized_at=row.revenue_recognized_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
        delivered_at=row.delivered_at,
    )


def _one(result: Any) -> Order | None:
    row = result.fetchone()
    return _row_to_order(row) if row else None


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class OrderRepository:
    """Concrete implementation of OrderRepositoryProtocol using raw SQL."""

    async def insert(self, order: Order, db: AsyncSession) -> Order:
        result = await db.execute(
            _INSERT_ORDER_SQL,
            {
                "id": order.id,
                "tracking_number": order.tracking_number,
                "restaurant_id": order.restaurant_id,
                "customer_id": order.customer_id,
                "customer_name": order.customer_name,
                "customer_phone": order.customer_phone,
                "customer_email": order.customer_email,
                "items": json.dumps(items_to_json(order.items)),
                "order_type": order.order_type.value,
                "delivery_method": order.delivery_method.value if order.delivery_method else None,
                "delivery_address": order.delivery_address,
                "delivery_latitude": order.delivery_latitude,
                "delivery_longitude": order.delivery_longitude,
                "delivery_instructions": order.delivery_instructions,
                "subtotal": order.subtotal,
                "delivery_fee": order.delivery_fee,
                "platform_commission": order.platform_commission,
                "total": order.total,
                "payment_method": order.payment_method.value,
            },
        )
        return _row_to_order(result.fetchone())

    async def get_by_id(
        self, order_id: str, db: AsyncSession, for_update: bool = False
    ) -> Order | None:
        sql = _GET_ORDER_BY_ID_FOR_UPDATE_SQL if for_update else _GET_ORDER_BY_ID_SQL
        return _one(await db.execute(sql, {"id": order_id}))

    async def get_by_tracking_number(
        self, tracking_number: str, db: AsyncSession
    ) -> Order | None:
        return _one(
            await db.execute(_GET_ORDER_BY_TRACKING_SQL, {"tracking_number": tracking_number})
        )

    async def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        db: AsyncSession,
        courier_id: str | None = None,
    ) -> Order | None:
        """Returns the updated order, or None when the row no longer matches `expected`
        (or, with `courier_id`, is held by someone else)."""
        result = await db.execute(
            _CAS_STATUS_SQL,
            {
                "id": order_id,
                "expected_status": expected.value,
                "new_status": new.value,
                "courier_id": courier_id,
            },
        )
        return _one(result)

    async def set_payment_status(
        self, order_id: str, status: PaymentStatus, db: AsyncSession
    ) -> Order | None:
        result = await db.execute(
            _SET_PAYMENT_STATUS_SQL, {"id": order_id, "payment_status": status.value}
        )
        return _one(result)

    async def mark_revenue_recognized(self, order_id: str, db: AsyncSession) -> bool:
        result = await db.execute(_MARK_REVENUE_RECOGNIZED_SQL, {"id": order_id})
        return result.fetchone() is not None

    async def claim(self, order_id: str, courier_id: str, db: AsyncSession) -> Order | None:
        return _one(await db.execute(_CLAIM_SQL, {"id": order_id, "courier_id": courier_id}))

    async def release(self, order_id: str, courier_id: str, db: AsyncSession) -> Order | None:
        return _one(await db.execute(_RELEASE_SQL, {"id": order_id, "courier_id": courier_id}))

    async def find_on_the_way_for_courier(
        self, courier_id: str, db: AsyncSession
    ) -> Order | None:
        return _one(await db.execute(_FIND_ON_THE_WAY_SQL, {"courier_id": courier_id}))

    async def list_orders(
        self,
        db: AsyncSession,
        *,
        customer_id: str | None = None,
        restaurant_id: str | None = None,
        courier_id: str | None = None,
        statuses: list[OrderStatus] | None = None,
        delivery_method: DeliveryMethod | None = None,
        unclaimed_only: bool = False,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int = 50,
        cursor_id: str | None = None,
    ) -> list[Order]:
        filters = (
            FilterSet(_LIST_FILTER_COLUMNS)
            .eq("customer_id", customer_id)
            .eq("restaurant_id", restaurant_id)
            .eq("courier_id", courier_id)
            .in_("order_status", [s.value for s in statuses] if statuses else None)
            .eq("delivery_method", delivery_method.value if delivery_method else None)
            .gte("created_from", created_from)
            .lte("created_to", created_to)
            .lt("cursor_id", cursor_id)
        )
        where, params = filters.compile()
        if unclaimed_only:
            where += " AND courier_id IS NULL"
        sql = text(f"SELECT {_COLUMNS} FROM orders WHERE {where} ORDER BY id DESC LIMIT :limit")
        result = await db.execute(sql, {**params, "limit": limit})
        return [_row_to_order(row) for row in result.fetchall()]
