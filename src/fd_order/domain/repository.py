"""OrderRepository Protocol — interface contract for the persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.enums import DeliveryMethod, OrderStatus, PaymentStatus
from src.fd_order.domain.models import Order


class OrderRepositoryProtocol(Protocol):
    async def insert(self, order: Order, db: AsyncSession) -> Order: ...

    async def get_by_id(
        self, order_id: str, db: AsyncSession, for_update: bool = False
    ) -> Order | None: ...

    async def get_by_tracking_number(
        self, tracking_number: str, db: AsyncSession
    ) -> Order | None: ...

    async def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        db: AsyncSession,
        courier_id: str | None = None,
    ) -> Order | None: ...

    async def set_payment_status(
        self, order_id: str, status: PaymentStatus, db: AsyncSession
    ) -> Order | None: ...

    async def mark_revenue_recognized(self, order_id: str, db: AsyncSession) -> bool: ...

    async def claim(self, order_id: str, courier_id: str, db: AsyncSession) -> Order | None: ...

    async def release(self, order_id: str, courier_id: str, db: AsyncSession) -> Order | None: ...

    async def find_on_the_way_for_courier(
        self, courier_id: str, db: AsyncSession
    ) -> Order | None: ...

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
    ) -> list[Order]: ...
