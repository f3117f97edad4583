"""OrderStore — transactional primitives over the orders table.

Store methods run inside the caller's transaction and never commit; the
application services own the unit of work (commit / rollback / timeout) and
event emission. ``create`` resolves and prices every line inside that same
transaction, so a failure anywhere leaves no partial row behind.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_catalog.domain.repository import RestaurantLookupProtocol
from src.fd_catalog.infrastructure.persistence import RestaurantLookup
from src.fd_common.enums import DeliveryMethod, OrderStatus, PaymentStatus
from src.fd_common.errors import (
    NotAssignedCourierError,
    OrderFinalizedError,
    OrderNotFoundError,
    RestaurantInactiveError,
    RestaurantNotFoundError,
    StaleStatusError,
)
from src.fd_common.id_generator import generate_id, generate_tracking_number
from src.fd_order.domain.models import Order, OrderDraft
from src.fd_order.domain.repository import OrderRepositoryProtocol
from src.fd_order.infrastructure.persistence import OrderRepository
from src.fd_pricing.application.service import PricingService

logger = logging.getLogger(__name__)


class OrderStore:
    def __init__(
        self,
        repo: OrderRepositoryProtocol | None = None,
        restaurants: RestaurantLookupProtocol | None = None,
        pricing: PricingService | None = None,
    ) -> None:
        self._repo: OrderRepositoryProtocol = repo or OrderRepository()
        self._restaurants: RestaurantLookupProtocol = restaurants or RestaurantLookup()
        self._pricing = pricing or PricingService()

    @property
    def repo(self) -> OrderRepositoryProtocol:
        return self._repo

    async def create(self, db: AsyncSession, draft: OrderDraft) -> Order:
        draft.validate()
        restaurant = await self._restaurants.get_restaurant(db, draft.restaurant_id)
        if restaurant is None:
            raise RestaurantNotFoundError(draft.restaurant_id)
        if not restaurant.active:
            raise RestaurantInactiveError(draft.restaurant_id)

        lines, breakdown = await self._pricing.quote(
            db,
            restaurant,
            draft.items,
            draft.order_type,
            zone=draft.delivery_zone,
            delivery_fee_override=draft.delivery_fee_override,
        )
        order = Order(
            id=generate_id(),
            tracking_number=generate_tracking_number(),
            restaurant_id=restaurant.id,
            customer_id=draft.customer_id,
            customer_name=draft.customer_name.strip(),
            customer_phone=draft.customer_phone.strip(),
            customer_email=draft.customer_email,
            items=lines,
            order_type=draft.order_type,
            payment_method=draft.payment_method,
            subtotal=breakdown.subtotal,
            delivery_fee=breakdown.delivery_fee,
            platform_commission=breakdown.platform_commission,
            total=breakdown.total,
            delivery_method=draft.delivery_method,
            delivery_address=draft.delivery_address,
            delivery_latitude=draft.delivery_latitude,
            delivery_longitude=draft.delivery_longitude,
            delivery_instructions=draft.delivery_instructions,
        )
        stored = await self._repo.insert(order, db)
        logger.info(
            "Order %s (%s) created for restaurant %s: total=%d",
            stored.id,
            stored.tracking_number,
            stored.restaurant_id,
            stored.total,
        )
        return stored

    async def get(self, db: AsyncSession, order_id: str, for_update: bool = False) -> Order:
        order = await self._repo.get_by_id(order_id, db, for_update=for_update)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def get_by_tracking_number(self, db: AsyncSession, tracking_number: str) -> Order:
        order = await self._repo.get_by_tracking_number(tracking_number, db)
        if order is None:
            raise OrderNotFoundError(tracking_number)
        return order

    async def update_status(
        self,
        db: AsyncSession,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        courier_id: str | None = None,
    ) -> Order:
        """Compare-and-swap the order status.

        With `courier_id` the swap additionally requires that courier to hold
        the claim. Raises OrderFinalizedError when the order already reached a
        terminal status, StaleStatusError when the status moved underneath
        the caller, OrderNotFoundError when the row does not exist.
        """
        updated = await self._repo.compare_and_set_status(
            order_id, expected, new, db, courier_id=courier_id
        )
        if updated is not None:
            return updated
        current = await self._repo.get_by_id(order_id, db)
        if current is None:
            raise OrderNotFoundError(order_id)
        if current.order_status.is_terminal:
            raise OrderFinalizedError(order_id, current.order_status.value)
        if current.order_status is not expected:
            raise StaleStatusError(order_id, expected.value, current.order_status.value)
        if courier_id is not None and current.courier_id != courier_id:
            raise NotAssignedCourierError(order_id)
        raise StaleStatusError(order_id, expected.value, current.order_status.value)

    async def update_payment_status(
        self, db: AsyncSession, order_id: str, new: PaymentStatus
    ) -> Order:
        updated = await self._repo.set_payment_status(order_id, new, db)
        if updated is None:
            raise OrderNotFoundError(order_id)
        return updated

    async def list(
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
        return await self._repo.list_orders(
            db,
            customer_id=customer_id,
            restaurant_id=restaurant_id,
            courier_id=courier_id,
            statuses=statuses,
            delivery_method=delivery_method,
            unclaimed_only=unclaimed_only,
            created_from=created_from,
            created_to=created_to,
            limit=limit,
            cursor_id=cursor_id,
        )
