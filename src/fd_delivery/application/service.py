"""DeliveryService — courier claims, pickup/delivery steps and live position.

Claim and release are single conditional UPDATEs on the order row, so of two
couriers racing for the same ready order exactly one wins. Pickup and
delivery go through the order state machine; delivering a platform-operated
order also books the courier's fee in the deliveries table, inside the same
transaction as the status swap.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.database import with_store_timeout
from src.fd_common.enums import DeliveryMethod, OrderStatus
from src.fd_common.errors import (
    AlreadyClaimedError,
    IllegalTransitionError,
    NotAssignedCourierError,
    OrderNotClaimableError,
    OrderNotFoundError,
)
from src.fd_common.id_generator import generate_id
from src.fd_delivery.domain.models import CourierPosition, DeliveryRecord, EarningsSummary
from src.fd_delivery.domain.repository import DeliveryRepositoryProtocol, PositionCacheProtocol
from src.fd_delivery.infrastructure.persistence import DeliveryRepository
from src.fd_delivery.infrastructure.position_cache import RedisPositionCache
from src.fd_gateway.auth.capabilities import Actor, Capability, require
from src.fd_notify.domain.events import courier_location, order_status_changed
from src.fd_notify.infrastructure.bus import EventPublisherProtocol, get_notification_bus
from src.fd_order.application.service import OrderLifecycleService, get_lifecycle_service
from src.fd_order.domain.models import Order
from src.fd_order.domain.repository import OrderRepositoryProtocol

logger = logging.getLogger(__name__)

_ASSIGNED_STATUSES = [OrderStatus.READY, OrderStatus.ON_THE_WAY]


class DeliveryService:
    def __init__(
        self,
        lifecycle: OrderLifecycleService | None = None,
        deliveries: DeliveryRepositoryProtocol | None = None,
        positions: PositionCacheProtocol | None = None,
        publisher: EventPublisherProtocol | None = None,
    ) -> None:
        self._lifecycle = lifecycle or get_lifecycle_service()
        self._deliveries: DeliveryRepositoryProtocol = deliveries or DeliveryRepository()
        self._positions: PositionCacheProtocol = positions or RedisPositionCache()
        self._publisher: EventPublisherProtocol = publisher or get_notification_bus()

    @property
    def _orders(self) -> OrderRepositoryProtocol:
        return self._lifecycle.store.repo

    # ------------------------------------------------------------------
    # Claim / release
    # ------------------------------------------------------------------

    async def claim(self, db: AsyncSession, order_id: str, actor: Actor | None) -> Order:
        actor = require(actor, Capability.CLAIM_DELIVERY)
        order = await with_store_timeout(self._claim_tx(db, order_id, actor.id))
        logger.info("Order %s claimed by courier %s", order_id, actor.id)
        await self._publisher.publish(order_status_changed(order, OrderStatus.READY.value))
        return order

    async def _claim_tx(self, db: AsyncSession, order_id: str, courier_id: str) -> Order:
        try:
            current = await self._orders.get_by_id(order_id, db)
            if current is None:
                raise OrderNotFoundError(order_id)
            if not current.is_platform_delivery:
                raise OrderNotClaimableError(order_id, current.order_status.value)
            claimed = await self._orders.claim(order_id, courier_id, db)
            if claimed is None:
                current = await self._orders.get_by_id(order_id, db)
                if current is None:
                    raise OrderNotFoundError(order_id)
                if current.order_status is not OrderStatus.READY:
                    raise OrderNotClaimableError(order_id, current.order_status.value)
                raise AlreadyClaimedError(order_id)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return claimed

    async def release(self, db: AsyncSession, order_id: str, actor: Actor | None) -> Order:
        """Give a claimed, not yet picked-up order back to the pool."""
        actor = require(actor, Capability.CLAIM_DELIVERY)
        order = await with_store_timeout(self._release_tx(db, order_id, actor.id))
        logger.info("Order %s released by courier %s", order_id, actor.id)
        await self._publisher.publish(order_status_changed(order, OrderStatus.READY.value))
        return order

    async def _release_tx(self, db: AsyncSession, order_id: str, courier_id: str) -> Order:
        try:
            released = await self._orders.release(order_id, courier_id, db)
            if released is None:
                current = await self._orders.get_by_id(order_id, db)
                if current is None:
                    raise OrderNotFoundError(order_id)
                if current.courier_id != courier_id:
                    raise NotAssignedCourierError(order_id)
                raise IllegalTransitionError(current.order_status.value, OrderStatus.READY.value)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return released

    # ------------------------------------------------------------------
    # Pickup / delivery
    # ------------------------------------------------------------------

    async def mark_picked_up(self, db: AsyncSession, order_id: str, actor: Actor | None) -> Order:
        actor = require(actor, Capability.CLAIM_DELIVERY)
        return await self._lifecycle.transition(
            db, order_id, actor, OrderStatus.READY, OrderStatus.ON_THE_WAY
        )

    async def mark_delivered(self, db: AsyncSession, order_id: str, actor: Actor | None) -> Order:
        actor = require(actor, Capability.CLAIM_DELIVERY)
        return await self._lifecycle.transition(
            db,
            order_id,
            actor,
            OrderStatus.ON_THE_WAY,
            OrderStatus.DELIVERED,
            before_commit=self._record_delivery,
        )

    async def _record_delivery(self, db: AsyncSession, order: Order) -> None:
        if order.delivery_method is not DeliveryMethod.PLATFORM_OPERATED or order.courier_id is None:
            return
        record = await self._deliveries.insert(
            DeliveryRecord(
                id=generate_id(),
                order_id=order.id,
                courier_id=order.courier_id,
                fee=order.delivery_fee,
            ),
            db,
        )
        logger.info(
            "Delivery %s booked for courier %s: fee=%d", record.id, record.courier_id, record.fee
        )

    # ------------------------------------------------------------------
    # Live position
    # ------------------------------------------------------------------

    async def update_location(
        self, db: AsyncSession, actor: Actor | None, latitude: float, longitude: float
    ) -> CourierPosition | None:
        """Cache and broadcast the position while the courier is on the way.

        Returns None (and does nothing) when the courier has no on_the_way order.
        """
        actor = require(actor, Capability.REPORT_LOCATION)
        order = await with_store_timeout(self._orders.find_on_the_way_for_courier(actor.id, db))
        if order is None:
            logger.debug("Location from courier %s dropped: no order on the way", actor.id)
            return None

        position = CourierPosition(
            courier_id=actor.id, order_id=order.id, latitude=latitude, longitude=longitude
        )
        try:
            await self._positions.store(position)
        except Exception:
            logger.exception("Could not cache position of courier %s", actor.id)
        await self._publisher.publish(courier_location(order.id, actor.id, latitude, longitude))
        return position

    async def last_position(
        self, db: AsyncSession, order_id: str, actor: Actor | None
    ) -> CourierPosition | None:
        """Last cached position of the courier carrying `order_id`, if still fresh."""
        order = await self._lifecycle.get(db, order_id, actor)
        if order.courier_id is None or order.order_status is not OrderStatus.ON_THE_WAY:
            return None
        position = await self._positions.last_known(order.courier_id)
        if position is None or position.order_id != order.id:
            return None
        return position

    # ------------------------------------------------------------------
    # Courier reads
    # ------------------------------------------------------------------

    async def list_claimable(self, db: AsyncSession, actor: Actor | None, limit: int = 50) -> list[Order]:
        require(actor, Capability.CLAIM_DELIVERY)
        return await with_store_timeout(
            self._lifecycle.store.list(
                db,
                statuses=[OrderStatus.READY],
                delivery_method=DeliveryMethod.PLATFORM_OPERATED,
                unclaimed_only=True,
                limit=limit,
            )
        )

    async def assigned(self, db: AsyncSession, actor: Actor | None) -> list[Order]:
        actor = require(actor, Capability.CLAIM_DELIVERY)
        return await with_store_timeout(
            self._lifecycle.store.list(db, courier_id=actor.id, statuses=_ASSIGNED_STATUSES)
        )

    async def current(self, db: AsyncSession, actor: Actor | None) -> Order | None:
        """The order on the way, else the oldest claimed order waiting for pickup."""
        orders = await self.assigned(db, actor)
        for order in orders:
            if order.order_status is OrderStatus.ON_THE_WAY:
                return order
        return orders[-1] if orders else None

    async def history(
        self, db: AsyncSession, actor: Actor | None, limit: int = 20, offset: int = 0
    ) -> list[DeliveryRecord]:
        actor = require(actor, Capability.CLAIM_DELIVERY)
        return await with_store_timeout(
            self._deliveries.list_for_courier(actor.id, db, limit=limit, offset=offset)
        )

    async def earnings(
        self,
        db: AsyncSession,
        actor: Actor | None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> EarningsSummary:
        actor = require(actor, Capability.CLAIM_DELIVERY)
        return await with_store_timeout(self._deliveries.earnings(actor.id, db, start=start, end=end))


_service: DeliveryService | None = None


def get_delivery_service() -> DeliveryService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = DeliveryService()
    return _service
