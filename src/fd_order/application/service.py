"""OrderLifecycleService — order creation and status transitions as units of work.

Each public operation:
  1. checks the actor's capability once, at the boundary;
  2. runs its store calls inside one transaction bounded by the store timeout
     (commit on success, rollback + re-raise on any failure);
  3. emits fan-out events only after the commit succeeded.
A transition rejected by the store (stale CAS, missing order) emits nothing.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.database import with_store_timeout
from src.fd_common.enums import ACTIVE_ORDER_STATUSES, ActorRole, OrderStatus
from src.fd_common.errors import (
    ForbiddenError,
    InvalidCredentialsError,
    NotAssignedCourierError,
    OrderFinalizedError,
)
from src.fd_gateway.auth.capabilities import Actor, Capability, require
from src.fd_notify.domain.events import order_created, order_status_changed
from src.fd_notify.infrastructure.bus import EventPublisherProtocol, get_notification_bus
from src.fd_order.application.store import OrderStore
from src.fd_order.domain.models import Order, OrderDraft
from src.fd_order.domain.state_machine import validate_transition

logger = logging.getLogger(__name__)

BeforeCommit = Callable[[AsyncSession, Order], Awaitable[None]]

_TRANSITION_CAPABILITY: dict[ActorRole, Capability] = {
    ActorRole.CUSTOMER: Capability.CANCEL_OWN_ORDER,
    ActorRole.RESTAURANT: Capability.ADVANCE_KITCHEN_STATUS,
    ActorRole.COURIER: Capability.CLAIM_DELIVERY,
    ActorRole.ADMIN: Capability.OVERRIDE_ORDER_STATUS,
}

_HISTORY_STATUSES = [OrderStatus.DELIVERED, OrderStatus.CANCELLED]


def ensure_owner(actor: Actor, order: Order) -> None:
    """Raise ForbiddenError unless `actor` is a party to `order`."""
    if actor.role is ActorRole.ADMIN:
        return
    if actor.role is ActorRole.RESTAURANT and actor.restaurant_id == order.restaurant_id:
        return
    if actor.role is ActorRole.CUSTOMER and order.customer_id == actor.id:
        return
    if actor.role is ActorRole.COURIER and order.courier_id == actor.id:
        return
    raise ForbiddenError(f"order {order.id} does not belong to {actor.role.value} {actor.id}")


class OrderLifecycleService:
    def __init__(
        self,
        store: OrderStore | None = None,
        publisher: EventPublisherProtocol | None = None,
    ) -> None:
        self._store = store or OrderStore()
        self._publisher: EventPublisherProtocol = publisher or get_notification_bus()

    @property
    def store(self) -> OrderStore:
        return self._store

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_order(
        self, db: AsyncSession, draft: OrderDraft, actor: Actor | None = None
    ) -> Order:
        """Create an order; guests (actor=None) may order without an account."""
        if actor is not None:
            require(actor, Capability.CREATE_ORDER)
            draft.customer_id = actor.id if actor.role is ActorRole.CUSTOMER else None
        else:
            draft.customer_id = None

        order = await with_store_timeout(self._create_tx(db, draft))
        await self._publisher.publish(order_created(order))
        return order

    async def _create_tx(self, db: AsyncSession, draft: OrderDraft) -> Order:
        try:
            order = await self._store.create(db, draft)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return order

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        db: AsyncSession,
        order_id: str,
        actor: Actor | None,
        expected: OrderStatus,
        new: OrderStatus,
        before_commit: BeforeCommit | None = None,
    ) -> Order:
        """Validate and apply `expected -> new`; `before_commit` runs inside the same transaction."""
        if actor is None:
            raise InvalidCredentialsError()
        require(actor, _TRANSITION_CAPABILITY[actor.role])

        order = await with_store_timeout(
            self._transition_tx(db, order_id, actor, expected, new, before_commit)
        )
        logger.info(
            "Order %s: %s -> %s by %s %s",
            order_id,
            expected.value,
            new.value,
            actor.role.value,
            actor.id,
        )
        await self._publisher.publish(order_status_changed(order, expected.value))
        return order

    async def _transition_tx(
        self,
        db: AsyncSession,
        order_id: str,
        actor: Actor,
        expected: OrderStatus,
        new: OrderStatus,
        before_commit: BeforeCommit | None,
    ) -> Order:
        try:
            current = await self._store.get(db, order_id)
            if actor.role is not ActorRole.COURIER:
                ensure_owner(actor, current)
            if current.order_status.is_terminal:
                raise OrderFinalizedError(order_id, current.order_status.value)
            validate_transition(
                order_id,
                expected,
                new,
                actor.role,
                courier_operated=current.is_platform_delivery,
            )
            holder: str | None = None
            if actor.role is ActorRole.COURIER:
                if current.courier_id != actor.id:
                    raise NotAssignedCourierError(order_id)
                holder = actor.id
            updated = await self._store.update_status(db, order_id, expected, new, courier_id=holder)
            if before_commit is not None:
                await before_commit(db, updated)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return updated

    async def cancel(self, db: AsyncSession, order_id: str, actor: Actor | None) -> Order:
        """Customer cancels an own order, admin any order; only legal from `received`."""
        if actor is None:
            raise InvalidCredentialsError()
        if actor.role is ActorRole.ADMIN:
            require(actor, Capability.CANCEL_ANY_ORDER)
        else:
            require(actor, Capability.CANCEL_OWN_ORDER)
        current = await with_store_timeout(self._store.get(db, order_id))
        ensure_owner(actor, current)
        return await self.transition(
            db, order_id, actor, current.order_status, OrderStatus.CANCELLED
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, db: AsyncSession, order_id: str, actor: Actor | None) -> Order:
        if actor is None:
            raise InvalidCredentialsError()
        order = await with_store_timeout(self._store.get(db, order_id))
        ensure_owner(actor, order)
        return order

    async def track(self, db: AsyncSession, tracking_number: str) -> Order:
        """Public lookup by tracking number (guest tracking page)."""
        return await with_store_timeout(self._store.get_by_tracking_number(db, tracking_number))

    async def list_for_customer(
        self,
        db: AsyncSession,
        actor: Actor | None,
        limit: int = 20,
        cursor: str | None = None,
    ) -> list[Order]:
        actor = require(actor, Capability.CREATE_ORDER)
        return await with_store_timeout(
            self._store.list(db, customer_id=actor.id, limit=limit, cursor_id=cursor)
        )

    async def list_for_restaurant(
        self,
        db: AsyncSession,
        actor: Actor | None,
        scope: str = "all",
        limit: int = 50,
        cursor: str | None = None,
    ) -> list[Order]:
        """scope: "all" | "active" | "history"."""
        actor = require(actor, Capability.ADVANCE_KITCHEN_STATUS)
        if actor.restaurant_id is None:
            raise ForbiddenError("actor is not bound to a restaurant")
        statuses = {
            "all": None,
            "active": list(ACTIVE_ORDER_STATUSES),
            "history": _HISTORY_STATUSES,
        }[scope]
        return await with_store_timeout(
            self._store.list(
                db,
                restaurant_id=actor.restaurant_id,
                statuses=statuses,
                limit=limit,
                cursor_id=cursor,
            )
        )

    async def list_all(
        self,
        db: AsyncSession,
        actor: Actor | None,
        restaurant_id: str | None = None,
        status: OrderStatus | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int = 50,
        cursor: str | None = None,
    ) -> list[Order]:
        require(actor, Capability.VIEW_ANY_ORDER)
        return await with_store_timeout(
            self._store.list(
                db,
                restaurant_id=restaurant_id,
                statuses=[status] if status else None,
                created_from=created_from,
                created_to=created_to,
                limit=limit,
                cursor_id=cursor,
            )
        )


_service: OrderLifecycleService | None = None


def get_lifecycle_service() -> OrderLifecycleService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = OrderLifecycleService()
    return _service
