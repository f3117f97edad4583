"""Tests for DeliveryService — claims, pickup/delivery and courier positions."""

import pytest

from src.fd_common.enums import DeliveryMethod, EventType, OrderStatus, OrderType
from src.fd_common.errors import (
    AlreadyClaimedError,
    ForbiddenError,
    IllegalTransitionError,
    InvalidCredentialsError,
    NotAssignedCourierError,
    OrderFinalizedError,
    OrderNotClaimableError,
    OrderNotFoundError,
)
from src.fd_delivery.domain.models import DeliveryRecord
from src.fd_order.domain.models import Order
from tests.fakes import (
    DuplicateKeyError,
    Engine,
    build_engine,
    courier,
    customer,
    make_draft,
    ready_order,
    restaurant_staff,
)

S = OrderStatus


class TestClaim:
    async def test_first_claim_wins(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()

        claimed = await engine.delivery.claim(db, order.id, courier("x"))
        assert claimed.courier_id == "x"

        with pytest.raises(AlreadyClaimedError) as exc_info:
            await engine.delivery.claim(db, order.id, courier("y"))
        assert exc_info.value.retryable
        assert engine.rows("orders")[0].courier_id == "x"
        assert db.rollbacks == 1

    async def test_claim_publishes_to_courier_room(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        await engine.delivery.claim(engine.session(), order.id, courier("x"))
        event = engine.publisher.events[-1]
        assert event.type is EventType.ORDER_STATUS_CHANGED
        assert "courier:x" in event.rooms
        assert event.payload["courier_id"] == "x"

    async def test_cannot_claim_order_not_ready(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer())
        with pytest.raises(OrderNotClaimableError):
            await engine.delivery.claim(db, order.id, courier("x"))

    async def test_cannot_claim_restaurant_operated_order(self) -> None:
        engine = build_engine()
        order = await ready_order(engine, make_draft(delivery_method=DeliveryMethod.RESTAURANT_OPERATED))
        with pytest.raises(OrderNotClaimableError):
            await engine.delivery.claim(engine.session(), order.id, courier("x"))

    async def test_cannot_claim_pickup_order(self) -> None:
        engine = build_engine()
        order = await ready_order(engine, make_draft(order_type=OrderType.PICKUP))
        with pytest.raises(OrderNotClaimableError):
            await engine.delivery.claim(engine.session(), order.id, courier("x"))

    async def test_claim_missing_order(self) -> None:
        engine = build_engine()
        with pytest.raises(OrderNotFoundError):
            await engine.delivery.claim(engine.session(), "missing", courier("x"))

    async def test_only_couriers_claim(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        with pytest.raises(ForbiddenError):
            await engine.delivery.claim(engine.session(), order.id, restaurant_staff())
        with pytest.raises(InvalidCredentialsError):
            await engine.delivery.claim(engine.session(), order.id, None)


class TestRelease:
    async def test_release_returns_order_to_pool(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()
        await engine.delivery.claim(db, order.id, courier("x"))

        released = await engine.delivery.release(db, order.id, courier("x"))
        assert released.courier_id is None

        claimed = await engine.delivery.claim(db, order.id, courier("y"))
        assert claimed.courier_id == "y"

    async def test_other_courier_cannot_release(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()
        await engine.delivery.claim(db, order.id, courier("x"))
        with pytest.raises(NotAssignedCourierError):
            await engine.delivery.release(db, order.id, courier("y"))

    async def test_cannot_release_after_pickup(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()
        await engine.delivery.claim(db, order.id, courier("x"))
        await engine.delivery.mark_picked_up(db, order.id, courier("x"))
        with pytest.raises(IllegalTransitionError):
            await engine.delivery.release(db, order.id, courier("x"))


class TestPickupAndDelivery:
    async def test_full_courier_flow_books_delivery(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()
        x = courier("x")
        await engine.delivery.claim(db, order.id, x)

        on_the_way = await engine.delivery.mark_picked_up(db, order.id, x)
        assert on_the_way.order_status is S.ON_THE_WAY

        delivered = await engine.delivery.mark_delivered(db, order.id, x)
        assert delivered.order_status is S.DELIVERED

        records = engine.rows("deliveries")
        assert len(records) == 1
        assert records[0].order_id == order.id
        assert records[0].courier_id == "x"
        assert records[0].fee == order.delivery_fee == 4000

    async def test_repeated_delivery_is_final_not_stale(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()
        x = courier("x")
        await engine.delivery.claim(db, order.id, x)
        await engine.delivery.mark_picked_up(db, order.id, x)
        await engine.delivery.mark_delivered(db, order.id, x)
        published = len(engine.publisher.events)

        with pytest.raises(OrderFinalizedError) as exc_info:
            await engine.delivery.mark_delivered(db, order.id, x)

        assert not exc_info.value.retryable
        assert len(engine.rows("deliveries")) == 1
        assert len(engine.publisher.events) == published

    async def test_unassigned_courier_cannot_pick_up(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()
        await engine.delivery.claim(db, order.id, courier("x"))
        with pytest.raises(NotAssignedCourierError):
            await engine.delivery.mark_picked_up(db, order.id, courier("y"))
        assert engine.rows("orders")[0].order_status is S.READY

    async def test_failed_booking_rolls_back_status(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        db = engine.session()
        x = courier("x")
        await engine.delivery.claim(db, order.id, x)
        await engine.delivery.mark_picked_up(db, order.id, x)
        # a stale booking for the same order makes the insert fail
        engine.store.table("deliveries")["old"] = DeliveryRecord(
            id="old", order_id=order.id, courier_id="x", fee=1
        )

        with pytest.raises(DuplicateKeyError):
            await engine.delivery.mark_delivered(db, order.id, x)

        assert engine.rows("orders")[0].order_status is S.ON_THE_WAY
        assert [r.id for r in engine.rows("deliveries")] == ["old"]

    async def test_history_and_earnings(self) -> None:
        engine = build_engine()
        x = courier("x")
        db = engine.session()
        for _ in range(2):
            order = await ready_order(engine)
            await engine.delivery.claim(db, order.id, x)
            await engine.delivery.mark_picked_up(db, order.id, x)
            await engine.delivery.mark_delivered(db, order.id, x)

        history = await engine.delivery.history(db, x)
        assert len(history) == 2
        earnings = await engine.delivery.earnings(db, x)
        assert earnings.total_deliveries == 2
        assert earnings.total_earnings == 8000
        assert earnings.average_per_delivery == 4000

    async def test_claimable_and_assigned_lists(self) -> None:
        engine = build_engine()
        first = await ready_order(engine)
        second = await ready_order(engine)
        await ready_order(engine, make_draft(delivery_method=DeliveryMethod.RESTAURANT_OPERATED))
        db = engine.session()
        x = courier("x")

        claimable = await engine.delivery.list_claimable(db, x)
        assert {o.id for o in claimable} == {first.id, second.id}

        await engine.delivery.claim(db, first.id, x)
        assert [o.id for o in await engine.delivery.list_claimable(db, x)] == [second.id]
        assert [o.id for o in await engine.delivery.assigned(db, x)] == [first.id]
        assert (await engine.delivery.current(db, x)).id == first.id

    async def test_current_prefers_order_on_the_way(self) -> None:
        engine = build_engine()
        first = await ready_order(engine)
        second = await ready_order(engine)
        db = engine.session()
        x = courier("x")
        await engine.delivery.claim(db, first.id, x)
        await engine.delivery.claim(db, second.id, x)
        await engine.delivery.mark_picked_up(db, second.id, x)
        assert (await engine.delivery.current(db, x)).id == second.id

    async def test_current_without_orders(self) -> None:
        engine = build_engine()
        assert await engine.delivery.current(engine.session(), courier("x")) is None


class TestLocation:
    async def _on_the_way(self, engine: Engine, courier_id: str = "x") -> Order:
        order = await ready_order(engine, actor=customer("c1"))
        db = engine.session()
        await engine.delivery.claim(db, order.id, courier(courier_id))
        await engine.delivery.mark_picked_up(db, order.id, courier(courier_id))
        return order

    async def test_location_is_cached_and_broadcast(self) -> None:
        engine = build_engine()
        order = await self._on_the_way(engine)

        position = await engine.delivery.update_location(engine.session(), courier("x"), 4.65, -74.05)

        assert position is not None
        assert position.order_id == order.id
        assert engine.positions.positions["x"].latitude == 4.65
        event = engine.publisher.events[-1]
        assert event.type is EventType.COURIER_LOCATION
        assert event.rooms == (f"order:{order.id}",)
        assert event.payload["longitude"] == -74.05

    async def test_location_without_active_order_is_dropped(self) -> None:
        engine = build_engine()
        published = len(engine.publisher.events)
        assert await engine.delivery.update_location(engine.session(), courier("x"), 1.0, 2.0) is None
        assert engine.positions.positions == {}
        assert len(engine.publisher.events) == published

    async def test_location_while_only_claimed_is_dropped(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        await engine.delivery.claim(engine.session(), order.id, courier("x"))
        assert await engine.delivery.update_location(engine.session(), courier("x"), 1.0, 2.0) is None

    async def test_only_couriers_report_location(self) -> None:
        engine = build_engine()
        with pytest.raises(ForbiddenError):
            await engine.delivery.update_location(engine.session(), customer(), 1.0, 2.0)

    async def test_customer_reads_last_position(self) -> None:
        engine = build_engine()
        order = await self._on_the_way(engine)
        await engine.delivery.update_location(engine.session(), courier("x"), 4.6, -74.0)

        position = await engine.delivery.last_position(engine.session(), order.id, customer("c1"))
        assert position is not None
        assert (position.latitude, position.longitude) == (4.6, -74.0)

    async def test_last_position_after_delivery_is_none(self) -> None:
        engine = build_engine()
        order = await self._on_the_way(engine)
        await engine.delivery.update_location(engine.session(), courier("x"), 4.6, -74.0)
        await engine.delivery.mark_delivered(engine.session(), order.id, courier("x"))
        assert await engine.delivery.last_position(engine.session(), order.id, customer("c1")) is None

    async def test_stranger_cannot_read_position(self) -> None:
        engine = build_engine()
        order = await self._on_the_way(engine)
        with pytest.raises(ForbiddenError):
            await engine.delivery.last_position(engine.session(), order.id, customer("c2"))
