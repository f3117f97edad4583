"""Tests for OrderLifecycleService over in-memory repositories."""

import asyncio
from dataclasses import replace

import pytest

from config.settings import settings
from src.fd_common.enums import DeliveryMethod, EventType, OrderStatus, OrderType, PaymentStatus
from src.fd_common.errors import (
    ForbiddenError,
    IllegalTransitionError,
    InvalidCredentialsError,
    InvalidOrderDraftError,
    NotAssignedCourierError,
    OrderFinalizedError,
    OrderNotFoundError,
    ProductUnavailableError,
    RestaurantInactiveError,
    RestaurantNotFoundError,
    StaleStatusError,
    StoreUnavailableError,
)
from src.fd_pricing.domain.models import LineRequest
from tests.fakes import (
    admin,
    build_engine,
    courier,
    customer,
    make_draft,
    ready_order,
    restaurant_staff,
)

S = OrderStatus


class TestCreateOrder:
    async def test_pickup_order_is_priced_and_stored(self) -> None:
        engine = build_engine()
        db = engine.session()

        order = await engine.lifecycle.create_order(
            db, make_draft(order_type=OrderType.PICKUP), customer("cust-1")
        )

        assert order.subtotal == 3500
        assert order.delivery_fee == 0
        assert order.platform_commission == 420
        assert order.total == 3500
        assert order.order_status is S.RECEIVED
        assert order.payment_status is PaymentStatus.PENDING
        assert order.customer_id == "cust-1"
        assert order.tracking_number.startswith("ORD-")
        assert db.commits == 1
        assert engine.rows("orders")[0].id == order.id

    async def test_delivery_order_carries_fee(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), customer())
        assert order.delivery_fee == 4000
        assert order.total == 7500
        assert order.platform_commission == 420
        assert order.is_platform_delivery

    async def test_guest_order_has_no_customer(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), None)
        assert order.customer_id is None

    async def test_customer_id_comes_from_actor(self) -> None:
        engine = build_engine()
        draft = make_draft()
        draft.customer_id = "someone-else"
        order = await engine.lifecycle.create_order(engine.session(), draft, customer("cust-9"))
        assert order.customer_id == "cust-9"

    async def test_publishes_order_created_after_commit(self) -> None:
        engine = build_engine()
        order = await engine.lifecycle.create_order(engine.session(), make_draft(), customer())
        assert engine.publisher.types() == [EventType.ORDER_CREATED.value]
        event = engine.publisher.events[0]
        assert "restaurant:r1" in event.rooms
        assert event.payload["order_id"] == order.id

    async def test_restaurant_staff_cannot_create(self) -> None:
        engine = build_engine()
        with pytest.raises(ForbiddenError):
            await engine.lifecycle.create_order(engine.session(), make_draft(), restaurant_staff())

    async def test_unknown_restaurant(self) -> None:
        engine = build_engine()
        db = engine.session()
        with pytest.raises(RestaurantNotFoundError):
            await engine.lifecycle.create_order(db, make_draft(restaurant_id="nope"), customer())
        assert engine.rows("orders") == []
        assert db.rollbacks == 1
        assert engine.publisher.events == []

    async def test_inactive_restaurant(self) -> None:
        engine = build_engine()
        draft = make_draft(restaurant_id="r2", items=[LineRequest("p-other", 1)])
        with pytest.raises(RestaurantInactiveError):
            await engine.lifecycle.create_order(engine.session(), draft, customer())

    async def test_unavailable_product_leaves_nothing_behind(self) -> None:
        engine = build_engine()
        draft = make_draft(items=[LineRequest("p-burger", 1), LineRequest("p-gone", 1)])
        with pytest.raises(ProductUnavailableError):
            await engine.lifecycle.create_order(engine.session(), draft, customer())
        assert engine.rows("orders") == []

    async def test_delivery_without_method_is_invalid(self) -> None:
        engine = build_engine()
        draft = make_draft()
        draft.delivery_method = None
        with pytest.raises(InvalidOrderDraftError):
            await engine.lifecycle.create_order(engine.session(), draft, customer())


class TestTransitions:
    async def test_kitchen_flow(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        assert order.order_status is S.READY
        changes = [e for e in engine.publisher.events if e.type is EventType.ORDER_STATUS_CHANGED]
        assert [e.payload["previous_status"] for e in changes] == ["received", "preparing"]
        assert [e.payload["status"] for e in changes] == ["preparing", "ready"]

    async def test_received_to_delivered_is_illegal(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer())
        published = len(engine.publisher.events)

        with pytest.raises(IllegalTransitionError):
            await engine.lifecycle.transition(db, order.id, admin(), S.RECEIVED, S.DELIVERED)

        assert engine.rows("orders")[0].order_status is S.RECEIVED
        assert len(engine.publisher.events) == published

    async def test_stale_expected_status_is_retryable(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer())

        with pytest.raises(StaleStatusError) as exc_info:
            await engine.lifecycle.transition(
                db, order.id, restaurant_staff(), S.PREPARING, S.READY
            )
        assert exc_info.value.retryable
        assert exc_info.value.actual == "received"
        assert engine.rows("orders")[0].order_status is S.RECEIVED

    async def test_second_identical_transition_loses(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer())
        staff = restaurant_staff()
        await engine.lifecycle.transition(db, order.id, staff, S.RECEIVED, S.PREPARING)
        with pytest.raises(StaleStatusError):
            await engine.lifecycle.transition(db, order.id, staff, S.RECEIVED, S.PREPARING)

    async def test_other_restaurant_is_forbidden(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer())
        with pytest.raises(ForbiddenError):
            await engine.lifecycle.transition(
                db, order.id, restaurant_staff("r9"), S.RECEIVED, S.PREPARING
            )

    async def test_restaurant_cannot_drive_platform_courier_steps(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        with pytest.raises(ForbiddenError):
            await engine.lifecycle.transition(
                engine.session(), order.id, restaurant_staff(), S.READY, S.ON_THE_WAY
            )

    async def test_restaurant_drives_own_delivery(self) -> None:
        engine = build_engine()
        draft = make_draft(delivery_method=DeliveryMethod.RESTAURANT_OPERATED)
        order = await ready_order(engine, draft)
        db = engine.session()
        staff = restaurant_staff()
        await engine.lifecycle.transition(db, order.id, staff, S.READY, S.ON_THE_WAY)
        done = await engine.lifecycle.transition(db, order.id, staff, S.ON_THE_WAY, S.DELIVERED)
        assert done.order_status is S.DELIVERED
        assert done.delivered_at is not None

    async def test_unclaimed_courier_step_is_rejected(self) -> None:
        engine = build_engine()
        order = await ready_order(engine)
        with pytest.raises(NotAssignedCourierError):
            await engine.lifecycle.transition(
                engine.session(), order.id, courier(), S.READY, S.ON_THE_WAY
            )

    async def test_missing_order(self) -> None:
        engine = build_engine()
        with pytest.raises(OrderNotFoundError):
            await engine.lifecycle.transition(
                engine.session(), "missing", admin(), S.RECEIVED, S.PREPARING
            )

    async def test_anonymous_transition(self) -> None:
        engine = build_engine()
        with pytest.raises(InvalidCredentialsError):
            await engine.lifecycle.transition(
                engine.session(), "any", None, S.RECEIVED, S.PREPARING
            )


class TestCancel:
    async def test_customer_cancels_received_order(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        cancelled = await engine.lifecycle.cancel(db, order.id, customer("c1"))
        assert cancelled.order_status is S.CANCELLED

    async def test_cancel_from_preparing_is_rejected(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        await engine.lifecycle.transition(db, order.id, restaurant_staff(), S.RECEIVED, S.PREPARING)

        with pytest.raises(IllegalTransitionError):
            await engine.lifecycle.cancel(db, order.id, customer("c1"))
        assert engine.rows("orders")[0].order_status is S.PREPARING

    async def test_other_customer_cannot_cancel(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        with pytest.raises(ForbiddenError):
            await engine.lifecycle.cancel(db, order.id, customer("c2"))

    async def test_admin_cancels_any_order(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        cancelled = await engine.lifecycle.cancel(db, order.id, admin())
        assert cancelled.order_status is S.CANCELLED

    async def test_cancelled_order_is_final(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        await engine.lifecycle.cancel(db, order.id, customer("c1"))
        with pytest.raises(OrderFinalizedError):
            await engine.lifecycle.cancel(db, order.id, customer("c1"))

    async def test_restaurant_cannot_cancel(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        with pytest.raises(ForbiddenError):
            await engine.lifecycle.cancel(db, order.id, restaurant_staff())


class TestReads:
    async def test_owner_reads_order(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        assert (await engine.lifecycle.get(db, order.id, customer("c1"))).id == order.id

    async def test_stranger_cannot_read(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        with pytest.raises(ForbiddenError):
            await engine.lifecycle.get(db, order.id, customer("c2"))

    async def test_track_by_tracking_number(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), None)
        tracked = await engine.lifecycle.track(db, order.tracking_number)
        assert tracked.id == order.id

    async def test_catalog_price_change_leaves_stored_order_untouched(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))

        engine.catalog.products["p-burger"] = replace(
            engine.catalog.products["p-burger"], unit_price=9999
        )
        engine.catalog.products["p-pasta"] = replace(
            engine.catalog.products["p-pasta"], available=False
        )

        for stored in (
            await engine.lifecycle.get(db, order.id, customer("c1")),
            await engine.lifecycle.track(db, order.tracking_number),
            await engine.orders.get(db, order.id),
        ):
            assert [(i.product_id, i.unit_price) for i in stored.items] == [
                ("p-burger", 1000),
                ("p-pasta", 1500),
            ]
            assert stored.subtotal == 3500
            assert stored.platform_commission == 420
            assert stored.total == 7500

        repriced = await engine.lifecycle.create_order(
            db, make_draft(items=[LineRequest("p-burger", 1)]), customer("c1")
        )
        assert repriced.subtotal == 9999

    async def test_track_unknown(self) -> None:
        engine = build_engine()
        with pytest.raises(OrderNotFoundError):
            await engine.lifecycle.track(engine.session(), "ORD-NOPE-0000")

    async def test_restaurant_scopes(self) -> None:
        engine = build_engine()
        db = engine.session()
        active = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        done = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        await engine.lifecycle.cancel(db, done.id, customer("c1"))
        staff = restaurant_staff()

        assert [o.id for o in await engine.lifecycle.list_for_restaurant(db, staff, "active")] == [active.id]
        assert [o.id for o in await engine.lifecycle.list_for_restaurant(db, staff, "history")] == [done.id]
        assert len(await engine.lifecycle.list_for_restaurant(db, staff, "all")) == 2

    async def test_customer_lists_only_own_orders(self) -> None:
        engine = build_engine()
        db = engine.session()
        mine = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        await engine.lifecycle.create_order(db, make_draft(), customer("c2"))
        orders = await engine.lifecycle.list_for_customer(db, customer("c1"))
        assert [o.id for o in orders] == [mine.id]

    async def test_list_all_requires_admin(self) -> None:
        engine = build_engine()
        with pytest.raises(ForbiddenError):
            await engine.lifecycle.list_all(engine.session(), customer())


class TestFinalOrders:
    async def test_advancing_cancelled_order_is_final(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        await engine.lifecycle.cancel(db, order.id, customer("c1"))
        published = len(engine.publisher.events)

        with pytest.raises(OrderFinalizedError) as exc_info:
            await engine.lifecycle.transition(db, order.id, admin(), S.RECEIVED, S.PREPARING)

        assert not exc_info.value.retryable
        assert exc_info.value.http_status == 422
        assert engine.rows("orders")[0].order_status is S.CANCELLED
        assert len(engine.publisher.events) == published

    async def test_store_swap_on_final_order_is_final(self) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        await engine.lifecycle.cancel(db, order.id, customer("c1"))

        with pytest.raises(OrderFinalizedError):
            await engine.orders.update_status(db, order.id, S.RECEIVED, S.PREPARING)


class TestStoreTimeout:
    async def test_timed_out_transition_rolls_back(self, monkeypatch: pytest.MonkeyPatch) -> None:
        engine = build_engine()
        db = engine.session()
        order = await engine.lifecycle.create_order(db, make_draft(), customer("c1"))
        monkeypatch.setattr(settings, "STORE_TIMEOUT_SECONDS", 0.05)

        async def _stall(session: object, updated: object) -> None:
            await asyncio.sleep(1)

        with pytest.raises(StoreUnavailableError):
            await engine.lifecycle.transition(
                db, order.id, restaurant_staff(), S.RECEIVED, S.PREPARING, before_commit=_stall
            )

        assert db.rollbacks == 1
        assert engine.rows("orders")[0].order_status is S.RECEIVED
