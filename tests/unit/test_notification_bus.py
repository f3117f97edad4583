"""Tests for NotificationBus fan-out and WebSocket room access rules."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.fd_common.enums import ActorRole
from src.fd_gateway.auth.capabilities import Actor
from src.fd_notify.domain.access import RoomAccessError, authorize_rooms, can_subscribe, parse_rooms
from src.fd_notify.domain.events import DomainEvent, commission_materialized, courier_location
from src.fd_notify.infrastructure.bus import MIRROR_CHANNEL, NotificationBus


def _location(order_id: str = "o1", n: float = 0.0) -> DomainEvent:
    return courier_location(order_id, "c1", n, n)


class TestPublish:
    async def test_delivers_to_room_subscribers_only(self) -> None:
        bus = NotificationBus(queue_size=10)
        watching = bus.subscribe(["order:o1"])
        elsewhere = bus.subscribe(["order:o2"])

        delivered = await bus.publish(_location("o1"))

        assert delivered == 1
        assert watching.queue.qsize() == 1
        assert elsewhere.queue.qsize() == 0

    async def test_subscriber_in_several_target_rooms_gets_one_copy(self) -> None:
        bus = NotificationBus(queue_size=10)
        sub = bus.subscribe(["admin", "restaurant:r1"])
        event = DomainEvent(type=_location().type, rooms=("restaurant:r1", "admin"), payload={})

        assert await bus.publish(event) == 1
        assert sub.queue.qsize() == 1

    async def test_overflow_drops_oldest(self) -> None:
        bus = NotificationBus(queue_size=2)
        sub = bus.subscribe(["order:o1"])
        for n in (1.0, 2.0, 3.0):
            await bus.publish(_location("o1", n))

        assert sub.dropped == 1
        first = await sub.get()
        second = await sub.get()
        assert [first.payload["latitude"], second.payload["latitude"]] == [2.0, 3.0]

    async def test_slow_subscriber_does_not_affect_others(self) -> None:
        bus = NotificationBus(queue_size=1)
        slow = bus.subscribe(["order:o1"])
        fast = bus.subscribe(["order:o1"])
        await bus.publish(_location("o1", 1.0))
        await fast.get()
        await bus.publish(_location("o1", 2.0))

        assert slow.dropped == 1
        assert fast.dropped == 0
        assert (await fast.get()).payload["latitude"] == 2.0

    async def test_context_manager_unsubscribes(self) -> None:
        bus = NotificationBus()
        with bus.subscribe(["admin"]):
            assert bus.subscriber_count == 1
        assert bus.subscriber_count == 0
        assert await bus.publish(commission_materialized("o1", {"a": 1})) == 0

    async def test_mirrors_once_to_redis_with_origin(self) -> None:
        redis = AsyncMock()
        bus = NotificationBus(redis=redis)
        await bus.publish(commission_materialized("o1", {"a": 5}))
        redis.publish.assert_awaited_once()
        channel, message = redis.publish.await_args.args
        assert channel == MIRROR_CHANNEL
        data = json.loads(message)
        assert data["origin"] == bus.origin
        assert data["rooms"] == ["admin"]
        assert data["type"] == "CommissionMaterialized"

    async def test_redis_failure_never_raises(self) -> None:
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        bus = NotificationBus(redis=redis)
        sub = bus.subscribe(["admin"])
        assert await bus.publish(commission_materialized("o1", {"a": 5})) == 1
        assert sub.queue.qsize() == 1

    def test_message_shape(self) -> None:
        message = _location("o9", 1.5).to_message()
        assert message["type"] == "CourierLocation"
        assert message["data"]["order_id"] == "o9"
        assert message["occurred_at"].endswith("+00:00")


class TestRemoteEvents:
    async def _mirrored(self, event: DomainEvent) -> str:
        redis = AsyncMock()
        await NotificationBus(redis=redis).publish(event)
        return redis.publish.await_args.args[1]

    async def test_event_from_other_process_reaches_local_subscribers(self) -> None:
        message = await self._mirrored(_location("o1", 4.5))
        bus = NotificationBus(queue_size=10)
        watching = bus.subscribe(["order:o1"])
        elsewhere = bus.subscribe(["order:o2"])

        assert bus.receive_remote(message) == 1

        event = await watching.get()
        assert event.payload["latitude"] == 4.5
        assert event.rooms == ("order:o1",)
        assert event.to_message()["type"] == "CourierLocation"
        assert elsewhere.queue.qsize() == 0

    async def test_own_echo_is_skipped(self) -> None:
        redis = AsyncMock()
        bus = NotificationBus(redis=redis)
        sub = bus.subscribe(["order:o1"])
        await bus.publish(_location("o1"))
        echo = redis.publish.await_args.args[1]

        assert bus.receive_remote(echo) == 0
        assert sub.queue.qsize() == 1

    async def test_listener_feeds_subscribers_and_skips_malformed(self) -> None:
        message = await self._mirrored(_location("o1", 7.0))
        bus = NotificationBus(queue_size=10)
        sub = bus.subscribe(["order:o1"])

        pubsub = MagicMock()
        pubsub.subscribe = AsyncMock()
        pubsub.aclose = AsyncMock()
        pubsub.get_message = AsyncMock(
            side_effect=[None, {"data": "not json"}, {"data": message}, asyncio.CancelledError()]
        )
        redis = MagicMock()
        redis.pubsub.return_value = pubsub

        with pytest.raises(asyncio.CancelledError):
            await bus.listen(redis)

        pubsub.subscribe.assert_awaited_once_with(MIRROR_CHANNEL)
        pubsub.aclose.assert_awaited_once()
        assert (await sub.get()).payload["latitude"] == 7.0
        assert sub.queue.qsize() == 0


class TestRoomAccess:
    def test_parse_rooms(self) -> None:
        assert parse_rooms(" order:1, admin ,order:1,,") == ["order:1", "admin"]
        assert parse_rooms("") == []

    def test_order_rooms_are_open_to_guests(self) -> None:
        assert can_subscribe(None, "order:123")

    def test_admin_room(self) -> None:
        assert can_subscribe(Actor(id="a", role=ActorRole.ADMIN), "admin")
        assert not can_subscribe(Actor(id="c", role=ActorRole.CUSTOMER), "admin")
        assert not can_subscribe(None, "admin")

    def test_restaurant_room(self) -> None:
        staff = Actor(id="s", role=ActorRole.RESTAURANT, restaurant_id="r1")
        assert can_subscribe(staff, "restaurant:r1")
        assert not can_subscribe(staff, "restaurant:r2")
        assert not can_subscribe(None, "restaurant:r1")

    def test_courier_room(self) -> None:
        courier = Actor(id="x", role=ActorRole.COURIER)
        assert can_subscribe(courier, "courier:x")
        assert not can_subscribe(courier, "courier:y")
        assert can_subscribe(Actor(id="a", role=ActorRole.ADMIN), "courier:y")

    def test_malformed_rooms(self) -> None:
        admin = Actor(id="a", role=ActorRole.ADMIN)
        assert not can_subscribe(admin, "order:")
        assert not can_subscribe(admin, "kitchen:1")

    def test_authorize_rejects_on_first_forbidden(self) -> None:
        with pytest.raises(RoomAccessError) as exc_info:
            authorize_rooms(None, ["order:1", "admin"])
        assert exc_info.value.room == "admin"

    def test_authorize_returns_set(self) -> None:
        assert authorize_rooms(None, ["order:1", "order:2"]) == frozenset({"order:1", "order:2"})
