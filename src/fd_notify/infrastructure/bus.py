"""NotificationBus — best-effort, room-scoped fan-out of committed state changes.

Delivery model:
  - Local subscribers (WebSocket connections of this process) each own a
    bounded asyncio.Queue; on overflow the oldest queued event is dropped.
  - When a Redis client is attached, every event is mirrored once to the
    ``events`` channel, tagged with this process's origin id. Each process
    runs ``listen`` on that channel and fans remote events out to its own
    subscribers; its own echoes are skipped so nothing is delivered twice.
  - Nothing is persisted; a reconnecting client re-reads the order record.

``publish`` never raises into the transactional core.
"""

import asyncio
import json
import logging
import uuid
from collections.abc import AsyncIterator, Iterable
from typing import Protocol

import redis.asyncio as aioredis

from config.settings import settings
from src.fd_notify.domain.events import DomainEvent

logger = logging.getLogger(__name__)

MIRROR_CHANNEL = "events"
_RECONNECT_DELAY_SECONDS = 1.0


class EventPublisherProtocol(Protocol):
    async def publish(self, event: DomainEvent) -> int: ...


class Subscription:
    def __init__(self, bus: "NotificationBus", rooms: frozenset[str], maxsize: int) -> None:
        self._bus = bus
        self.rooms = rooms
        self.queue: asyncio.Queue[DomainEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def deliver(self, event: DomainEvent) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(event)

    async def get(self) -> DomainEvent:
        return await self.queue.get()

    def __aiter__(self) -> AsyncIterator[DomainEvent]:
        return self

    async def __anext__(self) -> DomainEvent:
        return await self.get()

    def close(self) -> None:
        self._bus.unsubscribe(self)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class NotificationBus:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        queue_size: int = settings.EVENT_QUEUE_SIZE,
    ) -> None:
        self._redis = redis
        self._queue_size = queue_size
        self._subscriptions: set[Subscription] = set()
        self.origin = uuid.uuid4().hex

    def attach_redis(self, redis: aioredis.Redis | None) -> None:
        self._redis = redis

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, rooms: Iterable[str]) -> Subscription:
        sub = Subscription(self, frozenset(rooms), self._queue_size)
        self._subscriptions.add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subscriptions.discard(sub)

    def _fan_out(self, event: DomainEvent) -> int:
        targets = set(event.rooms)
        delivered = 0
        for sub in list(self._subscriptions):
            if sub.rooms & targets:
                sub.deliver(event)
                delivered += 1
        return delivered

    async def publish(self, event: DomainEvent) -> int:
        """Deliver to every connected subscriber of any target room (once each).

        Returns the number of local deliveries.
        """
        delivered = self._fan_out(event)

        if self._redis is not None:
            message = json.dumps({"origin": self.origin, **event.to_wire()})
            try:
                await self._redis.publish(MIRROR_CHANNEL, message)
            except Exception:
                logger.exception("Event mirror to Redis failed: %s", event.type.value)

        logger.debug("Published %s to %s (%d local)", event.type.value, event.rooms, delivered)
        return delivered

    def receive_remote(self, raw: str | bytes) -> int:
        """Fan out an event mirrored by another process; own echoes are skipped."""
        data = json.loads(raw)
        if data.get("origin") == self.origin:
            return 0
        return self._fan_out(DomainEvent.from_wire(data))

    async def listen(self, redis: aioredis.Redis) -> None:
        """Consume the mirror channel until cancelled, reconnecting after failures."""
        while True:
            try:
                await self._consume(redis)
            except Exception:
                logger.exception("Event mirror listener failed; reconnecting")
                await asyncio.sleep(_RECONNECT_DELAY_SECONDS)

    async def _consume(self, redis: aioredis.Redis) -> None:
        pubsub = redis.pubsub()
        await pubsub.subscribe(MIRROR_CHANNEL)
        try:
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                try:
                    self.receive_remote(message["data"])
                except (ValueError, KeyError, TypeError):
                    logger.warning("Malformed mirrored event dropped: %r", message["data"])
        finally:
            await pubsub.aclose()


_bus: NotificationBus | None = None


def get_notification_bus() -> NotificationBus:
    global _bus  # noqa: PLW0603
    if _bus is None:
        _bus = NotificationBus()
    return _bus
