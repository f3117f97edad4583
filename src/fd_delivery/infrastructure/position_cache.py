"""Last-known courier position, kept in Redis under an expiring key.

``courier:position:<courier_id>`` holds a small JSON document and expires
after COURIER_POSITION_TTL_SECONDS, so a courier that goes silent simply
disappears from the cache.
"""

import json
from datetime import datetime

import redis.asyncio as aioredis

from config.settings import settings
from src.fd_common.datetime_utils import to_iso
from src.fd_common.redis_client import get_redis
from src.fd_delivery.domain.models import CourierPosition

_KEY_PREFIX = "courier:position:"


def position_key(courier_id: str) -> str:
    return f"{_KEY_PREFIX}{courier_id}"


class RedisPositionCache:
    def __init__(
        self,
        redis: aioredis.Redis | None = None,
        ttl_seconds: int = settings.COURIER_POSITION_TTL_SECONDS,
    ) -> None:
        self._redis = redis
        self._ttl = ttl_seconds

    async def _client(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    async def store(self, position: CourierPosition) -> None:
        client = await self._client()
        value = json.dumps(
            {
                "order_id": position.order_id,
                "latitude": position.latitude,
                "longitude": position.longitude,
                "reported_at": to_iso(position.reported_at),
            }
        )
        await client.set(position_key(position.courier_id), value, ex=self._ttl)

    async def last_known(self, courier_id: str) -> CourierPosition | None:
        client = await self._client()
        raw = await client.get(position_key(courier_id))
        if raw is None:
            return None
        data = json.loads(raw)
        return CourierPosition(
            courier_id=courier_id,
            order_id=data["order_id"],
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            reported_at=datetime.fromisoformat(data["reported_at"]),
        )
