"""Delivery repository and position cache Protocols."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_delivery.domain.models import CourierPosition, DeliveryRecord, EarningsSummary


class DeliveryRepositoryProtocol(Protocol):
    async def insert(self, record: DeliveryRecord, db: AsyncSession) -> DeliveryRecord: ...

    async def list_for_courier(
        self, courier_id: str, db: AsyncSession, limit: int = 20, offset: int = 0
    ) -> list[DeliveryRecord]: ...

    async def earnings(
        self,
        courier_id: str,
        db: AsyncSession,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> EarningsSummary: ...


class PositionCacheProtocol(Protocol):
    async def store(self, position: CourierPosition) -> None: ...

    async def last_known(self, courier_id: str) -> CourierPosition | None: ...
