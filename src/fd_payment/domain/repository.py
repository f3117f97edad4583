"""PaymentRepository Protocol — interface contract for the persistence layer."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.enums import PaymentStatus
from src.fd_payment.domain.models import Payment


class PaymentRepositoryProtocol(Protocol):
    async def insert(self, payment: Payment, db: AsyncSession) -> Payment: ...

    async def get_by_id(
        self, payment_id: str, db: AsyncSession, for_update: bool = False
    ) -> Payment | None: ...

    async def get_by_external_id(
        self, external_payment_id: str, db: AsyncSession
    ) -> Payment | None: ...

    async def attach_external_id(
        self, order_id: str, external_payment_id: str, gateway_status: str, db: AsyncSession
    ) -> Payment | None: ...

    async def upsert_by_external_id(self, payment: Payment, db: AsyncSession) -> Payment: ...

    async def set_status(
        self,
        payment_id: str,
        status: PaymentStatus,
        db: AsyncSession,
        refund_reason: str | None = None,
    ) -> Payment | None: ...

    async def list_for_order(self, order_id: str, db: AsyncSession) -> list[Payment]: ...
