"""Commission repository Protocols — interface contracts for the persistence layer."""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_commission.domain.models import (
    CommissionPayment,
    CommissionRecord,
    CommissionSummary,
    MemberTotals,
    TeamMember,
)
from src.fd_common.enums import CommissionStatus


class TeamDirectoryProtocol(Protocol):
    async def list_active_members_with_percentage(self, db: AsyncSession) -> list[TeamMember]: ...

    async def get_by_user_id(self, user_id: str, db: AsyncSession) -> TeamMember | None: ...


class CommissionRepositoryProtocol(Protocol):
    async def claim_materialization(self, order_id: str, db: AsyncSession) -> bool: ...

    async def insert_records(self, records: list[CommissionRecord], db: AsyncSession) -> None: ...

    async def set_status(
        self, record_id: str, status: CommissionStatus, db: AsyncSession
    ) -> CommissionRecord | None: ...

    async def insert_payment(self, payment: CommissionPayment, db: AsyncSession) -> None: ...

    async def mark_paid(
        self,
        payment_id: str,
        member_id: str,
        commission_ids: list[str] | None,
        db: AsyncSession,
    ) -> list[str]: ...

    async def list_records(
        self,
        db: AsyncSession,
        *,
        member_id: str | None = None,
        order_id: str | None = None,
        status: CommissionStatus | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CommissionRecord]: ...

    async def summarize(
        self, db: AsyncSession, member_id: str | None = None
    ) -> CommissionSummary: ...

    async def totals_by_member(self, db: AsyncSession) -> list[MemberTotals]: ...
