"""CommissionLedger — per-member commission records, payout batches and summaries.

``materialize`` runs inside the caller's transaction (payment reconciliation
calls it between the payment-status write and the commit) and never commits.
Every other write operation is its own unit of work.
"""

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_commission.domain.models import (
    CommissionPayment,
    CommissionRecord,
    CommissionSummary,
    MemberTotals,
    TeamMember,
)
from src.fd_commission.domain.repository import (
    CommissionRepositoryProtocol,
    TeamDirectoryProtocol,
)
from src.fd_commission.domain.split import compute_shares
from src.fd_commission.infrastructure.persistence import CommissionRepository, TeamDirectory
from src.fd_common.database import with_store_timeout
from src.fd_common.enums import CommissionStatus
from src.fd_common.errors import (
    CommissionAlreadyMaterializedError,
    CommissionNotFoundError,
    CommissionNotPayableError,
    OrderNotFoundError,
    TeamMemberNotFoundError,
)
from src.fd_common.id_generator import generate_id
from src.fd_gateway.auth.capabilities import Actor, Capability, require
from src.fd_notify.domain.events import commission_materialized
from src.fd_notify.infrastructure.bus import EventPublisherProtocol, get_notification_bus
from src.fd_order.domain.repository import OrderRepositoryProtocol
from src.fd_order.infrastructure.persistence import OrderRepository

logger = logging.getLogger(__name__)


class CommissionLedger:
    def __init__(
        self,
        repo: CommissionRepositoryProtocol | None = None,
        directory: TeamDirectoryProtocol | None = None,
        orders: OrderRepositoryProtocol | None = None,
        publisher: EventPublisherProtocol | None = None,
    ) -> None:
        self._repo: CommissionRepositoryProtocol = repo or CommissionRepository()
        self._directory: TeamDirectoryProtocol = directory or TeamDirectory()
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._publisher: EventPublisherProtocol = publisher or get_notification_bus()

    # ------------------------------------------------------------------
    # Materialization
    # ------------------------------------------------------------------

    async def materialize(self, db: AsyncSession, order_id: str) -> list[CommissionRecord]:
        """Split the order's platform commission across the members active *now*.

        No active members: no-op, returns []. A second materialization of the
        same order raises CommissionAlreadyMaterializedError.
        """
        order = await self._orders.get_by_id(order_id, db)
        if order is None:
            raise OrderNotFoundError(order_id)
        members = await self._directory.list_active_members_with_percentage(db)
        if not members:
            logger.info("No active team members; order %s materializes nothing", order_id)
            return []
        if not await self._repo.claim_materialization(order_id, db):
            raise CommissionAlreadyMaterializedError(order_id)

        shares = compute_shares(order.platform_commission, members)
        records = [
            CommissionRecord(
                id=generate_id(),
                member_id=m.id,
                order_id=order_id,
                percentage_bps=m.percentage_bps,
                amount=shares[m.id],
            )
            for m in members
        ]
        await self._repo.insert_records(records, db)
        logger.info(
            "Materialized %d commission records for order %s (pool=%d)",
            len(records),
            order_id,
            order.platform_commission,
        )
        return records

    async def materialize_now(
        self, db: AsyncSession, order_id: str, actor: Actor | None
    ) -> list[CommissionRecord]:
        """Admin-triggered materialization as its own transaction."""
        require(actor, Capability.MANAGE_COMMISSIONS)
        records = await with_store_timeout(self._materialize_tx(db, order_id))
        if records:
            await self._publisher.publish(
                commission_materialized(order_id, {r.member_id: r.amount for r in records})
            )
        return records

    async def _materialize_tx(self, db: AsyncSession, order_id: str) -> list[CommissionRecord]:
        try:
            records = await self.materialize(db, order_id)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return records

    # ------------------------------------------------------------------
    # Status and payouts
    # ------------------------------------------------------------------

    async def update_status(
        self,
        db: AsyncSession,
        record_id: str,
        new_status: CommissionStatus,
        actor: Actor | None,
    ) -> CommissionRecord:
        require(actor, Capability.MANAGE_COMMISSIONS)
        return await with_store_timeout(self._update_status_tx(db, record_id, new_status))

    async def _update_status_tx(
        self, db: AsyncSession, record_id: str, new_status: CommissionStatus
    ) -> CommissionRecord:
        try:
            record = await self._repo.set_status(record_id, new_status, db)
            if record is None:
                raise CommissionNotFoundError(record_id)
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return record

    async def record_payment(
        self,
        db: AsyncSession,
        actor: Actor | None,
        member_id: str,
        amount: int,
        payment_method: str,
        notes: str | None = None,
        commission_ids: list[str] | None = None,
    ) -> CommissionPayment:
        """Record a payout batch and flip its records to paid, all or nothing.

        With `commission_ids`: exactly those records, each of which must belong
        to the member and be approved-or-later. Without: every approved record
        of the member.
        """
        require(actor, Capability.MANAGE_COMMISSIONS)
        if amount <= 0:
            raise CommissionNotPayableError(f"amount must be positive, got {amount}")
        payment = CommissionPayment(
            id=generate_id(),
            member_id=member_id,
            amount=amount,
            payment_method=payment_method,
            notes=notes,
        )
        payment.commission_ids = await with_store_timeout(
            self._record_payment_tx(db, payment, commission_ids)
        )
        logger.info(
            "Commission payment %s: member=%s amount=%d records=%d",
            payment.id,
            member_id,
            amount,
            len(payment.commission_ids),
        )
        return payment

    async def _record_payment_tx(
        self,
        db: AsyncSession,
        payment: CommissionPayment,
        commission_ids: list[str] | None,
    ) -> list[str]:
        try:
            await self._repo.insert_payment(payment, db)
            flipped = await self._repo.mark_paid(payment.id, payment.member_id, commission_ids, db)
            if commission_ids:
                missing = sorted(set(commission_ids) - set(flipped))
                if missing:
                    raise CommissionNotPayableError(
                        f"records not approved or not owned by member: {', '.join(missing)}"
                    )
            await db.commit()
        except BaseException:
            await db.rollback()
            raise
        return flipped

    # ------------------------------------------------------------------
    # Listings and summaries
    # ------------------------------------------------------------------

    async def list_commissions(
        self,
        db: AsyncSession,
        actor: Actor | None,
        member_id: str | None = None,
        status: CommissionStatus | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CommissionRecord]:
        require(actor, Capability.MANAGE_COMMISSIONS)
        return await with_store_timeout(
            self._repo.list_records(
                db,
                member_id=member_id,
                status=status,
                created_from=created_from,
                created_to=created_to,
                limit=limit,
                offset=offset,
            )
        )

    async def list_for_order(
        self, db: AsyncSession, order_id: str, actor: Actor | None
    ) -> list[CommissionRecord]:
        require(actor, Capability.MANAGE_COMMISSIONS)
        return await with_store_timeout(self._repo.list_records(db, order_id=order_id))

    async def _member_of(self, db: AsyncSession, actor: Actor | None) -> TeamMember:
        actor = require(actor, Capability.VIEW_OWN_COMMISSIONS)
        member = await with_store_timeout(self._directory.get_by_user_id(actor.id, db))
        if member is None:
            raise TeamMemberNotFoundError(actor.id)
        return member

    async def my_commissions(
        self,
        db: AsyncSession,
        actor: Actor | None,
        status: CommissionStatus | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CommissionRecord]:
        member = await self._member_of(db, actor)
        return await with_store_timeout(
            self._repo.list_records(db, member_id=member.id, status=status, limit=limit, offset=offset)
        )

    async def my_summary(
        self, db: AsyncSession, actor: Actor | None
    ) -> tuple[TeamMember, CommissionSummary]:
        member = await self._member_of(db, actor)
        summary = await with_store_timeout(self._repo.summarize(db, member_id=member.id))
        return member, summary

    async def summary(
        self, db: AsyncSession, actor: Actor | None
    ) -> tuple[CommissionSummary, list[MemberTotals]]:
        require(actor, Capability.MANAGE_COMMISSIONS)
        overall = await with_store_timeout(self._repo.summarize(db))
        by_member = await with_store_timeout(self._repo.totals_by_member(db))
        return overall, by_member


_ledger: CommissionLedger | None = None


def get_commission_ledger() -> CommissionLedger:
    global _ledger  # noqa: PLW0603
    if _ledger is None:
        _ledger = CommissionLedger()
    return _ledger
