"""Commission persistence — raw SQL over team_members, commissions,
commission_materializations and commission_payments.

All writes run inside the caller's transaction. Exactly-once materialization
rests on two constraints: the commission_materializations primary key (the
claim) and UNIQUE(order_id, member_id) on commissions.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_commission.domain.models import (
    CommissionPayment,
    CommissionRecord,
    CommissionSummary,
    MemberTotals,
    TeamMember,
)
from src.fd_common.enums import CommissionStatus
from src.fd_common.query import FilterSet

# ---------------------------------------------------------------------------
# SQL statements
# ---------------------------------------------------------------------------

_TEAM_COLUMNS = "id, user_id, name, email, percentage_bps, is_active"

_LIST_ACTIVE_MEMBERS_SQL = text(f"""
    SELECT {_TEAM_COLUMNS} FROM team_members
    WHERE is_active = TRUE
    ORDER BY created_at, id
""")

_GET_MEMBER_BY_USER_SQL = text(f"SELECT {_TEAM_COLUMNS} FROM team_members WHERE user_id = :user_id")

_CLAIM_MATERIALIZATION_SQL = text("""
    INSERT INTO commission_materializations (order_id)
    VALUES (:order_id)
    ON CONFLICT (order_id) DO NOTHING
    RETURNING order_id
""")

_INSERT_COMMISSION_SQL = text("""
    INSERT INTO commissions (id, member_id, order_id, percentage_bps, amount, status)
    VALUES (:id, :member_id, :order_id, :percentage_bps, :amount, :status)
""")

_COMMISSION_COLUMNS = """
    id, member_id, order_id, percentage_bps, amount, status, payment_id, created_at, updated_at
"""

_SET_STATUS_SQL = text(f"""
    UPDATE commissions SET status = :status, updated_at = NOW()
    WHERE id = :id
    RETURNING {_COMMISSION_COLUMNS}
""")

_INSERT_PAYMENT_SQL = text("""
    INSERT INTO commission_payments (id, member_id, amount, payment_method, notes)
    VALUES (:id, :member_id, :amount, :payment_method, :notes)
""")

_MARK_PAID_BY_IDS_SQL = text("""
    UPDATE commissions
    SET status = 'paid', payment_id = :payment_id, updated_at = NOW()
    WHERE member_id = :member_id
      AND id = ANY(string_to_array(CAST(:ids_csv AS TEXT), ','))
      AND status IN ('approved', 'paid')
    RETURNING id
""")

_MARK_ALL_APPROVED_PAID_SQL = text("""
    UPDATE commissions
    SET status = 'paid', payment_id = :payment_id, updated_at = NOW()
    WHERE member_id = :member_id AND status = 'approved'
    RETURNING id
""")

_SUMMARY_SELECT = """
    SELECT
        COALESCE(SUM(amount), 0) AS total,
        COALESCE(SUM(CASE WHEN status = 'pending' THEN amount ELSE 0 END), 0) AS pending,
        COALESCE(SUM(CASE WHEN status = 'approved' THEN amount ELSE 0 END), 0) AS approved,
        COALESCE(SUM(CASE WHEN status = 'paid' THEN amount ELSE 0 END), 0) AS paid,
        COALESCE(SUM(CASE WHEN status = 'cancelled' THEN amount ELSE 0 END), 0) AS cancelled,
        COUNT(*) AS count,
        COUNT(*) FILTER (WHERE status = 'pending') AS pending_count,
        COUNT(*) FILTER (WHERE status = 'approved') AS approved_count,
        COUNT(*) FILTER (WHERE status = 'paid') AS paid_count
    FROM commissions
"""

_SUMMARY_SQL = text(_SUMMARY_SELECT)

_MEMBER_SUMMARY_SQL = text(_SUMMARY_SELECT + " WHERE member_id = :member_id")

_TOTALS_BY_MEMBER_SQL = text("""
    SELECT tm.id, tm.name, tm.percentage_bps,
        COALESCE(SUM(c.amount), 0) AS total,
        COALESCE(SUM(CASE WHEN c.status = 'pending' THEN c.amount ELSE 0 END), 0) AS pending,
        COALESCE(SUM(CASE WHEN c.status = 'paid' THEN c.amount ELSE 0 END), 0) AS paid
    FROM team_members tm
    LEFT JOIN commissions c ON c.member_id = tm.id
    GROUP BY tm.id
    ORDER BY total DESC, tm.id
""")

_LIST_FILTER_COLUMNS = {
    "member_id": "member_id",
    "order_id": "order_id",
    "status": "status",
    "created_from": "created_at",
    "created_to": "created_at",
}


# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_member(row: Any) -> TeamMember:
    return TeamMember(
        id=str(row.id),
        user_id=str(row.user_id),
        name=row.name,
        email=row.email,
        percentage_bps=row.percentage_bps,
        is_active=bool(row.is_active),
    )


def _row_to_record(row: Any) -> CommissionRecord:
    return CommissionRecord(
        id=str(row.id),
        member_id=str(row.member_id),
        order_id=str(row.order_id),
        percentage_bps=row.percentage_bps,
        amount=row.amount,
        status=CommissionStatus(row.status),
        payment_id=str(row.payment_id) if row.payment_id is not None else None,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class TeamDirectory:
    """Read-only view over team_members."""

    async def list_active_members_with_percentage(self, db: AsyncSession) -> list[TeamMember]:
        result = await db.execute(_LIST_ACTIVE_MEMBERS_SQL)
        return [_row_to_member(row) for row in result.fetchall()]

    async def get_by_user_id(self, user_id: str, db: AsyncSession) -> TeamMember | None:
        row = (await db.execute(_GET_MEMBER_BY_USER_SQL, {"user_id": user_id})).fetchone()
        return _row_to_member(row) if row else None


class CommissionRepository:
    """Concrete implementation of CommissionRepositoryProtocol using raw SQL."""

    async def claim_materialization(self, order_id: str, db: AsyncSession) -> bool:
        """True if this call claimed the order; False if it was already materialized."""
        result = await db.execute(_CLAIM_MATERIALIZATION_SQL, {"order_id": order_id})
        return result.fetchone() is not None

    async def insert_records(self, records: list[CommissionRecord], db: AsyncSession) -> None:
        for record in records:
            await db.execute(
                _INSERT_COMMISSION_SQL,
                {
                    "id": record.id,
                    "member_id": record.member_id,
                    "order_id": record.order_id,
                    "percentage_bps": record.percentage_bps,
                    "amount": record.amount,
                    "status": record.status.value,
                },
            )

    async def set_status(
        self, record_id: str, status: CommissionStatus, db: AsyncSession
    ) -> CommissionRecord | None:
        row = (await db.execute(_SET_STATUS_SQL, {"id": record_id, "status": status.value})).fetchone()
        return _row_to_record(row) if row else None

    async def insert_payment(self, payment: CommissionPayment, db: AsyncSession) -> None:
        await db.execute(
            _INSERT_PAYMENT_SQL,
            {
                "id": payment.id,
                "member_id": payment.member_id,
                "amount": payment.amount,
                "payment_method": payment.payment_method,
                "notes": payment.notes,
            },
        )

    async def mark_paid(
        self,
        payment_id: str,
        member_id: str,
        commission_ids: list[str] | None,
        db: AsyncSession,
    ) -> list[str]:
        """Flip eligible records to paid and link them to the batch; returns flipped ids."""
        if commission_ids:
            result = await db.execute(
                _MARK_PAID_BY_IDS_SQL,
                {
                    "payment_id": payment_id,
                    "member_id": member_id,
                    "ids_csv": ",".join(commission_ids),
                },
            )
        else:
            result = await db.execute(
                _MARK_ALL_APPROVED_PAID_SQL, {"payment_id": payment_id, "member_id": member_id}
            )
        return [str(row.id) for row in result.fetchall()]

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
    ) -> list[CommissionRecord]:
        where, params = (
            FilterSet(_LIST_FILTER_COLUMNS)
            .eq("member_id", member_id)
            .eq("order_id", order_id)
            .eq("status", status.value if status else None)
            .gte("created_from", created_from)
            .lte("created_to", created_to)
            .compile()
        )
        sql = text(f"""
            SELECT {_COMMISSION_COLUMNS} FROM commissions
            WHERE {where}
            ORDER BY created_at DESC, id
            LIMIT :limit OFFSET :offset
        """)
        result = await db.execute(sql, {**params, "limit": limit, "offset": offset})
        return [_row_to_record(row) for row in result.fetchall()]

    async def summarize(self, db: AsyncSession, member_id: str | None = None) -> CommissionSummary:
        if member_id is None:
            row = (await db.execute(_SUMMARY_SQL)).fetchone()
        else:
            row = (await db.execute(_MEMBER_SUMMARY_SQL, {"member_id": member_id})).fetchone()
        return CommissionSummary(
            total=int(row.total),
            pending=int(row.pending),
            approved=int(row.approved),
            paid=int(row.paid),
            cancelled=int(row.cancelled),
            count=int(row.count),
            pending_count=int(row.pending_count),
            approved_count=int(row.approved_count),
            paid_count=int(row.paid_count),
        )

    async def totals_by_member(self, db: AsyncSession) -> list[MemberTotals]:
        result = await db.execute(_TOTALS_BY_MEMBER_SQL)
        return [
            MemberTotals(
                member_id=str(row.id),
                name=row.name,
                percentage_bps=row.percentage_bps,
                total=int(row.total),
                pending=int(row.pending),
                paid=int(row.paid),
            )
            for row in result.fetchall()
        ]
