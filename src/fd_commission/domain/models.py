"""Commission domain models — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.fd_common.enums import CommissionStatus

# approved-or-later: eligible to be linked to a payment batch
PAYABLE_STATUSES = (CommissionStatus.APPROVED, CommissionStatus.PAID)


@dataclass
class TeamMember:
    id: str
    user_id: str
    name: str
    email: str | None
    percentage_bps: int  # share weight in the commission pool, 5% == 500
    is_active: bool = True


@dataclass
class CommissionRecord:
    id: str
    member_id: str
    order_id: str
    percentage_bps: int  # snapshot at materialization, immune to later edits
    amount: int
    status: CommissionStatus = CommissionStatus.PENDING
    payment_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class CommissionPayment:
    """One payout batch to one team member."""

    id: str
    member_id: str
    amount: int
    payment_method: str
    notes: str | None = None
    commission_ids: list[str] | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class CommissionSummary:
    total: int
    pending: int
    approved: int
    paid: int
    cancelled: int
    count: int
    pending_count: int
    approved_count: int
    paid_count: int


@dataclass(frozen=True)
class MemberTotals:
    member_id: str
    name: str
    percentage_bps: int
    total: int
    pending: int
    paid: int
