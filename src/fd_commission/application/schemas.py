from datetime import datetime

from pydantic import BaseModel, Field

from src.fd_commission.domain.models import (
    CommissionPayment,
    CommissionRecord,
    CommissionSummary,
    MemberTotals,
)
from src.fd_common.enums import CommissionStatus


class UpdateCommissionStatusRequest(BaseModel):
    status: CommissionStatus


class RecordPaymentRequest(BaseModel):
    member_id: str
    amount: int = Field(gt=0)
    payment_method: str = Field(min_length=1, max_length=50)
    notes: str | None = Field(None, max_length=500)
    commission_ids: list[str] | None = None


class CommissionResponse(BaseModel):
    id: str
    member_id: str
    order_id: str
    percentage_bps: int
    amount: int
    status: str
    payment_id: str | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CommissionPaymentResponse(BaseModel):
    payment_id: str
    member_id: str
    amount: int
    payment_method: str
    commission_ids: list[str]


class SummaryResponse(BaseModel):
    total: int
    pending: int
    approved: int
    paid: int
    cancelled: int
    count: int
    pending_count: int
    approved_count: int
    paid_count: int


class MemberTotalsResponse(BaseModel):
    member_id: str
    name: str
    percentage_bps: int
    total: int
    pending: int
    paid: int


class OverallSummaryResponse(BaseModel):
    overall: SummaryResponse
    by_member: list[MemberTotalsResponse]


class MySummaryResponse(BaseModel):
    member_id: str
    percentage_bps: int
    summary: SummaryResponse


def record_to_response(record: CommissionRecord) -> CommissionResponse:
    return CommissionResponse(
        id=record.id,
        member_id=record.member_id,
        order_id=record.order_id,
        percentage_bps=record.percentage_bps,
        amount=record.amount,
        status=record.status.value,
        payment_id=record.payment_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def payment_to_response(payment: CommissionPayment) -> CommissionPaymentResponse:
    return CommissionPaymentResponse(
        payment_id=payment.id,
        member_id=payment.member_id,
        amount=payment.amount,
        payment_method=payment.payment_method,
        commission_ids=payment.commission_ids or [],
    )


def summary_to_response(summary: CommissionSummary) -> SummaryResponse:
    return SummaryResponse(**vars(summary))


def totals_to_response(totals: MemberTotals) -> MemberTotalsResponse:
    return MemberTotalsResponse(**vars(totals))
