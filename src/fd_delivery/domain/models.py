"""Delivery domain models — courier payouts and positions."""

from dataclasses import dataclass, field
from datetime import date, datetime

from src.fd_common.datetime_utils import utc_now


@dataclass
class DeliveryRecord:
    """One completed platform-operated delivery; `fee` is the courier's payout."""

    id: str
    order_id: str
    courier_id: str
    fee: int
    status: str = "delivered"
    delivered_at: datetime | None = None
    created_at: datetime | None = None
    tracking_number: str | None = None  # joined from orders on reads
    order_total: int | None = None


@dataclass(frozen=True)
class DailyEarnings:
    day: date
    deliveries: int
    earnings: int


@dataclass(frozen=True)
class EarningsSummary:
    courier_id: str
    total_deliveries: int
    total_earnings: int
    average_per_delivery: int
    daily: list[DailyEarnings] = field(default_factory=list)


@dataclass(frozen=True)
class CourierPosition:
    courier_id: str
    order_id: str
    latitude: float
    longitude: float
    reported_at: datetime = field(default_factory=utc_now)
