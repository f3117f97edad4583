from datetime import date, datetime

from pydantic import BaseModel, Field

from src.fd_common.datetime_utils import to_iso
from src.fd_delivery.domain.models import CourierPosition, DeliveryRecord, EarningsSummary


class LocationRequest(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class PositionResponse(BaseModel):
    courier_id: str
    order_id: str
    latitude: float
    longitude: float
    reported_at: str | None


class DeliveryResponse(BaseModel):
    id: str
    order_id: str
    courier_id: str
    fee: int
    status: str
    tracking_number: str | None = None
    order_total: int | None = None
    delivered_at: datetime | None = None


class DailyEarningsResponse(BaseModel):
    day: date
    deliveries: int
    earnings: int


class EarningsResponse(BaseModel):
    total_deliveries: int
    total_earnings: int
    average_per_delivery: int
    daily: list[DailyEarningsResponse]


def position_to_response(position: CourierPosition) -> PositionResponse:
    return PositionResponse(
        courier_id=position.courier_id,
        order_id=position.order_id,
        latitude=position.latitude,
        longitude=position.longitude,
        reported_at=to_iso(position.reported_at),
    )


def delivery_to_response(record: DeliveryRecord) -> DeliveryResponse:
    return DeliveryResponse(
        id=record.id,
        order_id=record.order_id,
        courier_id=record.courier_id,
        fee=record.fee,
        status=record.status,
        tracking_number=record.tracking_number,
        order_total=record.order_total,
        delivered_at=record.delivered_at,
    )


def earnings_to_response(summary: EarningsSummary) -> EarningsResponse:
    return EarningsResponse(
        total_deliveries=summary.total_deliveries,
        total_earnings=summary.total_earnings,
        average_per_delivery=summary.average_per_delivery,
        daily=[
            DailyEarningsResponse(day=d.day, deliveries=d.deliveries, earnings=d.earnings)
            for d in summary.daily
        ],
    )
