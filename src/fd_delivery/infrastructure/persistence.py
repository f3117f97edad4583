"""DeliveryRepository — raw SQL over the deliveries table.

A delivery row is written in the same transaction as the order's
on_the_way -> delivered swap; UNIQUE(order_id) keeps it one row per order.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_common.query import FilterSet
from src.fd_delivery.domain.models import DailyEarnings, DeliveryRecord, EarningsSummary

_INSERT_DELIVERY_SQL = text("""
    INSERT INTO deliveries (id, order_id, courier_id, fee, status, delivered_at)
    VALUES (:id, :order_id, :courier_id, :fee, :status, NOW())
    RETURNING id, order_id, courier_id, fee, status, delivered_at, created_at
""")

_LIST_FOR_COURIER_SQL = text("""
    SELECT d.id, d.order_id, d.courier_id, d.fee, d.status, d.delivered_at, d.created_at,
           o.tracking_number, o.total AS order_total
    FROM deliveries d
    JOIN orders o ON o.id = d.order_id
    WHERE d.courier_id = :courier_id
    ORDER BY d.created_at DESC
    LIMIT :limit OFFSET :offset
""")

_DAILY_EARNINGS_SQL = text("""
    SELECT DATE(delivered_at) AS day, COUNT(*) AS deliveries, COALESCE(SUM(fee), 0) AS earnings
    FROM deliveries
    WHERE courier_id = :courier_id AND status = 'delivered'
      AND delivered_at >= NOW() - INTERVAL '7 days'
    GROUP BY DATE(delivered_at)
    ORDER BY day
""")

_EARNINGS_FILTER_COLUMNS = {
    "courier_id": "courier_id",
    "status": "status",
    "start": "delivered_at",
    "end": "delivered_at",
}


def _row_to_delivery(row: Any) -> DeliveryRecord:
    return DeliveryRecord(
        id=str(row.id),
        order_id=str(row.order_id),
        courier_id=str(row.courier_id),
        fee=row.fee,
        status=row.status,
        delivered_at=row.delivered_at,
        created_at=row.created_at,
        tracking_number=getattr(row, "tracking_number", None),
        order_total=getattr(row, "order_total", None),
    )


class DeliveryRepository:
    async def insert(self, record: DeliveryRecord, db: AsyncSession) -> DeliveryRecord:
        result = await db.execute(
            _INSERT_DELIVERY_SQL,
            {
                "id": record.id,
                "order_id": record.order_id,
                "courier_id": record.courier_id,
                "fee": record.fee,
                "status": record.status,
            },
        )
        return _row_to_delivery(result.fetchone())

    async def list_for_courier(
        self, courier_id: str, db: AsyncSession, limit: int = 20, offset: int = 0
    ) -> list[DeliveryRecord]:
        result = await db.execute(
            _LIST_FOR_COURIER_SQL, {"courier_id": courier_id, "limit": limit, "offset": offset}
        )
        return [_row_to_delivery(row) for row in result.fetchall()]

    async def earnings(
        self,
        courier_id: str,
        db: AsyncSession,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> EarningsSummary:
        where, params = (
            FilterSet(_EARNINGS_FILTER_COLUMNS)
            .eq("courier_id", courier_id)
            .eq("status", "delivered")
            .gte("start", start)
            .lte("end", end)
            .compile()
        )
        totals = (
            await db.execute(
                text(
                    "SELECT COUNT(*) AS deliveries, COALESCE(SUM(fee), 0) AS earnings "
                    f"FROM deliveries WHERE {where}"
                ),
                params,
            )
        ).fetchone()
        daily = (await db.execute(_DAILY_EARNINGS_SQL, {"courier_id": courier_id})).fetchall()

        count = int(totals.deliveries) if totals else 0
        earned = int(totals.earnings) if totals else 0
        return EarningsSummary(
            courier_id=courier_id,
            total_deliveries=count,
            total_earnings=earned,
            average_per_delivery=earned // count if count else 0,
            daily=[
                DailyEarnings(day=row.day, deliveries=int(row.deliveries), earnings=int(row.earnings))
                for row in daily
            ],
        )
