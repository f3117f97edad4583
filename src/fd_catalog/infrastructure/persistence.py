"""Raw SQL lookups over the catalog-owned products and restaurants tables."""

from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_catalog.domain.models import ProductPrice, RestaurantInfo

_GET_PRODUCT_SQL = text("""
    SELECT id, restaurant_id, name, price, is_available
    FROM products WHERE id = :id
""")

# FOR SHARE: commission rate and active flag must not change under an in-flight order insert
_GET_RESTAURANT_SQL = text("""
    SELECT id, name, is_active, commission_rate_bps, has_own_delivery
    FROM restaurants WHERE id = :id
    FOR SHARE
""")


class CatalogLookup:
    async def get_price(self, db: AsyncSession, product_id: str) -> ProductPrice | None:
        row: Any = (await db.execute(_GET_PRODUCT_SQL, {"id": product_id})).fetchone()
        if row is None:
            return None
        return ProductPrice(
            product_id=str(row.id),
            restaurant_id=str(row.restaurant_id),
            name=row.name,
            unit_price=row.price,
            available=bool(row.is_available),
        )


class RestaurantLookup:
    async def get_restaurant(
        self, db: AsyncSession, restaurant_id: str
    ) -> RestaurantInfo | None:
        row: Any = (await db.execute(_GET_RESTAURANT_SQL, {"id": restaurant_id})).fetchone()
        if row is None:
            return None
        return RestaurantInfo(
            id=str(row.id),
            name=row.name,
            active=bool(row.is_active),
            commission_rate_bps=row.commission_rate_bps,
            has_own_delivery=bool(row.has_own_delivery),
        )
