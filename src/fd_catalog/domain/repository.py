"""Collaborator Protocols for menu/catalog and restaurant lookups.

Menu management lives elsewhere; the engine only reads live prices and
restaurant commission settings, always inside the caller's transaction.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.fd_catalog.domain.models import ProductPrice, RestaurantInfo


class CatalogLookupProtocol(Protocol):
    async def get_price(self, db: AsyncSession, product_id: str) -> ProductPrice | None: ...


class RestaurantLookupProtocol(Protocol):
    async def get_restaurant(
        self, db: AsyncSession, restaurant_id: str
    ) -> RestaurantInfo | None: ...
