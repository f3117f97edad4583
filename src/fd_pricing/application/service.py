"""PricingService — resolves line items against the live catalog and prices them.

Runs inside the caller's transaction (the order store opens it); this service
never commits. Any unknown, unavailable or foreign product aborts the whole
calculation with ProductUnavailableError.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.fd_catalog.domain.models import RestaurantInfo
from src.fd_catalog.domain.repository import CatalogLookupProtocol
from src.fd_catalog.infrastructure.persistence import CatalogLookup
from src.fd_common.enums import OrderType
from src.fd_common.errors import InvalidOrderDraftError, ProductUnavailableError
from src.fd_pricing.domain.calculator import calculate_pricing
from src.fd_pricing.domain.fee import (
    DeliveryFeePolicy,
    FlatDeliveryFee,
    ZoneDeliveryFee,
    resolve_delivery_fee,
)
from src.fd_pricing.domain.models import LineRequest, PriceBreakdown, PricedLine


def default_fee_policy() -> DeliveryFeePolicy:
    if settings.DELIVERY_ZONE_FEES:
        return ZoneDeliveryFee(settings.DELIVERY_ZONE_FEES, settings.DEFAULT_DELIVERY_FEE_CENTS)
    return FlatDeliveryFee(settings.DEFAULT_DELIVERY_FEE_CENTS)


class PricingService:
    def __init__(
        self,
        catalog: CatalogLookupProtocol | None = None,
        fee_policy: DeliveryFeePolicy | None = None,
    ) -> None:
        self._catalog: CatalogLookupProtocol = catalog or CatalogLookup()
        self._fee_policy: DeliveryFeePolicy = fee_policy or default_fee_policy()

    async def resolve_lines(
        self, db: AsyncSession, restaurant_id: str, items: list[LineRequest]
    ) -> list[PricedLine]:
        if not items:
            raise InvalidOrderDraftError("order must contain at least one item")
        lines: list[PricedLine] = []
        for item in items:
            if item.quantity < 1:
                raise InvalidOrderDraftError(
                    f"quantity must be >= 1 for product {item.product_id}"
                )
            product = await self._catalog.get_price(db, item.product_id)
            if (
                product is None
                or not product.available
                or product.restaurant_id != restaurant_id
            ):
                raise ProductUnavailableError(item.product_id)
            lines.append(
                PricedLine(
                    product_id=product.product_id,
                    name=product.name,
                    unit_price=product.unit_price,
                    quantity=item.quantity,
                    notes=item.notes,
                )
            )
        return lines

    async def quote(
        self,
        db: AsyncSession,
        restaurant: RestaurantInfo,
        items: list[LineRequest],
        order_type: OrderType,
        zone: str | None = None,
        delivery_fee_override: int | None = None,
    ) -> tuple[list[PricedLine], PriceBreakdown]:
        lines = await self.resolve_lines(db, restaurant.id, items)
        fee = resolve_delivery_fee(order_type, self._fee_policy, zone, delivery_fee_override)
        breakdown = calculate_pricing(lines, restaurant.commission_rate_bps, order_type, fee)
        return lines, breakdown
