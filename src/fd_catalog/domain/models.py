"""Read-only catalog views consumed by the engine — pure dataclasses."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ProductPrice:
    product_id: str
    restaurant_id: str
    name: str
    unit_price: int  # minor units
    available: bool


@dataclass(frozen=True)
class RestaurantInfo:
    id: str
    name: str
    active: bool
    commission_rate_bps: int  # 12% == 1200
    has_own_delivery: bool = False
