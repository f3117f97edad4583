"""Pricing value objects — pure dataclasses."""

from dataclasses import dataclass


@dataclass(frozen=True)
class LineRequest:
    product_id: str
    quantity: int
    notes: str = ""


@dataclass(frozen=True)
class PricedLine:
    """A line item with its price snapshot taken at calculation time."""

    product_id: str
    name: str
    unit_price: int
    quantity: int
    notes: str = ""

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    delivery_fee: int
    platform_commission: int
    total: int
