"""Order pricing — pure, deterministic, no I/O.

Identical inputs always yield identical outputs, which is what makes the
order-creation transaction safe to retry after a transient store failure.
"""

from src.fd_common.cents import apply_rate_half_up
from src.fd_common.enums import OrderType
from src.fd_pricing.domain.models import PriceBreakdown, PricedLine


def calculate_subtotal(lines: list[PricedLine]) -> int:
    return sum(line.line_total for line in lines)


def calculate_pricing(
    lines: list[PricedLine],
    commission_rate_bps: int,
    order_type: OrderType,
    delivery_fee: int,
) -> PriceBreakdown:
    """subtotal = Σ unit_price × qty; commission = half-up(subtotal × rate);
    total = subtotal + delivery_fee (fee forced to 0 for pickup).
    """
    if not (0 <= commission_rate_bps <= 10_000):
        raise ValueError(f"commission_rate_bps must be 0-10000, got {commission_rate_bps}")
    subtotal = calculate_subtotal(lines)
    fee = 0 if order_type is OrderType.PICKUP else delivery_fee
    commission = apply_rate_half_up(subtotal, commission_rate_bps)
    return PriceBreakdown(
        subtotal=subtotal,
        delivery_fee=fee,
        platform_commission=commission,
        total=subtotal + fee,
    )
