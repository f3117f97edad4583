"""Delivery fee policies.

The engine never hardcodes a fee: a policy is injected into the pricing
service, and a caller-supplied override (e.g. from a routing/zone service)
always wins over the policy.
"""

from typing import Protocol

from src.fd_common.enums import OrderType


class DeliveryFeePolicy(Protocol):
    def fee_for(self, zone: str | None) -> int: ...


class FlatDeliveryFee:
    def __init__(self, fee: int) -> None:
        if fee < 0:
            raise ValueError(f"fee must be >= 0, got {fee}")
        self._fee = fee

    def fee_for(self, zone: str | None) -> int:
        return self._fee


class ZoneDeliveryFee:
    """Zone table lookup; unknown or missing zone falls back to `fallback`."""

    def __init__(self, table: dict[str, int], fallback: int) -> None:
        if fallback < 0 or any(v < 0 for v in table.values()):
            raise ValueError("fees must be >= 0")
        self._table = dict(table)
        self._fallback = fallback

    def fee_for(self, zone: str | None) -> int:
        if zone is None:
            return self._fallback
        return self._table.get(zone, self._fallback)


def resolve_delivery_fee(
    order_type: OrderType,
    policy: DeliveryFeePolicy,
    zone: str | None = None,
    override: int | None = None,
) -> int:
    if order_type is OrderType.PICKUP:
        return 0
    if override is not None:
        if override < 0:
            raise ValueError(f"delivery fee override must be >= 0, got {override}")
        return override
    return policy.fee_for(zone)
