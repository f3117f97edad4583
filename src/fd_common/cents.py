"""Integer arithmetic utilities for money in minor units.

All prices, fees and commission amounts are int minor units (cents for USD,
centavos for COP). No float, no Decimal. Rates are basis points: 12% == 1200.
"""

_BPS_DENOMINATOR = 10_000


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"


def apply_rate_half_up(amount: int, rate_bps: int) -> int:
    """amount x rate rounded half-up to the minor unit.

    round(3500 * 12%) = 420; round(1250 * 1%) = 12.5 -> 13
    """
    if amount < 0:
        raise ValueError(f"amount must be >= 0, got {amount}")
    if amount == 0 or rate_bps == 0:
        return 0
    return (amount * rate_bps + _BPS_DENOMINATOR // 2) // _BPS_DENOMINATOR


def split_by_weights(total: int, weights: list[int]) -> list[int]:
    """Split `total` proportionally to `weights` using largest remainder.

    Every share is floor(total * w / W) plus at most one extra unit; the extra
    units go to the largest fractional remainders (ties: earlier index first),
    so sum(shares) == total whenever sum(weights) > 0.
    """
    if total < 0:
        raise ValueError(f"total must be >= 0, got {total}")
    if any(w < 0 for w in weights):
        raise ValueError("weights must be >= 0")
    weight_sum = sum(weights)
    if weight_sum == 0:
        return [0] * len(weights)

    shares = [total * w // weight_sum for w in weights]
    remainders = [total * w % weight_sum for w in weights]
    leftover = total - sum(shares)
    order = sorted(range(len(weights)), key=lambda i: (-remainders[i], i))
    for i in order[:leftover]:
        shares[i] += 1
    return shares
