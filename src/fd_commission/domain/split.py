"""Normalized split of one order's commission pool across active team members.

share_i = platform_commission × pct_i / Σ pct, rounded with largest remainder
so the shares always add up to exactly platform_commission.
"""

from src.fd_commission.domain.models import TeamMember
from src.fd_common.cents import split_by_weights


def compute_shares(platform_commission: int, members: list[TeamMember]) -> dict[str, int]:
    """Map member id -> amount. Empty when there are no members."""
    if not members:
        return {}
    amounts = split_by_weights(platform_commission, [m.percentage_bps for m in members])
    return {m.id: amount for m, amount in zip(members, amounts)}
