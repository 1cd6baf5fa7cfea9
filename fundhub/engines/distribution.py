"""
FundHub — Distribution Waterfall Engine

Splits a distribution's total amount across a structure's active tiers
and then across its investors.

Tier slicing (applied to what remains after earlier tiers):
    tier 1 → 25% of remaining
    tier 2 → 25% of remaining
    tier 3 → 20% of remaining
    tier 4 → everything left

Each slice is split LP/GP by the tier's share percentages. Threshold IRR
and threshold amount are not evaluated here; they need a cashflow history
the distribution record does not carry.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

TIER_SLICE_RATES = {1: 0.25, 2: 0.25, 3: 0.20}
FINAL_TIER = 4


@dataclass
class WaterfallResult:
    """Per-tier amounts and LP/GP totals for one distribution."""
    total_amount: float
    tier_amounts: dict[int, float] = field(default_factory=lambda: {1: 0.0, 2: 0.0, 3: 0.0, 4: 0.0})
    lp_total: float = 0.0
    gp_total: float = 0.0
    remaining: float = 0.0
    skipped_tiers: list[int] = field(default_factory=list)


def compute_waterfall(total_amount: float, tiers: Iterable) -> WaterfallResult:
    """
    Run the distribution waterfall.

    Args:
        total_amount: Amount being distributed.
        tiers: Objects with tier_number, lp_share_percent, gp_share_percent.
            Sorted by tier_number here; callers pass active tiers only.

    Returns:
        WaterfallResult. remaining is non-zero only when the structure has
        no tier 4 to absorb the rest. Tiers numbered outside 1-4 are
        left out of the split and listed in skipped_tiers.
    """
    result = WaterfallResult(total_amount=total_amount)
    ordered = []
    for tier in sorted(tiers, key=lambda t: t.tier_number):
        if tier.tier_number in TIER_SLICE_RATES or tier.tier_number == FINAL_TIER:
            ordered.append(tier)
        else:
            result.skipped_tiers.append(tier.tier_number)
    remaining = total_amount

    for tier in ordered:
        rate = TIER_SLICE_RATES.get(tier.tier_number)
        if rate is None:
            amount = remaining
        else:
            amount = min(remaining, remaining * rate)

        result.tier_amounts[tier.tier_number] = result.tier_amounts.get(tier.tier_number, 0.0) + amount
        result.lp_total += amount * (tier.lp_share_percent / 100.0)
        result.gp_total += amount * (tier.gp_share_percent / 100.0)
        remaining -= amount

        if remaining <= 0:
            break

    result.remaining = remaining
    return result


def allocate_lp_pool(
    lp_pool: float,
    ownership: dict[str, Optional[float]],
) -> dict[str, float]:
    """
    Split the LP pool across investors pro rata to ownership percent.

    A zero or empty total ownership falls back to a denominator of 100,
    so investors without ownership data receive nothing rather than
    raising a division error.
    """
    total_ownership = sum(p or 0.0 for p in ownership.values())
    if total_ownership == 0:
        total_ownership = 100.0
    return {
        investor_id: lp_pool * (percent or 0.0) / total_ownership
        for investor_id, percent in ownership.items()
    }


def ownership_from_commitments(commitments: dict[str, Optional[float]]) -> dict[str, float]:
    """Ownership percent per investor from commitments; empty if nothing is committed."""
    total = sum(c or 0.0 for c in commitments.values())
    if total == 0:
        return {}
    return {key: (c or 0.0) * 100.0 / total for key, c in commitments.items()}
