"""
FundHub — Waterfall Tier Rules

Pure validation and templates for waterfall tiers. Nothing here touches
the database; crud.py persists what these functions produce.

A tier splits proceeds between Limited Partners (LP) and the General
Partner (GP). Every tier must satisfy:
    1 <= tier_number <= 4 (integer)
    lp_share_percent + gp_share_percent == 100
    0 <= lp_share_percent, gp_share_percent <= 100
    0 <= threshold_irr <= 100      (when set)
    threshold_amount >= 0          (when set)

The canonical four-tier LP/GP waterfall:
    1. Return of Capital   100 / 0
    2. Preferred Return    100 / 0   until the hurdle IRR is cleared
    3. GP Catch-up           0 / 100
    4. Carried Interest    100 - carry / carry
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

MIN_TIER_NUMBER = 1
MAX_TIER_NUMBER = 4

DEFAULT_HURDLE_RATE = 8.0
DEFAULT_CARRY = 20.0

TIER_NUMBER_ERROR = "Tier number must be between 1 and 4"
SHARE_SUM_ERROR = "LP share and GP share must sum to 100%"
LP_RANGE_ERROR = "LP share must be between 0 and 100"
GP_RANGE_ERROR = "GP share must be between 0 and 100"
IRR_RANGE_ERROR = "Threshold IRR must be between 0 and 100"
AMOUNT_ERROR = "Threshold amount must be positive"

# snake_case field -> camelCase alias accepted from raw API payloads
_ALIASES = {
    "tier_number": "tierNumber",
    "lp_share_percent": "lpSharePercent",
    "gp_share_percent": "gpSharePercent",
    "threshold_irr": "thresholdIrr",
    "threshold_amount": "thresholdAmount",
}


@dataclass
class TierValidation:
    """Outcome of validate_tier: valid iff errors is empty."""
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {"isValid": self.is_valid, "errors": list(self.errors)}


def _read(tier: Any, name: str) -> Optional[Any]:
    """Read a tier field from a mapping (either key style) or an object."""
    if isinstance(tier, Mapping):
        if name in tier:
            return tier[name]
        return tier.get(_ALIASES[name])
    return getattr(tier, name, None)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_tier_number(value: Any) -> bool:
    if not _is_number(value):
        return False
    if isinstance(value, float) and not value.is_integer():
        return False
    return MIN_TIER_NUMBER <= value <= MAX_TIER_NUMBER


def validate_tier(tier: Any) -> TierValidation:
    """
    Check a tier's numeric invariants.

    Every check runs; errors accumulate in a fixed order. Accepts a dict
    (snake_case or camelCase keys), a Pydantic schema or an ORM row.
    """
    result = TierValidation()

    tier_number = _read(tier, "tier_number")
    lp = _read(tier, "lp_share_percent")
    gp = _read(tier, "gp_share_percent")
    threshold_irr = _read(tier, "threshold_irr")
    threshold_amount = _read(tier, "threshold_amount")

    if not _is_tier_number(tier_number):
        result.errors.append(TIER_NUMBER_ERROR)

    if not (_is_number(lp) and _is_number(gp)) or lp + gp != 100:
        result.errors.append(SHARE_SUM_ERROR)

    if _is_number(lp) and not 0 <= lp <= 100:
        result.errors.append(LP_RANGE_ERROR)

    if _is_number(gp) and not 0 <= gp <= 100:
        result.errors.append(GP_RANGE_ERROR)

    if threshold_irr is not None and not (_is_number(threshold_irr) and 0 <= threshold_irr <= 100):
        result.errors.append(IRR_RANGE_ERROR)

    if threshold_amount is not None and not (_is_number(threshold_amount) and threshold_amount >= 0):
        result.errors.append(AMOUNT_ERROR)

    return result


def default_tier_templates(
    hurdle_rate_percent: float = DEFAULT_HURDLE_RATE,
    carry_percent: float = DEFAULT_CARRY,
) -> list[dict]:
    """
    The canonical four tiers, in payout order, as column dicts.

    Args:
        hurdle_rate_percent: Preferred-return IRR hurdle for tier 2 (e.g. 8).
        carry_percent: GP share of the final tier (e.g. 20).
    """
    return [
        {
            "tier_number": 1,
            "tier_name": "Return of Capital",
            "lp_share_percent": 100.0,
            "gp_share_percent": 0.0,
            "threshold_irr": None,
            "description": "100% to LPs until contributed capital is returned",
        },
        {
            "tier_number": 2,
            "tier_name": "Preferred Return",
            "lp_share_percent": 100.0,
            "gp_share_percent": 0.0,
            "threshold_irr": hurdle_rate_percent,
            "description": f"100% to LPs until a {_fmt(hurdle_rate_percent)}% IRR is reached",
        },
        {
            "tier_number": 3,
            "tier_name": "GP Catch-up",
            "lp_share_percent": 0.0,
            "gp_share_percent": 100.0,
            "threshold_irr": None,
            "description": "100% to GP until caught up to the carried interest split",
        },
        {
            "tier_number": 4,
            "tier_name": "Carried Interest",
            "lp_share_percent": 100.0 - carry_percent,
            "gp_share_percent": float(carry_percent),
            "threshold_irr": None,
            "description": (
                f"{_fmt(100.0 - carry_percent)}% to LPs, "
                f"{_fmt(carry_percent)}% to GP"
            ),
        },
    ]


def _fmt(value: float) -> str:
    """Render 8.0 as '8' and 8.5 as '8.5'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def describe_threshold(threshold_irr: Optional[float], threshold_amount: Optional[float]) -> str:
    """Human-readable activation threshold: '8% IRR', '$1000000' or 'None'."""
    if threshold_irr is not None:
        return f"{_fmt(threshold_irr)}% IRR"
    if threshold_amount is not None:
        return f"${_fmt(threshold_amount)}"
    return "None"
