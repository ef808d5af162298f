# =============================================================================
# PACKCASE ENGINE - MATH UTILITIES
# =============================================================================
# Small numeric helpers shared by every module.
#
# FORMULAS:
# - safe_div(a, b) = a / b, or 0 when b is 0
# - kg = grams / 1000
# - factor[0] = 1 + r[0]; factor[i] = factor[i-1] * (1 + r[i])
# - IRR = rate where sum(cf[t] / (1 + rate)^t) = 0 (Newton-Raphson)
# =============================================================================

from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Sequence
import math

from .config import IRR_INITIAL_GUESS, IRR_MAX_ITERATIONS, IRR_TOLERANCE


def safe_div(numerator: float, denominator: float) -> float:
    """Divide, returning 0 when the denominator is zero or missing."""
    if not denominator:
        return 0.0
    return numerator / denominator


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def clamp01(value: float) -> float:
    """Clamp to [0, 1]; NaN maps to 0."""
    if value is None or math.isnan(value):
        return 0.0
    return clamp(value, 0.0, 1.0)


def to_kg(grams: float) -> float:
    return (grams or 0.0) / 1000.0


def compound_inflation_series(rates: Sequence[Optional[float]]) -> List[float]:
    """
    Build a cumulative multiplier series from year-over-year rates.

    The rate at index 0 is conventionally 0, so the first factor is 1.
    Missing (None) rates count as no inflation.

    Args:
        rates: Year-over-year rates, one per year

    Returns:
        Multipliers, same length as rates
    """
    factors: List[float] = []
    acc = 1.0
    for rate in rates:
        acc *= 1 + (rate or 0.0)
        factors.append(acc)
    return factors


def round2(value: float) -> float:
    """Round half-up to two decimals (1.005 -> 1.01)."""
    if value is None or not math.isfinite(value):
        return value
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> float:
    """Round to the nearest integer with halves rounded up (2.5 -> 3)."""
    return float(math.floor(value + 0.5))


def npv_at(cash_flows: Sequence[float], rate: float) -> float:
    """NPV of cash flows indexed from t=0 at a given rate."""
    return sum(cf / (1 + rate) ** t for t, cf in enumerate(cash_flows))


def irr(
    cash_flows: Sequence[float],
    guess: float = IRR_INITIAL_GUESS,
) -> Optional[float]:
    """
    Calculate IRR using Newton-Raphson method.

    Args:
        cash_flows: Annual cash flows starting at t=0 (negative = investment)
        guess: Initial rate

    Returns:
        IRR, or None when there is no sign change, the derivative vanishes,
        a step is not finite, or the loop does not converge
    """
    if len(cash_flows) < 2:
        return None

    has_negative = any(cf < 0 for cf in cash_flows)
    has_positive = any(cf > 0 for cf in cash_flows)
    if not (has_negative and has_positive):
        return None

    rate = guess
    for _ in range(IRR_MAX_ITERATIONS):
        try:
            npv = 0.0
            d_npv = 0.0
            for t, cf in enumerate(cash_flows):
                denom = (1 + rate) ** t
                npv += cf / denom
                d_npv -= t * cf / (denom * (1 + rate))
        except (ZeroDivisionError, OverflowError):
            return None

        if abs(d_npv) < 1e-12:
            return None

        new_rate = rate - npv / d_npv
        if not math.isfinite(new_rate):
            return None
        if abs(new_rate - rate) < IRR_TOLERANCE:
            return new_rate
        rate = new_rate

    return None


# =============================================================================
# END OF MATH UTILITIES
# =============================================================================
