# =============================================================================
# PACKCASE ENGINE - CAPACITY & VOLUME MODULE
# =============================================================================
# Converts machine/mould parameters into capacity and builds the 5-year
# volume series for a SKU.
#
# FORMULAS:
# - units_per_hour = cavities * (60 / cycle_time_seconds) * OEE
# - units_per_day = units_per_hour * operating_hours_per_day
# - annual_capacity = units_per_day * working_days_per_year
# - volume[1] = base; volume[y] = volume[y-1] * (1 + growth[y])
# - weight_kg = volume * weight_grams / 1000
#
# Capacity is theoretical and never caps volume.
# =============================================================================

from dataclasses import dataclass
from typing import List, Optional, Sequence
import math

from .case import NpdInput, OpsInput, Sku
from .config import (
    DEFAULT_GROWTH_CURVE,
    DEFAULT_OPERATING_HOURS_PER_DAY,
    DEFAULT_WORKING_DAYS_PER_YEAR,
    HORIZON_YEARS,
)
from .utils import safe_div, to_kg


@dataclass
class Capacity:
    """Theoretical machine capacity."""
    units_per_hour: float = 0.0
    units_per_day: float = 0.0
    annual_capacity_pieces: float = 0.0


@dataclass
class YearVolumes:
    year: int  # 1..HORIZON_YEARS
    volume_pieces: float = 0.0
    weight_kg: float = 0.0


@dataclass
class ProductionMetrics:
    """Daily capacity and the machine days needed for the year-1 volume."""
    daily_capacity_pieces: float = 0.0
    annual_volume_pieces: float = 0.0
    utilization_days: float = 0.0
    utilization_pct: float = 0.0


def calculate_capacity(npd: NpdInput, ops: OpsInput) -> Capacity:
    """
    Calculate theoretical capacity of one machine.

    A zero cycle time yields infinite capacity rather than an error.
    """
    if npd.cycle_time_seconds:
        units_per_hour = npd.cavities * (60 / npd.cycle_time_seconds) * ops.oee
    else:
        units_per_hour = math.inf if npd.cavities * ops.oee else math.nan
    hours = ops.operating_hours_per_day
    days = ops.working_days_per_year
    units_per_day = units_per_hour * (DEFAULT_OPERATING_HOURS_PER_DAY if hours is None else hours)
    annual = units_per_day * (DEFAULT_WORKING_DAYS_PER_YEAR if days is None else days)
    return Capacity(
        units_per_hour=units_per_hour,
        units_per_day=units_per_day,
        annual_capacity_pieces=annual,
    )


def calculate_volumes(
    weight_grams: float,
    base_volume: float,
    growth_pct: float = 0.0,
    horizon: int = HORIZON_YEARS,
) -> List[YearVolumes]:
    """
    Build a volume series with one constant growth rate.

    Args:
        weight_grams: Product weight in grams
        base_volume: Year 1 pieces
        growth_pct: Year-over-year growth applied from year 2
        horizon: Number of years

    Returns:
        List of YearVolumes, unrounded
    """
    result: List[YearVolumes] = []
    volume = base_volume or 0.0
    kg_per_piece = to_kg(weight_grams)
    for year in range(1, horizon + 1):
        if year > 1:
            volume = volume * (1 + (growth_pct or 0.0))
        result.append(YearVolumes(year=year, volume_pieces=volume, weight_kg=volume * kg_per_piece))
    return result


def compute_volumes(
    weight_grams: float,
    base_volume: float,
    yoy_growth_pct: Optional[Sequence[float]] = None,
) -> List[YearVolumes]:
    """
    Build a volume series from a per-year growth curve.

    Falls back to DEFAULT_GROWTH_CURVE (10/15/20/25% for years 2-5) when no
    curve is supplied. The entry at index 0 is ignored.
    """
    curve = DEFAULT_GROWTH_CURVE if yoy_growth_pct is None else yoy_growth_pct
    result: List[YearVolumes] = []
    volume = base_volume or 0.0
    kg_per_piece = to_kg(weight_grams)
    for index in range(HORIZON_YEARS):
        if index > 0:
            growth = curve[index] if index < len(curve) else 0.0
            volume = volume * (1 + (growth or 0.0))
        result.append(YearVolumes(year=index + 1, volume_pieces=volume, weight_kg=volume * kg_per_piece))
    return result


def calculate_daily_production_capacity(cavities: float, cycle_time_seconds: float, oee: float) -> float:
    """Pieces per 24h day; 0 for a non-positive cycle time."""
    if cycle_time_seconds <= 0:
        return 0.0
    return cavities * 86400 * oee / cycle_time_seconds


def calculate_utilization_days(annual_volume: float, daily_capacity: float) -> float:
    """Machine days required to produce the annual volume."""
    return safe_div(annual_volume, daily_capacity)


def calculate_production_metrics(sku: Sku) -> ProductionMetrics:
    """Year-1 production metrics for a SKU."""
    daily = calculate_daily_production_capacity(
        sku.npd.cavities, sku.npd.cycle_time_seconds, sku.ops.oee
    )
    volume = sku.sales.base_annual_volume_pieces
    days = calculate_utilization_days(volume, daily)
    working_days = sku.ops.working_days_per_year or DEFAULT_WORKING_DAYS_PER_YEAR
    return ProductionMetrics(
        daily_capacity_pieces=daily,
        annual_volume_pieces=volume,
        utilization_days=days,
        utilization_pct=safe_div(days, working_days),
    )


# =============================================================================
# END OF CAPACITY & VOLUME MODULE
# =============================================================================
