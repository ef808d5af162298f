# =============================================================================
# PACKCASE ENGINE - PRICING MODULE
# =============================================================================
# Builds the per-kg price build-up and price per piece for each year.
#
# FORMULAS:
# - resin_net = max(0, resin * (1 - discount)) + freight_in
# - rm_per_kg = resin_net * (1 + wastage)
# - mb_per_kg = mb_base * mb_ratio * (1 + wastage)
#     mb_base = mb_rs_per_kg if use_mb_price_override else resin_net
# - RM, MB escalate with the RM inflation series
# - value-add, packaging, freight-out, conversion escalate with the
#   conversion inflation series
# - price_per_piece = total_per_kg * weight_kg
# =============================================================================

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .case import AltConversionInput, CostingInput, NpdInput, OpsInput, SalesInput
from .config import HORIZON_YEARS
from .utils import compound_inflation_series, safe_div, to_kg
from .volume import calculate_capacity


@dataclass
class PriceComponentsPerKg:
    """Price build-up in Rs per kg."""
    rm_per_kg: float = 0.0
    mb_per_kg: float = 0.0
    value_add_per_kg: float = 0.0
    packaging_per_kg: float = 0.0
    freight_out_per_kg: float = 0.0
    conversion_per_kg: float = 0.0
    total_per_kg: float = 0.0


@dataclass
class PriceYear:
    year: int
    per_kg: PriceComponentsPerKg = field(default_factory=PriceComponentsPerKg)
    price_per_piece: float = 0.0


PRICE_COMPONENTS = (
    "rm_per_kg",
    "mb_per_kg",
    "value_add_per_kg",
    "packaging_per_kg",
    "freight_out_per_kg",
    "conversion_per_kg",
)


def calculate_rm_mb_per_kg(costing: CostingInput) -> Tuple[float, float]:
    """
    Calculate year-1 raw material and masterbatch cost per kg.

    Returns:
        (rm_per_kg, mb_per_kg)
    """
    resin_net = max(0.0, costing.resin_rs_per_kg * (1 - costing.resin_discount_pct))
    resin_net += costing.freight_inwards_rs_per_kg
    wastage = 1 + costing.wastage_pct

    rm = resin_net * wastage
    mb_base = costing.mb_rs_per_kg if costing.use_mb_price_override else resin_net
    mb = mb_base * costing.mb_ratio_pct * wastage
    return rm, mb


def per_piece_to_per_kg(value_per_piece: Optional[float], weight_kg: float) -> float:
    return safe_div(value_per_piece or 0.0, weight_kg)


def resolve_conversion_recovery_per_piece(
    sales: SalesInput,
    npd: NpdInput,
    ops: OpsInput,
    alt: Optional[AltConversionInput] = None,
) -> float:
    """
    Conversion recovery in Rs per piece.

    When sales supplies no positive rate, a machine rate per day is spread
    over the theoretical pieces per day.
    """
    value = sales.conversion_recovery_rs_per_piece or 0.0
    if value <= 0 and alt is not None and alt.machine_rate_per_day_rs:
        units_per_day = calculate_capacity(npd, ops).units_per_day
        value = alt.machine_rate_per_day_rs / (units_per_day or 1)
    return value


def _factor(series: Sequence[float], index: int) -> float:
    if index < len(series):
        return series[index] or 1.0
    return 1.0


def build_price_by_year(
    sales: SalesInput,
    costing: CostingInput,
    npd: NpdInput,
    ops: OpsInput,
    alt: Optional[AltConversionInput] = None,
) -> List[PriceYear]:
    """
    Build the price build-up for every year of the horizon.

    Per-kg packaging and freight-out take precedence; the legacy per-piece
    fields are only used when the per-kg value is 0.
    """
    weight_kg = to_kg(sales.product_weight_grams)
    rm_y1, mb_y1 = calculate_rm_mb_per_kg(costing)

    conversion_per_piece = resolve_conversion_recovery_per_piece(sales, npd, ops, alt)
    value_add_y1 = per_piece_to_per_kg(costing.value_add_rs_per_piece, weight_kg)
    packaging_y1 = costing.packaging_rs_per_kg or per_piece_to_per_kg(
        costing.packaging_rs_per_piece, weight_kg
    )
    freight_out_y1 = costing.freight_out_rs_per_kg or per_piece_to_per_kg(
        costing.freight_out_rs_per_piece, weight_kg
    )
    conversion_y1 = per_piece_to_per_kg(conversion_per_piece, weight_kg)

    rm_factors = compound_inflation_series(costing.rm_inflation_pct)
    conv_factors = compound_inflation_series(costing.conversion_inflation_pct)

    prices: List[PriceYear] = []
    for index in range(HORIZON_YEARS):
        rm_f = _factor(rm_factors, index)
        conv_f = _factor(conv_factors, index)
        per_kg = PriceComponentsPerKg(
            rm_per_kg=rm_y1 * rm_f,
            mb_per_kg=mb_y1 * rm_f,
            value_add_per_kg=value_add_y1 * conv_f,
            packaging_per_kg=packaging_y1 * conv_f,
            freight_out_per_kg=freight_out_y1 * conv_f,
            conversion_per_kg=conversion_y1 * conv_f,
        )
        per_kg.total_per_kg = sum(getattr(per_kg, name) for name in PRICE_COMPONENTS)
        prices.append(PriceYear(
            year=index + 1,
            per_kg=per_kg,
            price_per_piece=per_kg.total_per_kg * weight_kg,
        ))
    return prices


# =============================================================================
# END OF PRICING MODULE
# =============================================================================
