# =============================================================================
# PACKCASE ENGINE - CALCULATION PIPELINE
# =============================================================================
# Runs the full projection for one business case.
#
# KEY PRINCIPLES:
# - Inputs are never mutated; every output is recomputed on each call
# - Pure function: same case -> same output
# - An empty SKU list gives all-zero outputs
#
# EXECUTION ORDER (per SKU, then case level):
# 1. Price build-up       (pricing)
# 2. Volumes              (volume, constant growth)
# 3. SKU P&L              (pnl)
# 4. Case P&L, averages   (aggregation)
# 5. Cash flow, returns   (cashflow, valuation)
# =============================================================================

from dataclasses import dataclass, field
from typing import List
import logging

from .aggregation import (
    PerKgYear,
    SkuCalcOutput,
    aggregate_pnl,
    aggregate_volumes,
    build_capex_for_debt_case,
    build_case_working_capital_days,
    build_per_kg_table,
    build_weighted_avg_price_per_kg,
)
from .case import BusinessCase
from .cashflow import CashflowYear
from .config import HORIZON_YEARS
from .pnl import PnlYear, build_pnl_for_sku, build_total_depreciation
from .pricing import PriceYear, build_price_by_year
from .valuation import Returns, build_cashflows_and_returns, build_net_block_capex, validate_returns
from .volume import YearVolumes, calculate_volumes

logger = logging.getLogger(__name__)


@dataclass
class CalcOutput:
    """Complete projection for one case."""
    volumes: List[YearVolumes] = field(default_factory=list)
    prices: List[PriceYear] = field(default_factory=list)  # weight-averaged across SKUs
    pnl: List[PnlYear] = field(default_factory=list)
    per_kg: List[PerKgYear] = field(default_factory=list)
    cashflow: List[CashflowYear] = field(default_factory=list)
    returns: Returns = field(default_factory=Returns)
    by_sku: List[SkuCalcOutput] = field(default_factory=list)

    # Warnings
    warnings: List[str] = field(default_factory=list)


def calculate_sku(case: BusinessCase, index: int) -> SkuCalcOutput:
    """Prices, volumes and P&L for one SKU of the case."""
    sku = case.skus[index]
    finance = case.finance
    prices = build_price_by_year(sku.sales, sku.costing, sku.npd, sku.ops, sku.alt_conversion)
    volumes = calculate_volumes(
        sku.sales.product_weight_grams,
        sku.sales.base_annual_volume_pieces,
        finance.annual_volume_growth_pct or 0.0,
    )
    pnl, volumes = build_pnl_for_sku(sku, finance, prices, volumes)
    return SkuCalcOutput(sku_id=sku.id, name=sku.name, volumes=volumes, prices=prices, pnl=pnl)


def calculate_scenario(case: BusinessCase) -> CalcOutput:
    """
    Execute the full pipeline for one business case.

    Args:
        case: Business case inputs (left unchanged)

    Returns:
        CalcOutput with case totals, per-kg views, cash flow, returns and
        the per-SKU breakdown
    """
    output = CalcOutput()
    logger.debug("Calculating case %s with %d SKUs", case.id, len(case.skus))

    # 1-3. Per-SKU projections
    output.by_sku = [calculate_sku(case, i) for i in range(len(case.skus))]

    # 4. Case level
    output.volumes = aggregate_volumes(output.by_sku)
    output.pnl = aggregate_pnl(case, output.by_sku)
    output.prices = build_weighted_avg_price_per_kg(output.by_sku, output.volumes)
    output.per_kg = build_per_kg_table(output.pnl, output.volumes)

    # 5. Cash flow and returns
    annual_depreciation = sum(build_total_depreciation(sku) for sku in case.skus)
    output.cashflow, output.returns = build_cashflows_and_returns(
        case.finance,
        output.pnl,
        capex0=build_capex_for_debt_case(case.skus),
        working_capital_days=build_case_working_capital_days(case.skus),
        annual_depreciation_by_year=[annual_depreciation] * HORIZON_YEARS,
        net_block_capex=build_net_block_capex(case.skus),
    )

    if case.skus:
        output.warnings.extend(validate_returns(output.returns))
    else:
        output.warnings.append("Business case has no SKUs; all outputs are zero")

    return output


# =============================================================================
# END OF CALCULATION PIPELINE
# =============================================================================
