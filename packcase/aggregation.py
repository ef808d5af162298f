# =============================================================================
# PACKCASE ENGINE - AGGREGATION MODULE
# =============================================================================
# Rolls per-SKU volumes, prices and P&L up to case level.
#
# FORMULAS:
# - Case line[y] = sum over SKUs of line[y]
# - Gross Margin, EBITDA, EBIT recomputed from the summed lines
# - Interest = (new machine + new infra capex
#               + Revenue Net * max(60, wc_days) / 365) * cost_of_debt
# - Tax = PBT * tax_rate (no floor, losses give a tax credit)
# - Weighted average per kg = sum(value_i * kg_i) / sum(kg_i)
# - Per-kg line = case line / case kg
# =============================================================================

from dataclasses import dataclass, field
from typing import List, Sequence

from .case import BusinessCase, Sku
from .config import DAYS_PER_YEAR, DEFAULT_WORKING_CAPITAL_DAYS, HORIZON_YEARS
from .pnl import PnlYear, build_ebit, build_ebitda, build_gross_margin, build_pat, build_pbt
from .pricing import PRICE_COMPONENTS, PriceComponentsPerKg, PriceYear
from .utils import safe_div
from .volume import YearVolumes


@dataclass
class SkuCalcOutput:
    """Per-SKU drill-down."""
    sku_id: str
    name: str = ""
    volumes: List[YearVolumes] = field(default_factory=list)
    prices: List[PriceYear] = field(default_factory=list)
    pnl: List[PnlYear] = field(default_factory=list)


@dataclass
class PerKgYear:
    """Case P&L lines expressed per kg of output."""
    year: int
    revenue_net_per_kg: float = 0.0
    material_cost_per_kg: float = 0.0
    material_margin_per_kg: float = 0.0
    conversion_cost_per_kg: float = 0.0
    gross_margin_per_kg: float = 0.0
    sga_cost_per_kg: float = 0.0
    ebitda_per_kg: float = 0.0
    depreciation_per_kg: float = 0.0
    ebit_per_kg: float = 0.0
    interest_per_kg: float = 0.0
    pbt_per_kg: float = 0.0
    tax_per_kg: float = 0.0
    pat_per_kg: float = 0.0


# Lines summed across SKUs; margins and profit lines are recomputed
SUMMED_LINES = (
    "revenue_gross",
    "revenue_net",
    "material_cost",
    "material_margin",
    "power_cost",
    "manpower_cost",
    "value_add_cost",
    "packaging_cost",
    "freight_out_cost",
    "conversion_recovery_cost",
    "r_and_m_cost",
    "other_mfg_cost",
    "plant_sga_cost",
    "corp_sga_cost",
    "sga_cost",
    "conversion_cost",
    "depreciation",
)

PER_KG_LINES = {
    "revenue_net_per_kg": "revenue_net",
    "material_cost_per_kg": "material_cost",
    "material_margin_per_kg": "material_margin",
    "conversion_cost_per_kg": "conversion_cost",
    "gross_margin_per_kg": "gross_margin",
    "sga_cost_per_kg": "sga_cost",
    "ebitda_per_kg": "ebitda",
    "depreciation_per_kg": "depreciation",
    "ebit_per_kg": "ebit",
    "interest_per_kg": "interest_capex",
    "pbt_per_kg": "pbt",
    "tax_per_kg": "tax",
    "pat_per_kg": "pat",
}


def aggregate_volumes(by_sku: Sequence[SkuCalcOutput]) -> List[YearVolumes]:
    """Sum pieces and weight across SKUs for each year."""
    totals = [YearVolumes(year=y) for y in range(1, HORIZON_YEARS + 1)]
    for sku in by_sku:
        for total, v in zip(totals, sku.volumes):
            total.volume_pieces += v.volume_pieces
            total.weight_kg += v.weight_kg
    return totals


# -----------------------------------------------------------------------------
# Case-level interest and tax
# -----------------------------------------------------------------------------

def build_capex_for_debt_case(skus: Sequence[Sku]) -> float:
    """Debt-financed capex of the case: new machine plus new infra."""
    return sum((s.ops.cost_of_new_machine or 0.0) + (s.ops.cost_of_new_infra or 0.0) for s in skus)


def build_case_working_capital_days(skus: Sequence[Sku]) -> float:
    """Largest working-capital days across SKUs, never below 60."""
    days = [s.ops.working_capital_days or DEFAULT_WORKING_CAPITAL_DAYS for s in skus]
    return max([DEFAULT_WORKING_CAPITAL_DAYS] + days)


def build_interest_for_case(
    capex_for_debt: float,
    revenue_net: float,
    working_capital_days: float,
    cost_of_debt: float,
) -> float:
    """Interest on capex plus the working capital tied up in revenue."""
    days = max(DEFAULT_WORKING_CAPITAL_DAYS, working_capital_days)
    working_capital = (revenue_net or 0.0) * (days / DAYS_PER_YEAR)
    return (capex_for_debt + working_capital) * (cost_of_debt or 0.0)


def build_tax_unfloored(pbt: float, tax_rate: float) -> float:
    """Tax that turns into a credit when PBT is negative."""
    return pbt * tax_rate


def aggregate_pnl(case: BusinessCase, by_sku: Sequence[SkuCalcOutput]) -> List[PnlYear]:
    """
    Sum SKU P&L lines and recompute profit lines at case level.

    Args:
        case: Business case (for finance inputs and capex)
        by_sku: Per-SKU outputs

    Returns:
        One PnlYear per horizon year
    """
    finance = case.finance
    capex = build_capex_for_debt_case(case.skus)
    wc_days = build_case_working_capital_days(case.skus)
    tax_rate = finance.corporate_tax_rate_pct or 0.0

    result: List[PnlYear] = []
    for index in range(HORIZON_YEARS):
        acc = PnlYear(year=index + 1)
        for sku in by_sku:
            if index >= len(sku.pnl):
                continue
            year = sku.pnl[index]
            for line in SUMMED_LINES:
                setattr(acc, line, getattr(acc, line) + getattr(year, line))

        acc.gross_margin = build_gross_margin(acc.material_margin, acc.conversion_cost)
        acc.ebitda = build_ebitda(acc.revenue_net, acc.material_cost, acc.conversion_cost, acc.sga_cost)
        acc.ebit = build_ebit(acc.ebitda, acc.depreciation)
        acc.interest_capex = build_interest_for_case(
            capex, acc.revenue_net, wc_days, finance.cost_of_debt_pct
        )
        acc.pbt = build_pbt(acc.ebit, acc.interest_capex)
        acc.tax = build_tax_unfloored(acc.pbt, tax_rate)
        acc.pat = build_pat(acc.pbt, acc.tax)
        result.append(acc)
    return result


# -----------------------------------------------------------------------------
# Weighted averages and per-kg views
# -----------------------------------------------------------------------------

def build_weighted_avg_price_per_kg(
    by_sku: Sequence[SkuCalcOutput],
    volumes: Sequence[YearVolumes],
) -> List[PriceYear]:
    """
    Weight-average each SKU's price build-up by its share of the year's kg.

    A year with no weight falls back to the first SKU's prices (or zeros
    when there are no SKUs).
    """
    out: List[PriceYear] = []
    for index in range(HORIZON_YEARS):
        total_kg = volumes[index].weight_kg if index < len(volumes) else 0.0
        if total_kg <= 0:
            if by_sku and index < len(by_sku[0].prices):
                out.append(by_sku[0].prices[index])
            else:
                out.append(PriceYear(year=index + 1))
            continue

        per_kg = PriceComponentsPerKg()
        price_per_piece = 0.0
        for sku in by_sku:
            if index >= len(sku.prices) or index >= len(sku.volumes):
                continue
            share = sku.volumes[index].weight_kg / total_kg
            price = sku.prices[index]
            for name in PRICE_COMPONENTS:
                setattr(per_kg, name, getattr(per_kg, name) + getattr(price.per_kg, name) * share)
            price_per_piece += price.price_per_piece * share
        per_kg.total_per_kg = sum(getattr(per_kg, name) for name in PRICE_COMPONENTS)
        out.append(PriceYear(year=index + 1, per_kg=per_kg, price_per_piece=price_per_piece))
    return out


def wa_per_kg(by_sku: Sequence[SkuCalcOutput], year_index: int, key: str) -> float:
    """Weighted average of one price component for a year; 0 with no weight."""
    numerator = 0.0
    total_kg = 0.0
    for sku in by_sku:
        if year_index >= len(sku.prices) or year_index >= len(sku.volumes):
            continue
        kg = sku.volumes[year_index].weight_kg
        if kg <= 0:
            continue
        numerator += getattr(sku.prices[year_index].per_kg, key) * kg
        total_kg += kg
    return safe_div(numerator, total_kg)


def wa_revenue_per_kg(by_sku: Sequence[SkuCalcOutput], year_index: int) -> float:
    """Weighted average of RM + MB + packaging + freight-out + conversion."""
    keys = ("rm_per_kg", "mb_per_kg", "packaging_per_kg", "freight_out_per_kg", "conversion_per_kg")
    return sum(wa_per_kg(by_sku, year_index, key) for key in keys)


def calculate_per_kg(total: float, weight_kg: float) -> float:
    return safe_div(total, weight_kg)


def build_per_kg_table(pnl: Sequence[PnlYear], volumes: Sequence[YearVolumes]) -> List[PerKgYear]:
    """Express the case P&L per kg of output for every year."""
    table: List[PerKgYear] = []
    for year, volume in zip(pnl, volumes):
        row = PerKgYear(year=year.year)
        for target, source in PER_KG_LINES.items():
            setattr(row, target, calculate_per_kg(getattr(year, source), volume.weight_kg))
        table.append(row)
    return table


# =============================================================================
# END OF AGGREGATION MODULE
# =============================================================================
