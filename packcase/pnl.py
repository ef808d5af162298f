# =============================================================================
# PACKCASE ENGINE - P&L MODULE (PER SKU)
# =============================================================================
# Builds the yearly income statement of one SKU from its volumes, prices
# and plant-master rates.
#
# FORMULAS:
# - Revenue Net = Revenue Gross = price_per_piece * pieces
# - Material Cost = (RM + MB) * kg + packaging + freight-out
# - Material Margin = Revenue Net - Material Cost
# - Gross Margin = Material Margin - Conversion Cost
# - EBITDA = Revenue Net - Material Cost - Conversion Cost - SGA
# - Depreciation = sum((new + old) / life) over machine, mould, infra
# - EBIT = EBITDA - Depreciation
# - Interest = debt_pct * new machine cost * cost_of_debt
# - Tax = max(0, PBT) * tax_rate
# - PAT = PBT - Tax
#
# Power and manpower are annual plant totals, not weight-share allocations.
# =============================================================================

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .case import FinanceInput, OpsInput, PlantMaster, Sku
from .config import (
    DEFAULT_CONVERSION_PER_KG,
    DEFAULT_INFRA_LIFE_YEARS,
    DEFAULT_MACHINE_LIFE_YEARS,
    DEFAULT_MOULD_LIFE_YEARS,
    DEFAULT_OPERATING_HOURS_PER_DAY,
    DEFAULT_SHIFTS_PER_DAY,
    DEFAULT_WORKING_DAYS_PER_YEAR,
)
from .pricing import PriceYear
from .utils import safe_div
from .volume import YearVolumes, compute_volumes


@dataclass
class PnlYear:
    """Income statement for one year."""
    year: int
    revenue_gross: float = 0.0
    revenue_net: float = 0.0
    material_cost: float = 0.0
    material_margin: float = 0.0
    power_cost: float = 0.0
    manpower_cost: float = 0.0
    value_add_cost: float = 0.0
    packaging_cost: float = 0.0
    freight_out_cost: float = 0.0
    conversion_recovery_cost: float = 0.0
    r_and_m_cost: float = 0.0
    other_mfg_cost: float = 0.0
    plant_sga_cost: float = 0.0
    corp_sga_cost: float = 0.0
    sga_cost: float = 0.0
    conversion_cost: float = 0.0
    gross_margin: float = 0.0
    ebitda: float = 0.0
    depreciation: float = 0.0
    ebit: float = 0.0
    interest_capex: float = 0.0
    pbt: float = 0.0
    tax: float = 0.0
    pat: float = 0.0


# -----------------------------------------------------------------------------
# Revenue and cost lines
# -----------------------------------------------------------------------------

def build_revenue_gross(price: PriceYear, volume_pieces: float) -> float:
    return price.price_per_piece * volume_pieces


def build_revenue_net(revenue_gross: float) -> float:
    # No discount or freight is netted out
    return revenue_gross


def build_power_cost(
    ops: OpsInput,
    operating_hours_per_day: float,
    working_days_per_year: float,
    power_rate: float,
    weight_kg: float,
) -> float:
    """Annual power bill; 0 only when the SKU produces no weight."""
    total = ops.power_units_per_hour * operating_hours_per_day * working_days_per_year * power_rate
    return safe_div(total, weight_kg) * weight_kg


def build_manpower_cost(
    ops: OpsInput,
    shifts_per_day: float,
    working_days_per_year: float,
    manpower_rate_per_shift: float,
    weight_kg: float,
) -> float:
    """Annual manpower bill; 0 only when the SKU produces no weight."""
    total = ops.manpower_count * shifts_per_day * working_days_per_year * manpower_rate_per_shift
    return safe_div(total, weight_kg) * weight_kg


def build_value_add_cost(sku: Sku, volume_pieces: float) -> float:
    return sku.costing.value_add_rs_per_piece * volume_pieces


def build_packaging_cost(sku: Sku, weight_kg: float) -> float:
    return (sku.costing.packaging_rs_per_kg or 0.0) * weight_kg


def build_freight_out_cost(sku: Sku, weight_kg: float) -> float:
    return (sku.costing.freight_out_rs_per_kg or 0.0) * weight_kg


def build_conversion_recovery_cost(sku: Sku, volume_pieces: float) -> float:
    return (sku.sales.conversion_recovery_rs_per_piece or 0.0) * volume_pieces


def build_material_cost(
    price: PriceYear,
    weight_kg: float,
    packaging_cost: float,
    freight_out_cost: float,
) -> float:
    return (price.per_kg.rm_per_kg + price.per_kg.mb_per_kg) * weight_kg + packaging_cost + freight_out_cost


def build_material_margin(revenue_net: float, material_cost: float) -> float:
    return revenue_net - material_cost


def build_r_and_m_cost(plant_master: PlantMaster, weight_kg: float) -> float:
    return plant_master.r_and_m_per_kg * weight_kg


def build_other_mfg_cost(plant_master: PlantMaster, weight_kg: float) -> float:
    return plant_master.other_mfg_per_kg * weight_kg


def build_plant_sga_cost(plant_master: PlantMaster, weight_kg: float) -> float:
    return plant_master.plant_sga_per_kg * weight_kg


def build_corp_sga_cost(finance: FinanceInput, plant_master: PlantMaster, weight_kg: float) -> float:
    """Corporate SGA, charged only when the case includes it."""
    rate = plant_master.corp_sga_per_kg if finance.include_corp_sga else 0.0
    return rate * weight_kg


def build_sga_cost(plant_master: PlantMaster, weight_kg: float) -> float:
    """Blended SGA line used in EBITDA."""
    return plant_master.selling_general_and_administrative_expenses_per_kg * weight_kg


def build_conversion_cost(plant_master: PlantMaster, weight_kg: float) -> float:
    rate = plant_master.conversion_per_kg
    if rate is None:
        rate = DEFAULT_CONVERSION_PER_KG
    return rate * weight_kg


def build_gross_margin(material_margin: float, conversion_cost: float) -> float:
    return material_margin - conversion_cost


def build_ebitda(
    revenue_net: float,
    material_cost: float,
    conversion_cost: float,
    sga_cost: float,
) -> float:
    return revenue_net - material_cost - conversion_cost - sga_cost


# -----------------------------------------------------------------------------
# Depreciation (straight line, flat every year)
# -----------------------------------------------------------------------------

def build_machine_depreciation(sku: Sku) -> float:
    ops = sku.ops
    life = ops.life_of_new_machine_years or DEFAULT_MACHINE_LIFE_YEARS
    return safe_div(ops.cost_of_new_machine + ops.cost_of_old_machine, life)


def build_mould_depreciation(sku: Sku) -> float:
    ops = sku.ops
    life = ops.life_of_new_mould_years or DEFAULT_MOULD_LIFE_YEARS
    return safe_div(ops.cost_of_new_mould + ops.cost_of_old_mould, life)


def build_infra_depreciation(sku: Sku) -> float:
    ops = sku.ops
    life = ops.life_of_new_infra_years or DEFAULT_INFRA_LIFE_YEARS
    return safe_div(ops.cost_of_new_infra + ops.cost_of_old_infra, life)


def build_total_depreciation(sku: Sku) -> float:
    return build_machine_depreciation(sku) + build_mould_depreciation(sku) + build_infra_depreciation(sku)


def build_ebit(ebitda: float, depreciation: float) -> float:
    return ebitda - depreciation


# -----------------------------------------------------------------------------
# Interest and tax (per-SKU path)
# -----------------------------------------------------------------------------

def build_capex_for_debt_sku(sku: Sku) -> float:
    """Debt-financed capex of one SKU: the new machine only."""
    return sku.ops.cost_of_new_machine or 0.0


def build_opening_debt(finance: FinanceInput, sku: Sku) -> float:
    return (finance.debt_pct or 0.0) * build_capex_for_debt_sku(sku)


def build_interest_for_sku(opening_debt: float, interest_rate: float) -> float:
    return opening_debt * interest_rate


def build_pbt(ebit: float, interest: float) -> float:
    return ebit - interest


def build_tax(pbt: float, tax_rate: float) -> float:
    """Tax with no credit for losses."""
    return max(0.0, pbt) * tax_rate


def build_pat(pbt: float, tax: float) -> float:
    return pbt - tax


# -----------------------------------------------------------------------------
# Per-SKU P&L
# -----------------------------------------------------------------------------

def build_pnl_for_sku(
    sku: Sku,
    finance: FinanceInput,
    prices: List[PriceYear],
    volumes: Optional[List[YearVolumes]] = None,
) -> Tuple[List[PnlYear], List[YearVolumes]]:
    """
    Build the yearly P&L of one SKU.

    Args:
        sku: SKU inputs
        finance: Case-level finance inputs
        prices: Output of build_price_by_year for this SKU
        volumes: Volume series; defaults to the fixed growth curve

    Returns:
        (pnl, volumes)
    """
    sales, ops, plant = sku.sales, sku.ops, sku.plant_master
    if volumes is None:
        volumes = compute_volumes(sales.product_weight_grams, sales.base_annual_volume_pieces)

    hours = ops.operating_hours_per_day if ops.operating_hours_per_day is not None else DEFAULT_OPERATING_HOURS_PER_DAY
    days = ops.working_days_per_year if ops.working_days_per_year is not None else DEFAULT_WORKING_DAYS_PER_YEAR
    shifts = ops.shifts_per_day if ops.shifts_per_day is not None else DEFAULT_SHIFTS_PER_DAY

    opening_debt = build_opening_debt(finance, sku)
    interest_rate = finance.cost_of_debt_pct or 0.0
    tax_rate = max(0.0, finance.corporate_tax_rate_pct or 0.0)
    depreciation = build_total_depreciation(sku)

    pnl: List[PnlYear] = []
    for v in volumes:
        price = prices[v.year - 1]
        pieces, kg = v.volume_pieces, v.weight_kg

        revenue_gross = build_revenue_gross(price, pieces)
        revenue_net = build_revenue_net(revenue_gross)
        packaging = build_packaging_cost(sku, kg)
        freight_out = build_freight_out_cost(sku, kg)
        material = build_material_cost(price, kg, packaging, freight_out)
        material_margin = build_material_margin(revenue_net, material)
        sga = build_sga_cost(plant, kg)
        conversion = build_conversion_cost(plant, kg)
        ebitda = build_ebitda(revenue_net, material, conversion, sga)
        ebit = build_ebit(ebitda, depreciation)
        interest = build_interest_for_sku(opening_debt, interest_rate)
        pbt = build_pbt(ebit, interest)
        tax = build_tax(pbt, tax_rate)

        pnl.append(PnlYear(
            year=v.year,
            revenue_gross=revenue_gross,
            revenue_net=revenue_net,
            material_cost=material,
            material_margin=material_margin,
            power_cost=build_power_cost(ops, hours, days, plant.power_rate_per_unit, kg),
            manpower_cost=build_manpower_cost(ops, shifts, days, plant.manpower_rate_per_shift, kg),
            value_add_cost=build_value_add_cost(sku, pieces),
            packaging_cost=packaging,
            freight_out_cost=freight_out,
            conversion_recovery_cost=build_conversion_recovery_cost(sku, pieces),
            r_and_m_cost=build_r_and_m_cost(plant, kg),
            other_mfg_cost=build_other_mfg_cost(plant, kg),
            plant_sga_cost=build_plant_sga_cost(plant, kg),
            corp_sga_cost=build_corp_sga_cost(finance, plant, kg),
            sga_cost=sga,
            conversion_cost=conversion,
            gross_margin=build_gross_margin(material_margin, conversion),
            ebitda=ebitda,
            depreciation=depreciation,
            ebit=ebit,
            interest_capex=interest,
            pbt=pbt,
            tax=tax,
            pat=build_pat(pbt, tax),
        ))

    return pnl, volumes


# =============================================================================
# END OF P&L MODULE
# =============================================================================
