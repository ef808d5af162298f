# =============================================================================
# PACKCASE ENGINE - BUSINESS CASE MODEL
# =============================================================================
# Input data model for a business case and its SKUs.
#
# STRUCTURE:
# BusinessCase
#   finance: FinanceInput (case level)
#   skus: [Sku]
#     sales, npd, ops, costing, plant_master, alt_conversion
#
# Optional fields left as None fall back to the documented defaults in
# packcase.config at calculation time; an explicit 0 is kept as 0.
# =============================================================================

from dataclasses import dataclass, field, fields, asdict
from typing import Dict, List, Optional
import re

from .config import HORIZON_YEARS


def _zero_series() -> List[float]:
    return [0.0] * HORIZON_YEARS


@dataclass
class PlantMaster:
    """Per-plant rates (Rs per kg unless noted)."""
    plant: str = ""
    manpower_rate_per_shift: float = 0.0  # Rs per person per shift
    power_rate_per_unit: float = 0.0  # Rs per kWh
    r_and_m_per_kg: float = 0.0
    other_mfg_per_kg: float = 0.0
    plant_sga_per_kg: float = 0.0
    corp_sga_per_kg: float = 0.0
    conversion_per_kg: Optional[float] = None  # default 25.80
    selling_general_and_administrative_expenses_per_kg: float = 0.0


@dataclass
class SalesInput:
    product_weight_grams: float = 0.0
    base_annual_volume_pieces: float = 0.0  # Year 1 pieces
    conversion_recovery_rs_per_piece: Optional[float] = None


@dataclass
class NpdInput:
    machine_name: str = ""
    cavities: float = 0.0
    cycle_time_seconds: float = 0.0
    plant: str = ""  # key into the plant master
    polymer: str = ""
    masterbatch: str = ""


@dataclass
class OpsInput:
    oee: float = 0.0  # 0..1
    operating_hours_per_day: Optional[float] = None  # default 24
    working_days_per_year: Optional[float] = None  # default 365
    shifts_per_day: Optional[float] = None  # default 3
    power_units_per_hour: float = 0.0
    manpower_count: float = 0.0
    machine_available: bool = False
    new_machine_required: bool = False
    new_mould_required: bool = False
    new_infra_required: bool = False
    cost_of_new_machine: float = 0.0
    cost_of_old_machine: float = 0.0
    cost_of_new_mould: float = 0.0
    cost_of_old_mould: float = 0.0
    cost_of_new_infra: float = 0.0
    cost_of_old_infra: float = 0.0
    life_of_new_machine_years: Optional[float] = None  # default 15
    life_of_new_mould_years: Optional[float] = None  # default 15
    life_of_new_infra_years: Optional[float] = None  # default 30
    working_capital_days: Optional[float] = None  # default 60


@dataclass
class CostingInput:
    resin_rs_per_kg: float = 0.0
    freight_inwards_rs_per_kg: float = 0.0
    resin_discount_pct: float = 0.0  # 0..1
    mb_rs_per_kg: float = 0.0
    value_add_rs_per_piece: float = 0.0
    packaging_rs_per_kg: float = 0.0
    freight_out_rs_per_kg: float = 0.0
    packaging_rs_per_piece: Optional[float] = None  # legacy fallback
    freight_out_rs_per_piece: Optional[float] = None  # legacy fallback
    wastage_pct: float = 0.0  # 0..1, applied to resin and MB
    mb_ratio_pct: float = 0.0  # 0..1
    conversion_inflation_pct: List[float] = field(default_factory=_zero_series)
    rm_inflation_pct: List[float] = field(default_factory=_zero_series)
    use_mb_price_override: bool = False


@dataclass
class AltConversionInput:
    machine_rate_per_day_rs: Optional[float] = None


@dataclass
class FinanceInput:
    include_corp_sga: bool = False
    debt_pct: float = 0.0  # share of capex financed by debt
    cost_of_debt_pct: float = 0.0
    cost_of_equity_pct: float = 0.0
    corporate_tax_rate_pct: float = 0.0
    annual_volume_growth_pct: Optional[float] = None
    wacc_pct: Optional[float] = None  # explicit override of the derived WACC


@dataclass
class Sku:
    id: str
    name: str = ""
    sales: SalesInput = field(default_factory=SalesInput)
    npd: NpdInput = field(default_factory=NpdInput)
    ops: OpsInput = field(default_factory=OpsInput)
    costing: CostingInput = field(default_factory=CostingInput)
    plant_master: PlantMaster = field(default_factory=PlantMaster)
    alt_conversion: Optional[AltConversionInput] = None


@dataclass
class BusinessCase:
    id: str
    name: str = ""
    created_at: str = ""
    updated_at: str = ""
    finance: FinanceInput = field(default_factory=FinanceInput)
    skus: List[Sku] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Dict conversion (case store uses camelCase, YAML files use snake_case)
# -----------------------------------------------------------------------------

_FIRST_CAP = re.compile(r"(.)([A-Z][a-z]+)")
_ALL_CAP = re.compile(r"([a-z0-9])([A-Z])")


def to_snake_case(key: str) -> str:
    """rAndMPerKg -> r_and_m_per_kg, includeCorpSGA -> include_corp_sga."""
    return _ALL_CAP.sub(r"\1_\2", _FIRST_CAP.sub(r"\1_\2", key)).lower()


def _normalise_keys(data: Optional[Dict]) -> Dict:
    return {to_snake_case(str(key)): value for key, value in (data or {}).items()}


def build_input(cls, data: Optional[Dict]):
    """Instantiate a flat input dataclass, ignoring unknown keys."""
    values = _normalise_keys(data)
    names = {f.name for f in fields(cls)}
    return cls(**{key: value for key, value in values.items() if key in names})


def sku_from_dict(data: Dict) -> Sku:
    values = _normalise_keys(data)
    alt = values.get("alt_conversion")
    return Sku(
        id=str(values.get("id", "")),
        name=values.get("name", ""),
        sales=build_input(SalesInput, values.get("sales")),
        npd=build_input(NpdInput, values.get("npd")),
        ops=build_input(OpsInput, values.get("ops")),
        costing=build_input(CostingInput, values.get("costing")),
        plant_master=build_input(PlantMaster, values.get("plant_master")),
        alt_conversion=build_input(AltConversionInput, alt) if alt is not None else None,
    )


def case_from_dict(data: Dict) -> BusinessCase:
    """
    Build a BusinessCase from a plain dict.

    Accepts snake_case or camelCase keys at every level.

    Raises:
        ValueError: If the payload is not a mapping or skus is not a list
    """
    if not isinstance(data, dict):
        raise ValueError(f"Business case must be a mapping, got {type(data).__name__}")
    values = _normalise_keys(data)
    skus = values.get("skus") or []
    if not isinstance(skus, list):
        raise ValueError("Business case 'skus' must be a list")
    return BusinessCase(
        id=str(values.get("id", "")),
        name=values.get("name", ""),
        created_at=str(values.get("created_at", "")),
        updated_at=str(values.get("updated_at", "")),
        finance=build_input(FinanceInput, values.get("finance")),
        skus=[sku_from_dict(sku) for sku in skus],
    )


def case_to_dict(case: BusinessCase) -> Dict:
    return asdict(case)


# =============================================================================
# END OF BUSINESS CASE MODEL
# =============================================================================
