# =============================================================================
# PACKCASE ENGINE - SENSITIVITY MODULE
# =============================================================================
# Named, bounded perturbations of a business case.
#
# VARIABLES (applied to every SKU):
# - volume               base pieces, rounded, floor 0
# - conversion_recovery  Rs/piece, floor 0, left absent when absent
# - resin_price          resin and MB Rs/kg, floor 0
# - conversion_cost      plant conversion Rs/kg, floor 0
# - oee                  clamped to [0, 1]
# - machine_cost         new machine cost, floor 0
# - mould_cost           new mould cost, floor 0
# - sga                  blended SGA Rs/kg, floor 0
#
# Every perturbation works on a deep copy; the input case is never touched.
# =============================================================================

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union
import copy
import logging

from .case import BusinessCase, Sku, to_snake_case
from .config import DEFAULT_CONVERSION_PER_KG, DEFAULT_WORKING_CAPITAL_DAYS
from .utils import clamp, round_half_up

logger = logging.getLogger(__name__)


UNKNOWN = "unknown"


class SensitivityVariable(str, Enum):
    VOLUME = "volume"
    CONVERSION_RECOVERY = "conversion_recovery"
    RESIN_PRICE = "resin_price"
    CONVERSION_COST = "conversion_cost"
    OEE = "oee"
    MACHINE_COST = "machine_cost"
    MOULD_COST = "mould_cost"
    SGA = "sga"


@dataclass(frozen=True)
class FieldLens:
    """Typed accessor for one numeric SKU field."""
    name: str
    get: Callable[[Sku], Optional[float]]
    set: Callable[[Sku, float], None]
    clamp: Callable[[float], float]
    skip_when_absent: bool = False


def _floor0(value: float) -> float:
    return max(0.0, value)


def _floor0_rounded(value: float) -> float:
    return max(0.0, round_half_up(value))


def _unit_interval(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def _set_volume(sku: Sku, value: float) -> None:
    sku.sales.base_annual_volume_pieces = value


def _set_conversion_recovery(sku: Sku, value: float) -> None:
    sku.sales.conversion_recovery_rs_per_piece = value


def _set_resin(sku: Sku, value: float) -> None:
    sku.costing.resin_rs_per_kg = value


def _set_mb(sku: Sku, value: float) -> None:
    sku.costing.mb_rs_per_kg = value


def _get_conversion_cost(sku: Sku) -> float:
    rate = sku.plant_master.conversion_per_kg
    return DEFAULT_CONVERSION_PER_KG if rate is None else rate


def _set_conversion_cost(sku: Sku, value: float) -> None:
    sku.plant_master.conversion_per_kg = value


def _set_oee(sku: Sku, value: float) -> None:
    sku.ops.oee = value


def _set_machine_cost(sku: Sku, value: float) -> None:
    sku.ops.cost_of_new_machine = value


def _set_mould_cost(sku: Sku, value: float) -> None:
    sku.ops.cost_of_new_mould = value


def _set_sga(sku: Sku, value: float) -> None:
    sku.plant_master.selling_general_and_administrative_expenses_per_kg = value


LENSES: Dict[SensitivityVariable, Tuple[FieldLens, ...]] = {
    SensitivityVariable.VOLUME: (
        FieldLens("volume", lambda s: s.sales.base_annual_volume_pieces, _set_volume, _floor0_rounded),
    ),
    SensitivityVariable.CONVERSION_RECOVERY: (
        FieldLens(
            "conversion_recovery",
            lambda s: s.sales.conversion_recovery_rs_per_piece,
            _set_conversion_recovery,
            _floor0,
            skip_when_absent=True,
        ),
    ),
    SensitivityVariable.RESIN_PRICE: (
        FieldLens("resin", lambda s: s.costing.resin_rs_per_kg, _set_resin, _floor0),
        FieldLens("mb", lambda s: s.costing.mb_rs_per_kg, _set_mb, _floor0),
    ),
    SensitivityVariable.CONVERSION_COST: (
        FieldLens("conversion_cost", _get_conversion_cost, _set_conversion_cost, _floor0),
    ),
    SensitivityVariable.OEE: (
        FieldLens("oee", lambda s: s.ops.oee, _set_oee, _unit_interval),
    ),
    SensitivityVariable.MACHINE_COST: (
        FieldLens("machine_cost", lambda s: s.ops.cost_of_new_machine, _set_machine_cost, _floor0),
    ),
    SensitivityVariable.MOULD_COST: (
        FieldLens("mould_cost", lambda s: s.ops.cost_of_new_mould, _set_mould_cost, _floor0),
    ),
    SensitivityVariable.SGA: (
        FieldLens(
            "sga",
            lambda s: s.plant_master.selling_general_and_administrative_expenses_per_kg,
            _set_sga,
            _floor0,
        ),
    ),
}


VARIABLE_LABELS: Dict[SensitivityVariable, str] = {
    SensitivityVariable.VOLUME: "Volume",
    SensitivityVariable.CONVERSION_RECOVERY: "Conversion Recovery",
    SensitivityVariable.RESIN_PRICE: "Resin price",
    SensitivityVariable.CONVERSION_COST: "Conversion cost",
    SensitivityVariable.OEE: "Operating Efficiency",
    SensitivityVariable.MACHINE_COST: "Machine Cost",
    SensitivityVariable.MOULD_COST: "Mould Cost",
    SensitivityVariable.SGA: "S, G&A",
}


def resolve_variable(var_id: Union[str, SensitivityVariable]) -> Optional[SensitivityVariable]:
    """Map a variable id (enum, snake_case or camelCase) to the enum, or None."""
    if isinstance(var_id, SensitivityVariable):
        return var_id
    try:
        return SensitivityVariable(to_snake_case(str(var_id)))
    except ValueError:
        return None


def clone_case(case: BusinessCase) -> BusinessCase:
    return copy.deepcopy(case)


def get_variable_value(case: BusinessCase, var_id: Union[str, SensitivityVariable]):
    """
    Current per-SKU values of a sensitivity variable.

    Returns:
        List with one entry per SKU (a dict for multi-field variables), or
        UNKNOWN for an unrecognised id
    """
    variable = resolve_variable(var_id)
    if variable is None:
        return UNKNOWN
    lenses = LENSES[variable]
    if len(lenses) == 1:
        return [lenses[0].get(sku) for sku in case.skus]
    return [{lens.name: lens.get(sku) for lens in lenses} for sku in case.skus]


def apply_delta(
    case: BusinessCase,
    var_id: Union[str, SensitivityVariable],
    delta_pct: float,
) -> BusinessCase:
    """
    Scale one variable by (1 + delta_pct) on every SKU of a copy of the case.

    An unrecognised id returns an unchanged copy.
    """
    result = clone_case(case)
    variable = resolve_variable(var_id)
    if variable is None:
        logger.warning("Unknown sensitivity variable '%s'; no change applied", var_id)
        return result

    for sku in result.skus:
        for lens in LENSES[variable]:
            current = lens.get(sku)
            if current is None:
                if lens.skip_when_absent:
                    continue
                current = 0.0
            lens.set(sku, lens.clamp(current * (1 + delta_pct)))
    return result


def apply_scenario(
    case: BusinessCase,
    volume_pct: float = 0.0,
    conversion_recovery_pct: float = 0.0,
    conversion_cost_pct: float = 0.0,
    wc_days_pct: float = 0.0,
) -> BusinessCase:
    """
    Apply a bundle of whole-number percentage changes (10 = +10%).

    Working-capital days start from 60 when unset or 0.
    """
    result = clone_case(case)
    for sku in result.skus:
        if volume_pct:
            sku.sales.base_annual_volume_pieces = _floor0_rounded(
                sku.sales.base_annual_volume_pieces * (1 + volume_pct / 100)
            )
        if conversion_recovery_pct and sku.sales.conversion_recovery_rs_per_piece is not None:
            sku.sales.conversion_recovery_rs_per_piece = _floor0(
                sku.sales.conversion_recovery_rs_per_piece * (1 + conversion_recovery_pct / 100)
            )
        if conversion_cost_pct:
            sku.plant_master.conversion_per_kg = _floor0(
                _get_conversion_cost(sku) * (1 + conversion_cost_pct / 100)
            )
        if wc_days_pct:
            baseline = sku.ops.working_capital_days or DEFAULT_WORKING_CAPITAL_DAYS
            sku.ops.working_capital_days = _floor0_rounded(baseline * (1 + wc_days_pct / 100))
    return result


# =============================================================================
# END OF SENSITIVITY MODULE
# =============================================================================
