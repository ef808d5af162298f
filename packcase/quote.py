# =============================================================================
# PACKCASE ENGINE - QUOTE MODULE
# =============================================================================
# Turns the year-1 price build-up of a case into a customer quote and
# searches for component prices that hit a target NPV or IRR.
#
# FORMULAS:
# - component per piece = component per kg * product weight kg
# - Total excl GST = resin + MB + wastage + packaging + freight
#                    + mould amortisation + conversion charge - discount
# - GST = Total excl GST * gst_rate
# - Total incl GST = Total excl GST + GST
# - Quote total per piece = sum(item total per piece * quantity)
# - Quote total per kg = kg-weighted average of item totals per kg
#
# OPTIMISATION:
# Bisection on a price multiplier (max 100 iterations, relative error
# tolerance 1e-6). Each step writes the quote back into a copy of the case
# and re-runs the full pipeline.
# =============================================================================

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple
import copy
import logging
import math
import uuid

from .case import BusinessCase
from .config import DEFAULT_GST_RATE, QUOTE_MAX_ITERATIONS, QUOTE_TOLERANCE
from .engine import calculate_scenario
from .utils import to_kg

logger = logging.getLogger(__name__)

QUOTE_COMPONENTS = (
    "resin",
    "mb",
    "wastage",
    "packaging",
    "freight",
    "mould_amortisation",
    "conversion_charge",
    "discount",
)

# Components a user may edit on a fresh quote
EDITABLE_COMPONENTS = {
    "resin": True,
    "mb": True,
    "wastage": False,
    "packaging": True,
    "freight": True,
    "mould_amortisation": False,
    "conversion_charge": True,
    "discount": False,
}

OPTIMIZATION_MODES = ("conversion_only", "all_components")


@dataclass
class QuoteLineItem:
    rs_per_piece: float = 0.0
    rs_per_kg: float = 0.0


@dataclass
class QuoteSkuItem:
    sku_id: str
    sku_name: str = ""
    included: bool = True
    quantity: float = 1
    product_weight_kg: float = 0.0
    components: Dict[str, QuoteLineItem] = field(default_factory=dict)
    total_excl_gst: QuoteLineItem = field(default_factory=QuoteLineItem)
    gst: QuoteLineItem = field(default_factory=QuoteLineItem)
    total_incl_gst: QuoteLineItem = field(default_factory=QuoteLineItem)


@dataclass
class QuoteTotals:
    total_excl_gst: QuoteLineItem = field(default_factory=QuoteLineItem)
    gst: QuoteLineItem = field(default_factory=QuoteLineItem)
    total_incl_gst: QuoteLineItem = field(default_factory=QuoteLineItem)


@dataclass
class CustomerQuote:
    id: str
    business_case_id: str = ""
    quote_name: str = ""
    created_at: str = ""
    updated_at: str = ""
    sku_items: List[QuoteSkuItem] = field(default_factory=list)
    aggregated_totals: QuoteTotals = field(default_factory=QuoteTotals)
    gst_rate: float = DEFAULT_GST_RATE
    optimization_mode: str = "none"
    target_npv: Optional[float] = None
    target_irr: Optional[float] = None
    editable_components: Dict[str, bool] = field(default_factory=lambda: dict(EDITABLE_COMPONENTS))


@dataclass
class QuoteValidation:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)


@dataclass
class ConvergenceInfo:
    converged: bool = False
    iterations: int = 0
    final_error: float = math.inf


@dataclass
class QuoteOptimizationResult:
    optimized_quote: CustomerQuote
    achieved_npv: float = 0.0
    achieved_irr: Optional[float] = None
    convergence_info: ConvergenceInfo = field(default_factory=ConvergenceInfo)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# -----------------------------------------------------------------------------
# Totals
# -----------------------------------------------------------------------------

def calculate_total_excl_gst(components: Dict[str, QuoteLineItem]) -> QuoteLineItem:
    """Sum of all components with the discount subtracted."""
    total = QuoteLineItem()
    for name in QUOTE_COMPONENTS:
        item = components.get(name, QuoteLineItem())
        sign = -1 if name == "discount" else 1
        total.rs_per_piece += sign * item.rs_per_piece
        total.rs_per_kg += sign * item.rs_per_kg
    return total


def calculate_gst(total_excl_gst: QuoteLineItem, gst_rate: float) -> QuoteLineItem:
    return QuoteLineItem(
        rs_per_piece=total_excl_gst.rs_per_piece * gst_rate,
        rs_per_kg=total_excl_gst.rs_per_kg * gst_rate,
    )


def calculate_total_incl_gst(total_excl_gst: QuoteLineItem, gst: QuoteLineItem) -> QuoteLineItem:
    return QuoteLineItem(
        rs_per_piece=total_excl_gst.rs_per_piece + gst.rs_per_piece,
        rs_per_kg=total_excl_gst.rs_per_kg + gst.rs_per_kg,
    )


def _refresh_item(item: QuoteSkuItem, gst_rate: float) -> None:
    item.total_excl_gst = calculate_total_excl_gst(item.components)
    item.gst = calculate_gst(item.total_excl_gst, gst_rate)
    item.total_incl_gst = calculate_total_incl_gst(item.total_excl_gst, item.gst)


def calculate_aggregated_totals(items: Sequence[QuoteSkuItem], gst_rate: float) -> QuoteTotals:
    """
    Quantity-weighted totals across included items.

    Per-kg totals are averaged by the kg each item represents
    (per-piece total / per-kg total * quantity).
    """
    total_per_piece = 0.0
    weighted_per_kg = 0.0
    total_weight = 0.0

    for item in items:
        if not item.included:
            continue
        total_per_piece += item.total_excl_gst.rs_per_piece * item.quantity
        item_weight = item.total_excl_gst.rs_per_piece / max(0.001, item.total_excl_gst.rs_per_kg)
        weight = item_weight * item.quantity
        total_weight += weight
        weighted_per_kg += item.total_excl_gst.rs_per_kg * weight

    excl = QuoteLineItem(
        rs_per_piece=total_per_piece,
        rs_per_kg=weighted_per_kg / total_weight if total_weight > 0 else 0.0,
    )
    gst = calculate_gst(excl, gst_rate)
    return QuoteTotals(total_excl_gst=excl, gst=gst, total_incl_gst=calculate_total_incl_gst(excl, gst))


def update_quote_totals(quote: CustomerQuote) -> CustomerQuote:
    """Return a copy with item and aggregated totals recalculated."""
    updated = copy.deepcopy(quote)
    for item in updated.sku_items:
        _refresh_item(item, updated.gst_rate)
    updated.aggregated_totals = calculate_aggregated_totals(updated.sku_items, updated.gst_rate)
    updated.updated_at = _now()
    return updated


# -----------------------------------------------------------------------------
# Generation and validation
# -----------------------------------------------------------------------------

def generate_quote(
    case: BusinessCase,
    quote_name: Optional[str] = None,
    gst_rate: float = DEFAULT_GST_RATE,
    default_quantities: Optional[Dict[str, float]] = None,
    selected_sku_ids: Optional[Sequence[str]] = None,
) -> CustomerQuote:
    """
    Generate a customer quote from the year-1 prices of a case.

    Args:
        case: Business case
        quote_name: Defaults to "Quote for <case name>"
        gst_rate: GST applied to the total excluding GST
        default_quantities: Quantity per SKU id (default 1)
        selected_sku_ids: SKUs to quote; all SKUs when empty

    Returns:
        CustomerQuote

    Raises:
        ValueError: If no SKU is selected
    """
    quantities = default_quantities or {}
    skus = [s for s in case.skus if s.id in selected_sku_ids] if selected_sku_ids else list(case.skus)
    if not skus:
        raise ValueError("No SKUs found to include in quote")

    calc = calculate_scenario(case)
    by_id = {s.sku_id: s for s in calc.by_sku}

    items: List[QuoteSkuItem] = []
    for sku in skus:
        per_kg = by_id[sku.id].prices[0].per_kg
        weight_kg = to_kg(sku.sales.product_weight_grams)
        rates = {
            "resin": per_kg.rm_per_kg,
            "mb": per_kg.mb_per_kg,
            "wastage": 0.0,
            "packaging": per_kg.packaging_per_kg,
            "freight": per_kg.freight_out_per_kg,
            "mould_amortisation": 0.0,
            "conversion_charge": per_kg.conversion_per_kg,
            "discount": 0.0,
        }
        item = QuoteSkuItem(
            sku_id=sku.id,
            sku_name=sku.name,
            quantity=quantities.get(sku.id) or 1,
            product_weight_kg=weight_kg,
            components={
                name: QuoteLineItem(rs_per_piece=rate * weight_kg, rs_per_kg=rate)
                for name, rate in rates.items()
            },
        )
        _refresh_item(item, gst_rate)
        items.append(item)

    timestamp = _now()
    return CustomerQuote(
        id=f"quote_{uuid.uuid4().hex[:12]}",
        business_case_id=case.id,
        quote_name=quote_name or f"Quote for {case.name}",
        created_at=timestamp,
        updated_at=timestamp,
        sku_items=items,
        aggregated_totals=calculate_aggregated_totals(items, gst_rate),
        gst_rate=gst_rate,
    )


def validate_quote(quote: CustomerQuote) -> QuoteValidation:
    """Check component signs, quantities, weights and the GST rate."""
    errors: List[str] = []

    for item in quote.sku_items:
        for name, values in item.components.items():
            if values.rs_per_piece < 0:
                errors.append(f"SKU {item.sku_name}: {name} per piece cannot be negative")
            if values.rs_per_kg < 0:
                errors.append(f"SKU {item.sku_name}: {name} per kg cannot be negative")

        if item.quantity <= 0:
            errors.append(f"SKU {item.sku_name}: quantity must be greater than 0")

        resin = item.components.get("resin")
        if resin is not None and resin.rs_per_kg > 0:
            weight = resin.rs_per_piece / resin.rs_per_kg
            if weight <= 0 or not math.isfinite(weight):
                errors.append(f"SKU {item.sku_name}: Invalid product weight calculation")

    if quote.gst_rate < 0 or quote.gst_rate > 1:
        errors.append("GST rate must be between 0 and 1")

    if not any(item.included for item in quote.sku_items):
        errors.append("At least one SKU must be included in the quote")

    return QuoteValidation(is_valid=not errors, errors=errors)


# -----------------------------------------------------------------------------
# Optimisation
# -----------------------------------------------------------------------------

def build_case_from_quote(quote: CustomerQuote, case: BusinessCase) -> BusinessCase:
    """
    Copy of the case whose year-1 prices reproduce the quote.

    Resin and MB become net per-kg prices, conversion charge becomes the
    conversion recovery, and wastage, mould amortisation and discount are
    carried in value-add per piece.
    """
    modified = copy.deepcopy(case)
    skus = {s.id: s for s in modified.skus}
    for item in quote.sku_items:
        if not item.included:
            continue
        sku = skus.get(item.sku_id)
        if sku is None:
            logger.warning("Quote SKU %s not found in business case %s", item.sku_id, case.id)
            continue
        c = item.components
        costing = sku.costing
        costing.resin_rs_per_kg = c["resin"].rs_per_kg
        costing.resin_discount_pct = 0.0
        costing.freight_inwards_rs_per_kg = 0.0
        costing.wastage_pct = 0.0
        costing.use_mb_price_override = True
        costing.mb_ratio_pct = 1.0
        costing.mb_rs_per_kg = c["mb"].rs_per_kg
        costing.packaging_rs_per_kg = c["packaging"].rs_per_kg
        costing.freight_out_rs_per_kg = c["freight"].rs_per_kg
        costing.value_add_rs_per_piece = (
            c["wastage"].rs_per_piece + c["mould_amortisation"].rs_per_piece - c["discount"].rs_per_piece
        )
        sku.sales.conversion_recovery_rs_per_piece = c["conversion_charge"].rs_per_piece
    return modified


def calculate_quote_metrics(quote: CustomerQuote, case: BusinessCase) -> Tuple[float, Optional[float]]:
    """(NPV, IRR) of the case priced at the quote."""
    calc = calculate_scenario(build_case_from_quote(quote, case))
    return calc.returns.npv, calc.returns.irr


def scale_components(quote: CustomerQuote, names: Sequence[str], multiplier: float) -> CustomerQuote:
    scaled = copy.deepcopy(quote)
    for item in scaled.sku_items:
        if not item.included:
            continue
        for name in names:
            line = item.components[name]
            line.rs_per_kg *= multiplier
            line.rs_per_piece *= multiplier
        _refresh_item(item, scaled.gst_rate)
    scaled.aggregated_totals = calculate_aggregated_totals(scaled.sku_items, scaled.gst_rate)
    scaled.updated_at = _now()
    return scaled


def _relative_error(achieved: Optional[float], target: float) -> float:
    if achieved is None:
        return math.inf
    return abs(achieved - target) / (abs(target) or 1.0)


def _bisect(
    quote: CustomerQuote,
    case: BusinessCase,
    build: Callable[[float], CustomerQuote],
    lower: float,
    upper: float,
    target_npv: Optional[float],
    target_irr: Optional[float],
) -> QuoteOptimizationResult:
    """
    Bisect the multiplier range for the target metric.

    The search direction follows the metric at the two bounds; scaling
    pass-through components lowers returns. A target outside the bounds
    returns the closer bound with converged=False.
    """
    target = target_npv if target_npv is not None else target_irr
    best_quote = quote
    info = ConvergenceInfo()

    def evaluate(multiplier: float) -> Tuple[Optional[float], float]:
        nonlocal best_quote
        info.iterations += 1
        candidate = build(multiplier)
        npv, irr_value = calculate_quote_metrics(candidate, case)
        achieved = npv if target_npv is not None else irr_value
        error = _relative_error(achieved, target)
        if error < info.final_error:
            info.final_error = error
            best_quote = candidate
        return achieved, error

    # An undefined IRR ranks below every defined value
    def rank(value: Optional[float]) -> float:
        return -math.inf if value is None else value

    at_lower, lower_error = evaluate(lower)
    at_upper, upper_error = evaluate(upper)
    increasing = rank(at_upper) >= rank(at_lower)
    low_value, high_value = (at_lower, at_upper) if increasing else (at_upper, at_lower)

    if min(lower_error, upper_error) < QUOTE_TOLERANCE:
        info.converged = True
    elif rank(high_value) < target or rank(low_value) > target:
        logger.info("Quote target %s is outside the reachable range", target)
    else:
        while info.iterations < QUOTE_MAX_ITERATIONS:
            mid = (lower + upper) / 2
            achieved, error = evaluate(mid)

            if error < QUOTE_TOLERANCE:
                info.converged = True
                break

            if (rank(achieved) < target) == increasing:
                lower = mid
            else:
                upper = mid

    npv, irr_value = calculate_quote_metrics(best_quote, case)
    return QuoteOptimizationResult(
        optimized_quote=best_quote,
        achieved_npv=npv,
        achieved_irr=irr_value,
        convergence_info=info,
    )


def optimize_quote(
    quote: CustomerQuote,
    case: BusinessCase,
    target_npv: Optional[float] = None,
    target_irr: Optional[float] = None,
    mode: str = "conversion_only",
) -> QuoteOptimizationResult:
    """
    Search for quote prices that hit a target NPV (preferred) or IRR.

    Modes:
        conversion_only: scale each included SKU's conversion charge by a
            multiplier in [0.1, 10]
        all_components: scale every other component by a multiplier in
            [0.5, 3], conversion charge unchanged

    Raises:
        ValueError: If no target is given, the mode is unknown, or no SKU
            is included
    """
    if target_npv is None and target_irr is None:
        raise ValueError("Either target_npv or target_irr must be provided")
    if mode not in OPTIMIZATION_MODES:
        raise ValueError(f"Invalid optimization mode: {mode}")
    if not any(item.included for item in quote.sku_items):
        raise ValueError("No SKUs included in quote for optimization")

    if mode == "conversion_only":
        names: Tuple[str, ...] = ("conversion_charge",)
        lower, upper = 0.1, 10.0
    else:
        names = tuple(n for n in QUOTE_COMPONENTS if n != "conversion_charge")
        lower, upper = 0.5, 3.0

    result = _bisect(
        quote,
        case,
        lambda multiplier: scale_components(quote, names, multiplier),
        lower,
        upper,
        target_npv,
        target_irr,
    )
    result.optimized_quote.optimization_mode = mode
    result.optimized_quote.target_npv = target_npv
    result.optimized_quote.target_irr = target_irr

    if not result.convergence_info.converged:
        logger.info(
            "Quote optimisation stopped after %d iterations (error %.3g)",
            result.convergence_info.iterations,
            result.convergence_info.final_error,
        )
    return result


# =============================================================================
# END OF QUOTE MODULE
# =============================================================================
