# =============================================================================
# PACKCASE ENGINE - VALUATION MODULE
# =============================================================================
# Investment returns of the case from its free cash flows.
#
# METRICS:
# - WACC = debt% * Kd * (1 - t) + (1 - debt%) * Ke
# - NPV = sum(FCF[y] / (1 + WACC)^y), year 0 included
# - IRR = rate where NPV = 0
# - Payback = year where cumulative FCF turns from negative to >= 0
# - Net Block[y] = max(0, new asset cost - accumulated depreciation[y])
# - RoCE[y] = EBIT[y] / (Net Block[y] + NWC[y]), 0 if capital employed <= 0
# =============================================================================

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .case import FinanceInput, Sku
from .cashflow import CashflowYear, build_cashflows, build_present_value, build_working_capital
from .pnl import PnlYear
from .utils import irr as calculate_irr


@dataclass
class RoceYear:
    year: int
    roce: float = 0.0
    net_block: float = 0.0
    net_working_capital: float = 0.0
    capital_employed: float = 0.0


@dataclass
class Returns:
    """Output structure for the returns calculation."""
    wacc: float = 0.0
    npv: float = 0.0
    irr: Optional[float] = None
    payback_years: Optional[float] = None
    roce_by_year: List[RoceYear] = field(default_factory=list)


def build_wacc(finance: FinanceInput, tax_rate: float) -> float:
    """
    Weighted average cost of capital.

    An explicit finance.wacc_pct takes precedence over the derived rate.
    """
    if finance.wacc_pct is not None:
        return finance.wacc_pct
    debt = finance.debt_pct or 0.0
    return debt * (finance.cost_of_debt_pct or 0.0) * (1 - tax_rate) + (1 - debt) * (finance.cost_of_equity_pct or 0.0)


def build_npv(cashflows: Sequence[CashflowYear], wacc: float) -> float:
    """Sum of discounted FCF including the undiscounted year-0 flow."""
    if not cashflows:
        return 0.0
    total = cashflows[0].fcf
    for row in cashflows[1:]:
        total += build_present_value(row.fcf, wacc, row.year)
    return total


def build_payback_years(cashflows: Sequence[CashflowYear], interpolate: bool = True) -> Optional[float]:
    """
    Find the year cumulative FCF crosses from negative to >= 0.

    Args:
        cashflows: Rows with cumulative_fcf filled in
        interpolate: Add the fraction of the crossing year needed to recover
            the remaining deficit; otherwise return the crossing year

    Returns:
        Payback in years, or None if never recovered
    """
    for previous, current in zip(cashflows, cashflows[1:]):
        if previous.cumulative_fcf < 0 <= current.cumulative_fcf:
            if not interpolate:
                return float(current.year)
            return previous.year + (-previous.cumulative_fcf) / (current.fcf or 1)
    return None


def build_accumulated_depreciation(annual_depreciation_by_year: Sequence[float], year: int) -> float:
    """Depreciation charged from year 1 through the given year."""
    return sum(annual_depreciation_by_year[:year])


def build_net_block_capex(skus: Sequence[Sku]) -> float:
    """Gross block of new assets: machine, mould and infra."""
    return sum(
        (s.ops.cost_of_new_machine or 0.0) + (s.ops.cost_of_new_mould or 0.0) + (s.ops.cost_of_new_infra or 0.0)
        for s in skus
    )


def build_net_block(gross_block: float, annual_depreciation_by_year: Sequence[float], year: int) -> float:
    return max(0.0, gross_block - build_accumulated_depreciation(annual_depreciation_by_year, year))


def build_roce(ebit: float, net_block: float, net_working_capital: float) -> float:
    capital_employed = net_block + net_working_capital
    if capital_employed <= 0:
        return 0.0
    return ebit / capital_employed


def build_roce_by_year(
    pnl: Sequence[PnlYear],
    gross_block: float,
    annual_depreciation_by_year: Sequence[float],
    working_capital_days: float,
) -> List[RoceYear]:
    """RoCE for every P&L year."""
    result: List[RoceYear] = []
    for year in pnl:
        net_block = build_net_block(gross_block, annual_depreciation_by_year, year.year)
        nwc = build_working_capital(working_capital_days, year.revenue_net)
        result.append(RoceYear(
            year=year.year,
            roce=build_roce(year.ebit, net_block, nwc),
            net_block=net_block,
            net_working_capital=nwc,
            capital_employed=net_block + nwc,
        ))
    return result


def build_cashflows_and_returns(
    finance: FinanceInput,
    pnl: Sequence[PnlYear],
    capex0: float,
    working_capital_days: float,
    annual_depreciation_by_year: Sequence[float],
    net_block_capex: Optional[float] = None,
) -> Tuple[List[CashflowYear], Returns]:
    """
    Build cash flows and the return metrics of a case.

    Args:
        finance: Case-level finance inputs
        pnl: Case-level P&L
        capex0: Year-0 investment
        working_capital_days: Days of net revenue held as NWC
        annual_depreciation_by_year: Depreciation charged each year
        net_block_capex: Gross block for RoCE; defaults to capex0

    Returns:
        (cashflows, returns)
    """
    tax_rate = finance.corporate_tax_rate_pct or 0.0
    wacc = build_wacc(finance, tax_rate)
    cashflows = build_cashflows(pnl, capex0, working_capital_days, tax_rate, wacc)

    gross_block = capex0 if net_block_capex is None else net_block_capex
    returns = Returns(
        wacc=wacc,
        npv=build_npv(cashflows, wacc),
        irr=calculate_irr([row.fcf for row in cashflows]),
        payback_years=build_payback_years(cashflows),
        roce_by_year=build_roce_by_year(pnl, gross_block, annual_depreciation_by_year, working_capital_days),
    )
    return cashflows, returns


def validate_returns(returns: Returns) -> List[str]:
    """Flag return metrics outside a plausible range."""
    warnings = []

    if returns.irr is not None and (returns.irr < -1 or returns.irr > 10):
        warnings.append(f"IRR out of reasonable range: {returns.irr}")

    if returns.payback_years is None:
        warnings.append("Investment is not paid back within the horizon")

    return warnings


# =============================================================================
# END OF VALUATION MODULE
# =============================================================================
