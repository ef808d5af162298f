# =============================================================================
# PACKCASE ENGINE - CASHFLOW MODULE
# =============================================================================
# Builds the yearly free cash flow of the case.
#
# FLOW:
# Year 0: FCF = -capex0
# NWC[y] = wc_days / 365 * Revenue Net[y]
# Delta_NWC[y] = NWC[y] - NWC[y-1]   (NWC[0] = 0)
# FCF[y] = EBIT[y] * (1 - tax_rate) + Depreciation[y] - Delta_NWC[y]
# PV[y] = FCF[y] / (1 + WACC)^y
# Cumulative FCF[y] = Cumulative FCF[y-1] + FCF[y]
# =============================================================================

from dataclasses import dataclass
from typing import List, Sequence

from .config import DAYS_PER_YEAR
from .pnl import PnlYear
from .utils import safe_div


@dataclass
class CashflowYear:
    year: int  # 0 is the investment year
    nwc: float = 0.0
    change_in_nwc: float = 0.0
    fcf: float = 0.0
    pv: float = 0.0
    cumulative_fcf: float = 0.0


def build_working_capital(working_capital_days: float, revenue_net: float) -> float:
    return (working_capital_days / DAYS_PER_YEAR) * revenue_net


def build_change_in_working_capital(current_nwc: float, previous_nwc: float) -> float:
    return current_nwc - previous_nwc


def build_free_cash_flow(ebit: float, tax_rate: float, depreciation: float, change_in_nwc: float) -> float:
    """Unlevered free cash flow: NOPAT plus depreciation less NWC build."""
    return ebit * (1 - tax_rate) + depreciation - change_in_nwc


def build_present_value(fcf: float, wacc: float, year: int) -> float:
    return safe_div(fcf, (1 + wacc) ** year)


def build_cumulative_cash_flow(cashflows: List[CashflowYear]) -> List[CashflowYear]:
    """Fill cumulative_fcf in place as a running sum and return the list."""
    running = 0.0
    for row in cashflows:
        running += row.fcf
        row.cumulative_fcf = running
    return cashflows


def build_cashflows(
    pnl: Sequence[PnlYear],
    capex0: float,
    working_capital_days: float,
    tax_rate: float,
    wacc: float,
) -> List[CashflowYear]:
    """
    Build the year-0 investment row and one row per P&L year.

    Args:
        pnl: Case-level P&L
        capex0: Upfront investment
        working_capital_days: Days of net revenue tied up in NWC
        tax_rate: Corporate tax rate
        wacc: Discount rate for PV

    Returns:
        List of CashflowYear starting at year 0
    """
    cashflows = [CashflowYear(year=0, fcf=-capex0, pv=-capex0)]

    previous_nwc = 0.0
    for year in pnl:
        nwc = build_working_capital(working_capital_days, year.revenue_net)
        change = build_change_in_working_capital(nwc, previous_nwc)
        previous_nwc = nwc
        fcf = build_free_cash_flow(year.ebit, tax_rate, year.depreciation, change)
        cashflows.append(CashflowYear(
            year=year.year,
            nwc=nwc,
            change_in_nwc=change,
            fcf=fcf,
            pv=build_present_value(fcf, wacc, year.year),
        ))

    return build_cumulative_cash_flow(cashflows)


# =============================================================================
# END OF CASHFLOW MODULE
# =============================================================================
