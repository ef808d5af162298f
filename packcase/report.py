"""Turn a case projection into pandas tables for the CLI and exporters."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import List

import pandas as pd

from .aggregation import PerKgYear
from .cashflow import CashflowYear
from .engine import CalcOutput
from .pnl import PnlYear
from .pricing import PRICE_COMPONENTS
from .valuation import RoceYear
from .volume import YearVolumes


@dataclass
class CaseReport:
    volumes: pd.DataFrame
    prices: pd.DataFrame
    pnl: pd.DataFrame
    per_kg: pd.DataFrame
    cashflow: pd.DataFrame
    returns: pd.DataFrame
    roce: pd.DataFrame
    pnl_by_sku: pd.DataFrame


def _columns(cls) -> List[str]:
    return [f.name for f in fields(cls)]


def _rows_df(rows, cls) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=_columns(cls))
    return pd.DataFrame([asdict(row) for row in rows])


def _safe_pct(num: float, den: float) -> float:
    return (num / den) if den else 0.0


def _to_prices_df(calc: CalcOutput) -> pd.DataFrame:
    columns = ["year"] + list(PRICE_COMPONENTS) + ["total_per_kg", "price_per_piece"]
    rows = []
    for price in calc.prices:
        row = {"year": price.year}
        row.update(asdict(price.per_kg))
        row["price_per_piece"] = price.price_per_piece
        rows.append(row)
    return pd.DataFrame(rows, columns=columns)


def _to_pnl_df(pnl: List[PnlYear]) -> pd.DataFrame:
    data = _rows_df(pnl, PnlYear)
    if data.empty:
        return data.assign(gross_margin_pct=[], ebitda_margin_pct=[])
    data["gross_margin_pct"] = data.apply(
        lambda row: _safe_pct(float(row["gross_margin"]), float(row["revenue_net"])), axis=1
    )
    data["ebitda_margin_pct"] = data.apply(
        lambda row: _safe_pct(float(row["ebitda"]), float(row["revenue_net"])), axis=1
    )
    return data


def _to_returns_df(calc: CalcOutput) -> pd.DataFrame:
    returns = calc.returns
    rows = [
        {"metric": "wacc", "value": returns.wacc},
        {"metric": "npv", "value": returns.npv},
        {"metric": "irr", "value": returns.irr},
        {"metric": "payback_years", "value": returns.payback_years},
    ]
    return pd.DataFrame(rows)


def _to_pnl_by_sku_df(calc: CalcOutput) -> pd.DataFrame:
    frames = []
    for sku in calc.by_sku:
        data = _rows_df(sku.pnl, PnlYear)
        data.insert(0, "sku_name", sku.name)
        data.insert(0, "sku_id", sku.sku_id)
        frames.append(data)
    if not frames:
        return pd.DataFrame(columns=["sku_id", "sku_name"] + _columns(PnlYear))
    return pd.concat(frames, ignore_index=True)


def build_report(calc: CalcOutput) -> CaseReport:
    return CaseReport(
        volumes=_rows_df(calc.volumes, YearVolumes),
        prices=_to_prices_df(calc),
        pnl=_to_pnl_df(calc.pnl),
        per_kg=_rows_df(calc.per_kg, PerKgYear),
        cashflow=_rows_df(calc.cashflow, CashflowYear),
        returns=_to_returns_df(calc),
        roce=_rows_df(calc.returns.roce_by_year, RoceYear),
        pnl_by_sku=_to_pnl_by_sku_df(calc),
    )
