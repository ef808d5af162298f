# =============================================================================
# PACKCASE ENGINE - SKU P&L TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packcase.case import FinanceInput, PlantMaster
from packcase.pnl import (
    build_conversion_cost, build_corp_sga_cost, build_ebitda,
    build_machine_depreciation, build_pnl_for_sku, build_tax,
    build_total_depreciation
)
from packcase.pricing import build_price_by_year


def _pnl(case):
    sku = case.skus[0]
    prices = build_price_by_year(sku.sales, sku.costing, sku.npd, sku.ops)
    return build_pnl_for_sku(sku, case.finance, prices)


class TestDepreciation:
    """Tests for straight-line depreciation."""

    def test_machine_over_default_life(self, sample_case):
        """2,000,000 over 15 years."""
        assert build_machine_depreciation(sample_case.skus[0]) == pytest.approx(133333.33, abs=0.01)

    def test_total_includes_old_assets(self, sample_case):
        sku = sample_case.skus[0]
        sku.ops.cost_of_old_mould = 150000
        sku.ops.cost_of_new_infra = 300000
        expected = 2000000 / 15 + 150000 / 15 + 300000 / 30
        assert build_total_depreciation(sku) == pytest.approx(expected)

    def test_custom_life(self, sample_case):
        sku = sample_case.skus[0]
        sku.ops.life_of_new_machine_years = 10
        assert build_machine_depreciation(sku) == pytest.approx(200000)


class TestCostLines:
    """Tests for individual P&L lines."""

    def test_conversion_default_rate(self):
        assert build_conversion_cost(PlantMaster(), 1000) == pytest.approx(25800)
        assert build_conversion_cost(PlantMaster(conversion_per_kg=20), 1000) == pytest.approx(20000)

    def test_corp_sga_gated(self):
        plant = PlantMaster(corp_sga_per_kg=1.5)
        assert build_corp_sga_cost(FinanceInput(include_corp_sga=False), plant, 100) == 0.0
        assert build_corp_sga_cost(FinanceInput(include_corp_sga=True), plant, 100) == pytest.approx(150)

    def test_tax_floored(self):
        assert build_tax(-1000, 0.25) == 0.0
        assert build_tax(1000, 0.25) == 250

    def test_ebitda_identity(self):
        assert build_ebitda(1000, 600, 200, 50) == 150


class TestSkuPnl:
    """Tests for the per-SKU P&L."""

    def test_default_growth_curve(self, sample_case):
        """Without explicit volumes the fixed growth curve is used."""
        _, volumes = _pnl(sample_case)
        assert [v.volume_pieces for v in volumes] == pytest.approx([10000, 11000, 12650, 15180, 18975])

    def test_year_one_lines(self, sample_case):
        pnl, _ = _pnl(sample_case)
        y1 = pnl[0]

        assert y1.revenue_net == pytest.approx(120013.0)
        assert y1.revenue_gross == y1.revenue_net
        assert y1.material_cost == pytest.approx(100013.0)
        assert y1.material_margin == pytest.approx(20000.0)
        assert y1.conversion_cost == pytest.approx(25800.0)
        assert y1.sga_cost == pytest.approx(2000.0)
        assert y1.ebitda == pytest.approx(120013.0 - 100013.0 - 25800.0 - 2000.0)

    def test_profit_chain(self, sample_case):
        pnl, _ = _pnl(sample_case)
        for year in pnl:
            assert year.ebit == pytest.approx(year.ebitda - year.depreciation)
            assert year.pbt == pytest.approx(year.ebit - year.interest_capex)
            assert year.pat == pytest.approx(year.pbt - year.tax)
            assert year.tax >= 0

    def test_interest_on_machine_debt(self, sample_case):
        """Debt share of the new machine at the cost of debt."""
        pnl, _ = _pnl(sample_case)
        assert pnl[0].interest_capex == pytest.approx(0.5 * 2000000 * 0.10)

    def test_power_and_manpower_are_annual(self, sample_case):
        pnl, _ = _pnl(sample_case)
        assert pnl[0].power_cost == pytest.approx(10 * 24 * 365 * 8)
        assert pnl[0].manpower_cost == pytest.approx(2 * 3 * 365 * 800)

    def test_memo_lines(self, sample_case):
        pnl, _ = _pnl(sample_case)
        assert pnl[0].conversion_recovery_cost == pytest.approx(2.0 * 10000)
        assert pnl[0].r_and_m_cost == pytest.approx(1.5 * 1000)
        assert pnl[0].corp_sga_cost == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
