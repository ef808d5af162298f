# =============================================================================
# PACKCASE ENGINE - CALCULATION PIPELINE TESTS
# =============================================================================
# End-to-end checks on calculate_scenario.
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packcase.case import BusinessCase, case_to_dict
from packcase.engine import calculate_scenario


class TestPipeline:
    """Tests for the full pipeline on a single SKU."""

    def test_shapes(self, sample_case):
        calc = calculate_scenario(sample_case)
        assert len(calc.volumes) == 5
        assert len(calc.prices) == 5
        assert len(calc.pnl) == 5
        assert len(calc.per_kg) == 5
        assert len(calc.cashflow) == 6
        assert len(calc.by_sku) == 1

    def test_known_values(self, sample_case):
        """Year-1 RM/MB and depreciation for the reference SKU."""
        calc = calculate_scenario(sample_case)
        assert calc.prices[0].per_kg.rm_per_kg == pytest.approx(82.62)
        assert calc.prices[0].per_kg.mb_per_kg == pytest.approx(12.393)
        assert calc.pnl[0].depreciation == pytest.approx(133333.33, abs=0.01)

    def test_finance_growth_rate(self, sample_case):
        """Volumes grow at the finance growth rate, flat when unset."""
        flat = calculate_scenario(sample_case)
        assert [v.volume_pieces for v in flat.volumes] == pytest.approx([10000] * 5)

        sample_case.finance.annual_volume_growth_pct = 0.10
        grown = calculate_scenario(sample_case)
        assert grown.volumes[1].volume_pieces == pytest.approx(11000)

    def test_year_zero_capex(self, sample_case):
        """Year 0 invests the new machine and infra."""
        sample_case.skus[0].ops.cost_of_new_infra = 300000
        calc = calculate_scenario(sample_case)
        assert calc.cashflow[0].fcf == pytest.approx(-2300000)

    def test_npv_matches_cashflow(self, sample_case):
        calc = calculate_scenario(sample_case)
        expected = calc.cashflow[0].fcf + sum(row.pv for row in calc.cashflow[1:])
        assert calc.returns.npv == pytest.approx(expected)

    def test_loss_making_case_warns(self, sample_case):
        """The reference SKU never pays back its machine."""
        calc = calculate_scenario(sample_case)
        assert calc.returns.payback_years is None
        assert any("paid back" in w for w in calc.warnings)

    def test_loss_year_tax_is_a_credit(self, sample_case):
        """Case-level tax is not floored, so a loss year books a credit."""
        sample_case.finance.corporate_tax_rate_pct = 0.25
        calc = calculate_scenario(sample_case)
        loss_years = [row for row in calc.pnl if row.pbt < 0]
        assert loss_years
        for row in loss_years:
            assert row.tax < 0
            assert row.tax == pytest.approx(row.pbt * 0.25)


class TestPurity:
    """Tests for input immutability and determinism."""

    def test_input_not_mutated(self, sample_case):
        before = case_to_dict(sample_case)
        calculate_scenario(sample_case)
        assert case_to_dict(sample_case) == before

    def test_deterministic(self, two_sku_case):
        first = calculate_scenario(two_sku_case)
        second = calculate_scenario(two_sku_case)
        assert first.returns.npv == second.returns.npv
        assert [y.pat for y in first.pnl] == [y.pat for y in second.pnl]


class TestEmptyCase:
    """Tests for a case without SKUs."""

    def test_zero_outputs(self):
        calc = calculate_scenario(BusinessCase(id="empty"))
        assert all(y.revenue_net == 0 for y in calc.pnl)
        assert all(v.weight_kg == 0 for v in calc.volumes)
        assert calc.cashflow[0].fcf == 0
        assert calc.returns.irr is None
        assert calc.warnings == ["Business case has no SKUs; all outputs are zero"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
