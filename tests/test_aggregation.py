# =============================================================================
# PACKCASE ENGINE - AGGREGATION TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packcase.aggregation import (
    aggregate_volumes, build_capex_for_debt_case, build_case_working_capital_days,
    build_interest_for_case, build_tax_unfloored, calculate_per_kg,
    wa_per_kg, wa_revenue_per_kg
)
from packcase.engine import calculate_scenario


class TestCaseInputs:
    """Tests for case-level capex and working-capital days."""

    def test_capex_for_debt(self, two_sku_case):
        """New machine plus new infra, summed over SKUs."""
        two_sku_case.skus[0].ops.cost_of_new_infra = 500000
        two_sku_case.skus[0].ops.cost_of_new_mould = 999999
        assert build_capex_for_debt_case(two_sku_case.skus) == pytest.approx(3500000)

    def test_working_capital_days_max(self, two_sku_case):
        assert build_case_working_capital_days(two_sku_case.skus) == 90

    def test_working_capital_days_floor(self, sample_case):
        """Never below 60, and unset days count as 60."""
        sample_case.skus[0].ops.working_capital_days = 30
        assert build_case_working_capital_days(sample_case.skus) == 60
        sample_case.skus[0].ops.working_capital_days = None
        assert build_case_working_capital_days(sample_case.skus) == 60

    def test_interest_for_case(self):
        """(capex + revenue * days/365) * cost of debt."""
        assert build_interest_for_case(1000000, 365000, 60, 0.10) == pytest.approx(106000)

    def test_tax_unfloored(self):
        assert build_tax_unfloored(-1000, 0.25) == -250


class TestAggregatePnl:
    """Tests for case totals."""

    def test_volumes_summed(self, two_sku_case):
        calc = calculate_scenario(two_sku_case)
        volumes = aggregate_volumes(calc.by_sku)
        assert volumes[0].volume_pieces == pytest.approx(30000)
        assert volumes[0].weight_kg == pytest.approx(2000)

    def test_lines_summed(self, two_sku_case):
        calc = calculate_scenario(two_sku_case)
        for index, year in enumerate(calc.pnl):
            revenue = sum(sku.pnl[index].revenue_net for sku in calc.by_sku)
            material = sum(sku.pnl[index].material_cost for sku in calc.by_sku)
            assert year.revenue_net == pytest.approx(revenue)
            assert year.material_cost == pytest.approx(material)

    def test_profit_lines_recomputed(self, two_sku_case):
        """Case interest covers capex and working capital; tax is unfloored."""
        calc = calculate_scenario(two_sku_case)
        y1 = calc.pnl[0]
        expected_interest = (3000000 + y1.revenue_net * 90 / 365) * 0.10
        assert y1.interest_capex == pytest.approx(expected_interest)
        assert y1.pbt == pytest.approx(y1.ebit - y1.interest_capex)
        assert y1.tax == pytest.approx(y1.pbt * 0.25)
        assert y1.pat == pytest.approx(y1.pbt - y1.tax)


class TestWeightedAverages:
    """Tests for kg-weighted price views."""

    def test_weighted_conversion(self, two_sku_case):
        """Equal kg: conversion 20 and 40 Rs/kg average to 30."""
        calc = calculate_scenario(two_sku_case)
        assert wa_per_kg(calc.by_sku, 0, "conversion_per_kg") == pytest.approx(30.0)
        assert calc.prices[0].per_kg.conversion_per_kg == pytest.approx(30.0)

    def test_weighted_revenue_per_kg(self, two_sku_case):
        calc = calculate_scenario(two_sku_case)
        expected = 82.62 + 12.393 + 3 + 2 + 30
        assert wa_revenue_per_kg(calc.by_sku, 0) == pytest.approx(expected)

    def test_no_weight(self):
        assert wa_per_kg([], 0, "rm_per_kg") == 0.0

    def test_per_kg_table(self, sample_case):
        calc = calculate_scenario(sample_case)
        row = calc.per_kg[0]
        assert row.revenue_net_per_kg == pytest.approx(calc.pnl[0].revenue_net / 1000)
        assert row.ebitda_per_kg == pytest.approx(calc.pnl[0].ebitda / 1000)
        assert calculate_per_kg(100, 0) == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
