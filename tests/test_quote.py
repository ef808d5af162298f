# =============================================================================
# PACKCASE ENGINE - QUOTE TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packcase.engine import calculate_scenario
from packcase.quote import (
    QuoteLineItem, QuoteSkuItem, build_case_from_quote,
    calculate_aggregated_totals, calculate_quote_metrics,
    calculate_total_excl_gst, generate_quote, optimize_quote,
    scale_components, update_quote_totals, validate_quote
)


class TestTotals:
    """Tests for quote arithmetic."""

    def test_discount_subtracted(self):
        components = {
            "resin": QuoteLineItem(8.0, 80.0),
            "conversion_charge": QuoteLineItem(2.0, 20.0),
            "discount": QuoteLineItem(0.5, 5.0),
        }
        total = calculate_total_excl_gst(components)
        assert total.rs_per_piece == pytest.approx(9.5)
        assert total.rs_per_kg == pytest.approx(95.0)

    def test_aggregated_weighted_by_kg(self):
        """Per-kg total is averaged by the kg each line represents."""
        heavy = QuoteSkuItem("a", quantity=1, total_excl_gst=QuoteLineItem(10.0, 100.0))
        light = QuoteSkuItem("b", quantity=1, total_excl_gst=QuoteLineItem(1.0, 50.0))
        excluded = QuoteSkuItem("c", included=False, quantity=5, total_excl_gst=QuoteLineItem(99.0, 99.0))
        totals = calculate_aggregated_totals([heavy, light, excluded], 0.18)

        assert totals.total_excl_gst.rs_per_piece == pytest.approx(11.0)
        expected_kg = (100 * 0.1 + 50 * 0.02) / 0.12
        assert totals.total_excl_gst.rs_per_kg == pytest.approx(expected_kg)
        assert totals.gst.rs_per_piece == pytest.approx(11.0 * 0.18)
        assert totals.total_incl_gst.rs_per_piece == pytest.approx(11.0 * 1.18)

    def test_empty_totals(self):
        totals = calculate_aggregated_totals([], 0.18)
        assert totals.total_excl_gst.rs_per_kg == 0.0


class TestGenerateQuote:
    """Tests for quote generation."""

    def test_components_from_year_one_prices(self, sample_case):
        quote = generate_quote(sample_case)
        item = quote.sku_items[0]

        assert quote.quote_name == "Quote for Closure case"
        assert quote.business_case_id == "case-1"
        assert quote.id.startswith("quote_")
        assert item.quantity == 1
        assert item.components["resin"].rs_per_kg == pytest.approx(82.62)
        assert item.components["resin"].rs_per_piece == pytest.approx(8.262)
        assert item.components["conversion_charge"].rs_per_piece == pytest.approx(2.0)
        assert item.components["discount"].rs_per_piece == 0.0
        assert item.total_excl_gst.rs_per_kg == pytest.approx(120.013)
        assert item.total_incl_gst.rs_per_piece == pytest.approx(12.0013 * 1.18)

    def test_selected_skus_and_quantities(self, two_sku_case):
        quote = generate_quote(two_sku_case, selected_sku_ids=["sku-2"], default_quantities={"sku-2": 500})
        assert [i.sku_id for i in quote.sku_items] == ["sku-2"]
        assert quote.sku_items[0].quantity == 500

    def test_no_skus(self, sample_case):
        with pytest.raises(ValueError):
            generate_quote(sample_case, selected_sku_ids=["missing"])

    def test_editable_defaults(self, sample_case):
        quote = generate_quote(sample_case)
        assert quote.editable_components["resin"] is True
        assert quote.editable_components["discount"] is False
        assert quote.optimization_mode == "none"


class TestQuoteRoundTrip:
    """Tests for writing a quote back into a case."""

    def test_year_one_price_reproduced(self, sample_case):
        quote = generate_quote(sample_case)
        quote.sku_items[0].components["discount"] = QuoteLineItem(0.5, 5.0)
        quote = update_quote_totals(quote)

        calc = calculate_scenario(build_case_from_quote(quote, sample_case))
        assert calc.by_sku[0].prices[0].price_per_piece == pytest.approx(
            quote.sku_items[0].total_excl_gst.rs_per_piece
        )

    def test_unchanged_quote_keeps_npv(self, sample_case):
        quote = generate_quote(sample_case)
        npv, _ = calculate_quote_metrics(quote, sample_case)
        assert npv == pytest.approx(calculate_scenario(sample_case).returns.npv)

    def test_original_case_untouched(self, sample_case):
        quote = generate_quote(sample_case)
        build_case_from_quote(quote, sample_case)
        assert sample_case.skus[0].costing.resin_rs_per_kg == 80


class TestValidateQuote:
    """Tests for quote validation."""

    def test_valid(self, sample_case):
        assert validate_quote(generate_quote(sample_case)).is_valid

    def test_errors(self, sample_case):
        quote = generate_quote(sample_case)
        quote.sku_items[0].components["packaging"] = QuoteLineItem(-1.0, -10.0)
        quote.sku_items[0].quantity = 0
        quote.gst_rate = 1.5
        result = validate_quote(quote)
        assert not result.is_valid
        assert len(result.errors) == 4

    def test_nothing_included(self, sample_case):
        quote = generate_quote(sample_case)
        quote.sku_items[0].included = False
        assert "At least one SKU must be included in the quote" in validate_quote(quote).errors


class TestOptimizeQuote:
    """Tests for target-seeking quote optimisation."""

    def test_hits_target_npv(self, sample_case):
        quote = generate_quote(sample_case)
        target, _ = calculate_quote_metrics(scale_components(quote, ("conversion_charge",), 2.0), sample_case)

        result = optimize_quote(quote, sample_case, target_npv=target)
        assert result.convergence_info.converged
        assert result.achieved_npv == pytest.approx(target, rel=1e-5)
        assert result.optimized_quote.sku_items[0].components["conversion_charge"].rs_per_piece == pytest.approx(
            4.0, rel=1e-3
        )
        assert result.optimized_quote.optimization_mode == "conversion_only"

    def test_all_components_mode_leaves_conversion(self, sample_case):
        quote = generate_quote(sample_case)
        result = optimize_quote(quote, sample_case, target_npv=0.0, mode="all_components")
        item = result.optimized_quote.sku_items[0]
        assert item.components["conversion_charge"].rs_per_piece == pytest.approx(2.0)
        assert result.convergence_info.iterations >= 1

    def test_all_components_hits_reachable_target(self, sample_case):
        """Scaling pass-through components lowers NPV; the search follows that slope."""
        quote = generate_quote(sample_case)
        names = tuple(n for n in quote.sku_items[0].components if n != "conversion_charge")
        target, _ = calculate_quote_metrics(scale_components(quote, names, 2.0), sample_case)
        base_npv, _ = calculate_quote_metrics(quote, sample_case)
        assert target < base_npv

        result = optimize_quote(quote, sample_case, target_npv=target, mode="all_components")
        assert result.convergence_info.converged
        assert result.achieved_npv == pytest.approx(target, rel=1e-5)
        resin = result.optimized_quote.sku_items[0].components["resin"].rs_per_kg
        assert resin == pytest.approx(quote.sku_items[0].components["resin"].rs_per_kg * 2.0, rel=1e-3)

    def test_unreachable_target_returns_closest_bound(self, sample_case):
        quote = generate_quote(sample_case)
        names = tuple(n for n in quote.sku_items[0].components if n != "conversion_charge")
        at_lower, _ = calculate_quote_metrics(scale_components(quote, names, 0.5), sample_case)

        result = optimize_quote(quote, sample_case, target_npv=abs(at_lower) * 10, mode="all_components")
        assert not result.convergence_info.converged
        assert result.convergence_info.iterations == 2
        assert result.achieved_npv == pytest.approx(at_lower)

    def test_requires_target(self, sample_case):
        with pytest.raises(ValueError):
            optimize_quote(generate_quote(sample_case), sample_case)

    def test_invalid_mode(self, sample_case):
        with pytest.raises(ValueError):
            optimize_quote(generate_quote(sample_case), sample_case, target_npv=1.0, mode="everything")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
