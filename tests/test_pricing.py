# =============================================================================
# PACKCASE ENGINE - PRICING TESTS
# =============================================================================

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packcase.case import AltConversionInput, CostingInput, NpdInput, OpsInput, SalesInput
from packcase.pricing import (
    build_price_by_year, calculate_rm_mb_per_kg,
    per_piece_to_per_kg, resolve_conversion_recovery_per_piece
)


def _costing(**overrides):
    values = dict(
        resin_rs_per_kg=80,
        resin_discount_pct=0.05,
        freight_inwards_rs_per_kg=5,
        wastage_pct=0.02,
        mb_ratio_pct=0.15,
    )
    values.update(overrides)
    return CostingInput(**values)


class TestRawMaterial:
    """Tests for year-1 RM and MB per kg."""

    def test_rm_mb_example(self):
        """Resin 80, 5% discount, 5 freight-in, 2% wastage, 15% MB ratio."""
        rm, mb = calculate_rm_mb_per_kg(_costing())
        assert rm == pytest.approx(82.62)
        assert mb == pytest.approx(12.393)

    def test_mb_override_uses_mb_price(self):
        """With the override, MB starts from its own price."""
        rm, mb = calculate_rm_mb_per_kg(_costing(use_mb_price_override=True, mb_rs_per_kg=200))
        assert rm == pytest.approx(82.62)
        assert mb == pytest.approx(200 * 0.15 * 1.02)

    def test_discount_floor(self):
        """Resin net of discount never goes negative."""
        rm, _ = calculate_rm_mb_per_kg(_costing(resin_discount_pct=1.5, wastage_pct=0))
        assert rm == pytest.approx(5)


class TestConversionRecovery:
    """Tests for conversion recovery resolution."""

    def test_direct_rate(self):
        sales = SalesInput(conversion_recovery_rs_per_piece=2.0)
        assert resolve_conversion_recovery_per_piece(sales, NpdInput(), OpsInput()) == 2.0

    def test_machine_rate_fallback(self):
        """Machine rate per day spread over theoretical pieces per day."""
        npd = NpdInput(cavities=4, cycle_time_seconds=30)
        ops = OpsInput(oee=0.85)
        value = resolve_conversion_recovery_per_piece(
            SalesInput(), npd, ops, AltConversionInput(machine_rate_per_day_rs=1632)
        )
        assert value == pytest.approx(10.0)

    def test_missing_everything(self):
        assert resolve_conversion_recovery_per_piece(SalesInput(), NpdInput(), OpsInput()) == 0.0

    def test_per_piece_to_per_kg(self):
        assert per_piece_to_per_kg(2.0, 0.1) == pytest.approx(20.0)
        assert per_piece_to_per_kg(2.0, 0) == 0.0
        assert per_piece_to_per_kg(None, 0.1) == 0.0


class TestPriceByYear:
    """Tests for the yearly price build-up."""

    def test_year_one_components(self):
        sales = SalesInput(product_weight_grams=100, conversion_recovery_rs_per_piece=2.0)
        costing = _costing(packaging_rs_per_kg=3, freight_out_rs_per_kg=2, value_add_rs_per_piece=0.5)
        prices = build_price_by_year(sales, costing, NpdInput(), OpsInput())
        y1 = prices[0].per_kg

        assert len(prices) == 5
        assert y1.value_add_per_kg == pytest.approx(5.0)
        assert y1.conversion_per_kg == pytest.approx(20.0)
        assert y1.total_per_kg == pytest.approx(82.62 + 12.393 + 5 + 3 + 2 + 20)
        assert prices[0].price_per_piece == pytest.approx(y1.total_per_kg * 0.1)

    def test_escalation_series(self):
        """RM and MB follow RM inflation; the rest follow conversion inflation."""
        sales = SalesInput(product_weight_grams=100, conversion_recovery_rs_per_piece=2.0)
        costing = _costing(
            packaging_rs_per_kg=3,
            rm_inflation_pct=[0, 0.10, 0, 0, 0],
            conversion_inflation_pct=[0, 0.05, 0.05, 0, 0],
        )
        prices = build_price_by_year(sales, costing, NpdInput(), OpsInput())

        assert prices[1].per_kg.rm_per_kg == pytest.approx(82.62 * 1.1)
        assert prices[1].per_kg.mb_per_kg == pytest.approx(12.393 * 1.1)
        assert prices[2].per_kg.conversion_per_kg == pytest.approx(20 * 1.05 ** 2)
        assert prices[2].per_kg.packaging_per_kg == pytest.approx(3 * 1.05 ** 2)

    def test_legacy_per_piece_fallback(self):
        """Per-piece packaging is used only when the per-kg value is 0."""
        sales = SalesInput(product_weight_grams=100)
        costing = _costing(packaging_rs_per_piece=0.4, freight_out_rs_per_kg=2, freight_out_rs_per_piece=9)
        y1 = build_price_by_year(sales, costing, NpdInput(), OpsInput())[0].per_kg
        assert y1.packaging_per_kg == pytest.approx(4.0)
        assert y1.freight_out_per_kg == pytest.approx(2.0)

    def test_zero_weight(self):
        """Zero weight gives zero per-kg conversions and price per piece."""
        sales = SalesInput(product_weight_grams=0, conversion_recovery_rs_per_piece=2.0)
        prices = build_price_by_year(sales, _costing(), NpdInput(), OpsInput())
        assert prices[0].per_kg.conversion_per_kg == 0.0
        assert prices[0].price_per_piece == 0.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
