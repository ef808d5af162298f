# =============================================================================
# PACKCASE ENGINE - PYTEST CONFIGURATION
# =============================================================================
# Shared fixtures and configuration for all tests.
# =============================================================================

import pytest
import sys
import os
from pathlib import Path

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from packcase.case import case_from_dict


@pytest.fixture
def project_root():
    """Get project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def cases_dir(project_root):
    """Get sample cases directory."""
    return project_root / "cases"


def _sku_dict(sku_id="sku-1", name="Closure 28mm"):
    return {
        "id": sku_id,
        "name": name,
        "sales": {
            "product_weight_grams": 100,
            "base_annual_volume_pieces": 10000,
            "conversion_recovery_rs_per_piece": 2.0,
        },
        "npd": {
            "machine_name": "HM-250",
            "cavities": 4,
            "cycle_time_seconds": 30,
            "plant": "Daman",
        },
        "ops": {
            "oee": 0.85,
            "power_units_per_hour": 10,
            "manpower_count": 2,
            "new_machine_required": True,
            "cost_of_new_machine": 2000000,
            "working_capital_days": 60,
        },
        "costing": {
            "resin_rs_per_kg": 80,
            "resin_discount_pct": 0.05,
            "freight_inwards_rs_per_kg": 5,
            "wastage_pct": 0.02,
            "mb_ratio_pct": 0.15,
            "packaging_rs_per_kg": 3,
            "freight_out_rs_per_kg": 2,
            "conversion_inflation_pct": [0, 0, 0, 0, 0],
            "rm_inflation_pct": [0, 0, 0, 0, 0],
        },
        "plant_master": {
            "plant": "Daman",
            "manpower_rate_per_shift": 800,
            "power_rate_per_unit": 8,
            "r_and_m_per_kg": 1.5,
            "other_mfg_per_kg": 1.0,
            "plant_sga_per_kg": 2.0,
            "corp_sga_per_kg": 1.0,
            "conversion_per_kg": 25.80,
            "selling_general_and_administrative_expenses_per_kg": 2.0,
        },
    }


@pytest.fixture
def sample_case_dict():
    """Single-SKU business case as a plain dict."""
    return {
        "id": "case-1",
        "name": "Closure case",
        "finance": {
            "include_corp_sga": False,
            "debt_pct": 0.5,
            "cost_of_debt_pct": 0.10,
            "cost_of_equity_pct": 0.15,
            "corporate_tax_rate_pct": 0.25,
        },
        "skus": [_sku_dict()],
    }


@pytest.fixture
def sample_case(sample_case_dict):
    """Single-SKU BusinessCase."""
    return case_from_dict(sample_case_dict)


@pytest.fixture
def two_sku_case(sample_case_dict):
    """Business case with two SKUs of different weights."""
    second = _sku_dict("sku-2", "Cap 38mm")
    second["sales"]["product_weight_grams"] = 50
    second["sales"]["base_annual_volume_pieces"] = 20000
    second["ops"]["cost_of_new_machine"] = 1000000
    second["ops"]["working_capital_days"] = 90
    sample_case_dict["skus"].append(second)
    return case_from_dict(sample_case_dict)
