"""Case file loading, plant-master lookup and validation utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional
import copy
import json
import logging

import yaml

from .config import HORIZON_YEARS
from .case import BusinessCase, PlantMaster, case_from_dict, case_to_dict, build_input

logger = logging.getLogger(__name__)


def deep_merge(base: dict, overlay: dict) -> dict:
    """
    Overlay case values onto a base case mapping.

    Nested sections (finance, ops, costing, ...) merge key by key; lists such
    as skus or inflation series are replaced whole. Neither input is mutated.
    """
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_yaml_file(path: Path) -> dict:
    """
    Read a case, overlay, scenario or plant-master YAML file.

    An empty file reads as {}. Any other top-level value than a mapping
    raises ValueError.
    """
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level, got {type(data).__name__}")
    return data


def load_case_dict(path: Path, overlay: Optional[Path] = None) -> dict:
    """Load a raw case mapping from YAML or JSON, merging an optional overlay."""
    path = Path(path)
    if path.suffix.lower() == ".json":
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    else:
        data = load_yaml_file(path)

    if overlay is not None:
        data = deep_merge(data, load_yaml_file(Path(overlay)))
    return data


def load_case(path: Path, overlay: Optional[Path] = None) -> BusinessCase:
    """
    Load a business case from disk.

    Raises:
        ValueError: If the file does not hold a case mapping
    """
    data = load_case_dict(path, overlay)
    logger.debug("Loaded case file %s", path)
    return case_from_dict(data)


def save_case(case: BusinessCase, path: Path) -> None:
    """Write a business case as YAML (or JSON for a .json path)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = case_to_dict(case)
    with open(path, "w", encoding="utf-8") as handle:
        if path.suffix.lower() == ".json":
            json.dump(data, handle, indent=2)
        else:
            yaml.safe_dump(data, handle, sort_keys=False)


def load_plant_master(path: Path) -> Dict[str, PlantMaster]:
    """Load plant-master records keyed by plant name."""
    data = load_yaml_file(Path(path))
    records = data.get("plants", []) if isinstance(data, dict) else data
    plants: Dict[str, PlantMaster] = {}
    for record in records or []:
        plant = build_input(PlantMaster, record)
        plants[plant.plant] = plant
    return plants


def apply_plant_master(case: BusinessCase, plants: Dict[str, PlantMaster]) -> BusinessCase:
    """
    Return a copy of the case with each SKU's plant master looked up by
    its NPD plant name. SKUs whose plant is not listed keep their rates.
    """
    result = copy.deepcopy(case)
    for sku in result.skus:
        plant = plants.get(sku.npd.plant)
        if plant is None:
            logger.warning("No plant master for plant '%s' (sku %s)", sku.npd.plant, sku.id)
            continue
        sku.plant_master = copy.deepcopy(plant)
    return result


def _pct_out_of_range(value: Optional[float]) -> bool:
    return value is not None and (value < 0 or value > 1)


def validate_case(case: BusinessCase) -> List[str]:
    """
    Validate structural and range constraints of a business case.

    The engine itself tolerates every numeric input; these checks flag
    inputs that are almost certainly entry mistakes.
    """
    errors: List[str] = []

    if not case.skus:
        errors.append("Business case has no SKUs")

    finance = case.finance
    for name in ("debt_pct", "cost_of_debt_pct", "cost_of_equity_pct", "corporate_tax_rate_pct"):
        if _pct_out_of_range(getattr(finance, name)):
            errors.append(f"finance.{name} out of range [0, 1]: {getattr(finance, name)}")

    seen = set()
    for sku in case.skus:
        label = sku.id or sku.name or "<unknown>"
        if sku.id in seen:
            errors.append(f"Duplicate SKU id: {sku.id}")
        seen.add(sku.id)

        if sku.sales.product_weight_grams <= 0:
            errors.append(f"sku {label}: product_weight_grams must be > 0")
        if sku.sales.base_annual_volume_pieces < 0:
            errors.append(f"sku {label}: base_annual_volume_pieces must be >= 0")
        if _pct_out_of_range(sku.ops.oee):
            errors.append(f"sku {label}: oee out of range [0, 1]: {sku.ops.oee}")
        if sku.npd.cycle_time_seconds <= 0:
            errors.append(f"sku {label}: cycle_time_seconds must be > 0")

        costing = sku.costing
        for name in ("resin_discount_pct", "wastage_pct", "mb_ratio_pct"):
            if _pct_out_of_range(getattr(costing, name)):
                errors.append(f"sku {label}: {name} out of range [0, 1]: {getattr(costing, name)}")
        for name in ("conversion_inflation_pct", "rm_inflation_pct"):
            series = getattr(costing, name)
            if len(series) < HORIZON_YEARS:
                errors.append(f"sku {label}: {name} should have {HORIZON_YEARS} entries, got {len(series)}")

    return errors
