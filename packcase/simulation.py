# =============================================================================
# PACKCASE ENGINE - SIMULATION ENGINE
# =============================================================================
# Path-based what-if sweeps over any numeric field of a business case.
#
# KEY PRINCIPLES:
# - Each run perturbs a deep copy and re-runs calculate_scenario
# - Runs are independent; they may be evaluated on a thread pool
# - Bad paths are skipped with a warning, never raised
#
# PATHS:
#   "finance.cost_of_debt_pct"
#   "skus.0.costing.resin_rs_per_kg"     list index
#   "skus.*.ops.oee"                     every SKU
#   "skus.sku-1.sales.baseAnnualVolumePieces"   SKU id, camelCase field
# =============================================================================

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, is_dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import copy
import logging

from .case import BusinessCase, to_snake_case
from .engine import CalcOutput, calculate_scenario

logger = logging.getLogger(__name__)


class OutcomeMetric(str, Enum):
    NPV = "NPV"
    IRR = "IRR"
    PNL_Y1 = "PNL_Y1"
    PNL_Y5 = "PNL_Y5"
    PNL_TOTAL = "PNL_TOTAL"


ALL_METRICS = [m.value for m in OutcomeMetric]


@dataclass
class ObjectiveConfig:
    metrics: List[str] = field(default_factory=lambda: list(ALL_METRICS))


@dataclass
class PerturbationSpec:
    """Deltas applied to one dotted path; percent (x * (1 + d)) or additive (x + d)."""
    variable_id: str
    deltas: List[float] = field(default_factory=list)
    percent: bool = True


@dataclass
class ScenarioDefinition:
    id: str
    name: str = ""
    overrides: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SensitivityRunItem:
    variable_id: str
    delta: float
    metrics: Dict[str, Optional[float]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


@dataclass
class ScenarioRunResult:
    scenario_id: str
    name: str = ""
    metrics: Dict[str, Optional[float]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)


@dataclass
class SensitivityResponse:
    baseline: Dict[str, Optional[float]] = field(default_factory=dict)
    results: List[SensitivityRunItem] = field(default_factory=list)
    aborted: bool = False


@dataclass
class ScenarioResponse:
    baseline: Dict[str, Optional[float]] = field(default_factory=dict)
    results: List[ScenarioRunResult] = field(default_factory=list)
    aborted: bool = False


@dataclass
class ComparisonMatrix:
    """Metric values per scenario and variance against the baseline."""
    scenarios: List[str] = field(default_factory=list)
    metrics: Dict[str, Dict[str, float]] = field(default_factory=dict)
    variances: Dict[str, Dict[str, float]] = field(default_factory=dict)


# -----------------------------------------------------------------------------
# Path resolution
# -----------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _keys(node: Any, segment: str) -> Optional[List[Any]]:
    """Keys of node addressed by one path segment, or None if missing."""
    if isinstance(node, list):
        if segment == "*":
            return list(range(len(node)))
        if segment.isdigit():
            index = int(segment)
            return [index] if index < len(node) else None
        matches = [i for i, item in enumerate(node) if getattr(item, "id", None) == segment]
        return matches or None
    if isinstance(node, dict):
        return [segment] if segment in node else None
    if is_dataclass(node):
        name = to_snake_case(segment)
        return [name] if hasattr(node, name) else None
    return None


def _get(node: Any, key: Any) -> Any:
    if isinstance(node, (list, dict)):
        return node[key]
    return getattr(node, key)


def _put(node: Any, key: Any, value: Any) -> None:
    if isinstance(node, (list, dict)):
        node[key] = value
    else:
        setattr(node, key, value)


def _resolve(root: Any, path: str) -> Tuple[List[Tuple[Any, Any]], Optional[str]]:
    """Resolve a dotted path to (parent, key) pairs, or an error message."""
    segments = [s for s in path.split(".") if s]
    if not segments:
        return [], f"Empty path '{path}'"

    nodes = [root]
    for depth, segment in enumerate(segments):
        refs: List[Tuple[Any, Any]] = []
        for node in nodes:
            keys = _keys(node, segment)
            if keys is None:
                walked = ".".join(segments[:depth + 1])
                return [], f"Path '{path}' not found at '{walked}'"
            refs.extend((node, key) for key in keys)
        if depth == len(segments) - 1:
            return refs, None
        nodes = [_get(parent, key) for parent, key in refs]
    return [], f"Path '{path}' not found"


def set_by_path(
    root: Any,
    path: str,
    updater: Callable[[Any], Any],
    numeric_only: bool = True,
) -> List[str]:
    """
    Update every field addressed by a dotted path in place.

    Args:
        root: Object to mutate (a BusinessCase copy)
        path: Dotted path; see module header for the syntax
        updater: Maps the current value to the new value
        numeric_only: Skip fields whose current value is not a number

    Returns:
        Warnings for skipped fields (empty when everything was applied)
    """
    refs, error = _resolve(root, path)
    if error:
        logger.warning(error)
        return [error]

    warnings: List[str] = []
    for parent, key in refs:
        current = _get(parent, key)
        if numeric_only and not _is_number(current):
            message = f"Path '{path}' is not numeric ({type(current).__name__}); skipped"
            logger.warning(message)
            warnings.append(message)
            continue
        _put(parent, key, updater(current))
    return warnings


def _override_compatible(current: Any, value: Any) -> bool:
    if isinstance(current, bool):
        return isinstance(value, bool)
    if current is None or _is_number(current):
        return _is_number(value) or value is None
    if isinstance(current, str):
        return isinstance(value, str)
    if isinstance(current, list):
        return isinstance(value, list) and all(_is_number(v) for v in value)
    return False


def apply_override(root: Any, path: str, value: Any) -> List[str]:
    """Set a literal value at a path; incompatible types are skipped."""
    refs, error = _resolve(root, path)
    if error:
        logger.warning(error)
        return [error]

    warnings: List[str] = []
    for parent, key in refs:
        if not _override_compatible(_get(parent, key), value):
            message = f"Override for '{path}' has incompatible type {type(value).__name__}; skipped"
            logger.warning(message)
            warnings.append(message)
            continue
        _put(parent, key, copy.deepcopy(value))
    return warnings


# -----------------------------------------------------------------------------
# Metrics and runs
# -----------------------------------------------------------------------------

def extract_metrics(calc: CalcOutput, objective: ObjectiveConfig) -> Dict[str, Optional[float]]:
    """Requested metrics from a calculation; unrequested ones stay None."""
    out: Dict[str, Optional[float]] = {m: None for m in ALL_METRICS}
    pat = [year.pat for year in calc.pnl]
    for metric in objective.metrics:
        if metric == OutcomeMetric.NPV:
            out[OutcomeMetric.NPV.value] = calc.returns.npv
        elif metric == OutcomeMetric.IRR:
            out[OutcomeMetric.IRR.value] = calc.returns.irr
        elif metric == OutcomeMetric.PNL_Y1:
            out[OutcomeMetric.PNL_Y1.value] = pat[0] if pat else 0.0
        elif metric == OutcomeMetric.PNL_Y5:
            out[OutcomeMetric.PNL_Y5.value] = pat[4] if len(pat) > 4 else 0.0
        elif metric == OutcomeMetric.PNL_TOTAL:
            out[OutcomeMetric.PNL_TOTAL.value] = sum(pat)
        else:
            logger.warning("Unknown outcome metric '%s'", metric)
    return out


def run_baseline(case: BusinessCase, objective: Optional[ObjectiveConfig] = None) -> Dict[str, Optional[float]]:
    return extract_metrics(calculate_scenario(case), objective or ObjectiveConfig())


def _run_jobs(
    jobs: Sequence[Callable[[], Any]],
    max_workers: Optional[int],
    should_abort: Optional[Callable[[], bool]],
) -> Tuple[List[Any], bool]:
    """Run independent jobs in order; returns (results, aborted)."""
    def guarded(job):
        if should_abort is not None and should_abort():
            return None
        return job()

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            outcomes = list(executor.map(guarded, jobs))
    else:
        outcomes = [guarded(job) for job in jobs]

    results = [outcome for outcome in outcomes if outcome is not None]
    aborted = len(results) < len(outcomes)
    if aborted:
        logger.warning("Sweep aborted after %d of %d runs", len(results), len(outcomes))
    return results, aborted


def run_sensitivity(
    case: BusinessCase,
    specs: Sequence[PerturbationSpec],
    objective: Optional[ObjectiveConfig] = None,
    baseline: Optional[Dict[str, Optional[float]]] = None,
    max_workers: Optional[int] = None,
    should_abort: Optional[Callable[[], bool]] = None,
) -> SensitivityResponse:
    """
    Run one calculation per (path, delta) pair.

    Args:
        case: Baseline case (left unchanged)
        specs: Paths and deltas to sweep
        objective: Metrics to extract
        baseline: Precomputed baseline metrics
        max_workers: Thread pool size; None or 1 runs sequentially
        should_abort: Checked before each run starts

    Returns:
        SensitivityResponse with results in perturbation/delta order
    """
    objective = objective or ObjectiveConfig()
    response = SensitivityResponse(baseline=baseline if baseline is not None else run_baseline(case, objective))

    def make_job(spec: PerturbationSpec, delta: float):
        def job() -> SensitivityRunItem:
            modified = copy.deepcopy(case)
            if spec.percent:
                warnings = set_by_path(modified, spec.variable_id, lambda cur: cur * (1 + delta))
            else:
                warnings = set_by_path(modified, spec.variable_id, lambda cur: cur + delta)
            metrics = extract_metrics(calculate_scenario(modified), objective)
            return SensitivityRunItem(spec.variable_id, delta, metrics, warnings)
        return job

    jobs = [make_job(spec, delta) for spec in specs for delta in spec.deltas]
    response.results, response.aborted = _run_jobs(jobs, max_workers, should_abort)
    return response


def run_scenarios(
    case: BusinessCase,
    scenarios: Sequence[ScenarioDefinition],
    objective: Optional[ObjectiveConfig] = None,
    max_workers: Optional[int] = None,
    should_abort: Optional[Callable[[], bool]] = None,
) -> ScenarioResponse:
    """Run one calculation per scenario of literal path overrides."""
    objective = objective or ObjectiveConfig()
    response = ScenarioResponse(baseline=run_baseline(case, objective))

    def make_job(scenario: ScenarioDefinition):
        def job() -> ScenarioRunResult:
            modified = copy.deepcopy(case)
            warnings: List[str] = []
            for path, value in scenario.overrides.items():
                warnings.extend(apply_override(modified, path, value))
            metrics = extract_metrics(calculate_scenario(modified), objective)
            return ScenarioRunResult(scenario.id, scenario.name, metrics, warnings)
        return job

    jobs = [make_job(scenario) for scenario in scenarios]
    response.results, response.aborted = _run_jobs(jobs, max_workers, should_abort)
    return response


def scenarios_from_dict(data: Dict) -> List[ScenarioDefinition]:
    """Parse a {'scenarios': [{id, name, overrides}]} mapping."""
    return [
        ScenarioDefinition(
            id=str(item.get("id", "")),
            name=item.get("name", ""),
            overrides=dict(item.get("overrides", {})),
        )
        for item in data.get("scenarios", [])
    ]


def compare_scenarios(response: ScenarioResponse, baseline_id: str = "base") -> ComparisonMatrix:
    """
    Generate comparison matrix and variance analysis.

    The baseline enters the matrix under baseline_id; variances are
    relative to it and omitted where the baseline value is 0 or None.
    """
    matrix = ComparisonMatrix()
    rows = [(baseline_id, response.baseline)] + [(r.scenario_id, r.metrics) for r in response.results]
    matrix.scenarios = [scenario_id for scenario_id, _ in rows]

    for metric in ALL_METRICS:
        matrix.metrics[metric] = {}
        matrix.variances[metric] = {}
        base_value = response.baseline.get(metric)

        for scenario_id, metrics in rows:
            value = metrics.get(metric)
            if value is None:
                continue
            matrix.metrics[metric][scenario_id] = value
            if base_value is not None and base_value != 0:
                matrix.variances[metric][scenario_id] = (value - base_value) / abs(base_value)

    return matrix


# =============================================================================
# END OF SIMULATION ENGINE
# =============================================================================
