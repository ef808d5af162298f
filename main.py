# =============================================================================
# PACKCASE ENGINE - MAIN ENTRY POINT
# =============================================================================
# Command-line interface for running business case projections.
#
# Usage:
#   python main.py run --case cases/base.yaml
#   python main.py validate --case cases/base.yaml
#   python main.py sensitivity --variable resin_price --deltas -0.1 0.1
#   python main.py scenarios --scenarios cases/scenarios.yaml
#   python main.py quote --target-npv 5000000
# =============================================================================

import argparse
import logging
from pathlib import Path

import pandas as pd

from packcase.assumptions import (
    apply_plant_master,
    load_case,
    load_plant_master,
    load_yaml_file,
    validate_case,
)
from packcase.config import DEFAULT_GST_RATE
from packcase.engine import calculate_scenario
from packcase.quote import generate_quote, optimize_quote, validate_quote
from packcase.report import build_report
from packcase.sensitivity import VARIABLE_LABELS, apply_delta, resolve_variable
from packcase.simulation import (
    ALL_METRICS,
    compare_scenarios,
    run_baseline,
    run_scenarios,
    scenarios_from_dict,
)


def _fmt_pct(value):
    return "n/a" if value is None else f"{value:.1%}"


def _fmt_years(value):
    return "n/a" if value is None else f"{value:.2f} yrs"


def load(args):
    """Load the case named on the command line, with overlay and plant master."""
    case = load_case(Path(args.case), Path(args.overlay) if args.overlay else None)
    if args.plants:
        case = apply_plant_master(case, load_plant_master(Path(args.plants)))
    return case


def run_case(args):
    """Run the projection and print the summary tables."""
    case = load(args)
    print(f"\nRunning case: {case.name or case.id}")
    print("-" * 40)

    calc = calculate_scenario(case)
    report = build_report(calc)

    if calc.warnings:
        print("\nWARNINGS:")
        for warning in calc.warnings:
            print(f"  - {warning}")

    with pd.option_context("display.float_format", "{:,.2f}".format, "display.width", 160):
        print("\nVOLUMES:")
        print(report.volumes.to_string(index=False))
        print("\nP&L:")
        columns = ["year", "revenue_net", "material_margin", "conversion_cost", "ebitda", "pat"]
        print(report.pnl[columns].to_string(index=False))
        print("\nCASH FLOW:")
        print(report.cashflow.to_string(index=False))

    returns = calc.returns
    print("\nKEY METRICS:")
    print(f"  WACC:      {_fmt_pct(returns.wacc)}")
    print(f"  NPV:       Rs {returns.npv:,.0f}")
    print(f"  IRR:       {_fmt_pct(returns.irr)}")
    print(f"  Payback:   {_fmt_years(returns.payback_years)}")

    if args.output:
        output = Path(args.output)
        output.mkdir(parents=True, exist_ok=True)
        for name in ("volumes", "prices", "pnl", "per_kg", "cashflow", "returns", "roce", "pnl_by_sku"):
            getattr(report, name).to_csv(output / f"{name}.csv", index=False)
        print(f"\nWrote report tables to: {output}")

    return calc


def run_validation(args):
    """Validate case inputs and print issues."""
    case = load(args)
    print("\n" + "=" * 60)
    print("RUNNING VALIDATION")
    print("=" * 60)

    errors = validate_case(case)
    if errors:
        print("\nFAILED:")
        for error in errors:
            print(f"  - {error}")
    else:
        print("\nPASSED - No input issues found")
    return errors


def run_sensitivity_table(args):
    """Print NPV and IRR for each delta of one named variable."""
    case = load(args)
    variable = resolve_variable(args.variable)
    if variable is None:
        print(f"Unknown variable: {args.variable}")
        return None

    print(f"\nSENSITIVITY: {VARIABLE_LABELS[variable]}")
    print("-" * 40)
    base = run_baseline(case)
    print(f"  {'base':>8}: NPV Rs {base['NPV']:>15,.0f}  IRR {_fmt_pct(base['IRR'])}")

    rows = []
    for delta in args.deltas:
        metrics = run_baseline(apply_delta(case, variable, delta))
        rows.append((delta, metrics))
        print(f"  {delta:>+8.1%}: NPV Rs {metrics['NPV']:>15,.0f}  IRR {_fmt_pct(metrics['IRR'])}")
    return rows


def run_scenario_set(args):
    """Run scenario overrides and compare against the base case."""
    case = load(args)
    scenarios = scenarios_from_dict(load_yaml_file(Path(args.scenarios)))

    print("\n" + "=" * 60)
    print("RUNNING SCENARIOS")
    print("=" * 60)

    response = run_scenarios(case, scenarios, max_workers=args.workers)
    for result in response.results:
        for warning in result.warnings:
            print(f"  [{result.scenario_id}] {warning}")

    matrix = compare_scenarios(response, "base")
    for metric in ALL_METRICS:
        print(f"\n{metric}:")
        for scenario_id in matrix.scenarios:
            value = matrix.metrics.get(metric, {}).get(scenario_id)
            if value is None:
                print(f"  {scenario_id:12}: {'n/a':>15}")
                continue
            variance = matrix.variances.get(metric, {}).get(scenario_id, 0)
            print(f"  {scenario_id:12}: {value:>15,.2f}  ({variance:+.1%})")

    return response


def run_quote(args):
    """Generate a quote and optionally solve for a target NPV or IRR."""
    case = load(args)
    quote = generate_quote(case, gst_rate=args.gst)

    if args.target_npv is not None or args.target_irr is not None:
        result = optimize_quote(
            quote,
            case,
            target_npv=args.target_npv,
            target_irr=args.target_irr,
            mode=args.mode,
        )
        quote = result.optimized_quote
        info = result.convergence_info
        print(f"\nOptimisation ({args.mode}): converged={info.converged} "
              f"iterations={info.iterations} error={info.final_error:.2e}")
        print(f"  Achieved NPV: Rs {result.achieved_npv:,.0f}")
        print(f"  Achieved IRR: {_fmt_pct(result.achieved_irr)}")

    print(f"\n{quote.quote_name}")
    print("-" * 40)
    for item in quote.sku_items:
        print(f"\n{item.sku_name} (qty {item.quantity:,.0f})")
        for name, line in item.components.items():
            print(f"  {name:20}: Rs {line.rs_per_piece:>10,.4f}/pc  Rs {line.rs_per_kg:>10,.2f}/kg")
        print(f"  {'total excl GST':20}: Rs {item.total_excl_gst.rs_per_piece:>10,.4f}/pc")
        print(f"  {'total incl GST':20}: Rs {item.total_incl_gst.rs_per_piece:>10,.4f}/pc")

    totals = quote.aggregated_totals
    print(f"\nQuote total incl GST: Rs {totals.total_incl_gst.rs_per_piece:,.2f}")

    validation = validate_quote(quote)
    if not validation.is_valid:
        print("\nQUOTE ISSUES:")
        for error in validation.errors:
            print(f"  - {error}")
    return quote


def main():
    parser = argparse.ArgumentParser(description="Packcase Engine")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_case_args(sub):
        sub.add_argument("--case", "-c", default="cases/base.yaml", help="Business case file (YAML or JSON)")
        sub.add_argument("--overlay", help="YAML overlay merged onto the case")
        sub.add_argument("--plants", help="Plant master YAML")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run the projection")
    add_case_args(run_parser)
    run_parser.add_argument("--output", "-o", help="Directory for CSV report tables")

    # Validate command
    val_parser = subparsers.add_parser("validate", help="Validate case inputs")
    add_case_args(val_parser)

    # Sensitivity command
    sens_parser = subparsers.add_parser("sensitivity", help="Sweep one named variable")
    add_case_args(sens_parser)
    sens_parser.add_argument("--variable", "-v", required=True, help="Variable id, e.g. resin_price")
    sens_parser.add_argument("--deltas", type=float, nargs="+", default=[-0.1, 0.1],
                             help="Fractional changes, e.g. -0.1 0.1")

    # Scenarios command
    scen_parser = subparsers.add_parser("scenarios", help="Run scenario overrides")
    add_case_args(scen_parser)
    scen_parser.add_argument("--scenarios", "-s", default="cases/scenarios.yaml", help="Scenario file")
    scen_parser.add_argument("--workers", type=int, default=None, help="Thread pool size")

    # Quote command
    quote_parser = subparsers.add_parser("quote", help="Generate a customer quote")
    add_case_args(quote_parser)
    quote_parser.add_argument("--gst", type=float, default=DEFAULT_GST_RATE, help="GST rate")
    target = quote_parser.add_mutually_exclusive_group()
    target.add_argument("--target-npv", type=float, help="Target NPV")
    target.add_argument("--target-irr", type=float, help="Target IRR")
    quote_parser.add_argument("--mode", default="conversion_only",
                              choices=["conversion_only", "all_components"], help="Optimisation mode")

    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.WARNING))

    if args.command == "run":
        run_case(args)
    elif args.command == "validate":
        run_validation(args)
    elif args.command == "sensitivity":
        run_sensitivity_table(args)
    elif args.command == "scenarios":
        run_scenario_set(args)
    elif args.command == "quote":
        run_quote(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
