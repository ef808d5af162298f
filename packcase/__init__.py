# =============================================================================
# PACKCASE ENGINE - PACKAGE
# =============================================================================
# Five-year business case projections for plastics packaging SKUs.
#
# Modules:
# - case: Business case data model and dict conversion
# - assumptions: YAML/JSON case files, plant master, validation
# - volume: Machine capacity and yearly volumes
# - pricing: Per-kg price build-up and price per piece
# - pnl: Per-SKU profit and loss
# - aggregation: Case totals and per-kg views
# - cashflow: Working capital and free cash flow
# - valuation: WACC, NPV, IRR, payback and RoCE
# - engine: Full calculation pipeline
# - sensitivity: Named perturbations and scenario bundles
# - simulation: Path-based sensitivity sweeps and scenario runs
# - quote: Customer quotes and price optimisation
# - report: pandas tables of a projection
# =============================================================================

__version__ = "0.1.0"
