# =============================================================================
# PACKCASE ENGINE - CONFIGURATION
# =============================================================================
# Horizon and documented defaults shared by every module.
#
# DEFAULTS:
# - Operations: 24 h/day, 365 days/year, 3 shifts/day
# - Asset lives: machine 15y, mould 15y, infra 30y
# - Working capital: 60 days of net revenue
# - Conversion cost: 25.80 Rs/kg when the plant master omits it
# =============================================================================

from typing import Tuple

HORIZON_YEARS = 5

DEFAULT_OPERATING_HOURS_PER_DAY = 24
DEFAULT_WORKING_DAYS_PER_YEAR = 365
DEFAULT_SHIFTS_PER_DAY = 3

DEFAULT_MACHINE_LIFE_YEARS = 15
DEFAULT_MOULD_LIFE_YEARS = 15
DEFAULT_INFRA_LIFE_YEARS = 30

DEFAULT_WORKING_CAPITAL_DAYS = 60
DAYS_PER_YEAR = 365

DEFAULT_CONVERSION_PER_KG = 25.80

DEFAULT_GST_RATE = 0.18

# Year-over-year growth for years 1..5 (year 1 is the base volume)
DEFAULT_GROWTH_CURVE: Tuple[float, ...] = (0.0, 0.10, 0.15, 0.20, 0.25)

IRR_INITIAL_GUESS = 0.1
IRR_MAX_ITERATIONS = 100
IRR_TOLERANCE = 1e-7

QUOTE_MAX_ITERATIONS = 100
QUOTE_TOLERANCE = 1e-6

# =============================================================================
# END OF CONFIGURATION
# =============================================================================
