"""
Pure calculation engines: no database, no session, no clock.

    tax        line-item inclusive/exclusive tax strategies
    valuation  weighted-average stock position arithmetic
"""

from ledger_engines.tax import (
    ExclusiveTaxStrategy,
    InclusiveTaxStrategy,
    LineItemInput,
    LineItemTaxResult,
    TaxCalculationMethod,
    TaxCalculator,
    TaxStrategy,
    convert_to_inclusive,
    extract_net_from_inclusive,
)
from ledger_engines.valuation import (
    StockPosition,
    apply_addition,
    apply_deduction,
    is_value_consistent,
)

__all__ = [
    "ExclusiveTaxStrategy",
    "InclusiveTaxStrategy",
    "LineItemInput",
    "LineItemTaxResult",
    "StockPosition",
    "TaxCalculationMethod",
    "TaxCalculator",
    "TaxStrategy",
    "apply_addition",
    "apply_deduction",
    "convert_to_inclusive",
    "extract_net_from_inclusive",
    "is_value_consistent",
]
