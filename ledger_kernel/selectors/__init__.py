"""Read-only selectors over the posted ledger."""

from ledger_kernel.selectors.base import BaseSelector
from ledger_kernel.selectors.ledger_selector import (
    AccountBalance,
    DrillDownTransaction,
    LedgerSelector,
    TrialBalanceComparisonRow,
    TrialBalanceEntry,
    natural_balance,
)

__all__ = [
    "AccountBalance",
    "BaseSelector",
    "DrillDownTransaction",
    "LedgerSelector",
    "TrialBalanceComparisonRow",
    "TrialBalanceEntry",
    "natural_balance",
]
