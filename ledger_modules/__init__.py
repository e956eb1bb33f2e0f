"""
Ledger Modules.

Business-facing orchestration over the kernel and engines:

- posting: sale, bill and bank-transfer documents turned into balanced legs
- inventory: weighted-average stock valuation with movement audit trail
- reporting: profit and loss, balance sheet and trial balance reports

Numbers are computed in ``ledger_engines``; persistence and invariants live
in ``ledger_kernel``.  Nothing in the kernel imports from here.
"""

from ledger_modules import inventory, posting, reporting

__all__ = ["inventory", "posting", "reporting"]
