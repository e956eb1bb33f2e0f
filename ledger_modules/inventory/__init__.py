"""
Inventory Module (``ledger_modules.inventory``).

Responsibility
--------------
Per (product, location) stock positions valued at weighted-average cost.
Valuation math is delegated to ``ledger_engines.valuation``; this package
owns locking, persistence and the ``StockMovement`` audit trail.

Architecture
------------
Layer: **Modules**.  Imports from ``ledger_engines`` and ``ledger_kernel``
but never the reverse.  Called by ``ledger_modules.posting`` inside the
same unit of work as the ledger posting that triggered it.
"""

from ledger_modules.inventory.models import (
    AdditionResult,
    AvailabilityResult,
    DeductionResult,
)
from ledger_modules.inventory.service import InventoryValuationService

__all__ = [
    "AdditionResult",
    "AvailabilityResult",
    "DeductionResult",
    "InventoryValuationService",
]
