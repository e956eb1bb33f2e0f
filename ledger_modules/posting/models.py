"""
Posting Module Results (``ledger_modules.posting.models``).

What ``DocumentPostingService`` hands back: the posted ``Transaction`` plus
the inventory and settlement side effects that shared its unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from ledger_kernel.db.types import ZERO
from ledger_kernel.models.settlement import DocumentSettlement
from ledger_kernel.models.transaction import Transaction
from ledger_modules.inventory.models import AdditionResult, DeductionResult


class DocumentReference(str, Enum):
    """``reference_type`` values written on document transactions."""

    SALE = "sale"
    BILL = "bill"
    BANK_TRANSFER = "bank_transfer"


@dataclass(frozen=True)
class SalePostingResult:
    transaction: Transaction
    deductions: tuple[DeductionResult, ...] = ()
    cost_of_goods_sold: Decimal = ZERO
    settlement: DocumentSettlement | None = None

    @property
    def has_backorder(self) -> bool:
        return any(d.insufficient_stock for d in self.deductions)


@dataclass(frozen=True)
class BillPostingResult:
    transaction: Transaction
    additions: tuple[AdditionResult, ...] = ()
    settlement: DocumentSettlement | None = None


@dataclass(frozen=True)
class VoidSaleResult:
    """Reversal of a sale and the stock it put back."""

    original: Transaction
    reversal: Transaction
    returns: tuple[AdditionResult, ...] = field(default_factory=tuple)
