"""
Posting Module (``ledger_modules.posting``).

Business documents (sales, vendor bills, bank transfers) turned into
balanced ledger transactions.  ``builders`` holds the pure leg builders;
``service.DocumentPostingService`` runs them inside the caller's unit of
work together with the inventory and settlement side effects.
"""

from ledger_modules.posting.builders import (
    BankTransferDocument,
    BillDocument,
    BillLine,
    SaleDocument,
    SaleLine,
    build_bank_transfer_legs,
    build_bill_legs,
    build_sale_legs,
)
from ledger_modules.posting.models import (
    BillPostingResult,
    DocumentReference,
    SalePostingResult,
    VoidSaleResult,
)
from ledger_modules.posting.service import DocumentPostingService

__all__ = [
    "BankTransferDocument",
    "BillDocument",
    "BillLine",
    "BillPostingResult",
    "DocumentPostingService",
    "DocumentReference",
    "SaleDocument",
    "SaleLine",
    "SalePostingResult",
    "VoidSaleResult",
    "build_bank_transfer_legs",
    "build_bill_legs",
    "build_sale_legs",
]
