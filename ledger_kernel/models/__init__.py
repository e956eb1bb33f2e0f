"""Domain models for the ledger kernel."""

from ledger_kernel.models.account import (
    Account,
    AccountSubtype,
    AccountType,
    NormalBalance,
    normal_balance_for,
)
from ledger_kernel.models.default_account import AccountKind, DefaultAccount
from ledger_kernel.models.inventory import InventoryItem, MovementType, StockMovement
from ledger_kernel.models.sequence import SequenceCounter
from ledger_kernel.models.settlement import DocumentSettlement
from ledger_kernel.models.transaction import (
    EntryType,
    LedgerEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
)

__all__ = [
    "Account",
    "AccountKind",
    "AccountSubtype",
    "AccountType",
    "DefaultAccount",
    "DocumentSettlement",
    "EntryType",
    "InventoryItem",
    "LedgerEntry",
    "MovementType",
    "NormalBalance",
    "SequenceCounter",
    "StockMovement",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "normal_balance_for",
]
