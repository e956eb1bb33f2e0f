"""
Ledger configuration schema.

Frozen dataclasses produced by ``ledger_config.loader`` from a YAML set.
The subtype mapping is the versioned, closed table that places every
account subtype in exactly one report bucket; reports never match on
free-form strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

from ledger_kernel.db.types import BALANCE_TOLERANCE
from ledger_kernel.models.account import AccountSubtype, AccountType
from ledger_kernel.models.default_account import AccountKind
from ledger_kernel.services.account_resolver import FallbackPolicy


class ReportBucket(str, Enum):
    """Financial statement bucket an account lands in."""

    REVENUE = "REVENUE"
    OTHER_INCOME = "OTHER_INCOME"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
    OPERATING_EXPENSE = "OPERATING_EXPENSE"
    OTHER_EXPENSE = "OTHER_EXPENSE"
    CURRENT_ASSET = "CURRENT_ASSET"
    FIXED_ASSET = "FIXED_ASSET"
    OTHER_ASSET = "OTHER_ASSET"
    CURRENT_LIABILITY = "CURRENT_LIABILITY"
    LONG_TERM_LIABILITY = "LONG_TERM_LIABILITY"
    EQUITY = "EQUITY"


_EXPENSE_TYPES = (AccountType.EXPENSE, AccountType.COST_OF_SALES)

# Account types each bucket may hold
BUCKET_ACCOUNT_TYPES: dict[ReportBucket, tuple[AccountType, ...]] = {
    ReportBucket.REVENUE: (AccountType.REVENUE,),
    ReportBucket.OTHER_INCOME: (AccountType.REVENUE,),
    ReportBucket.COST_OF_GOODS_SOLD: _EXPENSE_TYPES,
    ReportBucket.OPERATING_EXPENSE: _EXPENSE_TYPES,
    ReportBucket.OTHER_EXPENSE: _EXPENSE_TYPES,
    ReportBucket.CURRENT_ASSET: (AccountType.ASSET,),
    ReportBucket.FIXED_ASSET: (AccountType.ASSET,),
    ReportBucket.OTHER_ASSET: (AccountType.ASSET,),
    ReportBucket.CURRENT_LIABILITY: (AccountType.LIABILITY,),
    ReportBucket.LONG_TERM_LIABILITY: (AccountType.LIABILITY,),
    ReportBucket.EQUITY: (AccountType.EQUITY,),
}

# Bucket for accounts without a subtype; unclassified balance sheet accounts are current
DEFAULT_TYPE_BUCKETS: dict[AccountType, ReportBucket] = {
    AccountType.ASSET: ReportBucket.CURRENT_ASSET,
    AccountType.LIABILITY: ReportBucket.CURRENT_LIABILITY,
    AccountType.EQUITY: ReportBucket.EQUITY,
    AccountType.REVENUE: ReportBucket.REVENUE,
    AccountType.EXPENSE: ReportBucket.OPERATING_EXPENSE,
    AccountType.COST_OF_SALES: ReportBucket.COST_OF_GOODS_SOLD,
}


@dataclass(frozen=True)
class SubtypeMapping:
    """Versioned subtype -> bucket table."""

    version: int
    buckets: dict[str, ReportBucket] = field(default_factory=dict)

    def bucket_for(
        self,
        subtype: AccountSubtype | str | None,
        account_type: AccountType | str,
    ) -> ReportBucket | None:
        """Bucket for an account; None when its subtype is not mapped."""
        account_type = AccountType(account_type)
        if account_type == AccountType.COST_OF_SALES:
            return ReportBucket.COST_OF_GOODS_SOLD
        if not subtype:
            return DEFAULT_TYPE_BUCKETS[account_type]
        key = subtype.value if isinstance(subtype, AccountSubtype) else str(subtype)
        return self.buckets.get(key)

    @staticmethod
    def accepts(bucket: ReportBucket | str, account_type: AccountType | str) -> bool:
        return AccountType(account_type) in BUCKET_ACCOUNT_TYPES[ReportBucket(bucket)]


@dataclass(frozen=True)
class CodePrefixFallback:
    """Legacy code-prefix heuristic for default accounts.  Off unless enabled."""

    enabled: bool = False
    prefixes: dict[AccountKind, tuple[str, ...]] = field(default_factory=dict)

    def to_policy(self) -> FallbackPolicy:
        return FallbackPolicy(enabled=self.enabled, prefixes=dict(self.prefixes))


@dataclass(frozen=True)
class LedgerConfiguration:
    """One organization configuration set."""

    name: str
    version: int
    subtype_mapping: SubtypeMapping
    default_account_codes: dict[AccountKind, str] = field(default_factory=dict)
    code_prefix_fallback: CodePrefixFallback = field(default_factory=CodePrefixFallback)
    balance_tolerance: Decimal = BALANCE_TOLERANCE
    transaction_number_prefix: str = "JE"
    default_inventory_location: str = "Main"
    checksum: str = ""
