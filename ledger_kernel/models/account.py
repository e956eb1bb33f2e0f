"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the Chart of Accounts -- the target of
    every ledger entry and the tree used for hierarchical reporting.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - (organization_id, code) is unique.
    - account_type (and code) are immutable once any LedgerEntry references
      the account (db/immutability.py and ChartOfAccountsService).
    - Accounts are never physically deleted once referenced; they are
      deactivated instead.

Failure modes:
    - UnknownAccountError when a posting references a missing account.
    - InactiveAccountError when a posting targets a deactivated account.
"""

from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from ledger_kernel.models.transaction import LedgerEntry


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"
    COST_OF_SALES = "cost_of_sales"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountSubtype(str, Enum):
    """
    Closed set of account classifications used for report bucketing.

    The mapping from subtype to report bucket lives in configuration
    (ledger_config.schema.SubtypeMapping) and is validated when the chart
    of accounts is configured.
    """

    CURRENT_ASSET = "CURRENT_ASSET"
    BANK = "BANK"
    FIXED_ASSET = "FIXED_ASSET"
    OTHER_ASSET = "OTHER_ASSET"
    CURRENT_LIABILITY = "CURRENT_LIABILITY"
    LONG_TERM_LIABILITY = "LONG_TERM_LIABILITY"
    EQUITY = "EQUITY"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"
    REVENUE = "REVENUE"
    OTHER_INCOME = "OTHER_INCOME"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
    OPERATING_EXPENSE = "OPERATING_EXPENSE"
    OTHER_EXPENSE = "OTHER_EXPENSE"
    INTEREST = "INTEREST"


DEBIT_NORMAL_TYPES = frozenset(
    {AccountType.ASSET, AccountType.EXPENSE, AccountType.COST_OF_SALES}
)


def normal_balance_for(account_type: AccountType | str) -> NormalBalance:
    """Natural side of an account type: assets and expenses are debit-normal."""
    if AccountType(account_type) in DEBIT_NORMAL_TYPES:
        return NormalBalance.DEBIT
    return NormalBalance.CREDIT


class Account(TrackedBase):
    """
    Chart of Accounts entry -- a single node in the general ledger tree.

    Contract:
        Account.code is unique per organization.  Once a LedgerEntry
        references the account, account_type MUST NOT change.

    Guarantees:
        - account_type is one of the AccountType members.
        - account_subtype, when set, is an AccountSubtype value.
        - parent_id, when set, points to an account of the same organization.
    """

    __tablename__ = "chart_of_accounts"

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_account_org_code"),
        Index("idx_account_org_type", "organization_id", "account_type"),
        Index("idx_account_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Free-form in the source data; restricted to AccountSubtype values here
    account_subtype: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("chart_of_accounts.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    ledger_entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        return normal_balance_for(self.account_type)

    @property
    def is_debit_normal(self) -> bool:
        """Check if account has debit normal balance."""
        return self.normal_balance == NormalBalance.DEBIT

    @property
    def is_credit_normal(self) -> bool:
        """Check if account has credit normal balance."""
        return self.normal_balance == NormalBalance.CREDIT
