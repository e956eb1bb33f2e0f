"""
Module: ledger_kernel.models.default_account
Responsibility: Explicit per-organization "default account of kind X"
    configuration records consumed by AccountResolver.
Architecture position: Kernel > Models.

Invariants enforced:
    - At most one default per (organization_id, kind).
    - account_id references an account of the same organization (checked by
      ChartOfAccountsService.set_default_account).
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class AccountKind(str, Enum):
    """Roles an account can play when a document does not name one explicitly."""

    CASH = "CASH"
    REVENUE = "REVENUE"
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
    TAX_PAYABLE = "TAX_PAYABLE"
    TAX_RECEIVABLE = "TAX_RECEIVABLE"
    INVENTORY_ASSET = "INVENTORY_ASSET"
    ACCOUNTS_PAYABLE = "ACCOUNTS_PAYABLE"
    EXPENSE = "EXPENSE"


class DefaultAccount(TrackedBase):
    """Organization default for one AccountKind."""

    __tablename__ = "default_accounts"

    __table_args__ = (
        UniqueConstraint("organization_id", "kind", name="uq_default_account_kind"),
    )

    kind: Mapped[AccountKind] = mapped_column(
        String(30),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("chart_of_accounts.id"),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<DefaultAccount {self.kind} -> {self.account_id}>"
