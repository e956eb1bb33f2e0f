"""
Module: ledger_kernel.models.transaction
Responsibility: ORM persistence for financial transactions and their ledger
    entries -- the single source of financial truth for every report.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Balance: for every posted Transaction and every currency,
      sum(amount_in_base) of DEBIT entries equals that of CREDIT entries
      (checked by PostingService before flush; is_balanced is the read-side
      convenience).
    - Immutability: once status is POSTED, neither the Transaction nor its
      entries may change (db/immutability.py).  Corrections are new REVERSAL
      transactions.
    - Single reversal: reversal_of_id is UNIQUE, so at most one reversal can
      exist per original, even under concurrent attempts.
    - One posting per source document and transaction type
      (uq_transaction_source).

Failure modes:
    - IntegrityError on duplicate transaction_number, duplicate reversal or
      duplicate source document; services translate these into typed errors.
    - ImmutabilityViolationError on UPDATE/DELETE of a posted transaction.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import ZERO

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account


class TransactionStatus(str, Enum):
    """Lifecycle status of a transaction.

    Transitions: DRAFT -> POSTED, DRAFT -> VOID.  A posted transaction never
    changes status; it is neutralised by a reversing transaction.
    """

    DRAFT = "draft"
    POSTED = "posted"
    VOID = "void"


class EntryType(str, Enum):
    """Which side of the transaction an entry is on."""

    DEBIT = "debit"
    CREDIT = "credit"

    @property
    def opposite(self) -> "EntryType":
        return EntryType.CREDIT if self is EntryType.DEBIT else EntryType.DEBIT


class TransactionType(str, Enum):
    """Well-known transaction types. The column itself stays free-form."""

    SALE = "SALE"
    BILL = "BILL"
    RECEIPT = "RECEIPT"
    PAYMENT = "PAYMENT"
    BANK_TRANSFER = "BANK_TRANSFER"
    REVERSAL = "REVERSAL"
    JOURNAL = "JOURNAL"


class Transaction(TrackedBase):
    """
    An atomic financial event: one header row plus two or more entries.

    Contract:
        Created by PostingService inside the caller's unit of work together
        with all of its entries.  Never mutated after POSTED.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint(
            "organization_id",
            "branch_id",
            "transaction_number",
            name="uq_transaction_number",
        ),
        UniqueConstraint("reversal_of_id", name="uq_transaction_reversal_of"),
        UniqueConstraint(
            "organization_id",
            "reference_type",
            "reference_id",
            "transaction_type",
            name="uq_transaction_source",
        ),
        Index("idx_transaction_org_date", "organization_id", "transaction_date"),
        Index("idx_transaction_status", "status"),
    )

    transaction_number: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
    )

    transaction_date: Mapped[date] = mapped_column(nullable=False)

    transaction_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
    )

    branch_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    # Back-link to the originating business document
    reference_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    reference_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    status: Mapped[TransactionStatus] = mapped_column(
        String(10),
        default=TransactionStatus.POSTED,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=True,
    )

    reversal_reason: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    entries: Mapped[list["LedgerEntry"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="LedgerEntry.line_seq",
    )

    reversal_of: Mapped["Transaction | None"] = relationship(
        remote_side="Transaction.id",
        foreign_keys=[reversal_of_id],
    )

    def __repr__(self) -> str:
        return f"<Transaction {self.transaction_number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def is_draft(self) -> bool:
        return self.status == TransactionStatus.DRAFT

    @property
    def currencies(self) -> set[str]:
        return {entry.currency for entry in self.entries}

    def total_debits(self, currency: str | None = None) -> Decimal:
        """Sum of debit amount_in_base, optionally for one currency."""
        return sum(
            (
                e.amount_in_base
                for e in self.entries
                if e.entry_type == EntryType.DEBIT
                and (currency is None or e.currency == currency)
            ),
            ZERO,
        )

    def total_credits(self, currency: str | None = None) -> Decimal:
        """Sum of credit amount_in_base, optionally for one currency."""
        return sum(
            (
                e.amount_in_base
                for e in self.entries
                if e.entry_type == EntryType.CREDIT
                and (currency is None or e.currency == currency)
            ),
            ZERO,
        )

    @property
    def is_balanced(self) -> bool:
        """Debits equal credits in every currency present."""
        return all(
            self.total_debits(c) == self.total_credits(c) for c in self.currencies
        )


class LedgerEntry(TrackedBase):
    """
    One debit or credit leg of a Transaction.

    Contract:
        Each entry belongs to exactly one Transaction, references exactly one
        Account and records a strictly positive amount; entry_type carries the
        direction.  amount_in_base = amount * exchange_rate, stored so that
        reports never recompute conversions.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        Index("idx_entry_transaction", "transaction_id"),
        Index("idx_entry_account", "account_id"),
        Index("idx_entry_org_account", "organization_id", "account_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("chart_of_accounts.id"),
        nullable=False,
    )

    entry_type: Mapped[EntryType] = mapped_column(
        String(10),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
    )

    exchange_rate: Mapped[Decimal] = mapped_column(
        Numeric(38, 18),
        nullable=False,
        default=Decimal("1"),
    )

    amount_in_base: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(1000),
        nullable=True,
    )

    # Owned by bank reconciliation; the only field writable after posting
    reconciled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    line_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    transaction: Mapped["Transaction"] = relationship(
        back_populates="entries",
    )

    account: Mapped["Account"] = relationship(
        back_populates="ledger_entries",
    )

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.entry_type} {self.amount} {self.currency}>"

    @property
    def is_debit(self) -> bool:
        return self.entry_type == EntryType.DEBIT

    @property
    def is_credit(self) -> bool:
        return self.entry_type == EntryType.CREDIT

    @property
    def signed_amount_in_base(self) -> Decimal:
        """Debits positive, credits negative."""
        return self.amount_in_base if self.is_debit else -self.amount_in_base
