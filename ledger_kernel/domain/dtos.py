"""
Request DTOs for the posting engine and basis selection for readers.

Frozen dataclasses with no ORM dependency.  Builders in
``ledger_modules.posting.builders`` produce ``LegRequest`` tuples; the
``PostingService`` consumes a ``PostingRequest``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import MONEY_DECIMAL_PLACES, round_money
from ledger_kernel.models.transaction import EntryType, TransactionStatus


class Basis(str, Enum):
    """Recognition basis for trial balances and statements."""

    ACCRUAL = "ACCRUAL"
    CASH = "CASH"


@dataclass(frozen=True)
class LegRequest:
    """One requested debit or credit leg.

    ``amount`` is always positive and in ``currency``; ``entry_type`` carries
    the direction.  ``exchange_rate`` converts to the organization's base
    currency.
    """

    account_id: UUID
    entry_type: EntryType
    amount: Decimal
    currency: str
    exchange_rate: Decimal = Decimal("1")
    description: str | None = None

    @property
    def amount_in_base(self) -> Decimal:
        return round_money(self.amount * self.exchange_rate, MONEY_DECIMAL_PLACES)

    def mirrored(self) -> LegRequest:
        """Same leg on the opposite side."""
        return LegRequest(
            account_id=self.account_id,
            entry_type=EntryType(self.entry_type).opposite,
            amount=self.amount,
            currency=self.currency,
            exchange_rate=self.exchange_rate,
            description=self.description,
        )


@dataclass(frozen=True)
class PostingRequest:
    """Everything needed to post one balanced transaction."""

    organization_id: UUID
    transaction_date: date
    transaction_type: str
    legs: tuple[LegRequest, ...]
    actor_id: UUID
    reference_type: str | None = None
    reference_id: str | None = None
    description: str | None = None
    branch_id: UUID | None = None
    status: TransactionStatus = TransactionStatus.POSTED
