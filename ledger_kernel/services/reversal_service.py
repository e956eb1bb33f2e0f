"""
ReversalService -- neutralises a posted transaction with its mirror image.

Responsibility:
    Loads a POSTED transaction (row-locked), builds the exact mirror legs
    (DEBIT <-> CREDIT, same amounts, currencies and rates) and posts them
    through ``PostingService`` as a REVERSAL transaction linked via
    ``reversal_of_id``.  The original is never mutated or deleted; whether a
    transaction "is reversed" is derived from the existence of its reversal.

Policy:
    Full reversal only, at most once per original.  Concurrent attempts are
    serialised by the row lock and, ultimately, by the UNIQUE constraint on
    ``reversal_of_id``: the loser gets ``AlreadyReversedError``.  A reversal
    transaction itself cannot be reversed (post a new transaction instead).
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LegRequest, PostingRequest
from ledger_kernel.exceptions import (
    AlreadyReversedError,
    TransactionNotPostedError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.transaction import (
    EntryType,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.posting_service import PostingService

logger = get_logger("services.reversal")

REVERSAL_REFERENCE_TYPE = "transaction"


class ReversalService(BaseService):
    """Creates reversing transactions."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        posting: PostingService | None = None,
    ):
        super().__init__(session, clock)
        self._posting = posting or PostingService(session, clock=self.clock)

    def reverse_transaction(
        self,
        organization_id: UUID,
        transaction_id: UUID,
        reason: str,
        actor_id: UUID,
        reversal_date: date | None = None,
    ) -> Transaction:
        """
        Post the mirror image of ``transaction_id``.

        Args:
            reversal_date: Accounting date of the reversal; defaults to the
                original's date so period reports net to zero.

        Raises:
            TransactionNotFoundError: Unknown id for this organization.
            TransactionNotPostedError: Original is DRAFT or VOID.
            AlreadyReversedError: A reversal already exists, or the original
                is itself a reversal.
        """
        with LogContext.bind(
            organization_id=organization_id,
            transaction_id=transaction_id,
            actor_id=actor_id,
        ):
            original = self._posting.get_transaction(
                organization_id, transaction_id, lock=True
            )
            if original.status != TransactionStatus.POSTED:
                raise TransactionNotPostedError(
                    transaction_id=str(transaction_id), status=str(original.status)
                )
            if original.reversal_of_id is not None:
                raise AlreadyReversedError(
                    transaction_id=str(transaction_id),
                    reversal_id=str(original.id),
                )

            existing = self.find_reversal(organization_id, transaction_id)
            if existing is not None:
                raise AlreadyReversedError(
                    transaction_id=str(transaction_id), reversal_id=str(existing.id)
                )

            legs = tuple(
                LegRequest(
                    account_id=entry.account_id,
                    entry_type=EntryType(entry.entry_type).opposite,
                    amount=entry.amount,
                    currency=entry.currency,
                    exchange_rate=entry.exchange_rate,
                    description=entry.description,
                )
                for entry in original.entries
            )
            request = PostingRequest(
                organization_id=organization_id,
                transaction_date=reversal_date or original.transaction_date,
                transaction_type=TransactionType.REVERSAL.value,
                legs=legs,
                actor_id=actor_id,
                reference_type=REVERSAL_REFERENCE_TYPE,
                reference_id=str(original.id),
                description=f"Reversal of {original.transaction_number}: {reason}",
                branch_id=original.branch_id,
            )

            try:
                reversal = self._posting.post_transaction(
                    request, reversal_of=original, reversal_reason=reason
                )
            except IntegrityError:
                logger.warning(
                    "concurrent_reversal_rejected",
                    extra={"original_id": original.id},
                )
                raise AlreadyReversedError(transaction_id=str(transaction_id)) from None

            logger.info(
                "reversal_completed",
                extra={
                    "original_id": original.id,
                    "original_number": original.transaction_number,
                    "reversal_id": reversal.id,
                    "reversal_number": reversal.transaction_number,
                    "reason": reason,
                },
            )
            return reversal

    def find_reversal(
        self, organization_id: UUID, transaction_id: UUID
    ) -> Transaction | None:
        return self.session.execute(
            select(Transaction).where(
                Transaction.organization_id == organization_id,
                Transaction.reversal_of_id == transaction_id,
            )
        ).scalar_one_or_none()

    def is_reversed(self, organization_id: UUID, transaction_id: UUID) -> bool:
        """True when a reversal of the transaction exists."""
        return self.find_reversal(organization_id, transaction_id) is not None
