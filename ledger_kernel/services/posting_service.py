"""
PostingService -- the single write path for balanced transactions.

Responsibility:
    Validates a ``PostingRequest`` (leg count, positive amounts, per-currency
    balance, active accounts of the same organization), allocates a
    transaction number and persists exactly one ``Transaction`` plus its
    ``LedgerEntry`` rows inside the caller's unit of work.

Architecture position:
    Kernel > Services.  Called by ``ledger_modules.posting`` for business
    documents and by ``ReversalService`` for mirror-image reversals.

Invariants enforced:
    - At least two legs; every amount strictly positive; exchange rate > 0.
    - Per currency, sum(amount_in_base) of DEBIT legs equals that of CREDIT
      legs within ``tolerance``.  Never auto-balanced.
    - Every account exists, is active and belongs to the organization.
    - One posting per (reference_type, reference_id, transaction_type).

Failure modes:
    - InvalidLegError, UnbalancedTransactionError, UnknownAccountError,
      InactiveAccountError, DuplicatePostingError.  All raised before or at
      flush; the caller's unit of work rolls everything back.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO, within_tolerance
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import LegRequest, PostingRequest
from ledger_kernel.exceptions import (
    DuplicatePostingError,
    InvalidLegError,
    TransactionNotFoundError,
    TransactionNotPostedError,
    UnbalancedTransactionError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.transaction import (
    EntryType,
    LedgerEntry,
    Transaction,
    TransactionStatus,
)
from ledger_kernel.services.account_resolver import AccountResolver
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.posting")


def validate_legs(legs: Iterable[LegRequest]) -> None:
    """Structural checks that do not need the database."""
    legs = list(legs)
    if len(legs) < 2:
        raise InvalidLegError(f"a transaction needs at least two legs, got {len(legs)}")
    for index, leg in enumerate(legs):
        if leg.amount <= ZERO:
            raise InvalidLegError(f"amount must be positive, got {leg.amount}", index)
        if leg.exchange_rate <= ZERO:
            raise InvalidLegError(
                f"exchange rate must be positive, got {leg.exchange_rate}", index
            )
        if not leg.currency or len(leg.currency) != 3:
            raise InvalidLegError(f"invalid currency code {leg.currency!r}", index)
        EntryType(leg.entry_type)


def validate_balance(
    legs: Iterable[LegRequest],
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> dict[str, tuple[Decimal, Decimal]]:
    """
    Check debits == credits (in base amounts) for every currency present.

    Returns:
        ``{currency: (debits, credits)}`` for every currency.

    Raises:
        UnbalancedTransactionError: for the first unbalanced currency
            (alphabetical), carrying the computed imbalance.
    """
    totals: dict[str, list[Decimal]] = defaultdict(lambda: [ZERO, ZERO])
    for leg in legs:
        side = 0 if EntryType(leg.entry_type) == EntryType.DEBIT else 1
        totals[leg.currency][side] += leg.amount_in_base

    for currency in sorted(totals):
        debits, credits = totals[currency]
        if not within_tolerance(debits, credits, tolerance):
            logger.warning(
                "unbalanced_transaction",
                extra={
                    "currency": currency,
                    "debits": debits,
                    "credits": credits,
                    "imbalance": debits - credits,
                },
            )
            raise UnbalancedTransactionError(
                currency=currency, debits=debits, credits=credits
            )

    return {c: (d, cr) for c, (d, cr) in totals.items()}


class PostingService(BaseService):
    """
    Posts balanced transactions.

    Guarantees:
        - Returns the flushed ``Transaction`` with its entries attached.
        - Never commits; atomicity belongs to the caller's unit of work.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        resolver: AccountResolver | None = None,
        sequences: SequenceService | None = None,
        tolerance: Decimal = BALANCE_TOLERANCE,
        number_prefix: str = "JE",
    ):
        super().__init__(session, clock)
        self._resolver = resolver or AccountResolver(session)
        self._sequences = sequences or SequenceService(session)
        self._tolerance = tolerance
        self._number_prefix = number_prefix

    def post_transaction(
        self,
        request: PostingRequest,
        reversal_of: Transaction | None = None,
        reversal_reason: str | None = None,
    ) -> Transaction:
        """
        Validate and persist one transaction.

        Args:
            request: The transaction to post.
            reversal_of: Original transaction when this is a reversal
                (used by ReversalService only).
            reversal_reason: Reason recorded on a reversal.

        Raises:
            InvalidLegError, UnbalancedTransactionError, UnknownAccountError,
            InactiveAccountError, DuplicatePostingError.
        """
        org = request.organization_id
        with LogContext.bind(organization_id=org, document_ref=request.reference_id):
            validate_legs(request.legs)
            totals = validate_balance(request.legs, self._tolerance)
            logger.debug(
                "balance_validated",
                extra={
                    "currencies": sorted(totals),
                    "leg_count": len(request.legs),
                },
            )

            for account_id in {leg.account_id for leg in request.legs}:
                self._resolver.require_active_account(org, account_id)

            self._guard_duplicate(request)

            transaction = Transaction(
                organization_id=org,
                branch_id=request.branch_id,
                transaction_number=self._sequences.next_transaction_number(
                    org, request.branch_id, request.transaction_date, self._number_prefix
                ),
                transaction_date=request.transaction_date,
                transaction_type=request.transaction_type,
                reference_type=request.reference_type,
                reference_id=request.reference_id,
                description=request.description,
                status=TransactionStatus(request.status).value,
                posted_at=self.clock.now()
                if request.status == TransactionStatus.POSTED
                else None,
                reversal_of_id=reversal_of.id if reversal_of is not None else None,
                reversal_reason=reversal_reason,
                created_by_id=request.actor_id,
            )
            for seq, leg in enumerate(request.legs):
                transaction.entries.append(
                    LedgerEntry(
                        organization_id=org,
                        account_id=leg.account_id,
                        entry_type=EntryType(leg.entry_type).value,
                        amount=leg.amount,
                        currency=leg.currency,
                        exchange_rate=leg.exchange_rate,
                        amount_in_base=leg.amount_in_base,
                        description=leg.description,
                        line_seq=seq,
                        created_by_id=request.actor_id,
                    )
                )

            self._flush_new(transaction, request)

            logger.info(
                "transaction_posted",
                extra={
                    "transaction_id": transaction.id,
                    "transaction_number": transaction.transaction_number,
                    "transaction_type": request.transaction_type,
                    "status": transaction.status,
                    "entry_count": len(transaction.entries),
                },
            )
            return transaction

    def post_draft(self, organization_id: UUID, transaction_id: UUID, actor_id: UUID) -> Transaction:
        """Transition a DRAFT transaction to POSTED after re-validating it."""
        transaction = self.get_transaction(organization_id, transaction_id, lock=True)
        if transaction.status != TransactionStatus.DRAFT:
            raise TransactionNotPostedError(
                transaction_id=str(transaction_id), status=str(transaction.status)
            )
        legs = [
            LegRequest(
                account_id=e.account_id,
                entry_type=EntryType(e.entry_type),
                amount=e.amount,
                currency=e.currency,
                exchange_rate=e.exchange_rate,
            )
            for e in transaction.entries
        ]
        validate_legs(legs)
        validate_balance(legs, self._tolerance)
        for account_id in {leg.account_id for leg in legs}:
            self._resolver.require_active_account(organization_id, account_id)

        transaction.status = TransactionStatus.POSTED.value
        transaction.posted_at = self.clock.now()
        transaction.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "draft_posted",
            extra={"transaction_id": transaction.id, "organization_id": organization_id},
        )
        return transaction

    def void_draft(self, organization_id: UUID, transaction_id: UUID, actor_id: UUID) -> Transaction:
        """Mark a DRAFT transaction VOID. Posted transactions must be reversed instead."""
        transaction = self.get_transaction(organization_id, transaction_id, lock=True)
        if transaction.status != TransactionStatus.DRAFT:
            raise TransactionNotPostedError(
                transaction_id=str(transaction_id), status=str(transaction.status)
            )
        transaction.status = TransactionStatus.VOID.value
        transaction.updated_by_id = actor_id
        self.session.flush()
        logger.info("draft_voided", extra={"transaction_id": transaction.id})
        return transaction

    def get_transaction(
        self,
        organization_id: UUID,
        transaction_id: UUID,
        lock: bool = False,
    ) -> Transaction:
        stmt = select(Transaction).where(
            Transaction.id == transaction_id,
            Transaction.organization_id == organization_id,
        )
        if lock:
            stmt = stmt.with_for_update()
        transaction = self.session.execute(stmt).scalar_one_or_none()
        if transaction is None:
            raise TransactionNotFoundError(
                transaction_id=str(transaction_id), organization_id=str(organization_id)
            )
        return transaction

    def _guard_duplicate(self, request: PostingRequest) -> None:
        if request.reference_id is None:
            return
        existing = self.session.execute(
            select(Transaction.id).where(
                Transaction.organization_id == request.organization_id,
                Transaction.reference_type == request.reference_type,
                Transaction.reference_id == request.reference_id,
                Transaction.transaction_type == request.transaction_type,
            )
        ).first()
        if existing is not None:
            raise DuplicatePostingError(
                reference_type=str(request.reference_type),
                reference_id=request.reference_id,
                transaction_type=request.transaction_type,
            )

    def _flush_new(self, transaction: Transaction, request: PostingRequest) -> None:
        """Insert under a savepoint so a constraint race leaves the session usable."""
        savepoint = self.session.begin_nested()
        try:
            self.session.add(transaction)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            logger.warning(
                "concurrent_insert_conflict",
                extra={
                    "reference_type": request.reference_type,
                    "reference_id": request.reference_id,
                    "transaction_type": request.transaction_type,
                },
            )
            if transaction.reversal_of_id is not None:
                raise
            raise DuplicatePostingError(
                reference_type=str(request.reference_type),
                reference_id=str(request.reference_id),
                transaction_type=request.transaction_type,
            ) from None
