"""
SequenceService -- transactional, monotonic counters.

Responsibility:
    Allocates strictly increasing integers per named sequence via a locked
    counter row (never max()+1), and formats transaction numbers of the form
    ``JE-YYYYMM-000001`` per organization, branch and calendar month.

Failure modes:
    - IntegrityError on concurrent counter creation is handled with a
      savepoint rollback and a locked re-read.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")

TRANSACTION_NUMBER_WIDTH = 6


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Guarantees:
        - Strictly monotonic values via ``SELECT ... FOR UPDATE`` on the
          counter row.
        - The increment is only committed when the caller's transaction
          commits; on rollback the value is not consumed.
    """

    def __init__(self, session: Session):
        self._session = session

    def _lock_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence (always > 0).

        Args:
            sequence_name: Name of the sequence.
        """
        counter = self._lock_counter(sequence_name)

        if counter is None:
            # First use; another session may be creating it concurrently
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._lock_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value without incrementing, or None if never used."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    @staticmethod
    def transaction_sequence_name(
        organization_id: UUID,
        branch_id: UUID | None,
        on_date: date,
    ) -> str:
        branch = str(branch_id) if branch_id else "main"
        return f"txn:{organization_id}:{branch}:{on_date:%Y%m}"

    def next_transaction_number(
        self,
        organization_id: UUID,
        branch_id: UUID | None,
        on_date: date,
        prefix: str = "JE",
    ) -> str:
        """Allocate ``PREFIX-YYYYMM-NNNNNN`` for the organization/branch/month."""
        value = self.next_value(
            self.transaction_sequence_name(organization_id, branch_id, on_date)
        )
        return f"{prefix}-{on_date:%Y%m}-{value:0{TRANSACTION_NUMBER_WIDTH}d}"
