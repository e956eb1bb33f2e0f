"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write
    service.  Services use ``session.flush()`` -- never ``session.commit()``
    -- so the caller's unit of work decides whether the whole operation
    (posting, inventory mutation, settlement) commits or rolls back.
"""

from abc import ABC
from uuid import UUID

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock

# Recorded as created_by_id when a configuration-time call names no actor
SYSTEM_ACTOR_ID = UUID(int=0)


class BaseService(ABC):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.

    Non-goals:
        - Read-only queries belong in ``ledger_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
