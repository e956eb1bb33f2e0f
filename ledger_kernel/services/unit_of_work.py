"""
UnitOfWork -- explicit transaction boundary for ledger operations.

One ``with UnitOfWork(factory) as uow:`` block is one atomic unit: the
transaction header, its ledger entries, any inventory mutation and any
settlement record commit together or not at all.
"""

from __future__ import annotations

from types import TracebackType

from sqlalchemy.orm import Session, sessionmaker

from ledger_kernel.logging_config import get_logger

logger = get_logger("services.unit_of_work")


class UnitOfWork:
    """
    Owns one Session and its transaction.

    Contract:
        - Exiting the block normally commits.
        - Exiting with an exception rolls back and re-raises.
        - ``commit()`` / ``rollback()`` may be called explicitly inside the
          block; after ``rollback()`` nothing is committed on exit.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory
        self._session: Session | None = None
        self._rolled_back = False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise RuntimeError("UnitOfWork is not active; use it as a context manager")
        return self._session

    def __enter__(self) -> UnitOfWork:
        self._session = self._session_factory()
        self._rolled_back = False
        logger.debug("unit_of_work_started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        try:
            if exc_type is not None:
                self.rollback()
                logger.warning(
                    "unit_of_work_rolled_back",
                    extra={
                        "error_type": exc_type.__name__,
                        "error_code": getattr(exc, "code", None),
                    },
                )
            elif not self._rolled_back:
                self.commit()
        finally:
            self.session.close()
            self._session = None

    def commit(self) -> None:
        self.session.commit()
        logger.debug("unit_of_work_committed")

    def rollback(self) -> None:
        self.session.rollback()
        self._rolled_back = True
