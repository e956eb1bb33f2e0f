"""
Module: ledger_kernel.db.base
Responsibility: Declarative base classes for every ledger table: the uuid4
    primary key, the column type map, and ``TrackedBase`` with tenant scoping
    and actor/timestamp audit columns.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel; model modules import from here and this module imports nothing
    from the ledger.

Invariants enforced:
    - Money, rates and quantities map to Numeric, never float.
    - Every business row carries a NOT NULL, indexed ``organization_id``.

Failure modes:
    - IntegrityError if a row is inserted without organization_id or
      created_by_id.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, Date, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID kept as its 36-character text form so PostgreSQL and SQLite share one schema."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Shared type map and uuid4 primary key."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Tenant-scoped table with audit columns.

    ``created_*``/``updated_*`` are audit metadata, not financial data: the
    immutability listeners let them change on otherwise frozen rows.
    """

    __abstract__ = True

    organization_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
