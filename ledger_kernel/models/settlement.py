"""
Module: ledger_kernel.models.settlement
Responsibility: Append-only record that a business document was settled in
    cash (payment or receipt) on a given date.  Cash-basis reporting uses it
    to decide which posted transactions count in a period.
Architecture position: Kernel > Models.  Written by SettlementService on
    behalf of the payments collaborator; never updated or deleted.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class DocumentSettlement(TrackedBase):
    """A cash settlement of (reference_type, reference_id) on settled_on."""

    __tablename__ = "document_settlements"

    __table_args__ = (
        Index(
            "idx_settlement_reference",
            "organization_id",
            "reference_type",
            "reference_id",
        ),
    )

    reference_type: Mapped[str] = mapped_column(String(50), nullable=False)

    reference_id: Mapped[str] = mapped_column(String(100), nullable=False)

    settled_on: Mapped[date] = mapped_column(nullable=False)

    amount: Mapped[Decimal | None] = mapped_column(Numeric(38, 9), nullable=True)

    def __repr__(self) -> str:
        return f"<DocumentSettlement {self.reference_type}:{self.reference_id} {self.settled_on}>"
