"""
Module: ledger_kernel.models.inventory
Responsibility: ORM persistence for per-(product, location) stock records and
    the immutable stock movement audit trail.
Architecture position: Kernel > Models.  Mutated exclusively through
    ledger_modules.inventory.service.InventoryValuationService.

Invariants enforced:
    - total_value == quantity_on_hand * average_cost within 1e-6 after every
      update (the valuation service recomputes both from cumulative totals).
    - (organization_id, product_id, location) is unique.
    - StockMovement rows are never updated or deleted (db/immutability.py);
      corrections are new opposite-signed movements.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import ZERO


class MovementType(str, Enum):
    """Reason for a stock movement."""

    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    TRANSFER = "TRANSFER"
    RECEIPT = "RECEIPT"


class InventoryItem(TrackedBase):
    """Weighted-average stock position of one product at one location."""

    __tablename__ = "inventory_items"

    __table_args__ = (
        UniqueConstraint(
            "organization_id", "product_id", "location", name="uq_inventory_item"
        ),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location: Mapped[str] = mapped_column(String(100), nullable=False)

    quantity_on_hand: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=ZERO
    )

    # On hand minus reserved/committed quantities
    quantity_available: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=ZERO
    )

    average_cost: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=ZERO
    )

    total_value: Mapped[Decimal] = mapped_column(
        Numeric(38, 9), nullable=False, default=ZERO
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryItem {self.product_id}@{self.location} "
            f"qty={self.quantity_on_hand} avg={self.average_cost}>"
        )


class StockMovement(TrackedBase):
    """Immutable audit record of one inventory change."""

    __tablename__ = "stock_movements"

    __table_args__ = (
        Index("idx_movement_product", "organization_id", "product_id"),
        Index("idx_movement_reference", "reference_type", "reference_id"),
    )

    product_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    location: Mapped[str] = mapped_column(String(100), nullable=False)

    movement_type: Mapped[MovementType] = mapped_column(String(20), nullable=False)

    # Negative for deductions
    quantity: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    unit_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    # Same sign as quantity
    total_cost: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    reference_type: Mapped[str | None] = mapped_column(String(50), nullable=True)

    reference_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    movement_date: Mapped[date] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<StockMovement {self.movement_type} {self.quantity}>"
