"""
Inventory Domain Models (``ledger_modules.inventory.models``).

Frozen result objects returned by ``InventoryValuationService``.  All
quantities and costs are ``Decimal``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.types import ZERO


@dataclass(frozen=True)
class DeductionResult:
    """
    Outcome of taking stock out.

    ``insufficient_stock`` is the soft backorder signal: the engine took
    what was available and reports the ``shortfall``; the caller decides
    whether that blocks the document.
    """

    product_id: UUID
    location: str
    quantity_requested: Decimal
    quantity_deducted: Decimal
    unit_cost_used: Decimal
    total_cost: Decimal
    is_tracked: bool = True
    shortfall: Decimal = ZERO
    movement_id: UUID | None = None

    @property
    def insufficient_stock(self) -> bool:
        return self.shortfall > ZERO

    @classmethod
    def untracked(cls, product_id: UUID, location: str, quantity: Decimal) -> DeductionResult:
        return cls(
            product_id=product_id,
            location=location,
            quantity_requested=quantity,
            quantity_deducted=ZERO,
            unit_cost_used=ZERO,
            total_cost=ZERO,
            is_tracked=False,
        )


@dataclass(frozen=True)
class AdditionResult:
    """Outcome of putting stock in."""

    product_id: UUID
    location: str
    quantity_added: Decimal
    value_added: Decimal
    unit_cost_used: Decimal
    average_cost: Decimal
    movement_id: UUID | None = None


@dataclass(frozen=True)
class AvailabilityResult:
    product_id: UUID
    location: str
    requested: Decimal
    available: Decimal
    is_tracked: bool

    @property
    def is_available(self) -> bool:
        return not self.is_tracked or self.available >= self.requested

    @property
    def shortfall(self) -> Decimal:
        if not self.is_tracked:
            return ZERO
        return max(self.requested - self.available, ZERO)
