"""
Inventory Valuation Service (``ledger_modules.inventory.service``).

Responsibility
--------------
Stateful wrapper around ``ledger_engines.valuation``: locks the
``InventoryItem`` row, applies the pure weighted-average transition, writes
the new position back and records exactly one ``StockMovement``.

Invariants
----------
- Runs inside the caller's unit of work; only ``flush()`` is called, so a
  rolled-back posting rolls the stock change back too.
- The item row is read ``FOR UPDATE`` before the read-modify-write, so two
  concurrent deductions cannot both see the same quantity.
- ``total_value == quantity_on_hand * average_cost`` within 1e-6 after every
  mutation.

Failure Modes
-------------
- ``InvalidQuantityError`` for non-positive quantities or negative costs.
- ``InsufficientStockError`` only when the caller asks for it; otherwise a
  shortfall is reported in ``DeductionResult``.
- Products without an item row are untracked: deduction is a zero-cost no-op.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_engines.valuation import StockPosition, apply_addition, apply_deduction
from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import InsufficientStockError, InvalidQuantityError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.inventory import InventoryItem, MovementType, StockMovement
from ledger_kernel.services.base import SYSTEM_ACTOR_ID, BaseService
from ledger_modules.inventory.models import AdditionResult, AvailabilityResult, DeductionResult

logger = get_logger("modules.inventory.service")

DEFAULT_LOCATION = "Main"


class InventoryValuationService(BaseService):
    """
    Weighted-average inventory valuation.

    Usage::

        with UnitOfWork(factory) as uow:
            inventory = InventoryValuationService(uow.session)
            result = inventory.deduct(org_id, product_id, Decimal("5"),
                                      reference_type="SALE", reference_id="INV-1")
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        default_location: str = DEFAULT_LOCATION,
    ):
        super().__init__(session, clock)
        self._default_location = default_location

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_item(
        self,
        organization_id: UUID,
        product_id: UUID,
        location: str | None = None,
        lock: bool = False,
    ) -> InventoryItem | None:
        stmt = select(InventoryItem).where(
            InventoryItem.organization_id == organization_id,
            InventoryItem.product_id == product_id,
            InventoryItem.location == (location or self._default_location),
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalar_one_or_none()

    def check_availability(
        self,
        organization_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        location: str | None = None,
    ) -> AvailabilityResult:
        """Whether ``quantity`` could be deducted now.  Untracked products always can."""
        location = location or self._default_location
        item = self.get_item(organization_id, product_id, location)
        return AvailabilityResult(
            product_id=product_id,
            location=location,
            requested=quantity,
            available=item.quantity_available if item is not None else ZERO,
            is_tracked=item is not None,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def deduct(
        self,
        organization_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        location: str | None = None,
        *,
        movement_type: MovementType = MovementType.SALE,
        reference_type: str | None = None,
        reference_id: str | None = None,
        movement_date: date | None = None,
        actor_id: UUID | None = None,
        raise_on_insufficient: bool = False,
    ) -> DeductionResult:
        """
        Take up to ``quantity`` out of stock at the current average cost.

        Returns the quantity actually deducted and its cost basis for COGS.
        """
        location = location or self._default_location
        if quantity <= ZERO:
            raise InvalidQuantityError(str(product_id), quantity, "deduction must be positive")

        item = self.get_item(organization_id, product_id, location, lock=True)
        if item is None:
            logger.debug(
                "inventory_untracked_product",
                extra={"product_id": product_id, "location": location},
            )
            return DeductionResult.untracked(product_id, location, quantity)

        outcome = apply_deduction(self._position(item), quantity)

        if outcome.shortfall > ZERO:
            logger.warning(
                "insufficient_stock",
                extra={
                    "product_id": product_id,
                    "location": location,
                    "requested": quantity,
                    "available": item.quantity_available,
                    "shortfall": outcome.shortfall,
                },
            )
            if raise_on_insufficient:
                raise InsufficientStockError(
                    product_id=str(product_id),
                    location=location,
                    requested=quantity,
                    available=item.quantity_available,
                )

        self._store(item, outcome.position, actor_id)
        movement = self._record_movement(
            organization_id,
            product_id,
            location,
            movement_type,
            quantity=-outcome.quantity_deducted if outcome.quantity_deducted else ZERO,
            unit_cost=outcome.unit_cost_used,
            total_cost=-outcome.total_cost if outcome.total_cost else ZERO,
            reference_type=reference_type,
            reference_id=reference_id,
            movement_date=movement_date,
            actor_id=actor_id,
        )

        logger.info(
            "inventory_deducted",
            extra={
                "product_id": product_id,
                "location": location,
                "quantity_deducted": outcome.quantity_deducted,
                "unit_cost": outcome.unit_cost_used,
                "total_cost": outcome.total_cost,
                "movement_type": MovementType(movement_type).value,
            },
        )
        return DeductionResult(
            product_id=product_id,
            location=location,
            quantity_requested=quantity,
            quantity_deducted=outcome.quantity_deducted,
            unit_cost_used=outcome.unit_cost_used,
            total_cost=outcome.total_cost,
            shortfall=outcome.shortfall,
            movement_id=movement.id,
        )

    def add(
        self,
        organization_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        unit_cost: Decimal | None = None,
        location: str | None = None,
        *,
        movement_type: MovementType = MovementType.RECEIPT,
        reference_type: str | None = None,
        reference_id: str | None = None,
        movement_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> AdditionResult:
        """
        Put ``quantity`` into stock, creating the item row if needed.

        ``unit_cost=None`` values the addition at the current average cost.
        """
        location = location or self._default_location
        if quantity <= ZERO:
            raise InvalidQuantityError(str(product_id), quantity, "addition must be positive")
        if unit_cost is not None and unit_cost < ZERO:
            raise InvalidQuantityError(str(product_id), unit_cost, "unit cost cannot be negative")

        item = self._get_or_create_item(organization_id, product_id, location, actor_id)
        outcome = apply_addition(self._position(item), quantity, unit_cost)

        self._store(item, outcome.position, actor_id)
        movement = self._record_movement(
            organization_id,
            product_id,
            location,
            movement_type,
            quantity=quantity,
            unit_cost=outcome.unit_cost_used,
            total_cost=outcome.value_added,
            reference_type=reference_type,
            reference_id=reference_id,
            movement_date=movement_date,
            actor_id=actor_id,
        )

        logger.info(
            "inventory_added",
            extra={
                "product_id": product_id,
                "location": location,
                "quantity_added": quantity,
                "value_added": outcome.value_added,
                "average_cost": outcome.position.average_cost,
                "movement_type": MovementType(movement_type).value,
            },
        )
        return AdditionResult(
            product_id=product_id,
            location=location,
            quantity_added=quantity,
            value_added=outcome.value_added,
            unit_cost_used=outcome.unit_cost_used,
            average_cost=outcome.position.average_cost,
            movement_id=movement.id,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _position(item: InventoryItem) -> StockPosition:
        return StockPosition(
            quantity_on_hand=Decimal(item.quantity_on_hand),
            quantity_available=Decimal(item.quantity_available),
            average_cost=Decimal(item.average_cost),
            total_value=Decimal(item.total_value),
        )

    def _store(self, item: InventoryItem, position: StockPosition, actor_id: UUID | None) -> None:
        item.quantity_on_hand = position.quantity_on_hand
        item.quantity_available = position.quantity_available
        item.average_cost = position.average_cost
        item.total_value = position.total_value
        item.updated_by_id = actor_id
        self.session.flush()

    def _get_or_create_item(
        self,
        organization_id: UUID,
        product_id: UUID,
        location: str,
        actor_id: UUID | None,
    ) -> InventoryItem:
        item = self.get_item(organization_id, product_id, location, lock=True)
        if item is not None:
            return item

        # Another session may be creating the same row
        savepoint = self.session.begin_nested()
        try:
            item = InventoryItem(
                organization_id=organization_id,
                product_id=product_id,
                location=location,
                quantity_on_hand=ZERO,
                quantity_available=ZERO,
                average_cost=ZERO,
                total_value=ZERO,
                created_by_id=actor_id or SYSTEM_ACTOR_ID,
            )
            self.session.add(item)
            self.session.flush()
            savepoint.commit()
            logger.debug(
                "inventory_item_created",
                extra={"product_id": product_id, "location": location},
            )
            return item
        except IntegrityError:
            savepoint.rollback()
            item = self.get_item(organization_id, product_id, location, lock=True)
            if item is None:
                raise
            return item

    def _record_movement(
        self,
        organization_id: UUID,
        product_id: UUID,
        location: str,
        movement_type: MovementType,
        *,
        quantity: Decimal,
        unit_cost: Decimal,
        total_cost: Decimal,
        reference_type: str | None,
        reference_id: str | None,
        movement_date: date | None,
        actor_id: UUID | None,
    ) -> StockMovement:
        movement = StockMovement(
            organization_id=organization_id,
            product_id=product_id,
            location=location,
            movement_type=MovementType(movement_type).value,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=total_cost,
            reference_type=reference_type,
            reference_id=reference_id,
            movement_date=movement_date or self.clock.today(),
            created_by_id=actor_id or SYSTEM_ACTOR_ID,
        )
        self.session.add(movement)
        self.session.flush()
        return movement
