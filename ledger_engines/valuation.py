"""
ledger_engines.valuation -- weighted-average stock arithmetic.

Responsibility:
    Pure state transitions of a stock position under deductions and
    additions.  The stateful InventoryValuationService loads the row, calls
    these functions, writes the new position back and records the movement.

Invariants enforced:
    - Average cost is recomputed from cumulative totals
      ``(current_value + qty * unit_cost) / (current_qty + qty)``, never
      incrementally averaged.
    - total_value == quantity_on_hand * average_cost within 1e-6 after every
      transition.
    - A deduction never takes more than the available quantity; the
      shortfall is reported, not raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledger_kernel.db.types import BALANCE_TOLERANCE, MONEY_DECIMAL_PLACES, ZERO, round_money


def _q(value: Decimal) -> Decimal:
    return round_money(value, MONEY_DECIMAL_PLACES)


@dataclass(frozen=True)
class StockPosition:
    """Quantity and value of one product at one location."""

    quantity_on_hand: Decimal = ZERO
    quantity_available: Decimal = ZERO
    average_cost: Decimal = ZERO
    total_value: Decimal = ZERO


@dataclass(frozen=True)
class DeductionOutcome:
    position: StockPosition
    quantity_deducted: Decimal
    unit_cost_used: Decimal
    total_cost: Decimal
    shortfall: Decimal


@dataclass(frozen=True)
class AdditionOutcome:
    position: StockPosition
    quantity_added: Decimal
    unit_cost_used: Decimal
    value_added: Decimal


def apply_deduction(position: StockPosition, quantity: Decimal) -> DeductionOutcome:
    """Take up to ``quantity`` out of stock at the current average cost."""
    if quantity <= ZERO:
        raise ValueError(f"Deduction quantity must be positive, got {quantity}")

    deducted = min(quantity, max(position.quantity_available, ZERO))
    unit_cost = position.average_cost
    cost = _q(deducted * unit_cost)

    new_on_hand = position.quantity_on_hand - deducted
    new_position = StockPosition(
        quantity_on_hand=new_on_hand,
        quantity_available=position.quantity_available - deducted,
        average_cost=unit_cost,
        total_value=_q(new_on_hand * unit_cost),
    )
    return DeductionOutcome(
        position=new_position,
        quantity_deducted=deducted,
        unit_cost_used=unit_cost,
        total_cost=cost,
        shortfall=quantity - deducted,
    )


def apply_addition(
    position: StockPosition,
    quantity: Decimal,
    unit_cost: Decimal | None = None,
) -> AdditionOutcome:
    """
    Put ``quantity`` into stock.

    With ``unit_cost`` omitted the addition is cost-neutral: it is valued at
    the current average, which therefore does not move.
    """
    if quantity <= ZERO:
        raise ValueError(f"Addition quantity must be positive, got {quantity}")
    if unit_cost is not None and unit_cost < ZERO:
        raise ValueError(f"Unit cost cannot be negative, got {unit_cost}")

    cost = position.average_cost if unit_cost is None else unit_cost
    value_added = _q(quantity * cost)
    new_on_hand = position.quantity_on_hand + quantity
    if unit_cost is None:
        new_average = position.average_cost
    elif new_on_hand > ZERO:
        new_average = _q((position.total_value + value_added) / new_on_hand)
    else:
        new_average = cost

    new_position = StockPosition(
        quantity_on_hand=new_on_hand,
        quantity_available=position.quantity_available + quantity,
        average_cost=new_average,
        total_value=_q(new_on_hand * new_average),
    )
    return AdditionOutcome(
        position=new_position,
        quantity_added=quantity,
        unit_cost_used=cost,
        value_added=value_added,
    )


def is_value_consistent(
    position: StockPosition, tolerance: Decimal = BALANCE_TOLERANCE
) -> bool:
    """total_value equals quantity_on_hand * average_cost within tolerance."""
    return abs(position.total_value - position.quantity_on_hand * position.average_cost) <= tolerance
