"""
Tax Engine - line-item tax for sales and bills.

Pure functions with no I/O.  Rates are percentages (``Decimal("18")`` is
18%).  Every amount is rounded to 2 places with ROUND_HALF_UP and the
result always satisfies ``net + tax == total`` exactly, so line totals and
GL postings never diverge.

Usage:
    from decimal import Decimal
    from ledger_engines.tax import LineItemInput, TaxCalculationMethod, TaxCalculator

    calculator = TaxCalculator()
    result = calculator.calculate_line_item(
        LineItemInput(
            unit_price=Decimal("118.00"),
            quantity=Decimal("1"),
            tax_rate=Decimal("18"),
            calculation_method=TaxCalculationMethod.INCLUSIVE,
        )
    )
    print(result.line_net_amount)  # 100.00
    print(result.line_tax_amount)  # 18.00
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Sequence

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.tax")

HUNDRED = Decimal("100")


class TaxCalculationMethod(str, Enum):
    """How to apply tax."""

    EXCLUSIVE = "EXCLUSIVE"  # Tax added on top of the entered amount
    INCLUSIVE = "INCLUSIVE"  # Entered amount already contains tax


@dataclass(frozen=True)
class LineItemInput:
    """
    One document line as entered.

    ``discount`` is an amount (not a percentage) taken off
    ``unit_price * quantity`` before tax.
    """

    unit_price: Decimal
    quantity: Decimal
    tax_rate: Decimal = ZERO
    discount: Decimal = ZERO
    calculation_method: TaxCalculationMethod = TaxCalculationMethod.EXCLUSIVE

    def __post_init__(self) -> None:
        if self.tax_rate < ZERO:
            raise ValueError("Tax rate cannot be negative")
        if self.quantity < ZERO:
            raise ValueError("Quantity cannot be negative")
        if self.discount < ZERO:
            raise ValueError("Discount cannot be negative")
        if self.discount > self.unit_price * self.quantity:
            raise ValueError("Discount cannot exceed the line amount")

    @property
    def amount_after_discount(self) -> Decimal:
        return self.unit_price * self.quantity - self.discount


@dataclass(frozen=True)
class LineItemTaxResult:
    """Net, tax and total for one line."""

    line_net_amount: Decimal
    line_tax_amount: Decimal
    line_total: Decimal
    tax_rate: Decimal
    calculation_method: TaxCalculationMethod

    @property
    def is_consistent(self) -> bool:
        return self.line_net_amount + self.line_tax_amount == self.line_total


@dataclass(frozen=True)
class DocumentTaxTotals:
    subtotal: Decimal
    total_tax: Decimal
    total: Decimal
    lines: tuple[LineItemTaxResult, ...]


class TaxStrategy(ABC):
    """Turns an entered amount and a percentage rate into net/tax/total."""

    method: TaxCalculationMethod

    @abstractmethod
    def split(self, amount: Decimal, rate: Decimal) -> tuple[Decimal, Decimal, Decimal]:
        """Return ``(net, tax, total)`` rounded to 2 places."""


class ExclusiveTaxStrategy(TaxStrategy):
    method = TaxCalculationMethod.EXCLUSIVE

    def split(self, amount: Decimal, rate: Decimal) -> tuple[Decimal, Decimal, Decimal]:
        net = round_money(amount)
        tax = round_money(net * rate / HUNDRED)
        return net, tax, net + tax


class InclusiveTaxStrategy(TaxStrategy):
    method = TaxCalculationMethod.INCLUSIVE

    def split(self, amount: Decimal, rate: Decimal) -> tuple[Decimal, Decimal, Decimal]:
        total = round_money(amount)
        net = extract_net_from_inclusive(total, rate)
        return net, total - net, total


def extract_net_from_inclusive(gross: Decimal, rate: Decimal) -> Decimal:
    """Net part of a tax-inclusive amount: ``gross / (1 + rate/100)``."""
    return round_money(gross / (Decimal("1") + rate / HUNDRED))


def convert_to_inclusive(total: Decimal, rate: Decimal) -> LineItemTaxResult:
    """
    Re-express an exclusive total as an inclusive one.

    The total stays fixed; net and tax are recomputed from it, as when a
    user toggles a document from exclusive to inclusive entry.
    """
    net, tax, gross = InclusiveTaxStrategy().split(total, rate)
    return LineItemTaxResult(net, tax, gross, rate, TaxCalculationMethod.INCLUSIVE)


class TaxCalculator:
    """
    Dispatches line items to the strategy registered for their method.

    Strategies are pluggable through ``register_strategy``; the default
    calculator knows EXCLUSIVE and INCLUSIVE.
    """

    def __init__(self, strategies: Sequence[TaxStrategy] | None = None):
        self._strategies: dict[TaxCalculationMethod, TaxStrategy] = {}
        for strategy in strategies or (ExclusiveTaxStrategy(), InclusiveTaxStrategy()):
            self.register_strategy(strategy)

    def register_strategy(self, strategy: TaxStrategy) -> None:
        self._strategies[TaxCalculationMethod(strategy.method)] = strategy

    def calculate_line_item(self, item: LineItemInput) -> LineItemTaxResult:
        method = TaxCalculationMethod(item.calculation_method)
        strategy = self._strategies.get(method)
        if strategy is None:
            raise ValueError(f"No tax strategy registered for {method.value}")

        net, tax, total = strategy.split(item.amount_after_discount, item.tax_rate)
        return LineItemTaxResult(
            line_net_amount=net,
            line_tax_amount=tax,
            line_total=total,
            tax_rate=item.tax_rate,
            calculation_method=method,
        )

    def calculate_document(self, items: Sequence[LineItemInput]) -> DocumentTaxTotals:
        """Line results plus document subtotal, tax and total."""
        lines = tuple(self.calculate_line_item(item) for item in items)
        subtotal = sum((line.line_net_amount for line in lines), ZERO)
        total_tax = sum((line.line_tax_amount for line in lines), ZERO)
        totals = DocumentTaxTotals(
            subtotal=subtotal,
            total_tax=total_tax,
            total=subtotal + total_tax,
            lines=lines,
        )
        logger.debug(
            "document_tax_calculated",
            extra={
                "line_count": len(lines),
                "subtotal": totals.subtotal,
                "total_tax": totals.total_tax,
            },
        )
        return totals
