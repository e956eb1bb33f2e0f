"""
Document Posting Builders (``ledger_modules.posting.builders``).

Responsibility
--------------
Pure functions that turn a validated business document into the balanced
``LegRequest`` tuple the kernel ``PostingService`` expects.  Account ids
are obtained through a resolver callable so the builders never touch the
database.

Architecture
------------
Layer: **Modules**.  No I/O.  Tax amounts come from
``ledger_engines.tax.TaxCalculator`` so that line totals and GL postings are
computed by the same code.

Invariants
----------
- Every returned leg has a strictly positive amount; zero groups are
  omitted rather than posted.
- For every currency, debits equal credits exactly: revenue and tax legs
  are sums of the same rounded per-line figures that make up the total.
- Cost of goods sold is posted in the base currency, so it balances
  within its own currency regardless of the document's exchange rate.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable
from uuid import UUID

from ledger_engines.tax import LineItemInput, TaxCalculationMethod, TaxCalculator
from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import LegRequest
from ledger_kernel.exceptions import CurrencyMismatchError, InvalidLegError
from ledger_kernel.models.default_account import AccountKind
from ledger_kernel.models.transaction import EntryType

# (kind, override_account_id, category_account_id) -> account id
AccountLookup = Callable[[AccountKind, UUID | None, UUID | None], UUID]


# =========================================================================
# Documents
# =========================================================================


@dataclass(frozen=True)
class SaleLine:
    """
    One line of a sale or sales receipt.

    ``unit_cost`` (or an explicit ``cost_total``) makes the line carry cost
    of goods sold.  The document posting service fills ``cost_total`` from
    the actual inventory valuation for tracked products.
    """

    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    discount: Decimal = ZERO
    product_id: UUID | None = None
    revenue_account_id: UUID | None = None
    category_revenue_account_id: UUID | None = None
    unit_cost: Decimal | None = None
    cost_total: Decimal | None = None

    @property
    def cost_of_goods(self) -> Decimal:
        if self.cost_total is not None:
            return round_money(self.cost_total)
        if self.unit_cost is None:
            return ZERO
        return round_money(self.unit_cost * self.quantity)


@dataclass(frozen=True)
class SaleDocument:
    """
    A sale to post.

    ``deposit_account_id`` is the debit side (bank, cash or receivable);
    when omitted the organization's CASH default is used.  ``is_cash_sale``
    marks the sale as settled on ``document_date`` for cash-basis reports.
    """

    document_id: str
    document_date: date
    currency: str
    lines: tuple[SaleLine, ...]
    exchange_rate: Decimal = Decimal("1")
    tax_calculation_method: TaxCalculationMethod = TaxCalculationMethod.EXCLUSIVE
    deposit_account_id: UUID | None = None
    is_cash_sale: bool = True
    base_currency: str | None = None
    description: str | None = None
    branch_id: UUID | None = None
    location: str | None = None

    @property
    def cost_currency(self) -> str:
        """Currency of the COGS legs, which are always valued at rate 1."""
        if self.base_currency is not None:
            return self.base_currency
        if self.exchange_rate != Decimal("1"):
            raise InvalidLegError(
                f"sale {self.document_id} is in {self.currency} at rate {self.exchange_rate}; "
                "base_currency is required to post its cost of goods"
            )
        return self.currency


@dataclass(frozen=True)
class BillLine:
    """One line of a vendor bill.  ``is_stock`` lines debit inventory."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal = ZERO
    discount: Decimal = ZERO
    product_id: UUID | None = None
    expense_account_id: UUID | None = None
    category_account_id: UUID | None = None
    is_stock: bool = False


@dataclass(frozen=True)
class BillDocument:
    """
    A vendor bill.

    Credited to ACCOUNTS_PAYABLE unless ``paid_from_account_id`` names the
    bank or cash account that paid it on the spot.
    """

    document_id: str
    document_date: date
    currency: str
    lines: tuple[BillLine, ...]
    exchange_rate: Decimal = Decimal("1")
    tax_calculation_method: TaxCalculationMethod = TaxCalculationMethod.EXCLUSIVE
    payable_account_id: UUID | None = None
    paid_from_account_id: UUID | None = None
    description: str | None = None
    branch_id: UUID | None = None
    location: str | None = None


@dataclass(frozen=True)
class BankTransferDocument:
    document_id: str
    transfer_date: date
    amount: Decimal
    from_account_id: UUID
    to_account_id: UUID
    from_currency: str
    to_currency: str
    exchange_rate: Decimal = Decimal("1")
    description: str | None = None
    branch_id: UUID | None = None


# =========================================================================
# Builders
# =========================================================================


def _line_inputs(lines, method: TaxCalculationMethod) -> list[LineItemInput]:
    return [
        LineItemInput(
            unit_price=line.unit_price,
            quantity=line.quantity,
            tax_rate=line.tax_rate,
            discount=line.discount,
            calculation_method=method,
        )
        for line in lines
    ]


def build_sale_legs(
    document: SaleDocument,
    resolve: AccountLookup,
    calculator: TaxCalculator | None = None,
) -> tuple[LegRequest, ...]:
    """
    Legs for a sale.

    DEBIT deposit (gross total); CREDIT revenue grouped per resolved
    account (net of tax); CREDIT tax payable (total tax); and, when any
    line carries a cost, DEBIT cost of goods sold / CREDIT inventory asset.
    """
    if not document.lines:
        raise InvalidLegError("sale has no lines")
    calculator = calculator or TaxCalculator()
    totals = calculator.calculate_document(
        _line_inputs(document.lines, document.tax_calculation_method)
    )

    currency = document.currency
    rate = document.exchange_rate
    ref = document.document_id

    revenue: OrderedDict[UUID, Decimal] = OrderedDict()
    for line, result in zip(document.lines, totals.lines):
        account_id = resolve(
            AccountKind.REVENUE, line.revenue_account_id, line.category_revenue_account_id
        )
        revenue[account_id] = revenue.get(account_id, ZERO) + result.line_net_amount

    deposit_id = document.deposit_account_id or resolve(AccountKind.CASH, None, None)
    legs: list[LegRequest] = []
    if totals.total > ZERO:
        legs.append(
            LegRequest(deposit_id, EntryType.DEBIT, totals.total, currency, rate, f"Sale {ref}")
        )
    for account_id, amount in revenue.items():
        if amount > ZERO:
            legs.append(
                LegRequest(
                    account_id, EntryType.CREDIT, amount, currency, rate,
                    f"Sales revenue from {ref}",
                )
            )
    if totals.total_tax > ZERO:
        legs.append(
            LegRequest(
                resolve(AccountKind.TAX_PAYABLE, None, None),
                EntryType.CREDIT,
                totals.total_tax,
                currency,
                rate,
                f"Tax collected on {ref}",
            )
        )

    cost = sum((line.cost_of_goods for line in document.lines), ZERO)
    if cost > ZERO:
        cost_currency = document.cost_currency
        legs.append(
            LegRequest(
                resolve(AccountKind.COST_OF_GOODS_SOLD, None, None),
                EntryType.DEBIT,
                cost,
                cost_currency,
                description=f"COGS for {ref}",
            )
        )
        legs.append(
            LegRequest(
                resolve(AccountKind.INVENTORY_ASSET, None, None),
                EntryType.CREDIT,
                cost,
                cost_currency,
                description=f"Inventory reduction for {ref}",
            )
        )
    return tuple(legs)


def build_bill_legs(
    document: BillDocument,
    resolve: AccountLookup,
    input_tax_account_id: UUID | None = None,
    calculator: TaxCalculator | None = None,
) -> tuple[LegRequest, ...]:
    """
    Legs for a vendor bill, the mirror image of a sale.

    DEBIT expense (or inventory asset for stock lines) per resolved account;
    DEBIT ``input_tax_account_id`` for recoverable tax, or fold the tax into
    each line's debit when no such account is given; CREDIT payable or the
    paying cash account for the gross total.
    """
    if not document.lines:
        raise InvalidLegError("bill has no lines")
    calculator = calculator or TaxCalculator()
    totals = calculator.calculate_document(
        _line_inputs(document.lines, document.tax_calculation_method)
    )

    currency = document.currency
    rate = document.exchange_rate
    ref = document.document_id

    debits: OrderedDict[UUID, Decimal] = OrderedDict()
    for line, result in zip(document.lines, totals.lines):
        account_id = _bill_line_account(line, resolve)
        amount = result.line_net_amount
        if input_tax_account_id is None:
            amount += result.line_tax_amount
        debits[account_id] = debits.get(account_id, ZERO) + amount

    legs: list[LegRequest] = [
        LegRequest(account_id, EntryType.DEBIT, amount, currency, rate, f"Bill {ref}")
        for account_id, amount in debits.items()
        if amount > ZERO
    ]
    if input_tax_account_id is not None and totals.total_tax > ZERO:
        legs.append(
            LegRequest(
                input_tax_account_id,
                EntryType.DEBIT,
                totals.total_tax,
                currency,
                rate,
                f"Input tax on {ref}",
            )
        )

    if document.paid_from_account_id is not None:
        credit_id = document.paid_from_account_id
    else:
        credit_id = resolve(AccountKind.ACCOUNTS_PAYABLE, document.payable_account_id, None)
    if totals.total > ZERO:
        legs.append(
            LegRequest(credit_id, EntryType.CREDIT, totals.total, currency, rate, f"Bill {ref}")
        )
    return tuple(legs)


def bill_line_costs(
    document: BillDocument,
    capitalise_tax: bool,
    calculator: TaxCalculator | None = None,
) -> list[Decimal]:
    """Document-currency amount debited for each line, in line order."""
    calculator = calculator or TaxCalculator()
    totals = calculator.calculate_document(
        _line_inputs(document.lines, document.tax_calculation_method)
    )
    return [
        r.line_net_amount + (r.line_tax_amount if capitalise_tax else ZERO)
        for r in totals.lines
    ]


def _bill_line_account(line: BillLine, resolve: AccountLookup) -> UUID:
    if line.is_stock:
        return resolve(AccountKind.INVENTORY_ASSET, line.expense_account_id, line.category_account_id)
    return resolve(AccountKind.EXPENSE, line.expense_account_id, line.category_account_id)


def build_bank_transfer_legs(document: BankTransferDocument) -> tuple[LegRequest, ...]:
    """
    DEBIT the destination account, CREDIT the source, for the same amount.

    Both accounts must share a currency; a cross-currency move needs an
    FX leg and is posted as two linked transactions by the caller.
    """
    if document.from_currency != document.to_currency:
        raise CurrencyMismatchError(expected=document.from_currency, received=document.to_currency)
    if document.from_account_id == document.to_account_id:
        raise InvalidLegError("transfer source and destination are the same account")
    if document.amount <= ZERO:
        raise InvalidLegError(f"transfer amount must be positive, got {document.amount}")

    description = document.description or f"Transfer {document.document_id}"
    return (
        LegRequest(
            document.to_account_id,
            EntryType.DEBIT,
            document.amount,
            document.to_currency,
            document.exchange_rate,
            description,
        ),
        LegRequest(
            document.from_account_id,
            EntryType.CREDIT,
            document.amount,
            document.from_currency,
            document.exchange_rate,
            description,
        ),
    )
