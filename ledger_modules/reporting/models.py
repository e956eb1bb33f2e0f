"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects representing report outputs: profit and
loss, balance sheet and trial balance, plus the hierarchical
``ReportSection`` they are built from.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``statements.py`` and returned by ``FinancialReportsService``.  Sections are
built fresh on every request; nothing here is persisted.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``ComparisonLine.variance_percent`` is 0 when the prior amount is 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterator
from uuid import UUID

from ledger_kernel.db.types import ZERO, round_money
from ledger_kernel.domain.dtos import Basis
from ledger_kernel.selectors.ledger_selector import (
    TrialBalanceComparisonRow,
    TrialBalanceEntry,
)

HUNDRED = Decimal("100")


class ReportType(str, Enum):
    PROFIT_LOSS = "profit_loss"
    BALANCE_SHEET = "balance_sheet"
    TRIAL_BALANCE = "trial_balance"


# =========================================================================
# Common
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    organization_id: UUID
    entity_name: str
    currency: str
    basis: Basis
    generated_at: str  # ISO format timestamp from injected clock
    period_start: date | None = None
    period_end: date | None = None
    as_of_date: date | None = None
    mapping_version: int | None = None


@dataclass(frozen=True)
class ProfitLossParams:
    organization_id: UUID
    start_date: date
    end_date: date
    basis: Basis = Basis.ACCRUAL


@dataclass(frozen=True)
class ReportLine:
    """One account inside a section."""

    account_id: UUID
    account_code: str
    account_name: str
    account_subtype: str | None
    parent_id: UUID | None
    balance: Decimal


@dataclass(frozen=True)
class ReportSection:
    """
    A named grouping of accounts with a subtotal.

    ``accounts`` are the lines shown directly in this section; ``children``
    group further lines under a chart-of-accounts parent.  ``subtotal``
    covers both.
    """

    label: str
    subtotal: Decimal
    accounts: tuple[ReportLine, ...] = ()
    children: tuple[ReportSection, ...] = ()
    account_id: UUID | None = None
    account_code: str | None = None

    def iter_lines(self) -> Iterator[ReportLine]:
        """Every account line in this section and its children."""
        yield from self.accounts
        for child in self.children:
            yield from child.iter_lines()

    @property
    def account_ids(self) -> frozenset[UUID]:
        return frozenset(line.account_id for line in self.iter_lines())


@dataclass(frozen=True)
class ComparisonLine:
    """Current vs prior figure."""

    current: Decimal
    prior: Decimal
    variance: Decimal
    variance_percent: Decimal

    @classmethod
    def of(cls, current: Decimal, prior: Decimal) -> ComparisonLine:
        variance = current - prior
        if prior == ZERO:
            percent = ZERO
        else:
            percent = round_money(variance / abs(prior) * HUNDRED)
        return cls(current=current, prior=prior, variance=variance, variance_percent=percent)


# =========================================================================
# Profit & Loss
# =========================================================================


@dataclass(frozen=True)
class ProfitLossComparison:
    prior_start_date: date
    prior_end_date: date
    revenue: ComparisonLine
    cost_of_goods_sold: ComparisonLine
    gross_profit: ComparisonLine
    operating_expenses: ComparisonLine
    operating_income: ComparisonLine
    other_income: ComparisonLine
    other_expenses: ComparisonLine
    net_income: ComparisonLine


@dataclass(frozen=True)
class ProfitLossReport:
    """
    Multi-step profit and loss.

    Revenue - COGS = Gross Profit - Operating Expenses = Operating Income
    + Other Income - Other Expenses = Net Income
    """

    metadata: ReportMetadata
    revenue: ReportSection
    cost_of_goods_sold: ReportSection
    operating_expenses: ReportSection
    other_income: ReportSection
    other_expenses: ReportSection
    gross_profit: Decimal
    operating_income: Decimal
    net_income: Decimal
    comparison: ProfitLossComparison | None = None

    @property
    def expense_sections(self) -> tuple[ReportSection, ...]:
        return (self.cost_of_goods_sold, self.operating_expenses, self.other_expenses)


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class BalanceSheetAssets:
    current_assets: ReportSection
    fixed_assets: ReportSection
    other_assets: ReportSection
    total_assets: Decimal


@dataclass(frozen=True)
class BalanceSheetLiabilities:
    current_liabilities: ReportSection
    long_term_liabilities: ReportSection
    total_liabilities: Decimal


@dataclass(frozen=True)
class BalanceSheetEquity:
    other_equity: ReportSection
    retained_earnings: Decimal
    current_year_earnings: Decimal
    total_equity: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """
    Point-in-time balance sheet.

    ``is_balanced`` and ``difference`` report whether assets equal
    liabilities plus equity; a mismatch is surfaced, never corrected.
    """

    metadata: ReportMetadata
    as_of_date: date
    fiscal_year_start: date
    assets: BalanceSheetAssets
    liabilities: BalanceSheetLiabilities
    equity: BalanceSheetEquity
    total_liabilities_and_equity: Decimal
    is_balanced: bool
    difference: Decimal


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceReport:
    metadata: ReportMetadata
    lines: tuple[TrialBalanceEntry, ...]
    total_debits: Decimal
    total_credits: Decimal
    is_balanced: bool
    comparison: tuple[TrialBalanceComparisonRow, ...] | None = None
