"""
Financial Statement Builders (``ledger_modules.reporting.statements``).

Responsibility
--------------
Pure transformation functions that turn trial balance entries into
profit and loss, balance sheet and trial balance reports, and a generic
``render_to_dict`` for JSON output.

Architecture position
---------------------
**Modules layer** -- ZERO I/O.  ``FinancialReportsService`` fetches the
entries and the chart of accounts, then calls these functions.  Given the
same inputs they return the same report.

Invariants enforced
-------------------
* Every account lands in exactly one bucket, chosen by the versioned
  subtype mapping; an unmapped or type-incompatible subtype raises
  ``UnmappedSubtypeError`` rather than being guessed.
* A section's subtotal is the sum of every line in it, grouped or not.
* The balance sheet reports its own imbalance; it never plugs it.
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable
from uuid import UUID

from ledger_config.schema import ReportBucket, SubtypeMapping
from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO
from ledger_kernel.exceptions import UnmappedSubtypeError
from ledger_kernel.models.account import AccountSubtype, AccountType
from ledger_kernel.selectors.ledger_selector import (
    TrialBalanceComparisonRow,
    TrialBalanceEntry,
)
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetAssets,
    BalanceSheetEquity,
    BalanceSheetLiabilities,
    BalanceSheetReport,
    ComparisonLine,
    ProfitLossComparison,
    ProfitLossReport,
    ReportLine,
    ReportMetadata,
    ReportSection,
    TrialBalanceReport,
)

PROFIT_LOSS_TYPES = frozenset(
    {AccountType.REVENUE, AccountType.EXPENSE, AccountType.COST_OF_SALES}
)


@dataclass(frozen=True)
class AccountInfo:
    """Chart-of-accounts data needed for grouping."""

    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    account_subtype: str | None = None
    parent_id: UUID | None = None


# =========================================================================
# Helpers
# =========================================================================


def prior_period(start_date: date, end_date: date) -> tuple[date, date]:
    """The window of identical length ending the day before ``start_date``."""
    compare_end = start_date - timedelta(days=1)
    return compare_end - (end_date - start_date), compare_end


def compute_net_income(entries: Iterable[TrialBalanceEntry]) -> Decimal:
    """
    Revenue minus expenses over any set of entries.

    Uses natural balances by account type, so it needs no mapping and
    works on cumulative balances from inception.
    """
    income = ZERO
    for entry in entries:
        account_type = AccountType(entry.account_type)
        if account_type == AccountType.REVENUE:
            income += entry.balance
        elif account_type in PROFIT_LOSS_TYPES:
            income -= entry.balance
    return income


def classify_entries(
    entries: Iterable[TrialBalanceEntry],
    mapping: SubtypeMapping,
) -> dict[ReportBucket, list[TrialBalanceEntry]]:
    """Place each entry in its report bucket."""
    result: dict[ReportBucket, list[TrialBalanceEntry]] = defaultdict(list)
    for entry in entries:
        bucket = mapping.bucket_for(entry.account_subtype, entry.account_type)
        if bucket is None:
            raise UnmappedSubtypeError(
                subtype=str(entry.account_subtype), account_code=entry.account_code
            )
        if not mapping.accepts(bucket, entry.account_type):
            raise UnmappedSubtypeError(
                subtype=str(entry.account_subtype),
                account_code=entry.account_code,
                reason=f"bucket {bucket.value} cannot hold a {entry.account_type} account",
            )
        result[bucket].append(entry)
    return result


def build_section(
    label: str,
    entries: Iterable[TrialBalanceEntry],
    accounts: dict[UUID, AccountInfo],
    config: ReportingConfig,
) -> ReportSection:
    """
    Build one report section.

    With ``config.build_hierarchy`` lines whose parent is in the chart are
    grouped in a child section per parent (labelled with the parent's name);
    lines without a qualifying parent stay at the top level.
    """
    lines = sorted(
        (
            ReportLine(
                account_id=e.account_id,
                account_code=e.account_code,
                account_name=e.account_name,
                account_subtype=e.account_subtype,
                parent_id=e.parent_id,
                balance=e.balance,
            )
            for e in entries
            if config.include_zero_balances or e.balance != ZERO
        ),
        key=lambda line: line.account_code,
    )
    subtotal = sum((line.balance for line in lines), ZERO)

    if not config.build_hierarchy:
        return ReportSection(label=label, subtotal=subtotal, accounts=tuple(lines))

    top: list[ReportLine] = []
    groups: dict[UUID, list[ReportLine]] = defaultdict(list)
    for line in lines:
        if line.parent_id is not None and line.parent_id in accounts:
            groups[line.parent_id].append(line)
        else:
            top.append(line)

    children = tuple(
        ReportSection(
            label=accounts[parent_id].name,
            subtotal=sum((line.balance for line in group), ZERO),
            accounts=tuple(group),
            account_id=parent_id,
            account_code=accounts[parent_id].code,
        )
        for parent_id, group in sorted(groups.items(), key=lambda kv: accounts[kv[0]].code)
    )
    return ReportSection(label=label, subtotal=subtotal, accounts=tuple(top), children=children)


# =========================================================================
# 1. PROFIT AND LOSS
# =========================================================================


def build_profit_loss(
    entries: Iterable[TrialBalanceEntry],
    accounts: dict[UUID, AccountInfo],
    mapping: SubtypeMapping,
    config: ReportingConfig,
    metadata: ReportMetadata,
) -> ProfitLossReport:
    """
    Multi-step profit and loss from period activity.

    Balance sheet accounts in ``entries`` are ignored.  Cost-of-sales typed
    accounts always land in cost of goods sold.
    """
    pl_entries = [e for e in entries if AccountType(e.account_type) in PROFIT_LOSS_TYPES]
    buckets = classify_entries(pl_entries, mapping)

    def section(label: str, bucket: ReportBucket) -> ReportSection:
        return build_section(label, buckets.get(bucket, ()), accounts, config)

    revenue = section("Revenue", ReportBucket.REVENUE)
    cogs = section("Cost of Goods Sold", ReportBucket.COST_OF_GOODS_SOLD)
    operating = section("Operating Expenses", ReportBucket.OPERATING_EXPENSE)
    other_income = section("Other Income", ReportBucket.OTHER_INCOME)
    other_expenses = section("Other Expenses", ReportBucket.OTHER_EXPENSE)

    gross_profit = revenue.subtotal - cogs.subtotal
    operating_income = gross_profit - operating.subtotal
    net_income = operating_income + other_income.subtotal - other_expenses.subtotal

    return ProfitLossReport(
        metadata=metadata,
        revenue=revenue,
        cost_of_goods_sold=cogs,
        operating_expenses=operating,
        other_income=other_income,
        other_expenses=other_expenses,
        gross_profit=gross_profit,
        operating_income=operating_income,
        net_income=net_income,
    )


def compare_profit_loss(
    current: ProfitLossReport,
    prior: ProfitLossReport,
) -> ProfitLossComparison:
    """Per-bucket current vs prior figures."""
    return ProfitLossComparison(
        prior_start_date=prior.metadata.period_start,
        prior_end_date=prior.metadata.period_end,
        revenue=ComparisonLine.of(current.revenue.subtotal, prior.revenue.subtotal),
        cost_of_goods_sold=ComparisonLine.of(
            current.cost_of_goods_sold.subtotal, prior.cost_of_goods_sold.subtotal
        ),
        gross_profit=ComparisonLine.of(current.gross_profit, prior.gross_profit),
        operating_expenses=ComparisonLine.of(
            current.operating_expenses.subtotal, prior.operating_expenses.subtotal
        ),
        operating_income=ComparisonLine.of(current.operating_income, prior.operating_income),
        other_income=ComparisonLine.of(current.other_income.subtotal, prior.other_income.subtotal),
        other_expenses=ComparisonLine.of(
            current.other_expenses.subtotal, prior.other_expenses.subtotal
        ),
        net_income=ComparisonLine.of(current.net_income, prior.net_income),
    )


# =========================================================================
# 2. BALANCE SHEET
# =========================================================================


def _is_retained_earnings(entry: TrialBalanceEntry, config: ReportingConfig) -> bool:
    if entry.account_subtype == AccountSubtype.RETAINED_EARNINGS.value:
        return True
    return config.is_retained_earnings_name(entry.account_name)


def build_balance_sheet(
    entries: Iterable[TrialBalanceEntry],
    accounts: dict[UUID, AccountInfo],
    mapping: SubtypeMapping,
    config: ReportingConfig,
    metadata: ReportMetadata,
    *,
    as_of_date: date,
    fiscal_year_start: date,
    prior_years_income: Decimal,
    current_year_earnings: Decimal,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> BalanceSheetReport:
    """
    Balance sheet from cumulative balances.

    Steps:
    1. Bucket asset and liability accounts; unclassified ones are current.
    2. Equity accounts named or typed as retained earnings are folded into
       ``retained_earnings`` together with ``prior_years_income``; the rest
       are other equity.
    3. Compare total assets with liabilities plus equity.
    """
    bs_entries = [
        e
        for e in entries
        if AccountType(e.account_type)
        in (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)
    ]
    retained = [
        e
        for e in bs_entries
        if AccountType(e.account_type) == AccountType.EQUITY and _is_retained_earnings(e, config)
    ]
    retained_ids = {e.account_id for e in retained}
    buckets = classify_entries(
        [e for e in bs_entries if e.account_id not in retained_ids], mapping
    )

    def section(label: str, bucket: ReportBucket) -> ReportSection:
        return build_section(label, buckets.get(bucket, ()), accounts, config)

    current_assets = section("Current Assets", ReportBucket.CURRENT_ASSET)
    fixed_assets = section("Fixed Assets", ReportBucket.FIXED_ASSET)
    other_assets = section("Other Assets", ReportBucket.OTHER_ASSET)
    total_assets = current_assets.subtotal + fixed_assets.subtotal + other_assets.subtotal

    current_liabilities = section("Current Liabilities", ReportBucket.CURRENT_LIABILITY)
    long_term = section("Long-Term Liabilities", ReportBucket.LONG_TERM_LIABILITY)
    total_liabilities = current_liabilities.subtotal + long_term.subtotal

    other_equity = section("Other Equity", ReportBucket.EQUITY)
    retained_earnings = prior_years_income + sum((e.balance for e in retained), ZERO)
    total_equity = retained_earnings + current_year_earnings + other_equity.subtotal

    total_le = total_liabilities + total_equity
    difference = total_assets - total_le

    return BalanceSheetReport(
        metadata=metadata,
        as_of_date=as_of_date,
        fiscal_year_start=fiscal_year_start,
        assets=BalanceSheetAssets(
            current_assets=current_assets,
            fixed_assets=fixed_assets,
            other_assets=other_assets,
            total_assets=total_assets,
        ),
        liabilities=BalanceSheetLiabilities(
            current_liabilities=current_liabilities,
            long_term_liabilities=long_term,
            total_liabilities=total_liabilities,
        ),
        equity=BalanceSheetEquity(
            other_equity=other_equity,
            retained_earnings=retained_earnings,
            current_year_earnings=current_year_earnings,
            total_equity=total_equity,
        ),
        total_liabilities_and_equity=total_le,
        is_balanced=abs(difference) <= tolerance,
        difference=difference,
    )


# =========================================================================
# 3. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    entries: Iterable[TrialBalanceEntry],
    metadata: ReportMetadata,
    config: ReportingConfig,
    comparison: Iterable[TrialBalanceComparisonRow] | None = None,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> TrialBalanceReport:
    lines = tuple(
        e for e in entries if config.include_zero_balances or e.balance != ZERO
    )
    # Totals include zero-balance lines so they still tie to the ledger
    total_debits = sum((e.debit_total for e in entries), ZERO)
    total_credits = sum((e.credit_total for e in entries), ZERO)
    return TrialBalanceReport(
        metadata=metadata,
        lines=lines,
        total_debits=total_debits,
        total_credits=total_credits,
        is_balanced=abs(total_debits - total_credits) <= tolerance,
        comparison=tuple(comparison) if comparison is not None else None,
    )


# =========================================================================
# 4. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> dict | list | str | int | float | bool | None:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Decimal becomes str (preserving precision); UUID, date and Enum become
    their string forms; dataclasses and tuples recurse.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (list, tuple)):
        return [render_to_dict(item) for item in obj]
    if isinstance(obj, dict):
        return {str(k): render_to_dict(v) for k, v in obj.items()}
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {
            f.name: render_to_dict(getattr(obj, f.name))
            for f in dataclasses.fields(obj)
        }
    if isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)
