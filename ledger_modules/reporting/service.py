"""
Financial Reports Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates profit and loss, balance sheet and trial balance generation by
bridging ``LedgerSelector`` to the pure functions in ``statements.py``.
This is a **read-only** service: nothing is posted or mutated.

Architecture position
---------------------
**Modules layer** -- thin glue.  Constructor: ``session`` + ``clock`` +
``config`` + subtype ``mapping``.  When no mapping is given the active
configuration set's mapping is used.

Invariants enforced
-------------------
* Read-only.
* All monetary amounts use ``Decimal``.
* Current-year earnings on the balance sheet are computed by
  ``generate_profit_loss`` itself, so both statements agree by construction.

Failure modes
-------------
* ``InvalidRangeError`` for end_date < start_date, before any query runs.
* ``UnmappedSubtypeError`` when an account with activity cannot be bucketed.
* An organization without accounts gets empty sections and zero totals.
* An out-of-balance balance sheet is returned with ``is_balanced=False`` and
  logged at WARNING; it is never corrected.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_config import get_active_config
from ledger_config.schema import SubtypeMapping
from ledger_kernel.db.types import BALANCE_TOLERANCE
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import Basis
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.selectors.ledger_selector import LedgerSelector, validate_range
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    ProfitLossParams,
    ProfitLossReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    AccountInfo,
    build_balance_sheet,
    build_profit_loss,
    build_trial_balance,
    compare_profit_loss,
    compute_net_income,
    prior_period,
    render_to_dict,
)

logger = get_logger("modules.reporting.service")

_PL_TYPES = (AccountType.REVENUE, AccountType.EXPENSE, AccountType.COST_OF_SALES)
_BS_TYPES = (AccountType.ASSET, AccountType.LIABILITY, AccountType.EQUITY)


class FinancialReportsService:
    """
    Stateless report generator for one database session.

    Usage::

        reports = FinancialReportsService(session, clock=clock)
        pl = reports.generate_profit_loss(
            ProfitLossParams(org_id, date(2026, 1, 1), date(2026, 3, 31)),
            include_comparison=True,
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        mapping: SubtypeMapping | None = None,
        tolerance: Decimal = BALANCE_TOLERANCE,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig()
        self._mapping = mapping or get_active_config().subtype_mapping
        self._tolerance = tolerance
        self._selector = LedgerSelector(session)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load_accounts(self, organization_id: UUID) -> dict[UUID, AccountInfo]:
        accounts = self._session.execute(
            select(Account).where(Account.organization_id == organization_id)
        ).scalars()
        return {
            a.id: AccountInfo(
                account_id=a.id,
                code=a.code,
                name=a.name,
                account_type=AccountType(a.account_type),
                account_subtype=a.account_subtype,
                parent_id=a.parent_id,
            )
            for a in accounts
        }

    def _metadata(
        self,
        report_type: ReportType,
        organization_id: UUID,
        basis: Basis,
        period_start: date | None = None,
        period_end: date | None = None,
        as_of_date: date | None = None,
    ) -> ReportMetadata:
        return ReportMetadata(
            report_type=report_type,
            organization_id=organization_id,
            entity_name=self._config.entity_name,
            currency=self._config.default_currency,
            basis=Basis(basis),
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
            period_end=period_end,
            as_of_date=as_of_date,
            mapping_version=self._mapping.version,
        )

    # ------------------------------------------------------------------
    # Profit and loss
    # ------------------------------------------------------------------

    def generate_profit_loss(
        self,
        params: ProfitLossParams,
        include_comparison: bool = False,
    ) -> ProfitLossReport:
        """
        Profit and loss for ``[params.start_date, params.end_date]``.

        With ``include_comparison`` the same report is computed for the
        immediately preceding period of identical length and attached as
        per-bucket comparison lines.
        """
        validate_range(params.start_date, params.end_date)
        with LogContext.bind(organization_id=params.organization_id):
            report = self._profit_loss(params, self._load_accounts(params.organization_id))

            if include_comparison:
                prior_start, prior_end = prior_period(params.start_date, params.end_date)
                prior = self._profit_loss(
                    ProfitLossParams(
                        organization_id=params.organization_id,
                        start_date=prior_start,
                        end_date=prior_end,
                        basis=params.basis,
                    ),
                    self._load_accounts(params.organization_id),
                )
                report = ProfitLossReport(
                    metadata=report.metadata,
                    revenue=report.revenue,
                    cost_of_goods_sold=report.cost_of_goods_sold,
                    operating_expenses=report.operating_expenses,
                    other_income=report.other_income,
                    other_expenses=report.other_expenses,
                    gross_profit=report.gross_profit,
                    operating_income=report.operating_income,
                    net_income=report.net_income,
                    comparison=compare_profit_loss(report, prior),
                )

            logger.info(
                "profit_loss_generated",
                extra={
                    "period_start": params.start_date,
                    "period_end": params.end_date,
                    "basis": Basis(params.basis).value,
                    "net_income": report.net_income,
                    "include_comparison": include_comparison,
                },
            )
            return report

    def _profit_loss(
        self,
        params: ProfitLossParams,
        accounts: dict[UUID, AccountInfo],
    ) -> ProfitLossReport:
        entries = self._selector.get_trial_balance(
            params.organization_id,
            params.start_date,
            params.end_date,
            params.basis,
            account_types=_PL_TYPES,
        )
        return build_profit_loss(
            entries,
            accounts,
            self._mapping,
            self._config,
            self._metadata(
                ReportType.PROFIT_LOSS,
                params.organization_id,
                params.basis,
                period_start=params.start_date,
                period_end=params.end_date,
            ),
        )

    # ------------------------------------------------------------------
    # Balance sheet
    # ------------------------------------------------------------------

    def generate_balance_sheet(
        self,
        organization_id: UUID,
        as_of_date: date,
        basis: Basis = Basis.ACCRUAL,
        fiscal_year_start: date | None = None,
    ) -> BalanceSheetReport:
        """
        Balance sheet as of ``as_of_date``.

        ``fiscal_year_start`` defaults to the configured fiscal year start on
        or before ``as_of_date``.  Retained earnings is cumulative net income
        through the day before it; current-year earnings is the profit and
        loss from it through ``as_of_date``.
        """
        fiscal_year_start = fiscal_year_start or self._config.fiscal_year_start_for(as_of_date)
        validate_range(fiscal_year_start, as_of_date)

        with LogContext.bind(organization_id=organization_id):
            accounts = self._load_accounts(organization_id)
            entries = self._selector.get_cumulative_balances(
                organization_id, as_of_date, account_types=_BS_TYPES, basis=basis
            )
            prior_income = compute_net_income(
                self._selector.get_cumulative_balances(
                    organization_id,
                    fiscal_year_start - timedelta(days=1),
                    account_types=_PL_TYPES,
                    basis=basis,
                )
            )
            current_year = self.generate_profit_loss(
                ProfitLossParams(organization_id, fiscal_year_start, as_of_date, basis)
            )

            report = build_balance_sheet(
                entries,
                accounts,
                self._mapping,
                self._config,
                self._metadata(
                    ReportType.BALANCE_SHEET, organization_id, basis, as_of_date=as_of_date
                ),
                as_of_date=as_of_date,
                fiscal_year_start=fiscal_year_start,
                prior_years_income=prior_income,
                current_year_earnings=current_year.net_income,
                tolerance=self._tolerance,
            )

            if not report.is_balanced:
                logger.warning(
                    "balance_sheet_out_of_balance",
                    extra={
                        "as_of_date": as_of_date,
                        "total_assets": report.assets.total_assets,
                        "total_liabilities_and_equity": report.total_liabilities_and_equity,
                        "difference": report.difference,
                    },
                )
            logger.info(
                "balance_sheet_generated",
                extra={
                    "as_of_date": as_of_date,
                    "basis": Basis(basis).value,
                    "total_assets": report.assets.total_assets,
                    "is_balanced": report.is_balanced,
                },
            )
            return report

    # ------------------------------------------------------------------
    # Trial balance
    # ------------------------------------------------------------------

    def get_trial_balance_report(
        self,
        organization_id: UUID,
        start_date: date,
        end_date: date,
        basis: Basis = Basis.ACCRUAL,
        compare_start_date: date | None = None,
        compare_end_date: date | None = None,
    ) -> TrialBalanceReport:
        """Period trial balance, optionally with a comparison period."""
        validate_range(start_date, end_date)
        entries = self._selector.get_trial_balance(organization_id, start_date, end_date, basis)

        comparison = None
        if compare_start_date is not None and compare_end_date is not None:
            comparison = self._selector.get_trial_balance_with_comparison(
                organization_id,
                start_date,
                end_date,
                compare_start_date,
                compare_end_date,
                basis,
            )

        report = build_trial_balance(
            entries,
            self._metadata(
                ReportType.TRIAL_BALANCE,
                organization_id,
                basis,
                period_start=start_date,
                period_end=end_date,
            ),
            self._config,
            comparison,
            self._tolerance,
        )
        logger.info(
            "trial_balance_generated",
            extra={
                "organization_id": organization_id,
                "period_start": start_date,
                "period_end": end_date,
                "line_count": len(report.lines),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def to_dict(self, report: object) -> dict:
        """Render any report to a JSON-ready dict."""
        return render_to_dict(report)
