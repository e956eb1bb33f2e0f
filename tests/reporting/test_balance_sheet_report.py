"""
Balance sheet through FinancialReportsService.

Assets must equal liabilities plus equity, with current-year earnings taken
from the profit and loss and prior years rolled into retained earnings.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import Basis
from ledger_kernel.exceptions import InvalidRangeError
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import ProfitLossParams, ReportType
from ledger_modules.reporting.service import FinancialReportsService

AS_OF = date(2025, 1, 31)


@pytest.fixture
def prior_year(post_journal, standard_accounts, org_id):
    """Income in 2024, an opening retained balance and fresh capital in 2025."""
    accounts = standard_accounts
    post_journal(
        org_id,
        [(accounts["cash"], "debit", "75"), (accounts["retained"], "credit", "75")],
        transaction_date=date(2024, 6, 1),
    )
    post_journal(
        org_id,
        [(accounts["cash"], "debit", "200"), (accounts["revenue"], "credit", "200")],
        transaction_date=date(2024, 12, 15),
    )
    post_journal(
        org_id,
        [(accounts["cash"], "debit", "1000"), (accounts["capital"], "credit", "1000")],
        transaction_date=date(2025, 1, 2),
    )
    return accounts


class TestBalanceSheet:

    def test_balances_after_trading(self, reports_service, trading_month, org_id):
        report = reports_service.generate_balance_sheet(org_id, AS_OF)

        # 1100 from the sale, less 100 rent and 20 interest, plus 50 interest
        assert report.assets.current_assets.subtotal == Decimal("1030")
        assert report.assets.total_assets == Decimal("1030")
        assert report.liabilities.current_liabilities.subtotal == Decimal("700")
        assert report.equity.current_year_earnings == Decimal("330")
        assert report.equity.retained_earnings == Decimal("0")
        assert report.total_liabilities_and_equity == Decimal("1030")
        assert report.is_balanced
        assert report.difference == Decimal("0")

    def test_fully_consumed_inventory_hidden(self, reports_service, trading_month, org_id):
        report = reports_service.generate_balance_sheet(org_id, AS_OF)
        codes = [line.account_code for line in report.assets.current_assets.iter_lines()]
        assert codes == ["1000"]

    def test_current_year_earnings_match_profit_loss(self, reports_service, trading_month, org_id):
        balance_sheet = reports_service.generate_balance_sheet(org_id, AS_OF)
        profit_loss = reports_service.generate_profit_loss(
            ProfitLossParams(org_id, balance_sheet.fiscal_year_start, AS_OF)
        )
        assert balance_sheet.equity.current_year_earnings == profit_loss.net_income

    def test_retained_earnings_roll_forward(self, reports_service, prior_year, org_id):
        report = reports_service.generate_balance_sheet(org_id, AS_OF)

        assert report.fiscal_year_start == date(2025, 1, 1)
        # 2024 income plus the balance on the retained earnings account
        assert report.equity.retained_earnings == Decimal("275")
        assert report.equity.current_year_earnings == Decimal("0")
        assert report.equity.other_equity.subtotal == Decimal("1000")
        assert [line.account_code for line in report.equity.other_equity.iter_lines()] == ["3000"]
        assert report.assets.total_assets == Decimal("1275")
        assert report.is_balanced

    def test_explicit_fiscal_year_start(self, reports_service, prior_year, org_id):
        report = reports_service.generate_balance_sheet(
            org_id, AS_OF, fiscal_year_start=date(2024, 7, 1)
        )
        assert report.fiscal_year_start == date(2024, 7, 1)
        assert report.equity.current_year_earnings == Decimal("200")
        assert report.equity.retained_earnings == Decimal("75")
        assert report.is_balanced

    def test_configured_fiscal_year(
        self, session, deterministic_clock, ledger_config, prior_year, org_id
    ):
        service = FinancialReportsService(
            session,
            clock=deterministic_clock,
            config=ReportingConfig(fiscal_year_start_month=4),
            mapping=ledger_config.subtype_mapping,
        )
        report = service.generate_balance_sheet(org_id, AS_OF)
        assert report.fiscal_year_start == date(2024, 4, 1)
        assert report.equity.current_year_earnings == Decimal("200")

    def test_as_of_excludes_later_activity(self, reports_service, prior_year, org_id):
        report = reports_service.generate_balance_sheet(org_id, date(2024, 12, 31))
        assert report.assets.total_assets == Decimal("275")
        assert report.equity.current_year_earnings == Decimal("200")
        assert report.equity.retained_earnings == Decimal("75")
        assert report.is_balanced

    def test_empty_organization(self, reports_service):
        report = reports_service.generate_balance_sheet(uuid4(), AS_OF)
        assert report.assets.total_assets == Decimal("0")
        assert report.liabilities.total_liabilities == Decimal("0")
        assert report.equity.total_equity == Decimal("0")
        assert report.is_balanced
        assert report.metadata.report_type == ReportType.BALANCE_SHEET
        assert report.metadata.as_of_date == AS_OF

    def test_fiscal_year_start_after_as_of(self, reports_service, org_id):
        with pytest.raises(InvalidRangeError):
            reports_service.generate_balance_sheet(
                org_id, AS_OF, fiscal_year_start=date(2025, 2, 1)
            )

    def test_generation_logged(self, reports_service, trading_month, org_id, captured_logs):
        reports_service.generate_balance_sheet(org_id, AS_OF)
        records = captured_logs()
        (generated,) = [r for r in records if r["message"] == "balance_sheet_generated"]
        assert generated["is_balanced"] is True
        assert Decimal(generated["total_assets"]) == Decimal("1030")
        assert not [r for r in records if r["message"] == "balance_sheet_out_of_balance"]


class TestCashBasisInstalments:

    @pytest.fixture
    def instalment_sale(self, post_journal, settlement_service, standard_accounts, org_id):
        """Credit sale of 1000 in December, paid 400 in December and 600 in January."""
        accounts = standard_accounts
        post_journal(
            org_id,
            [(accounts["receivable"], "debit", "1000"), (accounts["revenue"], "credit", "1000")],
            transaction_date=date(2025, 12, 10),
            transaction_type="SALE",
            reference_type="sale",
            reference_id="INV-9",
        )
        settlement_service.record_settlement(
            org_id, "sale", "INV-9", date(2025, 12, 20), Decimal("400")
        )
        settlement_service.record_settlement(
            org_id, "sale", "INV-9", date(2026, 1, 10), Decimal("600")
        )

    def test_revenue_recognised_in_one_period(self, reports_service, instalment_sale, org_id):
        december = reports_service.generate_profit_loss(
            ProfitLossParams(org_id, date(2025, 12, 1), date(2025, 12, 31), Basis.CASH)
        )
        january = reports_service.generate_profit_loss(
            ProfitLossParams(org_id, date(2026, 1, 1), date(2026, 1, 31), Basis.CASH)
        )
        assert december.revenue.subtotal == Decimal("1000")
        assert january.revenue.subtotal == Decimal("0")

    def test_balanced_across_fiscal_year_start(self, reports_service, instalment_sale, org_id):
        report = reports_service.generate_balance_sheet(org_id, date(2026, 1, 31), basis=Basis.CASH)

        assert report.fiscal_year_start == date(2026, 1, 1)
        assert report.assets.total_assets == Decimal("1000")
        assert report.equity.retained_earnings == Decimal("1000")
        assert report.equity.current_year_earnings == Decimal("0")
        assert report.total_liabilities_and_equity == Decimal("1000")
        assert report.is_balanced
