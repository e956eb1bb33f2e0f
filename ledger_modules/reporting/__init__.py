"""
Reporting Module (``ledger_modules.reporting``).

Profit and loss, balance sheet and trial balance reports derived at request
time from the posted ledger.  ``statements`` holds the pure builders;
``service.FinancialReportsService`` fetches balances and calls them.
"""

from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    ComparisonLine,
    ProfitLossComparison,
    ProfitLossParams,
    ProfitLossReport,
    ReportLine,
    ReportMetadata,
    ReportSection,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import FinancialReportsService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    "BalanceSheetReport",
    "ComparisonLine",
    "FinancialReportsService",
    "ProfitLossComparison",
    "ProfitLossParams",
    "ProfitLossReport",
    "ReportLine",
    "ReportMetadata",
    "ReportSection",
    "ReportType",
    "ReportingConfig",
    "TrialBalanceReport",
    "render_to_dict",
]
