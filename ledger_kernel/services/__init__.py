"""Kernel services: every write path into the ledger goes through here."""

from ledger_kernel.services.account_resolver import AccountResolver, ResolutionContext
from ledger_kernel.services.chart_of_accounts_service import ChartOfAccountsService
from ledger_kernel.services.posting_service import PostingService, validate_balance
from ledger_kernel.services.reversal_service import ReversalService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.services.settlement_service import SettlementService
from ledger_kernel.services.unit_of_work import UnitOfWork

__all__ = [
    "AccountResolver",
    "ChartOfAccountsService",
    "PostingService",
    "ResolutionContext",
    "ReversalService",
    "SequenceService",
    "SettlementService",
    "UnitOfWork",
    "validate_balance",
]
