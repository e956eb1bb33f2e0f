"""
Pytest fixtures for the ledger test suite.

Provides:
- An in-memory SQLite engine shared by the whole run, with per-test
  isolation through an outer transaction that is rolled back at teardown
- A fresh organization and a standard chart of accounts per test
- Service fixtures wired with a deterministic clock
- Captured structured logs

Every model column is portable, so the same suite runs against PostgreSQL
by pointing DATABASE_URL at it.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_config import get_active_config
from ledger_kernel.db.base import Base
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    enable_sqlite_savepoints,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import LegRequest, PostingRequest
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account, AccountSubtype, AccountType
from ledger_kernel.models.default_account import AccountKind
from ledger_kernel.models.transaction import EntryType, Transaction
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_kernel.services.account_resolver import AccountResolver
from ledger_kernel.services.chart_of_accounts_service import ChartOfAccountsService
from ledger_kernel.services.posting_service import PostingService
from ledger_kernel.services.reversal_service import ReversalService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.services.settlement_service import SettlementService
from ledger_modules.inventory.service import InventoryValuationService
from ledger_modules.posting.service import DocumentPostingService
from ledger_modules.reporting.service import FinancialReportsService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_TEST_URL = "sqlite://"

# (key, code, name, type, subtype, parent key)
STANDARD_CHART = (
    ("cash", "1000", "Cash on Hand", AccountType.ASSET, AccountSubtype.BANK, None),
    ("bank", "1010", "Operating Bank", AccountType.ASSET, AccountSubtype.BANK, None),
    ("receivable", "1100", "Accounts Receivable", AccountType.ASSET, AccountSubtype.CURRENT_ASSET, None),
    ("inventory", "1200", "Inventory", AccountType.ASSET, AccountSubtype.CURRENT_ASSET, None),
    ("tax_receivable", "1300", "Input Tax Receivable", AccountType.ASSET, AccountSubtype.CURRENT_ASSET, None),
    ("equipment", "1500", "Equipment", AccountType.ASSET, AccountSubtype.FIXED_ASSET, None),
    ("payable", "2000", "Accounts Payable", AccountType.LIABILITY, AccountSubtype.CURRENT_LIABILITY, None),
    ("tax_payable", "2100", "Sales Tax Payable", AccountType.LIABILITY, AccountSubtype.CURRENT_LIABILITY, None),
    ("loan", "2500", "Bank Loan", AccountType.LIABILITY, AccountSubtype.LONG_TERM_LIABILITY, None),
    ("capital", "3000", "Owner Capital", AccountType.EQUITY, AccountSubtype.EQUITY, None),
    ("retained", "3100", "Retained Earnings", AccountType.EQUITY, AccountSubtype.RETAINED_EARNINGS, None),
    ("revenue", "4000", "Product Sales", AccountType.REVENUE, AccountSubtype.REVENUE, None),
    ("service_revenue", "4100", "Service Revenue", AccountType.REVENUE, AccountSubtype.REVENUE, None),
    ("interest_income", "4900", "Interest Income", AccountType.REVENUE, AccountSubtype.OTHER_INCOME, None),
    ("cogs", "5000", "Cost of Goods Sold", AccountType.COST_OF_SALES, None, None),
    ("opex", "6000", "Operating Expenses", AccountType.EXPENSE, AccountSubtype.OPERATING_EXPENSE, None),
    ("rent", "6100", "Rent", AccountType.EXPENSE, AccountSubtype.OPERATING_EXPENSE, "opex"),
    ("utilities", "6200", "Utilities", AccountType.EXPENSE, AccountSubtype.OPERATING_EXPENSE, "opex"),
    ("interest_expense", "7000", "Interest Expense", AccountType.EXPENSE, AccountSubtype.INTEREST, None),
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, posting_service):
            posting_service.post_transaction(request)
            logs = captured_logs()
            assert any(r["message"] == "transaction_posted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_TEST_URL)


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    url = get_database_url()
    if url.startswith("sqlite"):
        eng = init_engine_from_url(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        eng = init_engine_from_url(url, pool_size=10, max_overflow=5)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Uses the SQLAlchemy 2.0 ``join_transaction_mode`` pattern:
    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Any ``session.commit()`` inside the test releases a savepoint; it
      does NOT actually commit to the database
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture
def isolated_session_factory(db_tables) -> Generator[sessionmaker[Session], None, None]:
    """Session factory over a private in-memory database.

    For unit-of-work tests that need real commits and rollbacks without
    touching the shared connection used by ``session``.
    """
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(eng)
    Base.metadata.create_all(eng)
    yield sessionmaker(bind=eng, expire_on_commit=False)
    eng.dispose()


# =============================================================================
# Identity, clock and configuration
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def org_id() -> UUID:
    """A fresh organization per test."""
    return uuid4()


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture(scope="session")
def ledger_config():
    return get_active_config()


# =============================================================================
# Chart of accounts
# =============================================================================


@pytest.fixture
def chart_service(session, deterministic_clock) -> ChartOfAccountsService:
    return ChartOfAccountsService(session, deterministic_clock)


@pytest.fixture
def chart_factory(chart_service, ledger_config, test_actor_id):
    """
    Build the standard chart for an organization.

    ``default_kinds=None`` seeds every default from the configuration set;
    pass a subset of AccountKind to leave the others unconfigured.
    """

    def _build(organization_id: UUID, default_kinds=None) -> dict[str, Account]:
        accounts: dict[str, Account] = {}
        for key, code, name, account_type, subtype, parent in STANDARD_CHART:
            accounts[key] = chart_service.create_account(
                organization_id,
                code,
                name,
                account_type,
                test_actor_id,
                account_subtype=subtype,
                parent_id=accounts[parent].id if parent else None,
            )
        if default_kinds is None:
            chart_service.seed_defaults_from_config(organization_id, ledger_config, test_actor_id)
        else:
            for kind in default_kinds:
                code = ledger_config.default_account_codes[AccountKind(kind)]
                account = chart_service.get_account_by_code(organization_id, code)
                chart_service.set_default_account(organization_id, kind, account.id, test_actor_id)
        return accounts

    return _build


@pytest.fixture
def standard_accounts(chart_factory, org_id) -> dict[str, Account]:
    """The standard chart with every default account configured."""
    return chart_factory(org_id)


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def sequence_service(session) -> SequenceService:
    return SequenceService(session)


@pytest.fixture
def account_resolver(session) -> AccountResolver:
    return AccountResolver(session)


@pytest.fixture
def posting_service(session, deterministic_clock, account_resolver) -> PostingService:
    return PostingService(session, clock=deterministic_clock, resolver=account_resolver)


@pytest.fixture
def reversal_service(session, deterministic_clock, posting_service) -> ReversalService:
    return ReversalService(session, clock=deterministic_clock, posting=posting_service)


@pytest.fixture
def settlement_service(session, deterministic_clock) -> SettlementService:
    return SettlementService(session, deterministic_clock)


@pytest.fixture
def inventory_service(session, deterministic_clock) -> InventoryValuationService:
    return InventoryValuationService(session, clock=deterministic_clock)


@pytest.fixture
def document_service(session, ledger_config, deterministic_clock) -> DocumentPostingService:
    return DocumentPostingService.from_config(session, ledger_config, clock=deterministic_clock)


@pytest.fixture
def ledger_selector(session) -> LedgerSelector:
    return LedgerSelector(session)


@pytest.fixture
def reports_service(session, deterministic_clock, ledger_config) -> FinancialReportsService:
    return FinancialReportsService(
        session, clock=deterministic_clock, mapping=ledger_config.subtype_mapping
    )


# =============================================================================
# Posting helpers
# =============================================================================


@pytest.fixture
def post_journal(posting_service, test_actor_id):
    """
    Post a transaction from ``(account, side, amount)`` tuples.

    Usage::

        txn = post_journal(org_id, [
            (accounts["cash"], "debit", Decimal("100")),
            (accounts["revenue"], "credit", Decimal("100")),
        ])
    """

    def _post(
        organization_id: UUID,
        lines,
        transaction_date: date = date(2025, 1, 15),
        transaction_type: str = "JOURNAL",
        reference_type: str | None = None,
        reference_id: str | None = None,
        currency: str = "USD",
        exchange_rate: Decimal = Decimal("1"),
        branch_id: UUID | None = None,
    ) -> Transaction:
        legs = tuple(
            LegRequest(
                account_id=account.id,
                entry_type=EntryType(side),
                amount=Decimal(amount),
                currency=currency,
                exchange_rate=exchange_rate,
            )
            for account, side, amount in lines
        )
        return posting_service.post_transaction(
            PostingRequest(
                organization_id=organization_id,
                transaction_date=transaction_date,
                transaction_type=transaction_type,
                legs=legs,
                actor_id=test_actor_id,
                reference_type=reference_type,
                reference_id=reference_id,
                branch_id=branch_id,
            )
        )

    return _post
