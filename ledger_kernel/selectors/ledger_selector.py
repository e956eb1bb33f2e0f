"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Trial balance, cumulative balance and drill-down queries.
    Every balance is derived at query time from posted LedgerEntry rows;
    nothing is stored.
Architecture position: Kernel > Selectors.  Consumed by
    ledger_modules.reporting.

Invariants enforced:
    - Only POSTED transactions are counted.  DRAFT and VOID never are.
    - Every query filters by organization_id.
    - Sign convention: DEBIT-normal accounts (asset, expense, cost of sales)
      report debits - credits; CREDIT-normal accounts (liability, equity,
      revenue) report credits - debits, so a positive balance is always in
      the account's natural direction.

Basis:
    ACCRUAL counts a transaction by its transaction_date.
    CASH counts it only when the first DocumentSettlement of its source
    document (reference_type, reference_id) is dated inside the window, so
    a document settled in instalments lands in exactly one period.
    Reversals follow the settlement of the document they reverse, and
    transactions that are themselves cash movements (receipts, payments,
    bank transfers) count by their own date.

Failure modes:
    - InvalidRangeError when end_date < start_date.
    - Empty list (not an error) for an organization without activity.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import Session, aliased

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import Basis
from ledger_kernel.exceptions import InvalidRangeError
from ledger_kernel.models.account import (
    Account,
    AccountType,
    NormalBalance,
    normal_balance_for,
)
from ledger_kernel.models.settlement import DocumentSettlement
from ledger_kernel.models.transaction import (
    EntryType,
    LedgerEntry,
    Transaction,
    TransactionStatus,
    TransactionType,
)
from ledger_kernel.selectors.base import BaseSelector, as_decimal

# Transactions that move cash themselves
CASH_TRANSACTION_TYPES = frozenset(
    {
        TransactionType.RECEIPT.value,
        TransactionType.PAYMENT.value,
        TransactionType.BANK_TRANSFER.value,
    }
)


def natural_balance(account_type: AccountType | str, debits: Decimal, credits: Decimal) -> Decimal:
    """Signed balance in the account's natural direction."""
    if normal_balance_for(account_type) == NormalBalance.DEBIT:
        return debits - credits
    return credits - debits


def validate_range(start_date: date | None, end_date: date | None) -> None:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise InvalidRangeError(start_date, end_date)


@dataclass(frozen=True)
class TrialBalanceEntry:
    """Net activity of one account over a window."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    account_subtype: str | None
    parent_id: UUID | None
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal
    transaction_count: int


@dataclass(frozen=True)
class TrialBalanceComparisonRow:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    current_balance: Decimal
    prior_balance: Decimal

    @property
    def variance(self) -> Decimal:
        return self.current_balance - self.prior_balance


@dataclass(frozen=True)
class AccountBalance:
    """Balance of a single account."""

    account_id: UUID
    debit_total: Decimal
    credit_total: Decimal
    balance: Decimal
    entry_count: int


@dataclass(frozen=True)
class DrillDownTransaction:
    """One posted transaction touching an account, with that account's legs summed."""

    transaction_id: UUID
    transaction_number: str
    transaction_date: date
    transaction_type: str
    reference_type: str | None
    reference_id: str | None
    description: str | None
    debit_amount: Decimal
    credit_amount: Decimal


class LedgerSelector(BaseSelector):
    """
    Selector for ledger balances -- the input of every financial statement.

    Guarantees:
        - All amounts are Decimal in the organization's base currency
          (LedgerEntry.amount_in_base).
        - Rows are ordered by account code.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _window(self, column, start_date: date | None, end_date: date | None):
        clauses = []
        if start_date is not None:
            clauses.append(column >= start_date)
        if end_date is not None:
            clauses.append(column <= end_date)
        return clauses

    def _basis_filter(
        self,
        organization_id: UUID,
        basis: Basis,
        start_date: date | None,
        end_date: date | None,
    ) -> list:
        if Basis(basis) == Basis.ACCRUAL:
            return self._window(Transaction.transaction_date, start_date, end_date)

        own_first = (
            select(func.min(DocumentSettlement.settled_on))
            .where(
                DocumentSettlement.organization_id == organization_id,
                DocumentSettlement.reference_type == Transaction.reference_type,
                DocumentSettlement.reference_id == Transaction.reference_id,
            )
            .correlate(Transaction)
            .scalar_subquery()
        )
        original = aliased(Transaction)
        original_first = (
            select(func.min(DocumentSettlement.settled_on))
            .where(
                original.id == Transaction.reversal_of_id,
                DocumentSettlement.organization_id == organization_id,
                DocumentSettlement.reference_type == original.reference_type,
                DocumentSettlement.reference_id == original.reference_id,
            )
            .correlate(Transaction)
            .scalar_subquery()
        )
        # A document is recognised once, on its first settlement
        settled_own = and_(
            own_first.is_not(None), *self._window(own_first, start_date, end_date)
        )
        settled_original = and_(
            original_first.is_not(None), *self._window(original_first, start_date, end_date)
        )
        own_cash = and_(
            Transaction.transaction_type.in_(sorted(CASH_TRANSACTION_TYPES)),
            *self._window(Transaction.transaction_date, start_date, end_date),
        )
        return [or_(settled_own, settled_original, own_cash)]

    def _entry_filters(
        self,
        organization_id: UUID,
        basis: Basis,
        start_date: date | None,
        end_date: date | None,
    ) -> list:
        return [
            LedgerEntry.organization_id == organization_id,
            Transaction.organization_id == organization_id,
            Transaction.status == TransactionStatus.POSTED.value,
            *self._basis_filter(organization_id, basis, start_date, end_date),
        ]

    @staticmethod
    def _sums():
        debit_sum = func.sum(
            case(
                (LedgerEntry.entry_type == EntryType.DEBIT.value, LedgerEntry.amount_in_base),
                else_=ZERO,
            )
        ).label("debit_total")
        credit_sum = func.sum(
            case(
                (LedgerEntry.entry_type == EntryType.CREDIT.value, LedgerEntry.amount_in_base),
                else_=ZERO,
            )
        ).label("credit_total")
        return debit_sum, credit_sum

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def _balances(
        self,
        organization_id: UUID,
        start_date: date | None,
        end_date: date | None,
        basis: Basis,
        account_types: Iterable[AccountType | str] | None,
    ) -> list[TrialBalanceEntry]:
        debit_sum, credit_sum = self._sums()
        query = (
            select(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.account_subtype,
                Account.parent_id,
                debit_sum,
                credit_sum,
                func.count(func.distinct(LedgerEntry.transaction_id)).label("txn_count"),
            )
            .select_from(LedgerEntry)
            .join(Transaction, LedgerEntry.transaction_id == Transaction.id)
            .join(Account, LedgerEntry.account_id == Account.id)
            .where(
                Account.organization_id == organization_id,
                *self._entry_filters(organization_id, basis, start_date, end_date),
            )
            .group_by(
                Account.id,
                Account.code,
                Account.name,
                Account.account_type,
                Account.account_subtype,
                Account.parent_id,
            )
            .order_by(Account.code)
        )
        if account_types is not None:
            query = query.where(
                Account.account_type.in_([AccountType(t).value for t in account_types])
            )

        rows = []
        for row in self.session.execute(query).all():
            debits = as_decimal(row.debit_total)
            credits = as_decimal(row.credit_total)
            balance = natural_balance(row.account_type, debits, credits)
            if debits == ZERO and credits == ZERO:
                continue
            rows.append(
                TrialBalanceEntry(
                    account_id=row.id,
                    account_code=row.code,
                    account_name=row.name,
                    account_type=row.account_type,
                    account_subtype=row.account_subtype,
                    parent_id=row.parent_id,
                    debit_total=debits,
                    credit_total=credits,
                    balance=balance,
                    transaction_count=row.txn_count,
                )
            )
        return rows

    def get_trial_balance(
        self,
        organization_id: UUID,
        start_date: date,
        end_date: date,
        basis: Basis = Basis.ACCRUAL,
        account_types: Iterable[AccountType | str] | None = None,
    ) -> list[TrialBalanceEntry]:
        """
        Period activity per account within [start_date, end_date].

        Accounts without activity in the window are omitted.

        Raises:
            InvalidRangeError: if end_date < start_date.
        """
        validate_range(start_date, end_date)
        return self._balances(organization_id, start_date, end_date, basis, account_types)

    def get_cumulative_balances(
        self,
        organization_id: UUID,
        as_of_date: date,
        account_types: Iterable[AccountType | str] | None = None,
        basis: Basis = Basis.ACCRUAL,
    ) -> list[TrialBalanceEntry]:
        """Balances from inception through ``as_of_date`` inclusive."""
        return self._balances(organization_id, None, as_of_date, basis, account_types)

    def get_opening_balances(
        self,
        organization_id: UUID,
        before_date: date,
        basis: Basis = Basis.ACCRUAL,
    ) -> list[TrialBalanceEntry]:
        """Cumulative balances at the close of the day before ``before_date``."""
        return self.get_cumulative_balances(
            organization_id, before_date - timedelta(days=1), basis=basis
        )

    def get_trial_balance_with_comparison(
        self,
        organization_id: UUID,
        start_date: date,
        end_date: date,
        compare_start_date: date,
        compare_end_date: date,
        basis: Basis = Basis.ACCRUAL,
    ) -> list[TrialBalanceComparisonRow]:
        """Current vs. prior period balance for every account active in either."""
        validate_range(compare_start_date, compare_end_date)
        current = {
            r.account_id: r
            for r in self.get_trial_balance(organization_id, start_date, end_date, basis)
        }
        prior = {
            r.account_id: r
            for r in self.get_trial_balance(
                organization_id, compare_start_date, compare_end_date, basis
            )
        }

        rows = []
        for account_id in current.keys() | prior.keys():
            ref = current.get(account_id) or prior[account_id]
            rows.append(
                TrialBalanceComparisonRow(
                    account_id=account_id,
                    account_code=ref.account_code,
                    account_name=ref.account_name,
                    account_type=ref.account_type,
                    current_balance=current[account_id].balance if account_id in current else ZERO,
                    prior_balance=prior[account_id].balance if account_id in prior else ZERO,
                )
            )
        return sorted(rows, key=lambda r: r.account_code)

    def account_balance(
        self,
        organization_id: UUID,
        account_id: UUID,
        as_of_date: date | None = None,
        basis: Basis = Basis.ACCRUAL,
    ) -> AccountBalance:
        """Cumulative balance of one account, zero if it has no postings."""
        account_type = self.session.execute(
            select(Account.account_type).where(
                Account.id == account_id,
                Account.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if account_type is None:
            return AccountBalance(account_id, ZERO, ZERO, ZERO, 0)

        debit_sum, credit_sum = self._sums()
        row = self.session.execute(
            select(debit_sum, credit_sum, func.count(LedgerEntry.id).label("entry_count"))
            .select_from(LedgerEntry)
            .join(Transaction, LedgerEntry.transaction_id == Transaction.id)
            .where(
                LedgerEntry.account_id == account_id,
                *self._entry_filters(organization_id, basis, None, as_of_date),
            )
        ).one()
        debits = as_decimal(row.debit_total)
        credits = as_decimal(row.credit_total)
        return AccountBalance(
            account_id=account_id,
            debit_total=debits,
            credit_total=credits,
            balance=natural_balance(account_type, debits, credits),
            entry_count=row.entry_count,
        )

    def total_debits_credits(
        self,
        organization_id: UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        basis: Basis = Basis.ACCRUAL,
    ) -> tuple[Decimal, Decimal]:
        """Ledger-wide debit and credit totals; equal whenever every posting balanced."""
        validate_range(start_date, end_date)
        debit_sum, credit_sum = self._sums()
        row = self.session.execute(
            select(debit_sum, credit_sum)
            .select_from(LedgerEntry)
            .join(Transaction, LedgerEntry.transaction_id == Transaction.id)
            .where(*self._entry_filters(organization_id, basis, start_date, end_date))
        ).one()
        return as_decimal(row.debit_total), as_decimal(row.credit_total)

    # ------------------------------------------------------------------
    # Drill-down
    # ------------------------------------------------------------------

    def get_drill_down_transactions(
        self,
        organization_id: UUID,
        account_id: UUID,
        start_date: date,
        end_date: date,
        basis: Basis = Basis.ACCRUAL,
    ) -> list[DrillDownTransaction]:
        """Distinct posted transactions touching ``account_id`` in the window."""
        validate_range(start_date, end_date)
        debit_sum, credit_sum = self._sums()
        query = (
            select(
                Transaction.id,
                Transaction.transaction_number,
                Transaction.transaction_date,
                Transaction.transaction_type,
                Transaction.reference_type,
                Transaction.reference_id,
                Transaction.description,
                debit_sum,
                credit_sum,
            )
            .select_from(LedgerEntry)
            .join(Transaction, LedgerEntry.transaction_id == Transaction.id)
            .where(
                LedgerEntry.account_id == account_id,
                *self._entry_filters(organization_id, basis, start_date, end_date),
            )
            .group_by(
                Transaction.id,
                Transaction.transaction_number,
                Transaction.transaction_date,
                Transaction.transaction_type,
                Transaction.reference_type,
                Transaction.reference_id,
                Transaction.description,
            )
            .order_by(Transaction.transaction_date, Transaction.transaction_number)
        )
        return [
            DrillDownTransaction(
                transaction_id=row.id,
                transaction_number=row.transaction_number,
                transaction_date=row.transaction_date,
                transaction_type=row.transaction_type,
                reference_type=row.reference_type,
                reference_id=row.reference_id,
                description=row.description,
                debit_amount=as_decimal(row.debit_total),
                credit_amount=as_decimal(row.credit_total),
            )
            for row in self.session.execute(query).all()
        ]
