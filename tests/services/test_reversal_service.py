"""
ReversalService tests.

A reversal is the exact mirror of a posted transaction, linked through
reversal_of_id.  The original is never touched and can be reversed at most
once.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import LegRequest, PostingRequest
from ledger_kernel.exceptions import (
    AlreadyReversedError,
    TransactionNotFoundError,
    TransactionNotPostedError,
)
from ledger_kernel.models.transaction import EntryType, TransactionStatus, TransactionType


@pytest.fixture
def sale_txn(post_journal, standard_accounts, org_id):
    accounts = standard_accounts
    return post_journal(
        org_id,
        [
            (accounts["cash"], "debit", "110.00"),
            (accounts["revenue"], "credit", "100.00"),
            (accounts["tax_payable"], "credit", "10.00"),
        ],
        transaction_type="SALE",
        reference_type="sale",
        reference_id="INV-100",
    )


class TestReverseTransaction:

    def test_reversal_mirrors_every_leg(
        self, reversal_service, sale_txn, org_id, test_actor_id
    ):
        reversal = reversal_service.reverse_transaction(
            org_id, sale_txn.id, "customer cancelled", test_actor_id
        )

        assert reversal.transaction_type == TransactionType.REVERSAL
        assert reversal.reversal_of_id == sale_txn.id
        assert reversal.reversal_reason == "customer cancelled"
        assert reversal.reference_type == "transaction"
        assert reversal.reference_id == str(sale_txn.id)
        assert reversal.transaction_date == sale_txn.transaction_date
        assert reversal.is_balanced

        original_legs = {(e.account_id, e.entry_type, e.amount) for e in sale_txn.entries}
        mirrored = {
            (e.account_id, EntryType(e.entry_type).opposite.value, e.amount)
            for e in reversal.entries
        }
        assert mirrored == original_legs

    def test_original_left_untouched(self, reversal_service, sale_txn, org_id, test_actor_id):
        number = sale_txn.transaction_number
        reversal_service.reverse_transaction(org_id, sale_txn.id, "error", test_actor_id)
        assert sale_txn.status == TransactionStatus.POSTED
        assert sale_txn.transaction_number == number
        assert len(sale_txn.entries) == 3

    def test_balances_net_to_zero(
        self, reversal_service, ledger_selector, sale_txn, standard_accounts, org_id, test_actor_id
    ):
        reversal_service.reverse_transaction(org_id, sale_txn.id, "error", test_actor_id)
        for key in ("cash", "revenue", "tax_payable"):
            balance = ledger_selector.account_balance(org_id, standard_accounts[key].id)
            assert balance.balance == Decimal("0")
            assert balance.entry_count == 2

    def test_reversal_takes_next_number(self, reversal_service, sale_txn, org_id, test_actor_id):
        reversal = reversal_service.reverse_transaction(org_id, sale_txn.id, "error", test_actor_id)
        assert sale_txn.transaction_number == "JE-202501-000001"
        assert reversal.transaction_number == "JE-202501-000002"

    def test_explicit_reversal_date(self, reversal_service, sale_txn, org_id, test_actor_id):
        reversal = reversal_service.reverse_transaction(
            org_id, sale_txn.id, "late correction", test_actor_id, reversal_date=date(2025, 3, 2)
        )
        assert reversal.transaction_date == date(2025, 3, 2)
        assert reversal.transaction_number.startswith("JE-202503-")

    def test_preserves_currency_and_rate(
        self, reversal_service, post_journal, standard_accounts, org_id, test_actor_id
    ):
        accounts = standard_accounts
        original = post_journal(
            org_id,
            [(accounts["bank"], "debit", "200"), (accounts["revenue"], "credit", "200")],
            currency="EUR",
            exchange_rate=Decimal("1.1"),
        )
        reversal = reversal_service.reverse_transaction(org_id, original.id, "fx error", test_actor_id)
        assert {(e.currency, e.exchange_rate, e.amount_in_base) for e in reversal.entries} == {
            ("EUR", Decimal("1.1"), Decimal("220"))
        }

    def test_logs_reversal_completed(
        self, reversal_service, sale_txn, org_id, test_actor_id, captured_logs
    ):
        reversal = reversal_service.reverse_transaction(org_id, sale_txn.id, "dup", test_actor_id)
        records = [r for r in captured_logs() if r["message"] == "reversal_completed"]
        assert len(records) == 1
        assert records[0]["original_id"] == str(sale_txn.id)
        assert records[0]["reversal_id"] == str(reversal.id)
        assert records[0]["actor_id"] == str(test_actor_id)


class TestReversalGuards:

    def test_second_reversal_rejected(self, reversal_service, sale_txn, org_id, test_actor_id):
        first = reversal_service.reverse_transaction(org_id, sale_txn.id, "once", test_actor_id)
        with pytest.raises(AlreadyReversedError) as exc_info:
            reversal_service.reverse_transaction(org_id, sale_txn.id, "twice", test_actor_id)
        assert exc_info.value.reversal_id == str(first.id)

    def test_reversal_cannot_be_reversed(self, reversal_service, sale_txn, org_id, test_actor_id):
        reversal = reversal_service.reverse_transaction(org_id, sale_txn.id, "once", test_actor_id)
        with pytest.raises(AlreadyReversedError):
            reversal_service.reverse_transaction(org_id, reversal.id, "undo", test_actor_id)

    def test_draft_cannot_be_reversed(
        self, reversal_service, posting_service, standard_accounts, org_id, test_actor_id
    ):
        accounts = standard_accounts
        draft = posting_service.post_transaction(
            PostingRequest(
                organization_id=org_id,
                transaction_date=date(2025, 1, 15),
                transaction_type="JOURNAL",
                legs=(
                    LegRequest(accounts["cash"].id, EntryType.DEBIT, Decimal("5"), "USD"),
                    LegRequest(accounts["revenue"].id, EntryType.CREDIT, Decimal("5"), "USD"),
                ),
                actor_id=test_actor_id,
                status=TransactionStatus.DRAFT,
            )
        )
        with pytest.raises(TransactionNotPostedError):
            reversal_service.reverse_transaction(org_id, draft.id, "nope", test_actor_id)

    def test_unknown_transaction(self, reversal_service, org_id, test_actor_id):
        with pytest.raises(TransactionNotFoundError):
            reversal_service.reverse_transaction(org_id, uuid4(), "missing", test_actor_id)

    def test_other_organization_cannot_reverse(
        self, reversal_service, sale_txn, test_actor_id
    ):
        with pytest.raises(TransactionNotFoundError):
            reversal_service.reverse_transaction(uuid4(), sale_txn.id, "foreign", test_actor_id)


class TestReversalQueries:

    def test_is_reversed(self, reversal_service, sale_txn, org_id, test_actor_id):
        assert not reversal_service.is_reversed(org_id, sale_txn.id)
        assert reversal_service.find_reversal(org_id, sale_txn.id) is None

        reversal = reversal_service.reverse_transaction(org_id, sale_txn.id, "x", test_actor_id)

        assert reversal_service.is_reversed(org_id, sale_txn.id)
        assert reversal_service.find_reversal(org_id, sale_txn.id).id == reversal.id
