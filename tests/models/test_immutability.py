"""
ORM immutability listeners.

Posted transactions and their entries, stock movements and the structural
fields of referenced accounts cannot be changed or deleted through the ORM.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import LegRequest, PostingRequest
from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.models.account import AccountType
from ledger_kernel.models.inventory import MovementType, StockMovement
from ledger_kernel.models.transaction import EntryType, TransactionStatus


@pytest.fixture
def posted(post_journal, standard_accounts, org_id):
    accounts = standard_accounts
    return post_journal(
        org_id, [(accounts["cash"], "debit", "80"), (accounts["revenue"], "credit", "80")]
    )


class TestTransactionImmutability:

    def test_update_posted_blocked(self, session, posted):
        posted.description = "edited after the fact"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Transaction"

    def test_status_change_after_posting_blocked(self, session, posted):
        posted.status = TransactionStatus.VOID.value
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_posted_blocked(self, session, posted):
        session.delete(posted)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_draft_is_editable(
        self, session, posting_service, standard_accounts, org_id, test_actor_id
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
        draft.description = "still a draft"
        draft.entries[0].description = "fine"
        session.flush()
        assert draft.description == "still a draft"


class TestLedgerEntryImmutability:

    def test_amount_change_blocked(self, session, posted):
        posted.entries[0].amount = Decimal("81")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "LedgerEntry"

    def test_reconciled_flag_allowed(self, session, posted, test_actor_id):
        entry = posted.entries[0]
        entry.reconciled = True
        entry.updated_by_id = test_actor_id
        session.flush()
        assert entry.reconciled is True

    def test_delete_blocked(self, session, posted):
        session.delete(posted.entries[1])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestStockMovementImmutability:

    @pytest.fixture
    def movement(self, session, inventory_service, org_id, test_actor_id):
        result = inventory_service.add(
            org_id, uuid4(), Decimal("4"), Decimal("2.50"),
            movement_type=MovementType.RECEIPT, actor_id=test_actor_id,
        )
        return session.get(StockMovement, result.movement_id)

    def test_update_blocked(self, session, movement):
        movement.quantity = Decimal("40")
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "StockMovement"

    def test_delete_blocked(self, session, movement):
        session.delete(movement)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestAccountImmutability:

    def test_code_change_blocked_once_referenced(self, session, posted, standard_accounts):
        standard_accounts["cash"].code = "1001"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "Account"

    def test_type_change_blocked_once_referenced(self, session, posted, standard_accounts):
        standard_accounts["revenue"].account_type = AccountType.LIABILITY.value
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_delete_blocked_once_referenced(self, session, posted, standard_accounts):
        session.delete(standard_accounts["cash"])
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_unreferenced_account_is_editable(self, session, standard_accounts):
        standard_accounts["equipment"].code = "1510"
        standard_accounts["equipment"].name = "Machinery"
        session.flush()
        assert standard_accounts["equipment"].code == "1510"
