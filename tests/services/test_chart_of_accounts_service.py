"""ChartOfAccountsService: account maintenance, defaults and subtype mapping checks."""

from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_config.schema import SubtypeMapping
from ledger_kernel.exceptions import (
    AccountTypeImmutableError,
    DuplicateAccountCodeError,
    InvalidAccountHierarchyError,
    InvalidConfigurationError,
    UnknownAccountError,
    UnmappedSubtypeError,
)
from ledger_kernel.models.account import AccountSubtype, AccountType, NormalBalance
from ledger_kernel.models.default_account import AccountKind


class TestCreateAccount:

    def test_create_sets_fields(self, chart_service, org_id, test_actor_id):
        account = chart_service.create_account(
            org_id, "1600", "Vehicles", AccountType.ASSET, test_actor_id,
            account_subtype=AccountSubtype.FIXED_ASSET,
        )
        assert account.code == "1600"
        assert account.account_type == AccountType.ASSET
        assert account.account_subtype == "FIXED_ASSET"
        assert account.is_active
        assert account.normal_balance == NormalBalance.DEBIT
        assert chart_service.get_account_by_code(org_id, "1600").id == account.id

    def test_credit_normal_types(self, chart_service, org_id, test_actor_id):
        liability = chart_service.create_account(org_id, "2900", "Accrual", "liability", test_actor_id)
        assert liability.is_credit_normal

    def test_duplicate_code_rejected(self, chart_service, standard_accounts, org_id, test_actor_id):
        with pytest.raises(DuplicateAccountCodeError) as exc_info:
            chart_service.create_account(org_id, "1000", "Petty Cash", AccountType.ASSET, test_actor_id)
        assert exc_info.value.account_code == "1000"

    def test_same_code_in_other_organization(self, chart_service, standard_accounts, test_actor_id):
        account = chart_service.create_account(
            uuid4(), "1000", "Cash", AccountType.ASSET, test_actor_id
        )
        assert account.code == "1000"

    def test_unknown_parent_rejected(self, chart_service, org_id, test_actor_id):
        with pytest.raises(UnknownAccountError):
            chart_service.create_account(
                org_id, "6300", "Travel", AccountType.EXPENSE, test_actor_id, parent_id=uuid4()
            )

    def test_unknown_account_type_rejected(self, chart_service, org_id, test_actor_id):
        with pytest.raises(ValueError):
            chart_service.create_account(org_id, "9999", "Mystery", "contra", test_actor_id)


class TestUpdateAccount:

    def test_rename_and_reclassify(self, chart_service, standard_accounts, org_id, test_actor_id):
        equipment = standard_accounts["equipment"]
        updated = chart_service.update_account(
            org_id, equipment.id, test_actor_id,
            name="Plant & Equipment",
            account_subtype=AccountSubtype.OTHER_ASSET,
        )
        assert updated.name == "Plant & Equipment"
        assert updated.account_subtype == "OTHER_ASSET"
        assert updated.updated_by_id == test_actor_id

    def test_clear_subtype_and_parent(self, chart_service, standard_accounts, org_id, test_actor_id):
        rent = standard_accounts["rent"]
        updated = chart_service.update_account(
            org_id, rent.id, test_actor_id, account_subtype=None, parent_id=None
        )
        assert updated.account_subtype is None
        assert updated.parent_id is None

    def test_type_change_allowed_without_entries(
        self, chart_service, standard_accounts, org_id, test_actor_id
    ):
        updated = chart_service.update_account(
            org_id, standard_accounts["interest_income"].id, test_actor_id,
            account_type=AccountType.EXPENSE,
            account_subtype=AccountSubtype.OTHER_EXPENSE,
        )
        assert updated.account_type == AccountType.EXPENSE

    def test_type_change_rejected_once_posted(
        self, chart_service, post_journal, standard_accounts, org_id, test_actor_id
    ):
        accounts = standard_accounts
        post_journal(org_id, [(accounts["cash"], "debit", "5"), (accounts["revenue"], "credit", "5")])
        assert chart_service.has_entries(accounts["revenue"].id)

        with pytest.raises(AccountTypeImmutableError) as exc_info:
            chart_service.update_account(
                org_id, accounts["revenue"].id, test_actor_id, account_type=AccountType.LIABILITY
            )
        assert exc_info.value.requested_type == "liability"

    def test_rename_allowed_once_posted(
        self, chart_service, post_journal, standard_accounts, org_id, test_actor_id
    ):
        accounts = standard_accounts
        post_journal(org_id, [(accounts["cash"], "debit", "5"), (accounts["revenue"], "credit", "5")])
        updated = chart_service.update_account(org_id, accounts["revenue"].id, test_actor_id, name="Sales")
        assert updated.name == "Sales"

    def test_self_parent_rejected(self, chart_service, standard_accounts, org_id, test_actor_id):
        opex = standard_accounts["opex"]
        with pytest.raises(InvalidAccountHierarchyError):
            chart_service.update_account(org_id, opex.id, test_actor_id, parent_id=opex.id)

    def test_cycle_rejected(self, chart_service, standard_accounts, org_id, test_actor_id):
        # rent's parent is opex; making opex a child of rent closes the loop
        with pytest.raises(InvalidAccountHierarchyError) as exc_info:
            chart_service.update_account(
                org_id, standard_accounts["opex"].id, test_actor_id,
                parent_id=standard_accounts["rent"].id,
            )
        assert "cycle" in exc_info.value.reason

    def test_parent_from_other_organization_rejected(
        self, chart_service, chart_factory, standard_accounts, org_id, test_actor_id
    ):
        foreign = chart_factory(uuid4(), default_kinds=())
        with pytest.raises(InvalidAccountHierarchyError):
            chart_service.update_account(
                org_id, standard_accounts["rent"].id, test_actor_id,
                parent_id=foreign["opex"].id,
            )


class TestDeactivate:

    def test_deactivate_keeps_history(
        self, chart_service, ledger_selector, post_journal, standard_accounts, org_id, test_actor_id
    ):
        accounts = standard_accounts
        post_journal(org_id, [(accounts["bank"], "debit", "30"), (accounts["revenue"], "credit", "30")])
        chart_service.deactivate_account(org_id, accounts["bank"].id, test_actor_id)

        assert not chart_service.get_account(org_id, accounts["bank"].id).is_active
        balance = ledger_selector.account_balance(org_id, accounts["bank"].id)
        assert balance.balance == Decimal("30")


class TestDefaultAccounts:

    def test_seed_from_config(self, chart_service, account_resolver, standard_accounts, org_id):
        assert account_resolver.find_default_account(org_id, AccountKind.CASH) == standard_accounts["cash"].id
        assert (
            account_resolver.find_default_account(org_id, AccountKind.COST_OF_GOODS_SOLD)
            == standard_accounts["cogs"].id
        )

    def test_replace_default(self, chart_service, account_resolver, standard_accounts, org_id, test_actor_id):
        chart_service.set_default_account(
            org_id, AccountKind.CASH, standard_accounts["bank"].id, test_actor_id
        )
        assert account_resolver.find_default_account(org_id, AccountKind.CASH) == standard_accounts["bank"].id

    def test_type_mismatch_rejected(self, chart_service, standard_accounts, org_id, test_actor_id):
        with pytest.raises(InvalidConfigurationError):
            chart_service.set_default_account(
                org_id, AccountKind.TAX_PAYABLE, standard_accounts["cash"].id, test_actor_id
            )

    def test_seed_reports_every_missing_code(self, chart_service, ledger_config, test_actor_id):
        with pytest.raises(InvalidConfigurationError) as exc_info:
            chart_service.seed_defaults_from_config(uuid4(), ledger_config, test_actor_id)
        assert len(exc_info.value.errors) == len(ledger_config.default_account_codes)


class TestSubtypeMappingValidation:

    def test_standard_chart_is_fully_mapped(self, chart_service, standard_accounts, ledger_config, org_id):
        count = chart_service.validate_subtype_mapping(org_id, ledger_config.subtype_mapping)
        assert count == len(standard_accounts)

    def test_missing_bucket_reported(self, chart_service, standard_accounts, ledger_config, org_id):
        buckets = {
            key: bucket
            for key, bucket in ledger_config.subtype_mapping.buckets.items()
            if key != "INTEREST"
        }
        with pytest.raises(UnmappedSubtypeError) as exc_info:
            chart_service.validate_subtype_mapping(org_id, SubtypeMapping(version=2, buckets=buckets))
        assert exc_info.value.subtype == "INTEREST"
        assert exc_info.value.account_code == "7000"

    def test_incompatible_bucket_reported(
        self, chart_service, standard_accounts, ledger_config, org_id, test_actor_id
    ):
        chart_service.create_account(
            org_id, "4950", "Misfiled", AccountType.REVENUE, test_actor_id,
            account_subtype=AccountSubtype.OPERATING_EXPENSE,
        )
        with pytest.raises(UnmappedSubtypeError) as exc_info:
            chart_service.validate_subtype_mapping(org_id, ledger_config.subtype_mapping)
        assert exc_info.value.account_code == "4950"

    def test_inactive_accounts_skipped(
        self, chart_service, standard_accounts, ledger_config, org_id, test_actor_id
    ):
        misfiled = chart_service.create_account(
            org_id, "4950", "Misfiled", AccountType.REVENUE, test_actor_id,
            account_subtype=AccountSubtype.OPERATING_EXPENSE,
        )
        chart_service.deactivate_account(org_id, misfiled.id, test_actor_id)
        assert chart_service.validate_subtype_mapping(org_id, ledger_config.subtype_mapping) == len(
            standard_accounts
        )
