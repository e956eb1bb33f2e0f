"""
AccountResolver tests.

Resolution order: explicit override, category default, organization default,
then the opt-in code-prefix fallback.  Nothing matching is an error.
"""

from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    InactiveAccountError,
    NoDefaultAccountConfiguredError,
    UnknownAccountError,
)
from ledger_kernel.models.default_account import AccountKind
from ledger_kernel.services.account_resolver import (
    AccountResolver,
    FallbackPolicy,
    ResolutionContext,
)


class TestResolutionOrder:

    def test_override_wins(self, account_resolver, standard_accounts, org_id):
        resolved = account_resolver.resolve_account(
            AccountKind.REVENUE,
            ResolutionContext(
                org_id,
                override_account_id=standard_accounts["service_revenue"].id,
                category_account_id=standard_accounts["interest_income"].id,
            ),
        )
        assert resolved == standard_accounts["service_revenue"].id

    def test_category_before_default(self, account_resolver, standard_accounts, org_id):
        resolved = account_resolver.resolve_account(
            AccountKind.REVENUE,
            ResolutionContext(org_id, category_account_id=standard_accounts["service_revenue"].id),
        )
        assert resolved == standard_accounts["service_revenue"].id

    def test_organization_default(self, account_resolver, standard_accounts, org_id):
        resolved = account_resolver.resolve_account(AccountKind.TAX_PAYABLE, ResolutionContext(org_id))
        assert resolved == standard_accounts["tax_payable"].id

    def test_kind_accepts_plain_string(self, account_resolver, standard_accounts, org_id):
        assert (
            account_resolver.resolve_account("CASH", ResolutionContext(org_id))
            == standard_accounts["cash"].id
        )


class TestResolutionFailures:

    def test_no_default_names_the_kind(self, account_resolver, chart_factory):
        org = uuid4()
        chart_factory(org, default_kinds=[AccountKind.CASH])
        with pytest.raises(NoDefaultAccountConfiguredError) as exc_info:
            account_resolver.resolve_account(AccountKind.TAX_PAYABLE, ResolutionContext(org))
        assert exc_info.value.kind == "TAX_PAYABLE"
        assert exc_info.value.organization_id == str(org)

    def test_unknown_override_does_not_fall_through(self, account_resolver, standard_accounts, org_id):
        with pytest.raises(UnknownAccountError):
            account_resolver.resolve_account(
                AccountKind.REVENUE, ResolutionContext(org_id, override_account_id=uuid4())
            )

    def test_foreign_override_rejected(self, account_resolver, chart_factory, standard_accounts, org_id):
        foreign = chart_factory(uuid4(), default_kinds=())
        with pytest.raises(UnknownAccountError):
            account_resolver.resolve_account(
                AccountKind.REVENUE,
                ResolutionContext(org_id, override_account_id=foreign["revenue"].id),
            )

    def test_inactive_default_rejected(
        self, account_resolver, chart_service, standard_accounts, org_id, test_actor_id
    ):
        chart_service.deactivate_account(org_id, standard_accounts["cash"].id, test_actor_id)
        with pytest.raises(InactiveAccountError):
            account_resolver.resolve_account(AccountKind.CASH, ResolutionContext(org_id))
        assert account_resolver.find_default_account(org_id, AccountKind.CASH) is None


class TestCodePrefixFallback:

    @pytest.fixture
    def unconfigured_org(self, chart_factory):
        org = uuid4()
        accounts = chart_factory(org, default_kinds=())
        return org, accounts

    def test_disabled_by_default(self, account_resolver, unconfigured_org):
        org, _ = unconfigured_org
        with pytest.raises(NoDefaultAccountConfiguredError):
            account_resolver.resolve_account(AccountKind.CASH, ResolutionContext(org))

    def test_enabled_fallback_logs_warning(self, session, unconfigured_org, captured_logs):
        org, accounts = unconfigured_org
        resolver = AccountResolver(
            session,
            FallbackPolicy(enabled=True, prefixes={AccountKind.CASH: ("10",)}),
        )
        assert resolver.resolve_account(AccountKind.CASH, ResolutionContext(org)) == accounts["cash"].id

        warnings = [r for r in captured_logs() if r["message"] == "account_resolved_by_code_prefix"]
        assert len(warnings) == 1
        assert warnings[0]["level"] == "WARNING"
        assert warnings[0]["account_code"] == "1000"

    def test_fallback_respects_account_type(self, session, unconfigured_org):
        org, _ = unconfigured_org
        # "1" prefixes only asset accounts; a liability kind must not match them
        resolver = AccountResolver(
            session,
            FallbackPolicy(enabled=True, prefixes={AccountKind.TAX_PAYABLE: ("1",)}),
        )
        with pytest.raises(NoDefaultAccountConfiguredError):
            resolver.resolve_account(AccountKind.TAX_PAYABLE, ResolutionContext(org))

    def test_configured_default_preferred_over_fallback(self, session, standard_accounts, org_id):
        resolver = AccountResolver(
            session,
            FallbackPolicy(enabled=True, prefixes={AccountKind.CASH: ("101",)}),
        )
        # The prefix would pick 1010; the configured default is 1000
        resolved = resolver.resolve_account(AccountKind.CASH, ResolutionContext(org_id))
        assert resolved == standard_accounts["cash"].id
