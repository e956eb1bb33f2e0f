"""
AccountResolver -- decides which GL account a document line posts to.

Responsibility:
    Resolves an ``AccountKind`` to an account id for one organization, first
    match wins:

        1. explicit override on the line item / product
        2. category default carried by the line (e.g. product category)
        3. organization default (``default_accounts`` table)
        4. code-prefix heuristic -- ONLY when the configuration enables it,
           logged as a warning every time it is used

    If nothing matches, ``NoDefaultAccountConfiguredError`` names the kind so
    the configuration can be fixed.  The resolver never picks an arbitrary
    account.

Architecture position:
    Kernel > Services.  Read-only: issues SELECTs, never writes, so the
    posting path can call it any number of times inside one unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.exceptions import (
    InactiveAccountError,
    NoDefaultAccountConfiguredError,
    UnknownAccountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.default_account import AccountKind, DefaultAccount

logger = get_logger("services.account_resolver")


# Account types a heuristic match must have, per kind
KIND_ACCOUNT_TYPES: dict[AccountKind, tuple[AccountType, ...]] = {
    AccountKind.CASH: (AccountType.ASSET,),
    AccountKind.REVENUE: (AccountType.REVENUE,),
    AccountKind.COST_OF_GOODS_SOLD: (AccountType.COST_OF_SALES, AccountType.EXPENSE),
    AccountKind.TAX_PAYABLE: (AccountType.LIABILITY,),
    AccountKind.TAX_RECEIVABLE: (AccountType.ASSET,),
    AccountKind.INVENTORY_ASSET: (AccountType.ASSET,),
    AccountKind.ACCOUNTS_PAYABLE: (AccountType.LIABILITY,),
    AccountKind.EXPENSE: (AccountType.EXPENSE,),
}


@dataclass(frozen=True)
class FallbackPolicy:
    """Opt-in code-prefix heuristic used for legacy data migration."""

    enabled: bool = False
    prefixes: dict[AccountKind, tuple[str, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolutionContext:
    """Where to look before the organization default."""

    organization_id: UUID
    override_account_id: UUID | None = None
    category_account_id: UUID | None = None


class AccountResolver:
    """
    Pure lookup of GL accounts by kind.

    Contract:
        ``resolve_account`` either returns the id of an active account in
        the context's organization or raises.  Explicit ids that point to a
        missing, foreign or inactive account raise rather than fall through,
        so a typo never silently posts to the default.
    """

    def __init__(self, session: Session, fallback: FallbackPolicy | None = None):
        self._session = session
        self._fallback = fallback or FallbackPolicy()

    def resolve_account(self, kind: AccountKind, context: ResolutionContext) -> UUID:
        kind = AccountKind(kind)
        org = context.organization_id

        for source, explicit in (
            ("override", context.override_account_id),
            ("category", context.category_account_id),
        ):
            if explicit is not None:
                account = self.require_active_account(org, explicit)
                logger.debug(
                    "account_resolved",
                    extra={"kind": kind.value, "source": source, "account_id": account.id},
                )
                return account.id

        default = self._session.execute(
            select(DefaultAccount).where(
                DefaultAccount.organization_id == org,
                DefaultAccount.kind == kind.value,
            )
        ).scalar_one_or_none()
        if default is not None:
            account = self.require_active_account(org, default.account_id)
            logger.debug(
                "account_resolved",
                extra={"kind": kind.value, "source": "default", "account_id": account.id},
            )
            return account.id

        if self._fallback.enabled:
            account = self._resolve_by_prefix(kind, org)
            if account is not None:
                logger.warning(
                    "account_resolved_by_code_prefix",
                    extra={
                        "kind": kind.value,
                        "organization_id": org,
                        "account_id": account.id,
                        "account_code": account.code,
                    },
                )
                return account.id

        logger.error(
            "no_default_account_configured",
            extra={"kind": kind.value, "organization_id": org},
        )
        raise NoDefaultAccountConfiguredError(kind=kind.value, organization_id=str(org))

    def find_default_account(self, organization_id: UUID, kind: AccountKind) -> UUID | None:
        """Organization default for ``kind`` if one is configured and active, else None."""
        account_id = self._session.execute(
            select(DefaultAccount.account_id)
            .join(Account, Account.id == DefaultAccount.account_id)
            .where(
                DefaultAccount.organization_id == organization_id,
                DefaultAccount.kind == AccountKind(kind).value,
                Account.is_active.is_(True),
            )
        ).scalar_one_or_none()
        return account_id

    def require_active_account(self, organization_id: UUID, account_id: UUID) -> Account:
        """Load an account of the organization, failing if missing or inactive."""
        account = self._session.execute(
            select(Account).where(
                Account.id == account_id,
                Account.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if account is None:
            raise UnknownAccountError(
                account_id=str(account_id), organization_id=str(organization_id)
            )
        if not account.is_active:
            raise InactiveAccountError(account_id=str(account.id), account_code=account.code)
        return account

    def _resolve_by_prefix(self, kind: AccountKind, organization_id: UUID) -> Account | None:
        prefixes = self._fallback.prefixes.get(kind, ())
        if not prefixes:
            return None
        types = [t.value for t in KIND_ACCOUNT_TYPES[kind]]
        candidates = self._session.execute(
            select(Account)
            .where(
                Account.organization_id == organization_id,
                Account.is_active.is_(True),
                Account.account_type.in_(types),
            )
            .order_by(Account.code)
        ).scalars()
        for account in candidates:
            if any(account.code.startswith(p) for p in prefixes):
                return account
        return None
