"""
ChartOfAccountsService -- configuration-time maintenance of the chart.

Responsibility:
    Creates, updates and deactivates accounts, records per-organization
    default accounts by kind, and checks the chart against a subtype->bucket
    mapping so bucketing problems surface when the chart is configured
    rather than when a report runs.

Invariants enforced:
    - (organization_id, code) unique -> DuplicateAccountCodeError.
    - account_type immutable once any ledger entry references the account
      -> AccountTypeImmutableError (the ORM listener is the backstop).
    - parent must belong to the same organization and must not create a
      cycle -> InvalidAccountHierarchyError.
    - Referenced accounts are deactivated, never deleted.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.exceptions import (
    AccountTypeImmutableError,
    DuplicateAccountCodeError,
    InvalidAccountHierarchyError,
    InvalidConfigurationError,
    UnknownAccountError,
    UnmappedSubtypeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountSubtype, AccountType
from ledger_kernel.models.default_account import AccountKind, DefaultAccount
from ledger_kernel.models.transaction import LedgerEntry
from ledger_kernel.services.account_resolver import KIND_ACCOUNT_TYPES
from ledger_kernel.services.base import SYSTEM_ACTOR_ID, BaseService

logger = get_logger("services.chart_of_accounts")

_UNSET = object()


class ChartOfAccountsService(BaseService):
    """Maintains accounts and default-account configuration."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(
        self,
        organization_id: UUID,
        code: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        account_subtype: AccountSubtype | str | None = None,
        parent_id: UUID | None = None,
    ) -> Account:
        account_type = AccountType(account_type)
        subtype = AccountSubtype(account_subtype).value if account_subtype else None

        exists = self.session.execute(
            select(Account.id).where(
                Account.organization_id == organization_id,
                Account.code == code,
            )
        ).first()
        if exists is not None:
            raise DuplicateAccountCodeError(
                account_code=code, organization_id=str(organization_id)
            )

        if parent_id is not None:
            self.get_account(organization_id, parent_id)

        account = Account(
            organization_id=organization_id,
            code=code,
            name=name,
            account_type=account_type.value,
            account_subtype=subtype,
            parent_id=parent_id,
            is_active=True,
            created_by_id=actor_id,
        )
        savepoint = self.session.begin_nested()
        try:
            self.session.add(account)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateAccountCodeError(
                account_code=code, organization_id=str(organization_id)
            ) from None

        logger.info(
            "account_created",
            extra={
                "organization_id": organization_id,
                "account_id": account.id,
                "account_code": code,
                "account_type": account_type.value,
            },
        )
        return account

    def update_account(
        self,
        organization_id: UUID,
        account_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        account_type: AccountType | str | None = None,
        account_subtype=_UNSET,
        parent_id=_UNSET,
    ) -> Account:
        """
        Update mutable attributes.

        ``account_subtype`` and ``parent_id`` accept ``None`` to clear them;
        omit them to leave them unchanged.
        """
        account = self.get_account(organization_id, account_id)

        if account_type is not None and AccountType(account_type) != account.account_type:
            if self.has_entries(account.id):
                raise AccountTypeImmutableError(
                    account_id=str(account.id),
                    current_type=str(account.account_type),
                    requested_type=AccountType(account_type).value,
                )
            account.account_type = AccountType(account_type).value

        if name is not None:
            account.name = name
        if account_subtype is not _UNSET:
            account.account_subtype = (
                AccountSubtype(account_subtype).value if account_subtype else None
            )
        if parent_id is not _UNSET:
            if parent_id is not None:
                self._check_parent(account, parent_id)
            account.parent_id = parent_id

        account.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "account_updated",
            extra={"account_id": account.id, "account_code": account.code},
        )
        return account

    def deactivate_account(
        self, organization_id: UUID, account_id: UUID, actor_id: UUID
    ) -> Account:
        account = self.get_account(organization_id, account_id)
        account.is_active = False
        account.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "account_deactivated",
            extra={"account_id": account.id, "account_code": account.code},
        )
        return account

    def get_account(self, organization_id: UUID, account_id: UUID) -> Account:
        account = self.session.execute(
            select(Account).where(
                Account.id == account_id,
                Account.organization_id == organization_id,
            )
        ).scalar_one_or_none()
        if account is None:
            raise UnknownAccountError(
                account_id=str(account_id), organization_id=str(organization_id)
            )
        return account

    def get_account_by_code(self, organization_id: UUID, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(
                Account.organization_id == organization_id,
                Account.code == code,
            )
        ).scalar_one_or_none()

    def has_entries(self, account_id: UUID) -> bool:
        count = self.session.execute(
            select(func.count(LedgerEntry.id)).where(LedgerEntry.account_id == account_id)
        ).scalar_one()
        return count > 0

    def _check_parent(self, account: Account, parent_id: UUID) -> None:
        if parent_id == account.id:
            raise InvalidAccountHierarchyError(
                account_id=str(account.id),
                parent_id=str(parent_id),
                reason="an account cannot be its own parent",
            )
        # Walk up from the proposed parent; reaching the account means a cycle
        seen: set[UUID] = set()
        current: UUID | None = parent_id
        while current is not None and current not in seen:
            seen.add(current)
            node = self.session.execute(
                select(Account).where(
                    Account.id == current,
                    Account.organization_id == account.organization_id,
                )
            ).scalar_one_or_none()
            if node is None:
                raise InvalidAccountHierarchyError(
                    account_id=str(account.id),
                    parent_id=str(parent_id),
                    reason="parent account not found in organization",
                )
            if node.parent_id == account.id:
                raise InvalidAccountHierarchyError(
                    account_id=str(account.id),
                    parent_id=str(parent_id),
                    reason="parent assignment would create a cycle",
                )
            current = node.parent_id

    # ------------------------------------------------------------------
    # Default accounts
    # ------------------------------------------------------------------

    def set_default_account(
        self,
        organization_id: UUID,
        kind: AccountKind | str,
        account_id: UUID,
        actor_id: UUID | None = None,
    ) -> DefaultAccount:
        """Create or replace the organization default for ``kind``."""
        kind = AccountKind(kind)
        account = self.get_account(organization_id, account_id)
        allowed = {t.value for t in KIND_ACCOUNT_TYPES[kind]}
        if account.account_type not in allowed:
            raise InvalidConfigurationError(
                [
                    f"{kind.value} default must be one of {sorted(allowed)}, "
                    f"account {account.code} is {account.account_type}"
                ]
            )

        default = self.session.execute(
            select(DefaultAccount).where(
                DefaultAccount.organization_id == organization_id,
                DefaultAccount.kind == kind.value,
            )
        ).scalar_one_or_none()
        if default is None:
            default = DefaultAccount(
                organization_id=organization_id,
                kind=kind.value,
                account_id=account.id,
                created_by_id=actor_id or SYSTEM_ACTOR_ID,
            )
            self.session.add(default)
        else:
            default.account_id = account.id
            default.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "default_account_set",
            extra={
                "organization_id": organization_id,
                "kind": kind.value,
                "account_code": account.code,
            },
        )
        return default

    def seed_defaults_from_config(
        self,
        organization_id: UUID,
        config,
        actor_id: UUID | None = None,
    ) -> dict[AccountKind, UUID]:
        """
        Create default-account rows from ``config.default_account_codes``.

        Every configured code must exist in the organization's chart; missing
        codes are reported together in one InvalidConfigurationError.
        """
        errors: list[str] = []
        resolved: dict[AccountKind, Account] = {}
        for kind, code in config.default_account_codes.items():
            account = self.get_account_by_code(organization_id, code)
            if account is None:
                errors.append(f"{AccountKind(kind).value}: account code {code!r} not in chart")
            else:
                resolved[AccountKind(kind)] = account
        if errors:
            raise InvalidConfigurationError(errors)

        return {
            kind: self.set_default_account(organization_id, kind, account.id, actor_id).account_id
            for kind, account in resolved.items()
        }

    # ------------------------------------------------------------------
    # Subtype mapping
    # ------------------------------------------------------------------

    def validate_subtype_mapping(self, organization_id: UUID, mapping) -> int:
        """
        Check every active account against a subtype->bucket mapping.

        ``mapping`` provides ``bucket_for(subtype, account_type)`` and
        ``accepts(bucket, account_type)``.  Returns the number of accounts
        checked.

        Raises:
            UnmappedSubtypeError: on the first account whose subtype has no
                bucket, or maps to a bucket incompatible with its type.
        """
        accounts = self.session.execute(
            select(Account)
            .where(
                Account.organization_id == organization_id,
                Account.is_active.is_(True),
            )
            .order_by(Account.code)
        ).scalars().all()

        for account in accounts:
            bucket = mapping.bucket_for(account.account_subtype, account.account_type)
            if bucket is None:
                raise UnmappedSubtypeError(
                    subtype=str(account.account_subtype),
                    account_code=account.code,
                    reason="no bucket configured",
                )
            if not mapping.accepts(bucket, account.account_type):
                raise UnmappedSubtypeError(
                    subtype=str(account.account_subtype),
                    account_code=account.code,
                    reason=f"bucket {bucket} not valid for {account.account_type} accounts",
                )

        logger.info(
            "subtype_mapping_validated",
            extra={
                "organization_id": organization_id,
                "mapping_version": getattr(mapping, "version", None),
                "account_count": len(accounts),
            },
        )
        return len(accounts)
