"""
Configuration Validator (``ledger_config.validator``).

Responsibility
--------------
Checks a ``LedgerConfiguration`` before it is used, and checks a chart of
accounts against a subtype mapping at chart-configuration time so that a
report never meets an account it cannot place.

Failure modes
-------------
* Errors (``ConfigValidationResult.errors``)  -> configuration MUST NOT be
  used; ``raise_if_invalid`` raises ``InvalidConfigurationError``.
* Warnings  -> usable but should be reviewed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable

from ledger_config.schema import LedgerConfiguration, SubtypeMapping
from ledger_kernel.exceptions import InvalidConfigurationError
from ledger_kernel.models.account import AccountSubtype


@dataclass
class ConfigValidationResult:
    """``is_valid`` only when ``errors`` is empty."""

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def add_error(self, msg: str) -> None:
        self.errors.append(msg)

    def add_warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def raise_if_invalid(self) -> None:
        if not self.is_valid:
            raise InvalidConfigurationError(list(self.errors))


def validate_configuration(config: LedgerConfiguration) -> ConfigValidationResult:
    """Run every structural check on a configuration set."""
    result = ConfigValidationResult()
    _validate_subtype_coverage(config.subtype_mapping, result)
    _validate_bucket_types(config.subtype_mapping, result)
    _validate_numbers(config, result)
    _validate_fallback(config, result)
    return result


def _validate_subtype_coverage(mapping: SubtypeMapping, result: ConfigValidationResult) -> None:
    for subtype in AccountSubtype:
        if subtype.value not in mapping.buckets:
            result.add_warning(f"Subtype {subtype.value} has no bucket in mapping v{mapping.version}")


def _validate_bucket_types(mapping: SubtypeMapping, result: ConfigValidationResult) -> None:
    # A subtype's bucket must accept at least one account type
    for subtype, bucket in mapping.buckets.items():
        if not any(mapping.accepts(bucket, t) for t in _types_for_subtype(subtype)):
            result.add_error(
                f"Subtype {subtype} mapped to {bucket.value}, which holds none of "
                f"its account types"
            )


def _types_for_subtype(subtype: str) -> tuple[str, ...]:
    types = {
        "CURRENT_ASSET": ("asset",),
        "BANK": ("asset",),
        "FIXED_ASSET": ("asset",),
        "OTHER_ASSET": ("asset",),
        "CURRENT_LIABILITY": ("liability",),
        "LONG_TERM_LIABILITY": ("liability",),
        "EQUITY": ("equity",),
        "RETAINED_EARNINGS": ("equity",),
        "REVENUE": ("revenue",),
        "OTHER_INCOME": ("revenue",),
        "COST_OF_GOODS_SOLD": ("expense", "cost_of_sales"),
        "OPERATING_EXPENSE": ("expense",),
        "OTHER_EXPENSE": ("expense",),
        "INTEREST": ("expense", "revenue"),
    }
    return types.get(subtype, ())


def _validate_numbers(config: LedgerConfiguration, result: ConfigValidationResult) -> None:
    if config.balance_tolerance <= Decimal("0"):
        result.add_error("balance_tolerance must be positive")
    if config.balance_tolerance > Decimal("0.01"):
        result.add_warning(f"balance_tolerance {config.balance_tolerance} is unusually large")
    if not config.transaction_number_prefix:
        result.add_error("transaction_number_prefix must not be empty")
    if not config.default_inventory_location:
        result.add_error("default_inventory_location must not be empty")


def _validate_fallback(config: LedgerConfiguration, result: ConfigValidationResult) -> None:
    fallback = config.code_prefix_fallback
    if fallback.enabled:
        result.add_warning("code_prefix_fallback is enabled; intended for legacy data only")
        if not fallback.prefixes:
            result.add_error("code_prefix_fallback is enabled but defines no prefixes")
    for kind, prefixes in fallback.prefixes.items():
        if any(not p for p in prefixes):
            result.add_error(f"Empty code prefix configured for {kind.value}")


def validate_chart_against_mapping(
    accounts: Iterable[Any],
    mapping: SubtypeMapping,
) -> ConfigValidationResult:
    """
    Check that every account lands in a bucket compatible with its type.

    ``accounts`` are objects with ``code``, ``account_type`` and
    ``account_subtype`` attributes (ORM rows or plain records).
    """
    result = ConfigValidationResult()
    for account in accounts:
        bucket = mapping.bucket_for(account.account_subtype, account.account_type)
        if bucket is None:
            result.add_error(
                f"Account {account.code}: subtype {account.account_subtype} is not mapped"
            )
        elif not mapping.accepts(bucket, account.account_type):
            result.add_error(
                f"Account {account.code}: {account.account_type} account cannot sit in "
                f"bucket {bucket.value}"
            )
    return result
