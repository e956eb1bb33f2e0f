"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen dataclasses of
``ledger_config.schema``.  Runtime callers use
``ledger_config.get_active_config()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown bucket, kind or subtype names  -> ``ValueError`` from the enums.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    CodePrefixFallback,
    LedgerConfiguration,
    ReportBucket,
    SubtypeMapping,
)
from ledger_kernel.db.types import BALANCE_TOLERANCE
from ledger_kernel.models.account import AccountSubtype
from ledger_kernel.models.default_account import AccountKind


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_subtype_mapping(data: dict[str, Any]) -> SubtypeMapping:
    buckets = {
        AccountSubtype(subtype).value: ReportBucket(bucket)
        for subtype, bucket in (data.get("buckets") or {}).items()
    }
    return SubtypeMapping(version=int(data["version"]), buckets=buckets)


def parse_code_prefix_fallback(data: dict[str, Any] | None) -> CodePrefixFallback:
    if not data:
        return CodePrefixFallback()
    prefixes = {
        AccountKind(kind): tuple(str(p) for p in values)
        for kind, values in (data.get("prefixes") or {}).items()
    }
    return CodePrefixFallback(enabled=bool(data.get("enabled", False)), prefixes=prefixes)


def parse_ledger_config(data: dict[str, Any]) -> LedgerConfiguration:
    """Parse a configuration set dict into a ``LedgerConfiguration``."""
    return LedgerConfiguration(
        name=data["name"],
        version=int(data.get("version", 1)),
        subtype_mapping=parse_subtype_mapping(data["subtype_mapping"]),
        default_account_codes={
            AccountKind(kind): str(code)
            for kind, code in (data.get("default_account_codes") or {}).items()
        },
        code_prefix_fallback=parse_code_prefix_fallback(data.get("code_prefix_fallback")),
        balance_tolerance=Decimal(str(data.get("balance_tolerance", BALANCE_TOLERANCE))),
        transaction_number_prefix=str(data.get("transaction_number_prefix", "JE")),
        default_inventory_location=str(data.get("default_inventory_location", "Main")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; identical data, identical hash."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
