"""
ledger_config -- single public entrypoint for organization configuration.

Responsibility:
    ``get_active_config()`` is the way runtime code obtains configuration:
    the subtype->bucket mapping used by reports, the account codes used to
    seed default accounts, the opt-in code-prefix fallback and numeric
    settings.  YAML loading is internal tooling.

Architecture position:
    Sits above ``ledger_kernel`` and below ``ledger_modules``.  The kernel
    never imports from this package; services receive plain values
    (``FallbackPolicy``, tolerances, prefixes) built from it.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``InvalidConfigurationError`` -- the set failed validation.
"""

from __future__ import annotations

from pathlib import Path

from ledger_config.loader import load_yaml_file, parse_ledger_config
from ledger_config.schema import (
    CodePrefixFallback,
    LedgerConfiguration,
    ReportBucket,
    SubtypeMapping,
)
from ledger_config.validator import (
    ConfigValidationResult,
    validate_chart_against_mapping,
    validate_configuration,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"

__all__ = [
    "CodePrefixFallback",
    "ConfigValidationResult",
    "LedgerConfiguration",
    "ReportBucket",
    "SubtypeMapping",
    "get_active_config",
    "load_yaml_file",
    "parse_ledger_config",
    "validate_chart_against_mapping",
    "validate_configuration",
]


def get_active_config(
    config_dir: Path | None = None,
    name: str = "default",
) -> LedgerConfiguration:
    """
    Load, validate and return the named configuration set.

    Args:
        config_dir: Directory holding ``<name>.yaml`` files.  Defaults to
            ``ledger_config/sets/``.
        name: Configuration set name.

    Raises:
        FileNotFoundError: If ``<name>.yaml`` does not exist.
        InvalidConfigurationError: If validation reports errors.
    """
    path = (config_dir or _DEFAULT_CONFIG_DIR) / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = parse_ledger_config(load_yaml_file(path))

    validation = validate_configuration(config)
    for warning in validation.warnings:
        logger.warning("ledger_config_warning", extra={"config_name": name, "detail": warning})
    validation.raise_if_invalid()

    logger.info(
        "ledger_config_loaded",
        extra={
            "config_name": config.name,
            "config_version": config.version,
            "mapping_version": config.subtype_mapping.version,
            "checksum": config.checksum,
            "fallback_enabled": config.code_prefix_fallback.enabled,
        },
    )
    return config
