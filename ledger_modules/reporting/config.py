"""
Reporting Configuration Schema.

Presentation and period settings for financial statements.  Account
placement into report buckets is not configured here; it comes from the
versioned subtype mapping in ``ledger_config``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Self

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    ``fiscal_year_start_month``/``fiscal_year_start_day`` define the default
    fiscal year used by the balance sheet when the caller does not pass one.
    ``retained_earnings_markers`` identify equity accounts, by name, whose
    balance is presented as retained earnings instead of other equity.
    """

    # Default currency for reports
    default_currency: str = "USD"

    # Entity name shown on reports
    entity_name: str = "Company"

    # Whether to include accounts whose balance nets to zero
    include_zero_balances: bool = False

    # Group leaf accounts under their chart-of-accounts parent
    build_hierarchy: bool = True

    fiscal_year_start_month: int = 1
    fiscal_year_start_day: int = 1

    retained_earnings_markers: tuple[str, ...] = ("retained", "earnings")

    def __post_init__(self):
        if len(self.default_currency) != 3:
            raise ValueError("default_currency must be a 3-letter ISO 4217 code")
        # Raises ValueError for an impossible month/day
        date(2001, self.fiscal_year_start_month, self.fiscal_year_start_day)
        self.retained_earnings_markers = tuple(
            m.lower() for m in self.retained_earnings_markers
        )

    def fiscal_year_start_for(self, as_of_date: date) -> date:
        """Most recent fiscal year start on or before ``as_of_date``."""
        start = date(as_of_date.year, self.fiscal_year_start_month, self.fiscal_year_start_day)
        if start > as_of_date:
            start = date(
                as_of_date.year - 1, self.fiscal_year_start_month, self.fiscal_year_start_day
            )
        return start

    def is_retained_earnings_name(self, name: str) -> bool:
        lowered = name.lower()
        return any(marker in lowered for marker in self.retained_earnings_markers)

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "retained_earnings_markers" in data:
            data["retained_earnings_markers"] = tuple(data["retained_earnings_markers"])
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)
