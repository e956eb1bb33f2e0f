"""
Module: ledger_kernel.db.types
Responsibility: Annotated type aliases and rounding helpers for financial-grade
    column types.  Centralizes precision, rounding and balance tolerance so that
    every model, engine and service uses identical definitions.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and the engines.  MUST NOT import from any of those.

Invariants enforced:
    - No floats anywhere in the ledger.  All monetary amounts and quantities
      are Decimal with explicit precision.
    - round_money() is the ONLY sanctioned rounding function for financial
      values; it always uses ROUND_HALF_UP.
    - BALANCE_TOLERANCE is the fixed epsilon used when comparing debit and
      credit totals expressed in the base currency.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Annotated

from sqlalchemy import Numeric, String


# Monetary amount: 38 digits total, 9 decimal places
Money = Annotated[Decimal, Numeric(38, 9)]

# Exchange rate with 18 decimal places
Rate = Annotated[Decimal, Numeric(38, 18)]

# Stock quantity, same precision as money
Quantity = Annotated[Decimal, Numeric(38, 9)]

# ISO 4217 currency code (e.g., "USD", "UGX")
Currency = Annotated[str, String(3)]

# Short identifier strings
ShortCode = Annotated[str, String(50)]

# Long text for descriptions
LongText = Annotated[str, String(4000)]


MONEY_DECIMAL_PLACES = 9
RATE_DECIMAL_PLACES = 18
DISPLAY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP

# 1e-6 of the base-currency unit
BALANCE_TOLERANCE = Decimal("0.000001")

ZERO = Decimal("0")


def round_money(
    value: Decimal,
    decimal_places: int = DISPLAY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to the given number of decimal places.

    Args:
        value: The Decimal value to round.
        decimal_places: Number of decimal places to round to.
        rounding: Rounding mode (default: ROUND_HALF_UP).

    Returns:
        Rounded Decimal value.
    """
    quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def within_tolerance(
    left: Decimal,
    right: Decimal,
    tolerance: Decimal = BALANCE_TOLERANCE,
) -> bool:
    """True when |left - right| does not exceed the tolerance."""
    return abs(left - right) <= tolerance
