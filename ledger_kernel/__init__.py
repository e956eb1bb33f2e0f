"""
Ledger Kernel

Double-entry posting core for a multi-tenant accounting application:
- Balanced debit/credit transactions, enforced at construction time
- Append-only history (reversals, never mutation)
- Trial balance and cumulative balance selectors
- Organization-scoped persistence for every table
"""

__version__ = "0.1.0"
