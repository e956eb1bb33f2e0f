"""Pure domain types for the ledger kernel: clock and request DTOs."""
