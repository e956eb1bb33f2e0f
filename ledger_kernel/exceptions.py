"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerKernelError:

    LedgerKernelError (base)
    |
    +-- PostingError
    |   +-- UnbalancedTransactionError
    |   +-- InvalidLegError
    |   +-- DuplicatePostingError
    |
    +-- AccountError
    |   +-- UnknownAccountError
    |   +-- InactiveAccountError
    |   +-- NoDefaultAccountConfiguredError
    |   +-- DuplicateAccountCodeError
    |   +-- AccountTypeImmutableError
    |   +-- InvalidAccountHierarchyError
    |
    +-- InventoryError
    |   +-- InsufficientStockError
    |   +-- InvalidQuantityError
    |
    +-- ReversalError
    |   +-- AlreadyReversedError
    |   +-- TransactionNotPostedError
    |
    +-- NotFoundError
    |   +-- TransactionNotFoundError
    |
    +-- ReportError
    |   +-- InvalidRangeError
    |   +-- UnmappedSubtypeError
    |
    +-- CurrencyError
    |   +-- CurrencyMismatchError
    |
    +-- ConfigurationError
    |   +-- InvalidConfigurationError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Posting         | UNBALANCED_TRANSACTION        | Debits != Credits for a currency
                | INVALID_LEG                   | < 2 legs, non-positive amount, bad rate
                | DUPLICATE_POSTING             | Source document already posted
----------------|-------------------------------|---------------------------------------
Account         | UNKNOWN_ACCOUNT               | Account missing / other organization
                | ACCOUNT_INACTIVE              | Account is deactivated
                | NO_DEFAULT_ACCOUNT_CONFIGURED | Resolution found no candidate
                | DUPLICATE_ACCOUNT_CODE        | Code already used in organization
                | ACCOUNT_TYPE_IMMUTABLE        | Type change on a referenced account
                | INVALID_ACCOUNT_HIERARCHY     | Parent missing or cycle
----------------|-------------------------------|---------------------------------------
Inventory       | INSUFFICIENT_STOCK            | Caller chose to block a backorder
                | INVALID_QUANTITY              | Non-positive quantity or cost
----------------|-------------------------------|---------------------------------------
Reversal        | ALREADY_REVERSED              | Transaction already has a reversal
                | TRANSACTION_NOT_POSTED        | Only POSTED transactions reverse
----------------|-------------------------------|---------------------------------------
Lookup          | TRANSACTION_NOT_FOUND         | No such transaction in organization
----------------|-------------------------------|---------------------------------------
Report          | INVALID_RANGE                 | end_date < start_date
                | UNMAPPED_SUBTYPE              | Subtype has no report bucket
----------------|-------------------------------|---------------------------------------
Currency        | CURRENCY_MISMATCH             | Cross-currency bank transfer
----------------|-------------------------------|---------------------------------------
Configuration   | INVALID_CONFIGURATION         | Config set failed validation
----------------|-------------------------------|---------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | Modifying a posted/immutable record

===============================================================================
HANDLING PATTERNS
===============================================================================

Catch by type and use the structured attributes, never parse messages:

    try:
        posting.post_transaction(request)
    except UnbalancedTransactionError as e:
        return {"error": e.code, "currency": e.currency, "imbalance": e.imbalance}

Every exception raised inside a unit of work causes the whole database
transaction to roll back.  No partial ledger state is ever committed.
"""

from decimal import Decimal


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedTransactionError(PostingError):
    """Debits do not equal credits for a currency (in base amounts)."""

    code: str = "UNBALANCED_TRANSACTION"

    def __init__(
        self,
        currency: str,
        debits: Decimal,
        credits: Decimal,
    ):
        self.currency = currency
        self.debits = debits
        self.credits = credits
        self.imbalance = debits - credits
        super().__init__(
            f"Transaction unbalanced in {currency}: "
            f"debits={debits}, credits={credits}, imbalance={self.imbalance}"
        )


class InvalidLegError(PostingError):
    """A leg (or the leg list) is structurally invalid."""

    code: str = "INVALID_LEG"

    def __init__(self, reason: str, leg_index: int | None = None):
        self.reason = reason
        self.leg_index = leg_index
        where = f" (leg {leg_index})" if leg_index is not None else ""
        super().__init__(f"Invalid leg{where}: {reason}")


class DuplicatePostingError(PostingError):
    """The source document has already been posted for this transaction type."""

    code: str = "DUPLICATE_POSTING"

    def __init__(self, reference_type: str, reference_id: str, transaction_type: str):
        self.reference_type = reference_type
        self.reference_id = reference_id
        self.transaction_type = transaction_type
        super().__init__(
            f"{transaction_type} already posted for {reference_type} {reference_id}"
        )


# Account-related exceptions


class AccountError(LedgerKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class UnknownAccountError(AccountError):
    """Account does not exist in the organization's chart of accounts."""

    code: str = "UNKNOWN_ACCOUNT"

    def __init__(self, account_id: str, organization_id: str):
        self.account_id = account_id
        self.organization_id = organization_id
        super().__init__(
            f"Account {account_id} not found for organization {organization_id}"
        )


class InactiveAccountError(AccountError):
    """Account exists but is deactivated."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_id: str, account_code: str):
        self.account_id = account_id
        self.account_code = account_code
        super().__init__(f"Account {account_code} ({account_id}) is inactive")


class NoDefaultAccountConfiguredError(AccountError):
    """No override, configured default or allowed fallback exists for a kind."""

    code: str = "NO_DEFAULT_ACCOUNT_CONFIGURED"

    def __init__(self, kind: str, organization_id: str):
        self.kind = kind
        self.organization_id = organization_id
        super().__init__(
            f"No default {kind} account configured for organization {organization_id}"
        )


class DuplicateAccountCodeError(AccountError):
    """Account code already exists in the organization."""

    code: str = "DUPLICATE_ACCOUNT_CODE"

    def __init__(self, account_code: str, organization_id: str):
        self.account_code = account_code
        self.organization_id = organization_id
        super().__init__(
            f"Account code {account_code} already exists for organization {organization_id}"
        )


class AccountTypeImmutableError(AccountError):
    """Account type cannot change once ledger entries reference the account."""

    code: str = "ACCOUNT_TYPE_IMMUTABLE"

    def __init__(self, account_id: str, current_type: str, requested_type: str):
        self.account_id = account_id
        self.current_type = current_type
        self.requested_type = requested_type
        super().__init__(
            f"Cannot change type of account {account_id} from {current_type} "
            f"to {requested_type}: account is referenced by ledger entries"
        )


class InvalidAccountHierarchyError(AccountError):
    """Parent account is missing, in another organization, or forms a cycle."""

    code: str = "INVALID_ACCOUNT_HIERARCHY"

    def __init__(self, account_id: str, parent_id: str, reason: str):
        self.account_id = account_id
        self.parent_id = parent_id
        self.reason = reason
        super().__init__(
            f"Invalid parent {parent_id} for account {account_id}: {reason}"
        )


# Inventory-related exceptions


class InventoryError(LedgerKernelError):
    """Base exception for inventory-related errors."""

    code: str = "INVENTORY_ERROR"


class InsufficientStockError(InventoryError):
    """
    Requested quantity exceeds what is available.

    Soft signal: the valuation service reports shortfalls in its result and
    only raises this when the caller asks it to block backorders.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        location: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.product_id = product_id
        self.location = location
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id} at {location}: "
            f"requested {requested}, available {available}"
        )


class InvalidQuantityError(InventoryError):
    """Quantity or unit cost is not acceptable for the operation."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, product_id: str, quantity: Decimal, reason: str):
        self.product_id = product_id
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity} for product {product_id}: {reason}")


# Reversal-related exceptions


class ReversalError(LedgerKernelError):
    """Base exception for reversal-related errors."""

    code: str = "REVERSAL_ERROR"


class AlreadyReversedError(ReversalError):
    """Transaction has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, transaction_id: str, reversal_id: str | None = None):
        self.transaction_id = transaction_id
        self.reversal_id = reversal_id
        super().__init__(f"Transaction {transaction_id} has already been reversed")


class TransactionNotPostedError(ReversalError):
    """Cannot reverse a transaction that is not posted."""

    code: str = "TRANSACTION_NOT_POSTED"

    def __init__(self, transaction_id: str, status: str):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(
            f"Cannot reverse transaction {transaction_id}: status is {status}, not posted"
        )


# Lookup exceptions


class NotFoundError(LedgerKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class TransactionNotFoundError(NotFoundError):
    """Transaction does not exist in the organization."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str, organization_id: str):
        self.transaction_id = transaction_id
        self.organization_id = organization_id
        super().__init__(
            f"Transaction {transaction_id} not found for organization {organization_id}"
        )


# Report-related exceptions


class ReportError(LedgerKernelError):
    """Base exception for report generation errors."""

    code: str = "REPORT_ERROR"


class InvalidRangeError(ReportError):
    """Report date range is malformed."""

    code: str = "INVALID_RANGE"

    def __init__(self, start_date, end_date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(f"Invalid date range: end {end_date} is before start {start_date}")


class UnmappedSubtypeError(ReportError):
    """An account subtype has no entry in the subtype-to-bucket mapping."""

    code: str = "UNMAPPED_SUBTYPE"

    def __init__(self, subtype: str, account_code: str | None = None, reason: str | None = None):
        self.subtype = subtype
        self.account_code = account_code
        self.reason = reason
        detail = f" on account {account_code}" if account_code else ""
        suffix = f": {reason}" if reason else ""
        super().__init__(f"Subtype {subtype!r}{detail} is not mapped{suffix}")


# Currency-related exceptions


class CurrencyError(LedgerKernelError):
    """Base exception for currency-related errors."""

    code: str = "CURRENCY_ERROR"


class CurrencyMismatchError(CurrencyError):
    """Operation requires a single currency but received several."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, received: str):
        self.expected = expected
        self.received = received
        super().__init__(f"Currency mismatch: expected {expected}, received {received}")


# Configuration exceptions


class ConfigurationError(LedgerKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class InvalidConfigurationError(ConfigurationError):
    """Configuration set failed validation."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(
            "Configuration validation failed:\n"
            + "\n".join(f"  - {e}" for e in self.errors)
        )


# Immutability exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempt to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")
