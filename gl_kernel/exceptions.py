"""
Typed exception hierarchy for the GL kernel.

Every error carries a machine-readable ``code`` class attribute and its
context as structured attributes, so callers catch by type and report
by code instead of parsing messages.

    GLKernelError (base)
    |
    +-- PostingError
    |   +-- UnbalancedEntriesError
    |   +-- TransactionNotFoundError
    |   +-- TransactionNotPostedError
    |   +-- DuplicateSourceEventError   (internal, mapped to already-exists)
    |
    +-- AccountError
    |   +-- AccountProvisioningError
    |   +-- AccountNotFoundError
    |   +-- AccountInactiveError
    |
    +-- ReversalError
    |   +-- ReversalOfReversalError
    |
    +-- PersistenceError

Retry guidance:
    - UnbalancedEntriesError: never retry, the input is wrong.
    - AccountProvisioningError, PersistenceError: safe to retry; posting
      is idempotent on (source_module, source_transaction_id).

Payload validation of events and TransactionData raises ValueError at
construction time.  That is a caller bug, not a ledger condition.
"""


class GLKernelError(Exception):
    """
    Base exception for all GL kernel errors.

    All subclasses must have a `code` class attribute.
    """

    code: str = "GL_KERNEL_ERROR"


# Posting-related exceptions


class PostingError(GLKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntriesError(PostingError):
    """Total debits and total credits differ by more than the tolerance."""

    code: str = "UNBALANCED_ENTRIES"

    def __init__(self, debits: str, credits: str, tolerance: str = "0.01"):
        self.debits = debits
        self.credits = credits
        self.tolerance = tolerance
        super().__init__(
            f"Transaction is unbalanced: debits={debits}, credits={credits} "
            f"(tolerance {tolerance})"
        )


class TransactionNotFoundError(PostingError):
    """Transaction with given ID was not found."""

    code: str = "TRANSACTION_NOT_FOUND"

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class TransactionNotPostedError(PostingError):
    """Only posted transactions can be reversed."""

    code: str = "TRANSACTION_NOT_POSTED"

    def __init__(self, transaction_id: str, status: str):
        self.transaction_id = transaction_id
        self.status = status
        super().__init__(
            f"Transaction {transaction_id} is {status}, only posted "
            f"transactions can be reversed"
        )


class DuplicateSourceEventError(PostingError):
    """
    A transaction already exists for (source_module, source_transaction_id).

    Raised by the transaction store when the unique constraint rejects a
    concurrent insert.  The posting engine always converts it into the
    already-exists success path.
    """

    code: str = "DUPLICATE_SOURCE_EVENT"

    def __init__(self, source_module: str, source_transaction_id: str):
        self.source_module = source_module
        self.source_transaction_id = source_transaction_id
        super().__init__(
            f"Transaction already exists for {source_module}/{source_transaction_id}"
        )


# Account-related exceptions


class AccountError(GLKernelError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountProvisioningError(AccountError):
    """An account could neither be found nor created."""

    code: str = "ACCOUNT_PROVISIONING_FAILED"

    def __init__(self, account_code: str, reason: str):
        self.account_code = account_code
        self.reason = reason
        super().__init__(f"Could not provision account {account_code}: {reason}")


class AccountNotFoundError(AccountError):
    """Account with given code does not exist."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account not found: {account_code}")


class AccountInactiveError(AccountError):
    """Account is deactivated and cannot be used directly."""

    code: str = "ACCOUNT_INACTIVE"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account {account_code} is inactive")


# Reversal-related exceptions


class ReversalError(GLKernelError):
    """Base exception for reversal-related errors."""

    code: str = "REVERSAL_ERROR"


class ReversalOfReversalError(ReversalError):
    """
    A reversal transaction cannot itself be reversed.

    ``reversal_of_id`` is None for a commission reversal that was posted
    before its original existed and so was never linked.
    """

    code: str = "REVERSAL_OF_REVERSAL"

    def __init__(self, transaction_id: str, reversal_of_id: str | None = None):
        self.transaction_id = transaction_id
        self.reversal_of_id = reversal_of_id
        reverses = reversal_of_id or "an unlinked original"
        super().__init__(
            f"Transaction {transaction_id} reverses {reverses} "
            f"and cannot itself be reversed"
        )


# Storage


class PersistenceError(GLKernelError):
    """The ledger store failed or is unavailable."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Ledger store failure during {operation}: {reason}")
