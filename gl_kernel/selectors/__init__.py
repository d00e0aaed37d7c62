"""Read-only selectors over the ledger."""

from gl_kernel.selectors.base import BaseSelector
from gl_kernel.selectors.ledger_selector import (
    AccountInfo,
    BalanceDrift,
    EntryInfo,
    LedgerSelector,
    TransactionInfo,
)

__all__ = [
    "BaseSelector",
    "LedgerSelector",
    "AccountInfo",
    "BalanceDrift",
    "EntryInfo",
    "TransactionInfo",
]
