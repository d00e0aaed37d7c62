"""Repositories over the ledger tables."""

from gl_kernel.stores.account_store import AccountStore
from gl_kernel.stores.transaction_store import TransactionStore

__all__ = [
    "AccountStore",
    "TransactionStore",
]
