"""ORM models for the GL kernel."""

from gl_kernel.models.account import Account, AccountType
from gl_kernel.models.journal import GLEntry, GLTransaction, TransactionStatus

__all__ = [
    "Account",
    "AccountType",
    "GLTransaction",
    "GLEntry",
    "TransactionStatus",
]
