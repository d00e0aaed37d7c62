"""
Module: gl_kernel.models.account
Responsibility: ORM persistence for the chart of accounts and the running
    balance of each account.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - code is globally unique (uq_account_code).  Concurrent provisioning of
      the same code is resolved by the registry re-reading the winner's row.
    - balance equals the sum of (debit - credit) over every posted entry on
      the account, whatever the account type.  Only the posting engine
      changes it, and only through an SQL-side increment.

Failure modes:
    - IntegrityError on duplicate code.
"""

from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gl_kernel.db.base import TrackedBase
from gl_kernel.db.types import Money

if TYPE_CHECKING:
    from gl_kernel.models.journal import GLEntry


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @classmethod
    def parse(cls, value: "AccountType | str") -> "AccountType":
        """Parse a type name case-insensitively ("Asset" == "asset").

        Raises:
            ValueError: If value names no account type.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown account type {value!r}; expected one of "
                f"{', '.join(t.value for t in cls)}"
            ) from None


class Account(TrackedBase):
    """
    Chart of accounts entry with its running balance.

    Accounts are never deleted.  Deactivation blocks direct use (manual
    journals that name the account by code) but leaves history and the
    lazily provisioned standard accounts untouched.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
        Index("idx_account_active", "is_active"),
    )

    # Human-readable account code, e.g. "1001"
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Signed running total of debit - credit
    balance: Mapped[Money] = mapped_column(
        default=Decimal("0"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    entries: Mapped[list["GLEntry"]] = relationship(
        back_populates="account",
        lazy="dynamic",
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"
