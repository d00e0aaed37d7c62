"""
Module: gl_kernel.models.journal
Responsibility: ORM persistence for GL transactions (journal headers) and
    their entries (journal lines).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Idempotency: UNIQUE(source_module, source_transaction_id).  One business
      event maps to at most one transaction.
    - Balance: |sum(debit) - sum(credit)| <= tolerance per transaction.  Checked
      by the posting engine before anything is written; is_balanced() here is
      a read-side convenience.
    - Immutability: once status is POSTED, corrections happen only through a
      new reversal transaction referencing this one via reversal_of_id.

Failure modes:
    - IntegrityError on a duplicate (source_module, source_transaction_id).
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gl_kernel.db.base import TrackedBase, UUIDString
from gl_kernel.db.types import DEFAULT_BALANCE_TOLERANCE, Money

if TYPE_CHECKING:
    from gl_kernel.models.account import Account


class TransactionStatus(str, Enum):
    """Lifecycle status of a GL transaction.

    Transitions are one-way: PENDING -> POSTED.
    """

    PENDING = "pending"
    POSTED = "posted"


class GLTransaction(TrackedBase):
    """
    GL transaction header, derived from exactly one business event.

    The (source_module, source_transaction_id) pair is the idempotency key.
    Entries are owned by the header and loaded eagerly in line_seq order.
    """

    __tablename__ = "transactions"

    __table_args__ = (
        UniqueConstraint(
            "source_module",
            "source_transaction_id",
            name="uq_transaction_source",
        ),
        Index("idx_transaction_date", "date"),
        Index("idx_transaction_status", "status"),
        Index("idx_transaction_reversal_of", "reversal_of_id"),
    )

    # Accounting date
    transaction_date: Mapped[date] = mapped_column(
        "date",
        Date,
        nullable=False,
    )

    source_module: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    source_transaction_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    source_transaction_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        default=TransactionStatus.PENDING.value,
        nullable=False,
    )

    branch_id: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    # Opaque producer metadata (named to avoid SQLAlchemy's reserved name)
    transaction_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    # If this is a reversal, points to the original transaction
    reversal_of_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    entries: Mapped[list["GLEntry"]] = relationship(
        back_populates="transaction",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GLEntry.line_seq",
    )

    def __repr__(self) -> str:
        return (
            f"<GLTransaction {self.source_module}/{self.source_transaction_id} "
            f"status={self.status}>"
        )

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def is_reversal(self) -> bool:
        return self.reversal_of_id is not None

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit for e in self.entries), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit for e in self.entries), Decimal("0"))

    def is_balanced(self, tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE) -> bool:
        """Read-side check that debits equal credits within tolerance."""
        return abs(self.total_debits - self.total_credits) <= tolerance


class GLEntry(TrackedBase):
    """
    One debit and/or credit line of a GL transaction.

    debit and credit are both non-negative.  Usually exactly one of them
    is non-zero, but both may be set.  account_code is denormalized from
    the account so that entries read without a join.
    """

    __tablename__ = "entries"

    __table_args__ = (
        Index("idx_entry_transaction", "transaction_id"),
        Index("idx_entry_account", "account_id"),
    )

    transaction_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("transactions.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    account_code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    debit: Mapped[Money] = mapped_column(
        default=Decimal("0"),
        nullable=False,
    )

    credit: Mapped[Money] = mapped_column(
        default=Decimal("0"),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    entry_metadata: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )

    # Order within the transaction
    line_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    transaction: Mapped["GLTransaction"] = relationship(
        back_populates="entries",
    )

    account: Mapped["Account"] = relationship(
        back_populates="entries",
    )

    def __repr__(self) -> str:
        return f"<GLEntry {self.account_code} Dr {self.debit} Cr {self.credit}>"

    @property
    def net(self) -> Decimal:
        """Balance effect of this entry (debit - credit)."""
        return self.debit - self.credit
