"""
Journal value objects -- the balanced transaction handed to the posting engine.

Responsibility:
    Defines ``EntryLine`` (one debit and/or credit against a resolved
    account) and ``TransactionData`` (header fields plus lines).  Journal
    builders produce these; the posting engine validates and persists them.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Failure modes:
    - ValueError on a negative or non-numeric debit/credit.
    - ValueError on a TransactionData without lines or without a source key.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from gl_kernel.db.types import DEFAULT_BALANCE_TOLERANCE, ZERO, to_money


@dataclass(frozen=True)
class EntryLine:
    """
    A single line of a GL transaction, already resolved to an account.

    Guarantees:
        - ``debit`` and ``credit`` are non-negative Decimals.
        - Instance is frozen / immutable after construction.

    Attributes:
        account_id: Resolved account UUID
        account_code: Account code (denormalized onto the stored entry)
        debit: Debit amount (0 if this is a credit line)
        credit: Credit amount (0 if this is a debit line)
        description: Line description
        metadata: Opaque per-line metadata
    """

    account_id: UUID
    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str = ""
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "debit", to_money(self.debit))
        object.__setattr__(self, "credit", to_money(self.credit))
        if self.debit < ZERO or self.credit < ZERO:
            raise ValueError(
                f"Entry amounts must be non-negative "
                f"(account {self.account_code}: debit={self.debit}, credit={self.credit})"
            )

    @classmethod
    def debit_line(
        cls,
        account_id: UUID,
        account_code: str,
        amount: Decimal | int | str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> "EntryLine":
        """Create a debit line."""
        return cls(
            account_id=account_id,
            account_code=account_code,
            debit=to_money(amount),
            credit=ZERO,
            description=description,
            metadata=metadata,
        )

    @classmethod
    def credit_line(
        cls,
        account_id: UUID,
        account_code: str,
        amount: Decimal | int | str,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> "EntryLine":
        """Create a credit line."""
        return cls(
            account_id=account_id,
            account_code=account_code,
            debit=ZERO,
            credit=to_money(amount),
            description=description,
            metadata=metadata,
        )

    @property
    def net(self) -> Decimal:
        """Balance effect of the line (debit - credit)."""
        return self.debit - self.credit


@dataclass(frozen=True)
class TransactionData:
    """
    A complete GL transaction ready for posting.

    Contract:
        (source_module, source_transaction_id) identifies the business event
        and is the idempotency key.  Balance is NOT enforced here; the
        posting engine rejects unbalanced data with a typed error so that
        the failure is reportable by code.
    """

    date: date
    source_module: str
    source_transaction_id: str
    source_transaction_type: str
    description: str
    entries: tuple[EntryLine, ...]
    created_by: str
    branch_id: str | None = None
    metadata: dict[str, Any] | None = None
    reversal_of_id: UUID | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.entries, tuple):
            object.__setattr__(self, "entries", tuple(self.entries))
        if not self.entries:
            raise ValueError("TransactionData must have at least one entry")
        if not self.source_module or not self.source_transaction_id:
            raise ValueError(
                "TransactionData requires source_module and source_transaction_id"
            )

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit for e in self.entries), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit for e in self.entries), ZERO)

    @property
    def imbalance(self) -> Decimal:
        """Absolute difference between total debits and total credits."""
        return abs(self.total_debits - self.total_credits)

    def is_balanced(self, tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE) -> bool:
        return self.imbalance <= tolerance

    def balance_deltas(self) -> dict[UUID, Decimal]:
        """Net balance change per account, in first-seen account order."""
        deltas: dict[UUID, Decimal] = {}
        for entry in self.entries:
            deltas[entry.account_id] = deltas.get(entry.account_id, ZERO) + entry.net
        return deltas
