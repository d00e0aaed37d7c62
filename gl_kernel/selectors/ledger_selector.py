"""
Module: gl_kernel.selectors.ledger_selector
Responsibility: Read-only lookups of transactions and accounts, balances
    recomputed from posted entries, and detection of drift between the
    stored running balance and the entries.
Architecture position: Kernel > Selectors.  May import from models/ and
    selectors/base.py.

Invariants checked:
    - Account.balance == sum(debit - credit) over the account's posted
      entries.  find_balance_drift() reports every account where that does
      not hold.

Failure modes:
    - Lookups return None for unknown ids, codes or source pairs.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select

from gl_kernel.models.account import Account, AccountType
from gl_kernel.models.journal import GLEntry, GLTransaction, TransactionStatus
from gl_kernel.selectors.base import BaseSelector

# Backends without native decimals (SQLite) round-trip through float.
DRIFT_TOLERANCE = Decimal("0.000001")


@dataclass(frozen=True)
class EntryInfo:
    """One stored entry of a transaction."""

    entry_id: UUID
    account_id: UUID
    account_code: str
    debit: Decimal
    credit: Decimal
    description: str
    metadata: dict[str, Any] | None
    line_seq: int

    @property
    def net(self) -> Decimal:
        return self.debit - self.credit


@dataclass(frozen=True)
class TransactionInfo:
    """A stored GL transaction with its entries."""

    transaction_id: UUID
    date: date
    source_module: str
    source_transaction_id: str
    source_transaction_type: str
    description: str
    status: TransactionStatus
    created_by: str | None
    branch_id: str | None
    metadata: dict[str, Any] | None
    reversal_of_id: UUID | None
    posted_at: datetime | None
    entries: tuple[EntryInfo, ...]

    @property
    def is_posted(self) -> bool:
        return self.status == TransactionStatus.POSTED

    @property
    def total_debits(self) -> Decimal:
        return sum((e.debit for e in self.entries), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        return sum((e.credit for e in self.entries), Decimal("0"))


@dataclass(frozen=True)
class AccountInfo:
    """A chart-of-accounts entry with its stored running balance."""

    account_id: UUID
    code: str
    name: str
    account_type: str
    balance: Decimal
    is_active: bool


@dataclass(frozen=True)
class BalanceDrift:
    """An account whose stored balance disagrees with its posted entries."""

    account_id: UUID
    account_code: str
    stored_balance: Decimal
    computed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.stored_balance - self.computed_balance


def to_account_info(account: Account) -> AccountInfo:
    return AccountInfo(
        account_id=account.id,
        code=account.code,
        name=account.name,
        account_type=AccountType.parse(account.account_type).value,
        balance=account.balance,
        is_active=account.is_active,
    )


def to_transaction_info(transaction: GLTransaction) -> TransactionInfo:
    return TransactionInfo(
        transaction_id=transaction.id,
        date=transaction.transaction_date,
        source_module=transaction.source_module,
        source_transaction_id=transaction.source_transaction_id,
        source_transaction_type=transaction.source_transaction_type,
        description=transaction.description,
        status=TransactionStatus(transaction.status),
        created_by=transaction.created_by,
        branch_id=transaction.branch_id,
        metadata=transaction.transaction_metadata,
        reversal_of_id=transaction.reversal_of_id,
        posted_at=transaction.posted_at,
        entries=tuple(
            EntryInfo(
                entry_id=entry.id,
                account_id=entry.account_id,
                account_code=entry.account_code,
                debit=entry.debit,
                credit=entry.credit,
                description=entry.description,
                metadata=entry.entry_metadata,
                line_seq=entry.line_seq,
            )
            for entry in sorted(transaction.entries, key=lambda e: e.line_seq)
        ),
    )


class LedgerSelector(BaseSelector):
    """Read side of the ledger."""

    def get_transaction(self, transaction_id: UUID) -> TransactionInfo | None:
        transaction = self.session.get(GLTransaction, transaction_id)
        return to_transaction_info(transaction) if transaction is not None else None

    def get_transaction_by_source(
        self,
        source_module: str,
        source_transaction_id: str,
    ) -> TransactionInfo | None:
        transaction = self.session.execute(
            select(GLTransaction).where(
                GLTransaction.source_module == source_module,
                GLTransaction.source_transaction_id == source_transaction_id,
            )
        ).scalar_one_or_none()
        return to_transaction_info(transaction) if transaction is not None else None

    def get_reversals_of(self, transaction_id: UUID) -> list[TransactionInfo]:
        rows = self.session.execute(
            select(GLTransaction)
            .where(GLTransaction.reversal_of_id == transaction_id)
            .order_by(GLTransaction.created_at)
        ).scalars()
        return [to_transaction_info(t) for t in rows]

    def get_account(self, code: str) -> AccountInfo | None:
        account = self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()
        return to_account_info(account) if account is not None else None

    def list_accounts(self) -> list[AccountInfo]:
        rows = self.session.execute(select(Account).order_by(Account.code)).scalars()
        return [to_account_info(a) for a in rows]

    def computed_balance(self, account_id: UUID) -> Decimal:
        """sum(debit - credit) over the account's posted entries."""
        total = self.session.execute(
            select(func.sum(GLEntry.debit - GLEntry.credit))
            .join(GLTransaction, GLEntry.transaction_id == GLTransaction.id)
            .where(
                GLEntry.account_id == account_id,
                GLTransaction.status == TransactionStatus.POSTED.value,
            )
        ).scalar()
        return Decimal(str(total)) if total is not None else Decimal("0")

    def find_balance_drift(
        self,
        tolerance: Decimal = DRIFT_TOLERANCE,
    ) -> list[BalanceDrift]:
        """
        Accounts whose stored balance differs from their posted entries.

        Postconditions: An empty list means every stored balance matches.
        """
        posted = (
            select(
                GLEntry.account_id.label("account_id"),
                func.sum(GLEntry.debit - GLEntry.credit).label("net"),
            )
            .join(GLTransaction, GLEntry.transaction_id == GLTransaction.id)
            .where(GLTransaction.status == TransactionStatus.POSTED.value)
            .group_by(GLEntry.account_id)
            .subquery()
        )
        rows = self.session.execute(
            select(Account.id, Account.code, Account.balance, posted.c.net)
            .outerjoin(posted, posted.c.account_id == Account.id)
            .order_by(Account.code)
        ).all()

        drifts = []
        for account_id, code, stored, net in rows:
            stored_balance = Decimal(str(stored)) if stored is not None else Decimal("0")
            computed = Decimal(str(net)) if net is not None else Decimal("0")
            if abs(stored_balance - computed) > tolerance:
                drifts.append(
                    BalanceDrift(
                        account_id=account_id,
                        account_code=code,
                        stored_balance=stored_balance,
                        computed_balance=computed,
                    )
                )
        return drifts
