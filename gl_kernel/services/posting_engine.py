"""
PostingEngine -- the only writer of GL transactions, entries and balances.

Responsibility:
    Validates that a TransactionData balances, enforces idempotency on
    (source_module, source_transaction_id), persists the header and its
    entries and applies each entry's (debit - credit) to its account
    balance.  Also promotes pending transactions to posted.

Architecture position:
    Kernel > Services.  Flushes within the caller's unit of work; the
    caller commits (GLPostingService via session_scope()).

Invariants enforced:
    - Balance: |sum(debit) - sum(credit)| <= tolerance, checked before any
      write.  An unbalanced transaction leaves no rows behind.
    - Idempotency: one transaction per source pair.  A repeat, including one
      that loses a concurrent insert race, returns the existing id.
    - Balance deltas are applied exactly once per transaction, at the moment
      it becomes posted, in account-id order.

Failure modes:
    - UnbalancedEntriesError: debits and credits differ.  Never retried.
    - AccountNotFoundError: an entry references an unknown account id.
    - TransactionNotFoundError: post_pending_transaction() on an unknown id.
    - PersistenceError: the unique constraint rejected the header but no
      existing row is visible (should not happen at READ COMMITTED).
"""

import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy.orm import Session

from gl_kernel.db.types import DEFAULT_BALANCE_TOLERANCE
from gl_kernel.domain.clock import Clock, SystemClock
from gl_kernel.domain.entries import TransactionData
from gl_kernel.exceptions import (
    AccountNotFoundError,
    DuplicateSourceEventError,
    PersistenceError,
    TransactionNotFoundError,
    UnbalancedEntriesError,
)
from gl_kernel.logging_config import LogContext, get_logger
from gl_kernel.models.journal import GLTransaction, TransactionStatus
from gl_kernel.services.base import BaseService
from gl_kernel.stores.account_store import AccountStore
from gl_kernel.stores.transaction_store import TransactionStore

logger = get_logger("services.posting_engine")


class PostingStatus(str, Enum):
    """Outcome of a posting engine write."""

    POSTED = "posted"
    PENDING = "pending"
    ALREADY_EXISTS = "already_exists"
    ALREADY_POSTED = "already_posted"


@dataclass(frozen=True)
class PostingOutcome:
    """Transaction id and what the engine did with it."""

    transaction_id: UUID
    status: PostingStatus

    @property
    def is_new(self) -> bool:
        return self.status in (PostingStatus.POSTED, PostingStatus.PENDING)


class PostingEngine(BaseService):
    """Validates, persists and posts GL transactions."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        balance_tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._tolerance = balance_tolerance
        self._accounts = AccountStore(session)
        self._transactions = TransactionStore(session)

    def create_and_post_transaction(
        self,
        data: TransactionData,
        auto_post: bool = True,
    ) -> PostingOutcome:
        """
        Persist a GL transaction, posting it immediately unless auto_post is False.

        Preconditions:
            - Every entry's account_id references an existing account.
        Postconditions:
            - On POSTED: header, entries and balance deltas are flushed.
            - On PENDING: header and entries are flushed; balances untouched.
            - On ALREADY_EXISTS: nothing was written.

        Raises:
            UnbalancedEntriesError: If debits and credits differ by more
                than the balance tolerance.
            AccountNotFoundError: If an entry references an unknown account.
        """
        t0 = time.monotonic()
        debits = data.total_debits
        credits = data.total_credits
        balanced = data.is_balanced(self._tolerance)

        logger.info(
            "balance_validated",
            extra={
                "source_module": data.source_module,
                "source_transaction_id": data.source_transaction_id,
                "sum_debit": str(debits),
                "sum_credit": str(credits),
                "balanced": balanced,
            },
        )
        if not balanced:
            logger.warning(
                "unbalanced_transaction",
                extra={
                    "source_module": data.source_module,
                    "source_transaction_id": data.source_transaction_id,
                    "imbalance": str(debits - credits),
                },
            )
            raise UnbalancedEntriesError(str(debits), str(credits), str(self._tolerance))

        existing = self._transactions.find_by_source(
            data.source_module, data.source_transaction_id
        )
        if existing is not None:
            return self._already_exists(existing)

        self._check_accounts(data)

        status = TransactionStatus.POSTED if auto_post else TransactionStatus.PENDING
        now = self._clock.now()
        try:
            transaction = self._transactions.insert_header(
                data, status, now if auto_post else None
            )
        except DuplicateSourceEventError as exc:
            logger.warning(
                "concurrent_insert_conflict",
                extra={
                    "source_module": data.source_module,
                    "source_transaction_id": data.source_transaction_id,
                },
            )
            winner = self._transactions.find_by_source(
                data.source_module, data.source_transaction_id
            )
            if winner is None:
                raise PersistenceError(
                    "create_and_post_transaction",
                    f"duplicate source {data.source_module}/"
                    f"{data.source_transaction_id} rejected but not found",
                ) from exc
            return self._already_exists(winner)

        self._transactions.insert_entries(transaction, data)

        if auto_post:
            self._apply_deltas(data.balance_deltas())

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        with LogContext.bind(transaction_id=str(transaction.id)):
            logger.info(
                "transaction_posted" if auto_post else "transaction_created_pending",
                extra={
                    "source_module": data.source_module,
                    "source_transaction_id": data.source_transaction_id,
                    "source_transaction_type": data.source_transaction_type,
                    "entry_count": len(data.entries),
                    "total_debits": str(debits),
                    "duration_ms": duration_ms,
                },
            )
        return PostingOutcome(
            transaction_id=transaction.id,
            status=PostingStatus.POSTED if auto_post else PostingStatus.PENDING,
        )

    def post_pending_transaction(self, transaction_id: UUID) -> PostingOutcome:
        """
        Transition a pending transaction to posted and apply its balances.

        The header row is locked first, so two concurrent calls apply the
        deltas once.  Posting an already posted transaction is a no-op.

        Raises:
            TransactionNotFoundError: If no transaction has this id.
        """
        transaction = self._transactions.get(transaction_id, for_update=True)
        if transaction is None:
            raise TransactionNotFoundError(str(transaction_id))

        if transaction.status == TransactionStatus.POSTED:
            logger.info(
                "transaction_already_posted",
                extra={"transaction_id": str(transaction_id)},
            )
            return PostingOutcome(transaction.id, PostingStatus.ALREADY_POSTED)

        deltas: dict[UUID, Decimal] = {}
        for entry in transaction.entries:
            deltas[entry.account_id] = deltas.get(entry.account_id, Decimal("0")) + entry.net
        self._apply_deltas(deltas)
        self._transactions.mark_posted(transaction, self._clock.now())

        logger.info(
            "transaction_posted",
            extra={
                "transaction_id": str(transaction_id),
                "source_module": transaction.source_module,
                "source_transaction_id": transaction.source_transaction_id,
                "entry_count": len(transaction.entries),
                "from_pending": True,
            },
        )
        return PostingOutcome(transaction.id, PostingStatus.POSTED)

    # -- internals ---------------------------------------------------------------

    def _already_exists(self, existing: GLTransaction) -> PostingOutcome:
        logger.info(
            "idempotent_duplicate",
            extra={
                "transaction_id": str(existing.id),
                "source_module": existing.source_module,
                "source_transaction_id": existing.source_transaction_id,
            },
        )
        return PostingOutcome(existing.id, PostingStatus.ALREADY_EXISTS)

    def _check_accounts(self, data: TransactionData) -> None:
        wanted = list({entry.account_id for entry in data.entries})
        found = self._accounts.get_many(wanted)
        for entry in data.entries:
            if entry.account_id not in found:
                raise AccountNotFoundError(entry.account_code)

    def _apply_deltas(self, deltas: dict[UUID, Decimal]) -> None:
        # Fixed lock order across concurrent postings.
        for account_id in sorted(deltas, key=str):
            delta = deltas[account_id]
            if delta:
                self._accounts.apply_balance_delta(account_id, delta)
