"""
ReversalEngine -- compensating transactions for commissions and postings.

Responsibility:
    Posts reversals without touching the original rows.  Two modes:

    * ``reverse(event)`` for CommissionReversal / PaidCommissionReversal:
      the journal builder produces the mirror entries; this engine links the
      reversal to the original revenue posting (when one exists) and posts
      it under the event's own source id.
    * ``reverse_transaction(id, reason, actor)`` for any posted transaction:
      every non-zero entry is re-posted with debit and credit swapped.

Architecture position:
    Kernel > Services.  Uses JournalBuilder and PostingEngine; flushes within
    the caller's unit of work.

Invariants enforced:
    - Posted rows never change.  The only linkage is reversal_of_id on the
      new transaction.
    - Idempotency: a reversal has its own source id
      (``<original source id>-reversal``), so reversing twice returns the
      first reversal.
    - At most one linked reversal per original.  Later reversal attempts of
      any kind return it instead of posting a second one.
    - A full reversal nets every touched account back to its prior balance.

Failure modes:
    - TransactionNotFoundError: unknown original.
    - TransactionNotPostedError: original is still pending.
    - ReversalOfReversalError: original is itself a reversal, including an
      unlinked commission reversal.
"""

from dataclasses import replace
from uuid import UUID

from sqlalchemy.orm import Session

from gl_kernel.domain.clock import Clock, SystemClock
from gl_kernel.domain.entries import EntryLine, TransactionData
from gl_kernel.domain.events import CommissionReversal, EventKind, PaidCommissionReversal
from gl_kernel.exceptions import (
    ReversalOfReversalError,
    TransactionNotFoundError,
    TransactionNotPostedError,
)
from gl_kernel.logging_config import get_logger
from gl_kernel.models.journal import GLTransaction, TransactionStatus
from gl_kernel.services.base import BaseService
from gl_kernel.services.journal_builder import JournalBuilder
from gl_kernel.services.posting_engine import PostingEngine, PostingOutcome, PostingStatus
from gl_kernel.stores.transaction_store import TransactionStore

logger = get_logger("services.reversal")

REVERSAL_SUFFIX = "-reversal"
REVERSAL_TYPE_PREFIX = "reversal_"

_COMMISSION_REVERSAL_TYPES = frozenset(
    {EventKind.COMMISSION_REVERSAL.value, EventKind.PAID_COMMISSION_REVERSAL.value}
)


def is_reversal(transaction: GLTransaction) -> bool:
    """
    True for any reversal posting, including one never linked to its original.

    A commission reversal posted before its revenue existed has no
    reversal_of_id, so the type and the ``reversalOf`` metadata key count too.
    """
    if transaction.reversal_of_id is not None:
        return True
    if transaction.source_transaction_type in _COMMISSION_REVERSAL_TYPES:
        return True
    if transaction.source_transaction_type.startswith(REVERSAL_TYPE_PREFIX):
        return True
    return "reversalOf" in (transaction.transaction_metadata or {})


class ReversalEngine(BaseService):
    """Builds and posts reversal transactions."""

    def __init__(
        self,
        session: Session,
        builder: JournalBuilder,
        posting_engine: PostingEngine,
        clock: Clock | None = None,
    ):
        super().__init__(session)
        self._builder = builder
        self._posting = posting_engine
        self._clock = clock or SystemClock()
        self._transactions = TransactionStore(session)

    def reverse(self, event: CommissionReversal | PaidCommissionReversal) -> PostingOutcome:
        """
        Post a commission reversal.

        The reversal is linked to the commission's revenue posting when it
        exists.  A commission that was never posted to the GL still gets
        its reversal posted, unlinked (the caller decides what was booked).
        When the revenue posting already has a reversal of any kind, that
        reversal is returned as ALREADY_EXISTS.
        """
        data = self._builder.build(event)

        original = self._transactions.find_by_source(
            event.source_module, event.original_source_transaction_id
        )
        if original is not None:
            original = self._transactions.get(original.id, for_update=True)
            existing = self._transactions.find_reversal_of(original.id)
            if existing is not None:
                return self._already_reversed(original, existing, event.reason)

        metadata = dict(data.metadata or {})
        metadata["reversalOf"] = str(original.id) if original is not None else None
        data = replace(
            data,
            metadata=metadata,
            reversal_of_id=original.id if original is not None else None,
        )

        if original is None:
            logger.warning(
                "reversal_original_not_found",
                extra={
                    "source_module": event.source_module,
                    "original_source_transaction_id": event.original_source_transaction_id,
                },
            )

        outcome = self._posting.create_and_post_transaction(data, auto_post=True)
        self._log_reversal(outcome, original, event.reason)
        return outcome

    def reverse_transaction(
        self,
        transaction_id: UUID,
        reason: str,
        actor: str,
    ) -> PostingOutcome:
        """
        Reverse any posted transaction by swapping debits and credits.

        The original row is locked, so concurrent reversals of it serialize.
        An original that already has a reversal (generic or commission)
        returns that reversal as ALREADY_EXISTS.

        Raises:
            TransactionNotFoundError: If no transaction has this id.
            TransactionNotPostedError: If the transaction is still pending.
            ReversalOfReversalError: If the transaction is itself a reversal,
                linked or not.
        """
        original = self._transactions.get(transaction_id, for_update=True)
        if original is None:
            raise TransactionNotFoundError(str(transaction_id))
        if is_reversal(original):
            raise ReversalOfReversalError(
                str(original.id),
                str(original.reversal_of_id) if original.reversal_of_id else None,
            )
        if original.status != TransactionStatus.POSTED:
            raise TransactionNotPostedError(str(original.id), str(original.status))

        existing = self._transactions.find_reversal_of(original.id)
        if existing is not None:
            return self._already_reversed(original, existing, reason)

        data = self._build_generic_reversal(original, reason, actor)
        outcome = self._posting.create_and_post_transaction(data, auto_post=True)
        self._log_reversal(outcome, original, reason)
        return outcome

    def _already_reversed(
        self,
        original: GLTransaction,
        existing: GLTransaction,
        reason: str,
    ) -> PostingOutcome:
        outcome = PostingOutcome(existing.id, PostingStatus.ALREADY_EXISTS)
        self._log_reversal(outcome, original, reason)
        return outcome


    def _build_generic_reversal(
        self,
        original: GLTransaction,
        reason: str,
        actor: str,
    ) -> TransactionData:
        entries = tuple(
            EntryLine(
                account_id=entry.account_id,
                account_code=entry.account_code,
                debit=entry.credit,
                credit=entry.debit,
                description=f"Reversal: {entry.description}",
                metadata=entry.entry_metadata,
            )
            for entry in original.entries
            if entry.debit or entry.credit
        )
        return TransactionData(
            date=self._clock.today(),
            source_module=original.source_module,
            source_transaction_id=f"{original.source_transaction_id}{REVERSAL_SUFFIX}",
            source_transaction_type=f"{REVERSAL_TYPE_PREFIX}{original.source_transaction_type}",
            description=f"Reversal: {original.description} - {reason}",
            entries=entries,
            created_by=actor,
            branch_id=original.branch_id,
            metadata={
                "reason": reason,
                "reversalOf": str(original.id),
                "originalTransactionType": original.source_transaction_type,
            },
            reversal_of_id=original.id,
        )

    def _log_reversal(
        self,
        outcome: PostingOutcome,
        original: GLTransaction | None,
        reason: str,
    ) -> None:
        logger.info(
            "reversal_posted" if outcome.is_new else "reversal_already_exists",
            extra={
                "reversal_transaction_id": str(outcome.transaction_id),
                "original_transaction_id": str(original.id) if original else None,
                "reason": reason,
            },
        )
