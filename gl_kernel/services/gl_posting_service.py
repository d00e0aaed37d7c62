"""
GLPostingService -- the library boundary used by business-event producers.

Responsibility:
    One public method per operation.  Every call runs in its own unit of
    work (``session_scope``): the journal builder, account registry, posting
    engine and reversal engine all share that session, and the whole call
    commits or rolls back as one.

Architecture position:
    Kernel > Services -- the outermost kernel layer.  Constructed with an
    injected ``sessionmaker``; there is no global client.

Error policy:
    Typed errors (GLKernelError subclasses) propagate to the caller.
    SQLAlchemyError is wrapped in PersistenceError.  With ``best_effort``
    the failure is logged as ``gl_posting_failed`` and returned as a FAILED
    PostingResult instead.  ``best_effort=None`` uses the configured default.
    ValueError from malformed input is never converted.

Usage:
    service = GLPostingService(get_session_factory())
    result = service.create_commission_gl_entries(CommissionRevenue(...))
    if result.is_success:
        ...
"""

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from gl_kernel.config import GLConfig, get_active_config
from gl_kernel.db.engine import session_scope
from gl_kernel.domain.clock import Clock, SystemClock
from gl_kernel.domain.entries import TransactionData
from gl_kernel.domain.events import (
    BusinessEvent,
    CommissionPayment,
    CommissionReversal,
    CommissionRevenue,
    ExpenseAccrual,
    MoMoCashIn,
    MoMoCashOut,
    PaidCommissionReversal,
)
from gl_kernel.exceptions import GLKernelError, PersistenceError
from gl_kernel.logging_config import LogContext, get_logger
from gl_kernel.selectors.ledger_selector import (
    AccountInfo,
    BalanceDrift,
    LedgerSelector,
    TransactionInfo,
    to_account_info,
)
from gl_kernel.services.account_registry import AccountRegistry
from gl_kernel.services.journal_builder import JournalBuilder
from gl_kernel.services.posting_engine import PostingEngine, PostingOutcome
from gl_kernel.services.reversal_engine import ReversalEngine

logger = get_logger("services.gl_posting")

T = TypeVar("T")


class ResultStatus(str, Enum):
    """Status of a facade posting call."""

    POSTED = "posted"
    PENDING = "pending"
    ALREADY_EXISTS = "already_exists"
    ALREADY_POSTED = "already_posted"
    FAILED = "failed"


@dataclass(frozen=True)
class PostingResult:
    """
    Result of a GLPostingService posting operation.

    Contains the status and either the transaction id or error info.
    """

    status: ResultStatus
    transaction_id: UUID | None = None
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def from_outcome(cls, outcome: PostingOutcome) -> "PostingResult":
        return cls(
            status=ResultStatus(outcome.status.value),
            transaction_id=outcome.transaction_id,
        )

    @classmethod
    def failure(cls, error_code: str, message: str) -> "PostingResult":
        """Create a failure result (best-effort mode only)."""
        return cls(
            status=ResultStatus.FAILED,
            error_code=error_code,
            error_message=message,
        )

    @property
    def is_success(self) -> bool:
        return self.status != ResultStatus.FAILED

    @property
    def is_new(self) -> bool:
        return self.status in (ResultStatus.POSTED, ResultStatus.PENDING)


class _UnitOfWork:
    """The collaborators of one call, bound to one session."""

    def __init__(self, session: Session, config: GLConfig, clock: Clock):
        self.session = session
        self.registry = AccountRegistry(session)
        self.builder = JournalBuilder(self.registry, config, clock)
        self.posting = PostingEngine(session, clock, config.balance_tolerance)
        self.reversals = ReversalEngine(session, self.builder, self.posting, clock)
        self.selector = LedgerSelector(session)


class GLPostingService:
    """Posts business events to the general ledger."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: GLConfig | None = None,
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> GLConfig:
        return self._config

    # -- posting ----------------------------------------------------------------

    def create_and_post_transaction(
        self,
        data: TransactionData,
        auto_post: bool = True,
        best_effort: bool | None = None,
    ) -> PostingResult:
        """Post pre-built TransactionData (entries already resolved to accounts)."""
        return self._post(
            "create_and_post_transaction",
            lambda uow: uow.posting.create_and_post_transaction(data, auto_post),
            best_effort,
            source_module=data.source_module,
            source_transaction_id=data.source_transaction_id,
            actor=data.created_by,
        )

    def create_commission_gl_entries(
        self, event: CommissionRevenue, best_effort: bool | None = None
    ) -> PostingResult:
        return self._post_event(event, best_effort)

    def create_commission_payment_gl_entries(
        self, event: CommissionPayment, best_effort: bool | None = None
    ) -> PostingResult:
        return self._post_event(event, best_effort)

    def create_commission_reversal_gl_entries(
        self, event: CommissionReversal, best_effort: bool | None = None
    ) -> PostingResult:
        return self._post_event(event, best_effort)

    def create_paid_commission_reversal_gl_entries(
        self, event: PaidCommissionReversal, best_effort: bool | None = None
    ) -> PostingResult:
        return self._post_event(event, best_effort)

    def create_expense_gl_entries(
        self, event: ExpenseAccrual, best_effort: bool | None = None
    ) -> PostingResult:
        return self._post_event(event, best_effort)

    def create_momo_gl_entries(
        self, event: MoMoCashIn | MoMoCashOut, best_effort: bool | None = None
    ) -> PostingResult:
        return self._post_event(event, best_effort)

    def post_event(
        self, event: BusinessEvent, best_effort: bool | None = None
    ) -> PostingResult:
        """Single entry point for any event variant."""
        return self._post_event(event, best_effort)

    def reverse_transaction(
        self,
        transaction_id: UUID | str,
        reason: str,
        actor: str,
        best_effort: bool | None = None,
    ) -> PostingResult:
        """Reverse any posted transaction by swapping its debits and credits."""
        txn_id = _as_uuid(transaction_id)
        return self._post(
            "reverse_transaction",
            lambda uow: uow.reversals.reverse_transaction(txn_id, reason, actor),
            best_effort,
            transaction_id=str(txn_id),
            actor=actor,
        )

    def post_pending_transaction(
        self,
        transaction_id: UUID | str,
        best_effort: bool | None = None,
    ) -> PostingResult:
        txn_id = _as_uuid(transaction_id)
        return self._post(
            "post_pending_transaction",
            lambda uow: uow.posting.post_pending_transaction(txn_id),
            best_effort,
            transaction_id=str(txn_id),
        )

    # -- accounts ---------------------------------------------------------------

    def get_or_create_account(
        self,
        code: str,
        name: str,
        account_type: str,
        created_by: str | None = None,
    ) -> AccountInfo:
        return self._run(
            lambda uow: to_account_info(
                uow.registry.get_or_create_account(code, name, account_type, created_by)
            )
        )

    def deactivate_account(self, code: str) -> AccountInfo:
        return self._run(lambda uow: to_account_info(uow.registry.deactivate_account(code)))

    # -- reads ------------------------------------------------------------------

    def get_transaction(self, transaction_id: UUID | str) -> TransactionInfo | None:
        txn_id = _as_uuid(transaction_id)
        return self._run(lambda uow: uow.selector.get_transaction(txn_id))

    def get_transaction_by_source(
        self, source_module: str, source_transaction_id: str
    ) -> TransactionInfo | None:
        return self._run(
            lambda uow: uow.selector.get_transaction_by_source(
                source_module, source_transaction_id
            )
        )

    def get_account(self, code: str) -> AccountInfo | None:
        return self._run(lambda uow: uow.selector.get_account(code))

    def verify_balances(self) -> list[BalanceDrift]:
        """Accounts whose stored balance disagrees with their posted entries."""
        drifts = self._run(lambda uow: uow.selector.find_balance_drift())
        if drifts:
            logger.warning(
                "balance_drift_detected",
                extra={
                    "account_codes": [d.account_code for d in drifts],
                    "drift_count": len(drifts),
                },
            )
        return drifts

    # -- internals --------------------------------------------------------------

    def _post_event(self, event: BusinessEvent, best_effort: bool | None) -> PostingResult:
        def work(uow: _UnitOfWork) -> PostingOutcome:
            if isinstance(event, (CommissionReversal, PaidCommissionReversal)):
                return uow.reversals.reverse(event)
            return uow.posting.create_and_post_transaction(uow.builder.build(event))

        return self._post(
            event.source_transaction_type,
            work,
            best_effort,
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            actor=getattr(event, "created_by", None),
        )

    def _post(
        self,
        operation: str,
        work: Callable[[_UnitOfWork], PostingOutcome],
        best_effort: bool | None,
        **context: str | None,
    ) -> PostingResult:
        if best_effort is None:
            best_effort = self._config.best_effort

        with LogContext.bind(**context):
            try:
                outcome = self._run(work)
            except GLKernelError as exc:
                if not best_effort:
                    raise
                logger.warning(
                    "gl_posting_failed",
                    extra={
                        "operation": operation,
                        "error_code": exc.code,
                        "error_message": str(exc),
                    },
                )
                return PostingResult.failure(exc.code, str(exc))

        return PostingResult.from_outcome(outcome)

    def _run(self, work: Callable[[_UnitOfWork], T]) -> T:
        try:
            with session_scope(self._session_factory) as session:
                return work(_UnitOfWork(session, self._config, self._clock))
        except SQLAlchemyError as exc:
            raise PersistenceError("unit_of_work", str(exc)) from exc


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))
