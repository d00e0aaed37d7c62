"""
Business events -- the closed set of inputs the journal builder understands.

Responsibility:
    One frozen dataclass per event variant.  Each variant knows its own
    idempotency key (source module, source transaction id) and type tag;
    the journal builder knows how to turn it into entries.

Architecture position:
    Kernel > Domain -- pure, zero I/O.

Source keys:
    ======================  ===========  ===========================  ==========================
    Variant                 module       source transaction id         type
    ======================  ===========  ===========================  ==========================
    CommissionRevenue       commissions  <commission_id>               commission_revenue
    CommissionPayment       commissions  <commission_id>-payment       commission_payment
    CommissionReversal      commissions  <commission_id>-reversal      commission_reversal
    PaidCommissionReversal  commissions  <commission_id>-reversal-paid commission_reversal_paid
    ExpenseAccrual          expenses     <expense_id>                  expense_accrual
    MoMoCashIn              momo         <transaction_id>              cash-in
    MoMoCashOut             momo         <transaction_id>              cash-out
    ManualJournal           (manual)     <reference>                   manual_journal
    ======================  ===========  ===========================  ==========================

Failure modes:
    - ValueError on a negative amount or fee, a blank identifier, or an
      unknown MoMo transaction type.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar

from gl_kernel.db.types import ZERO, to_money


class EventKind(str, Enum):
    """Type tag of each event variant (stored as source_transaction_type)."""

    COMMISSION_REVENUE = "commission_revenue"
    COMMISSION_PAYMENT = "commission_payment"
    COMMISSION_REVERSAL = "commission_reversal"
    PAID_COMMISSION_REVERSAL = "commission_reversal_paid"
    EXPENSE_ACCRUAL = "expense_accrual"
    MOMO_CASH_IN = "cash-in"
    MOMO_CASH_OUT = "cash-out"
    MANUAL_JOURNAL = "manual_journal"


class SourceModule:
    """Source module names used by the standard event variants."""

    COMMISSIONS = "commissions"
    EXPENSES = "expenses"
    MOMO = "momo"
    MANUAL = "manual"


def _require(value: str, name: str) -> None:
    if not value or not str(value).strip():
        raise ValueError(f"{name} must not be blank")


def _non_negative(event: Any, *names: str) -> None:
    """Convert the named amount fields to Decimal and reject negatives."""
    for name in names:
        amount = to_money(getattr(event, name))
        if amount < ZERO:
            raise ValueError(f"{name} must be non-negative, got {amount}")
        object.__setattr__(event, name, amount)


class BusinessEvent:
    """
    Behaviour shared by every event variant.

    Subclasses define ``kind`` and ``source_module`` as class attributes
    and implement ``source_transaction_id``.
    """

    kind: ClassVar[EventKind]
    source_module: ClassVar[str]

    @property
    def source_transaction_id(self) -> str:
        raise NotImplementedError

    @property
    def source_transaction_type(self) -> str:
        return self.kind.value

    @property
    def source_key(self) -> tuple[str, str]:
        return (self.source_module, self.source_transaction_id)


# ---------------------------------------------------------------------------
# Commissions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CommissionRevenue(BusinessEvent):
    """A commission was earned: receivable up, revenue recognized."""

    kind: ClassVar[EventKind] = EventKind.COMMISSION_REVENUE
    source_module: ClassVar[str] = SourceModule.COMMISSIONS

    commission_id: str
    source: str
    reference: str
    amount: Decimal
    month: str
    created_by: str
    effective_date: date | None = None

    def __post_init__(self) -> None:
        _require(self.commission_id, "commission_id")
        _non_negative(self, "amount")

    @property
    def source_transaction_id(self) -> str:
        return self.commission_id


@dataclass(frozen=True)
class CommissionPayment(BusinessEvent):
    """A commission was paid out: cash received, receivable settled."""

    kind: ClassVar[EventKind] = EventKind.COMMISSION_PAYMENT
    source_module: ClassVar[str] = SourceModule.COMMISSIONS

    commission_id: str
    source: str
    reference: str
    amount: Decimal
    payment_method: str
    created_by: str
    effective_date: date | None = None

    def __post_init__(self) -> None:
        _require(self.commission_id, "commission_id")
        _non_negative(self, "amount")

    @property
    def source_transaction_id(self) -> str:
        return f"{self.commission_id}-payment"


@dataclass(frozen=True)
class CommissionReversal(BusinessEvent):
    """An unpaid commission was deleted: mirror of CommissionRevenue."""

    kind: ClassVar[EventKind] = EventKind.COMMISSION_REVERSAL
    source_module: ClassVar[str] = SourceModule.COMMISSIONS
    reverses: ClassVar[EventKind] = EventKind.COMMISSION_REVENUE

    commission_id: str
    source: str
    reference: str
    amount: Decimal
    month: str
    created_by: str
    reason: str
    effective_date: date | None = None

    def __post_init__(self) -> None:
        _require(self.commission_id, "commission_id")
        _non_negative(self, "amount")

    @property
    def source_transaction_id(self) -> str:
        return f"{self.commission_id}-reversal"

    @property
    def original_source_transaction_id(self) -> str:
        return self.commission_id


@dataclass(frozen=True)
class PaidCommissionReversal(BusinessEvent):
    """
    A paid commission was deleted.

    Only revenue recognition is reversed (Dr revenue / Cr receivable); the
    cash already received stays on the books.
    """

    kind: ClassVar[EventKind] = EventKind.PAID_COMMISSION_REVERSAL
    source_module: ClassVar[str] = SourceModule.COMMISSIONS
    reverses: ClassVar[EventKind] = EventKind.COMMISSION_PAYMENT

    commission_id: str
    source: str
    reference: str
    amount: Decimal
    month: str
    created_by: str
    reason: str
    payment_method: str | None = None
    effective_date: date | None = None

    def __post_init__(self) -> None:
        _require(self.commission_id, "commission_id")
        _non_negative(self, "amount")

    @property
    def source_transaction_id(self) -> str:
        return f"{self.commission_id}-reversal-paid"

    @property
    def original_source_transaction_id(self) -> str:
        # Entries mirror the revenue posting, so the link points there.
        return self.commission_id


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExpenseAccrual(BusinessEvent):
    """An approved expense: expense account debited, payable credited."""

    kind: ClassVar[EventKind] = EventKind.EXPENSE_ACCRUAL
    source_module: ClassVar[str] = SourceModule.EXPENSES

    expense_id: str
    expense_head_id: str
    amount: Decimal
    description: str
    payment_source: str
    created_by: str
    branch_id: str | None = None
    effective_date: date | None = None

    def __post_init__(self) -> None:
        _require(self.expense_id, "expense_id")
        _non_negative(self, "amount")

    @property
    def source_transaction_id(self) -> str:
        return self.expense_id


# ---------------------------------------------------------------------------
# Mobile money
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _MoMoEvent(BusinessEvent):
    source_module: ClassVar[str] = SourceModule.MOMO

    transaction_id: str
    amount: Decimal
    fee: Decimal
    provider: str
    phone_number: str
    customer_name: str
    reference: str
    processed_by: str
    branch_id: str | None = None
    branch_name: str | None = None
    effective_date: date | None = None

    def __post_init__(self) -> None:
        _require(self.transaction_id, "transaction_id")
        _non_negative(self, "amount", "fee")

    @property
    def source_transaction_id(self) -> str:
        return self.transaction_id

    @property
    def created_by(self) -> str:
        return self.processed_by


@dataclass(frozen=True)
class MoMoCashIn(_MoMoEvent):
    """Customer deposits cash: cash up, liability to the customer up."""

    kind: ClassVar[EventKind] = EventKind.MOMO_CASH_IN


@dataclass(frozen=True)
class MoMoCashOut(_MoMoEvent):
    """Customer withdraws cash: liability to the customer down, cash down."""

    kind: ClassVar[EventKind] = EventKind.MOMO_CASH_OUT


_MOMO_TYPES: dict[str, type[_MoMoEvent]] = {
    EventKind.MOMO_CASH_IN.value: MoMoCashIn,
    EventKind.MOMO_CASH_OUT.value: MoMoCashOut,
}


def momo_event(momo_type: str, **fields: Any) -> MoMoCashIn | MoMoCashOut:
    """
    Build the MoMo variant named by ``momo_type`` ("cash-in" or "cash-out").

    Raises:
        ValueError: If momo_type is not a known MoMo transaction type.
    """
    try:
        event_cls = _MOMO_TYPES[momo_type]
    except KeyError:
        raise ValueError(
            f"Unknown MoMo transaction type {momo_type!r}; "
            f"expected one of {sorted(_MOMO_TYPES)}"
        ) from None
    return event_cls(**fields)


# ---------------------------------------------------------------------------
# Manual journals
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ManualLine:
    """One caller-supplied line of a manual journal, by account code."""

    account_code: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str = ""
    metadata: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        _require(self.account_code, "account_code")
        _non_negative(self, "debit", "credit")


@dataclass(frozen=True)
class ManualJournal(BusinessEvent):
    """
    A manual journal against existing accounts.

    Unlike the standard variants, manual journals never provision
    accounts: every line must name an existing, active account.
    """

    kind: ClassVar[EventKind] = EventKind.MANUAL_JOURNAL

    reference: str
    description: str
    lines: tuple[ManualLine, ...]
    created_by: str
    module: str = SourceModule.MANUAL
    branch_id: str | None = None
    metadata: dict[str, Any] | None = None
    effective_date: date | None = None

    def __post_init__(self) -> None:
        _require(self.reference, "reference")
        _require(self.module, "module")
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))
        if not self.lines:
            raise ValueError("ManualJournal must have at least one line")

    @property
    def source_module(self) -> str:  # type: ignore[override]
        return self.module

    @property
    def source_transaction_id(self) -> str:
        return self.reference


CommissionEvent = CommissionRevenue | CommissionPayment
ReversalEvent = CommissionReversal | PaidCommissionReversal
MoMoEvent = MoMoCashIn | MoMoCashOut
GLEvent = (
    CommissionRevenue
    | CommissionPayment
    | CommissionReversal
    | PaidCommissionReversal
    | ExpenseAccrual
    | MoMoCashIn
    | MoMoCashOut
    | ManualJournal
)
