"""
Pure domain layer.

Immutable value objects for business events and the transactions built
from them.  Nothing here touches the ORM or the database.
"""

from gl_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from gl_kernel.domain.entries import EntryLine, TransactionData
from gl_kernel.domain.events import (
    BusinessEvent,
    CommissionPayment,
    CommissionReversal,
    CommissionRevenue,
    EventKind,
    ExpenseAccrual,
    ManualJournal,
    ManualLine,
    MoMoCashIn,
    MoMoCashOut,
    PaidCommissionReversal,
    SourceModule,
    momo_event,
)

__all__ = [
    "BusinessEvent",
    "Clock",
    "CommissionPayment",
    "CommissionReversal",
    "CommissionRevenue",
    "DeterministicClock",
    "EntryLine",
    "EventKind",
    "ExpenseAccrual",
    "ManualJournal",
    "ManualLine",
    "MoMoCashIn",
    "MoMoCashOut",
    "PaidCommissionReversal",
    "SourceModule",
    "SystemClock",
    "TransactionData",
    "momo_event",
]
