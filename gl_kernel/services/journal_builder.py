"""
JournalBuilder -- turns business events into balanced TransactionData.

Responsibility:
    One build method per event variant.  Each method resolves its accounts
    (provisioning standard accounts on first use), produces the debit and
    credit lines, and fills in the header: source key, type tag,
    description and metadata.

Architecture position:
    Kernel > Services.  Pure with respect to transactions: the builder never
    writes a GL transaction.  Account provisioning goes through the
    injected AccountResolver (the AccountRegistry in production).

Invariants enforced:
    - Every TransactionData built here balances exactly: each debit line has
      a credit line of the same amount.
    - Zero fees produce no fee lines.
    - Amounts in metadata are written as strings so JSON never sees floats.

Failure modes:
    - AccountProvisioningError from the resolver.
    - AccountNotFoundError / AccountInactiveError for manual journal lines.
    - TypeError for an object that is not a known event variant.
"""

from collections.abc import Callable
from datetime import date
from typing import Any, Protocol

from gl_kernel.config import AccountRole, GLConfig
from gl_kernel.db.types import ZERO
from gl_kernel.domain.clock import Clock
from gl_kernel.domain.entries import EntryLine, TransactionData
from gl_kernel.domain.events import (
    BusinessEvent,
    CommissionPayment,
    CommissionReversal,
    CommissionRevenue,
    ExpenseAccrual,
    ManualJournal,
    MoMoCashIn,
    MoMoCashOut,
    PaidCommissionReversal,
)
from gl_kernel.logging_config import get_logger
from gl_kernel.models.account import Account, AccountType

logger = get_logger("services.journal_builder")


class AccountResolver(Protocol):
    """What the builder needs from the chart of accounts."""

    def get_or_create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        created_by: str | None = None,
    ) -> Account: ...

    def get_active_account(self, code: str) -> Account: ...


class JournalBuilder:
    """Builds the balanced journal for each business event variant."""

    def __init__(self, resolver: AccountResolver, config: GLConfig, clock: Clock):
        self._resolver = resolver
        self._config = config
        self._clock = clock
        self._builders: dict[type, Callable[[Any], TransactionData]] = {
            CommissionRevenue: self.build_commission_revenue,
            CommissionPayment: self.build_commission_payment,
            CommissionReversal: self.build_commission_reversal,
            PaidCommissionReversal: self.build_paid_commission_reversal,
            ExpenseAccrual: self.build_expense_accrual,
            MoMoCashIn: self.build_momo,
            MoMoCashOut: self.build_momo,
            ManualJournal: self.build_manual_journal,
        }

    def build(self, event: BusinessEvent) -> TransactionData:
        """
        Build the TransactionData for any event variant.

        Raises:
            TypeError: If event is not a known variant.
        """
        builder = self._builders.get(type(event))
        if builder is None:
            raise TypeError(f"No journal builder for {type(event).__name__}")
        data = builder(event)
        logger.debug(
            "journal_built",
            extra={
                "source_module": data.source_module,
                "source_transaction_id": data.source_transaction_id,
                "source_transaction_type": data.source_transaction_type,
                "line_count": len(data.entries),
                "total_debits": str(data.total_debits),
            },
        )
        return data

    # -- helpers --------------------------------------------------------------

    def _account(self, role: str) -> Account:
        definition = self._config.account_for(role)
        return self._resolver.get_or_create_account(
            definition.code, definition.name, definition.account_type
        )

    def _date(self, event: Any) -> date:
        return event.effective_date or self._clock.today()

    @staticmethod
    def _debit(account: Account, amount, description: str, metadata: dict) -> EntryLine:
        return EntryLine.debit_line(account.id, account.code, amount, description, metadata)

    @staticmethod
    def _credit(account: Account, amount, description: str, metadata: dict) -> EntryLine:
        return EntryLine.credit_line(account.id, account.code, amount, description, metadata)

    # -- commissions ------------------------------------------------------------

    def build_commission_revenue(self, event: CommissionRevenue) -> TransactionData:
        """Dr Commission Receivable / Cr Commission Revenue."""
        receivable = self._account(AccountRole.COMMISSION_RECEIVABLE)
        revenue = self._account(AccountRole.COMMISSION_REVENUE)
        label = f"{event.source} - {event.reference}"
        line_meta = {
            "commissionId": event.commission_id,
            "source": event.source,
            "month": event.month,
        }
        return TransactionData(
            date=self._date(event),
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            source_transaction_type=event.source_transaction_type,
            description=f"Commission revenue earned - {label}",
            entries=(
                self._debit(receivable, event.amount, f"Commission receivable - {label}", line_meta),
                self._credit(revenue, event.amount, f"Commission revenue - {label}", line_meta),
            ),
            created_by=event.created_by,
            metadata={
                "commissionId": event.commission_id,
                "source": event.source,
                "reference": event.reference,
                "month": event.month,
            },
        )

    def build_commission_payment(self, event: CommissionPayment) -> TransactionData:
        """Dr Cash / Cr Commission Receivable."""
        cash = self._account(AccountRole.CASH)
        receivable = self._account(AccountRole.COMMISSION_RECEIVABLE)
        label = f"{event.source} - {event.reference}"
        line_meta = {
            "commissionId": event.commission_id,
            "source": event.source,
            "paymentMethod": event.payment_method,
        }
        return TransactionData(
            date=self._date(event),
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            source_transaction_type=event.source_transaction_type,
            description=f"Commission payment received - {label}",
            entries=(
                self._debit(cash, event.amount, f"Commission payment received - {label}", line_meta),
                self._credit(receivable, event.amount, f"Commission receivable settled - {label}", line_meta),
            ),
            created_by=event.created_by,
            metadata={
                "commissionId": event.commission_id,
                "source": event.source,
                "reference": event.reference,
                "paymentMethod": event.payment_method,
            },
        )

    def build_commission_reversal(self, event: CommissionReversal) -> TransactionData:
        """Cr Commission Receivable / Dr Commission Revenue (mirror of revenue)."""
        receivable = self._account(AccountRole.COMMISSION_RECEIVABLE)
        revenue = self._account(AccountRole.COMMISSION_REVENUE)
        label = f"{event.source} - {event.reference}"
        line_meta = {
            "commissionId": event.commission_id,
            "source": event.source,
            "month": event.month,
            "reversalReason": event.reason,
        }
        return TransactionData(
            date=self._date(event),
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            source_transaction_type=event.source_transaction_type,
            description=f"Commission reversal - {label} - {event.reason}",
            entries=(
                self._credit(receivable, event.amount, f"Commission receivable reversal - {label}", line_meta),
                self._debit(revenue, event.amount, f"Commission revenue reversal - {label}", line_meta),
            ),
            created_by=event.created_by,
            metadata={
                "commissionId": event.commission_id,
                "source": event.source,
                "reference": event.reference,
                "month": event.month,
                "reversalReason": event.reason,
                "originalTransactionType": event.reverses.value,
            },
        )

    def build_paid_commission_reversal(
        self, event: PaidCommissionReversal
    ) -> TransactionData:
        """Dr Commission Revenue / Cr Commission Receivable; cash is untouched."""
        receivable = self._account(AccountRole.COMMISSION_RECEIVABLE)
        revenue = self._account(AccountRole.COMMISSION_REVENUE)
        label = f"{event.source} - {event.reference}"
        line_meta = {
            "commissionId": event.commission_id,
            "source": event.source,
            "month": event.month,
            "reversalReason": event.reason,
            "wasPaid": True,
            "paymentMethod": event.payment_method,
        }
        return TransactionData(
            date=self._date(event),
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            source_transaction_type=event.source_transaction_type,
            description=f"Paid commission reversal - {label} - {event.reason}",
            entries=(
                self._debit(revenue, event.amount, f"Commission revenue reversal (paid) - {label}", line_meta),
                self._credit(receivable, event.amount, f"Commission receivable reversal (paid) - {label}", line_meta),
            ),
            created_by=event.created_by,
            metadata={
                "commissionId": event.commission_id,
                "source": event.source,
                "reference": event.reference,
                "month": event.month,
                "reversalReason": event.reason,
                "wasPaid": True,
                "paymentMethod": event.payment_method,
                "originalTransactionType": event.reverses.value,
            },
        )

    # -- expenses ---------------------------------------------------------------

    def build_expense_accrual(self, event: ExpenseAccrual) -> TransactionData:
        """Dr expense account for the head / Cr Accounts Payable."""
        definition = self._config.expense_account_for(event.expense_head_id)
        expense = self._resolver.get_or_create_account(
            definition.code, definition.name, definition.account_type
        )
        payable = self._account(AccountRole.ACCOUNTS_PAYABLE)
        meta = {
            "expenseId": event.expense_id,
            "expenseHeadId": event.expense_head_id,
            "paymentSource": event.payment_source,
        }
        return TransactionData(
            date=self._date(event),
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            source_transaction_type=event.source_transaction_type,
            description=f"Expense accrual - {event.description}",
            entries=(
                self._debit(expense, event.amount, f"Expense - {event.description}", meta),
                self._credit(payable, event.amount, f"Expense payable - {event.description}", meta),
            ),
            created_by=event.created_by,
            branch_id=event.branch_id,
            metadata=dict(meta),
        )

    # -- mobile money -----------------------------------------------------------

    def build_momo(self, event: MoMoCashIn | MoMoCashOut) -> TransactionData:
        """
        Cash-in: Dr Cash / Cr Customer Liability.
        Cash-out: Dr Customer Liability / Cr Cash.
        Either way a non-zero fee adds Dr Cash / Cr Fee Revenue.
        """
        cash = self._account(AccountRole.CASH)
        liability = self._account(AccountRole.CUSTOMER_LIABILITY)
        fee_revenue = self._account(AccountRole.FEE_REVENUE)

        principal_meta = {
            "transactionId": event.transaction_id,
            "provider": event.provider,
        }
        if isinstance(event, MoMoCashIn):
            text = f"MoMo Cash In - {event.provider} - {event.phone_number}"
            entries = [
                self._debit(cash, event.amount, text, principal_meta),
                self._credit(liability, event.amount, text, principal_meta),
            ]
        else:
            text = f"MoMo Cash Out - {event.provider} - {event.phone_number}"
            entries = [
                self._debit(liability, event.amount, text, principal_meta),
                self._credit(cash, event.amount, text, principal_meta),
            ]

        if event.fee > ZERO:
            fee_meta = {
                "transactionId": event.transaction_id,
                "feeAmount": str(event.fee),
            }
            entries.append(
                self._debit(cash, event.fee, f"MoMo Transaction Fee - {event.provider}", fee_meta)
            )
            entries.append(
                self._credit(
                    fee_revenue,
                    event.fee,
                    f"MoMo Transaction Fee Revenue - {event.provider}",
                    fee_meta,
                )
            )

        metadata = {
            "provider": event.provider,
            "phoneNumber": event.phone_number,
            "customerName": event.customer_name,
            "reference": event.reference,
            "amount": str(event.amount),
            "fee": str(event.fee),
        }
        if event.branch_name:
            metadata["branchName"] = event.branch_name

        return TransactionData(
            date=self._date(event),
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            source_transaction_type=event.source_transaction_type,
            description=f"MoMo {event.source_transaction_type} - {event.provider} - {event.phone_number}",
            entries=tuple(entries),
            created_by=event.created_by,
            branch_id=event.branch_id,
            metadata=metadata,
        )

    # -- manual journals --------------------------------------------------------

    def build_manual_journal(self, event: ManualJournal) -> TransactionData:
        """Caller-supplied lines against existing, active accounts."""
        entries = []
        for line in event.lines:
            account = self._resolver.get_active_account(line.account_code)
            entries.append(
                EntryLine(
                    account_id=account.id,
                    account_code=account.code,
                    debit=line.debit,
                    credit=line.credit,
                    description=line.description or event.description,
                    metadata=line.metadata,
                )
            )
        return TransactionData(
            date=self._date(event),
            source_module=event.source_module,
            source_transaction_id=event.source_transaction_id,
            source_transaction_type=event.source_transaction_type,
            description=event.description,
            entries=tuple(entries),
            created_by=event.created_by,
            branch_id=event.branch_id,
            metadata=event.metadata,
        )
