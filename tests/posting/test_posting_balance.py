"""
Balance tests for the PostingEngine.

Verifies:
- Balanced transactions post; each entry moves its account by debit - credit
- Unbalanced transactions are rejected before anything is written
- The tolerance boundary
- Entries referencing unknown accounts are rejected
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from gl_kernel.config import AccountRole
from gl_kernel.domain.entries import EntryLine, TransactionData
from gl_kernel.exceptions import AccountNotFoundError, UnbalancedEntriesError
from gl_kernel.models.journal import GLEntry, GLTransaction, TransactionStatus
from gl_kernel.services.posting_engine import PostingEngine, PostingStatus


def _row_counts(session) -> tuple[int, int]:
    transactions = session.execute(select(func.count()).select_from(GLTransaction)).scalar_one()
    entries = session.execute(select(func.count()).select_from(GLEntry)).scalar_one()
    return transactions, entries


class TestBalancedPosting:
    def test_posts_header_entries_and_balances(
        self, posting_engine, session, standard_accounts, make_transaction_data, captured_logs
    ):
        data = make_transaction_data(metadata={"note": "cash deposit"})

        outcome = posting_engine.create_and_post_transaction(data)

        assert outcome.status == PostingStatus.POSTED
        assert outcome.is_new
        transaction = session.get(GLTransaction, outcome.transaction_id)
        assert transaction.status == TransactionStatus.POSTED
        assert transaction.posted_at is not None
        assert transaction.transaction_metadata == {"note": "cash deposit"}
        assert [e.line_seq for e in transaction.entries] == [0, 1]
        assert transaction.is_balanced()
        assert standard_accounts[AccountRole.CASH].balance == Decimal("100.00")
        assert standard_accounts[AccountRole.CUSTOMER_LIABILITY].balance == Decimal("-100.00")

        messages = [r["message"] for r in captured_logs()]
        assert "balance_validated" in messages
        assert "transaction_posted" in messages

    def test_balances_accumulate(
        self, posting_engine, standard_accounts, make_transaction_data
    ):
        posting_engine.create_and_post_transaction(make_transaction_data())
        posting_engine.create_and_post_transaction(
            make_transaction_data(
                lines=[
                    (AccountRole.CUSTOMER_LIABILITY, "40.00", "0"),
                    (AccountRole.CASH, "0", "40.00"),
                ]
            )
        )

        assert standard_accounts[AccountRole.CASH].balance == Decimal("60.00")
        assert standard_accounts[AccountRole.CUSTOMER_LIABILITY].balance == Decimal("-60.00")

    def test_same_account_on_several_lines(
        self, posting_engine, standard_accounts, make_transaction_data
    ):
        data = make_transaction_data(
            lines=[
                (AccountRole.CASH, "500.00", "0"),
                (AccountRole.CUSTOMER_LIABILITY, "0", "500.00"),
                (AccountRole.CASH, "5.00", "0"),
                (AccountRole.FEE_REVENUE, "0", "5.00"),
            ]
        )

        posting_engine.create_and_post_transaction(data)

        assert standard_accounts[AccountRole.CASH].balance == Decimal("505.00")
        assert standard_accounts[AccountRole.FEE_REVENUE].balance == Decimal("-5.00")

    def test_line_with_debit_and_credit_applies_net(
        self, posting_engine, standard_accounts, make_transaction_data
    ):
        data = make_transaction_data(
            lines=[
                (AccountRole.CASH, "30.00", "10.00"),
                (AccountRole.CUSTOMER_LIABILITY, "0", "20.00"),
            ]
        )

        posting_engine.create_and_post_transaction(data)

        assert standard_accounts[AccountRole.CASH].balance == Decimal("20.00")


class TestUnbalancedRejection:
    def test_unbalanced_raises_and_writes_nothing(
        self, posting_engine, session, standard_accounts, make_transaction_data, captured_logs
    ):
        data = make_transaction_data(
            lines=[
                (AccountRole.CASH, "100.00", "0"),
                (AccountRole.CUSTOMER_LIABILITY, "0", "90.00"),
            ]
        )

        with pytest.raises(UnbalancedEntriesError) as exc_info:
            posting_engine.create_and_post_transaction(data)

        assert exc_info.value.code == "UNBALANCED_ENTRIES"
        assert Decimal(exc_info.value.debits) == Decimal("100.00")
        assert Decimal(exc_info.value.credits) == Decimal("90.00")
        assert _row_counts(session) == (0, 0)
        assert standard_accounts[AccountRole.CASH].balance == Decimal("0")
        assert any(r["message"] == "unbalanced_transaction" for r in captured_logs())

    def test_within_tolerance_accepted(self, posting_engine, make_transaction_data):
        data = make_transaction_data(
            lines=[
                (AccountRole.CASH, "100.00", "0"),
                (AccountRole.CUSTOMER_LIABILITY, "0", "99.99"),
            ]
        )
        assert posting_engine.create_and_post_transaction(data).status == PostingStatus.POSTED

    def test_just_over_tolerance_rejected(self, posting_engine, make_transaction_data):
        data = make_transaction_data(
            lines=[
                (AccountRole.CASH, "100.00", "0"),
                (AccountRole.CUSTOMER_LIABILITY, "0", "99.989"),
            ]
        )
        with pytest.raises(UnbalancedEntriesError):
            posting_engine.create_and_post_transaction(data)

    def test_zero_tolerance_engine(self, session, deterministic_clock, make_transaction_data):
        strict = PostingEngine(session, deterministic_clock, Decimal("0"))
        data = make_transaction_data(
            lines=[
                (AccountRole.CASH, "100.00", "0"),
                (AccountRole.CUSTOMER_LIABILITY, "0", "99.99"),
            ]
        )
        with pytest.raises(UnbalancedEntriesError):
            strict.create_and_post_transaction(data)


class TestUnknownAccounts:
    def test_unknown_account_rejected(
        self, posting_engine, session, standard_accounts, deterministic_clock
    ):
        cash = standard_accounts[AccountRole.CASH]
        data = TransactionData(
            date=deterministic_clock.today(),
            source_module="tests",
            source_transaction_id="ghost-1",
            source_transaction_type="test_posting",
            description="Ghost account",
            entries=(
                EntryLine.debit_line(cash.id, cash.code, "10"),
                EntryLine.credit_line(uuid4(), "9999", "10"),
            ),
            created_by="test-user",
        )

        with pytest.raises(AccountNotFoundError) as exc_info:
            posting_engine.create_and_post_transaction(data)

        assert exc_info.value.account_code == "9999"
        assert _row_counts(session) == (0, 0)
