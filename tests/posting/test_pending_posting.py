"""
Pending transactions and post_pending_transaction().

Verifies:
- auto_post=False stores header and entries without touching balances
- Posting applies the deltas exactly once
- Unknown ids are rejected
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from gl_kernel.config import AccountRole
from gl_kernel.exceptions import TransactionNotFoundError
from gl_kernel.models.journal import GLTransaction, TransactionStatus
from gl_kernel.services.posting_engine import PostingStatus


class TestPendingTransactions:
    def test_pending_does_not_move_balances(
        self, posting_engine, session, standard_accounts, make_transaction_data, captured_logs
    ):
        outcome = posting_engine.create_and_post_transaction(
            make_transaction_data(), auto_post=False
        )

        assert outcome.status == PostingStatus.PENDING
        assert outcome.is_new
        transaction = session.get(GLTransaction, outcome.transaction_id)
        assert transaction.status == TransactionStatus.PENDING
        assert transaction.posted_at is None
        assert len(transaction.entries) == 2
        assert standard_accounts[AccountRole.CASH].balance == Decimal("0")
        assert any(r["message"] == "transaction_created_pending" for r in captured_logs())

    def test_posting_applies_balances(
        self, posting_engine, session, standard_accounts, make_transaction_data,
        deterministic_clock,
    ):
        pending = posting_engine.create_and_post_transaction(
            make_transaction_data(), auto_post=False
        )
        deterministic_clock.advance(60)

        outcome = posting_engine.post_pending_transaction(pending.transaction_id)

        assert outcome.status == PostingStatus.POSTED
        assert outcome.transaction_id == pending.transaction_id
        transaction = session.get(GLTransaction, pending.transaction_id)
        assert transaction.status == TransactionStatus.POSTED
        assert transaction.posted_at is not None
        assert standard_accounts[AccountRole.CASH].balance == Decimal("100.00")
        assert standard_accounts[AccountRole.CUSTOMER_LIABILITY].balance == Decimal("-100.00")

    def test_posting_twice_applies_once(
        self, posting_engine, standard_accounts, make_transaction_data, captured_logs
    ):
        pending = posting_engine.create_and_post_transaction(
            make_transaction_data(), auto_post=False
        )

        posting_engine.post_pending_transaction(pending.transaction_id)
        again = posting_engine.post_pending_transaction(pending.transaction_id)

        assert again.status == PostingStatus.ALREADY_POSTED
        assert standard_accounts[AccountRole.CASH].balance == Decimal("100.00")
        assert any(r["message"] == "transaction_already_posted" for r in captured_logs())

    def test_posting_an_auto_posted_transaction_is_noop(
        self, posting_engine, standard_accounts, make_transaction_data
    ):
        posted = posting_engine.create_and_post_transaction(make_transaction_data())

        outcome = posting_engine.post_pending_transaction(posted.transaction_id)

        assert outcome.status == PostingStatus.ALREADY_POSTED
        assert standard_accounts[AccountRole.CASH].balance == Decimal("100.00")

    def test_repeat_of_pending_source_is_already_exists(
        self, posting_engine, make_transaction_data
    ):
        data = make_transaction_data(source_transaction_id="pending-1")
        first = posting_engine.create_and_post_transaction(data, auto_post=False)
        second = posting_engine.create_and_post_transaction(data)

        assert second.status == PostingStatus.ALREADY_EXISTS
        assert second.transaction_id == first.transaction_id

    def test_unknown_id(self, posting_engine):
        with pytest.raises(TransactionNotFoundError) as exc_info:
            posting_engine.post_pending_transaction(uuid4())
        assert exc_info.value.code == "TRANSACTION_NOT_FOUND"

    def test_posting_nets_per_account_in_id_order(
        self, posting_engine, standard_accounts, make_transaction_data, monkeypatch
    ):
        """One increment per account, in the same order as direct posting."""
        pending = posting_engine.create_and_post_transaction(
            make_transaction_data(
                lines=[
                    (AccountRole.CUSTOMER_LIABILITY, "200.00", "0"),
                    (AccountRole.CASH, "0", "200.00"),
                    (AccountRole.CASH, "2.00", "0"),
                    (AccountRole.FEE_REVENUE, "0", "2.00"),
                ]
            ),
            auto_post=False,
        )
        store = posting_engine._accounts
        real_apply = store.apply_balance_delta
        calls = []

        def recording_apply(account_id, delta):
            calls.append((account_id, delta))
            real_apply(account_id, delta)

        monkeypatch.setattr(store, "apply_balance_delta", recording_apply)

        posting_engine.post_pending_transaction(pending.transaction_id)

        cash = standard_accounts[AccountRole.CASH]
        liability = standard_accounts[AccountRole.CUSTOMER_LIABILITY]
        fee = standard_accounts[AccountRole.FEE_REVENUE]
        assert [account_id for account_id, _ in calls] == sorted(
            [cash.id, liability.id, fee.id], key=str
        )
        assert dict(calls) == {
            cash.id: Decimal("-198.00"),
            liability.id: Decimal("200.00"),
            fee.id: Decimal("-2.00"),
        }
        assert cash.balance == Decimal("-198.00")
