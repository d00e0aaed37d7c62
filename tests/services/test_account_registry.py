"""
Tests for AccountRegistry: lazy provisioning and lookup of accounts.

Verifies:
- get_or_create is idempotent and never duplicates a code
- An existing account is returned unchanged
- Deactivation blocks get_active_account but not provisioning
"""

from decimal import Decimal

import pytest
from sqlalchemy import func, select

from gl_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AccountProvisioningError,
)
from gl_kernel.models.account import Account, AccountType


def _count(session, code: str) -> int:
    return session.execute(
        select(func.count()).select_from(Account).where(Account.code == code)
    ).scalar_one()


class TestGetOrCreate:
    def test_creates_account_with_zero_balance(self, registry, session, captured_logs):
        account = registry.get_or_create_account("1001", "Cash", "asset", "setup")

        assert account.id is not None
        assert account.code == "1001"
        assert account.name == "Cash"
        assert account.account_type == "asset"
        assert account.balance == Decimal("0")
        assert account.is_active is True
        assert account.created_by == "setup"
        assert _count(session, "1001") == 1
        assert any(r["message"] == "account_provisioned" for r in captured_logs())

    def test_second_call_returns_same_account(self, registry, session):
        first = registry.get_or_create_account("1001", "Cash", AccountType.ASSET)
        second = registry.get_or_create_account("1001", "Cash", AccountType.ASSET)

        assert first.id == second.id
        assert _count(session, "1001") == 1

    def test_existing_account_is_not_renamed(self, registry):
        registry.get_or_create_account("4100", "Commission Revenue", "revenue")
        again = registry.get_or_create_account("4100", "Something Else", "expense")

        assert again.name == "Commission Revenue"
        assert again.account_type == "revenue"

    def test_type_is_case_insensitive(self, registry):
        account = registry.get_or_create_account("2001", "Customer Liability", "Liability")
        assert account.account_type == "liability"

    def test_unknown_type_rejected(self, registry, session):
        with pytest.raises(ValueError, match="Unknown account type"):
            registry.get_or_create_account("9000", "Odd", "contra")
        assert _count(session, "9000") == 0

    def test_unique_violation_resolved_to_winner(self, registry, session, monkeypatch):
        """A concurrent insert of the same code returns the winner's row."""
        winner = registry.get_or_create_account("1200", "Commission Receivable", "asset")

        # Simulate losing the race: the first lookup misses, the insert
        # hits the unique constraint, the re-read finds the winner.
        store = registry._accounts
        real_get_by_code = store.get_by_code
        calls = {"n": 0}

        def racing_get_by_code(code):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_get_by_code(code)

        monkeypatch.setattr(store, "get_by_code", racing_get_by_code)

        account = registry.get_or_create_account("1200", "Commission Receivable", "asset")

        assert account.id == winner.id
        assert _count(session, "1200") == 1

    def test_unresolvable_conflict_raises_provisioning_error(self, registry, monkeypatch):
        registry.get_or_create_account("1200", "Commission Receivable", "asset")
        monkeypatch.setattr(registry._accounts, "get_by_code", lambda code: None)

        with pytest.raises(AccountProvisioningError) as exc_info:
            registry.get_or_create_account("1200", "Commission Receivable", "asset")

        assert exc_info.value.code == "ACCOUNT_PROVISIONING_FAILED"
        assert exc_info.value.account_code == "1200"


class TestLookups:
    def test_get_account_missing_returns_none(self, registry):
        assert registry.get_account("0000") is None

    def test_get_active_account(self, registry):
        created = registry.get_or_create_account("1001", "Cash", "asset")
        assert registry.get_active_account("1001").id == created.id

    def test_get_active_account_missing(self, registry):
        with pytest.raises(AccountNotFoundError) as exc_info:
            registry.get_active_account("0000")
        assert exc_info.value.account_code == "0000"


class TestDeactivation:
    def test_deactivated_account_is_not_active(self, registry, captured_logs):
        registry.get_or_create_account("6000", "General Expenses", "expense")

        account = registry.deactivate_account("6000")

        assert account.is_active is False
        with pytest.raises(AccountInactiveError):
            registry.get_active_account("6000")
        assert any(r["message"] == "account_deactivated" for r in captured_logs())

    def test_deactivated_account_still_provisioned_by_code(self, registry):
        created = registry.get_or_create_account("6000", "General Expenses", "expense")
        registry.deactivate_account("6000")

        again = registry.get_or_create_account("6000", "General Expenses", "expense")

        assert again.id == created.id
        assert again.is_active is False

    def test_deactivate_unknown_account(self, registry):
        with pytest.raises(AccountNotFoundError):
            registry.deactivate_account("0000")

    def test_deactivate_twice_is_harmless(self, registry):
        registry.get_or_create_account("6000", "General Expenses", "expense")
        registry.deactivate_account("6000")
        assert registry.deactivate_account("6000").is_active is False
