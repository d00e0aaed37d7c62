"""
Module: gl_kernel.stores.account_store
Responsibility: Parameterized reads and writes of the ``accounts`` table,
    including the atomic balance increment.
Architecture position: Kernel > Stores.  May import from db/ and models/.
    Used by services only; selectors read accounts themselves.

Invariants enforced:
    - Balance changes are applied in SQL (balance = balance + :delta), never
      read-modify-write in Python, so concurrent postings cannot lose updates.
    - Inserts run inside a savepoint so that a unique-code violation rolls
      back only the insert, leaving the enclosing unit of work usable.

Failure modes:
    - IntegrityError from insert() on a duplicate code (the savepoint has
      already been rolled back when it propagates).
    - AccountNotFoundError from apply_balance_delta() for an unknown id.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from gl_kernel.exceptions import AccountNotFoundError
from gl_kernel.models.account import Account, AccountType


class AccountStore:
    """Repository over ``accounts``.  Flushes, never commits."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_code(self, code: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.code == code)
        ).scalar_one_or_none()

    def get_many(self, account_ids: list[UUID]) -> dict[UUID, Account]:
        if not account_ids:
            return {}
        rows = self.session.execute(
            select(Account).where(Account.id.in_(account_ids))
        ).scalars()
        return {account.id: account for account in rows}

    def insert(
        self,
        code: str,
        name: str,
        account_type: AccountType,
        created_by: str | None = None,
    ) -> Account:
        """Insert a new active account with a zero balance."""
        account = Account(
            code=code,
            name=name,
            account_type=account_type.value,
            balance=Decimal("0"),
            is_active=True,
            created_by=created_by,
        )
        with self.session.begin_nested():
            self.session.add(account)
            self.session.flush()
        return account

    def set_active(self, account: Account, is_active: bool) -> Account:
        account.is_active = is_active
        self.session.flush()
        return account

    def apply_balance_delta(self, account_id: UUID, delta: Decimal) -> None:
        """Increment an account balance by ``delta`` in a single UPDATE."""
        result = self.session.execute(
            update(Account)
            .where(Account.id == account_id)
            .values(balance=Account.balance + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AccountNotFoundError(str(account_id))

        # The in-memory balance of a loaded instance is now stale.
        cached = self.session.identity_map.get(
            Session.identity_key(Account, account_id)
        )
        if cached is not None:
            self.session.expire(cached, ["balance"])
