"""
AccountRegistry -- lazy provisioning and lookup of chart-of-accounts entries.

Responsibility:
    Resolves account codes to Account rows, creating standard accounts the
    first time a journal builder references them.  Also the write path for
    account deactivation.

Architecture position:
    Kernel > Services.  Uses AccountStore; flushes within the caller's
    unit of work.

Invariants enforced:
    - Codes are never duplicated (UNIQUE on code).  When a concurrent unit
      of work wins the insert, the loser re-reads and returns the winner's
      row.
    - An existing account is returned unchanged; the caller's name and type
      are ignored.

Failure modes:
    - AccountProvisioningError if the account can neither be read nor
      created.  Fatal for the enclosing posting.
    - AccountNotFoundError / AccountInactiveError from get_active_account()
      and deactivate_account().
"""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from gl_kernel.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    AccountProvisioningError,
)
from gl_kernel.logging_config import get_logger
from gl_kernel.models.account import Account, AccountType
from gl_kernel.services.base import BaseService
from gl_kernel.stores.account_store import AccountStore

logger = get_logger("services.account_registry")


class AccountRegistry(BaseService):
    """Get-or-create access to the chart of accounts."""

    def __init__(self, session: Session):
        super().__init__(session)
        self._accounts = AccountStore(session)

    def get_or_create_account(
        self,
        code: str,
        name: str,
        account_type: AccountType | str,
        created_by: str | None = None,
    ) -> Account:
        """
        Return the account with ``code``, creating it if absent.

        Raises:
            ValueError: If account_type names no account type.
            AccountProvisioningError: If the account cannot be provisioned.
        """
        parsed_type = AccountType.parse(account_type)

        existing = self._accounts.get_by_code(code)
        if existing is not None:
            return existing

        try:
            account = self._accounts.insert(code, name, parsed_type, created_by)
        except IntegrityError as exc:
            logger.warning(
                "account_provisioning_conflict",
                extra={"account_code": code},
            )
            winner = self._accounts.get_by_code(code)
            if winner is None:
                raise AccountProvisioningError(
                    code, f"insert rejected and no existing row found: {exc.orig}"
                ) from exc
            return winner
        except SQLAlchemyError as exc:
            raise AccountProvisioningError(code, str(exc)) from exc

        logger.info(
            "account_provisioned",
            extra={
                "account_code": code,
                "account_name": name,
                "account_type": parsed_type.value,
                "account_id": str(account.id),
            },
        )
        return account

    def get_account(self, code: str) -> Account | None:
        return self._accounts.get_by_code(code)

    def get_active_account(self, code: str) -> Account:
        """
        Return an existing, active account.

        Raises:
            AccountNotFoundError: If no account has this code.
            AccountInactiveError: If the account is deactivated.
        """
        account = self._accounts.get_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        if not account.is_active:
            raise AccountInactiveError(code)
        return account

    def deactivate_account(self, code: str) -> Account:
        """
        Block direct use of an account.  History and balance are untouched.

        Raises:
            AccountNotFoundError: If no account has this code.
        """
        account = self._accounts.get_by_code(code)
        if account is None:
            raise AccountNotFoundError(code)
        if account.is_active:
            self._accounts.set_active(account, False)
            logger.info("account_deactivated", extra={"account_code": code})
        return account
