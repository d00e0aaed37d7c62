"""
GL kernel configuration (``gl_kernel.config``).

Responsibility
--------------
Loads the chart-of-accounts YAML into frozen dataclasses: the standard
accounts used by the journal builders (by role), the expense-head mapping,
the balance tolerance and the default failure policy of the facade.

``get_active_config()`` returns the packaged default, parsed once.
``load_config(path)`` parses any other file (tests, deployments with a
different chart).

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError``.
* Unknown account type, missing standard role, bad tolerance or policy,
  expense head mapped outside the chart  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from gl_kernel.exceptions import AccountNotFoundError
from gl_kernel.logging_config import get_logger
from gl_kernel.models.account import AccountType

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "chart_of_accounts.yaml"


class AccountRole:
    """Roles the journal builders resolve through configuration."""

    CASH = "cash"
    COMMISSION_RECEIVABLE = "commission_receivable"
    COMMISSION_REVENUE = "commission_revenue"
    GENERAL_EXPENSES = "general_expenses"
    ACCOUNTS_PAYABLE = "accounts_payable"
    CUSTOMER_LIABILITY = "customer_liability"
    FEE_REVENUE = "fee_revenue"

    ALL = (
        CASH,
        COMMISSION_RECEIVABLE,
        COMMISSION_REVENUE,
        GENERAL_EXPENSES,
        ACCOUNTS_PAYABLE,
        CUSTOMER_LIABILITY,
        FEE_REVENUE,
    )


@dataclass(frozen=True)
class AccountDefinition:
    """Code, name and type of an account provisioned on first use."""

    code: str
    name: str
    account_type: AccountType


@dataclass(frozen=True)
class GLConfig:
    """Parsed chart of accounts and posting policy."""

    accounts: dict[str, AccountDefinition]
    expense_heads: dict[str, str] = field(default_factory=dict)
    balance_tolerance: Decimal = Decimal("0.01")
    best_effort: bool = False

    def account_for(self, role: str) -> AccountDefinition:
        """
        Account definition for a role.

        Raises:
            KeyError: If the role is not configured.
        """
        try:
            return self.accounts[role]
        except KeyError:
            raise KeyError(f"No account configured for role {role!r}") from None

    def expense_account_for(self, expense_head_id: str | None) -> AccountDefinition:
        """
        Account an expense head posts to.

        The mapping value is a role name or an account code from the chart.
        Unmapped heads fall back to the general_expenses role.

        Raises:
            AccountNotFoundError: If the head maps to an account that is not
                in the chart (only possible for a GLConfig built without
                parse_config()).
        """
        target = self.expense_heads.get(expense_head_id) if expense_head_id else None
        if target is None:
            return self.account_for(AccountRole.GENERAL_EXPENSES)
        definition = self.find_account(target)
        if definition is None:
            raise AccountNotFoundError(target)
        return definition

    def find_account(self, role_or_code: str) -> AccountDefinition | None:
        """Account definition by role name, else by account code."""
        if role_or_code in self.accounts:
            return self.accounts[role_or_code]
        for definition in self.accounts.values():
            if definition.code == role_or_code:
                return definition
        return None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_account(role: str, data: dict[str, Any]) -> AccountDefinition:
    """Parse one entry of the ``accounts`` mapping."""
    return AccountDefinition(
        code=str(data["code"]),
        name=str(data["name"]),
        account_type=AccountType.parse(data["type"]),
    )


def parse_tolerance(value: Any) -> Decimal:
    try:
        tolerance = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"balance_tolerance is not a number: {value!r}") from None
    if not tolerance.is_finite() or tolerance < 0:
        raise ValueError(f"balance_tolerance must be a non-negative number: {value!r}")
    return tolerance


def parse_config(data: dict[str, Any]) -> GLConfig:
    """
    Parse a ``GLConfig`` from a dict.

    Raises:
        KeyError: if ``accounts`` or an account's code/name/type is missing.
        ValueError: on an unknown account type, a missing standard role,
            duplicate account codes, a bad tolerance, a non-boolean
            best_effort or an expense head mapped to an unknown account.
    """
    accounts = {
        role: parse_account(role, account_data)
        for role, account_data in data["accounts"].items()
    }

    missing = [role for role in AccountRole.ALL if role not in accounts]
    if missing:
        raise ValueError(f"Chart of accounts is missing standard roles: {missing}")

    codes = [a.code for a in accounts.values()]
    duplicates = sorted({c for c in codes if codes.count(c) > 1})
    if duplicates:
        raise ValueError(f"Duplicate account codes in chart of accounts: {duplicates}")

    posting = data.get("posting") or {}
    best_effort = posting.get("best_effort", False)
    if not isinstance(best_effort, bool):
        raise ValueError(f"best_effort must be true or false: {best_effort!r}")

    config = GLConfig(
        accounts=accounts,
        expense_heads={
            str(head): str(target)
            for head, target in (data.get("expense_heads") or {}).items()
        },
        balance_tolerance=parse_tolerance(posting.get("balance_tolerance", "0.01")),
        best_effort=best_effort,
    )

    unknown_heads = sorted(
        head for head, target in config.expense_heads.items()
        if config.find_account(target) is None
    )
    if unknown_heads:
        raise ValueError(
            f"Expense heads map to accounts not in the chart: {unknown_heads}"
        )
    return config


def load_config(path: Path | str) -> GLConfig:
    """Load and parse a chart-of-accounts YAML file."""
    path = Path(path)
    config = parse_config(load_yaml_file(path))
    logger.info(
        "gl_config_loaded",
        extra={
            "path": str(path),
            "account_count": len(config.accounts),
            "expense_head_count": len(config.expense_heads),
            "balance_tolerance": str(config.balance_tolerance),
            "best_effort": config.best_effort,
        },
    )
    return config


@lru_cache(maxsize=1)
def get_active_config() -> GLConfig:
    """The packaged default configuration, parsed once per process."""
    return load_config(DEFAULT_CONFIG_PATH)
