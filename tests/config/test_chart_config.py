"""
Tests for the chart-of-accounts configuration (gl_kernel/config.py).

Verifies:
- The packaged default parses and carries every standard role
- Expense heads map by role name or by account code
- Bad files fail loudly at load time (missing role, duplicate code, bad
  type, bad tolerance, non-boolean policy, expense head outside the chart)
"""

from dataclasses import replace
from decimal import Decimal

import pytest
import yaml

from gl_kernel.config import (
    DEFAULT_CONFIG_PATH,
    AccountRole,
    get_active_config,
    load_config,
    parse_config,
)
from gl_kernel.exceptions import AccountNotFoundError
from gl_kernel.models.account import AccountType


def _chart(**overrides) -> dict:
    data = yaml.safe_load(DEFAULT_CONFIG_PATH.read_text())
    data.update(overrides)
    return data


class TestDefaultChart:
    def test_every_standard_role_is_configured(self):
        config = get_active_config()
        for role in AccountRole.ALL:
            assert config.account_for(role).code

    def test_standard_codes(self):
        config = get_active_config()
        assert config.account_for(AccountRole.CASH).code == "1001"
        assert config.account_for(AccountRole.COMMISSION_RECEIVABLE).code == "1200"
        assert config.account_for(AccountRole.CUSTOMER_LIABILITY).code == "2001"
        assert config.account_for(AccountRole.ACCOUNTS_PAYABLE).code == "2200"
        assert config.account_for(AccountRole.FEE_REVENUE).code == "4003"
        assert config.account_for(AccountRole.COMMISSION_REVENUE).code == "4100"
        assert config.account_for(AccountRole.GENERAL_EXPENSES).code == "6000"

    def test_account_types_parsed(self):
        config = get_active_config()
        assert config.account_for(AccountRole.CASH).account_type == AccountType.ASSET
        assert (
            config.account_for(AccountRole.CUSTOMER_LIABILITY).account_type
            == AccountType.LIABILITY
        )
        assert config.account_for(AccountRole.FEE_REVENUE).account_type == AccountType.REVENUE

    def test_posting_policy_defaults(self):
        config = get_active_config()
        assert config.balance_tolerance == Decimal("0.01")
        assert config.best_effort is False

    def test_active_config_is_cached(self):
        assert get_active_config() is get_active_config()

    def test_unknown_role_raises_key_error(self):
        with pytest.raises(KeyError):
            get_active_config().account_for("suspense")


class TestExpenseHeads:
    def test_unmapped_head_posts_to_general_expenses(self):
        config = get_active_config()
        assert config.expense_account_for("head-unknown").code == "6000"
        assert config.expense_account_for(None).code == "6000"

    def test_head_mapped_to_role(self):
        config = parse_config(_chart(expense_heads={"travel": "accounts_payable"}))
        assert config.expense_account_for("travel").code == "2200"

    def test_head_mapped_to_code(self):
        data = _chart(expense_heads={"rent": "6100"})
        data["accounts"]["rent_expense"] = {
            "code": "6100",
            "name": "Rent Expense",
            "type": "expense",
        }
        config = parse_config(data)
        definition = config.expense_account_for("rent")
        assert definition.code == "6100"
        assert definition.name == "Rent Expense"

    def test_head_mapped_to_unknown_account_rejected_at_load(self):
        with pytest.raises(ValueError, match=r"not in the chart: \['rent'\]"):
            parse_config(_chart(expense_heads={"rent": "9999", "travel": "accounts_payable"}))

    def test_unknown_target_in_hand_built_config_is_typed_error(self):
        config = replace(get_active_config(), expense_heads={"rent": "9999"})
        with pytest.raises(AccountNotFoundError) as exc_info:
            config.expense_account_for("rent")
        assert exc_info.value.account_code == "9999"


class TestInvalidCharts:
    def test_missing_standard_role(self):
        data = _chart()
        del data["accounts"]["cash"]
        with pytest.raises(ValueError, match="missing standard roles"):
            parse_config(data)

    def test_duplicate_codes(self):
        data = _chart()
        data["accounts"]["cash"]["code"] = "1200"
        with pytest.raises(ValueError, match="Duplicate account codes"):
            parse_config(data)

    def test_unknown_account_type(self):
        data = _chart()
        data["accounts"]["cash"]["type"] = "cashish"
        with pytest.raises(ValueError, match="Unknown account type"):
            parse_config(data)

    def test_account_type_is_case_insensitive(self):
        data = _chart()
        data["accounts"]["cash"]["type"] = "Asset"
        assert parse_config(data).account_for("cash").account_type == AccountType.ASSET

    @pytest.mark.parametrize("tolerance", ["abc", "-0.01", "NaN"])
    def test_bad_tolerance(self, tolerance):
        with pytest.raises(ValueError, match="balance_tolerance"):
            parse_config(_chart(posting={"balance_tolerance": tolerance}))

    @pytest.mark.parametrize("value", ["false", "yes", 0, None])
    def test_best_effort_must_be_boolean(self, value):
        with pytest.raises(ValueError, match="best_effort"):
            parse_config(_chart(posting={"best_effort": value}))

    def test_missing_accounts_key(self):
        with pytest.raises(KeyError):
            parse_config({"posting": {}})


class TestLoadConfig:
    def test_load_from_file(self, tmp_path, captured_logs):
        data = _chart(posting={"balance_tolerance": "0.001", "best_effort": True})
        path = tmp_path / "chart.yaml"
        path.write_text(yaml.safe_dump(data))

        config = load_config(path)

        assert config.balance_tolerance == Decimal("0.001")
        assert config.best_effort is True
        logs = [r for r in captured_logs() if r["message"] == "gl_config_loaded"]
        assert len(logs) == 1
        assert logs[0]["account_count"] == len(AccountRole.ALL)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("accounts: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_config(path)
