"""
Tests for payroll policy resolution.

Covers:
- Defaults when settings are missing or None
- camelCase and snake_case keys, wrapper unwrapping
- Validation failures for present-but-invalid fields
- YAML file loading
"""

from decimal import Decimal

import pytest

from payroll_kernel.exceptions import PolicyValidationError
from payroll_module.policy import DEFAULT_POLICY, PayrollPolicy, load_policy_file, resolve_policy


class TestResolvePolicyDefaults:

    def test_none_gives_defaults(self):
        assert resolve_policy(None) == DEFAULT_POLICY

    def test_empty_gives_defaults(self):
        policy = resolve_policy({})
        assert policy.night_diff_percent == Decimal("0.10")
        assert policy.overtime_regular_rate == Decimal("1.25")
        assert policy.daily_rate_working_days_per_year == 261
        assert policy.hours_per_day == Decimal("8")
        assert policy.first_pay_date == 15
        assert policy.second_pay_date == 30
        assert policy.paid_leave_types == ("vacation", "sick", "maternity", "paternity")

    def test_none_value_takes_default(self):
        policy = resolve_policy({"nightDiffPercent": None})
        assert policy.night_diff_percent == Decimal("0.10")

    def test_defaults_logged(self, captured_logs):
        resolve_policy({"nightDiffPercent": 0.2})

        logs = captured_logs()
        defaulted = [r for r in logs if r["message"] == "payroll_policy_defaults_applied"]
        assert len(defaulted) == 1
        assert "night_diff_percent" not in defaulted[0]["defaulted_fields"]
        assert "hours_per_day" in defaulted[0]["defaulted_fields"]

    def test_policy_is_frozen(self):
        with pytest.raises(AttributeError):
            DEFAULT_POLICY.hours_per_day = Decimal("9")


class TestResolvePolicyKeys:

    def test_camel_case_keys(self):
        policy = resolve_policy(
            {
                "overtimeRestDayExcessRate": "2.5",
                "dailyRateIncludesAllowance": True,
                "dailyRateWorkingDaysPerYear": 313,
            }
        )
        assert policy.overtime_rest_day_excess_rate == Decimal("2.5")
        assert policy.daily_rate_includes_allowance is True
        assert policy.daily_rate_working_days_per_year == 313

    def test_snake_case_keys(self):
        policy = resolve_policy({"regular_holiday_ot_rate": 2.2, "hours_per_day": 9})
        assert policy.regular_holiday_ot_rate == Decimal("2.2")
        assert policy.hours_per_day == Decimal("9")

    @pytest.mark.parametrize("wrapper", ["payrollSettings", "payroll_settings"])
    def test_wrapper_unwrapped(self, wrapper):
        policy = resolve_policy({wrapper: {"specialHolidayRate": 0.5}, "name": "Acme"})
        assert policy.special_holiday_rate == Decimal("0.5")

    def test_empty_wrapper_gives_defaults(self):
        assert resolve_policy({"payrollSettings": None}) == DEFAULT_POLICY

    def test_unknown_keys_ignored(self):
        assert resolve_policy({"currency": "PHP"}) == DEFAULT_POLICY

    def test_paid_leave_types_list(self):
        policy = resolve_policy({"paidLeaveTypes": ["vacation", "bereavement"]})
        assert policy.paid_leave_types == ("vacation", "bereavement")


class TestResolvePolicyValidation:

    @pytest.mark.parametrize(
        "settings",
        [
            {"nightDiffPercent": -0.1},
            {"overtimeRegularRate": "fast"},
            {"hoursPerDay": 0},
            {"dailyRateWorkingDaysPerYear": 0},
            {"dailyRateWorkingDaysPerYear": True},
            {"firstPayDate": 0},
            {"secondPayDate": 32},
            {"secondPayDate": "30"},
            {"dailyRateIncludesAllowance": "yes"},
            {"paidLeaveTypes": "vacation"},
            {"paidLeaveTypes": [1, 2]},
        ],
    )
    def test_invalid_values_rejected(self, settings):
        with pytest.raises(PolicyValidationError):
            resolve_policy(settings)

    def test_error_carries_field(self):
        with pytest.raises(PolicyValidationError) as exc_info:
            resolve_policy({"hoursPerDay": -8})
        assert exc_info.value.field == "hours_per_day"
        assert exc_info.value.code == "POLICY_VALIDATION_ERROR"

    def test_zero_multiplier_allowed(self):
        assert resolve_policy({"restDayPremiumRate": 0}).rest_day_premium_rate == 0


class TestLoadPolicyFile:

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text(
            "payrollSettings:\n"
            "  nightDiffPercent: 0.15\n"
            "  firstPayDate: 10\n"
            "  secondPayDate: 25\n"
        )
        policy = load_policy_file(path)
        assert isinstance(policy, PayrollPolicy)
        assert policy.night_diff_percent == Decimal("0.15")
        assert policy.first_pay_date == 10
        assert policy.second_pay_date == 25

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_policy_file(path) == DEFAULT_POLICY

    def test_non_mapping_root_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(PolicyValidationError):
            load_policy_file(path)
