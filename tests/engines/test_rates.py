"""Tests for the Rate Deriver."""

from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from payroll_engines.rates import derive_rates
from payroll_kernel.exceptions import InvalidCompensationError
from payroll_module.models import EmployeeCompensation, SalaryBasis
from payroll_module.policy import DEFAULT_POLICY, resolve_policy


class TestDeriveRates:

    def test_monthly_reference_example(self):
        """26,100 x 12 / 261 = 1,200.00 daily; / 8 = 150.00 hourly."""
        compensation = EmployeeCompensation(
            salary_basis=SalaryBasis.MONTHLY, basic_salary=Decimal("26100"),
        )
        policy = resolve_policy(
            {"dailyRateIncludesAllowance": False, "dailyRateWorkingDaysPerYear": 261}
        )

        rates = derive_rates(compensation=compensation, policy=policy)

        assert rates.daily_rate == Decimal("1200.00")
        assert rates.hourly_rate == Decimal("150.00")

    def test_monthly_allowance_excluded_by_default(self):
        compensation = EmployeeCompensation(
            salary_basis=SalaryBasis.MONTHLY,
            basic_salary=Decimal("26100"),
            allowance=Decimal("2610"),
        )
        rates = derive_rates(compensation=compensation, policy=DEFAULT_POLICY)
        assert rates.daily_rate == Decimal("1200")

    def test_monthly_allowance_included_when_configured(self):
        compensation = EmployeeCompensation(
            salary_basis=SalaryBasis.MONTHLY,
            basic_salary=Decimal("26100"),
            allowance=Decimal("2610"),
        )
        policy = resolve_policy({"dailyRateIncludesAllowance": True})
        rates = derive_rates(compensation=compensation, policy=policy)
        assert rates.daily_rate == Decimal("1320")
        assert rates.hourly_rate == Decimal("165")

    def test_daily_basis(self):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.DAILY, basic_salary=Decimal("800"))
        rates = derive_rates(compensation=compensation, policy=DEFAULT_POLICY)
        assert rates.daily_rate == Decimal("800")
        assert rates.hourly_rate == Decimal("100")

    def test_hourly_basis(self):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.HOURLY, basic_salary=Decimal("95.50"))
        rates = derive_rates(compensation=compensation, policy=DEFAULT_POLICY)
        assert rates.hourly_rate == Decimal("95.50")
        assert rates.daily_rate == Decimal("764.00")

    def test_custom_hours_per_day(self):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.DAILY, basic_salary=Decimal("900"))
        policy = resolve_policy({"hoursPerDay": 9})
        assert derive_rates(compensation=compensation, policy=policy).hourly_rate == Decimal("100")

    def test_rates_kept_at_six_places(self):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.MONTHLY, basic_salary=Decimal("10000"))
        rates = derive_rates(compensation=compensation, policy=DEFAULT_POLICY)
        assert rates.daily_rate == Decimal("459.770115")

    @given(st.decimals(min_value=Decimal("1"), max_value=Decimal("1000000"), places=2))
    def test_hourly_is_daily_over_hours(self, salary):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.MONTHLY, basic_salary=salary)
        rates = derive_rates(compensation=compensation, policy=DEFAULT_POLICY)
        assert abs(rates.hourly_rate * 8 - rates.daily_rate) <= Decimal("0.000008")


class TestCompensationValidation:

    @pytest.mark.parametrize("salary", [Decimal("0"), Decimal("-1"), "abc"])
    def test_rejects_non_positive_or_non_numeric_salary(self, salary):
        with pytest.raises(InvalidCompensationError):
            EmployeeCompensation(salary_basis=SalaryBasis.MONTHLY, basic_salary=salary)

    def test_rejects_negative_allowance(self):
        with pytest.raises(InvalidCompensationError) as exc_info:
            EmployeeCompensation(
                salary_basis=SalaryBasis.MONTHLY, basic_salary=Decimal("1000"), allowance=Decimal("-5"),
            )
        assert exc_info.value.field == "allowance"

    def test_rejects_out_of_bounds_holiday_rate(self):
        with pytest.raises(InvalidCompensationError):
            EmployeeCompensation(
                salary_basis=SalaryBasis.MONTHLY,
                basic_salary=Decimal("1000"),
                regular_holiday_rate=Decimal("2.5"),
            )

    def test_unknown_salary_basis(self):
        with pytest.raises(ValueError):
            EmployeeCompensation(salary_basis="weekly", basic_salary=Decimal("1000"))
