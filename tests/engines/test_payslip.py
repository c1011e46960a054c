"""
Tests for the Payslip Composer.

Covers:
- Basic pay per salary basis
- Pay date anchors
- Earnings and settlement arithmetic, including net-pay flooring
- Property: totals are never negative and the taxable identity holds
- recompute_totals after changing adjustable inputs
"""

from datetime import date
from decimal import Decimal

from hypothesis import given
from hypothesis import strategies as st

from payroll_engines.attendance import AttendanceSummary
from payroll_engines.deductions import AttendanceDeductions, GovernmentDeductionResult
from payroll_engines.payslip import (
    basic_pay_for,
    compose_payslip,
    compute_earnings,
    pay_date_for,
    recompute_totals,
    settle_deductions,
)
from payroll_engines.premiums import PremiumBreakdown
from payroll_engines.rates import DerivedRates
from payroll_kernel.domain.money import ZERO_MONEY
from payroll_module.models import (
    EmployeeCompensation,
    LineItem,
    LineItemType,
    OvertimeBucket,
    SalaryBasis,
)
from payroll_module.policy import DEFAULT_POLICY, resolve_policy

ZERO = Decimal("0")
RATES = DerivedRates(daily_rate=Decimal("1200"), hourly_rate=Decimal("150"))

money = st.decimals(min_value=0, max_value=100000, places=2)


def _summary(**overrides) -> AttendanceSummary:
    params = dict(
        cutoff_start=date(2025, 1, 1),
        cutoff_end=date(2025, 1, 15),
        working_days_in_cutoff=11,
        days_worked=Decimal("10"),
        leave_days=Decimal("1"),
        absences=ZERO,
        late_minutes=ZERO,
        undertime_hours=ZERO,
        overtime_hours=ZERO,
        night_diff_hours=ZERO,
        regular_holidays_worked=ZERO,
        regular_holidays_unworked=ZERO,
        special_holidays_worked=ZERO,
        rest_days_worked=ZERO,
    )
    params.update(overrides)
    return AttendanceSummary(**params)


def _premiums(overtime=ZERO_MONEY, holiday=ZERO_MONEY) -> PremiumBreakdown:
    buckets = {b: ZERO_MONEY for b in OvertimeBucket}
    buckets[OvertimeBucket.REGULAR] = overtime
    return PremiumBreakdown(
        holiday_pay=holiday,
        rest_day_pay=ZERO_MONEY,
        night_diff_pay=ZERO_MONEY,
        overtime_by_bucket=buckets,
    )


def _gov(*amounts) -> tuple[LineItem, ...]:
    names = ("SSS", "PhilHealth", "Pag-IBIG", "Withholding Tax")
    return tuple(LineItem(n, Decimal(a), LineItemType.GOVERNMENT) for n, a in zip(names, amounts))


def _compose(
    compensation=None,
    summary=None,
    premiums=None,
    attendance=None,
    deductions=(),
    incentives=(),
    deferred=ZERO_MONEY,
):
    compensation = compensation or EmployeeCompensation(
        salary_basis=SalaryBasis.MONTHLY, basic_salary=Decimal("26100"), allowance=Decimal("1000"),
    )
    return compose_payslip(
        employee_id="emp-1",
        payroll_run_id="run-1",
        compensation=compensation,
        policy=DEFAULT_POLICY,
        rates=RATES,
        summary=summary or _summary(),
        premiums=premiums or _premiums(),
        attendance=attendance or AttendanceDeductions(ZERO_MONEY, ZERO_MONEY, ZERO_MONEY),
        government=GovernmentDeductionResult(
            lines=tuple(d for d in deductions if d.type == LineItemType.GOVERNMENT),
            employer_contributions=(),
            deferred_deductions=deferred,
        ),
        deductions=tuple(deductions),
        incentives=tuple(incentives),
    )


# ---------------------------------------------------------------------------
# Basic pay and pay date
# ---------------------------------------------------------------------------


class TestBasicPay:

    def test_monthly_is_half_salary(self):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.MONTHLY, basic_salary=Decimal("30000"))
        assert basic_pay_for(compensation, RATES, _summary()) == Decimal("15000.00")

    def test_daily_counts_worked_and_leave_days(self):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.DAILY, basic_salary=Decimal("1200"))
        assert basic_pay_for(compensation, RATES, _summary()) == Decimal("13200.00")

    def test_hourly_half_day(self):
        compensation = EmployeeCompensation(salary_basis=SalaryBasis.HOURLY, basic_salary=Decimal("150"))
        summary = _summary(days_worked=Decimal("0.5"), leave_days=ZERO)
        assert basic_pay_for(compensation, RATES, summary) == Decimal("600.00")


class TestPayDate:

    def test_first_cutoff(self):
        assert pay_date_for(date(2025, 1, 15), DEFAULT_POLICY) == date(2025, 1, 15)

    def test_second_cutoff(self):
        assert pay_date_for(date(2025, 1, 31), DEFAULT_POLICY) == date(2025, 1, 30)

    def test_anchor_clamped_to_month_end(self):
        assert pay_date_for(date(2025, 2, 28), DEFAULT_POLICY) == date(2025, 2, 28)

    def test_configured_anchors(self):
        policy = resolve_policy({"firstPayDate": 10, "secondPayDate": 25})
        assert pay_date_for(date(2025, 3, 15), policy) == date(2025, 3, 10)
        assert pay_date_for(date(2025, 3, 31), policy) == date(2025, 3, 25)


# ---------------------------------------------------------------------------
# Earnings and settlement
# ---------------------------------------------------------------------------


class TestEarningsAndSettlement:

    def test_taxable_gross_floored(self):
        earnings = compute_earnings(
            basic_pay=Decimal("1000.00"),
            attendance_deductions=Decimal("5000.00"),
            overtime_pay=ZERO_MONEY,
            premium_pay=ZERO_MONEY,
            incentives=(),
            non_taxable_allowance=Decimal("500.00"),
        )
        assert earnings.taxable_gross_earnings == 0
        assert earnings.total_earnings == Decimal("500.00")

    def test_shortfall_is_uncollected(self):
        settlement = settle_deductions(Decimal("1000.00"), _gov("800", "400"))
        assert settlement.net_pay == 0
        assert settlement.uncollected_deductions == Decimal("200.00")
        assert settlement.total_deductions == Decimal("1200.00")

    def test_loans_split_from_government(self):
        deductions = _gov("500") + (LineItem("Salary Loan", Decimal("300"), LineItemType.LOAN),)
        settlement = settle_deductions(Decimal("10000.00"), deductions)
        assert settlement.government_deductions == Decimal("500.00")
        assert settlement.loan_deductions == Decimal("300.00")
        assert settlement.net_pay == Decimal("9200.00")


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


class TestComposePayslip:

    def test_fixed_order_totals(self):
        payslip = _compose(
            premiums=_premiums(overtime=Decimal("375.00"), holiday=Decimal("1200.00")),
            attendance=AttendanceDeductions(ZERO_MONEY, Decimal("75.00"), ZERO_MONEY),
            deductions=_gov("1000", "400", "200", "680"),
            incentives=(LineItem("Perfect Attendance", Decimal("500"), LineItemType.INCENTIVE),),
        )
        assert payslip.basic_pay == Decimal("13050.00")
        assert payslip.gross_pay == Decimal("15125.00")
        assert payslip.taxable_gross_earnings == Decimal("15050.00")
        assert payslip.total_earnings == Decimal("16050.00")
        assert payslip.government_deductions == Decimal("2280.00")
        assert payslip.net_pay == Decimal("13770.00")
        assert payslip.pending_deductions == 0
        assert payslip.pay_date == date(2025, 1, 15)

    def test_deferred_deductions_pending(self):
        payslip = _compose(deferred=Decimal("1600.00"))
        assert payslip.deferred_deductions == Decimal("1600.00")
        assert payslip.pending_deductions == Decimal("1600.00")

    def test_recompute_totals_with_new_incentive(self):
        payslip = _compose(deductions=_gov("1000"))
        recomputed = recompute_totals(
            payslip,
            incentives=(LineItem("Bonus", Decimal("1000.00"), LineItemType.INCENTIVE),),
        )
        assert recomputed.total_incentives == Decimal("1000.00")
        assert recomputed.net_pay == payslip.net_pay + Decimal("1000.00")
        assert recomputed.basic_pay == payslip.basic_pay

    def test_fingerprint_stable(self):
        assert _compose().fingerprint() == _compose().fingerprint()

    def test_dict_round_trip(self):
        payslip = _compose(deductions=_gov("1000", "400"))
        from payroll_module.models import Payslip

        assert Payslip.from_dict(payslip.to_dict()) == payslip

    @given(
        basic=st.decimals(min_value=1, max_value=500000, places=2),
        late=money,
        undertime=money,
        overtime=money,
        holiday=money,
        incentive=money,
        allowance=money,
        deduction=money,
    )
    def test_totals_never_negative_and_taxable_identity(
        self, basic, late, undertime, overtime, holiday, incentive, allowance, deduction,
    ):
        compensation = EmployeeCompensation(
            salary_basis=SalaryBasis.MONTHLY, basic_salary=basic, allowance=allowance,
        )
        payslip = _compose(
            compensation=compensation,
            premiums=_premiums(overtime=overtime, holiday=holiday),
            attendance=AttendanceDeductions(ZERO_MONEY, late, undertime),
            deductions=_gov(deduction),
            incentives=(LineItem("Bonus", incentive, LineItemType.INCENTIVE),),
        )

        assert payslip.net_pay >= 0
        assert payslip.total_earnings >= 0
        assert payslip.taxable_gross_earnings >= 0
        expected_taxable = (
            payslip.basic_pay
            - payslip.absent_deduction
            - payslip.late_deduction
            - payslip.undertime_deduction
            + payslip.overtime_pay
            + payslip.premium_pay
            + payslip.total_incentives
        )
        assert payslip.taxable_gross_earnings == max(expected_taxable, ZERO)
        assert payslip.net_pay + payslip.total_deductions - payslip.uncollected_deductions == payslip.total_earnings
