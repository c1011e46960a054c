"""
Payslip Composer (``payroll_engines.payslip``).

Responsibility
--------------
Combine basic pay, attendance deductions, premiums, incentives, allowance
and deductions into a ``Payslip`` in one fixed order, storing each
sub-total so nothing is recomputed at display time:

    1. basic_pay         monthly: basic_salary / 2
                         daily/hourly: daily_rate x (days_worked + leave_days)
    2. - absent - late - undertime
    3. + overtime_pay + premium_pay + incentives -> taxable_gross_earnings (>= 0)
    4. + non_taxable_allowance                   -> total_earnings
    5. - government - loan deductions            -> net_pay (>= 0)

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O.

Invariants enforced
-------------------
* Attendance deductions are netted into earnings in step 2 and never
  subtracted again in step 5.
* ``net_pay = max(0, total_earnings - (government + loan deductions))``;
  whatever net pay could not cover is carried in ``pending_deductions``.
* Every amount is rounded half-up to 0.01 before it enters a sum, so
  identical inputs give byte-identical payslips.
* ``recompute_totals`` re-runs steps 3-5 from the stored sub-totals and is
  the only way an edited payslip gets new totals.
"""

from __future__ import annotations

import calendar
from collections.abc import Sequence
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal

from payroll_engines.attendance import AttendanceSummary
from payroll_engines.deductions import AttendanceDeductions, GovernmentDeductionResult
from payroll_engines.premiums import PremiumBreakdown
from payroll_engines.rates import DerivedRates
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.money import (
    ZERO_MONEY,
    floor_zero,
    round_hours,
    round_money,
    to_decimal,
)
from payroll_kernel.logging_config import get_logger
from payroll_module.models import (
    ComputationWarning,
    EmployeeCompensation,
    LineItem,
    LineItemType,
    OvertimeBucket,
    Payslip,
    SalaryBasis,
)
from payroll_module.policy import PayrollPolicy

logger = get_logger("engines.payslip")

CUTOFFS_PER_MONTH = Decimal("2")


def _total(items: Sequence[LineItem]) -> Decimal:
    return sum((round_money(i.amount) for i in items), ZERO_MONEY)


def basic_pay_for(
    compensation: EmployeeCompensation,
    rates: DerivedRates,
    summary: AttendanceSummary,
) -> Decimal:
    """Step 1: basic pay for the cutoff."""
    if compensation.salary_basis == SalaryBasis.MONTHLY:
        return round_money(compensation.basic_salary / CUTOFFS_PER_MONTH)
    return round_money(rates.daily_rate * (summary.days_worked + summary.leave_days))


def pay_date_for(cutoff_end: date, policy: PayrollPolicy) -> date:
    """Display pay date: the first anchor for cutoffs ending by the 15th, else the second.

    Anchors past the end of the month are clamped to its last day.
    """
    anchor = policy.first_pay_date if cutoff_end.day <= 15 else policy.second_pay_date
    last_day = calendar.monthrange(cutoff_end.year, cutoff_end.month)[1]
    return cutoff_end.replace(day=min(anchor, last_day))


@dataclass(frozen=True)
class Earnings:
    """Steps 2-4 of the composition."""
    gross_pay: Decimal
    total_incentives: Decimal
    taxable_gross_earnings: Decimal
    non_taxable_allowance: Decimal
    total_earnings: Decimal


@dataclass(frozen=True)
class Settlement:
    """Step 5 of the composition."""
    government_deductions: Decimal
    loan_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    uncollected_deductions: Decimal


def compute_earnings(
    *,
    basic_pay: Decimal,
    attendance_deductions: Decimal,
    overtime_pay: Decimal,
    premium_pay: Decimal,
    incentives: Sequence[LineItem],
    non_taxable_allowance: Decimal,
) -> Earnings:
    total_incentives = _total(incentives)
    gross_pay = basic_pay + overtime_pay + premium_pay + total_incentives
    taxable = floor_zero(gross_pay - attendance_deductions)
    allowance = round_money(non_taxable_allowance)
    return Earnings(
        gross_pay=gross_pay,
        total_incentives=total_incentives,
        taxable_gross_earnings=taxable,
        non_taxable_allowance=allowance,
        total_earnings=taxable + allowance,
    )


def settle_deductions(total_earnings: Decimal, deductions: Sequence[LineItem]) -> Settlement:
    government = _total([d for d in deductions if d.type == LineItemType.GOVERNMENT])
    loans = _total([d for d in deductions if d.type != LineItemType.GOVERNMENT])
    total = government + loans
    return Settlement(
        government_deductions=government,
        loan_deductions=loans,
        total_deductions=total,
        net_pay=floor_zero(total_earnings - total),
        uncollected_deductions=floor_zero(total - total_earnings),
    )


@traced_engine(
    "payslip",
    "1.0",
    fingerprint_fields=("employee_id", "payroll_run_id", "compensation", "summary", "deductions", "incentives"),
)
def compose_payslip(
    *,
    employee_id: str,
    payroll_run_id: str,
    compensation: EmployeeCompensation,
    policy: PayrollPolicy,
    rates: DerivedRates,
    summary: AttendanceSummary,
    premiums: PremiumBreakdown,
    attendance: AttendanceDeductions,
    government: GovernmentDeductionResult,
    deductions: Sequence[LineItem],
    incentives: Sequence[LineItem],
    warnings: Sequence[ComputationWarning] = (),
) -> Payslip:
    """Compose the payslip in the fixed five-step order.

    ``deductions`` is the full government + loan line list in payslip
    order; ``government`` supplies employer contributions and deferrals.
    """
    basic_pay = basic_pay_for(compensation, rates, summary)
    earnings = compute_earnings(
        basic_pay=basic_pay,
        attendance_deductions=attendance.total,
        overtime_pay=premiums.overtime_pay,
        premium_pay=premiums.premium_pay,
        incentives=incentives,
        non_taxable_allowance=compensation.allowance,
    )
    settlement = settle_deductions(earnings.total_earnings, deductions)
    overtime = premiums.overtime_by_bucket

    payslip = Payslip(
        employee_id=employee_id,
        payroll_run_id=payroll_run_id,
        cutoff_start=summary.cutoff_start,
        cutoff_end=summary.cutoff_end,
        pay_date=pay_date_for(summary.cutoff_end, policy),
        salary_basis=compensation.salary_basis,
        daily_rate=round_money(rates.daily_rate),
        hourly_rate=round_money(rates.hourly_rate),
        working_days_in_cutoff=summary.working_days_in_cutoff,
        days_worked=summary.days_worked,
        leave_days=summary.leave_days,
        absences=summary.absences,
        late_minutes=summary.late_minutes,
        late_hours=summary.late_hours,
        undertime_hours=round_hours(summary.undertime_hours),
        overtime_hours=round_hours(summary.overtime_hours),
        night_diff_hours=round_hours(summary.night_diff_hours),
        basic_pay=basic_pay,
        absent_deduction=attendance.absent_deduction,
        late_deduction=attendance.late_deduction,
        undertime_deduction=attendance.undertime_deduction,
        holiday_pay=premiums.holiday_pay,
        rest_day_pay=premiums.rest_day_pay,
        night_diff_pay=premiums.night_diff_pay,
        overtime_regular=overtime[OvertimeBucket.REGULAR],
        overtime_rest_day=overtime[OvertimeBucket.REST_DAY],
        overtime_rest_day_excess=overtime[OvertimeBucket.REST_DAY_EXCESS],
        overtime_special_holiday=overtime[OvertimeBucket.SPECIAL_HOLIDAY],
        overtime_special_holiday_excess=overtime[OvertimeBucket.SPECIAL_HOLIDAY_EXCESS],
        overtime_legal_holiday=overtime[OvertimeBucket.LEGAL_HOLIDAY],
        overtime_legal_holiday_excess=overtime[OvertimeBucket.LEGAL_HOLIDAY_EXCESS],
        overtime_pay=premiums.overtime_pay,
        premium_pay=premiums.premium_pay,
        incentives=tuple(incentives),
        total_incentives=earnings.total_incentives,
        gross_pay=earnings.gross_pay,
        taxable_gross_earnings=earnings.taxable_gross_earnings,
        non_taxable_allowance=earnings.non_taxable_allowance,
        total_earnings=earnings.total_earnings,
        deductions=tuple(deductions),
        government_deductions=settlement.government_deductions,
        loan_deductions=settlement.loan_deductions,
        total_deductions=settlement.total_deductions,
        net_pay=settlement.net_pay,
        deferred_deductions=government.deferred_deductions,
        uncollected_deductions=settlement.uncollected_deductions,
        pending_deductions=government.deferred_deductions + settlement.uncollected_deductions,
        has_worked_at_least_one_day=summary.has_worked_at_least_one_day,
        employer_contributions=government.employer_contributions,
        warnings=tuple(warnings),
    )

    if settlement.uncollected_deductions > 0:
        logger.warning(
            "payslip_deductions_exceed_earnings",
            extra={
                "employee_id": employee_id,
                "uncollected": str(settlement.uncollected_deductions),
            },
        )
    logger.info(
        "payslip_composed",
        extra={
            "employee_id": employee_id,
            "payroll_run_id": payroll_run_id,
            "taxable_gross_earnings": str(payslip.taxable_gross_earnings),
            "net_pay": str(payslip.net_pay),
        },
    )
    return payslip


def recompute_totals(
    payslip: Payslip,
    *,
    deductions: Sequence[LineItem] | None = None,
    incentives: Sequence[LineItem] | None = None,
    non_taxable_allowance: Decimal | None = None,
) -> Payslip:
    """Re-run steps 3-5 from stored sub-totals with new adjustable inputs.

    Basic pay, attendance deductions and premiums are kept as stored;
    arguments left as ``None`` keep the payslip's current value.
    """
    new_deductions = tuple(payslip.deductions if deductions is None else deductions)
    new_incentives = tuple(payslip.incentives if incentives is None else incentives)
    allowance = (
        payslip.non_taxable_allowance
        if non_taxable_allowance is None
        else to_decimal(non_taxable_allowance)
    )

    earnings = compute_earnings(
        basic_pay=payslip.basic_pay,
        attendance_deductions=payslip.attendance_deductions,
        overtime_pay=payslip.overtime_pay,
        premium_pay=payslip.premium_pay,
        incentives=new_incentives,
        non_taxable_allowance=allowance,
    )
    settlement = settle_deductions(earnings.total_earnings, new_deductions)

    return replace(
        payslip,
        incentives=new_incentives,
        total_incentives=earnings.total_incentives,
        gross_pay=earnings.gross_pay,
        taxable_gross_earnings=earnings.taxable_gross_earnings,
        non_taxable_allowance=earnings.non_taxable_allowance,
        total_earnings=earnings.total_earnings,
        deductions=new_deductions,
        government_deductions=settlement.government_deductions,
        loan_deductions=settlement.loan_deductions,
        total_deductions=settlement.total_deductions,
        net_pay=settlement.net_pay,
        uncollected_deductions=settlement.uncollected_deductions,
        pending_deductions=payslip.deferred_deductions + settlement.uncollected_deductions,
    )
