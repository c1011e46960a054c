"""
Tests for PayrollCalculator.compute_payslip.

Covers:
- The monthly reference scenario (30,000 salary, ten workdays all present)
- Byte-identical recomputation from identical inputs
- Leave-covered absences produce no absent deduction
- Run elections (loans, incentives, disabled deductions)
- Deferral when nothing was worked
"""

from datetime import date, time
from decimal import Decimal

import pytest

from payroll_engines.deductions import FixedContributionTable
from payroll_kernel.exceptions import InvalidAttendanceError, InvalidLineItemError
from payroll_module.models import (
    ApprovedLeave,
    AttendanceRecord,
    AttendanceStatus,
    DaySchedule,
    Employee,
    EmployeeCompensation,
    EmployeeLeave,
    EmployeeRunElections,
    EmployeeSchedule,
    GovernmentDeductionType,
    GovernmentElection,
    HolidayEntry,
    HolidayType,
    LeaveCredit,
    LineItem,
    LineItemType,
    PayrollRun,
    RecurringLineItem,
    SalaryBasis,
    ScheduleOverride,
)
from payroll_module.policy import DEFAULT_POLICY
from payroll_module.service import PayrollCalculator

CUTOFF_START = date(2025, 1, 6)   # Monday
CUTOFF_END = date(2025, 1, 17)    # Friday
WORKDAYS = [date(2025, 1, d) for d in (6, 7, 8, 9, 10, 13, 14, 15, 16, 17)]

TABLE = FixedContributionTable.from_mapping(
    {
        "employee": {"sss": 1000, "philhealth": 400, "pagibig": 200},
        "employer": {"sss": 2000, "philhealth": 400, "pagibig": 200},
        "tax_rate": "0.20",
        "tax_exempt_threshold": "10000",
    }
)


def _schedule() -> EmployeeSchedule:
    workday = DaySchedule(is_workday=True, schedule_in=time(8, 0), schedule_out=time(17, 0))
    rest = DaySchedule(is_workday=False)
    return EmployeeSchedule(
        default_schedule={
            "monday": workday,
            "tuesday": workday,
            "wednesday": workday,
            "thursday": workday,
            "friday": workday,
            "saturday": rest,
            "sunday": rest,
        }
    )


def _employee(basis=SalaryBasis.MONTHLY, salary="30000", leave=None) -> Employee:
    return Employee(
        id="emp-1",
        name="Juan dela Cruz",
        compensation=EmployeeCompensation(salary_basis=basis, basic_salary=Decimal(salary)),
        schedule=_schedule(),
        leave=leave or EmployeeLeave(),
    )


def _run(elections=None) -> PayrollRun:
    return PayrollRun(
        id="run-2025-01-a",
        organization_id="org-1",
        cutoff_start=CUTOFF_START,
        cutoff_end=CUTOFF_END,
        elections={"emp-1": elections} if elections else {},
    )


def _present(d: date) -> AttendanceRecord:
    return AttendanceRecord(
        date=d,
        status=AttendanceStatus.PRESENT,
        actual_in=time(8, 0),
        actual_out=time(17, 0),
    )


def _all_present(except_dates=()) -> list[AttendanceRecord]:
    return [_present(d) for d in WORKDAYS if d not in except_dates]


def _compute(employee=None, run=None, attendance=None, holidays=()):
    calculator = PayrollCalculator(policy=DEFAULT_POLICY, contribution_table=TABLE)
    return calculator.compute_payslip(
        employee=employee or _employee(),
        run=run or _run(),
        attendance=_all_present() if attendance is None else attendance,
        holidays=list(holidays),
    )


# ---------------------------------------------------------------------------
# Reference scenario
# ---------------------------------------------------------------------------


class TestMonthlyReferenceScenario:

    def test_full_attendance(self):
        payslip = _compute()

        assert payslip.working_days_in_cutoff == 10
        assert payslip.days_worked == 10
        assert payslip.absences == 0
        assert payslip.basic_pay == Decimal("15000.00")
        assert payslip.attendance_deductions == 0
        assert payslip.taxable_gross_earnings == Decimal("15000.00")
        assert payslip.total_earnings == Decimal("15000.00")

    def test_net_pay_is_taxable_minus_government(self):
        payslip = _compute()

        # (15000 - 1600 - 10000) x 0.20 = 680
        assert [d.name for d in payslip.deductions] == ["SSS", "PhilHealth", "Pag-IBIG", "Withholding Tax"]
        assert payslip.government_deductions == Decimal("2280.00")
        assert payslip.net_pay == Decimal("15000.00") - payslip.government_deductions
        assert payslip.pending_deductions == 0

    def test_pay_date_and_rates(self):
        payslip = _compute()
        assert payslip.pay_date == date(2025, 1, 30)
        assert payslip.daily_rate == Decimal("1379.31")
        assert payslip.payroll_run_id == "run-2025-01-a"

    def test_employer_contributions_recorded(self):
        payslip = _compute()
        assert [c.amount for c in payslip.employer_contributions] == [
            Decimal("2000.00"), Decimal("400.00"), Decimal("200.00"),
        ]

    def test_recomputation_is_byte_identical(self):
        first = _compute()
        second = _compute()
        assert first.fingerprint() == second.fingerprint()
        assert first.to_dict() == second.to_dict()

    def test_logs_completion_with_context(self, captured_logs):
        _compute()
        completed = [r for r in captured_logs() if r["message"] == "payslip_computation_completed"]
        assert len(completed) == 1
        assert completed[0]["employee_id"] == "emp-1"
        assert completed[0]["payroll_run_id"] == "run-2025-01-a"


# ---------------------------------------------------------------------------
# Absences and leave
# ---------------------------------------------------------------------------


class TestAbsencesAndLeave:

    def test_uncovered_absence_deducted(self):
        payslip = _compute(attendance=_all_present(except_dates={date(2025, 1, 8)}))
        assert payslip.absences == 1
        assert payslip.absent_deduction == Decimal("1379.31")
        assert payslip.taxable_gross_earnings == Decimal("13620.69")

    def test_leave_covered_absence_not_deducted(self):
        leave = EmployeeLeave(
            credits=(LeaveCredit("vacation", Decimal("5"), Decimal("1")),),
            approved=(ApprovedLeave("vacation", date(2025, 1, 8), date(2025, 1, 8)),),
        )
        payslip = _compute(
            employee=_employee(leave=leave),
            attendance=_all_present(except_dates={date(2025, 1, 8)}),
        )
        assert payslip.leave_days == 1
        assert payslip.absences == 0
        assert payslip.absent_deduction == 0
        assert payslip.basic_pay == Decimal("15000.00")

    def test_unpaid_leave_type_is_absence(self):
        leave = EmployeeLeave(
            approved=(ApprovedLeave("unpaid", date(2025, 1, 8), date(2025, 1, 8)),),
        )
        payslip = _compute(
            employee=_employee(leave=leave),
            attendance=_all_present(except_dates={date(2025, 1, 8)}),
        )
        assert payslip.absences == 1

    def test_unworked_regular_holiday_paid(self):
        holiday = HolidayEntry(date=date(2025, 1, 8), name="Company Day", type=HolidayType.REGULAR)
        payslip = _compute(
            attendance=_all_present(except_dates={date(2025, 1, 8)}),
            holidays=[holiday],
        )
        assert payslip.absences == 0
        assert payslip.holiday_pay == payslip.daily_rate

    def test_duplicate_records_rejected(self):
        records = _all_present() + [_present(date(2025, 1, 6))]
        with pytest.raises(InvalidAttendanceError):
            _compute(attendance=records)


# ---------------------------------------------------------------------------
# Rest days and leave overrides
# ---------------------------------------------------------------------------


class TestRestDayPremiums:

    def test_regular_holiday_on_rest_day_pays_both_premiums(self):
        saturday = date(2025, 1, 11)
        holiday = HolidayEntry(date=saturday, name="Founding Day", type=HolidayType.REGULAR)
        payslip = _compute(
            employee=_employee(basis=SalaryBasis.DAILY, salary="1000"),
            attendance=_all_present() + [_present(saturday)],
            holidays=[holiday],
        )
        assert payslip.rest_day_pay == Decimal("300.00")
        assert payslip.holiday_pay == Decimal("1000.00")
        assert payslip.basic_pay == Decimal("11000.00")

    def test_leave_override_pays_daily_employee(self):
        monday = date(2025, 1, 6)
        employee = Employee(
            id="emp-1",
            name="Juan dela Cruz",
            compensation=EmployeeCompensation(salary_basis=SalaryBasis.DAILY, basic_salary=Decimal("1000")),
            schedule=EmployeeSchedule(
                default_schedule=_schedule().default_schedule,
                overrides=(
                    ScheduleOverride(date=monday, is_workday=False, reason="leave", leave_type="vacation"),
                ),
            ),
            leave=EmployeeLeave(
                credits=(LeaveCredit("vacation", Decimal("5"), Decimal("1")),),
                approved=(ApprovedLeave("vacation", monday, monday),),
            ),
        )
        payslip = _compute(employee=employee, attendance=_all_present(except_dates={monday}))
        assert payslip.leave_days == 1
        assert payslip.absences == 0
        assert payslip.basic_pay == Decimal("10000.00")


# ---------------------------------------------------------------------------
# Elections
# ---------------------------------------------------------------------------


class TestRunElections:

    def test_loans_and_incentives(self):
        elections = EmployeeRunElections(
            employee_id="emp-1",
            loans=(LineItem("Salary Loan", Decimal("500"), LineItemType.LOAN),),
            incentives=(LineItem("Perfect Attendance", Decimal("1000"), LineItemType.INCENTIVE),),
        )
        payslip = _compute(run=_run(elections))

        # (16000 - 1600 - 10000) x 0.20 = 880
        assert payslip.taxable_gross_earnings == Decimal("16000.00")
        assert payslip.deductions[-1].name == "Salary Loan"
        assert payslip.government_deductions == Decimal("2480.00")
        assert payslip.loan_deductions == Decimal("500.00")
        assert payslip.net_pay == Decimal("13020.00")

    def test_standing_items_follow_run_items(self):
        employee = Employee(
            id="emp-1",
            name="Juan dela Cruz",
            compensation=EmployeeCompensation(salary_basis=SalaryBasis.MONTHLY, basic_salary=Decimal("30000")),
            schedule=_schedule(),
            incentives=(RecurringLineItem("Rice Subsidy", Decimal("2000"), LineItemType.INCENTIVE),),
            deductions=(
                RecurringLineItem("Car Loan", Decimal("1000"), LineItemType.LOAN, frequency="per_cutoff"),
                RecurringLineItem("Old Loan", Decimal("900"), LineItemType.LOAN, is_active=False),
                RecurringLineItem("Future Loan", Decimal("900"), LineItemType.LOAN,
                                  start_date=date(2025, 2, 1)),
            ),
        )
        elections = EmployeeRunElections(
            employee_id="emp-1",
            loans=(LineItem("Salary Loan", Decimal("500"), LineItemType.LOAN),),
        )
        payslip = _compute(employee=employee, run=_run(elections))

        assert [i.name for i in payslip.incentives] == ["Rice Subsidy"]
        assert payslip.total_incentives == Decimal("1000.00")
        assert payslip.taxable_gross_earnings == Decimal("16000.00")
        assert [d.name for d in payslip.deductions][-2:] == ["Salary Loan", "Car Loan"]
        assert payslip.loan_deductions == Decimal("1500.00")
        assert payslip.net_pay == Decimal("12020.00")

    def test_standing_deduction_of_wrong_type_rejected(self):
        employee = Employee(
            id="emp-1",
            name="Juan dela Cruz",
            compensation=EmployeeCompensation(salary_basis=SalaryBasis.MONTHLY, basic_salary=Decimal("30000")),
            deductions=(RecurringLineItem("Bonus", Decimal("100"), LineItemType.INCENTIVE),),
        )
        with pytest.raises(InvalidLineItemError):
            _compute(employee=employee)

    def test_disabled_deduction_omitted(self):
        elections = EmployeeRunElections(
            employee_id="emp-1",
            government={GovernmentDeductionType.SSS: GovernmentElection(enabled=False)},
        )
        payslip = _compute(run=_run(elections))
        assert "SSS" not in [d.name for d in payslip.deductions]
        assert len(payslip.deductions) == 3

    def test_daily_basis(self):
        payslip = _compute(employee=_employee(basis=SalaryBasis.DAILY, salary="1000"))
        assert payslip.basic_pay == Decimal("10000.00")
        assert payslip.absent_deduction == 0
        assert payslip.net_pay == Decimal("8400.00")


class TestNothingWorked:

    def test_government_deductions_deferred(self):
        payslip = _compute(attendance=[])

        assert payslip.has_worked_at_least_one_day is False
        assert payslip.deductions == ()
        assert payslip.absent_deduction == Decimal("13793.10")
        assert payslip.taxable_gross_earnings == Decimal("1206.90")
        assert payslip.deferred_deductions == Decimal("1600.00")
        assert payslip.pending_deductions == Decimal("1600.00")
        assert payslip.net_pay == Decimal("1206.90")
