"""
Tests for PayrollRunProcessor.

Covers:
- Results in input order regardless of worker count
- Per-employee failure isolation (typed errors and unexpected crashes)
- Deterministic output across runs and worker counts
- Run context bound into worker log records
"""

from datetime import date
from decimal import Decimal

import pytest

from payroll_batch import PayrollRunProcessor, PayrollRunResult
from payroll_engines.deductions import FixedContributionTable
from payroll_module.models import (
    AttendanceRecord,
    Employee,
    EmployeeCompensation,
    PayrollRun,
    SalaryBasis,
)
from payroll_module.policy import DEFAULT_POLICY

RUN = PayrollRun(
    id="run-1",
    organization_id="org-1",
    cutoff_start=date(2025, 1, 1),
    cutoff_end=date(2025, 1, 15),
)

TABLE = FixedContributionTable.from_mapping(
    {"employee": {"sss": 500, "philhealth": 250, "pagibig": 100}, "tax_rate": "0.1", "tax_exempt_threshold": "10000"}
)

CRASH_SALARY = Decimal("77777")


class _CrashingTable:
    """Contribution table that fails for one salary."""

    def employee_share(self, deduction_type, compensation):
        if compensation.basic_salary == CRASH_SALARY:
            raise RuntimeError("contribution bracket lookup failed")
        return TABLE.employee_share(deduction_type, compensation)

    def employer_share(self, deduction_type, compensation):
        return TABLE.employer_share(deduction_type, compensation)

    def withholding_tax(self, taxable_income):
        return TABLE.withholding_tax(taxable_income)


def _employee(i: int, salary: str | Decimal | None = None) -> Employee:
    return Employee(
        id=f"emp-{i:02d}",
        name=f"Employee {i}",
        compensation=EmployeeCompensation(
            salary_basis=SalaryBasis.MONTHLY,
            basic_salary=Decimal(salary) if salary else Decimal(20000 + 1000 * i),
        ),
    )


def _attendance(employees, days=range(1, 16)) -> dict[str, list[AttendanceRecord]]:
    return {e.id: [AttendanceRecord(date=date(2025, 1, d)) for d in days] for e in employees}


def _process(employees, attendance=None, table=TABLE, max_workers=4) -> PayrollRunResult:
    return PayrollRunProcessor().process(
        run=RUN,
        employees=employees,
        attendance=_attendance(employees) if attendance is None else attendance,
        holidays=(),
        policy=DEFAULT_POLICY,
        contribution_table=table,
        max_workers=max_workers,
    )


# ---------------------------------------------------------------------------
# Ordering and determinism
# ---------------------------------------------------------------------------


class TestOrderingAndDeterminism:

    def test_results_in_input_order(self):
        employees = [_employee(i) for i in range(10)]
        result = _process(employees)

        assert result.payroll_run_id == "run-1"
        assert result.succeeded == 10
        assert result.failed == 0
        assert [p.employee_id for p in result.payslips] == [e.id for e in employees]

    def test_worker_count_does_not_change_output(self):
        employees = [_employee(i) for i in range(6)]
        serial = _process(employees, max_workers=1)
        parallel = _process(employees, max_workers=6)

        assert [p.fingerprint() for p in serial.payslips] == [p.fingerprint() for p in parallel.payslips]

    def test_repeat_runs_identical(self):
        employees = [_employee(i) for i in range(4)]
        assert _process(employees).payslips == _process(employees).payslips

    def test_missing_attendance_means_no_records(self):
        employees = [_employee(1)]
        result = _process(employees, attendance={})
        payslip = result.payslip_for("emp-01")
        assert payslip.days_worked == 0
        assert payslip.has_worked_at_least_one_day is False
        assert payslip.deferred_deductions == Decimal("850.00")

    def test_empty_run(self):
        result = _process([])
        assert result.payslips == ()
        assert result.failures == ()

    def test_invalid_worker_count(self):
        with pytest.raises(ValueError):
            _process([_employee(1)], max_workers=0)


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------


class TestFailureIsolation:

    def test_typed_error_becomes_failure(self):
        employees = [_employee(i) for i in range(3)]
        attendance = _attendance(employees)
        attendance["emp-01"].append(AttendanceRecord(date=date(2025, 1, 2)))

        result = _process(employees, attendance=attendance)

        assert [p.employee_id for p in result.payslips] == ["emp-00", "emp-02"]
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.employee_id == "emp-01"
        assert failure.error_code == "INVALID_ATTENDANCE"
        assert "2025-01-02" in failure.message
        assert result.payslip_for("emp-01") is None

    def test_unexpected_exception_wrapped(self, captured_logs):
        employees = [_employee(0), _employee(1, CRASH_SALARY), _employee(2)]

        result = _process(employees, table=_CrashingTable())

        assert result.succeeded == 2
        failure = result.failures[0]
        assert failure.employee_id == "emp-01"
        assert failure.error_code == "EMPLOYEE_COMPUTATION_ERROR"
        assert "RuntimeError" in failure.message

        crashed = [r for r in captured_logs() if r["message"] == "payslip_computation_crashed"]
        assert len(crashed) == 1
        assert crashed[0]["exc_type"] == "RuntimeError"

    def test_other_employees_unaffected_by_failure(self):
        healthy = [_employee(0), _employee(2)]
        alone = _process(healthy)
        mixed = _process([healthy[0], _employee(1, CRASH_SALARY), healthy[1]], table=_CrashingTable())

        assert [p.fingerprint() for p in mixed.payslips] == [p.fingerprint() for p in alone.payslips]


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


class TestRunLogging:

    def test_worker_logs_carry_run_context(self, captured_logs):
        _process([_employee(0), _employee(1)], max_workers=2)

        completed = [r for r in captured_logs() if r["message"] == "payslip_computation_completed"]
        assert len(completed) == 2
        assert all(r["organization_id"] == "org-1" for r in completed)
        assert all(r["payroll_run_id"] == "run-1" for r in completed)
        assert {r["employee_id"] for r in completed} == {"emp-00", "emp-01"}

    def test_run_summary_logged(self, captured_logs):
        _process([_employee(0)])
        completed = [r for r in captured_logs() if r["message"] == "payroll_run_completed"]
        assert completed[0]["succeeded"] == 1
        assert completed[0]["failed"] == 0
