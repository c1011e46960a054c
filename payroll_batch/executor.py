"""
payroll_batch.executor -- PayrollRunProcessor with per-employee isolation.

Maps the per-employee calculator over a thread pool.  Each employee is
computed independently from the same frozen policy snapshot, so workers
share nothing mutable.

Invariants enforced:
    - Failure isolation: an exception while computing one employee becomes
      a ``PayslipFailure``; every other employee still gets a payslip.
    - Deterministic output: results are collected in input order, never in
      completion order.
    - One policy snapshot per run, passed unchanged to every worker.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor

from payroll_engines.deductions import ContributionTable
from payroll_kernel.exceptions import EmployeeComputationError, PayrollEngineError
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_module.models import AttendanceRecord, Employee, HolidayEntry, Payslip, PayrollRun
from payroll_module.policy import PayrollPolicy
from payroll_module.service import PayrollCalculator

from payroll_batch.types import PayrollRunResult, PayslipFailure

logger = get_logger("batch.executor")

DEFAULT_MAX_WORKERS = 4


class PayrollRunProcessor:
    """Computes every selected employee's payslip for one payroll run."""

    def process(
        self,
        run: PayrollRun,
        employees: Sequence[Employee],
        attendance: Mapping[str, Sequence[AttendanceRecord]],
        holidays: Sequence[HolidayEntry],
        policy: PayrollPolicy,
        contribution_table: ContributionTable,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> PayrollRunResult:
        """Compute payslips for ``employees``.

        ``attendance`` maps employee id to that employee's records; an
        employee missing from it is computed with no records.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")

        start_time = time.monotonic()
        calculator = PayrollCalculator(policy=policy, contribution_table=contribution_table)
        context = {
            **LogContext.get_all(),
            "organization_id": run.organization_id,
            "payroll_run_id": run.id,
        }
        holidays = tuple(holidays)

        logger.info(
            "payroll_run_started",
            extra={
                "payroll_run_id": run.id,
                "organization_id": run.organization_id,
                "employee_count": len(employees),
                "max_workers": max_workers,
            },
        )

        def compute(employee: Employee) -> Payslip | PayslipFailure:
            # Worker threads do not inherit the caller's context variables.
            with LogContext.bind(**context):
                return self._compute_one(
                    calculator, employee, run, attendance.get(employee.id, ()), holidays,
                )

        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(compute, employees))

        payslips = tuple(o for o in outcomes if isinstance(o, Payslip))
        failures = tuple(o for o in outcomes if isinstance(o, PayslipFailure))
        duration_ms = int((time.monotonic() - start_time) * 1000)

        logger.info(
            "payroll_run_completed",
            extra={
                "payroll_run_id": run.id,
                "succeeded": len(payslips),
                "failed": len(failures),
                "duration_ms": duration_ms,
            },
        )
        return PayrollRunResult(
            payroll_run_id=run.id,
            payslips=payslips,
            failures=failures,
            duration_ms=duration_ms,
        )

    @staticmethod
    def _compute_one(
        calculator: PayrollCalculator,
        employee: Employee,
        run: PayrollRun,
        records: Sequence[AttendanceRecord],
        holidays: Sequence[HolidayEntry],
    ) -> Payslip | PayslipFailure:
        try:
            return calculator.compute_payslip(
                employee=employee, run=run, attendance=records, holidays=holidays,
            )
        except PayrollEngineError as exc:
            logger.warning(
                "payslip_computation_failed",
                extra={
                    "employee_id": employee.id,
                    "error_code": exc.code,
                    "error": str(exc),
                },
            )
            return PayslipFailure(employee_id=employee.id, error_code=exc.code, message=str(exc))
        except Exception as exc:
            wrapped = EmployeeComputationError(employee.id, f"{type(exc).__name__}: {exc}")
            logger.exception(
                "payslip_computation_crashed",
                extra={"employee_id": employee.id, "error_code": wrapped.code},
            )
            return PayslipFailure(
                employee_id=employee.id, error_code=wrapped.code, message=str(wrapped),
            )
