"""
Payroll Calculator Service (``payroll_module.service``).

Responsibility
--------------
Computes one employee's payslip for one payroll run by chaining the pure
engines in their fixed order:

    schedule + attendance -> rates -> premiums -> deductions -> payslip

Architecture position
---------------------
**Modules layer** -- thin glue.  ``PayrollCalculator`` is constructed once
per run with the resolved policy snapshot and the contribution table, and
is then safe to call from many threads: it holds no mutable state and
performs no I/O.  Loading records and persisting payslips belong to the
caller.

Invariants enforced
-------------------
* The policy snapshot passed at construction is used for every employee;
  it is never re-read during the run.
* Rates are derived once per employee and shared by every downstream
  engine.
* Run-scoped incentives and loans come first on the payslip, followed by
  the employee's standing items that apply to the cutoff.

Failure modes
-------------
* ``InvalidAttendanceError``, ``InvalidLineItemError`` propagate to the
  caller.  The run processor isolates them per employee.

Usage::

    calculator = PayrollCalculator(policy=resolve_policy(settings), contribution_table=table)
    payslip = calculator.compute_payslip(
        employee=employee, run=run, attendance=records, holidays=holidays,
    )
"""

from __future__ import annotations

from collections.abc import Sequence

from payroll_engines.attendance import aggregate_attendance
from payroll_engines.deductions import (
    ContributionTable,
    assemble_government_deductions,
    attendance_deductions,
    incentive_lines,
    loan_lines,
    standing_lines,
)
from payroll_engines.payslip import basic_pay_for, compose_payslip, compute_earnings
from payroll_engines.premiums import calculate_premiums, resolve_multipliers
from payroll_engines.rates import derive_rates
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_module.models import AttendanceRecord, Employee, HolidayEntry, Payslip, PayrollRun
from payroll_module.policy import PayrollPolicy

logger = get_logger("modules.payroll.service")


class PayrollCalculator:
    """Per-employee payslip calculator bound to one policy snapshot."""

    def __init__(self, policy: PayrollPolicy, contribution_table: ContributionTable):
        self._policy = policy
        self._table = contribution_table

    @property
    def policy(self) -> PayrollPolicy:
        return self._policy

    def compute_payslip(
        self,
        *,
        employee: Employee,
        run: PayrollRun,
        attendance: Sequence[AttendanceRecord],
        holidays: Sequence[HolidayEntry],
    ) -> Payslip:
        """Compute the payslip for ``employee`` on ``run``."""
        with LogContext.bind(employee_id=employee.id, payroll_run_id=run.id):
            logger.info(
                "payslip_computation_started",
                extra={
                    "cutoff_start": run.cutoff_start.isoformat(),
                    "cutoff_end": run.cutoff_end.isoformat(),
                    "attendance_records": len(attendance),
                },
            )
            policy = self._policy
            compensation = employee.compensation
            elections = run.elections_for(employee.id)

            summary = aggregate_attendance(
                records=attendance,
                schedule=employee.schedule,
                holidays=holidays,
                leave=employee.leave,
                cutoff_start=run.cutoff_start,
                cutoff_end=run.cutoff_end,
                policy=policy,
            )
            rates = derive_rates(compensation=compensation, policy=policy)
            premiums = calculate_premiums(
                summary=summary,
                rates=rates,
                multipliers=resolve_multipliers(compensation, policy),
            )
            attendance_ded = attendance_deductions(
                summary=summary,
                rates=rates,
                salary_basis=compensation.salary_basis,
            )
            standing_incentives = standing_lines(
                employee.incentives, cutoff_start=run.cutoff_start, cutoff_end=run.cutoff_end
            )
            standing_deductions = standing_lines(
                employee.deductions, cutoff_start=run.cutoff_start, cutoff_end=run.cutoff_end
            )
            incentives = incentive_lines(tuple(elections.incentives) + standing_incentives)
            loans = loan_lines(tuple(elections.loans) + standing_deductions)

            # Withholding tax is looked up on taxable gross, so price steps 1-3 first.
            earnings = compute_earnings(
                basic_pay=basic_pay_for(compensation, rates, summary),
                attendance_deductions=attendance_ded.total,
                overtime_pay=premiums.overtime_pay,
                premium_pay=premiums.premium_pay,
                incentives=incentives,
                non_taxable_allowance=compensation.allowance,
            )
            government = assemble_government_deductions(
                compensation=compensation,
                elections=elections,
                taxable_gross_earnings=earnings.taxable_gross_earnings,
                has_worked=summary.has_worked_at_least_one_day,
                table=self._table,
            )

            payslip = compose_payslip(
                employee_id=employee.id,
                payroll_run_id=run.id,
                compensation=compensation,
                policy=policy,
                rates=rates,
                summary=summary,
                premiums=premiums,
                attendance=attendance_ded,
                government=government,
                deductions=government.lines + loans,
                incentives=incentives,
                warnings=summary.warnings,
            )

            for warning in payslip.warnings:
                logger.warning(
                    "payslip_computation_warning",
                    extra={
                        "warning_code": warning.code.value,
                        "warning_message": warning.message,
                        "date": warning.date.isoformat() if warning.date else None,
                    },
                )
            logger.info(
                "payslip_computation_completed",
                extra={"net_pay": str(payslip.net_pay), "fingerprint": payslip.fingerprint()},
            )
            return payslip
