"""
Payroll Module (``payroll_module``).

Responsibility
--------------
Domain glue for semi-monthly payroll: the payroll DTOs, the resolved
organization policy, the run lifecycle workflow, the per-employee
calculator service, payslip edits and the persistence adapter.

Architecture position
---------------------
**Modules layer** -- value objects and services that hand pure
computation to ``payroll_engines``.  ``service``, ``edits`` and ``orm``
are imported by their full path so that the engines can depend on
``payroll_module.models`` without an import cycle.

Invariants enforced
-------------------
* One policy snapshot per run; never re-read mid-run.
* A stored payslip is never rewritten; edits are appended and replayed.
* Run status changes only through ``PAYROLL_RUN_WORKFLOW``.

Failure modes
-------------
* ``PolicyValidationError`` for malformed organization settings.
* ``InvalidRunTransitionError`` for an action the run's status forbids.
* ``PayslipLockedError`` when editing a payslip of a paid, archived or
  cancelled run.
"""

from payroll_module.models import (
    AttendanceRecord,
    Employee,
    EmployeeCompensation,
    EmployeeRunElections,
    EmployeeSchedule,
    HolidayEntry,
    LineItem,
    Payslip,
    PayslipEdit,
    PayrollRun,
    PayrollRunStatus,
    RecurringLineItem,
)
from payroll_module.policy import DEFAULT_POLICY, PayrollPolicy, resolve_policy
from payroll_module.workflows import PAYROLL_RUN_WORKFLOW, transition_run

__all__ = [
    "AttendanceRecord",
    "Employee",
    "EmployeeCompensation",
    "EmployeeRunElections",
    "EmployeeSchedule",
    "HolidayEntry",
    "LineItem",
    "Payslip",
    "PayslipEdit",
    "PayrollRun",
    "PayrollRunStatus",
    "RecurringLineItem",
    "DEFAULT_POLICY",
    "PayrollPolicy",
    "resolve_policy",
    "PAYROLL_RUN_WORKFLOW",
    "transition_run",
]
