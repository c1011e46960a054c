"""
payroll_batch.types -- Pure frozen dataclasses for payroll run processing.

ZERO I/O.  Follows the pattern of the payroll DTOs: frozen dataclasses
with tuples for immutable collections.

Invariants enforced:
    - Every employee submitted to a run appears exactly once, either as a
      payslip or as a failure.
    - Both tuples are ordered by the input employee order.
"""

from __future__ import annotations

from dataclasses import dataclass

from payroll_module.models import Payslip


@dataclass(frozen=True)
class PayslipFailure:
    """One employee whose payslip could not be computed."""

    employee_id: str
    error_code: str  # PayrollEngineError.code, or EMPLOYEE_COMPUTATION_ERROR
    message: str


@dataclass(frozen=True)
class PayrollRunResult:
    """Immutable result of processing every employee in a run."""

    payroll_run_id: str
    payslips: tuple[Payslip, ...] = ()
    failures: tuple[PayslipFailure, ...] = ()
    duration_ms: int = 0

    @property
    def succeeded(self) -> int:
        return len(self.payslips)

    @property
    def failed(self) -> int:
        return len(self.failures)

    def payslip_for(self, employee_id: str) -> Payslip | None:
        for payslip in self.payslips:
            if payslip.employee_id == employee_id:
                return payslip
        return None
