"""
payroll_batch -- Payroll run processing.

Runs the per-employee calculator across a whole payroll run with
per-employee failure isolation and deterministic output order.
``payroll_batch.cli`` is the ``run-payroll`` command built on it.
"""

from payroll_batch.executor import PayrollRunProcessor
from payroll_batch.types import PayrollRunResult, PayslipFailure

__all__ = [
    "PayrollRunProcessor",
    "PayrollRunResult",
    "PayslipFailure",
]
