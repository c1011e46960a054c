"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payroll calculation engines.  This is the canonical import surface for
    ``payroll_module`` and ``payroll_batch``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import payroll_kernel and the value objects in payroll_module.models
    and payroll_module.policy.  MUST NOT import services, ORM or batch code.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
    - Decimal-only arithmetic: amounts never pass through ``float``.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via ``@traced_engine``, emitting
    PAYROLL_ENGINE_TRACE log records with engine name, version, input
    fingerprint and duration.
"""

from payroll_engines.attendance import (
    AttendanceSummary,
    DayClassification,
    aggregate_attendance,
    is_leave_covered,
    night_diff_hours,
    split_overtime,
)
from payroll_engines.deductions import (
    AttendanceDeductions,
    ContributionTable,
    FixedContributionTable,
    GovernmentDeductionResult,
    assemble_government_deductions,
    attendance_deductions,
    incentive_lines,
    loan_lines,
    standing_lines,
)
from payroll_engines.payslip import (
    basic_pay_for,
    compose_payslip,
    pay_date_for,
    recompute_totals,
)
from payroll_engines.premiums import (
    Multipliers,
    PremiumBreakdown,
    calculate_premiums,
    resolve_multipliers,
)
from payroll_engines.rates import DerivedRates, derive_rates
from payroll_engines.schedule import (
    ScheduleResolution,
    count_working_days,
    day_name,
    is_degenerate,
    resolve_range,
    resolve_schedule,
)

__all__ = [
    "AttendanceDeductions",
    "AttendanceSummary",
    "ContributionTable",
    "DayClassification",
    "DerivedRates",
    "FixedContributionTable",
    "GovernmentDeductionResult",
    "Multipliers",
    "PremiumBreakdown",
    "ScheduleResolution",
    "aggregate_attendance",
    "assemble_government_deductions",
    "attendance_deductions",
    "basic_pay_for",
    "calculate_premiums",
    "compose_payslip",
    "count_working_days",
    "day_name",
    "derive_rates",
    "incentive_lines",
    "is_degenerate",
    "is_leave_covered",
    "loan_lines",
    "night_diff_hours",
    "pay_date_for",
    "recompute_totals",
    "resolve_multipliers",
    "resolve_range",
    "resolve_schedule",
    "split_overtime",
    "standing_lines",
]
