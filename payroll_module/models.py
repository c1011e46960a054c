"""
Payroll Domain Models (``payroll_module.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of payroll
computation: compensation, schedules, attendance, holidays, leave, run
elections, line items and the composed payslip with its edit history.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Consumed by the
engines, by ``compute_payslip`` and by the ORM adapter.  No dependency on
the database or on engines.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``EmployeeCompensation`` rejects a non-positive salary, a negative
  allowance and out-of-bounds multipliers at construction.
* ``PayrollRun`` rejects a cutoff whose end precedes its start.

Failure modes
-------------
* ``InvalidCompensationError``, ``InvalidCutoffError`` and
  ``InvalidLineItemError`` on invalid construction.
* Construction with invalid enum values raises ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any

from payroll_kernel.domain.money import ZERO, ZERO_MONEY, to_decimal
from payroll_kernel.exceptions import (
    InvalidCompensationError,
    InvalidCutoffError,
    InvalidLineItemError,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.models")


WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


# -----------------------------------------------------------------------------
# Enumerations
# -----------------------------------------------------------------------------


class SalaryBasis(str, Enum):
    """How ``basic_salary`` is quoted."""
    MONTHLY = "monthly"
    DAILY = "daily"
    HOURLY = "hourly"


class HolidayType(str, Enum):
    """Holiday tiers. ``special_working`` days are ordinary workdays."""
    REGULAR = "regular"
    SPECIAL = "special"
    SPECIAL_WORKING = "special_working"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    HALF_DAY = "half-day"
    LEAVE = "leave"


class GovernmentDeductionType(str, Enum):
    """Statutory deductions, in payslip order."""
    SSS = "sss"
    PHILHEALTH = "philhealth"
    PAGIBIG = "pagibig"
    TAX = "tax"


class DeductionFrequency(str, Enum):
    FULL = "full"
    HALF = "half"


class RecurringFrequency(str, Enum):
    MONTHLY = "monthly"
    PER_CUTOFF = "per_cutoff"


class LineItemType(str, Enum):
    GOVERNMENT = "government"
    LOAN = "loan"
    OTHER = "other"
    INCENTIVE = "incentive"


class OvertimeBucket(str, Enum):
    """The seven mutually exclusive overtime buckets."""
    REGULAR = "regular"
    REST_DAY = "rest_day"
    REST_DAY_EXCESS = "rest_day_excess"
    SPECIAL_HOLIDAY = "special_holiday"
    SPECIAL_HOLIDAY_EXCESS = "special_holiday_excess"
    LEGAL_HOLIDAY = "legal_holiday"
    LEGAL_HOLIDAY_EXCESS = "legal_holiday_excess"


class DayType(str, Enum):
    WORKDAY = "workday"
    REST_DAY = "rest_day"
    REGULAR_HOLIDAY = "regular_holiday"
    SPECIAL_HOLIDAY = "special_holiday"


class PayrollRunStatus(str, Enum):
    """Payroll run lifecycle states."""
    DRAFT = "draft"
    PROCESSING = "processing"
    FINALIZED = "finalized"
    PAID = "paid"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


class ScheduleOverrideReason(str, Enum):
    SCHEDULE_CHANGE = "schedule_change"
    LEAVE = "leave"


GOVERNMENT_LINE_NAMES: dict[GovernmentDeductionType, str] = {
    GovernmentDeductionType.SSS: "SSS",
    GovernmentDeductionType.PHILHEALTH: "PhilHealth",
    GovernmentDeductionType.PAGIBIG: "Pag-IBIG",
    GovernmentDeductionType.TAX: "Withholding Tax",
}

PENDING_DEDUCTIONS_LINE_NAME = "Pending Deductions (Previous Cutoff)"


# -----------------------------------------------------------------------------
# Compensation
# -----------------------------------------------------------------------------

HOLIDAY_RATE_BOUNDS = (Decimal("0"), Decimal("2"))
NIGHT_DIFF_BOUNDS = (Decimal("0"), Decimal("1"))
OVERTIME_RATE_BOUNDS = (Decimal("0"), Decimal("5"))


def _coerce_amount(field_name: str, value: object) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError as exc:
        raise InvalidCompensationError(field_name, value, "not a numeric amount") from exc


def _check_bounds(field_name: str, value: Decimal, bounds: tuple[Decimal, Decimal]) -> None:
    low, high = bounds
    if not low <= value <= high:
        raise InvalidCompensationError(
            field_name, value, f"must be within [{low}, {high}]"
        )


@dataclass(frozen=True)
class EmployeeCompensation:
    """An employee's pay configuration.

    ``basic_salary`` is a monthly salary, a daily rate or an hourly rate
    depending on ``salary_basis``.  ``allowance`` is monthly and
    non-taxable.  Multiplier fields left as ``None`` fall back to the
    organization policy.
    """
    salary_basis: SalaryBasis
    basic_salary: Decimal
    allowance: Decimal = ZERO
    regular_holiday_rate: Decimal | None = None
    special_holiday_rate: Decimal | None = None
    night_diff_percent: Decimal | None = None
    overtime_rates: Mapping[OvertimeBucket, Decimal] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "salary_basis", SalaryBasis(self.salary_basis))

        basic = _coerce_amount("basic_salary", self.basic_salary)
        if basic <= 0:
            logger.warning(
                "compensation_rejected",
                extra={"field": "basic_salary", "value": str(basic)},
            )
            raise InvalidCompensationError("basic_salary", basic, "must be positive")
        object.__setattr__(self, "basic_salary", basic)

        allowance = _coerce_amount("allowance", self.allowance)
        if allowance < 0:
            raise InvalidCompensationError("allowance", allowance, "cannot be negative")
        object.__setattr__(self, "allowance", allowance)

        for name in ("regular_holiday_rate", "special_holiday_rate"):
            raw = getattr(self, name)
            if raw is not None:
                value = _coerce_amount(name, raw)
                _check_bounds(name, value, HOLIDAY_RATE_BOUNDS)
                object.__setattr__(self, name, value)

        if self.night_diff_percent is not None:
            value = _coerce_amount("night_diff_percent", self.night_diff_percent)
            _check_bounds("night_diff_percent", value, NIGHT_DIFF_BOUNDS)
            object.__setattr__(self, "night_diff_percent", value)

        overrides: dict[OvertimeBucket, Decimal] = {}
        for bucket, raw in self.overtime_rates.items():
            name = f"overtime_rates.{OvertimeBucket(bucket).value}"
            value = _coerce_amount(name, raw)
            _check_bounds(name, value, OVERTIME_RATE_BOUNDS)
            overrides[OvertimeBucket(bucket)] = value
        object.__setattr__(self, "overtime_rates", overrides)


# -----------------------------------------------------------------------------
# Schedule
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class DaySchedule:
    """Weekday default: whether it is a workday and its in/out times."""
    is_workday: bool
    schedule_in: time | None = None
    schedule_out: time | None = None


@dataclass(frozen=True)
class ScheduleOverride:
    """Date-specific schedule that takes precedence over the weekday default."""
    date: date
    is_workday: bool
    schedule_in: time | None = None
    schedule_out: time | None = None
    reason: ScheduleOverrideReason = ScheduleOverrideReason.SCHEDULE_CHANGE
    leave_type: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "reason", ScheduleOverrideReason(self.reason))


@dataclass(frozen=True)
class EmployeeSchedule:
    """Weekday defaults keyed by lowercase weekday name, plus overrides."""
    default_schedule: Mapping[str, DaySchedule]
    overrides: tuple[ScheduleOverride, ...] = ()

    def __post_init__(self):
        unknown = set(self.default_schedule) - set(WEEKDAYS)
        if unknown:
            raise ValueError(f"Unknown weekday names in schedule: {sorted(unknown)}")


# -----------------------------------------------------------------------------
# Attendance, holidays, leave
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class AttendanceRecord:
    """One attendance entry for one employee on one date.

    Late minutes, undertime and overtime hours fall back to values derived
    from the scheduled and actual times when they were not entered.
    """
    date: date
    status: AttendanceStatus = AttendanceStatus.PRESENT
    schedule_in: time | None = None
    schedule_out: time | None = None
    actual_in: time | None = None
    actual_out: time | None = None
    overtime_hours: Decimal | None = None
    late_minutes: Decimal | None = None
    undertime_hours: Decimal | None = None
    is_holiday: bool = False
    holiday_type: HolidayType | None = None
    remarks: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "status", AttendanceStatus(self.status))
        if self.holiday_type is not None:
            object.__setattr__(self, "holiday_type", HolidayType(self.holiday_type))


@dataclass(frozen=True)
class HolidayEntry:
    """Organization holiday calendar entry."""
    date: date
    name: str
    type: HolidayType
    is_recurring: bool = False

    def matches(self, on_date: date) -> bool:
        """Recurring entries match the same month/day in every year."""
        if self.is_recurring:
            return (self.date.month, self.date.day) == (on_date.month, on_date.day)
        return self.date == on_date


@dataclass(frozen=True)
class LeaveCredit:
    """Leave ledger entry for one leave type."""
    leave_type: str
    total: Decimal
    used: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.total - self.used


@dataclass(frozen=True)
class ApprovedLeave:
    """An approved leave request spanning ``start_date`` to ``end_date``."""
    leave_type: str
    start_date: date
    end_date: date

    def spans(self, on_date: date) -> bool:
        return self.start_date <= on_date <= self.end_date


@dataclass(frozen=True)
class EmployeeLeave:
    credits: tuple[LeaveCredit, ...] = ()
    approved: tuple[ApprovedLeave, ...] = ()

    def credit_for(self, leave_type: str) -> LeaveCredit | None:
        for credit in self.credits:
            if credit.leave_type == leave_type:
                return credit
        return None


@dataclass(frozen=True)
class Employee:
    """The slice of an employee record the engine consumes."""
    id: str
    name: str
    compensation: EmployeeCompensation
    schedule: EmployeeSchedule | None = None
    leave: EmployeeLeave = field(default_factory=EmployeeLeave)
    # Standing items that recur every cutoff, next to the run-scoped ones.
    incentives: tuple[RecurringLineItem, ...] = ()
    deductions: tuple[RecurringLineItem, ...] = ()


# -----------------------------------------------------------------------------
# Run-scoped elections and line items
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItem:
    """A named deduction or incentive amount on one payslip."""
    name: str
    amount: Decimal
    type: LineItemType

    def __post_init__(self):
        object.__setattr__(self, "type", LineItemType(self.type))
        try:
            amount = to_decimal(self.amount)
        except ValueError as exc:
            raise InvalidLineItemError(self.name, self.amount, "not a numeric amount") from exc
        if amount < 0:
            raise InvalidLineItemError(self.name, amount, "amount cannot be negative")
        object.__setattr__(self, "amount", amount)

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "amount": str(self.amount), "type": self.type.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LineItem:
        return cls(name=data["name"], amount=Decimal(str(data["amount"])), type=data["type"])


@dataclass(frozen=True)
class RecurringLineItem:
    """A standing incentive or deduction configured on the employee record.

    ``monthly`` amounts are split evenly across the two semi-monthly
    cutoffs; ``per_cutoff`` amounts apply in full to every cutoff.  The
    item applies to a cutoff when it is active and its
    ``[start_date, end_date]`` window overlaps the cutoff.  Open ends are
    unbounded.
    """
    name: str
    amount: Decimal
    type: LineItemType
    frequency: RecurringFrequency = RecurringFrequency.MONTHLY
    is_active: bool = True
    start_date: date | None = None
    end_date: date | None = None

    def __post_init__(self):
        object.__setattr__(self, "type", LineItemType(self.type))
        object.__setattr__(self, "frequency", RecurringFrequency(self.frequency))
        try:
            amount = to_decimal(self.amount)
        except ValueError as exc:
            raise InvalidLineItemError(self.name, self.amount, "not a numeric amount") from exc
        if amount < 0:
            raise InvalidLineItemError(self.name, amount, "amount cannot be negative")
        object.__setattr__(self, "amount", amount)
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.end_date < self.start_date
        ):
            raise InvalidLineItemError(self.name, amount, "end_date precedes start_date")

    def applies_to(self, cutoff_start: date, cutoff_end: date) -> bool:
        if not self.is_active:
            return False
        if self.start_date is not None and self.start_date > cutoff_end:
            return False
        if self.end_date is not None and self.end_date < cutoff_start:
            return False
        return True


@dataclass(frozen=True)
class GovernmentElection:
    enabled: bool = True
    frequency: DeductionFrequency = DeductionFrequency.FULL

    def __post_init__(self):
        object.__setattr__(self, "frequency", DeductionFrequency(self.frequency))


DEFAULT_ELECTION = GovernmentElection()


@dataclass(frozen=True)
class EmployeeRunElections:
    """Per-employee selections for one payroll run."""
    employee_id: str
    government: Mapping[GovernmentDeductionType, GovernmentElection] = field(
        default_factory=dict
    )
    loans: tuple[LineItem, ...] = ()
    incentives: tuple[LineItem, ...] = ()
    previous_pending_deductions: Decimal = ZERO

    def election_for(self, deduction_type: GovernmentDeductionType) -> GovernmentElection:
        """Election for a type; absent means enabled at full frequency."""
        return self.government.get(deduction_type, DEFAULT_ELECTION)


@dataclass(frozen=True)
class PayrollRun:
    """One payroll run for one organization and cutoff period."""
    id: str
    organization_id: str
    cutoff_start: date
    cutoff_end: date
    status: PayrollRunStatus = PayrollRunStatus.DRAFT
    elections: Mapping[str, EmployeeRunElections] = field(default_factory=dict)
    notes: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "status", PayrollRunStatus(self.status))
        if self.cutoff_end < self.cutoff_start:
            raise InvalidCutoffError(
                self.cutoff_start.isoformat(), self.cutoff_end.isoformat()
            )

    def elections_for(self, employee_id: str) -> EmployeeRunElections:
        return self.elections.get(employee_id) or EmployeeRunElections(employee_id)


# -----------------------------------------------------------------------------
# Warnings and edit history
# -----------------------------------------------------------------------------


class WarningCode(str, Enum):
    HOLIDAY_FLAG_MISMATCH = "HOLIDAY_FLAG_MISMATCH"
    DEGENERATE_SCHEDULE = "DEGENERATE_SCHEDULE"


@dataclass(frozen=True)
class ComputationWarning:
    """Data-quality condition surfaced on an otherwise valid payslip."""
    code: WarningCode
    message: str
    date: date | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": WarningCode(self.code).value,
            "message": self.message,
            "date": self.date.isoformat() if self.date else None,
        }


@dataclass(frozen=True)
class FieldChange:
    """One edited payslip field.

    ``old_value``/``new_value`` are JSON-ready: a list of line-item dicts
    for list fields, an amount string for scalar fields.
    """
    field: str
    old_value: Any
    new_value: Any
    details: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "details": list(self.details),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldChange:
        return cls(
            field=data["field"],
            old_value=data["old_value"],
            new_value=data["new_value"],
            details=tuple(data.get("details", ())),
        )


@dataclass(frozen=True)
class PayslipEdit:
    """Append-only edit-history entry."""
    edited_by: str
    edited_at: datetime
    changes: tuple[FieldChange, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "edited_by": self.edited_by,
            "edited_at": self.edited_at.isoformat(),
            "changes": [c.to_dict() for c in self.changes],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PayslipEdit:
        return cls(
            edited_by=data["edited_by"],
            edited_at=datetime.fromisoformat(data["edited_at"]),
            changes=tuple(FieldChange.from_dict(c) for c in data["changes"]),
        )


# -----------------------------------------------------------------------------
# Payslip
# -----------------------------------------------------------------------------

_DATE_FIELDS = frozenset({"cutoff_start", "cutoff_end", "pay_date"})
_LINE_ITEM_FIELDS = frozenset({"incentives", "deductions", "employer_contributions"})
_PASSTHROUGH_FIELDS = frozenset(
    {"employee_id", "payroll_run_id", "working_days_in_cutoff", "has_worked_at_least_one_day"}
)


def _canonical(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (tuple, list)):
        return [_canonical(v) for v in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


@dataclass(frozen=True)
class Payslip:
    """One employee's payslip for one payroll run.

    Every named sub-total is stored so a display layer never recomputes.
    ``pending_deductions`` = ``deferred_deductions`` (government amounts
    postponed because nothing was worked) + ``uncollected_deductions``
    (the part of the deductions net pay could not cover).
    """
    employee_id: str
    payroll_run_id: str
    cutoff_start: date
    cutoff_end: date
    pay_date: date | None
    salary_basis: SalaryBasis

    daily_rate: Decimal
    hourly_rate: Decimal

    working_days_in_cutoff: int
    days_worked: Decimal
    leave_days: Decimal
    absences: Decimal
    late_minutes: Decimal
    late_hours: Decimal
    undertime_hours: Decimal
    overtime_hours: Decimal
    night_diff_hours: Decimal

    basic_pay: Decimal
    absent_deduction: Decimal
    late_deduction: Decimal
    undertime_deduction: Decimal

    holiday_pay: Decimal
    rest_day_pay: Decimal
    night_diff_pay: Decimal
    overtime_regular: Decimal
    overtime_rest_day: Decimal
    overtime_rest_day_excess: Decimal
    overtime_special_holiday: Decimal
    overtime_special_holiday_excess: Decimal
    overtime_legal_holiday: Decimal
    overtime_legal_holiday_excess: Decimal
    overtime_pay: Decimal
    premium_pay: Decimal

    incentives: tuple[LineItem, ...]
    total_incentives: Decimal
    gross_pay: Decimal
    taxable_gross_earnings: Decimal
    non_taxable_allowance: Decimal
    total_earnings: Decimal

    deductions: tuple[LineItem, ...]
    government_deductions: Decimal
    loan_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    deferred_deductions: Decimal
    uncollected_deductions: Decimal
    pending_deductions: Decimal
    has_worked_at_least_one_day: bool
    employer_contributions: tuple[LineItem, ...] = ()
    warnings: tuple[ComputationWarning, ...] = ()
    edit_history: tuple[PayslipEdit, ...] = ()

    @property
    def attendance_deductions(self) -> Decimal:
        return self.absent_deduction + self.late_deduction + self.undertime_deduction

    def line_items(self, item_type: LineItemType) -> tuple[LineItem, ...]:
        return tuple(d for d in self.deductions if d.type == item_type)

    def with_edit(self, edit: PayslipEdit, **changes: Any) -> Payslip:
        return replace(self, edit_history=self.edit_history + (edit,), **changes)

    def to_dict(self) -> dict[str, Any]:
        """Canonical JSON-ready mapping, field order fixed by the dataclass."""
        return {f.name: _canonical(getattr(self, f.name)) for f in fields(self)}

    def fingerprint(self) -> str:
        """SHA-256 of the canonical form; equal inputs give equal fingerprints."""
        payload = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Payslip:
        """Rebuild a payslip from its ``to_dict()`` form."""
        kwargs: dict[str, Any] = {}
        for f in fields(cls):
            raw = data.get(f.name)
            if f.name in _PASSTHROUGH_FIELDS:
                kwargs[f.name] = raw
            elif f.name in _DATE_FIELDS:
                kwargs[f.name] = date.fromisoformat(raw) if raw else None
            elif f.name == "salary_basis":
                kwargs[f.name] = SalaryBasis(raw)
            elif f.name in _LINE_ITEM_FIELDS:
                kwargs[f.name] = tuple(LineItem.from_dict(i) for i in raw or ())
            elif f.name == "warnings":
                kwargs[f.name] = tuple(
                    ComputationWarning(
                        code=WarningCode(w["code"]),
                        message=w["message"],
                        date=date.fromisoformat(w["date"]) if w.get("date") else None,
                    )
                    for w in raw or ()
                )
            elif f.name == "edit_history":
                kwargs[f.name] = tuple(PayslipEdit.from_dict(e) for e in raw or ())
            else:
                kwargs[f.name] = Decimal(raw) if raw is not None else ZERO_MONEY
        return cls(**kwargs)
