"""
Attendance Aggregator (``payroll_engines.attendance``).

Responsibility
--------------
Walk every calendar date of a cutoff period, classify it (workday, rest
day, regular holiday, special holiday), combine it with the attendance
record for that date and with the employee's leave, and sum the counts
the premium calculator and deduction assembler consume.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO clock reads.
Depends on the schedule resolver for per-date workday decisions.

Invariants enforced
-------------------
* Day type precedence: regular holiday > special holiday > rest day >
  workday.  ``special_working`` holidays are ordinary workdays.
* Being a rest day is tracked apart from the day type: a holiday worked on
  a rest day counts toward both the holiday tier and ``rest_days_worked``.
  Its overtime goes to the holiday buckets.
* A date is counted at most once as worked, leave or absence; a
  leave-covered date is never also an absence.
* Unworked rest days and unworked special holidays are neither absences
  nor paid days.
* Unworked regular holidays are paid through holiday pay unless the date
  is leave-covered, in which case it is a leave day.
* The holiday calendar wins over a record's own holiday flag; any
  disagreement is reported as a ``HOLIDAY_FLAG_MISMATCH`` warning.
* When the schedule makes every date a rest day, every date is treated as
  a workday and a ``DEGENERATE_SCHEDULE`` warning is attached.

Failure modes
-------------
* ``InvalidAttendanceError`` when two records share a date.
* ``InvalidCutoffError`` when the cutoff end precedes its start.
"""

from __future__ import annotations

import time as _time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, time
from decimal import Decimal

from payroll_engines.schedule import (
    ScheduleResolution,
    count_working_days,
    is_degenerate,
    resolve_range,
)
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.money import ZERO, round_hours, to_decimal
from payroll_kernel.exceptions import InvalidAttendanceError, InvalidCutoffError
from payroll_kernel.logging_config import get_logger
from payroll_module.models import (
    AttendanceRecord,
    AttendanceStatus,
    ComputationWarning,
    DayType,
    EmployeeLeave,
    EmployeeSchedule,
    HolidayEntry,
    HolidayType,
    OvertimeBucket,
    ScheduleOverrideReason,
    WarningCode,
)
from payroll_module.policy import PayrollPolicy

logger = get_logger("engines.attendance")

MINUTES_PER_DAY = 24 * 60
NIGHT_START_MINUTE = 22 * 60
NIGHT_END_MINUTE = 6 * 60
# Night windows on a two-day minute line, so spans past midnight overlap too.
_NIGHT_WINDOWS = (
    (0, NIGHT_END_MINUTE),
    (NIGHT_START_MINUTE, MINUTES_PER_DAY + NIGHT_END_MINUTE),
    (MINUTES_PER_DAY + NIGHT_START_MINUTE, 2 * MINUTES_PER_DAY),
)

WORKED_FRACTION = {
    AttendanceStatus.PRESENT: Decimal("1"),
    AttendanceStatus.HALF_DAY: Decimal("0.5"),
}

_HOLIDAY_PRECEDENCE = {
    HolidayType.REGULAR: 0,
    HolidayType.SPECIAL: 1,
    HolidayType.SPECIAL_WORKING: 2,
}

# Base and excess overtime buckets per day type.
_OVERTIME_BUCKETS: dict[DayType, tuple[OvertimeBucket, OvertimeBucket | None]] = {
    DayType.WORKDAY: (OvertimeBucket.REGULAR, None),
    DayType.REST_DAY: (OvertimeBucket.REST_DAY, OvertimeBucket.REST_DAY_EXCESS),
    DayType.SPECIAL_HOLIDAY: (
        OvertimeBucket.SPECIAL_HOLIDAY,
        OvertimeBucket.SPECIAL_HOLIDAY_EXCESS,
    ),
    DayType.REGULAR_HOLIDAY: (
        OvertimeBucket.LEGAL_HOLIDAY,
        OvertimeBucket.LEGAL_HOLIDAY_EXCESS,
    ),
}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DayClassification:
    """How one date of the cutoff was classified and what it contributed."""
    date: date
    day_type: DayType
    status: AttendanceStatus | None
    worked_fraction: Decimal = ZERO
    late_minutes: Decimal = ZERO
    undertime_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    night_diff_hours: Decimal = ZERO
    is_rest_day: bool = False
    leave_covered: bool = False
    is_leave_day: bool = False
    is_absence: bool = False
    is_unworked_regular_holiday: bool = False
    holiday_name: str | None = None


@dataclass(frozen=True)
class AttendanceSummary:
    """Aggregated attendance for one employee over one cutoff."""
    cutoff_start: date
    cutoff_end: date
    working_days_in_cutoff: int
    days_worked: Decimal
    leave_days: Decimal
    absences: Decimal
    late_minutes: Decimal
    undertime_hours: Decimal
    overtime_hours: Decimal
    night_diff_hours: Decimal
    regular_holidays_worked: Decimal
    regular_holidays_unworked: Decimal
    special_holidays_worked: Decimal
    rest_days_worked: Decimal
    overtime_by_bucket: Mapping[OvertimeBucket, Decimal] = field(default_factory=dict)
    days: tuple[DayClassification, ...] = ()
    warnings: tuple[ComputationWarning, ...] = ()

    @property
    def has_worked_at_least_one_day(self) -> bool:
        return self.days_worked + self.leave_days > 0

    @property
    def late_hours(self) -> Decimal:
        return round_hours(self.late_minutes / Decimal("60"))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _after(t: time, anchor: time) -> int:
    """Minutes of ``t`` on a line starting at ``anchor``; earlier means next day."""
    m = _minutes(t)
    return m + MINUTES_PER_DAY if m < _minutes(anchor) else m


def night_diff_hours(actual_in: time | None, actual_out: time | None) -> Decimal:
    """Hours of the actual span that fall within 22:00-06:00."""
    if actual_in is None or actual_out is None:
        return ZERO
    start = _minutes(actual_in)
    end = _minutes(actual_out)
    if end <= start:
        end += MINUTES_PER_DAY
    overlap = 0
    for window_start, window_end in _NIGHT_WINDOWS:
        overlap += max(0, min(end, window_end) - max(start, window_start))
    return round_hours(Decimal(overlap) / Decimal("60"))


def find_holiday(holidays: Iterable[HolidayEntry], on_date: date) -> HolidayEntry | None:
    """Highest-tier calendar entry matching the date, if any."""
    matches = [h for h in holidays if h.matches(on_date)]
    if not matches:
        return None
    return min(matches, key=lambda h: _HOLIDAY_PRECEDENCE[h.type])


def _late_minutes(record: AttendanceRecord, resolution: ScheduleResolution) -> Decimal:
    if record.late_minutes is not None:
        return to_decimal(record.late_minutes)
    scheduled_in = record.schedule_in or resolution.scheduled_in
    if scheduled_in is None or record.actual_in is None:
        return ZERO
    late = _minutes(record.actual_in) - _minutes(scheduled_in)
    return Decimal(late) if late > 0 else ZERO


def _out_difference_hours(
    record: AttendanceRecord, resolution: ScheduleResolution
) -> Decimal:
    """Actual out minus scheduled out, in hours (negative = left early)."""
    scheduled_in = record.schedule_in or resolution.scheduled_in
    scheduled_out = record.schedule_out or resolution.scheduled_out
    if scheduled_out is None or record.actual_out is None:
        return ZERO
    anchor = scheduled_in or record.actual_in or time(0, 0)
    diff = _after(record.actual_out, anchor) - _after(scheduled_out, anchor)
    return round_hours(Decimal(diff) / Decimal("60"))


def _undertime_hours(record: AttendanceRecord, resolution: ScheduleResolution) -> Decimal:
    if record.undertime_hours is not None:
        return to_decimal(record.undertime_hours)
    diff = _out_difference_hours(record, resolution)
    return -diff if diff < 0 else ZERO


def _overtime_hours(record: AttendanceRecord, resolution: ScheduleResolution) -> Decimal:
    if record.overtime_hours is not None:
        return to_decimal(record.overtime_hours)
    diff = _out_difference_hours(record, resolution)
    return diff if diff > 0 else ZERO


def split_overtime(
    day_type: DayType, hours: Decimal, threshold: Decimal
) -> dict[OvertimeBucket, Decimal]:
    """Split one day's overtime hours into its base and excess buckets.

    Workday overtime has a single bucket; on rest days and holidays the
    first ``threshold`` hours go to the base bucket and the rest to excess.
    """
    if hours <= 0:
        return {}
    base, excess = _OVERTIME_BUCKETS[day_type]
    if excess is None or hours <= threshold:
        return {base: hours}
    return {base: threshold, excess: hours - threshold}


def is_leave_covered(
    leave: EmployeeLeave,
    on_date: date,
    policy: PayrollPolicy,
    resolution: ScheduleResolution | None = None,
) -> bool:
    """Whether a paid, approved leave with a non-negative balance covers the date.

    A leave-reason schedule override counts as an approval for its date;
    when it names no leave type it covers the date on its own.
    """
    leave_types = [a.leave_type for a in leave.approved if a.spans(on_date)]
    if resolution is not None and resolution.override_reason == ScheduleOverrideReason.LEAVE:
        if resolution.leave_type is None:
            return True
        leave_types.append(resolution.leave_type)

    for leave_type in leave_types:
        if leave_type not in policy.paid_leave_types:
            continue
        credit = leave.credit_for(leave_type)
        if credit is None or credit.balance >= 0:
            return True
    return False


def _index_records(
    records: Sequence[AttendanceRecord], cutoff_start: date, cutoff_end: date
) -> dict[date, AttendanceRecord]:
    by_date: dict[date, AttendanceRecord] = {}
    for record in records:
        if not cutoff_start <= record.date <= cutoff_end:
            continue
        if record.date in by_date:
            raise InvalidAttendanceError(
                record.date.isoformat(), "more than one attendance record for the date"
            )
        by_date[record.date] = record
    return by_date


def _holiday_mismatch(
    record: AttendanceRecord, holiday: HolidayEntry | None
) -> str | None:
    if holiday is None:
        if record.is_holiday:
            return "record is flagged as a holiday but the calendar has no holiday"
        return None
    if not record.is_holiday:
        return f"calendar holiday '{holiday.name}' is not flagged on the record"
    if record.holiday_type is not None and record.holiday_type != holiday.type:
        return (
            f"record holiday type '{record.holiday_type.value}' differs from "
            f"calendar type '{holiday.type.value}'"
        )
    return None


def _day_type(holiday: HolidayEntry | None, is_workday: bool) -> DayType:
    if holiday is not None:
        if holiday.type == HolidayType.REGULAR:
            return DayType.REGULAR_HOLIDAY
        if holiday.type == HolidayType.SPECIAL:
            return DayType.SPECIAL_HOLIDAY
    return DayType.WORKDAY if is_workday else DayType.REST_DAY


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


@traced_engine(
    "attendance",
    "1.0",
    fingerprint_fields=("records", "schedule", "holidays", "leave", "cutoff_start", "cutoff_end"),
)
def aggregate_attendance(
    *,
    records: Sequence[AttendanceRecord],
    schedule: EmployeeSchedule | None,
    holidays: Sequence[HolidayEntry],
    leave: EmployeeLeave,
    cutoff_start: date,
    cutoff_end: date,
    policy: PayrollPolicy,
) -> AttendanceSummary:
    """Aggregate one employee's attendance over ``[cutoff_start, cutoff_end]``."""
    if cutoff_end < cutoff_start:
        raise InvalidCutoffError(cutoff_start.isoformat(), cutoff_end.isoformat())

    t0 = _time.monotonic()
    by_date = _index_records(records, cutoff_start, cutoff_end)
    resolutions = resolve_range(schedule, cutoff_start, cutoff_end)
    dates = list(resolutions)
    warnings: list[ComputationWarning] = []

    if schedule is None:
        logger.info(
            "schedule_missing_all_days_workdays",
            extra={"cutoff_start": cutoff_start.isoformat(), "cutoff_end": cutoff_end.isoformat()},
        )

    working_days = count_working_days(schedule, cutoff_start, cutoff_end)
    degenerate = is_degenerate(resolutions.values())
    if degenerate:
        warnings.append(
            ComputationWarning(
                code=WarningCode.DEGENERATE_SCHEDULE,
                message="Every date in the cutoff is a rest day; all dates treated as workdays",
            )
        )

    threshold = policy.hours_per_day
    days_worked = leave_days = absences = ZERO
    late_total = undertime_total = overtime_total = night_total = ZERO
    regular_worked = regular_unworked = special_worked = rest_worked = ZERO
    buckets: dict[OvertimeBucket, Decimal] = {}
    classified: list[DayClassification] = []

    for d in dates:
        resolution = resolutions[d]
        is_workday = resolution.is_workday or degenerate
        holiday = find_holiday(holidays, d)
        day_type = _day_type(holiday, is_workday)
        record = by_date.get(d)
        holiday_name = holiday.name if holiday else None

        if record is not None:
            mismatch = _holiday_mismatch(record, holiday)
            if mismatch is not None:
                warnings.append(
                    ComputationWarning(
                        code=WarningCode.HOLIDAY_FLAG_MISMATCH,
                        message=mismatch,
                        date=d,
                    )
                )

        fraction = WORKED_FRACTION.get(record.status) if record is not None else None
        if fraction is not None:
            late = _late_minutes(record, resolution)
            undertime = _undertime_hours(record, resolution)
            overtime = _overtime_hours(record, resolution)
            night = night_diff_hours(record.actual_in, record.actual_out)

            days_worked += fraction
            late_total += late
            undertime_total += undertime
            overtime_total += overtime
            night_total += night
            # Holiday and rest-day premiums stack on a holiday that is also a rest day.
            if not is_workday:
                rest_worked += fraction
            if day_type == DayType.REGULAR_HOLIDAY:
                regular_worked += fraction
            elif day_type == DayType.SPECIAL_HOLIDAY:
                special_worked += fraction
            for bucket, hours in split_overtime(day_type, overtime, threshold).items():
                buckets[bucket] = buckets.get(bucket, ZERO) + hours

            classified.append(
                DayClassification(
                    date=d,
                    day_type=day_type,
                    status=record.status,
                    worked_fraction=fraction,
                    is_rest_day=not is_workday,
                    late_minutes=late,
                    undertime_hours=undertime,
                    overtime_hours=overtime,
                    night_diff_hours=night,
                    holiday_name=holiday_name,
                )
            )
            continue

        status = record.status if record is not None else None
        covered = is_leave_covered(leave, d, policy, resolution)

        if day_type == DayType.REGULAR_HOLIDAY:
            if covered:
                leave_days += 1
            else:
                regular_unworked += 1
            classified.append(
                DayClassification(
                    date=d,
                    day_type=day_type,
                    status=status,
                    is_rest_day=not is_workday,
                    leave_covered=covered,
                    is_leave_day=covered,
                    is_unworked_regular_holiday=not covered,
                    holiday_name=holiday_name,
                )
            )
        elif day_type in (DayType.REST_DAY, DayType.SPECIAL_HOLIDAY):
            classified.append(
                DayClassification(
                    date=d,
                    day_type=day_type,
                    status=status,
                    is_rest_day=not is_workday,
                    leave_covered=covered,
                    holiday_name=holiday_name,
                )
            )
        else:
            if covered:
                leave_days += 1
            else:
                absences += 1
            classified.append(
                DayClassification(
                    date=d,
                    day_type=day_type,
                    status=status,
                    leave_covered=covered,
                    is_leave_day=covered,
                    is_absence=not covered,
                    holiday_name=holiday_name,
                )
            )

    summary = AttendanceSummary(
        cutoff_start=cutoff_start,
        cutoff_end=cutoff_end,
        working_days_in_cutoff=working_days,
        days_worked=days_worked,
        leave_days=leave_days,
        absences=absences,
        late_minutes=late_total,
        undertime_hours=undertime_total,
        overtime_hours=overtime_total,
        night_diff_hours=night_total,
        regular_holidays_worked=regular_worked,
        regular_holidays_unworked=regular_unworked,
        special_holidays_worked=special_worked,
        rest_days_worked=rest_worked,
        overtime_by_bucket={b: buckets[b] for b in OvertimeBucket if b in buckets},
        days=tuple(classified),
        warnings=tuple(warnings),
    )

    duration_ms = round((_time.monotonic() - t0) * 1000, 2)
    logger.info(
        "attendance_aggregated",
        extra={
            "days_in_cutoff": len(dates),
            "days_worked": str(days_worked),
            "leave_days": str(leave_days),
            "absences": str(absences),
            "warning_count": len(warnings),
            "duration_ms": duration_ms,
        },
    )
    return summary
