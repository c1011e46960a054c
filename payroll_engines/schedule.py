"""
Schedule Resolver (``payroll_engines.schedule``).

Responsibility
--------------
Decide, for one employee and one calendar date, whether the date is a
scheduled workday and what the scheduled in/out times are.  A
date-specific override (ad-hoc schedule change or leave) takes precedence
over the weekday default.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O, ZERO clock reads.

Invariants enforced
-------------------
* No schedule configured at all -> every day is a workday.  A
  misconfigured employee is paid, not silently zeroed out.
* A weekday missing from the default schedule is a workday, for the same
  reason.
* A leave-reason override always resolves to a workday, whatever its
  ``is_workday`` flag says, so leave coverage can apply to the date.
* ``count_working_days`` falls back to the full range length when every
  date in the range resolves to a rest day.

Failure modes
-------------
* Raises ``ValueError`` when ``end`` precedes ``start``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, time, timedelta

from payroll_kernel.logging_config import get_logger
from payroll_module.models import (
    WEEKDAYS,
    EmployeeSchedule,
    ScheduleOverride,
    ScheduleOverrideReason,
)

logger = get_logger("engines.schedule")


@dataclass(frozen=True)
class ScheduleResolution:
    """Resolved schedule for one date."""
    is_workday: bool
    scheduled_in: time | None = None
    scheduled_out: time | None = None
    is_override: bool = False
    override_reason: ScheduleOverrideReason | None = None
    leave_type: str | None = None


UNSCHEDULED_WORKDAY = ScheduleResolution(is_workday=True)


def day_name(on_date: date) -> str:
    """Lowercase weekday name, as schedules key their defaults."""
    return WEEKDAYS[on_date.weekday()]


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Every date in ``[start, end]`` inclusive."""
    if end < start:
        raise ValueError(f"Range end {end} precedes start {start}")
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def find_override(schedule: EmployeeSchedule, on_date: date) -> ScheduleOverride | None:
    # Last override for a date wins, matching the order they were entered.
    found = None
    for override in schedule.overrides:
        if override.date == on_date:
            found = override
    return found


def resolve_schedule(schedule: EmployeeSchedule | None, on_date: date) -> ScheduleResolution:
    """Resolve the schedule in effect for ``on_date``."""
    if schedule is None:
        return UNSCHEDULED_WORKDAY

    override = find_override(schedule, on_date)
    if override is not None:
        # A leave override marks a day the employee was expected to work.
        is_leave = override.reason == ScheduleOverrideReason.LEAVE
        return ScheduleResolution(
            is_workday=override.is_workday or is_leave,
            scheduled_in=override.schedule_in,
            scheduled_out=override.schedule_out,
            is_override=True,
            override_reason=override.reason,
            leave_type=override.leave_type,
        )

    default = schedule.default_schedule.get(day_name(on_date))
    if default is None:
        return UNSCHEDULED_WORKDAY
    return ScheduleResolution(
        is_workday=default.is_workday,
        scheduled_in=default.schedule_in,
        scheduled_out=default.schedule_out,
    )


def resolve_range(
    schedule: EmployeeSchedule | None,
    start: date,
    end: date,
) -> dict[date, ScheduleResolution]:
    """Resolve every date in ``[start, end]``, in date order."""
    return {d: resolve_schedule(schedule, d) for d in iter_dates(start, end)}


def is_degenerate(resolutions: Iterable[ScheduleResolution]) -> bool:
    """True when no date resolves to a workday."""
    return not any(r.is_workday for r in resolutions)


def count_working_days(
    schedule: EmployeeSchedule | None,
    start: date,
    end: date,
) -> int:
    """Count scheduled workdays in ``[start, end]``.

    When every date is a rest day the schedule is treated as misconfigured
    and the full range length is returned instead of zero.
    """
    resolutions = resolve_range(schedule, start, end)
    if is_degenerate(resolutions.values()):
        logger.warning(
            "degenerate_schedule_fallback",
            extra={"start": start.isoformat(), "end": end.isoformat(), "days": len(resolutions)},
        )
        return len(resolutions)
    return sum(1 for r in resolutions.values() if r.is_workday)
