"""
Premium Calculator (``payroll_engines.premiums``).

Responsibility
--------------
Price the premiums earned in a cutoff: holiday pay, rest-day pay, night
differential and the seven overtime buckets, from an ``AttendanceSummary``,
the derived rates and the resolved multipliers.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O.

Invariants enforced
-------------------
* A per-employee override wins over the policy; a missing value falls back
  to the documented default, never to zero or to an error.
* Overtime buckets are disjoint: each overtime hour is priced once.
* Every amount is rounded half-up to 0.01 before it is summed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal

from payroll_engines.attendance import AttendanceSummary
from payroll_engines.rates import DerivedRates
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.money import ZERO_MONEY, round_money
from payroll_kernel.logging_config import get_logger
from payroll_module.models import EmployeeCompensation, OvertimeBucket
from payroll_module.policy import DEFAULT_POLICY, PayrollPolicy

logger = get_logger("engines.premiums")

_POLICY_OVERTIME_FIELDS: dict[OvertimeBucket, str] = {
    OvertimeBucket.REGULAR: "overtime_regular_rate",
    OvertimeBucket.REST_DAY: "overtime_rest_day_rate",
    OvertimeBucket.REST_DAY_EXCESS: "overtime_rest_day_excess_rate",
    OvertimeBucket.SPECIAL_HOLIDAY: "special_holiday_ot_rate",
    OvertimeBucket.SPECIAL_HOLIDAY_EXCESS: "special_holiday_excess_ot_rate",
    OvertimeBucket.LEGAL_HOLIDAY: "regular_holiday_ot_rate",
    OvertimeBucket.LEGAL_HOLIDAY_EXCESS: "regular_holiday_excess_ot_rate",
}


@dataclass(frozen=True)
class Multipliers:
    """Effective multipliers for one employee."""
    regular_holiday_rate: Decimal
    special_holiday_rate: Decimal
    rest_day_premium_rate: Decimal
    night_diff_percent: Decimal
    overtime: Mapping[OvertimeBucket, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class PremiumBreakdown:
    holiday_pay: Decimal
    rest_day_pay: Decimal
    night_diff_pay: Decimal
    overtime_by_bucket: Mapping[OvertimeBucket, Decimal]

    @property
    def overtime_pay(self) -> Decimal:
        return sum(self.overtime_by_bucket.values(), ZERO_MONEY)

    @property
    def premium_pay(self) -> Decimal:
        """Holiday, rest-day and night-differential pay (overtime excluded)."""
        return self.holiday_pay + self.rest_day_pay + self.night_diff_pay


def _first(*values: Decimal | None) -> Decimal:
    for value in values:
        if value is not None:
            return value
    raise ValueError("no multiplier value available")


def resolve_multipliers(
    compensation: EmployeeCompensation, policy: PayrollPolicy
) -> Multipliers:
    """Merge per-employee overrides over the organization policy."""
    overtime = {
        bucket: _first(
            compensation.overtime_rates.get(bucket),
            getattr(policy, name),
            getattr(DEFAULT_POLICY, name),
        )
        for bucket, name in _POLICY_OVERTIME_FIELDS.items()
    }
    return Multipliers(
        regular_holiday_rate=_first(
            compensation.regular_holiday_rate,
            policy.regular_holiday_rate,
            DEFAULT_POLICY.regular_holiday_rate,
        ),
        special_holiday_rate=_first(
            compensation.special_holiday_rate,
            policy.special_holiday_rate,
            DEFAULT_POLICY.special_holiday_rate,
        ),
        rest_day_premium_rate=_first(
            policy.rest_day_premium_rate, DEFAULT_POLICY.rest_day_premium_rate
        ),
        night_diff_percent=_first(
            compensation.night_diff_percent,
            policy.night_diff_percent,
            DEFAULT_POLICY.night_diff_percent,
        ),
        overtime=overtime,
    )


@traced_engine("premiums", "1.0", fingerprint_fields=("summary", "rates", "multipliers"))
def calculate_premiums(
    *,
    summary: AttendanceSummary,
    rates: DerivedRates,
    multipliers: Multipliers,
) -> PremiumBreakdown:
    """Price holiday, rest-day, night-differential and overtime premiums."""
    daily = rates.daily_rate
    hourly = rates.hourly_rate

    regular_holiday_days = summary.regular_holidays_worked + summary.regular_holidays_unworked
    holiday_pay = round_money(
        daily * multipliers.regular_holiday_rate * regular_holiday_days
    ) + round_money(
        daily * multipliers.special_holiday_rate * summary.special_holidays_worked
    )
    rest_day_pay = round_money(
        daily * multipliers.rest_day_premium_rate * summary.rest_days_worked
    )
    night_diff_pay = round_money(
        hourly * multipliers.night_diff_percent * summary.night_diff_hours
    )

    overtime: dict[OvertimeBucket, Decimal] = {}
    for bucket in OvertimeBucket:
        hours = summary.overtime_by_bucket.get(bucket)
        if hours:
            overtime[bucket] = round_money(hours * hourly * multipliers.overtime[bucket])
        else:
            overtime[bucket] = ZERO_MONEY

    breakdown = PremiumBreakdown(
        holiday_pay=holiday_pay,
        rest_day_pay=rest_day_pay,
        night_diff_pay=night_diff_pay,
        overtime_by_bucket=overtime,
    )
    logger.debug(
        "premiums_calculated",
        extra={
            "holiday_pay": str(holiday_pay),
            "rest_day_pay": str(rest_day_pay),
            "night_diff_pay": str(night_diff_pay),
            "overtime_pay": str(breakdown.overtime_pay),
        },
    )
    return breakdown
