"""
Rate Deriver (``payroll_engines.rates``).

Responsibility
--------------
Convert an employee's salary basis plus the organization policy into the
canonical daily and hourly rates.  Every consumer of a daily or hourly
rate (premiums, attendance deductions, basic pay) receives the
``DerivedRates`` produced here; nothing else derives a rate.

Formulas
--------
* monthly: ``daily = (basic + allowance if policy includes it) x 12
  / working_days_per_year``; ``hourly = daily / hours_per_day``
* daily:   ``daily = basic``; ``hourly = daily / hours_per_day``
* hourly:  ``hourly = basic``; ``daily = hourly x hours_per_day``

Rates are kept at 6 decimal places; amounts are rounded to centavos only
when a rate is multiplied into money.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.money import round_rate
from payroll_kernel.logging_config import get_logger
from payroll_module.models import EmployeeCompensation, SalaryBasis
from payroll_module.policy import PayrollPolicy

logger = get_logger("engines.rates")

MONTHS_PER_YEAR = Decimal("12")


@dataclass(frozen=True)
class DerivedRates:
    daily_rate: Decimal
    hourly_rate: Decimal


@traced_engine("rates", "1.0", fingerprint_fields=("compensation", "policy"))
def derive_rates(*, compensation: EmployeeCompensation, policy: PayrollPolicy) -> DerivedRates:
    """Derive daily and hourly rates for one employee."""
    hours_per_day = policy.hours_per_day

    match compensation.salary_basis:
        case SalaryBasis.MONTHLY:
            monthly_base = compensation.basic_salary
            if policy.daily_rate_includes_allowance:
                monthly_base += compensation.allowance
            daily = monthly_base * MONTHS_PER_YEAR / Decimal(
                policy.daily_rate_working_days_per_year
            )
            hourly = daily / hours_per_day
        case SalaryBasis.DAILY:
            daily = compensation.basic_salary
            hourly = daily / hours_per_day
        case SalaryBasis.HOURLY:
            hourly = compensation.basic_salary
            daily = hourly * hours_per_day

    rates = DerivedRates(daily_rate=round_rate(daily), hourly_rate=round_rate(hourly))
    logger.debug(
        "rates_derived",
        extra={
            "salary_basis": compensation.salary_basis.value,
            "daily_rate": str(rates.daily_rate),
            "hourly_rate": str(rates.hourly_rate),
        },
    )
    return rates
