"""
Deduction and Incentive Assembler (``payroll_engines.deductions``).

Responsibility
--------------
* Convert absences, late minutes and undertime hours into currency.
* Build the government deduction lines from the run elections and an
  external contribution table, deferring them when nothing was worked.
* Validate the run-scoped loan and incentive line items, and price the
  employee's standing (recurring) items for the cutoff.

Architecture position
---------------------
**Engines layer** -- pure functional core.  ZERO I/O.  The contribution
amounts themselves come from a ``ContributionTable`` supplied by the
caller; statutory table lookups are not part of the engine.

Invariants enforced
-------------------
* Absent deductions apply to monthly-basis employees only.  Daily and
  hourly employees are not paid for unworked days through basic pay, so
  deducting again would penalize them twice.
* A disabled government deduction is omitted from the line list entirely;
  it never appears with a zero amount.
* ``half`` frequency halves the monthly amount for this cutoff.
* A ``monthly`` standing item contributes half its amount to each
  semi-monthly cutoff; a ``per_cutoff`` one contributes its full amount.
* Withholding tax is looked up on taxable gross earnings minus the other
  government amounts deducted on the same payslip.
* When the employee neither worked nor took paid leave in the cutoff, the
  government amounts are deferred into pending deductions instead.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol

from payroll_engines.attendance import AttendanceSummary
from payroll_engines.rates import DerivedRates
from payroll_engines.tracer import traced_engine
from payroll_kernel.domain.money import ZERO, ZERO_MONEY, floor_zero, round_money, to_decimal
from payroll_kernel.exceptions import InvalidLineItemError
from payroll_kernel.logging_config import get_logger
from payroll_module.models import (
    GOVERNMENT_LINE_NAMES,
    PENDING_DEDUCTIONS_LINE_NAME,
    DeductionFrequency,
    EmployeeCompensation,
    EmployeeRunElections,
    GovernmentDeductionType,
    LineItem,
    LineItemType,
    RecurringFrequency,
    RecurringLineItem,
    SalaryBasis,
)

logger = get_logger("engines.deductions")

MINUTES_PER_HOUR = Decimal("60")
HALF = Decimal("0.5")

CONTRIBUTION_TYPES = (
    GovernmentDeductionType.SSS,
    GovernmentDeductionType.PHILHEALTH,
    GovernmentDeductionType.PAGIBIG,
)


# ---------------------------------------------------------------------------
# Attendance deductions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttendanceDeductions:
    absent_deduction: Decimal
    late_deduction: Decimal
    undertime_deduction: Decimal

    @property
    def total(self) -> Decimal:
        return self.absent_deduction + self.late_deduction + self.undertime_deduction


@traced_engine("attendance_deductions", "1.0", fingerprint_fields=("summary", "rates", "salary_basis"))
def attendance_deductions(
    *,
    summary: AttendanceSummary,
    rates: DerivedRates,
    salary_basis: SalaryBasis,
) -> AttendanceDeductions:
    """Absence, late and undertime deductions for one cutoff."""
    if salary_basis == SalaryBasis.MONTHLY:
        absent = round_money(summary.absences * rates.daily_rate)
    else:
        absent = ZERO_MONEY
    late = round_money(summary.late_minutes / MINUTES_PER_HOUR * rates.hourly_rate)
    undertime = round_money(summary.undertime_hours * rates.hourly_rate)
    return AttendanceDeductions(
        absent_deduction=absent,
        late_deduction=late,
        undertime_deduction=undertime,
    )


# ---------------------------------------------------------------------------
# Contribution tables
# ---------------------------------------------------------------------------


class ContributionTable(Protocol):
    """Source of statutory contribution and withholding amounts."""

    def employee_share(
        self, deduction_type: GovernmentDeductionType, compensation: EmployeeCompensation
    ) -> Decimal:
        """Monthly employee share for SSS, PhilHealth or Pag-IBIG."""
        ...

    def employer_share(
        self, deduction_type: GovernmentDeductionType, compensation: EmployeeCompensation
    ) -> Decimal:
        """Monthly employer share for SSS, PhilHealth or Pag-IBIG."""
        ...

    def withholding_tax(self, taxable_income: Decimal) -> Decimal:
        """Withholding tax on the given taxable income."""
        ...


@dataclass(frozen=True)
class FixedContributionTable:
    """Contribution table with fixed monthly amounts taken from configuration.

    Withholding tax is a flat ``tax_rate`` on the income above
    ``tax_exempt_threshold``.
    """
    employee_shares: Mapping[GovernmentDeductionType, Decimal] = field(default_factory=dict)
    employer_shares: Mapping[GovernmentDeductionType, Decimal] = field(default_factory=dict)
    tax_rate: Decimal = ZERO
    tax_exempt_threshold: Decimal = ZERO

    @classmethod
    def from_mapping(cls, data: Mapping[str, object] | None) -> FixedContributionTable:
        """Build from a config mapping such as a YAML ``contributions`` block."""
        data = data or {}

        def shares(raw: object) -> dict[GovernmentDeductionType, Decimal]:
            raw = raw or {}
            return {
                GovernmentDeductionType(k): to_decimal(v)
                for k, v in raw.items()  # type: ignore[union-attr]
            }

        return cls(
            employee_shares=shares(data.get("employee")),
            employer_shares=shares(data.get("employer")),
            tax_rate=to_decimal(data.get("tax_rate", 0)),
            tax_exempt_threshold=to_decimal(data.get("tax_exempt_threshold", 0)),
        )

    def employee_share(
        self, deduction_type: GovernmentDeductionType, compensation: EmployeeCompensation
    ) -> Decimal:
        return self.employee_shares.get(deduction_type, ZERO)

    def employer_share(
        self, deduction_type: GovernmentDeductionType, compensation: EmployeeCompensation
    ) -> Decimal:
        return self.employer_shares.get(deduction_type, ZERO)

    def withholding_tax(self, taxable_income: Decimal) -> Decimal:
        return floor_zero(taxable_income - self.tax_exempt_threshold) * self.tax_rate


# ---------------------------------------------------------------------------
# Government deductions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GovernmentDeductionResult:
    lines: tuple[LineItem, ...]
    employer_contributions: tuple[LineItem, ...]
    deferred_deductions: Decimal

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO_MONEY)


def _apply_frequency(amount: Decimal, frequency: DeductionFrequency) -> Decimal:
    if frequency == DeductionFrequency.HALF:
        return round_money(amount * HALF)
    return round_money(amount)


@traced_engine(
    "government_deductions",
    "1.0",
    fingerprint_fields=("compensation", "elections", "taxable_gross_earnings", "has_worked"),
)
def assemble_government_deductions(
    *,
    compensation: EmployeeCompensation,
    elections: EmployeeRunElections,
    taxable_gross_earnings: Decimal,
    has_worked: bool,
    table: ContributionTable,
) -> GovernmentDeductionResult:
    """Government deduction lines, employer contributions and deferrals.

    Line order is SSS, PhilHealth, Pag-IBIG, Withholding Tax, then the
    carried-in pending deductions.
    """
    lines: list[LineItem] = []
    employer: list[LineItem] = []
    contribution_total = ZERO_MONEY

    for deduction_type in CONTRIBUTION_TYPES:
        election = elections.election_for(deduction_type)
        if not election.enabled:
            continue
        name = GOVERNMENT_LINE_NAMES[deduction_type]
        amount = _apply_frequency(
            table.employee_share(deduction_type, compensation), election.frequency
        )
        contribution_total += amount
        lines.append(LineItem(name=name, amount=amount, type=LineItemType.GOVERNMENT))
        employer.append(
            LineItem(
                name=name,
                amount=_apply_frequency(
                    table.employer_share(deduction_type, compensation), election.frequency
                ),
                type=LineItemType.GOVERNMENT,
            )
        )

    previous_pending = round_money(to_decimal(elections.previous_pending_deductions))

    if not has_worked:
        deferred = contribution_total + previous_pending
        logger.info(
            "government_deductions_deferred",
            extra={
                "employee_id": elections.employee_id,
                "deferred": str(deferred),
            },
        )
        return GovernmentDeductionResult(
            lines=(),
            employer_contributions=(),
            deferred_deductions=deferred,
        )

    tax_election = elections.election_for(GovernmentDeductionType.TAX)
    if tax_election.enabled:
        taxable_income = floor_zero(taxable_gross_earnings - contribution_total)
        tax = _apply_frequency(table.withholding_tax(taxable_income), tax_election.frequency)
        lines.append(
            LineItem(
                name=GOVERNMENT_LINE_NAMES[GovernmentDeductionType.TAX],
                amount=tax,
                type=LineItemType.GOVERNMENT,
            )
        )

    if previous_pending > 0:
        lines.append(
            LineItem(
                name=PENDING_DEDUCTIONS_LINE_NAME,
                amount=previous_pending,
                type=LineItemType.GOVERNMENT,
            )
        )

    return GovernmentDeductionResult(
        lines=tuple(lines),
        employer_contributions=tuple(employer),
        deferred_deductions=ZERO_MONEY,
    )


# ---------------------------------------------------------------------------
# Loans and incentives
# ---------------------------------------------------------------------------


def loan_lines(items: Sequence[LineItem]) -> tuple[LineItem, ...]:
    """Run-scoped loan/other deductions, amounts rounded to centavos."""
    result = []
    for item in items:
        if item.type not in (LineItemType.LOAN, LineItemType.OTHER):
            raise InvalidLineItemError(item.name, item.amount, f"'{item.type.value}' is not a loan deduction")
        result.append(LineItem(name=item.name, amount=round_money(item.amount), type=item.type))
    return tuple(result)


def incentive_lines(items: Sequence[LineItem]) -> tuple[LineItem, ...]:
    """Run-scoped incentives, amounts rounded to centavos."""
    result = []
    for item in items:
        if item.type != LineItemType.INCENTIVE:
            raise InvalidLineItemError(item.name, item.amount, f"'{item.type.value}' is not an incentive")
        result.append(LineItem(name=item.name, amount=round_money(item.amount), type=item.type))
    return tuple(result)


def standing_lines(
    items: Sequence[RecurringLineItem],
    *,
    cutoff_start: date,
    cutoff_end: date,
) -> tuple[LineItem, ...]:
    """Employee-level recurring items that apply to the cutoff, as line items.

    Monthly amounts are halved for the semi-monthly cutoff.  Inactive items
    and items whose window misses the cutoff are left out.
    """
    result = []
    for item in items:
        if not item.applies_to(cutoff_start, cutoff_end):
            logger.debug(
                "standing_item_skipped",
                extra={"item_name": item.name, "is_active": item.is_active},
            )
            continue
        amount = item.amount * HALF if item.frequency == RecurringFrequency.MONTHLY else item.amount
        result.append(LineItem(name=item.name, amount=round_money(amount), type=item.type))
    return tuple(result)
