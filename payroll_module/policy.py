"""
Payroll Policy Resolution (``payroll_module.policy``).

Responsibility
--------------
Turn an organization's optional-field ``payrollSettings`` mapping into one
fully-populated, immutable ``PayrollPolicy`` snapshot.  This is the ONLY
place a policy default is applied; downstream engines read the resolved
snapshot and never look at raw settings.

Architecture position
---------------------
**Modules layer** -- configuration schema with a single resolution
function and a YAML loader.  ZERO I/O apart from ``load_policy_file``.

Invariants enforced
-------------------
* Every field of ``PayrollPolicy`` is populated after resolution.
* Missing or ``None`` settings take the default and are logged as advisory.
* Present-but-invalid settings raise ``PolicyValidationError``; they are
  never silently replaced by a default.

Failure modes
-------------
* ``PolicyValidationError`` for negative multipliers, zero divisors,
  non-numeric values and pay-date anchors outside 1..31.
* Unknown keys are ignored.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml

from payroll_kernel.domain.money import to_decimal
from payroll_kernel.exceptions import PolicyValidationError
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.policy")

DEFAULT_PAID_LEAVE_TYPES = ("vacation", "sick", "maternity", "paternity")


@dataclass(frozen=True)
class PayrollPolicy:
    """Resolved organization payroll policy.  Rates are multipliers."""
    night_diff_percent: Decimal = Decimal("0.10")
    regular_holiday_rate: Decimal = Decimal("1.00")
    special_holiday_rate: Decimal = Decimal("0.30")
    rest_day_premium_rate: Decimal = Decimal("0.30")
    overtime_regular_rate: Decimal = Decimal("1.25")
    overtime_rest_day_rate: Decimal = Decimal("1.69")
    overtime_rest_day_excess_rate: Decimal = Decimal("2.197")
    special_holiday_ot_rate: Decimal = Decimal("1.69")
    special_holiday_excess_ot_rate: Decimal = Decimal("2.197")
    regular_holiday_ot_rate: Decimal = Decimal("2.00")
    regular_holiday_excess_ot_rate: Decimal = Decimal("2.60")
    daily_rate_includes_allowance: bool = False
    daily_rate_working_days_per_year: int = 261
    hours_per_day: Decimal = Decimal("8")
    first_pay_date: int = 15
    second_pay_date: int = 30
    paid_leave_types: tuple[str, ...] = DEFAULT_PAID_LEAVE_TYPES


DEFAULT_POLICY = PayrollPolicy()

_MULTIPLIER_FIELDS = frozenset(
    {
        "night_diff_percent",
        "regular_holiday_rate",
        "special_holiday_rate",
        "rest_day_premium_rate",
        "overtime_regular_rate",
        "overtime_rest_day_rate",
        "overtime_rest_day_excess_rate",
        "special_holiday_ot_rate",
        "special_holiday_excess_ot_rate",
        "regular_holiday_ot_rate",
        "regular_holiday_excess_ot_rate",
    }
)
_PAY_DATE_FIELDS = frozenset({"first_pay_date", "second_pay_date"})


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _lookup(settings: Mapping[str, Any], name: str) -> Any:
    if name in settings:
        return settings[name]
    return settings.get(_camel(name))


def _unwrap(settings: Mapping[str, Any] | None) -> Mapping[str, Any]:
    if settings is None:
        return {}
    for key in ("payrollSettings", "payroll_settings"):
        if key in settings:
            return settings[key] or {}
    return settings


def _validate(name: str, raw: Any) -> Any:
    if name in _MULTIPLIER_FIELDS:
        try:
            value = to_decimal(raw)
        except ValueError as exc:
            raise PolicyValidationError(name, raw, "not a number") from exc
        if value < 0:
            raise PolicyValidationError(name, raw, "multiplier cannot be negative")
        return value

    if name == "hours_per_day":
        try:
            value = to_decimal(raw)
        except ValueError as exc:
            raise PolicyValidationError(name, raw, "not a number") from exc
        if value <= 0:
            raise PolicyValidationError(name, raw, "divisor must be positive")
        return value

    if name == "daily_rate_working_days_per_year":
        if isinstance(raw, bool) or not isinstance(raw, (int, str, Decimal)):
            raise PolicyValidationError(name, raw, "must be a whole number")
        try:
            value = int(raw)
        except (TypeError, ValueError) as exc:
            raise PolicyValidationError(name, raw, "must be a whole number") from exc
        if value <= 0:
            raise PolicyValidationError(name, raw, "divisor must be positive")
        return value

    if name in _PAY_DATE_FIELDS:
        if isinstance(raw, bool) or not isinstance(raw, int) or not 1 <= raw <= 31:
            raise PolicyValidationError(name, raw, "must be a day of month 1..31")
        return raw

    if name == "daily_rate_includes_allowance":
        if not isinstance(raw, bool):
            raise PolicyValidationError(name, raw, "must be true or false")
        return raw

    if name == "paid_leave_types":
        if not isinstance(raw, (list, tuple)) or not all(isinstance(t, str) for t in raw):
            raise PolicyValidationError(name, raw, "must be a list of leave type names")
        return tuple(raw)

    raise PolicyValidationError(name, raw, "unknown policy field")


def resolve_policy(settings: Mapping[str, Any] | None) -> PayrollPolicy:
    """Resolve raw organization settings into a ``PayrollPolicy`` snapshot.

    Accepts either the ``payrollSettings`` mapping itself or an enclosing
    settings mapping that contains it.  Keys may be camelCase (as the
    settings store writes them) or snake_case.

    Raises:
        PolicyValidationError: A field is present but invalid.
    """
    raw_settings = _unwrap(settings)
    resolved: dict[str, Any] = {}
    defaulted: list[str] = []

    for f in fields(PayrollPolicy):
        raw = _lookup(raw_settings, f.name)
        if raw is None:
            defaulted.append(f.name)
            continue
        resolved[f.name] = _validate(f.name, raw)

    if defaulted:
        logger.info(
            "payroll_policy_defaults_applied",
            extra={"defaulted_fields": defaulted},
        )

    policy = PayrollPolicy(**resolved)
    logger.debug(
        "payroll_policy_resolved",
        extra={"overridden_fields": sorted(resolved)},
    )
    return policy


def load_policy_file(path: str | Path) -> PayrollPolicy:
    """Load and resolve a policy from a YAML file."""
    path = Path(path)
    with open(path) as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, Mapping):
        raise PolicyValidationError("payrollSettings", type(data).__name__, "YAML root must be a mapping")
    logger.info("payroll_policy_file_loaded", extra={"path": str(path)})
    return resolve_policy(data)
