"""
Money -- Decimal rounding rules shared by every payroll engine.

Responsibility:
    One place that defines how amounts and rates are quantized, so that the
    same inputs always produce byte-identical payslips.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.

Invariants enforced:
    - Monetary amounts are ``Decimal`` quantized to 0.01, ROUND_HALF_UP.
    - Derived rates keep 6 decimal places until they are multiplied into an
      amount.
    - ``float`` never enters a calculation; ``to_decimal`` goes through
      ``str`` so binary float artefacts are not carried over.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

MONEY_QUANTUM = Decimal("0.01")
RATE_QUANTUM = Decimal("0.000001")
HOURS_QUANTUM = Decimal("0.01")

ZERO = Decimal("0")
ZERO_MONEY = Decimal("0.00")


def to_decimal(value: object) -> Decimal:
    """Convert int/str/float/Decimal input to Decimal.

    Raises:
        ValueError: If the value is not numeric (or is NaN/infinite).
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise ValueError(f"Boolean is not a numeric amount: {value!r}")
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a numeric amount: {value!r}") from exc
    else:
        raise ValueError(f"Not a numeric amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def round_money(value: Decimal) -> Decimal:
    """Quantize an amount to centavos, half-up."""
    return value.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    """Quantize a derived rate to 6 decimal places, half-up."""
    return value.quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def round_hours(value: Decimal) -> Decimal:
    """Quantize an hour count to 0.01, half-up."""
    return value.quantize(HOURS_QUANTUM, rounding=ROUND_HALF_UP)


def floor_zero(value: Decimal) -> Decimal:
    """Clamp a negative amount to zero."""
    return value if value > ZERO else ZERO_MONEY


def format_money(value: Decimal) -> str:
    """Render an amount with two decimals, as edit-history details show it."""
    return f"{round_money(value):.2f}"
