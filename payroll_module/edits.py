"""
Payslip Edit Service (``payroll_module.edits``).

Responsibility
--------------
Apply post-composition corrections to a payslip -- its deduction lines,
incentive lines and non-taxable allowance -- without ever overwriting it:
each effective edit recomputes the totals and appends a ``PayslipEdit``
carrying per-field old/new values and human-readable change details.

Architecture position
---------------------
**Modules layer** -- pure domain service.  Time comes from an injected
``Clock``; persistence of the resulting edit row belongs to
``payroll_module.orm``.

Invariants enforced
-------------------
* Edit history is append-only; an edit that changes nothing appends
  nothing and returns the payslip unchanged.
* Totals after an edit come from ``recompute_totals`` only, so an edited
  payslip satisfies the same net-pay identity as a freshly composed one.
* Replaying a payslip's stored edits over the original reproduces the
  edited payslip exactly.

Failure modes
-------------
* ``PayslipLockedError`` when the payslip's run is paid, archived or
  cancelled.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from decimal import Decimal

from payroll_engines.payslip import recompute_totals
from payroll_kernel.domain.clock import Clock
from payroll_kernel.domain.money import format_money, round_money, to_decimal
from payroll_kernel.exceptions import PayslipLockedError
from payroll_kernel.logging_config import get_logger
from payroll_module.models import (
    FieldChange,
    LineItem,
    Payslip,
    PayslipEdit,
    PayrollRunStatus,
)

logger = get_logger("modules.payroll.edits")

LOCKED_RUN_STATUSES = frozenset(
    {PayrollRunStatus.PAID, PayrollRunStatus.ARCHIVED, PayrollRunStatus.CANCELLED}
)

_LIST_FIELDS = ("deductions", "incentives")
_ALLOWANCE_FIELD = "non_taxable_allowance"


def detect_line_item_changes(
    old_items: Sequence[LineItem], new_items: Sequence[LineItem]
) -> list[str]:
    """Describe how one line-item list became another.

    Items are matched by name, in order.  A matched item with a different
    amount is "Modified"; unmatched new items are "Added"; unmatched old
    items are "Removed".  A matched item whose type alone changed is
    reported as removed and re-added.
    """
    details: list[str] = []
    matched_old: set[int] = set()
    matched_new: set[int] = set()

    for new_idx, new in enumerate(new_items):
        for old_idx, old in enumerate(old_items):
            if old_idx in matched_old or old.name != new.name:
                continue
            if old.amount != new.amount:
                details.append(
                    f'Modified "{new.name}": {format_money(old.amount)} → {format_money(new.amount)}'
                )
            elif old.type != new.type:
                continue
            matched_old.add(old_idx)
            matched_new.add(new_idx)
            break

    for new_idx, new in enumerate(new_items):
        if new_idx not in matched_new:
            details.append(f'Added "{new.name}": {format_money(new.amount)}')

    for old_idx, old in enumerate(old_items):
        if old_idx not in matched_old:
            details.append(f'Removed "{old.name}": {format_money(old.amount)}')

    return details


def _rounded(items: Iterable[LineItem]) -> tuple[LineItem, ...]:
    return tuple(LineItem(name=i.name, amount=round_money(i.amount), type=i.type) for i in items)


def _serialize_items(items: Sequence[LineItem]) -> list[dict[str, str]]:
    return [i.to_dict() for i in items]


def apply_edit(payslip: Payslip, edit: PayslipEdit) -> Payslip:
    """Apply a recorded edit: set its new values, recompute, append it."""
    new_values: dict[str, object] = {}
    for change in edit.changes:
        if change.field in _LIST_FIELDS:
            new_values[change.field] = tuple(LineItem.from_dict(i) for i in change.new_value)
        elif change.field == _ALLOWANCE_FIELD:
            new_values[change.field] = Decimal(change.new_value)
        else:
            raise ValueError(f"Unknown edited payslip field: {change.field}")

    recomputed = recompute_totals(payslip, **new_values)
    return recomputed.with_edit(edit)


def replay_edits(payslip: Payslip, edits: Iterable[PayslipEdit]) -> Payslip:
    """Rebuild the current payslip from the stored original and its edits."""
    current = payslip
    for edit in edits:
        current = apply_edit(current, edit)
    return current


def edit_payslip(
    payslip: Payslip,
    *,
    editor: str,
    clock: Clock,
    run_status: PayrollRunStatus,
    deductions: Sequence[LineItem] | None = None,
    incentives: Sequence[LineItem] | None = None,
    non_taxable_allowance: Decimal | None = None,
) -> Payslip:
    """Edit adjustable payslip inputs, recording the change in edit history.

    Arguments left as ``None`` are not edited.

    Raises:
        PayslipLockedError: The run no longer accepts payslip edits.
    """
    run_status = PayrollRunStatus(run_status)
    if run_status in LOCKED_RUN_STATUSES:
        logger.warning(
            "payslip_edit_rejected",
            extra={"employee_id": payslip.employee_id, "run_status": run_status.value},
        )
        raise PayslipLockedError(
            f"{payslip.payroll_run_id}/{payslip.employee_id}", run_status.value
        )

    changes: list[FieldChange] = []

    for name, new_items in (("deductions", deductions), ("incentives", incentives)):
        if new_items is None:
            continue
        old_items = getattr(payslip, name)
        new_items = _rounded(new_items)
        details = detect_line_item_changes(old_items, new_items)
        if details:
            changes.append(
                FieldChange(
                    field=name,
                    old_value=_serialize_items(old_items),
                    new_value=_serialize_items(new_items),
                    details=tuple(details),
                )
            )

    if non_taxable_allowance is not None:
        new_allowance = round_money(to_decimal(non_taxable_allowance))
        if new_allowance != payslip.non_taxable_allowance:
            changes.append(
                FieldChange(
                    field=_ALLOWANCE_FIELD,
                    old_value=str(payslip.non_taxable_allowance),
                    new_value=str(new_allowance),
                    details=(
                        f'Modified "Non-taxable Allowance": '
                        f"{format_money(payslip.non_taxable_allowance)} → {format_money(new_allowance)}",
                    ),
                )
            )

    if not changes:
        logger.info(
            "payslip_edit_no_changes",
            extra={"employee_id": payslip.employee_id, "editor": editor},
        )
        return payslip

    edit = PayslipEdit(edited_by=editor, edited_at=clock.now_utc(), changes=tuple(changes))
    edited = apply_edit(payslip, edit)
    logger.info(
        "payslip_edited",
        extra={
            "employee_id": payslip.employee_id,
            "payroll_run_id": payslip.payroll_run_id,
            "editor": editor,
            "fields": [c.field for c in changes],
            "old_net_pay": str(payslip.net_pay),
            "new_net_pay": str(edited.net_pay),
        },
    )
    return edited
