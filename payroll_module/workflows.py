"""Payroll Workflows.

State machine for the payroll run lifecycle.
"""

from __future__ import annotations

from dataclasses import replace

from payroll_kernel.domain.workflow import Guard, Transition, Workflow
from payroll_kernel.exceptions import InvalidRunTransitionError
from payroll_kernel.logging_config import get_logger
from payroll_module.models import PayrollRun, PayrollRunStatus

logger = get_logger("modules.payroll.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

PAYSLIPS_COMPUTED = Guard(
    name="payslips_computed",
    description="Every selected employee has a payslip or a reported failure",
)

PAYSLIPS_REVIEWED = Guard(
    name="payslips_reviewed",
    description="Payroll officer reviewed the computed payslips",
)

PAYMENT_RELEASED = Guard(
    name="payment_released",
    description="Net pay was released to employees",
)


# -----------------------------------------------------------------------------
# Payroll Run Workflow
# -----------------------------------------------------------------------------

_S = PayrollRunStatus

PAYROLL_RUN_WORKFLOW = Workflow(
    name="payroll_run",
    description="Payroll run lifecycle",
    initial_state=_S.DRAFT.value,
    states=tuple(s.value for s in PayrollRunStatus),
    transitions=(
        Transition(_S.DRAFT.value, _S.PROCESSING.value, action="process"),
        Transition(_S.PROCESSING.value, _S.DRAFT.value, action="revert"),
        Transition(
            _S.PROCESSING.value, _S.FINALIZED.value,
            action="finalize",
            guard=PAYSLIPS_COMPUTED,
        ),
        Transition(
            _S.FINALIZED.value, _S.PAID.value,
            action="pay",
            guard=PAYSLIPS_REVIEWED,
        ),
        Transition(
            _S.PAID.value, _S.ARCHIVED.value,
            action="archive",
            guard=PAYMENT_RELEASED,
        ),
        Transition(_S.DRAFT.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.PROCESSING.value, _S.CANCELLED.value, action="cancel"),
        Transition(_S.FINALIZED.value, _S.CANCELLED.value, action="cancel"),
    ),
    terminal_states=(_S.ARCHIVED.value, _S.CANCELLED.value),
)

logger.info(
    "payroll_run_workflow_registered",
    extra={
        "workflow_name": PAYROLL_RUN_WORKFLOW.name,
        "state_count": len(PAYROLL_RUN_WORKFLOW.states),
        "transition_count": len(PAYROLL_RUN_WORKFLOW.transitions),
        "initial_state": PAYROLL_RUN_WORKFLOW.initial_state,
    },
)


def transition_run(run: PayrollRun, action: str) -> PayrollRun:
    """Return ``run`` moved through ``action``.

    Raises:
        InvalidRunTransitionError: ``action`` is not allowed from the
            run's current status.
    """
    transition = PAYROLL_RUN_WORKFLOW.find_transition(run.status.value, action)
    if transition is None:
        logger.warning(
            "payroll_run_transition_rejected",
            extra={"payroll_run_id": run.id, "from_status": run.status.value, "action": action},
        )
        raise InvalidRunTransitionError(run.id, run.status.value, action)

    logger.info(
        "payroll_run_transitioned",
        extra={
            "payroll_run_id": run.id,
            "from_status": transition.from_state,
            "to_status": transition.to_state,
            "action": action,
        },
    )
    return replace(run, status=PayrollRunStatus(transition.to_state))
