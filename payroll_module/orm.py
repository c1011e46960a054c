"""
Payroll ORM Persistence Models (``payroll_module.orm``).

Responsibility:
    SQLAlchemy ORM models that persist payroll runs, the payslips they
    produce and each payslip's append-only edit history.  Each ORM class
    mirrors a DTO from ``payroll_module.models`` and provides
    ``to_dto()`` / ``from_dto()`` conversion.

Architecture position:
    **Modules layer** -- persistence companions to the pure DTO models.
    Inherits from ``TrackedBase`` (kernel DB base) which provides:
    id (UUID PK, auto-generated), created_at, updated_at, created_by_id.

Invariants enforced:
    - A stored payslip row holds the payslip exactly as composed; its
      payload is never rewritten (see ``payroll_kernel.db.immutability``).
    - Edits are separate insert-only rows numbered by ``sequence``; the
      current payslip is the stored original with every edit replayed in
      sequence order.
    - At most one payslip per employee per run (uq_payroll_payslip_run_employee).
    - Key totals are denormalized into Numeric columns for querying; the
      JSON payload remains the source of truth.

Failure modes:
    - ``PayslipLockedError`` when editing a payslip whose run is paid,
      archived or cancelled.
    - ``ImmutabilityViolationError`` on any attempt to update or delete a
      payslip or edit row (listeners registered).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, String, Text, UniqueConstraint, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from payroll_kernel.db.base import TrackedBase
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.payroll.orm")


# ---------------------------------------------------------------------------
# PayrollRunModel
# ---------------------------------------------------------------------------

class PayrollRunModel(TrackedBase):
    """
    ORM model for ``PayrollRun`` -- one organization's run for one cutoff.

    Contract:
        ``run_ref`` is the caller-facing run identifier carried on every
        payslip.  ``status`` follows PAYROLL_RUN_WORKFLOW and is the only
        column expected to change after insert.  Run elections are inputs
        to computation and are not persisted here.
    """

    __tablename__ = "payroll_runs"

    run_ref: Mapped[str] = mapped_column(String(100), nullable=False)
    organization_id: Mapped[str] = mapped_column(String(100), nullable=False)
    cutoff_start: Mapped[date] = mapped_column(Date, nullable=False)
    cutoff_end: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="draft")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    payslips: Mapped[list["PayslipModel"]] = relationship(
        "PayslipModel", back_populates="payroll_run", lazy="select",
    )

    __table_args__ = (
        UniqueConstraint("run_ref", name="uq_payroll_run_ref"),
        Index("idx_payroll_run_organization", "organization_id"),
        Index("idx_payroll_run_status", "status"),
        Index("idx_payroll_run_cutoff", "cutoff_start", "cutoff_end"),
    )

    def to_dto(self):
        from payroll_module.models import PayrollRun, PayrollRunStatus
        return PayrollRun(
            id=self.run_ref,
            organization_id=self.organization_id,
            cutoff_start=self.cutoff_start,
            cutoff_end=self.cutoff_end,
            status=PayrollRunStatus(self.status),
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: str) -> "PayrollRunModel":
        return cls(
            run_ref=dto.id,
            organization_id=dto.organization_id,
            cutoff_start=dto.cutoff_start,
            cutoff_end=dto.cutoff_end,
            status=dto.status.value if hasattr(dto.status, "value") else dto.status,
            notes=dto.notes,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<PayrollRunModel {self.run_ref}: "
            f"{self.cutoff_start}..{self.cutoff_end} ({self.status})>"
        )


# ---------------------------------------------------------------------------
# PayslipModel
# ---------------------------------------------------------------------------

class PayslipModel(TrackedBase):
    """
    ORM model for ``Payslip`` -- one employee's payslip as composed.

    Contract:
        ``payload`` is ``Payslip.to_dict()`` of the original composition,
        with an empty edit history.  ``fingerprint`` is the payslip's
        SHA-256 fingerprint at insert time.
    """

    __tablename__ = "payroll_payslips"

    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_runs.id"), nullable=False,
    )
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    taxable_gross_earnings: Mapped[Decimal] = mapped_column(nullable=False)
    total_earnings: Mapped[Decimal] = mapped_column(nullable=False)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)
    pending_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    payroll_run: Mapped["PayrollRunModel"] = relationship(
        "PayrollRunModel", back_populates="payslips",
    )
    edits: Mapped[list["PayslipEditModel"]] = relationship(
        "PayslipEditModel",
        back_populates="payslip",
        lazy="select",
        order_by="PayslipEditModel.sequence",
    )

    __table_args__ = (
        UniqueConstraint(
            "payroll_run_id", "employee_id",
            name="uq_payroll_payslip_run_employee",
        ),
        Index("idx_payroll_payslip_run", "payroll_run_id"),
        Index("idx_payroll_payslip_employee", "employee_id"),
    )

    def to_dto(self):
        """The payslip as originally composed, without its edits."""
        from payroll_module.models import Payslip
        return Payslip.from_dict(self.payload)

    @classmethod
    def from_dto(cls, dto, payroll_run_id: UUID, created_by_id: str) -> "PayslipModel":
        if dto.edit_history:
            raise ValueError(
                "Only an unedited payslip can be stored; persist edits as PayslipEditModel rows"
            )
        return cls(
            payroll_run_id=payroll_run_id,
            employee_id=dto.employee_id,
            taxable_gross_earnings=dto.taxable_gross_earnings,
            total_earnings=dto.total_earnings,
            total_deductions=dto.total_deductions,
            net_pay=dto.net_pay,
            pending_deductions=dto.pending_deductions,
            fingerprint=dto.fingerprint(),
            payload=dto.to_dict(),
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<PayslipModel run={self.payroll_run_id} "
            f"employee={self.employee_id} net={self.net_pay}>"
        )


# ---------------------------------------------------------------------------
# PayslipEditModel
# ---------------------------------------------------------------------------

class PayslipEditModel(TrackedBase):
    """
    ORM model for ``PayslipEdit`` -- one append-only edit-history entry.

    Contract:
        ``sequence`` starts at 1 per payslip and is gapless.  ``payload``
        is ``PayslipEdit.to_dict()``; ``edited_by`` and ``edited_at`` are
        copied out for querying.
    """

    __tablename__ = "payroll_payslip_edits"

    payslip_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_payslips.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(nullable=False)
    edited_by: Mapped[str] = mapped_column(String(100), nullable=False)
    edited_at: Mapped[datetime] = mapped_column(nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    payslip: Mapped["PayslipModel"] = relationship(
        "PayslipModel", back_populates="edits",
    )

    __table_args__ = (
        UniqueConstraint("payslip_id", "sequence", name="uq_payroll_payslip_edit_sequence"),
        Index("idx_payroll_payslip_edit_payslip", "payslip_id"),
    )

    def to_dto(self):
        from payroll_module.models import PayslipEdit
        return PayslipEdit.from_dict(self.payload)

    @classmethod
    def from_dto(
        cls, dto, payslip_id: UUID, sequence: int, created_by_id: str,
    ) -> "PayslipEditModel":
        return cls(
            payslip_id=payslip_id,
            sequence=sequence,
            edited_by=dto.edited_by,
            edited_at=dto.edited_at,
            payload=dto.to_dict(),
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<PayslipEditModel payslip={self.payslip_id} "
            f"#{self.sequence} by={self.edited_by}>"
        )


# ---------------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------------

def save_run(session: Session, run, created_by_id: str) -> PayrollRunModel:
    """Insert a payroll run and flush so its id is assigned."""
    model = PayrollRunModel.from_dto(run, created_by_id=created_by_id)
    session.add(model)
    session.flush()
    logger.info(
        "payroll_run_saved",
        extra={"payroll_run_id": run.id, "status": model.status},
    )
    return model


def get_run(session: Session, run_ref: str) -> PayrollRunModel | None:
    return session.scalars(
        select(PayrollRunModel).where(PayrollRunModel.run_ref == run_ref)
    ).one_or_none()


def advance_run(session: Session, run_model: PayrollRunModel, action: str):
    """Move a stored run through ``action`` and return the updated DTO."""
    from payroll_module.workflows import transition_run

    run = transition_run(run_model.to_dto(), action)
    run_model.status = run.status.value
    session.flush()
    return run


def save_payslip(
    session: Session, run_model: PayrollRunModel, payslip, created_by_id: str,
) -> PayslipModel:
    """Insert a freshly composed payslip under ``run_model``."""
    model = PayslipModel.from_dto(
        payslip, payroll_run_id=run_model.id, created_by_id=created_by_id,
    )
    session.add(model)
    session.flush()
    logger.info(
        "payslip_saved",
        extra={
            "payroll_run_id": run_model.run_ref,
            "employee_id": payslip.employee_id,
            "fingerprint": model.fingerprint,
        },
    )
    return model


def append_edit(
    session: Session, payslip_model: PayslipModel, edit, created_by_id: str,
) -> PayslipEditModel:
    """Insert the next edit-history row for ``payslip_model``."""
    last = session.scalar(
        select(func.max(PayslipEditModel.sequence)).where(
            PayslipEditModel.payslip_id == payslip_model.id
        )
    )
    model = PayslipEditModel.from_dto(
        edit,
        payslip_id=payslip_model.id,
        sequence=(last or 0) + 1,
        created_by_id=created_by_id,
    )
    session.add(model)
    session.flush()
    logger.info(
        "payslip_edit_appended",
        extra={
            "employee_id": payslip_model.employee_id,
            "sequence": model.sequence,
            "edited_by": edit.edited_by,
        },
    )
    return model


def load_current_payslip(session: Session, payslip_id: UUID):
    """The stored original with its edits replayed in sequence order."""
    from payroll_module.edits import replay_edits

    model = session.get(PayslipModel, payslip_id)
    if model is None:
        return None
    edits = session.scalars(
        select(PayslipEditModel)
        .where(PayslipEditModel.payslip_id == payslip_id)
        .order_by(PayslipEditModel.sequence)
    ).all()
    return replay_edits(model.to_dto(), (e.to_dto() for e in edits))


def edit_stored_payslip(
    session: Session,
    payslip_id: UUID,
    *,
    editor: str,
    clock,
    deductions=None,
    incentives=None,
    non_taxable_allowance=None,
):
    """Edit a stored payslip, appending an edit row when anything changed.

    Returns the current payslip after the edit.
    """
    from payroll_module.edits import edit_payslip

    model = session.get(PayslipModel, payslip_id)
    if model is None:
        raise LookupError(f"Payslip {payslip_id} not found")

    current = load_current_payslip(session, payslip_id)
    edited = edit_payslip(
        current,
        editor=editor,
        clock=clock,
        run_status=model.payroll_run.status,
        deductions=deductions,
        incentives=incentives,
        non_taxable_allowance=non_taxable_allowance,
    )
    if len(edited.edit_history) > len(current.edit_history):
        append_edit(session, model, edited.edit_history[-1], created_by_id=editor)
    return edited
