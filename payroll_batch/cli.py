"""
Payroll run CLI (``payroll_batch.cli``).

Compute a payroll run from a YAML scenario file and print the payslips as JSON.

The scenario holds everything the engine needs for one run:

    payroll_settings:        # organization policy (snake_case or camelCase keys)
      overtimeRegularRate: 1.25
    contributions:           # fixed monthly contribution amounts
      employee: {sss: 1000, philhealth: 500, pagibig: 200}
      employer: {sss: 2000, philhealth: 500, pagibig: 200}
      tax_rate: 0.15
      tax_exempt_threshold: 10417
    run:
      id: run-2025-01-a
      organization_id: org-1
      cutoff_start: 2025-01-01
      cutoff_end: 2025-01-15
    holidays:
      - {date: 2025-01-01, name: New Year's Day, type: regular, is_recurring: true}
    employees:
      - id: emp-1
        name: Ana Reyes
        compensation: {salary_basis: monthly, basic_salary: 30000, allowance: 2000}
        schedule:
          default: {monday: {is_workday: true, in: "08:00", out: "17:00"}, ...}
          overrides: [{date: 2025-01-06, is_workday: false}]
        leave:
          credits: [{leave_type: vacation, total: 5, used: 1}]
          approved: [{leave_type: vacation, start_date: 2025-01-08, end_date: 2025-01-08}]
        elections:
          government: {sss: {enabled: true, frequency: half}}
          loans: [{name: Salary Loan, amount: 500, type: loan}]
          incentives: [{name: Perfect Attendance, amount: 300, type: incentive}]
          previous_pending_deductions: 0
        incentives:          # standing items, applied to every matching cutoff
          - {name: Rice Subsidy, amount: 2000, type: incentive, frequency: monthly}
        deductions:
          - {name: Car Loan, amount: 1500, type: loan, frequency: per_cutoff,
             start_date: 2024-07-01, end_date: 2025-06-30}
        attendance:
          - {date: 2025-01-02, actual_in: "08:00", actual_out: "19:00", overtime_hours: 2}

Usage:
    run-payroll scenario.yaml [--max-workers N] [--database-url URL]

With ``--database-url`` the run and its payslips are also stored.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Mapping, Sequence
from datetime import date, time
from pathlib import Path
from typing import Any

import yaml

from payroll_batch.executor import PayrollRunProcessor
from payroll_batch.types import PayrollRunResult
from payroll_engines.deductions import FixedContributionTable
from payroll_kernel.exceptions import PayrollEngineError
from payroll_kernel.logging_config import LogContext, configure_logging, get_logger
from payroll_module.models import (
    ApprovedLeave,
    AttendanceRecord,
    DaySchedule,
    Employee,
    EmployeeCompensation,
    EmployeeLeave,
    EmployeeRunElections,
    EmployeeSchedule,
    GovernmentDeductionType,
    GovernmentElection,
    HolidayEntry,
    LeaveCredit,
    LineItem,
    PayrollRun,
    RecurringLineItem,
    ScheduleOverride,
)
from payroll_module.policy import resolve_policy

logger = get_logger("batch.cli")


# ---------------------------------------------------------------------------
# Scenario parsing
# ---------------------------------------------------------------------------


def _parse_date(raw: Any) -> date:
    if isinstance(raw, date):
        return raw
    return date.fromisoformat(str(raw))


def _parse_time(raw: Any) -> time | None:
    """Parse ``HH:MM``.

    YAML 1.1 reads an unquoted ``17:00`` as the base-60 integer 1020, so
    integers are taken as minutes after midnight.
    """
    if raw is None:
        return None
    if isinstance(raw, time):
        return raw
    if isinstance(raw, int):
        return time(raw // 60, raw % 60)
    return time.fromisoformat(str(raw))


def _parse_items(raw: Sequence[Mapping[str, Any]] | None) -> tuple[LineItem, ...]:
    return tuple(
        LineItem(name=i["name"], amount=i["amount"], type=i["type"]) for i in raw or ()
    )


def _parse_standing(raw: Sequence[Mapping[str, Any]] | None) -> tuple[RecurringLineItem, ...]:
    return tuple(
        RecurringLineItem(
            name=i["name"],
            amount=i["amount"],
            type=i["type"],
            frequency=i.get("frequency", "monthly"),
            is_active=bool(i.get("is_active", True)),
            start_date=_parse_date(i["start_date"]) if i.get("start_date") else None,
            end_date=_parse_date(i["end_date"]) if i.get("end_date") else None,
        )
        for i in raw or ()
    )


def _parse_schedule(raw: Mapping[str, Any] | None) -> EmployeeSchedule | None:
    if not raw:
        return None
    default = {
        day: DaySchedule(
            is_workday=bool(entry.get("is_workday", True)),
            schedule_in=_parse_time(entry.get("in")),
            schedule_out=_parse_time(entry.get("out")),
        )
        for day, entry in (raw.get("default") or {}).items()
    }
    overrides = tuple(
        ScheduleOverride(
            date=_parse_date(o["date"]),
            is_workday=bool(o.get("is_workday", True)),
            schedule_in=_parse_time(o.get("in")),
            schedule_out=_parse_time(o.get("out")),
            reason=o.get("reason", "schedule_change"),
            leave_type=o.get("leave_type"),
        )
        for o in raw.get("overrides") or ()
    )
    return EmployeeSchedule(default_schedule=default, overrides=overrides)


def _parse_leave(raw: Mapping[str, Any] | None) -> EmployeeLeave:
    raw = raw or {}
    return EmployeeLeave(
        credits=tuple(
            LeaveCredit(leave_type=c["leave_type"], total=c["total"], used=c.get("used", 0))
            for c in raw.get("credits") or ()
        ),
        approved=tuple(
            ApprovedLeave(
                leave_type=a["leave_type"],
                start_date=_parse_date(a["start_date"]),
                end_date=_parse_date(a["end_date"]),
            )
            for a in raw.get("approved") or ()
        ),
    )


def _parse_attendance(raw: Sequence[Mapping[str, Any]] | None) -> tuple[AttendanceRecord, ...]:
    return tuple(
        AttendanceRecord(
            date=_parse_date(r["date"]),
            status=r.get("status", "present"),
            schedule_in=_parse_time(r.get("schedule_in")),
            schedule_out=_parse_time(r.get("schedule_out")),
            actual_in=_parse_time(r.get("actual_in")),
            actual_out=_parse_time(r.get("actual_out")),
            overtime_hours=r.get("overtime_hours"),
            late_minutes=r.get("late_minutes"),
            undertime_hours=r.get("undertime_hours"),
            is_holiday=bool(r.get("is_holiday", False)),
            holiday_type=r.get("holiday_type"),
            remarks=r.get("remarks"),
        )
        for r in raw or ()
    )


def _parse_elections(employee_id: str, raw: Mapping[str, Any] | None) -> EmployeeRunElections:
    raw = raw or {}
    government = {
        GovernmentDeductionType(kind): GovernmentElection(
            enabled=bool(entry.get("enabled", True)),
            frequency=entry.get("frequency", "full"),
        )
        for kind, entry in (raw.get("government") or {}).items()
    }
    return EmployeeRunElections(
        employee_id=employee_id,
        government=government,
        loans=_parse_items(raw.get("loans")),
        incentives=_parse_items(raw.get("incentives")),
        previous_pending_deductions=raw.get("previous_pending_deductions", 0),
    )


def load_scenario(data: Mapping[str, Any]) -> dict[str, Any]:
    """Build the processor arguments from a parsed scenario mapping."""
    employees: list[Employee] = []
    attendance: dict[str, tuple[AttendanceRecord, ...]] = {}
    elections: dict[str, EmployeeRunElections] = {}

    for raw in data.get("employees") or ():
        employee_id = str(raw["id"])
        compensation = dict(raw["compensation"])
        employees.append(
            Employee(
                id=employee_id,
                name=raw.get("name", employee_id),
                compensation=EmployeeCompensation(**compensation),
                schedule=_parse_schedule(raw.get("schedule")),
                leave=_parse_leave(raw.get("leave")),
                incentives=_parse_standing(raw.get("incentives")),
                deductions=_parse_standing(raw.get("deductions")),
            )
        )
        attendance[employee_id] = _parse_attendance(raw.get("attendance"))
        elections[employee_id] = _parse_elections(employee_id, raw.get("elections"))

    run_data = data["run"]
    run = PayrollRun(
        id=str(run_data["id"]),
        organization_id=str(run_data.get("organization_id", "default")),
        cutoff_start=_parse_date(run_data["cutoff_start"]),
        cutoff_end=_parse_date(run_data["cutoff_end"]),
        elections=elections,
        notes=run_data.get("notes"),
    )
    holidays = tuple(
        HolidayEntry(
            date=_parse_date(h["date"]),
            name=h["name"],
            type=h["type"],
            is_recurring=bool(h.get("is_recurring", False)),
        )
        for h in data.get("holidays") or ()
    )
    return {
        "run": run,
        "employees": tuple(employees),
        "attendance": attendance,
        "holidays": holidays,
        "policy": resolve_policy(data.get("payroll_settings") or data.get("payrollSettings")),
        "contribution_table": FixedContributionTable.from_mapping(data.get("contributions")),
    }


def result_to_dict(result: PayrollRunResult) -> dict[str, Any]:
    return {
        "payroll_run_id": result.payroll_run_id,
        "payslips": [p.to_dict() for p in result.payslips],
        "failures": [
            {"employee_id": f.employee_id, "error_code": f.error_code, "message": f.message}
            for f in result.failures
        ],
    }


def _store(database_url: str, run: PayrollRun, result: PayrollRunResult, actor: str) -> None:
    from payroll_kernel.db import create_tables, init_engine_from_url, session_scope
    from payroll_kernel.db.immutability import register_immutability_listeners
    from payroll_module.orm import save_payslip, save_run

    init_engine_from_url(database_url)
    create_tables()
    register_immutability_listeners()
    with session_scope() as session:
        run_model = save_run(session, run, created_by_id=actor)
        for payslip in result.payslips:
            save_payslip(session, run_model, payslip, created_by_id=actor)
    logger.info(
        "payroll_run_stored",
        extra={"payroll_run_id": run.id, "payslips_stored": len(result.payslips)},
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compute a payroll run from a YAML scenario and print payslips as JSON.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("scenario", type=Path, help="Path to the YAML scenario file.")
    parser.add_argument(
        "--max-workers", type=int, default=4,
        help="Employees computed in parallel (default: 4).",
    )
    parser.add_argument(
        "--database-url", default=None,
        help="Also store the run and payslips at this SQLAlchemy URL.",
    )
    parser.add_argument(
        "--actor", default="run-payroll",
        help="Actor recorded on stored rows (default: run-payroll).",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Structured log level on stderr (default: WARNING).",
    )
    parser.add_argument("--output", type=Path, default=None, help="Write JSON here instead of stdout.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level))

    try:
        with args.scenario.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        print(f"ERROR: cannot read scenario {args.scenario}: {exc}", file=sys.stderr)
        return 2
    if not isinstance(data, Mapping):
        print(f"ERROR: scenario {args.scenario} must be a mapping", file=sys.stderr)
        return 2

    try:
        scenario = load_scenario(data)
    except (PayrollEngineError, KeyError, TypeError, ValueError) as exc:
        print(f"ERROR: invalid scenario: {exc}", file=sys.stderr)
        return 2

    run = scenario["run"]
    with LogContext.bind(actor_id=args.actor):
        result = PayrollRunProcessor().process(max_workers=args.max_workers, **scenario)
        if args.database_url:
            _store(args.database_url, run, result, args.actor)

    output = json.dumps(result_to_dict(result), indent=2)
    if args.output:
        args.output.write_text(output + "\n", encoding="utf-8")
    else:
        print(output)
    return 1 if result.failures else 0


if __name__ == "__main__":
    sys.exit(main())
