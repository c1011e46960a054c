"""
Typed Exception Hierarchy for the Payroll Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll errors must be handled precisely. A run processor that isolates one
employee's failure has to report *why* that employee has no payslip, and an
API layer has to turn the reason into a stable response. Parsing message
strings for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        compensation = EmployeeCompensation(...)
    except InvalidCompensationError as e:
        api_response(code=e.code, field=e.field, value=e.value)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollEngineError (base)
    |
    +-- InputValidationError
    |   +-- InvalidCompensationError
    |   +-- InvalidAttendanceError
    |   +-- InvalidCutoffError
    |   +-- InvalidLineItemError
    |
    +-- PolicyError
    |   +-- PolicyValidationError
    |
    +-- PayrollRunError
    |   +-- InvalidRunTransitionError
    |   +-- PayslipLockedError
    |
    +-- ComputationError
    |   +-- EmployeeComputationError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                      | When Raised
-------------|---------------------------|--------------------------------------
Input        | INVALID_COMPENSATION      | Salary <= 0, multiplier out of bounds
             | INVALID_ATTENDANCE        | Duplicate record for one date
             | INVALID_CUTOFF            | cutoff_end precedes cutoff_start
             | INVALID_LINE_ITEM         | Negative loan/incentive amount
-------------|---------------------------|--------------------------------------
Policy       | POLICY_VALIDATION_ERROR   | Present-but-invalid policy field
-------------|---------------------------|--------------------------------------
Run          | INVALID_RUN_TRANSITION    | Lifecycle action not allowed in state
             | PAYSLIP_LOCKED            | Editing a payslip of a paid/closed run
-------------|---------------------------|--------------------------------------
Computation  | EMPLOYEE_COMPUTATION_ERROR| Unexpected failure for one employee
-------------|---------------------------|--------------------------------------
Immutability | IMMUTABILITY_VIOLATION    | UPDATE/DELETE of a stored payslip or
             |                           | edit-history row
"""


class PayrollEngineError(Exception):
    """
    Base exception for all payroll engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_ENGINE_ERROR"


# Input validation exceptions


class InputValidationError(PayrollEngineError):
    """Base exception for upstream data rejected before entering the engine."""

    code: str = "INPUT_VALIDATION_ERROR"


class InvalidCompensationError(InputValidationError):
    """Employee compensation violates its invariants."""

    code: str = "INVALID_COMPENSATION"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid compensation {field}={value}: {reason}")


class InvalidAttendanceError(InputValidationError):
    """Attendance data cannot be aggregated as given."""

    code: str = "INVALID_ATTENDANCE"

    def __init__(self, attendance_date: str, reason: str):
        self.attendance_date = attendance_date
        self.reason = reason
        super().__init__(f"Invalid attendance on {attendance_date}: {reason}")


class InvalidCutoffError(InputValidationError):
    """Cutoff period bounds are inverted."""

    code: str = "INVALID_CUTOFF"

    def __init__(self, cutoff_start: str, cutoff_end: str):
        self.cutoff_start = cutoff_start
        self.cutoff_end = cutoff_end
        super().__init__(
            f"Cutoff end {cutoff_end} precedes cutoff start {cutoff_start}"
        )


class InvalidLineItemError(InputValidationError):
    """A loan, incentive or deduction line item is malformed."""

    code: str = "INVALID_LINE_ITEM"

    def __init__(self, name: str, amount: object, reason: str):
        self.name = name
        self.amount = str(amount)
        self.reason = reason
        super().__init__(f"Invalid line item '{name}' ({amount}): {reason}")


# Policy exceptions


class PolicyError(PayrollEngineError):
    """Base exception for organization payroll policy errors."""

    code: str = "POLICY_ERROR"


class PolicyValidationError(PolicyError):
    """A policy field is present but invalid."""

    code: str = "POLICY_VALIDATION_ERROR"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid payroll policy {field}={value}: {reason}")


# Payroll run exceptions


class PayrollRunError(PayrollEngineError):
    """Base exception for payroll run lifecycle errors."""

    code: str = "PAYROLL_RUN_ERROR"


class InvalidRunTransitionError(PayrollRunError):
    """Lifecycle action is not allowed from the run's current status."""

    code: str = "INVALID_RUN_TRANSITION"

    def __init__(self, run_id: str, from_status: str, action: str):
        self.run_id = run_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Payroll run {run_id} cannot '{action}' from status '{from_status}'"
        )


class PayslipLockedError(PayrollRunError):
    """Payslip belongs to a run that no longer accepts edits."""

    code: str = "PAYSLIP_LOCKED"

    def __init__(self, payslip_id: str, run_status: str):
        self.payslip_id = payslip_id
        self.run_status = run_status
        super().__init__(
            f"Payslip {payslip_id} cannot be edited: run is '{run_status}'"
        )


# Computation exceptions


class ComputationError(PayrollEngineError):
    """Base exception for failures inside the engine."""

    code: str = "COMPUTATION_ERROR"


class EmployeeComputationError(ComputationError):
    """Wraps an unexpected failure while computing one employee's payslip."""

    code: str = "EMPLOYEE_COMPUTATION_ERROR"

    def __init__(self, employee_id: str, reason: str):
        self.employee_id = employee_id
        self.reason = reason
        super().__init__(f"Payslip computation failed for {employee_id}: {reason}")


# Immutability exceptions


class ImmutabilityError(PayrollEngineError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Stored payslips and their edit-history rows are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
