"""
Domain exceptions for the leave lifecycle and balance ledger.

Every exception carries two class attributes:

- ``code``: machine-readable identifier, stable across releases.
- ``kind``: the failure category reported to callers (bulk results, API
  responses). Callers branch on ``kind`` to tell a business rejection from a
  system error.

Services raise these; the HTTP layer maps them to status codes in
``leave_engine.core.errors``.
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional


class LeaveEngineError(Exception):
    """Base exception for all leave engine errors."""

    code: str = "LEAVE_ENGINE_ERROR"
    kind: str = "LeaveEngineError"
    http_status: int = 400

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "kind": self.kind, "detail": self.message}


class ValidationError(LeaveEngineError):
    """Input or precondition failed validation."""

    code = "VALIDATION_ERROR"
    kind = "ValidationError"
    http_status = 400


class NotFoundError(ValidationError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    kind = "NotFound"
    http_status = 404

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id {entity_id} not found")


class PermissionDenied(LeaveEngineError):
    """Actor does not hold the role required for the action."""

    code = "PERMISSION_DENIED"
    kind = "PermissionError"
    http_status = 403


class SequencingError(LeaveEngineError):
    """Approval level decided out of order, or decided twice."""

    code = "SEQUENCING_ERROR"
    kind = "SequencingError"
    http_status = 409


class InsufficientBalanceError(LeaveEngineError):
    """Remaining balance does not cover the requested days."""

    code = "INSUFFICIENT_BALANCE"
    kind = "InsufficientBalanceError"
    http_status = 409

    def __init__(self, employee_id: int, leave_type: Any, available: Decimal, requested: Decimal):
        self.employee_id = employee_id
        self.leave_type = leave_type
        self.available = available
        self.requested = requested
        label = getattr(leave_type, "value", leave_type)
        super().__init__(
            f"Insufficient {label} leave balance. Available: {available} days, Requested: {requested} days"
        )


class InvariantViolation(LeaveEngineError):
    """A ledger or lifecycle invariant would be broken (mismatched restore, double settlement)."""

    code = "INVARIANT_VIOLATION"
    kind = "InvariantViolation"
    http_status = 500


class AlreadyFinalizedError(LeaveEngineError):
    """Entity is locked or in a terminal status."""

    code = "ALREADY_FINALIZED"
    kind = "AlreadyFinalizedError"
    http_status = 409


class ComplianceError(LeaveEngineError):
    """The injected compliance validator refused the approval."""

    code = "COMPLIANCE_FAILED"
    kind = "ComplianceError"
    http_status = 422

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(f"Compliance validation failed: {', '.join(self.errors)}")


class ConfigurationError(LeaveEngineError):
    """Organisation or policy configuration cannot support the operation."""

    code = "CONFIGURATION_ERROR"
    kind = "ConfigurationError"
    http_status = 500


def error_kind(exc: BaseException) -> str:
    """Failure category for an arbitrary exception."""
    if isinstance(exc, LeaveEngineError):
        return exc.kind
    return "SystemError"


def error_detail(exc: BaseException) -> Optional[str]:
    if isinstance(exc, LeaveEngineError):
        return exc.message
    return str(exc) or exc.__class__.__name__
