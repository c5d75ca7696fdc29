"""
Civil service compliance checks run before every approval decision.

The validator is injectable: the approval service takes any object with a
``validate_before_approval(db, leave_request, approver)`` method returning a
``ComplianceResult``. The default enforces:

- approvers never approve their own leave;
- unit heads, directors and heads of critical units have an acting officer
  assigned before the final approval;
- study leave has PSC/OHCS external clearance before the final approval.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from leave_engine.models.employee import Employee
from leave_engine.models.leave import LeaveRequest, LeaveType, StepStatus
from leave_engine.utils.org_structure import requires_acting_officer

logger = logging.getLogger(__name__)

# Leave types governed by the Public Services Commission / OHCS
EXTERNAL_CLEARANCE_LEAVE_TYPES = frozenset({LeaveType.STUDY})


@dataclass
class ComplianceResult:
    valid: bool = True
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_errors(cls, errors: List[str]) -> "ComplianceResult":
        return cls(valid=not errors, errors=list(errors))


def requires_external_clearance(leave_type: LeaveType) -> bool:
    return leave_type in EXTERNAL_CLEARANCE_LEAVE_TYPES


def _is_final_approval(leave_request: LeaveRequest) -> bool:
    pending = [s for s in leave_request.approval_steps if s.status == StepStatus.PENDING]
    return len(pending) <= 1


class CivilServiceComplianceValidator:
    """Default compliance rules for civil service leave approval."""

    def validate_before_approval(
        self,
        db: Session,
        leave_request: LeaveRequest,
        approver: Employee,
    ) -> ComplianceResult:
        errors: List[str] = []

        if leave_request.employee_id == approver.id:
            errors.append("Approvers cannot approve their own leave requests per Civil Service policy")

        if _is_final_approval(leave_request):
            applicant: Optional[Employee] = leave_request.employee or db.get(Employee, leave_request.employee_id)
            if applicant is not None and requires_acting_officer(applicant.position, applicant.grade, applicant.unit):
                if applicant.acting_officer_id is None:
                    errors.append(
                        f"Acting officer must be assigned for {applicant.position or 'this position'} "
                        "before leave can be approved."
                    )
            if requires_external_clearance(leave_request.leave_type) and not leave_request.external_clearance_approved:
                errors.append(
                    f"{leave_request.leave_type.value} leave requires PSC/OHCS external clearance before final approval."
                )

        if errors:
            logger.info(
                "compliance check failed: leave_request_id=%s approver_id=%s errors=%s",
                leave_request.id, approver.id, errors,
            )
        return ComplianceResult.from_errors(errors)


_default_validator = CivilServiceComplianceValidator()


def get_compliance_validator() -> CivilServiceComplianceValidator:
    """Dependency returning the default validator (override in tests or deployments)."""
    return _default_validator
