"""
Approval chain builder.

Resolves the ordered approval levels for an applicant from their placement
(position, grade, unit, directorate, immediate supervisor) and role. The
applicant's own role never appears in their chain.

Routing:
    Chief Director               HR_DIRECTOR (terminates at "recorded")
    Director of HRMD             CHIEF_DIRECTOR
    Director                     HR_OFFICER -> CHIEF_DIRECTOR
    Unit Head (directorate)      HEAD_OF_DEPARTMENT -> HR_OFFICER -> CHIEF_DIRECTOR
    Unit Head (independent)      HR_OFFICER -> CHIEF_DIRECTOR
    HR Officer (HRMD staff)      HR_DIRECTOR -> CHIEF_DIRECTOR
    Head of Independent Unit     HR_OFFICER -> CHIEF_DIRECTOR
    Independent unit staff       SUPERVISOR -> UNIT_HEAD -> HEAD_OF_INDEPENDENT_UNIT -> HR_OFFICER -> CHIEF_DIRECTOR
    Standard staff               SUPERVISOR -> UNIT_HEAD -> HEAD_OF_DEPARTMENT -> HR_OFFICER -> CHIEF_DIRECTOR
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from leave_engine.core.exceptions import ConfigurationError
from leave_engine.models.employee import Employee
from leave_engine.models.leave import LeaveType
from leave_engine.models.policy import LeavePolicy
from leave_engine.utils import org_structure as org
from leave_engine.utils.roles import ApproverRole

logger = logging.getLogger(__name__)

R = ApproverRole

STANDARD_ROUTE = (R.SUPERVISOR, R.UNIT_HEAD, R.HEAD_OF_DEPARTMENT, R.HR_OFFICER, R.CHIEF_DIRECTOR)
INDEPENDENT_ROUTE = (R.SUPERVISOR, R.UNIT_HEAD, R.HEAD_OF_INDEPENDENT_UNIT, R.HR_OFFICER, R.CHIEF_DIRECTOR)


@dataclass(frozen=True)
class ChainLevel:
    level: int
    approver_role: ApproverRole
    assigned_approver_id: Optional[int] = None


@dataclass(frozen=True)
class ApprovalChain:
    route: str
    levels: List[ChainLevel] = field(default_factory=list)
    recorded: bool = False  # Terminal status is "recorded" rather than "approved"

    @property
    def roles(self) -> List[ApproverRole]:
        return [lvl.approver_role for lvl in self.levels]


def get_active_policy(db: Session, leave_type: LeaveType) -> Optional[LeavePolicy]:
    return (
        db.query(LeavePolicy)
        .filter(LeavePolicy.leave_type == leave_type, LeavePolicy.active == True)  # noqa: E712
        .first()
    )


def _classify(employee: Employee) -> str:
    position, grade, unit = employee.position, employee.grade, employee.unit
    role = employee.role

    if role == R.CHIEF_DIRECTOR or org.is_chief_director_position(position, grade):
        return "chief_director"
    if role in (R.DIRECTOR, R.HR_DIRECTOR) or org.is_director_position(position, grade):
        if role == R.HR_DIRECTOR or org.is_hrmd(unit, employee.directorate):
            return "hrmd_director"
        return "director"
    if role == R.HEAD_OF_INDEPENDENT_UNIT or org.is_head_of_independent_unit(position, unit):
        return "head_of_independent_unit"
    if role == R.UNIT_HEAD or org.is_unit_head_position(position):
        if org.is_independent_unit(unit):
            return "independent_unit_head"
        return "unit_head"
    if role == R.HR_OFFICER or (org.is_hrmd(unit, employee.directorate) and role in (R.EMPLOYEE, R.SUPERVISOR)):
        return "hr_officer"
    if org.is_independent_unit(unit):
        return "independent_staff"
    return "standard"


def _require_placement(employee: Employee) -> None:
    """Routes that pass through directorate heads need a resolvable unit."""
    if org.is_independent_unit(employee.unit):
        return
    if org.directorate_for(employee.unit, employee.directorate) is None:
        raise ConfigurationError(
            f"Unit '{employee.unit or ''}' for employee {employee.id} maps to no directorate and is not an independent unit",
            employee_id=employee.id,
        )


def resolve_chain(employee: Employee, policy: Optional[LeavePolicy]) -> ApprovalChain:
    """
    Build the approval chain for an applicant.

    Args:
        employee: Applicant with organizational placement loaded
        policy: Active leave policy for the requested leave type

    Returns:
        ApprovalChain with at least one level

    Raises:
        ConfigurationError: Blank grade, no active policy, or an unresolvable unit
    """
    if policy is None or not policy.active:
        raise ConfigurationError("No active leave policy for the requested leave type")
    if employee.grade is None or not employee.grade.strip():
        raise ConfigurationError(f"Employee {employee.id} has no grade", employee_id=employee.id)

    route = _classify(employee)
    recorded = False
    if route == "chief_director":
        roles = (R.HR_DIRECTOR,)
        recorded = True
    elif route == "hrmd_director":
        roles = (R.CHIEF_DIRECTOR,)
    elif route == "director":
        roles = (R.HR_OFFICER, R.CHIEF_DIRECTOR)
    elif route == "unit_head":
        _require_placement(employee)
        roles = (R.HEAD_OF_DEPARTMENT, R.HR_OFFICER, R.CHIEF_DIRECTOR)
    elif route in ("independent_unit_head", "head_of_independent_unit"):
        roles = (R.HR_OFFICER, R.CHIEF_DIRECTOR)
    elif route == "hr_officer":
        roles = (R.HR_DIRECTOR, R.CHIEF_DIRECTOR)
    elif route == "independent_staff":
        roles = INDEPENDENT_ROUTE
    else:
        _require_placement(employee)
        roles = STANDARD_ROUTE

    # Applicant's own role never approves their own leave
    roles = tuple(r for r in roles if r != employee.role)
    if not roles:
        raise ConfigurationError(f"No approval chain could be resolved for employee {employee.id}")

    levels = []
    for idx, role in enumerate(roles, start=1):
        assigned = employee.immediate_supervisor_id if role == R.SUPERVISOR else None
        levels.append(ChainLevel(level=idx, approver_role=role, assigned_approver_id=assigned))

    logger.debug(
        "approval chain resolved: employee_id=%s route=%s roles=%s recorded=%s",
        employee.id, route, [r.value for r in roles], recorded,
    )
    return ApprovalChain(route=route, levels=levels, recorded=recorded)


def build_approval_chain(db: Session, employee: Employee, leave_type: LeaveType) -> ApprovalChain:
    """Look up the active policy for the leave type and resolve the chain."""
    policy = get_active_policy(db, leave_type)
    if policy is None:
        raise ConfigurationError(
            f"No active leave policy for {leave_type.value}",
            leave_type=leave_type.value,
        )
    return resolve_chain(employee, policy)
