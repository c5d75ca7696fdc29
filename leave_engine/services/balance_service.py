"""
Balance service - read access to the ledger and entitlement grants.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from leave_engine.core.exceptions import PermissionDenied, ValidationError
from leave_engine.models.employee import Employee, EmploymentStatus
from leave_engine.models.leave import BALANCE_EXEMPT_LEAVE_TYPES, LeaveBalance, LeaveType
from leave_engine.models.policy import LeavePolicy
from leave_engine.services import ledger_service as ledger
from leave_engine.services.audit_service import log_audit
from leave_engine.services.leave_service import get_employee
from leave_engine.services.locks import balance_lock
from leave_engine.utils.roles import ApproverRole, is_elevated

logger = logging.getLogger(__name__)

# Roles that may grant entitlements or read any employee's balance
HR_ROLES = frozenset({ApproverRole.HR_OFFICER, ApproverRole.HR_DIRECTOR, ApproverRole.CHIEF_DIRECTOR, ApproverRole.AUDITOR})
CREDIT_ROLES = frozenset({ApproverRole.HR_OFFICER, ApproverRole.HR_DIRECTOR})


def can_view_all(actor: Employee) -> bool:
    return actor.role in HR_ROLES or is_elevated(actor.role)


def can_view_balance(actor: Employee, employee_id: int) -> bool:
    return actor.id == employee_id or can_view_all(actor)


def credit_entitlement(
    db: Session,
    employee_id: int,
    leave_type,
    days,
    period: int,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
    entitlement_ceiling=None,
) -> LeaveBalance:
    """
    Grant entitlement days to one employee and commit.

    Raises:
        PermissionDenied: Actor is not HR
        ValidationError: Unpaid leave, non-positive days, or a balance open in another period
    """
    try:
        leave_type = LeaveType(leave_type)
    except ValueError:
        raise ValidationError(f"Unknown leave type: {leave_type}")
    if leave_type in BALANCE_EXEMPT_LEAVE_TYPES:
        raise ValidationError(f"{leave_type.value} leave carries no balance")

    with balance_lock(employee_id, leave_type):
        try:
            if actor_id is not None:
                actor = get_employee(db, actor_id)
                if actor.role not in CREDIT_ROLES and not is_elevated(actor.role):
                    raise PermissionDenied("Only HR may grant leave entitlements")
            get_employee(db, employee_id)

            t = ledger.credit(
                db, employee_id, leave_type, days, period,
                actor_id=actor_id, remarks=remarks, entitlement_ceiling=entitlement_ceiling,
            )
            bal = ledger.get_balance(db, employee_id, leave_type)
            log_audit(
                db,
                event_type="LEDGER_CREDIT",
                actor_id=actor_id,
                entity_type="leave_balance",
                entity_id=bal.id,
                before={"remaining_days": t.balance_before},
                after={"remaining_days": t.balance_after, "entitlement_ceiling": bal.entitlement_ceiling},
                meta={"employee_id": employee_id, "leave_type": leave_type, "period": period, "remarks": remarks},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(bal)
    return bal


def grant_annual_entitlements(
    db: Session,
    period: int,
    actor_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Credit every active employee with each active policy's annual entitlement for ``period``.

    Balances already open in another period are skipped and reported.
    """
    policies = (
        db.query(LeavePolicy)
        .filter(LeavePolicy.active == True, LeavePolicy.annual_entitlement > 0)  # noqa: E712
        .all()
    )
    employees = (
        db.query(Employee)
        .filter(Employee.active == True, Employee.employment_status == EmploymentStatus.ACTIVE)  # noqa: E712
        .order_by(Employee.id)
        .all()
    )
    credited = 0
    skipped: List[Dict[str, Any]] = []
    for employee in employees:
        for policy in policies:
            if policy.leave_type in BALANCE_EXEMPT_LEAVE_TYPES or not policy.requires_balance:
                continue
            existing = ledger.get_balance(db, employee.id, policy.leave_type)
            if existing is not None and existing.period != period:
                skipped.append({
                    "employee_id": employee.id,
                    "leave_type": policy.leave_type.value,
                    "open_period": existing.period,
                })
                continue
            credit_entitlement(
                db, employee.id, policy.leave_type, policy.annual_entitlement, period,
                actor_id=actor_id, remarks=f"Annual entitlement {period}",
            )
            credited += 1
    logger.info("annual entitlements granted: period=%s credited=%s skipped=%s", period, credited, len(skipped))
    return {"period": period, "credited": credited, "skipped": skipped}


def get_balance_summary(db: Session, employee_id: int) -> List[LeaveBalance]:
    get_employee(db, employee_id)
    return ledger.list_balances(db, employee_id)
