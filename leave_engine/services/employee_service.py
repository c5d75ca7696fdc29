"""
Employee service - registration and placement changes that drive approval routing
"""
import logging
from sqlalchemy.orm import Session
from typing import List, Optional
from leave_engine.core.exceptions import PermissionDenied, ValidationError
from leave_engine.models.employee import Employee
from leave_engine.schemas.employee import EmployeeCreate, EmployeeUpdate
from leave_engine.services.audit_service import log_audit
from leave_engine.services.leave_service import get_employee
from leave_engine.utils.enums import enum_to_str
from leave_engine.utils.roles import ApproverRole, is_elevated

logger = logging.getLogger(__name__)

# Roles allowed to register and re-place employees
HR_ADMIN_ROLES = frozenset({ApproverRole.HR_OFFICER, ApproverRole.HR_DIRECTOR})


def _require_hr(actor: Optional[Employee]) -> None:
    if actor is not None and actor.role not in HR_ADMIN_ROLES and not is_elevated(actor.role):
        raise PermissionDenied("Only HR may manage employee records")


def _check_supervisor_cycle(db: Session, employee_id: Optional[int], supervisor_id: int) -> bool:
    """
    Check if setting immediate_supervisor_id would create a cycle

    Returns:
        True if cycle would be created, False otherwise
    """
    if employee_id is not None and employee_id == supervisor_id:
        return True

    # Walk up the chain from the proposed supervisor
    visited = set()
    current_id = supervisor_id
    while current_id is not None:
        if current_id == employee_id:
            return True
        if current_id in visited:
            break
        visited.add(current_id)
        supervisor = db.query(Employee).filter(Employee.id == current_id).first()
        if not supervisor:
            break
        current_id = supervisor.immediate_supervisor_id
    return False


def _snapshot(employee: Employee) -> dict:
    return {
        "role": enum_to_str(employee.role),
        "grade": employee.grade,
        "position": employee.position,
        "directorate": employee.directorate,
        "unit": employee.unit,
        "immediate_supervisor_id": employee.immediate_supervisor_id,
        "acting_officer_id": employee.acting_officer_id,
        "employment_status": enum_to_str(employee.employment_status),
        "active": employee.active,
    }


def create_employee(db: Session, data: EmployeeCreate, actor: Optional[Employee] = None) -> Employee:
    """
    Register an employee

    Raises:
        PermissionDenied: Actor is not HR
        ValidationError: Duplicate staff code or unknown supervisor / acting officer
    """
    _require_hr(actor)
    try:
        if db.query(Employee).filter(Employee.staff_code == data.staff_code).first():
            raise ValidationError(f"Employee with staff code {data.staff_code} already exists")
        for ref in (data.immediate_supervisor_id, data.acting_officer_id):
            if ref is not None:
                get_employee(db, ref)

        employee = Employee(**data.model_dump())
        db.add(employee)
        db.flush()
        log_audit(
            db,
            event_type="EMPLOYEE_CREATED",
            actor_id=actor.id if actor else None,
            entity_type="employee",
            entity_id=employee.id,
            after=_snapshot(employee),
            meta={"staff_code": employee.staff_code},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(employee)
    logger.info("employee created: employee_id=%s staff_code=%s role=%s", employee.id, employee.staff_code, employee.role.value)
    return employee


def update_employee(db: Session, employee_id: int, data: EmployeeUpdate, actor: Optional[Employee] = None) -> Employee:
    """Change placement, role or status. Pending requests keep the chain they were created with."""
    _require_hr(actor)
    try:
        employee = get_employee(db, employee_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("immediate_supervisor_id") is not None:
            get_employee(db, changes["immediate_supervisor_id"])
            if _check_supervisor_cycle(db, employee_id, changes["immediate_supervisor_id"]):
                raise ValidationError("Supervisor assignment would create a reporting cycle")
        if changes.get("acting_officer_id") is not None:
            if changes["acting_officer_id"] == employee_id:
                raise ValidationError("An employee cannot act for themselves")
            get_employee(db, changes["acting_officer_id"])

        before = _snapshot(employee)
        for field, value in changes.items():
            setattr(employee, field, value)
        db.flush()
        log_audit(
            db,
            event_type="EMPLOYEE_UPDATED",
            actor_id=actor.id if actor else None,
            entity_type="employee",
            entity_id=employee.id,
            before=before,
            after=_snapshot(employee),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(employee)
    return employee


def list_employees(db: Session, active_only: bool = True) -> List[Employee]:
    q = db.query(Employee)
    if active_only:
        q = q.filter(Employee.active == True)  # noqa: E712
    return q.order_by(Employee.id).all()
