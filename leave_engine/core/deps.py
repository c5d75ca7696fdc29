"""
Dependencies and guards for FastAPI endpoints

Authentication is handled upstream; the gateway forwards the authenticated
employee id in the ``X-Actor-Id`` header.
"""
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from leave_engine.constants import ACTOR_HEADER
from leave_engine.db.session import get_db
from leave_engine.models.employee import Employee
from leave_engine.services.compliance_service import get_compliance_validator
from leave_engine.utils.roles import ApproverRole, is_elevated, role_name


def get_current_actor(
    x_actor_id: Optional[str] = Header(None, alias=ACTOR_HEADER),
    db: Session = Depends(get_db),
) -> Employee:
    """
    Resolve the acting employee from the X-Actor-Id header
    """
    if x_actor_id is None or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required",
        )
    try:
        actor_id = int(x_actor_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid X-Actor-Id header",
        )

    employee = db.query(Employee).filter(Employee.id == actor_id).first()
    if employee is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Actor not found",
        )
    if not employee.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user"
        )
    return employee


def require_roles(*allowed_roles: ApproverRole):
    """
    Dependency factory for role-based access control

    Usage:
        @router.post("/run")
        async def run(actor: Employee = Depends(require_roles(ApproverRole.HR_DIRECTOR))):
            ...
    """
    def role_checker(current_actor: Employee = Depends(get_current_actor)) -> Employee:
        # Elevated role passes every role gate
        if is_elevated(current_actor.role):
            return current_actor
        if current_actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required roles: {[role_name(r) for r in allowed_roles]}"
            )
        return current_actor
    return role_checker


def get_validator():
    """Compliance validator dependency (override with app.dependency_overrides)."""
    return get_compliance_validator()
