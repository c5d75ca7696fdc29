"""
Employee management endpoints (HR-only writes)
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_engine.core.deps import get_db, get_current_actor, require_roles
from leave_engine.models.employee import Employee
from leave_engine.schemas.employee import EmployeeCreate, EmployeeOut, EmployeeUpdate
from leave_engine.services import employee_service
from leave_engine.services.leave_service import get_employee
from leave_engine.utils.roles import ApproverRole

router = APIRouter()

hr_admin = require_roles(ApproverRole.HR_OFFICER, ApproverRole.HR_DIRECTOR)


@router.post("", response_model=EmployeeOut, status_code=201)
def create_employee_endpoint(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(hr_admin),
):
    """Register an employee with the placement used for approval routing"""
    return employee_service.create_employee(db, employee_data, actor=current_actor)


@router.get("", response_model=List[EmployeeOut])
def list_employees_endpoint(
    active_only: bool = Query(True),
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(hr_admin),
):
    return employee_service.list_employees(db, active_only=active_only)


@router.get("/me", response_model=EmployeeOut)
def get_me_endpoint(current_actor: Employee = Depends(get_current_actor)):
    return current_actor


@router.get("/{employee_id}", response_model=EmployeeOut)
def get_employee_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(hr_admin),
):
    return get_employee(db, employee_id)


@router.patch("/{employee_id}", response_model=EmployeeOut)
def update_employee_endpoint(
    employee_id: int,
    employee_data: EmployeeUpdate,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(hr_admin),
):
    """
    Update placement, role or status

    Pending requests keep the approval chain they were created with.
    """
    return employee_service.update_employee(db, employee_id, employee_data, actor=current_actor)
