"""
Leave encashment endpoints (HR Director / Chief Director)
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_engine.core.deps import get_db, require_roles
from leave_engine.models.employee import Employee
from leave_engine.models.encashment import EncashmentStatus
from leave_engine.schemas.encashment import EncashmentCreate, EncashmentDecision, EncashmentOut
from leave_engine.services import encashment_service
from leave_engine.utils.roles import ApproverRole

router = APIRouter()

encashment_officer = require_roles(ApproverRole.HR_DIRECTOR, ApproverRole.CHIEF_DIRECTOR)


@router.post("", response_model=EncashmentOut, status_code=201)
def create_encashment_endpoint(
    payload: EncashmentCreate,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(encashment_officer),
):
    """
    Open an encashment request

    - retirement: staff must be retired
    - exit: staff must be terminated or resigned
    - special_authorization: reason_details required
    """
    return encashment_service.create_encashment(
        db,
        payload.employee_id,
        payload.leave_type,
        payload.days,
        payload.reason,
        current_actor.id,
        reason_details=payload.reason_details,
    )


@router.get("", response_model=List[EncashmentOut])
def list_encashments_endpoint(
    status: Optional[EncashmentStatus] = Query(None),
    employee_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(encashment_officer),
):
    return encashment_service.list_encashments(db, status=status, employee_id=employee_id)


@router.get("/{encashment_id}", response_model=EncashmentOut)
def get_encashment_endpoint(
    encashment_id: int,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(encashment_officer),
):
    return encashment_service.get_encashment(db, encashment_id)


@router.post("/{encashment_id}/decision", response_model=EncashmentOut)
def decide_encashment_endpoint(
    encashment_id: int,
    payload: EncashmentDecision,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(encashment_officer),
):
    """Approve (deducts the balance) or reject (balance untouched) a pending encashment"""
    return encashment_service.decide_encashment(
        db, encashment_id, payload.action, current_actor.id, amount=payload.amount
    )
