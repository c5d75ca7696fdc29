"""
Leave policy endpoints
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_engine.core.deps import get_db, get_current_actor, require_roles
from leave_engine.models.employee import Employee
from leave_engine.models.leave import LeaveType
from leave_engine.schemas.policy import PolicyOut, PolicyUpdate
from leave_engine.services import policy_service
from leave_engine.utils.roles import ApproverRole

router = APIRouter()


@router.get("", response_model=List[PolicyOut])
def list_policies_endpoint(
    active_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    return policy_service.list_policies(db, active_only=active_only)


@router.post("/seed", response_model=List[PolicyOut])
def seed_policies_endpoint(
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(require_roles(ApproverRole.HR_DIRECTOR)),
):
    """Create default policies for leave types that have none"""
    return policy_service.seed_default_policies(db, actor_id=current_actor.id)


@router.put("/{leave_type}", response_model=PolicyOut)
def upsert_policy_endpoint(
    leave_type: LeaveType,
    payload: PolicyUpdate,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(require_roles(ApproverRole.HR_DIRECTOR)),
):
    """
    Create or update the policy for a leave type

    Entitlements below the statutory minimum are rejected.
    """
    return policy_service.upsert_policy(
        db, leave_type, actor_id=current_actor.id, **payload.model_dump(exclude_unset=True)
    )
