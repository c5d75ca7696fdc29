"""
Leave endpoints

Handlers are plain ``def`` so FastAPI runs them in its threadpool; the
service-level keyed locks serialize concurrent decisions per request and per
balance.
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_engine.core.deps import get_db, get_current_actor, get_validator
from leave_engine.core.exceptions import PermissionDenied
from leave_engine.models.employee import Employee
from leave_engine.models.leave import LeaveStatus, LeaveType
from leave_engine.schemas.leave import (
    ApprovalStepOut,
    BulkDecisionOut,
    BulkDecisionRequest,
    DecisionRequest,
    LeaveApplyRequest,
    LeaveOut,
    ReversalRequest,
)
from leave_engine.services import approval_service, bulk_service, leave_service
from leave_engine.services.balance_service import can_view_all, can_view_balance

router = APIRouter()


@router.post("", response_model=LeaveOut, status_code=201)
def apply_leave_endpoint(
    leave_data: LeaveApplyRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    """
    Submit a leave request (creates a PENDING request with its approval chain)

    Validations:
    - Date order and day count
    - Overlap prevention (no overlap with pending/approved/recorded leaves)
    - Balance covers the requested days (except unpaid leave)
    - An approval chain can be resolved for the applicant
    """
    return leave_service.create_leave_request(
        db,
        employee_id=leave_data.employee_id or current_actor.id,
        leave_type=leave_data.leave_type,
        start_date=leave_data.start_date,
        end_date=leave_data.end_date,
        day_count=leave_data.day_count,
        reason=leave_data.reason,
        actor_id=current_actor.id,
        external_clearance_approved=leave_data.external_clearance_approved,
    )


@router.get("", response_model=List[LeaveOut])
def list_leaves_endpoint(
    employee_id: Optional[int] = Query(None, description="Employee filter (HR and auditors may list anyone)"),
    status: Optional[LeaveStatus] = Query(None),
    leave_type: Optional[LeaveType] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    """
    List leave requests

    Employees see their own requests; HR, auditors and administrators may list any employee.
    """
    if not can_view_all(current_actor):
        employee_id = current_actor.id
    return leave_service.list_leave_requests(
        db, employee_id=employee_id, status=status, leave_type=leave_type, limit=limit, offset=offset
    )


@router.get("/pending", response_model=List[LeaveOut])
def list_pending_endpoint(
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    """Pending requests whose next level awaits the current actor's role."""
    return approval_service.list_pending_for_role(db, current_actor.role, actor=current_actor)


@router.post("/bulk-decisions", response_model=BulkDecisionOut)
def bulk_decide_endpoint(
    payload: BulkDecisionRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
    validator=Depends(get_validator),
):
    """
    Apply one decision to many requests

    Each request succeeds or fails on its own; failures are reported with their kind.
    """
    return bulk_service.bulk_decide(
        db,
        payload.leave_request_ids,
        payload.decision,
        current_actor.id,
        comments=payload.comments,
        level=payload.level,
        compliance_validator=validator,
    )


@router.get("/{leave_request_id}", response_model=LeaveOut)
def get_leave_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    leave_request = leave_service.get_leave_request(db, leave_request_id)
    if not can_view_balance(current_actor, leave_request.employee_id):
        # Approvers see requests routed to them; a bound level is visible to its approver only
        if not any(
            s.approver_role == current_actor.role
            and (s.assigned_approver_id is None or s.assigned_approver_id == current_actor.id)
            for s in leave_request.approval_steps
        ):
            raise PermissionDenied("Not allowed to view this leave request")
    return leave_request


@router.get("/{leave_request_id}/next-step", response_model=Optional[ApprovalStepOut])
def next_step_endpoint(
    leave_request_id: int,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    """Next decidable approval level, or null when the request is terminal."""
    leave_request = leave_service.get_leave_request(db, leave_request_id)
    return approval_service.get_next_pending_step(leave_request)


@router.post("/{leave_request_id}/decisions", response_model=LeaveOut)
def decide_endpoint(
    leave_request_id: int,
    payload: DecisionRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
    validator=Depends(get_validator),
):
    """
    Approve or reject one approval level

    Levels are decided in order; rejection requires comments.
    Final approval deducts the balance and locks the request.
    """
    return approval_service.decide(
        db,
        leave_request_id,
        payload.level,
        payload.decision,
        current_actor.id,
        comments=payload.comments,
        compliance_validator=validator,
    )


@router.post("/{leave_request_id}/reversal", response_model=LeaveOut)
def reverse_endpoint(
    leave_request_id: int,
    payload: ReversalRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    """Administrative reversal of an approved request (restores the deducted days)."""
    return approval_service.reverse_approval(db, leave_request_id, current_actor.id, payload.comments)
