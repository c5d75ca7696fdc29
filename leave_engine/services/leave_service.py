"""
Leave request service - submission, lookup and listing.

Approval decisions live in ``approval_service``; balance movements in
``ledger_service``.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from leave_engine.core.exceptions import (
    InsufficientBalanceError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from leave_engine.models.employee import Employee, EmploymentStatus
from leave_engine.models.leave import (
    ApprovalStep,
    BALANCE_EXEMPT_LEAVE_TYPES,
    LeaveRequest,
    LeaveStatus,
    LeaveType,
    StepStatus,
)
from leave_engine.models.policy import LeavePolicy
from leave_engine.services import ledger_service as ledger
from leave_engine.services.approval_chain import build_approval_chain
from leave_engine.services.audit_service import log_audit
from leave_engine.services.locks import keyed_lock
from leave_engine.services.notification_service import notify_best_effort
from leave_engine.utils.roles import ApproverRole, is_elevated

logger = logging.getLogger(__name__)

# Statuses that block an overlapping submission
BLOCKING_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED, LeaveStatus.RECORDED)

# Roles allowed to submit on behalf of another employee
FILE_ON_BEHALF_ROLES = frozenset({ApproverRole.HR_OFFICER, ApproverRole.HR_DIRECTOR, ApproverRole.SYSTEM_ADMIN})


def get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise NotFoundError("Employee", employee_id)
    return employee


def get_leave_request(db: Session, leave_request_id: int, for_update: bool = False) -> LeaveRequest:
    q = db.query(LeaveRequest).filter(LeaveRequest.id == leave_request_id)
    if for_update:
        q = q.populate_existing().with_for_update()
    leave_request = q.first()
    if not leave_request:
        raise NotFoundError("Leave request", leave_request_id)
    return leave_request


def consumes_balance(db: Session, leave_type: LeaveType) -> bool:
    """Unpaid leave, and any type whose policy does not require balance, never touches the ledger."""
    if leave_type in BALANCE_EXEMPT_LEAVE_TYPES:
        return False
    policy = db.query(LeavePolicy).filter(LeavePolicy.leave_type == leave_type).first()
    return policy is None or bool(policy.requires_balance)


def count_weekdays(start_date: date, end_date: date) -> int:
    """Working days (Mon-Fri) between two dates, inclusive."""
    days = 0
    current = start_date
    while current <= end_date:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return days


def resolve_day_count(start_date: date, end_date: date, day_count=None) -> Decimal:
    """
    Validate the date range and settle the number of leave days.

    Raises:
        ValidationError: Reversed range, non-positive count, or more days than the range holds
    """
    if start_date > end_date:
        raise ValidationError("start_date must be on or before end_date")
    span = (end_date - start_date).days + 1
    if day_count is None:
        days = ledger.to_days(count_weekdays(start_date, end_date))
        if days <= 0:
            raise ValidationError("Leave range contains no working days")
        return days
    days = ledger.to_days(day_count)
    if days <= 0:
        raise ValidationError("day_count must be greater than 0")
    if days > span:
        raise ValidationError(f"day_count {days} exceeds the {span} calendar days in the range")
    if (days * 2) % 1 != 0:
        raise ValidationError("day_count must be a whole or half day")
    return days


def validate_overlap(
    db: Session,
    employee_id: int,
    start_date: date,
    end_date: date,
    exclude_leave_id: Optional[int] = None,
) -> None:
    """
    Validate that the leave request doesn't overlap with existing
    pending, approved or recorded leave requests.

    Raises:
        ValidationError: If overlap detected
    """
    # Overlap: existing.end_date >= new.start_date AND existing.start_date <= new.end_date
    query = db.query(LeaveRequest).filter(
        LeaveRequest.employee_id == employee_id,
        LeaveRequest.status.in_(BLOCKING_STATUSES),
        LeaveRequest.end_date >= start_date,
        LeaveRequest.start_date <= end_date,
    )
    if exclude_leave_id:
        query = query.filter(LeaveRequest.id != exclude_leave_id)

    overlapping = query.first()
    if overlapping:
        raise ValidationError(
            f"Leave request overlaps with existing leave from {overlapping.start_date} to {overlapping.end_date}",
            leave_request_id=overlapping.id,
        )


def snapshot_request(leave_request: LeaveRequest) -> dict:
    """Audit view of a request and its steps."""
    return {
        "status": leave_request.status,
        "locked": leave_request.locked,
        "day_count": leave_request.day_count,
        "deducted_days": leave_request.deducted_days,
        "steps": [
            {
                "level": s.level,
                "approver_role": s.approver_role,
                "status": s.status,
                "approver_id": s.approver_id,
            }
            for s in leave_request.approval_steps
        ],
    }


def create_leave_request(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    day_count=None,
    reason: Optional[str] = None,
    actor_id: Optional[int] = None,
    external_clearance_approved: bool = False,
) -> LeaveRequest:
    """
    Submit a leave request and materialize its approval chain.

    Args:
        db: Database session
        employee_id: Applicant
        leave_type: Requested leave type
        start_date: First day of leave
        end_date: Last day of leave
        day_count: Days requested (defaults to working days in the range)
        reason: Optional reason
        actor_id: Submitting employee (defaults to the applicant)
        external_clearance_approved: PSC/OHCS clearance already granted

    Returns:
        Committed LeaveRequest with pending approval steps

    Raises:
        NotFoundError, PermissionDenied, ValidationError, ConfigurationError,
        InsufficientBalanceError
    """
    actor_id = employee_id if actor_id is None else actor_id
    try:
        leave_type = LeaveType(leave_type)
    except ValueError:
        raise ValidationError(f"Unknown leave type: {leave_type}")

    with keyed_lock(("employee_requests", employee_id)):
        try:
            employee = get_employee(db, employee_id)
            if actor_id != employee_id:
                actor = get_employee(db, actor_id)
                if actor.role not in FILE_ON_BEHALF_ROLES and not is_elevated(actor.role):
                    raise PermissionDenied("Only HR may submit leave on behalf of another employee")
            if not employee.active or employee.employment_status != EmploymentStatus.ACTIVE:
                raise ValidationError(f"Employee {employee_id} is not in active service")

            days = resolve_day_count(start_date, end_date, day_count)
            validate_overlap(db, employee_id, start_date, end_date)
            chain = build_approval_chain(db, employee, leave_type)

            if consumes_balance(db, leave_type):
                available = ledger.available_days(db, employee_id, leave_type)
                if available < days:
                    raise InsufficientBalanceError(employee_id, leave_type, available, days)

            leave_request = LeaveRequest(
                employee_id=employee_id,
                leave_type=leave_type,
                start_date=start_date,
                end_date=end_date,
                day_count=days,
                reason=reason,
                status=LeaveStatus.PENDING,
                locked=False,
                recorded_chain=chain.recorded,
                external_clearance_approved=external_clearance_approved,
            )
            for lvl in chain.levels:
                leave_request.approval_steps.append(ApprovalStep(
                    level=lvl.level,
                    approver_role=lvl.approver_role,
                    assigned_approver_id=lvl.assigned_approver_id,
                    status=StepStatus.PENDING,
                ))
            db.add(leave_request)
            db.flush()

            log_audit(
                db,
                event_type="LEAVE_REQUEST_CREATED",
                actor_id=actor_id,
                entity_type="leave_request",
                entity_id=leave_request.id,
                after=snapshot_request(leave_request),
                meta={
                    "employee_id": employee_id,
                    "leave_type": leave_type,
                    "start_date": start_date,
                    "end_date": end_date,
                    "route": chain.route,
                },
            )
            db.commit()
        except Exception:
            db.rollback()
            raise
    db.refresh(leave_request)

    logger.info(
        "leave request created: leave_request_id=%s employee_id=%s leave_type=%s days=%s levels=%s",
        leave_request.id, employee_id, leave_type.value, days, len(chain.levels),
    )
    first = chain.levels[0]
    notify_best_effort(
        first.assigned_approver_id,
        "leave.awaiting_approval",
        {"leave_request_id": leave_request.id, "level": first.level, "approver_role": first.approver_role.value},
    )
    return leave_request


def list_leave_requests(
    db: Session,
    employee_id: Optional[int] = None,
    status: Optional[LeaveStatus] = None,
    leave_type: Optional[LeaveType] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[LeaveRequest]:
    query = db.query(LeaveRequest).options(selectinload(LeaveRequest.approval_steps))
    if employee_id is not None:
        query = query.filter(LeaveRequest.employee_id == employee_id)
    if status is not None:
        query = query.filter(LeaveRequest.status == status)
    if leave_type is not None:
        query = query.filter(LeaveRequest.leave_type == leave_type)
    return query.order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc()).offset(offset).limit(limit).all()
