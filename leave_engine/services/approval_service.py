"""
Approval state machine.

Drives one leave request through its approval steps:

    pending -> approved | rejected | recorded

Only this module mutates ApprovalStep rows and derives LeaveRequest.status.
The aggregate status is a pure function of the step statuses and whether the
chain terminates at "recorded".

Entering approved/recorded deducts ``day_count`` through the ledger and locks
the request. A locked request changes again only through ``reverse_approval``,
which restores exactly the deducted days.

Every decision runs under the request lock (then the ledger-key lock), writes
its audit entry in the same transaction, and commits while the locks are held.
Any failure rolls the session back and re-raises; nothing partial survives.
"""
import logging
from contextlib import ExitStack
from typing import Iterable, List, Optional, Union

from sqlalchemy.orm import Session

from leave_engine.core.config import settings
from leave_engine.core.exceptions import (
    AlreadyFinalizedError,
    ComplianceError,
    InvariantViolation,
    PermissionDenied,
    SequencingError,
    ValidationError,
)
from leave_engine.models.employee import Employee
from leave_engine.models.leave import (
    ApprovalStep,
    Decision,
    FINAL_APPROVAL_STATUSES,
    LeaveRequest,
    LeaveStatus,
    RESOLVED_STEP_STATUSES,
    StepStatus,
)
from leave_engine.services import ledger_service as ledger
from leave_engine.services.audit_service import log_audit
from leave_engine.services.compliance_service import get_compliance_validator
from leave_engine.services.leave_service import (
    consumes_balance,
    get_employee,
    get_leave_request,
    snapshot_request,
)
from leave_engine.services.locks import balance_lock, request_lock
from leave_engine.services.notification_service import notify_best_effort
from leave_engine.utils.datetime_utils import now_utc
from leave_engine.utils.roles import ROLE_DISPLAY_NAMES, ApproverRole, canonicalize_role, is_elevated

logger = logging.getLogger(__name__)


def compute_aggregate_status(
    step_statuses: Iterable[Union[StepStatus, str]],
    recorded_chain: bool = False,
) -> LeaveStatus:
    """
    Derive the request status from its step statuses.

    - any step rejected: rejected
    - every step approved or skipped: approved (recorded for a recorded chain)
    - otherwise: pending
    """
    statuses = [StepStatus(s) for s in step_statuses]
    if not statuses:
        return LeaveStatus.PENDING
    if any(s == StepStatus.REJECTED for s in statuses):
        return LeaveStatus.REJECTED
    if all(s in RESOLVED_STEP_STATUSES for s in statuses):
        return LeaveStatus.RECORDED if recorded_chain else LeaveStatus.APPROVED
    return LeaveStatus.PENDING


def get_next_pending_step(leave_request: LeaveRequest) -> Optional[ApprovalStep]:
    """Lowest pending level whose lower levels are all approved or skipped."""
    for step in sorted(leave_request.approval_steps, key=lambda s: s.level):
        if step.status == StepStatus.PENDING:
            return step
        if step.status not in RESOLVED_STEP_STATUSES:
            return None
    return None


def _validate_rejection_comment(comments: Optional[str]) -> None:
    min_length = settings.REJECTION_COMMENT_MIN_LENGTH
    if comments is None or len(comments.strip()) < min_length:
        raise ValidationError(f"Rejection comments must be at least {min_length} characters")


def _authorize(leave_request: LeaveRequest, step: ApprovalStep, actor: Employee) -> None:
    if not actor.active:
        raise PermissionDenied(f"Employee {actor.id} is not active")
    if actor.id == leave_request.employee_id:
        raise PermissionDenied("Approvers cannot decide their own leave requests")
    if is_elevated(actor.role):
        return
    if actor.role != step.approver_role:
        raise PermissionDenied(
            f"Level {step.level} must be decided by the {ROLE_DISPLAY_NAMES[step.approver_role]}"
        )
    if step.assigned_approver_id is not None and step.assigned_approver_id != actor.id:
        raise PermissionDenied(f"Level {step.level} is assigned to another approver")


def _find_step(leave_request: LeaveRequest, level: int) -> ApprovalStep:
    for step in leave_request.approval_steps:
        if step.level == level:
            return step
    raise ValidationError(f"Leave request {leave_request.id} has no approval level {level}")


def _check_sequence(leave_request: LeaveRequest, step: ApprovalStep) -> None:
    if step.status != StepStatus.PENDING:
        raise SequencingError(f"Level {step.level} has already been decided ({step.status.value})")
    for other in leave_request.approval_steps:
        if other.level < step.level and other.status not in RESOLVED_STEP_STATUSES:
            raise SequencingError(
                f"Level {other.level} must be resolved before level {step.level}",
                blocking_level=other.level,
            )


def _notify_decision(leave_request: LeaveRequest, step: ApprovalStep, decision: Decision) -> None:
    payload = {
        "leave_request_id": leave_request.id,
        "level": step.level,
        "decision": decision.value,
        "status": leave_request.status.value,
    }
    notify_best_effort(leave_request.employee_id, f"leave.{leave_request.status.value}", payload)
    if leave_request.status == LeaveStatus.PENDING:
        nxt = get_next_pending_step(leave_request)
        if nxt is not None:
            notify_best_effort(
                nxt.assigned_approver_id,
                "leave.awaiting_approval",
                {"leave_request_id": leave_request.id, "level": nxt.level, "approver_role": nxt.approver_role.value},
            )


def decide(
    db: Session,
    leave_request_id: int,
    level: int,
    decision: Union[Decision, str],
    actor_id: int,
    comments: Optional[str] = None,
    compliance_validator=None,
) -> LeaveRequest:
    """
    Record an approve/reject decision on one approval level.

    Args:
        db: Database session
        leave_request_id: Request being decided
        level: Approval level being decided
        decision: "approve" or "reject"
        actor_id: Deciding employee
        comments: Required for rejections (minimum length from settings)
        compliance_validator: Overrides the default civil service validator

    Returns:
        The committed LeaveRequest

    Raises:
        NotFoundError, ValidationError, PermissionDenied, SequencingError,
        AlreadyFinalizedError, ComplianceError, InsufficientBalanceError
    """
    try:
        decision = Decision(decision)
    except ValueError:
        raise ValidationError(f"Unknown decision: {decision}")
    validator = compliance_validator or get_compliance_validator()

    with request_lock(leave_request_id), ExitStack() as held:
        try:
            leave_request = get_leave_request(db, leave_request_id, for_update=True)
            actor = get_employee(db, actor_id)

            if leave_request.locked or leave_request.status != LeaveStatus.PENDING:
                raise AlreadyFinalizedError(
                    f"Leave request {leave_request_id} is {leave_request.status.value} and can no longer be decided"
                )

            step = _find_step(leave_request, level)
            _check_sequence(leave_request, step)
            _authorize(leave_request, step, actor)

            if decision == Decision.REJECT:
                _validate_rejection_comment(comments)
            else:
                result = validator.validate_before_approval(db, leave_request, actor)
                if not result.valid:
                    raise ComplianceError(result.errors)

            before = snapshot_request(leave_request)
            before_status = leave_request.status

            # Ledger key is taken before the first write
            finalizing = decision == Decision.APPROVE and all(
                s.status in RESOLVED_STEP_STATUSES for s in leave_request.approval_steps if s is not step
            )
            debits = finalizing and consumes_balance(db, leave_request.leave_type)
            if debits:
                held.enter_context(balance_lock(leave_request.employee_id, leave_request.leave_type))

            step.status = StepStatus.APPROVED if decision == Decision.APPROVE else StepStatus.REJECTED
            step.approver_id = actor.id
            step.comments = comments
            step.decided_at = now_utc()
            if decision == Decision.REJECT:
                for other in leave_request.approval_steps:
                    if other.status == StepStatus.PENDING:
                        other.status = StepStatus.SKIPPED

            new_status = compute_aggregate_status(
                [s.status for s in leave_request.approval_steps], leave_request.recorded_chain
            )

            if new_status in FINAL_APPROVAL_STATUSES and before_status not in FINAL_APPROVAL_STATUSES:
                if debits:
                    ledger.deduct(
                        db,
                        leave_request.employee_id,
                        leave_request.leave_type,
                        leave_request.day_count,
                        leave_request_id=leave_request.id,
                        actor_id=actor.id,
                        remarks=f"Leave request {leave_request.id} {new_status.value}",
                    )
                    leave_request.deducted_days = leave_request.day_count
                leave_request.locked = True

            leave_request.status = new_status
            db.flush()

            log_audit(
                db,
                event_type="LEAVE_STEP_DECIDED",
                actor_id=actor.id,
                entity_type="leave_request",
                entity_id=leave_request.id,
                before=before,
                after=snapshot_request(leave_request),
                meta={"level": level, "decision": decision, "comments": comments},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(leave_request)
    if before_status != leave_request.status:
        logger.info(
            "leave status transition: leave_request_id=%s before=%s after=%s action=%s level=%s",
            leave_request_id, before_status.value, leave_request.status.value, decision.value, level,
        )
    else:
        logger.info(
            "leave step decided: leave_request_id=%s level=%s decision=%s actor_id=%s",
            leave_request_id, level, decision.value, actor_id,
        )
    _notify_decision(leave_request, step, decision)
    return leave_request


def reverse_approval(
    db: Session,
    leave_request_id: int,
    actor_id: int,
    comments: Optional[str],
) -> LeaveRequest:
    """
    Administrative reversal of an approved or recorded request.

    Marks the highest approved step rejected, moves the request to rejected and
    restores exactly ``deducted_days`` to the ledger.

    Raises:
        PermissionDenied: Actor lacks the elevated role
        SequencingError: Request is still pending
        AlreadyFinalizedError: Request is already rejected
        InvariantViolation: Balance-affecting request with nothing deducted
    """
    with request_lock(leave_request_id), ExitStack() as held:
        try:
            leave_request = get_leave_request(db, leave_request_id, for_update=True)
            actor = get_employee(db, actor_id)
            if not is_elevated(actor.role):
                raise PermissionDenied("Only a system administrator may reverse an approval")
            if leave_request.status == LeaveStatus.REJECTED:
                raise AlreadyFinalizedError(f"Leave request {leave_request_id} is already rejected")
            if leave_request.status not in FINAL_APPROVAL_STATUSES:
                raise SequencingError(f"Leave request {leave_request_id} has not been approved")
            _validate_rejection_comment(comments)

            before = snapshot_request(leave_request)
            before_status = leave_request.status
            restored = None

            if consumes_balance(db, leave_request.leave_type):
                if leave_request.deducted_days is None:
                    raise InvariantViolation(
                        f"Leave request {leave_request_id} was never deducted; nothing to restore",
                        leave_request_id=leave_request_id,
                    )
                held.enter_context(balance_lock(leave_request.employee_id, leave_request.leave_type))
                restored = leave_request.deducted_days
                ledger.restore(
                    db,
                    leave_request.employee_id,
                    leave_request.leave_type,
                    restored,
                    leave_request_id=leave_request.id,
                    actor_id=actor.id,
                    remarks=f"Reversal of leave request {leave_request.id}",
                )
            leave_request.deducted_days = None

            approved = [s for s in leave_request.approval_steps if s.status == StepStatus.APPROVED]
            if not approved:
                raise InvariantViolation(f"Leave request {leave_request_id} has no approved step to reverse")
            last = max(approved, key=lambda s: s.level)
            last.status = StepStatus.REJECTED
            last.approver_id = actor.id
            last.comments = comments
            last.decided_at = now_utc()

            leave_request.status = compute_aggregate_status(
                [s.status for s in leave_request.approval_steps], leave_request.recorded_chain
            )
            leave_request.locked = True
            db.flush()

            log_audit(
                db,
                event_type="LEAVE_APPROVAL_REVERSED",
                actor_id=actor.id,
                entity_type="leave_request",
                entity_id=leave_request.id,
                before=before,
                after=snapshot_request(leave_request),
                meta={"restored_days": restored, "comments": comments, "level": last.level},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(leave_request)
    logger.info(
        "leave status transition: leave_request_id=%s before=%s after=%s action=reverse restored=%s",
        leave_request_id, before_status.value, leave_request.status.value, restored,
    )
    notify_best_effort(
        leave_request.employee_id,
        "leave.reversed",
        {"leave_request_id": leave_request.id, "restored_days": str(restored) if restored is not None else None},
    )
    return leave_request


def list_pending_for_role(
    db: Session,
    role: Union[ApproverRole, str],
    actor: Optional[Employee] = None,
) -> List[LeaveRequest]:
    """
    Pending requests whose next decidable level belongs to ``role``.

    With an actor, levels bound to a different approver and the actor's own
    requests are left out.
    """
    role = canonicalize_role(role)
    pending = (
        db.query(LeaveRequest)
        .filter(LeaveRequest.status == LeaveStatus.PENDING)
        .order_by(LeaveRequest.created_at.asc(), LeaveRequest.id.asc())
        .all()
    )
    result = []
    for leave_request in pending:
        step = get_next_pending_step(leave_request)
        if step is None:
            continue
        if role != step.approver_role and not is_elevated(role):
            continue
        if actor is not None:
            if leave_request.employee_id == actor.id:
                continue
            if step.assigned_approver_id is not None and step.assigned_approver_id != actor.id and not is_elevated(actor.role):
                continue
        result.append(leave_request)
    return result
