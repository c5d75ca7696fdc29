"""
Leave encashment workflow.

Unused balance can be converted into a monetary claim on retirement, exit or
special authorization. Only the HR Director or the Chief Director (or an
elevated role) may create or decide encashments. Approval re-validates the
balance and deducts through the ledger; rejection never touches the balance.
"""
import logging
from contextlib import ExitStack
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from leave_engine.core.exceptions import (
    AlreadyFinalizedError,
    InsufficientBalanceError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from leave_engine.models.employee import Employee, EmploymentStatus
from leave_engine.models.encashment import (
    EncashmentAction,
    EncashmentReason,
    EncashmentRequest,
    EncashmentStatus,
)
from leave_engine.models.leave import LeaveTransactionAction, LeaveType
from leave_engine.models.policy import LeavePolicy
from leave_engine.services import ledger_service as ledger
from leave_engine.services.audit_service import log_audit
from leave_engine.services.leave_service import get_employee
from leave_engine.services.locks import balance_lock, encashment_lock
from leave_engine.services.notification_service import notify_best_effort
from leave_engine.utils.datetime_utils import now_utc
from leave_engine.utils.roles import ENCASHMENT_ROLES, is_elevated

logger = logging.getLogger(__name__)

EXIT_STATUSES = (EmploymentStatus.TERMINATED, EmploymentStatus.RESIGNED)


def _require_encashment_role(actor: Employee) -> None:
    if actor.role not in ENCASHMENT_ROLES and not is_elevated(actor.role):
        raise PermissionDenied("Permission denied - HR Director or Chief Director access required")


def _validate_reason(employee: Employee, reason: EncashmentReason, reason_details: Optional[str]) -> None:
    if reason == EncashmentReason.RETIREMENT and employee.employment_status != EmploymentStatus.RETIRED:
        raise ValidationError("Encashment reason is retirement but staff is not retired")
    if reason == EncashmentReason.EXIT and employee.employment_status not in EXIT_STATUSES:
        raise ValidationError("Encashment reason is exit but staff is not terminated or resigned")
    if reason == EncashmentReason.SPECIAL_AUTHORIZATION and (reason_details is None or not reason_details.strip()):
        raise ValidationError("reason_details is required for special_authorization")


def _snapshot(encashment: EncashmentRequest) -> dict:
    return {
        "status": encashment.status,
        "days": encashment.days,
        "amount": encashment.amount,
        "leave_type": encashment.leave_type,
    }


def get_encashment(db: Session, encashment_id: int, for_update: bool = False) -> EncashmentRequest:
    q = db.query(EncashmentRequest).filter(EncashmentRequest.id == encashment_id)
    if for_update:
        q = q.populate_existing().with_for_update()
    encashment = q.first()
    if not encashment:
        raise NotFoundError("Encashment request", encashment_id)
    return encashment


def create_encashment(
    db: Session,
    employee_id: int,
    leave_type,
    days,
    reason,
    actor_id: int,
    reason_details: Optional[str] = None,
) -> EncashmentRequest:
    """
    Open a pending encashment request.

    Raises:
        PermissionDenied: Actor is not HR Director / Chief Director
        ValidationError: Bad reason, reason precondition unmet, non-encashable type or days <= 0
        InsufficientBalanceError: Balance does not cover the days
    """
    try:
        leave_type = LeaveType(leave_type)
        reason = EncashmentReason(reason)
    except ValueError as e:
        raise ValidationError(str(e))

    try:
        actor = get_employee(db, actor_id)
        _require_encashment_role(actor)
        employee = get_employee(db, employee_id)

        days = ledger.to_days(days)
        if days <= 0:
            raise ValidationError("Encashment days must be greater than 0")
        _validate_reason(employee, reason, reason_details)

        policy = db.query(LeavePolicy).filter(LeavePolicy.leave_type == leave_type).first()
        if policy is None or not policy.encashable:
            raise ValidationError(f"Invalid leave type for encashment: {leave_type.value}")

        available = ledger.available_days(db, employee_id, leave_type)
        if available < days:
            raise InsufficientBalanceError(employee_id, leave_type, available, days)

        encashment = EncashmentRequest(
            employee_id=employee_id,
            leave_type=leave_type,
            days=days,
            reason=reason,
            reason_details=reason_details,
            status=EncashmentStatus.PENDING,
            created_by_id=actor.id,
        )
        db.add(encashment)
        db.flush()
        log_audit(
            db,
            event_type="ENCASHMENT_CREATED",
            actor_id=actor.id,
            entity_type="encashment",
            entity_id=encashment.id,
            after=_snapshot(encashment),
            meta={"employee_id": employee_id, "reason": reason, "reason_details": reason_details},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(encashment)

    logger.info(
        "encashment created: encashment_id=%s employee_id=%s leave_type=%s days=%s reason=%s",
        encashment.id, employee_id, leave_type.value, days, reason.value,
    )
    notify_best_effort(
        employee_id,
        "encashment.created",
        {"encashment_id": encashment.id, "days": str(days), "leave_type": leave_type.value, "reason": reason.value},
    )
    return encashment


def decide_encashment(
    db: Session,
    encashment_id: int,
    action,
    actor_id: int,
    amount=None,
) -> EncashmentRequest:
    """
    Approve or reject a pending encashment.

    Approval re-checks and deducts the balance and records ``amount``.

    Raises:
        AlreadyFinalizedError: Encashment is no longer pending
        InsufficientBalanceError: Balance no longer covers the days
    """
    try:
        action = EncashmentAction(action)
    except ValueError:
        raise ValidationError(f"Unknown encashment action: {action}")

    with encashment_lock(encashment_id), ExitStack() as held:
        try:
            encashment = get_encashment(db, encashment_id, for_update=True)
            actor = get_employee(db, actor_id)
            _require_encashment_role(actor)
            if encashment.status != EncashmentStatus.PENDING:
                raise AlreadyFinalizedError(
                    f"Encashment request {encashment_id} is already {encashment.status.value}"
                )
            if actor.id == encashment.employee_id:
                raise PermissionDenied("Approvers cannot decide their own encashment requests")

            before = _snapshot(encashment)
            if action == EncashmentAction.APPROVE:
                if amount is not None:
                    amount = Decimal(str(amount))
                    if amount < 0:
                        raise ValidationError("Encashment amount cannot be negative")
                held.enter_context(balance_lock(encashment.employee_id, encashment.leave_type))
                ledger.deduct(
                    db,
                    encashment.employee_id,
                    encashment.leave_type,
                    encashment.days,
                    encashment_id=encashment.id,
                    actor_id=actor.id,
                    remarks=f"Encashment {encashment.id} ({encashment.reason.value})",
                    action=LeaveTransactionAction.ENCASH,
                )
                encashment.status = EncashmentStatus.APPROVED
                encashment.amount = amount
            else:
                encashment.status = EncashmentStatus.REJECTED
            encashment.decided_by_id = actor.id
            encashment.decided_at = now_utc()
            db.flush()

            log_audit(
                db,
                event_type="ENCASHMENT_DECIDED",
                actor_id=actor.id,
                entity_type="encashment",
                entity_id=encashment.id,
                before=before,
                after=_snapshot(encashment),
                meta={"action": action},
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    db.refresh(encashment)
    logger.info(
        "encashment status transition: encashment_id=%s after=%s actor_id=%s",
        encashment_id, encashment.status.value, actor_id,
    )
    notify_best_effort(
        encashment.employee_id,
        f"encashment.{encashment.status.value}",
        {"encashment_id": encashment.id, "amount": str(encashment.amount) if encashment.amount is not None else None},
    )
    return encashment


def list_encashments(
    db: Session,
    status: Optional[EncashmentStatus] = None,
    employee_id: Optional[int] = None,
) -> List[EncashmentRequest]:
    q = db.query(EncashmentRequest)
    if status is not None:
        q = q.filter(EncashmentRequest.status == status)
    if employee_id is not None:
        q = q.filter(EncashmentRequest.employee_id == employee_id)
    return q.order_by(EncashmentRequest.created_at.desc(), EncashmentRequest.id.desc()).all()
