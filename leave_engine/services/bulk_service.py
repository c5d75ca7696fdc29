"""
Bulk approval coordinator.

Applies one decision to many leave requests. Each request goes through the
same ``decide`` path as a single decision and commits (or rolls back) on its
own; one failure never affects the others. Requests are processed
sequentially in the caller's session, in first-seen order of the
de-duplicated ids.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from leave_engine.core.exceptions import LeaveEngineError, ValidationError, error_detail, error_kind
from leave_engine.models.leave import Decision
from leave_engine.services import approval_service
from leave_engine.services.leave_service import get_leave_request

logger = logging.getLogger(__name__)


def _dedupe(ids: Sequence[int]) -> List[int]:
    seen = set()
    ordered = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            ordered.append(i)
    return ordered


def _decide_one(
    db: Session,
    leave_request_id: int,
    decision: Decision,
    actor_id: int,
    comments: Optional[str],
    level: Optional[int],
    compliance_validator,
):
    if level is None:
        leave_request = get_leave_request(db, leave_request_id)
        step = approval_service.get_next_pending_step(leave_request)
        # Terminal requests have no pending step; decide() reports why
        level = step.level if step is not None else (
            leave_request.approval_steps[-1].level if leave_request.approval_steps else 1
        )
    return approval_service.decide(
        db,
        leave_request_id,
        level,
        decision,
        actor_id,
        comments=comments,
        compliance_validator=compliance_validator,
    )


def bulk_decide(
    db: Session,
    leave_request_ids: Sequence[int],
    decision,
    actor_id: int,
    comments: Optional[str] = None,
    level: Optional[int] = None,
    compliance_validator=None,
) -> Dict[str, Any]:
    """
    Decide many leave requests, isolating per-item failures.

    Args:
        db: Database session
        leave_request_ids: Requests to decide (duplicates are ignored)
        decision: "approve" or "reject"
        actor_id: Deciding employee
        comments: Comments applied to every decision
        level: Level to decide; defaults to each request's next pending level
        compliance_validator: Overrides the default compliance validator

    Returns:
        {"processed_count", "failed_count", "success": [...], "failed": [...]}
        where each failure carries the request id, error kind, code and detail.
    """
    try:
        decision = Decision(decision)
    except ValueError:
        raise ValidationError(f"Unknown decision: {decision}")
    if not leave_request_ids:
        raise ValidationError("At least one leave request id is required")

    success: List[Dict[str, Any]] = []
    failed: List[Dict[str, Any]] = []

    for leave_request_id in _dedupe(leave_request_ids):
        try:
            leave_request = _decide_one(
                db, leave_request_id, decision, actor_id, comments, level, compliance_validator
            )
            success.append({"id": leave_request_id, "status": leave_request.status.value})
        except LeaveEngineError as e:
            failed.append({
                "id": leave_request_id,
                "kind": e.kind,
                "code": e.code,
                "error": e.message,
            })
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("bulk decide database error: leave_request_id=%s error=%s", leave_request_id, e)
            failed.append({
                "id": leave_request_id,
                "kind": error_kind(e),
                "code": "SYSTEM_ERROR",
                "error": error_detail(e),
            })

    logger.info(
        "bulk decide complete: decision=%s actor_id=%s processed=%s failed=%s",
        decision.value, actor_id, len(success), len(failed),
    )
    return {
        "processed_count": len(success),
        "failed_count": len(failed),
        "success": success,
        "failed": failed,
    }
