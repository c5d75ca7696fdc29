"""
Audit logging service

Entries are added and flushed inside the caller's transaction. A failure here
propagates and aborts the surrounding operation; nothing commits without its
audit row.
"""
import logging
from sqlalchemy.orm import Session
from leave_engine.models.audit_log import AuditLog
from leave_engine.utils.datetime_utils import now_utc
from leave_engine.utils.json_serializer import sanitize_for_json
from typing import Optional, Dict, Any, List

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    event_type: str,
    actor_id: Optional[int],
    entity_type: str,
    entity_id: Optional[int] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Create an audit log entry

    Args:
        db: Database session
        event_type: Event type (e.g., "LEAVE_STEP_DECIDED", "LEDGER_DEDUCT")
        actor_id: ID of the employee performing the action (None for system jobs)
        entity_type: Type of entity (e.g., "leave_request", "leave_balance", "encashment")
        entity_id: ID of the affected entity (optional)
        before: State before the change (optional)
        after: State after the change (optional)
        meta: Additional metadata as dictionary (optional)

    Returns:
        Created AuditLog instance (flushed, not committed)
    """
    audit_log = AuditLog(
        event_type=event_type,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        before_state=sanitize_for_json(before) if before is not None else None,
        after_state=sanitize_for_json(after) if after is not None else None,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=now_utc(),
    )
    db.add(audit_log)
    db.flush()
    logger.debug("audit: event_type=%s entity_type=%s entity_id=%s actor_id=%s", event_type, entity_type, entity_id, actor_id)
    return audit_log


def list_audit_entries(
    db: Session,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    event_type: Optional[str] = None,
    limit: int = 100,
) -> List[AuditLog]:
    q = db.query(AuditLog)
    if entity_type is not None:
        q = q.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditLog.entity_id == entity_id)
    if event_type is not None:
        q = q.filter(AuditLog.event_type == event_type)
    return q.order_by(AuditLog.id.asc()).limit(limit).all()
