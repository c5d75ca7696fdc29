"""
Audit trail endpoint (read-only)
"""
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_engine.core.deps import get_db, require_roles
from leave_engine.models.employee import Employee
from leave_engine.schemas.audit import AuditLogOut
from leave_engine.services.audit_service import list_audit_entries
from leave_engine.utils.roles import ApproverRole

router = APIRouter()


@router.get("", response_model=List[AuditLogOut])
def list_audit_endpoint(
    entity_type: Optional[str] = Query(None, description="e.g. leave_request, leave_balance, encashment"),
    entity_id: Optional[int] = Query(None),
    event_type: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(require_roles(ApproverRole.AUDITOR, ApproverRole.HR_DIRECTOR)),
):
    return list_audit_entries(
        db, entity_type=entity_type, entity_id=entity_id, event_type=event_type, limit=limit
    )
