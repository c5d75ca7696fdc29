"""
ORM-level append-only enforcement for the audit trail and ledger movements.

AuditLog and LeaveTransaction rows are written once and never changed. The
listeners below fire on flush, before any SQL is sent, and abort the
transaction with InvariantViolation when code tries to UPDATE or DELETE one.

Registered from ``leave_engine.models`` so every session honours them.
"""
import logging

from sqlalchemy import event

from leave_engine.core.exceptions import InvariantViolation

logger = logging.getLogger(__name__)


def _refuse_update(mapper, connection, target):
    entity_type = target.__class__.__name__
    logger.error("immutability violation blocked: entity_type=%s entity_id=%s operation=UPDATE", entity_type, target.id)
    raise InvariantViolation(f"{entity_type} {target.id} is append-only and cannot be modified")


def _refuse_delete(mapper, connection, target):
    entity_type = target.__class__.__name__
    logger.error("immutability violation blocked: entity_type=%s entity_id=%s operation=DELETE", entity_type, target.id)
    raise InvariantViolation(f"{entity_type} {target.id} is append-only and cannot be deleted")


def _append_only_models():
    # Inline import: models import this module at package init
    from leave_engine.models.audit_log import AuditLog
    from leave_engine.models.leave import LeaveTransaction

    return (AuditLog, LeaveTransaction)


def register_immutability_listeners() -> None:
    """Attach the append-only listeners. Safe to call more than once."""
    for model in _append_only_models():
        if not event.contains(model, "before_update", _refuse_update):
            event.listen(model, "before_update", _refuse_update)
        if not event.contains(model, "before_delete", _refuse_delete):
            event.listen(model, "before_delete", _refuse_delete)
