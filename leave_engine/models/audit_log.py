"""
Audit log model (append-only; see leave_engine.db.immutability)
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from leave_engine.db.base import Base
from leave_engine.utils.datetime_utils import now_utc


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String, nullable=False, index=True)  # e.g. "LEAVE_STEP_DECIDED", "YEAR_END_SETTLED"
    actor_id = Column(Integer, nullable=True)  # None for system jobs
    entity_type = Column(String, nullable=False)  # e.g. "leave_request", "leave_balance", "encashment"
    entity_id = Column(Integer, nullable=True)
    before_state = Column(JSON, nullable=True)
    after_state = Column(JSON, nullable=True)
    meta_json = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
