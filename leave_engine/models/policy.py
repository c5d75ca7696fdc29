"""
Leave policy model - one active policy row per leave type
"""
from sqlalchemy import Column, Integer, DateTime, Boolean, Numeric, Enum as SQLEnum
from leave_engine.db.base import Base
from leave_engine.models.leave import LeaveType
from leave_engine.utils.datetime_utils import now_utc


class LeavePolicy(Base):
    __tablename__ = "leave_policies"

    id = Column(Integer, primary_key=True, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False, unique=True)

    annual_entitlement = Column(Numeric(7, 2), nullable=False, default=0)

    # Year-end settlement
    carryover_allowed = Column(Boolean, nullable=False, default=False)
    max_carryover = Column(Numeric(7, 2), nullable=False, default=0)
    expires_after_months = Column(Integer, nullable=True)  # Carried-forward days lapse after N months

    requires_balance = Column(Boolean, nullable=False, default=True)  # False: unpaid-style leave
    encashable = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
