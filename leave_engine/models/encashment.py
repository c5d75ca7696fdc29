"""
Leave encashment model
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Text, Numeric, Enum as SQLEnum, CheckConstraint
from sqlalchemy.orm import relationship
import enum
from leave_engine.db.base import Base
from leave_engine.models.leave import LeaveType
from leave_engine.utils.datetime_utils import now_utc


class EncashmentReason(str, enum.Enum):
    RETIREMENT = "retirement"
    EXIT = "exit"
    SPECIAL_AUTHORIZATION = "special_authorization"


class EncashmentStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EncashmentAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class EncashmentRequest(Base):
    __tablename__ = "encashment_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    days = Column(Numeric(7, 2), nullable=False)
    reason = Column(SQLEnum(EncashmentReason), nullable=False)
    reason_details = Column(Text, nullable=True)
    status = Column(SQLEnum(EncashmentStatus), nullable=False, default=EncashmentStatus.PENDING)
    amount = Column(Numeric(12, 2), nullable=True)
    created_by_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    decided_by_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    employee = relationship("Employee", foreign_keys=[employee_id])

    __table_args__ = (
        CheckConstraint("days > 0", name="check_encashment_days_positive"),
    )
