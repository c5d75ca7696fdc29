"""
Leave models
"""
from sqlalchemy import (
    Column,
    Integer,
    Date,
    DateTime,
    ForeignKey,
    String,
    Text,
    Numeric,
    Enum as SQLEnum,
    Boolean,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
import enum
from leave_engine.db.base import Base
from leave_engine.utils.datetime_utils import now_utc
from leave_engine.utils.roles import ApproverRole


class LeaveType(str, enum.Enum):
    ANNUAL = "ANNUAL"
    SICK = "SICK"
    SPECIAL_SERVICE = "SPECIAL_SERVICE"
    TRAINING = "TRAINING"
    STUDY = "STUDY"
    MATERNITY = "MATERNITY"
    PATERNITY = "PATERNITY"
    COMPASSIONATE = "COMPASSIONATE"
    UNPAID = "UNPAID"


class LeaveStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    RECORDED = "recorded"  # Most senior grade: administratively logged, not peer-approved


class StepStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class Decision(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Leave types that never touch the balance ledger
BALANCE_EXEMPT_LEAVE_TYPES = (LeaveType.UNPAID,)

# Terminal aggregate statuses that consumed balance
FINAL_APPROVAL_STATUSES = frozenset({LeaveStatus.APPROVED, LeaveStatus.RECORDED})

# Step statuses that let the next level proceed
RESOLVED_STEP_STATUSES = frozenset({StepStatus.APPROVED, StepStatus.SKIPPED})


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    day_count = Column(Numeric(7, 2), nullable=False)  # Supports 0.5 days
    reason = Column(Text, nullable=True)
    status = Column(SQLEnum(LeaveStatus), nullable=False, default=LeaveStatus.PENDING)
    locked = Column(Boolean, nullable=False, default=False)
    recorded_chain = Column(Boolean, nullable=False, default=False)  # Terminates at RECORDED instead of APPROVED
    deducted_days = Column(Numeric(7, 2), nullable=True)  # Set only while days are held by the ledger
    external_clearance_approved = Column(Boolean, nullable=False, default=False)  # PSC/OHCS clearance (study leave)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    # Relationships
    employee = relationship("Employee", foreign_keys=[employee_id], back_populates="leave_requests")
    approval_steps = relationship(
        "ApprovalStep",
        back_populates="leave_request",
        cascade="all, delete-orphan",
        order_by="ApprovalStep.level",
    )

    __table_args__ = (
        Index("ix_leave_requests_employee_dates", "employee_id", "start_date", "end_date"),
        CheckConstraint("start_date <= end_date", name="check_start_date_le_end_date"),
        CheckConstraint("day_count > 0", name="check_day_count_positive"),
    )


class ApprovalStep(Base):
    __tablename__ = "approval_steps"

    id = Column(Integer, primary_key=True, index=True)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=False, index=True)
    level = Column(Integer, nullable=False)
    approver_role = Column(SQLEnum(ApproverRole), nullable=False)
    assigned_approver_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # Known approver (e.g. supervisor)
    status = Column(SQLEnum(StepStatus), nullable=False, default=StepStatus.PENDING)
    approver_id = Column(Integer, ForeignKey("employees.id"), nullable=True)  # Who actually decided
    comments = Column(Text, nullable=True)
    decided_at = Column(DateTime(timezone=True), nullable=True)

    leave_request = relationship("LeaveRequest", back_populates="approval_steps")
    approver = relationship("Employee", foreign_keys=[approver_id])
    assigned_approver = relationship("Employee", foreign_keys=[assigned_approver_id])

    __table_args__ = (
        UniqueConstraint("leave_request_id", "level", name="uq_approval_steps_request_level"),
        CheckConstraint("level >= 1", name="check_level_positive"),
    )


class LeaveTransactionAction(str, enum.Enum):
    CREDIT = "CREDIT"
    DEDUCT = "DEDUCT"
    RESTORE = "RESTORE"
    CARRY_FORWARD = "CARRY_FORWARD"
    FORFEIT = "FORFEIT"
    ENCASH = "ENCASH"


class LeaveBalance(Base):
    """
    Ledger balance: one row per (employee_id, leave_type).
    `period` is the leave year the remaining days belong to; settlement rolls it forward.
    """
    __tablename__ = "leave_balances"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    period = Column(Integer, nullable=False, index=True)
    remaining_days = Column(Numeric(7, 2), nullable=False, default=0)
    carry_forward_days = Column(Numeric(7, 2), nullable=False, default=0)  # Carried days not yet spent
    entitlement_ceiling = Column(Numeric(7, 2), nullable=True)  # Restores may not exceed this
    expires_at = Column(Date, nullable=True)  # Carried-forward days lapse after this date
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    employee = relationship("Employee", backref="leave_balances")

    __table_args__ = (
        UniqueConstraint("employee_id", "leave_type", name="uq_leave_balances_employee_type"),
        CheckConstraint("remaining_days >= 0", name="check_remaining_days_non_negative"),
    )


class LeaveTransaction(Base):
    """Append-only trail of every ledger movement."""
    __tablename__ = "leave_transactions"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    leave_type = Column(SQLEnum(LeaveType), nullable=False)
    period = Column(Integer, nullable=False, index=True)
    action = Column(String(30), nullable=False)
    delta_days = Column(Numeric(7, 2), nullable=False)  # + for credit, - for deduct
    balance_before = Column(Numeric(7, 2), nullable=False)
    balance_after = Column(Numeric(7, 2), nullable=False)
    leave_request_id = Column(Integer, ForeignKey("leave_requests.id"), nullable=True, index=True)
    encashment_id = Column(Integer, ForeignKey("encashment_requests.id"), nullable=True, index=True)
    remarks = Column(Text, nullable=True)
    action_by_employee_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
