"""
Employee model
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
import enum
from leave_engine.db.base import Base
from leave_engine.utils.datetime_utils import now_utc
from leave_engine.utils.roles import ApproverRole


class EmploymentStatus(str, enum.Enum):
    ACTIVE = "active"
    RETIRED = "retired"
    TERMINATED = "terminated"
    RESIGNED = "resigned"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    staff_code = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    role = Column(SQLEnum(ApproverRole), nullable=False, default=ApproverRole.EMPLOYEE)

    # Organizational placement (drives approval routing)
    grade = Column(String, nullable=True)
    position = Column(String, nullable=True)
    directorate = Column(String, nullable=True)
    unit = Column(String, nullable=True)
    immediate_supervisor_id = Column(Integer, ForeignKey("employees.id"), nullable=True)
    acting_officer_id = Column(Integer, ForeignKey("employees.id"), nullable=True)

    employment_status = Column(SQLEnum(EmploymentStatus), nullable=False, default=EmploymentStatus.ACTIVE)
    join_date = Column(Date, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    # Relationships
    immediate_supervisor = relationship(
        "Employee", remote_side=[id], foreign_keys=[immediate_supervisor_id], backref="direct_reports"
    )
    acting_officer = relationship("Employee", remote_side=[id], foreign_keys=[acting_officer_id])
    leave_requests = relationship("LeaveRequest", foreign_keys="LeaveRequest.employee_id", back_populates="employee")
