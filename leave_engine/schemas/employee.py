"""
Employee schemas
"""
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator, field_serializer, ConfigDict
from leave_engine.core.exceptions import LeaveEngineError
from leave_engine.models.employee import EmploymentStatus
from leave_engine.utils.datetime_utils import iso_utc
from leave_engine.utils.roles import ApproverRole, canonicalize_role


class EmployeeCreate(BaseModel):
    """Schema for creating an employee"""
    staff_code: str = Field(..., min_length=1, description="Staff code (unique)")
    name: str = Field(..., min_length=1, description="Employee name")
    role: ApproverRole = Field(default=ApproverRole.EMPLOYEE, description="Approver role (aliases such as 'hr' or 'hod' accepted)")
    grade: str = Field(..., min_length=1, description="Civil service grade")
    position: Optional[str] = Field(None, description="Position title, e.g. 'Unit Head', 'Director'")
    directorate: Optional[str] = Field(None, description="Directorate (blank for independent units)")
    unit: Optional[str] = Field(None, description="Unit name")
    immediate_supervisor_id: Optional[int] = Field(None, description="Immediate supervisor employee ID")
    acting_officer_id: Optional[int] = Field(None, description="Acting officer while on leave")
    employment_status: EmploymentStatus = Field(default=EmploymentStatus.ACTIVE)
    join_date: Optional[date] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        try:
            return canonicalize_role(v)
        except LeaveEngineError as e:
            raise ValueError(e.message)


class EmployeeUpdate(BaseModel):
    """Schema for updating an employee's placement or status"""
    role: Optional[ApproverRole] = None
    grade: Optional[str] = None
    position: Optional[str] = None
    directorate: Optional[str] = None
    unit: Optional[str] = None
    immediate_supervisor_id: Optional[int] = None
    acting_officer_id: Optional[int] = None
    employment_status: Optional[EmploymentStatus] = None
    active: Optional[bool] = None

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, v):
        if v is None:
            return None
        try:
            return canonicalize_role(v)
        except LeaveEngineError as e:
            raise ValueError(e.message)


class EmployeeOut(BaseModel):
    id: int
    staff_code: str
    name: str
    role: ApproverRole
    grade: Optional[str] = None
    position: Optional[str] = None
    directorate: Optional[str] = None
    unit: Optional[str] = None
    immediate_supervisor_id: Optional[int] = None
    acting_officer_id: Optional[int] = None
    employment_status: EmploymentStatus
    active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)
