"""
Leave schemas
"""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, model_validator, field_serializer
from pydantic import ConfigDict
from decimal import Decimal
from leave_engine.models.leave import LeaveType, LeaveStatus, StepStatus, Decision
from leave_engine.utils.datetime_utils import iso_utc
from leave_engine.utils.roles import ApproverRole


class LeaveApplyRequest(BaseModel):
    """Schema for applying leave"""
    employee_id: Optional[int] = Field(None, description="Applicant (defaults to the acting employee; HR may file for others)")
    leave_type: LeaveType = Field(..., description="Type of leave")
    start_date: date = Field(..., description="Start date of leave")
    end_date: date = Field(..., description="End date of leave")
    day_count: Optional[Decimal] = Field(None, gt=0, description="Days requested (defaults to working days in range)")
    reason: Optional[str] = Field(None, description="Reason for leave")
    external_clearance_approved: bool = Field(False, description="PSC/OHCS clearance already granted")

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveApplyRequest":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class DecisionRequest(BaseModel):
    """Schema for a decision on one approval level"""
    level: int = Field(..., ge=1, description="Approval level being decided")
    decision: Decision = Field(..., description="approve or reject")
    comments: Optional[str] = Field(None, description="Required for rejections")


class ReversalRequest(BaseModel):
    """Schema for an administrative reversal"""
    comments: str = Field(..., description="Reason for the reversal")


class BulkDecisionRequest(BaseModel):
    leave_request_ids: List[int] = Field(..., min_length=1, description="Leave requests to decide")
    decision: Decision
    comments: Optional[str] = None
    level: Optional[int] = Field(None, ge=1, description="Level to decide; defaults to each request's next pending level")


class BulkFailureOut(BaseModel):
    id: int
    kind: str
    code: str
    error: str


class BulkSuccessOut(BaseModel):
    id: int
    status: LeaveStatus


class BulkDecisionOut(BaseModel):
    processed_count: int
    failed_count: int
    success: List[BulkSuccessOut]
    failed: List[BulkFailureOut]


class ApprovalStepOut(BaseModel):
    level: int
    approver_role: ApproverRole
    assigned_approver_id: Optional[int] = None
    status: StepStatus
    approver_id: Optional[int] = None
    comments: Optional[str] = None
    decided_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("decided_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class LeaveOut(BaseModel):
    """Schema for leave output, with the approval chain"""
    id: int
    employee_id: int
    leave_type: LeaveType
    start_date: date
    end_date: date
    day_count: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    locked: bool
    recorded_chain: bool
    deducted_days: Optional[Decimal] = None
    external_clearance_approved: bool
    approval_steps: List[ApprovalStepOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)
