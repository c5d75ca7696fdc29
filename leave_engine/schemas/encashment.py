"""
Leave encashment schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from leave_engine.models.encashment import EncashmentAction, EncashmentReason, EncashmentStatus
from leave_engine.models.leave import LeaveType
from leave_engine.utils.datetime_utils import iso_utc


class EncashmentCreate(BaseModel):
    employee_id: int
    leave_type: LeaveType
    days: Decimal = Field(..., gt=0)
    reason: EncashmentReason
    reason_details: Optional[str] = None


class EncashmentDecision(BaseModel):
    action: EncashmentAction
    amount: Optional[Decimal] = Field(None, ge=0, description="Monetary amount (approval only)")


class EncashmentOut(BaseModel):
    id: int
    employee_id: int
    leave_type: LeaveType
    days: Decimal
    reason: EncashmentReason
    reason_details: Optional[str] = None
    status: EncashmentStatus
    amount: Optional[Decimal] = None
    created_by_id: int
    decided_by_id: Optional[int] = None
    decided_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "decided_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)
