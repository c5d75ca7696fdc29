"""
Leave policy schemas
"""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from leave_engine.models.leave import LeaveType
from leave_engine.utils.datetime_utils import iso_utc


class PolicyUpdate(BaseModel):
    """Any field left out keeps its current value"""
    annual_entitlement: Optional[Decimal] = Field(None, ge=0)
    carryover_allowed: Optional[bool] = None
    max_carryover: Optional[Decimal] = Field(None, ge=0)
    expires_after_months: Optional[int] = Field(None, ge=1)
    requires_balance: Optional[bool] = None
    encashable: Optional[bool] = None
    active: Optional[bool] = None


class PolicyOut(BaseModel):
    id: int
    leave_type: LeaveType
    annual_entitlement: Decimal
    carryover_allowed: bool
    max_carryover: Decimal
    expires_after_months: Optional[int] = None
    requires_balance: bool
    encashable: bool
    active: bool
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)
