"""
Leave balance and ledger schemas
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_serializer
from leave_engine.models.leave import LeaveType
from leave_engine.utils.datetime_utils import iso_utc


class BalanceOut(BaseModel):
    leave_type: LeaveType
    period: int
    remaining_days: Decimal
    carry_forward_days: Decimal
    entitlement_ceiling: Optional[Decimal] = None
    expires_at: Optional[date] = None

    model_config = ConfigDict(from_attributes=True)


class LeaveTransactionOut(BaseModel):
    id: int
    leave_type: LeaveType
    period: int
    action: str
    delta_days: Decimal
    balance_before: Decimal
    balance_after: Decimal
    leave_request_id: Optional[int] = None
    encashment_id: Optional[int] = None
    remarks: Optional[str] = None
    action_by_employee_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt: Optional[datetime]) -> Optional[str]:
        return iso_utc(dt)


class BalanceSummaryOut(BaseModel):
    employee_id: int
    balances: List[BalanceOut]
    transactions: List[LeaveTransactionOut] = []


class CreditRequest(BaseModel):
    employee_id: int
    leave_type: LeaveType
    days: Decimal = Field(..., gt=0)
    period: int = Field(..., ge=1900)
    remarks: Optional[str] = None
    entitlement_ceiling: Optional[Decimal] = Field(None, gt=0)


class GrantEntitlementsRequest(BaseModel):
    period: int = Field(..., ge=1900)
