"""
Year-end settlement schemas
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class YearEndRequest(BaseModel):
    period: int = Field(..., ge=1900, description="Leave year being closed")


class SettlementDetailOut(BaseModel):
    employee_id: int
    leave_type: str
    remaining_days: Decimal
    carry_forward_days: Decimal
    forfeited_days: Decimal


class YearEndOut(BaseModel):
    period: int
    next_period: int
    balances_settled: int
    zero_balances_rolled: int
    total_carry_forward: Decimal
    total_forfeited: Decimal
    details: List[SettlementDetailOut] = []


class LapseRequest(BaseModel):
    as_of: Optional[date] = Field(None, description="Lapse carried days expired before this date (default today)")


class LapseOut(BaseModel):
    as_of: date
    balances_lapsed: int
    total_lapsed: Decimal
