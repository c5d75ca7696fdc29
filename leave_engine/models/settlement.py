"""
Year-end settlement marker - one row per settled period
"""
from sqlalchemy import Column, Integer, DateTime, Numeric
from leave_engine.db.base import Base
from leave_engine.utils.datetime_utils import now_utc


class SettlementRun(Base):
    __tablename__ = "settlement_runs"

    id = Column(Integer, primary_key=True, index=True)
    period = Column(Integer, nullable=False, unique=True)
    actor_id = Column(Integer, nullable=True)
    balances_settled = Column(Integer, nullable=False, default=0)
    total_carry_forward = Column(Numeric(10, 2), nullable=False, default=0)
    total_forfeited = Column(Numeric(10, 2), nullable=False, default=0)
    settled_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
