"""
Database models
"""
from leave_engine.models.employee import Employee, EmploymentStatus
from leave_engine.models.audit_log import AuditLog
from leave_engine.models.leave import (
    LeaveRequest,
    ApprovalStep,
    LeaveBalance,
    LeaveTransaction,
    LeaveType,
    LeaveStatus,
    StepStatus,
    Decision,
    LeaveTransactionAction,
    BALANCE_EXEMPT_LEAVE_TYPES,
)
from leave_engine.models.policy import LeavePolicy
from leave_engine.models.encashment import (
    EncashmentRequest,
    EncashmentReason,
    EncashmentStatus,
    EncashmentAction,
)
from leave_engine.models.settlement import SettlementRun
from leave_engine.db.immutability import register_immutability_listeners

register_immutability_listeners()

__all__ = [
    "Employee",
    "EmploymentStatus",
    "AuditLog",
    "LeaveRequest",
    "ApprovalStep",
    "LeaveBalance",
    "LeaveTransaction",
    "LeaveType",
    "LeaveStatus",
    "StepStatus",
    "Decision",
    "LeaveTransactionAction",
    "BALANCE_EXEMPT_LEAVE_TYPES",
    "LeavePolicy",
    "EncashmentRequest",
    "EncashmentReason",
    "EncashmentStatus",
    "EncashmentAction",
    "SettlementRun",
]
