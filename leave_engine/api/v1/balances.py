"""
Leave balance endpoints (ledger reads and entitlement grants)
"""
from typing import Any, Dict
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from leave_engine.core.deps import get_db, get_current_actor, require_roles
from leave_engine.core.exceptions import PermissionDenied
from leave_engine.models.employee import Employee
from leave_engine.schemas.balance import (
    BalanceOut,
    BalanceSummaryOut,
    CreditRequest,
    GrantEntitlementsRequest,
)
from leave_engine.services import balance_service, ledger_service
from leave_engine.utils.roles import ApproverRole

router = APIRouter()


@router.get("/{employee_id}", response_model=BalanceSummaryOut)
def get_balances_endpoint(
    employee_id: int,
    limit: int = Query(100, ge=1, le=1000, description="Most recent ledger transactions to include"),
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(get_current_actor),
):
    """
    Balances for one employee with recent ledger history

    Employees may read their own balances; HR, the Chief Director and auditors may read anyone's.
    """
    if not balance_service.can_view_balance(current_actor, employee_id):
        raise PermissionDenied("Not allowed to view this employee's balances")
    balances = balance_service.get_balance_summary(db, employee_id)
    transactions = ledger_service.get_transactions(db, employee_id, limit=limit)
    return BalanceSummaryOut(
        employee_id=employee_id,
        balances=[BalanceOut.model_validate(b) for b in balances],
        transactions=transactions,
    )


@router.post("/credit", response_model=BalanceOut, status_code=201)
def credit_endpoint(
    payload: CreditRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(require_roles(ApproverRole.HR_OFFICER, ApproverRole.HR_DIRECTOR)),
):
    """Grant entitlement days to one employee for a leave year"""
    return balance_service.credit_entitlement(
        db,
        payload.employee_id,
        payload.leave_type,
        payload.days,
        payload.period,
        actor_id=current_actor.id,
        remarks=payload.remarks,
        entitlement_ceiling=payload.entitlement_ceiling,
    )


@router.post("/grant")
def grant_endpoint(
    payload: GrantEntitlementsRequest,
    db: Session = Depends(get_db),
    current_actor: Employee = Depends(require_roles(ApproverRole.HR_DIRECTOR)),
) -> Dict[str, Any]:
    """Credit every active employee with each policy's annual entitlement"""
    return balance_service.grant_annual_entitlements(db, payload.period, actor_id=current_actor.id)
