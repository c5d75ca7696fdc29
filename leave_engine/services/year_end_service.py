"""
Year-end settlement - carry forward vs. forfeiture at the period boundary.

For every balance open in the period: carry min(remaining, max_carryover)
into the next period and forfeit the rest (everything forfeits when the leave
type has no policy or disallows carryover). Zero balances roll to the next
period without an audit entry.

A SettlementRun row marks each settled period. Settling a period twice raises
InvariantViolation and changes nothing.

Carried-forward days that outlive their expiry date are forfeited by
``lapse_expired_carry_forward``.
"""
import logging
from contextlib import ExitStack
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from leave_engine.core.exceptions import InvariantViolation, PermissionDenied, ValidationError
from leave_engine.models.leave import LeaveBalance
from leave_engine.models.policy import LeavePolicy
from leave_engine.models.settlement import SettlementRun
from leave_engine.services import ledger_service as ledger
from leave_engine.services.audit_service import log_audit
from leave_engine.services.leave_service import get_employee
from leave_engine.services.locks import balance_lock, settlement_lock
from leave_engine.services.notification_service import notify_best_effort
from leave_engine.utils.roles import ApproverRole, is_elevated

logger = logging.getLogger(__name__)

# Roles allowed to run settlement besides the elevated role
SETTLEMENT_ROLES = frozenset({ApproverRole.HR_DIRECTOR})


def get_settlement_run(db: Session, period: int) -> Optional[SettlementRun]:
    return db.query(SettlementRun).filter(SettlementRun.period == period).first()


def run_year_end_settlement(
    db: Session,
    period: int,
    actor_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Settle every balance open in ``period``.

    Args:
        db: Database session
        period: Leave year being closed
        actor_id: Employee running the job (None for the scheduled job)

    Returns:
        Summary with per-balance details and totals

    Raises:
        InvariantViolation: Period already settled
        PermissionDenied: Actor may not run settlement
    """
    if period < 1900:
        raise ValidationError(f"Invalid settlement period: {period}")

    with settlement_lock(period), ExitStack() as held:
        try:
            if actor_id is not None:
                actor = get_employee(db, actor_id)
                if actor.role not in SETTLEMENT_ROLES and not is_elevated(actor.role):
                    raise PermissionDenied("Only the HR Director or a system administrator may run year-end settlement")

            if get_settlement_run(db, period) is not None:
                raise InvariantViolation(f"Period {period} has already been settled", period=period)

            policies = {p.leave_type: p for p in db.query(LeavePolicy).all()}
            balance_ids = [
                row.id
                for row in db.query(LeaveBalance.id)
                .filter(LeaveBalance.period == period)
                .order_by(LeaveBalance.employee_id, LeaveBalance.leave_type)
                .all()
            ]

            total_carry = Decimal("0")
            total_forfeited = Decimal("0")
            settled = 0
            rolled = 0
            details = []

            for balance_id in balance_ids:
                bal = db.query(LeaveBalance).filter(LeaveBalance.id == balance_id).first()
                # Held until commit
                held.enter_context(balance_lock(bal.employee_id, bal.leave_type))
                bal = ledger.get_balance(db, bal.employee_id, bal.leave_type, for_update=True)
                if bal.period != period:
                    raise InvariantViolation(f"Balance {bal.id} moved out of period {period} during settlement")
                policy = policies.get(bal.leave_type)
                if policy is not None and not policy.active:
                    policy = None
                remaining = ledger.to_days(bal.remaining_days)

                if remaining == 0:
                    ledger.settle(db, bal, policy, actor_id=actor_id)
                    rolled += 1
                    continue

                result = ledger.settle(db, bal, policy, actor_id=actor_id)
                log_audit(
                    db,
                    event_type="YEAR_END_BALANCE_SETTLED",
                    actor_id=actor_id,
                    entity_type="leave_balance",
                    entity_id=bal.id,
                    before={"period": period, "remaining_days": remaining},
                    after={"period": bal.period, "remaining_days": bal.remaining_days, "expires_at": bal.expires_at},
                    meta={
                        "employee_id": bal.employee_id,
                        "leave_type": bal.leave_type,
                        "carry_forward_days": result.carry_forward_days,
                        "forfeited_days": result.forfeited_days,
                    },
                )
                settled += 1
                total_carry += result.carry_forward_days
                total_forfeited += result.forfeited_days
                details.append({
                    "employee_id": bal.employee_id,
                    "leave_type": bal.leave_type.value,
                    "remaining_days": remaining,
                    "carry_forward_days": result.carry_forward_days,
                    "forfeited_days": result.forfeited_days,
                })

            run = SettlementRun(
                period=period,
                actor_id=actor_id,
                balances_settled=settled,
                total_carry_forward=total_carry,
                total_forfeited=total_forfeited,
            )
            db.add(run)
            db.flush()

            summary = {
                "period": period,
                "next_period": period + 1,
                "balances_settled": settled,
                "zero_balances_rolled": rolled,
                "total_carry_forward": total_carry,
                "total_forfeited": total_forfeited,
            }
            log_audit(
                db,
                event_type="YEAR_END_SETTLEMENT_RUN",
                actor_id=actor_id,
                entity_type="settlement_run",
                entity_id=run.id,
                after=summary,
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

    logger.info(
        "year-end settlement complete: period=%s settled=%s rolled=%s carry_forward=%s forfeited=%s",
        period, settled, rolled, total_carry, total_forfeited,
    )
    notify_best_effort(None, "year_end.settled", {"period": period, "balances_settled": settled})
    summary["details"] = details
    return summary


def lapse_expired_carry_forward(
    db: Session,
    as_of: Optional[date] = None,
    actor_id: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Forfeit carried-forward days whose expiry date has passed on ``as_of``.

    Deductions lapse expired days on their own; this job clears the rest so
    balances read correctly. Each lapse commits with its own audit entry.

    Raises:
        PermissionDenied: Actor may not run settlement jobs
    """
    as_of = as_of or date.today()
    if actor_id is not None:
        actor = get_employee(db, actor_id)
        if actor.role not in SETTLEMENT_ROLES and not is_elevated(actor.role):
            raise PermissionDenied("Only the HR Director or a system administrator may lapse carried-forward days")

    due = (
        db.query(LeaveBalance.employee_id, LeaveBalance.leave_type)
        .filter(LeaveBalance.expires_at.isnot(None), LeaveBalance.expires_at < as_of)
        .order_by(LeaveBalance.employee_id, LeaveBalance.leave_type)
        .all()
    )
    lapsed_balances = 0
    total_lapsed = Decimal("0")
    for employee_id, leave_type in due:
        with balance_lock(employee_id, leave_type):
            try:
                bal = ledger.get_balance(db, employee_id, leave_type, for_update=True)
                lapsed = ledger.lapse_carry_forward(db, bal, as_of=as_of, actor_id=actor_id)
                db.commit()
            except Exception:
                db.rollback()
                raise
        if lapsed > 0:
            lapsed_balances += 1
            total_lapsed += lapsed

    logger.info(
        "carry-forward lapse complete: as_of=%s balances=%s lapsed=%s",
        as_of, lapsed_balances, total_lapsed,
    )
    return {"as_of": as_of, "balances_lapsed": lapsed_balances, "total_lapsed": total_lapsed}
