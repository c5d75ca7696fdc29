"""
Balance ledger - the only writer of LeaveBalance values.

One balance row per (employee_id, leave_type). Every movement appends a
LeaveTransaction with the balance before and after it.

- deduct: check remaining >= days and subtract in one step, else InsufficientBalanceError.
  Unused carried-forward days are spent first.
- restore: add back exactly what was deducted; never above entitlement_ceiling.
- credit: entitlement grant (seed/accrual); raises an existing ceiling by the days granted.
- carry_forward / settle: period boundary; min(remaining, max_carryover) carries, the rest forfeits.
- lapse_carry_forward: unused carried days forfeit once ``expires_at`` has passed.

``carry_forward_days`` on a balance is the carried amount not yet spent.

Functions here flush but never commit. Callers hold ``balance_lock`` for the
key and commit while still holding it; the row itself is read with
``SELECT ... FOR UPDATE``.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from leave_engine.core.config import settings
from leave_engine.core.exceptions import (
    InsufficientBalanceError,
    InvariantViolation,
    ValidationError,
)
from leave_engine.models.leave import (
    LeaveBalance,
    LeaveTransaction,
    LeaveTransactionAction,
    LeaveType,
)
from leave_engine.models.policy import LeavePolicy
from leave_engine.services.audit_service import log_audit
from leave_engine.utils.datetime_utils import add_months, now_utc

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class SettlementResult:
    carry_forward_days: Decimal
    forfeited_days: Decimal


def to_days(value) -> Decimal:
    """Normalize a day count to a 2-place Decimal."""
    if isinstance(value, Decimal):
        d = value
    else:
        d = Decimal(str(value))
    return d.quantize(Decimal("0.01"))


def _require_positive(days: Decimal, operation: str) -> None:
    if days <= ZERO:
        raise ValidationError(f"{operation} days must be greater than 0", days=str(days))


def get_balance(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    for_update: bool = False,
) -> Optional[LeaveBalance]:
    """
    Read the balance row for (employee_id, leave_type).

    With ``for_update`` the row is re-read from the database under a row lock,
    so a stale identity-map copy never feeds a check-then-mutate.
    """
    q = db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.leave_type == leave_type,
    )
    if for_update:
        q = q.populate_existing().with_for_update()
    return q.first()


def get_or_create_balance(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    period: int,
) -> LeaveBalance:
    bal = get_balance(db, employee_id, leave_type, for_update=True)
    if bal is None:
        bal = LeaveBalance(
            employee_id=employee_id,
            leave_type=leave_type,
            period=period,
            remaining_days=ZERO,
            carry_forward_days=ZERO,
        )
        db.add(bal)
        db.flush()
    return bal


def expired_carry_forward(bal: LeaveBalance, as_of: Optional[date] = None) -> Decimal:
    """Unused carried-forward days that have passed ``expires_at`` on ``as_of`` (default today)."""
    as_of = as_of or date.today()
    if bal.expires_at is None or as_of <= bal.expires_at:
        return ZERO
    return min(to_days(bal.carry_forward_days or 0), to_days(bal.remaining_days))


def available_days(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    as_of: Optional[date] = None,
) -> Decimal:
    """Spendable days: remaining balance less any carried days already expired."""
    bal = get_balance(db, employee_id, leave_type)
    if bal is None:
        return ZERO
    return to_days(bal.remaining_days) - expired_carry_forward(bal, as_of)


def _log_transaction(
    db: Session,
    bal: LeaveBalance,
    action: LeaveTransactionAction,
    delta_days: Decimal,
    balance_before: Decimal,
    balance_after: Decimal,
    period: Optional[int] = None,
    leave_request_id: Optional[int] = None,
    encashment_id: Optional[int] = None,
    remarks: Optional[str] = None,
    actor_id: Optional[int] = None,
) -> LeaveTransaction:
    t = LeaveTransaction(
        employee_id=bal.employee_id,
        leave_type=bal.leave_type,
        period=period if period is not None else bal.period,
        action=action.value,
        delta_days=delta_days,
        balance_before=balance_before,
        balance_after=balance_after,
        leave_request_id=leave_request_id,
        encashment_id=encashment_id,
        remarks=remarks,
        action_by_employee_id=actor_id,
        created_at=now_utc(),
    )
    db.add(t)
    return t


def deduct(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days,
    leave_request_id: Optional[int] = None,
    encashment_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
    action: LeaveTransactionAction = LeaveTransactionAction.DEDUCT,
    as_of: Optional[date] = None,
) -> LeaveTransaction:
    """
    Subtract days from the remaining balance.

    Expired carried-forward days lapse first (see ``lapse_carry_forward``);
    a refused deduction rolls back with the caller, lapse included.

    Raises:
        ValidationError: days not positive
        InsufficientBalanceError: no balance row, or remaining < days (nothing changes)
    """
    days = to_days(days)
    _require_positive(days, "Deduct")
    bal = get_balance(db, employee_id, leave_type, for_update=True)
    if bal is not None:
        lapse_carry_forward(db, bal, as_of=as_of, actor_id=actor_id)
    available = to_days(bal.remaining_days) if bal is not None else ZERO
    if bal is None or available < days:
        logger.info(
            "ledger deduct refused: employee_id=%s leave_type=%s available=%s requested=%s",
            employee_id, leave_type.value, available, days,
        )
        raise InsufficientBalanceError(employee_id, leave_type, available, days)

    before = available
    bal.remaining_days = before - days
    carried = to_days(bal.carry_forward_days or 0)
    if carried > ZERO:
        bal.carry_forward_days = max(ZERO, carried - days)
    t = _log_transaction(
        db, bal, action, -days, before, bal.remaining_days,
        leave_request_id=leave_request_id, encashment_id=encashment_id,
        remarks=remarks, actor_id=actor_id,
    )
    db.flush()
    logger.info(
        "ledger %s: employee_id=%s leave_type=%s days=%s before=%s after=%s",
        action.value.lower(), employee_id, leave_type.value, days, before, bal.remaining_days,
    )
    return t


def restore(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days,
    leave_request_id: Optional[int] = None,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
) -> LeaveTransaction:
    """
    Add previously deducted days back. No clamping.

    Raises:
        InvariantViolation: no balance row to restore into, or the result would exceed entitlement_ceiling
    """
    days = to_days(days)
    _require_positive(days, "Restore")
    bal = get_balance(db, employee_id, leave_type, for_update=True)
    if bal is None:
        raise InvariantViolation(
            f"No {leave_type.value} balance for employee {employee_id} to restore into",
            employee_id=employee_id,
        )
    before = to_days(bal.remaining_days)
    after = before + days
    if bal.entitlement_ceiling is not None and after > to_days(bal.entitlement_ceiling):
        raise InvariantViolation(
            f"Restoring {days} days would exceed the {leave_type.value} entitlement ceiling "
            f"of {bal.entitlement_ceiling} (current {before})",
            employee_id=employee_id,
        )
    bal.remaining_days = after
    t = _log_transaction(
        db, bal, LeaveTransactionAction.RESTORE, days, before, after,
        leave_request_id=leave_request_id, remarks=remarks, actor_id=actor_id,
    )
    db.flush()
    logger.info(
        "ledger restore: employee_id=%s leave_type=%s days=%s before=%s after=%s",
        employee_id, leave_type.value, days, before, after,
    )
    return t


def credit(
    db: Session,
    employee_id: int,
    leave_type: LeaveType,
    days,
    period: int,
    actor_id: Optional[int] = None,
    remarks: Optional[str] = None,
    entitlement_ceiling=None,
) -> LeaveTransaction:
    """
    Grant entitlement days. Creates the balance row on first credit.

    An explicit ``entitlement_ceiling`` replaces the current one and must cover
    the resulting balance. Without one, an existing ceiling grows by ``days``.
    """
    days = to_days(days)
    _require_positive(days, "Credit")
    bal = get_or_create_balance(db, employee_id, leave_type, period)
    if bal.period != period:
        raise ValidationError(
            f"{leave_type.value} balance for employee {employee_id} is open for period {bal.period}, not {period}",
        )
    before = to_days(bal.remaining_days)
    bal.remaining_days = before + days
    if entitlement_ceiling is not None:
        ceiling = to_days(entitlement_ceiling)
        if ceiling < bal.remaining_days:
            raise ValidationError(
                f"Entitlement ceiling {ceiling} is below the resulting balance {bal.remaining_days}",
            )
        bal.entitlement_ceiling = ceiling
    elif bal.entitlement_ceiling is not None:
        bal.entitlement_ceiling = to_days(bal.entitlement_ceiling) + days
    t = _log_transaction(
        db, bal, LeaveTransactionAction.CREDIT, days, before, bal.remaining_days,
        remarks=remarks, actor_id=actor_id,
    )
    db.flush()
    logger.info(
        "ledger credit: employee_id=%s leave_type=%s period=%s days=%s after=%s",
        employee_id, leave_type.value, period, days, bal.remaining_days,
    )
    return t


def compute_settlement(remaining, policy: Optional[LeavePolicy]) -> SettlementResult:
    """
    Pure split of a remaining balance into carried and forfeited days.

    No policy, or carryover not allowed: everything forfeits.
    """
    remaining = to_days(remaining)
    if remaining < ZERO:
        raise InvariantViolation(f"Negative balance {remaining} cannot be settled")
    if policy is None or not policy.carryover_allowed:
        return SettlementResult(carry_forward_days=ZERO, forfeited_days=remaining)
    cap = to_days(policy.max_carryover or 0)
    carry = min(remaining, cap)
    return SettlementResult(carry_forward_days=carry, forfeited_days=max(ZERO, remaining - cap))


def _expiry_for(policy: Optional[LeavePolicy], start: date) -> Optional[date]:
    months = None
    if policy is not None and policy.expires_after_months is not None:
        months = policy.expires_after_months
    elif settings.DEFAULT_ENTITLEMENT_EXPIRY_MONTHS is not None:
        months = settings.DEFAULT_ENTITLEMENT_EXPIRY_MONTHS
    if months is None:
        return None
    return add_months(start, months)


def carry_forward(
    db: Session,
    bal: LeaveBalance,
    days,
    policy: Optional[LeavePolicy],
    actor_id: Optional[int] = None,
) -> SettlementResult:
    """
    Move ``bal`` into the next period, carrying at most ``max_carryover`` of ``days``.

    Whatever of the remaining balance is not carried forfeits. The row keeps its
    identity; ``period`` advances by one and ``remaining_days`` becomes the
    carried amount. An entitlement ceiling restarts at the carried amount.
    """
    days = to_days(days)
    before = to_days(bal.remaining_days)
    if days > before:
        raise InvariantViolation(
            f"Cannot carry {days} days forward from a balance of {before}",
            employee_id=bal.employee_id,
        )
    split = compute_settlement(days, policy)
    carried = split.carry_forward_days
    forfeited = before - carried
    old_period = bal.period
    next_period = old_period + 1

    if forfeited > ZERO:
        _log_transaction(
            db, bal, LeaveTransactionAction.FORFEIT, -forfeited, before, carried,
            period=old_period, remarks=f"Year-end forfeiture for {old_period}", actor_id=actor_id,
        )
    if carried > ZERO:
        _log_transaction(
            db, bal, LeaveTransactionAction.CARRY_FORWARD, carried, ZERO, carried,
            period=next_period, remarks=f"Carry forward from {old_period}", actor_id=actor_id,
        )

    bal.remaining_days = carried
    bal.carry_forward_days = carried
    bal.period = next_period
    bal.expires_at = _expiry_for(policy, date(next_period, 1, 1)) if carried > ZERO else None
    if bal.entitlement_ceiling is not None:
        bal.entitlement_ceiling = carried
    db.flush()
    logger.info(
        "ledger carry_forward: employee_id=%s leave_type=%s period=%s carried=%s forfeited=%s",
        bal.employee_id, bal.leave_type.value, old_period, carried, forfeited,
    )
    return SettlementResult(carry_forward_days=carried, forfeited_days=forfeited)


def lapse_carry_forward(
    db: Session,
    bal: LeaveBalance,
    as_of: Optional[date] = None,
    actor_id: Optional[int] = None,
) -> Decimal:
    """
    Forfeit unused carried-forward days once ``expires_at`` has passed.

    Writes a FORFEIT transaction and an audit entry in the caller's
    transaction, lowers an entitlement ceiling by the lapsed days and clears
    the expiry. Returns the days lapsed (0 when nothing was due).
    """
    as_of = as_of or date.today()
    if bal.expires_at is None or as_of <= bal.expires_at:
        return ZERO
    lapsed = expired_carry_forward(bal, as_of)
    expired_on = bal.expires_at
    before = to_days(bal.remaining_days)
    if lapsed > ZERO:
        bal.remaining_days = before - lapsed
        _log_transaction(
            db, bal, LeaveTransactionAction.FORFEIT, -lapsed, before, bal.remaining_days,
            remarks=f"Carried-forward days expired on {expired_on}", actor_id=actor_id,
        )
        if bal.entitlement_ceiling is not None:
            bal.entitlement_ceiling = max(ZERO, to_days(bal.entitlement_ceiling) - lapsed)
    bal.carry_forward_days = ZERO
    bal.expires_at = None
    db.flush()
    if lapsed > ZERO:
        log_audit(
            db,
            event_type="LEDGER_CARRY_FORWARD_LAPSED",
            actor_id=actor_id,
            entity_type="leave_balance",
            entity_id=bal.id,
            before={"remaining_days": before, "expires_at": expired_on},
            after={"remaining_days": bal.remaining_days},
            meta={"employee_id": bal.employee_id, "leave_type": bal.leave_type, "lapsed_days": lapsed},
        )
    logger.info(
        "ledger lapse: employee_id=%s leave_type=%s expired_on=%s lapsed=%s",
        bal.employee_id, bal.leave_type.value, expired_on, lapsed,
    )
    return lapsed


def settle(
    db: Session,
    bal: LeaveBalance,
    policy: Optional[LeavePolicy],
    actor_id: Optional[int] = None,
) -> SettlementResult:
    """Settle the whole remaining balance at the period boundary."""
    return carry_forward(db, bal, bal.remaining_days, policy, actor_id=actor_id)


def get_transactions(
    db: Session,
    employee_id: int,
    leave_type: Optional[LeaveType] = None,
    period: Optional[int] = None,
    limit: int = 100,
) -> List[LeaveTransaction]:
    q = db.query(LeaveTransaction).filter(LeaveTransaction.employee_id == employee_id)
    if leave_type is not None:
        q = q.filter(LeaveTransaction.leave_type == leave_type)
    if period is not None:
        q = q.filter(LeaveTransaction.period == period)
    return q.order_by(LeaveTransaction.id.desc()).limit(limit).all()


def list_balances(db: Session, employee_id: int) -> List[LeaveBalance]:
    return (
        db.query(LeaveBalance)
        .filter(LeaveBalance.employee_id == employee_id)
        .order_by(LeaveBalance.leave_type)
        .all()
    )
