"""
Tests for year-end settlement
"""
from datetime import date
from decimal import Decimal

import pytest

from leave_engine.core.exceptions import InvariantViolation, PermissionDenied
from leave_engine.models.audit_log import AuditLog
from leave_engine.models.leave import LeaveBalance, LeaveTransaction, LeaveType
from leave_engine.models.settlement import SettlementRun
from leave_engine.services import ledger_service as ledger
from leave_engine.services.approval_service import decide, reverse_approval
from leave_engine.services.leave_service import create_leave_request
from leave_engine.services.year_end_service import lapse_expired_carry_forward, run_year_end_settlement
from leave_engine.tests.helpers import PERIOD


def _balance(db, employee, leave_type=LeaveType.ANNUAL):
    return db.query(LeaveBalance).filter(
        LeaveBalance.employee_id == employee.id,
        LeaveBalance.leave_type == leave_type,
    ).one()


def test_settlement_carries_up_to_cap_and_forfeits_rest(db, staff, org, policies, grant):
    grant(staff, 12)

    summary = run_year_end_settlement(db, PERIOD, actor_id=org.hr_director.id)

    assert summary["balances_settled"] == 1
    assert summary["total_carry_forward"] == Decimal("5")
    assert summary["total_forfeited"] == Decimal("7")
    (detail,) = summary["details"]
    assert detail["employee_id"] == staff.id
    assert detail["remaining_days"] == Decimal("12")

    bal = _balance(db, staff)
    assert bal.period == PERIOD + 1
    assert bal.remaining_days == Decimal("5")
    assert bal.carry_forward_days == Decimal("5")
    assert bal.expires_at == date(PERIOD + 1, 4, 1)


def test_settlement_cannot_run_twice(db, staff, org, policies, grant):
    grant(staff, 12)
    run_year_end_settlement(db, PERIOD, actor_id=org.hr_director.id)
    transactions = db.query(LeaveTransaction).count()

    with pytest.raises(InvariantViolation):
        run_year_end_settlement(db, PERIOD, actor_id=org.hr_director.id)

    assert _balance(db, staff).remaining_days == Decimal("5")
    assert db.query(LeaveTransaction).count() == transactions
    assert db.query(SettlementRun).count() == 1


def test_type_without_carryover_forfeits_everything(db, staff, policies, grant):
    grant(staff, 12, leave_type=LeaveType.SICK)

    summary = run_year_end_settlement(db, PERIOD)

    assert summary["total_carry_forward"] == Decimal("0")
    assert summary["total_forfeited"] == Decimal("12")
    bal = _balance(db, staff, LeaveType.SICK)
    assert bal.remaining_days == Decimal("0")
    assert bal.period == PERIOD + 1


def test_zero_balance_rolls_without_audit(db, staff, policies, grant):
    grant(staff, 3)
    ledger.deduct(db, staff.id, LeaveType.ANNUAL, 3)
    db.commit()

    summary = run_year_end_settlement(db, PERIOD)

    assert summary["balances_settled"] == 0
    assert summary["zero_balances_rolled"] == 1
    assert _balance(db, staff).period == PERIOD + 1
    assert db.query(AuditLog).filter(AuditLog.event_type == "YEAR_END_BALANCE_SETTLED").count() == 0
    assert db.query(AuditLog).filter(AuditLog.event_type == "YEAR_END_SETTLEMENT_RUN").count() == 1


def test_balances_of_other_periods_are_untouched(db, staff, director, policies, grant):
    grant(staff, 12)
    grant(director, 8, period=PERIOD + 1)

    run_year_end_settlement(db, PERIOD)

    bal = _balance(db, director)
    assert bal.period == PERIOD + 1
    assert bal.remaining_days == Decimal("8")


def test_each_settled_balance_is_audited(db, staff, director, org, policies, grant):
    grant(staff, 12)
    grant(director, 2)

    run_year_end_settlement(db, PERIOD, actor_id=org.hr_director.id)

    entries = db.query(AuditLog).filter(AuditLog.event_type == "YEAR_END_BALANCE_SETTLED").all()
    assert len(entries) == 2
    by_employee = {e.meta_json["employee_id"]: e for e in entries}
    assert Decimal(by_employee[staff.id].meta_json["forfeited_days"]) == Decimal("7")
    assert Decimal(by_employee[director.id].after_state["remaining_days"]) == Decimal("2")
    assert all(e.actor_id == org.hr_director.id for e in entries)


def test_only_hr_director_or_admin_may_settle(db, staff, org, policies, grant):
    grant(staff, 12)

    with pytest.raises(PermissionDenied):
        run_year_end_settlement(db, PERIOD, actor_id=org.hr_officer.id)

    assert _balance(db, staff).period == PERIOD
    assert db.query(SettlementRun).count() == 0
    run_year_end_settlement(db, PERIOD, actor_id=org.admin.id)
    assert _balance(db, staff).period == PERIOD + 1


def test_next_period_can_be_settled_after_carry_forward(db, staff, policies, grant):
    grant(staff, 12)
    run_year_end_settlement(db, PERIOD)
    grant(staff, 21, period=PERIOD + 1)

    summary = run_year_end_settlement(db, PERIOD + 1)

    assert summary["total_carry_forward"] == Decimal("5")
    assert summary["total_forfeited"] == Decimal("21")
    assert _balance(db, staff).period == PERIOD + 2


def test_reversal_after_new_year_grant_restores_exactly(db, director, org, policies, grant):
    grant(director, 21, entitlement_ceiling=21)
    run_year_end_settlement(db, PERIOD, actor_id=org.hr_director.id)
    grant(director, 21, period=PERIOD + 1)
    assert _balance(db, director).entitlement_ceiling == Decimal("26")

    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, date(PERIOD + 1, 3, 1), date(PERIOD + 1, 3, 5))
    decide(db, leave.id, 1, "approve", org.hr_officer.id)
    decide(db, leave.id, 2, "approve", org.chief_director.id)
    reverse_approval(db, leave.id, org.admin.id, "Approved in error, staff recalled")

    deduction, restoration = (
        db.query(LeaveTransaction)
        .filter(LeaveTransaction.leave_request_id == leave.id)
        .order_by(LeaveTransaction.id)
        .all()
    )
    assert deduction.action == "DEDUCT"
    assert restoration.action == "RESTORE"
    assert restoration.delta_days == -deduction.delta_days == Decimal("5")
    assert _balance(db, director).remaining_days == deduction.balance_before


def test_lapse_job_forfeits_expired_carry_forward(db, staff, director, org, policies, grant):
    grant(staff, 12)
    grant(director, 3)
    run_year_end_settlement(db, PERIOD, actor_id=org.hr_director.id)

    untouched = lapse_expired_carry_forward(db, as_of=date(PERIOD + 1, 4, 1), actor_id=org.hr_director.id)
    assert untouched["balances_lapsed"] == 0

    summary = lapse_expired_carry_forward(db, as_of=date(PERIOD + 1, 4, 2), actor_id=org.hr_director.id)

    assert summary["balances_lapsed"] == 2
    assert summary["total_lapsed"] == Decimal("8")
    for employee in (staff, director):
        bal = _balance(db, employee)
        assert bal.remaining_days == Decimal("0")
        assert bal.expires_at is None
    entries = db.query(AuditLog).filter(AuditLog.event_type == "LEDGER_CARRY_FORWARD_LAPSED").all()
    assert {e.meta_json["employee_id"] for e in entries} == {staff.id, director.id}

    again = lapse_expired_carry_forward(db, as_of=date(PERIOD + 1, 5, 1))
    assert again["balances_lapsed"] == 0


def test_lapse_job_requires_hr_director(db, staff, org, policies, grant):
    grant(staff, 12)
    run_year_end_settlement(db, PERIOD)

    with pytest.raises(PermissionDenied):
        lapse_expired_carry_forward(db, as_of=date(PERIOD + 1, 4, 2), actor_id=org.hr_officer.id)
    assert _balance(db, staff).remaining_days == Decimal("5")
