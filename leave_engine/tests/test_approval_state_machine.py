"""
Tests for the approval state machine: sequencing, ledger effects, locking and reversal
"""
from decimal import Decimal

import pytest

from leave_engine.core.config import settings
from leave_engine.core.exceptions import (
    AlreadyFinalizedError,
    ComplianceError,
    InsufficientBalanceError,
    InvariantViolation,
    PermissionDenied,
    SequencingError,
    ValidationError,
)
from leave_engine.models.audit_log import AuditLog
from leave_engine.models.leave import LeaveStatus, LeaveTransaction, LeaveType, StepStatus
from leave_engine.services import approval_service, ledger_service as ledger
from leave_engine.services.approval_service import compute_aggregate_status, decide, reverse_approval
from leave_engine.services.compliance_service import ComplianceResult
from leave_engine.services.leave_service import create_leave_request, get_leave_request
from leave_engine.tests.helpers import REJECTION_COMMENT, WEEK_1, WEEK_2, WEEK_3


def _balance(db, employee):
    return ledger.available_days(db, employee.id, LeaveType.ANNUAL)


def _transaction_count(db, employee):
    return db.query(LeaveTransaction).filter(LeaveTransaction.employee_id == employee.id).count()


def _approve_all(db, leave, approvers):
    for level, approver in enumerate(approvers, start=1):
        leave = decide(db, leave.id, level, "approve", approver.id)
    return leave


@pytest.fixture
def standard_approvers(org):
    return [org.supervisor, org.unit_head, org.hod, org.hr_officer, org.chief_director]


# Aggregate status


@pytest.mark.parametrize(
    "statuses, recorded, expected",
    [
        ([], False, LeaveStatus.PENDING),
        (["pending", "pending"], False, LeaveStatus.PENDING),
        (["approved", "pending"], False, LeaveStatus.PENDING),
        (["approved", "approved"], False, LeaveStatus.APPROVED),
        (["approved", "skipped"], False, LeaveStatus.APPROVED),
        (["approved"], True, LeaveStatus.RECORDED),
        (["approved", "rejected", "skipped"], False, LeaveStatus.REJECTED),
        (["rejected"], True, LeaveStatus.REJECTED),
    ],
)
def test_compute_aggregate_status(statuses, recorded, expected):
    assert compute_aggregate_status(statuses, recorded) == expected


def test_compute_aggregate_status_is_deterministic():
    statuses = [StepStatus.APPROVED, StepStatus.PENDING, StepStatus.PENDING]
    assert {compute_aggregate_status(statuses) for _ in range(5)} == {LeaveStatus.PENDING}


# Scenarios


def test_two_level_approval_deducts_once(db, director, org, policies, grant):
    """Balance 10, request 5, both levels approve: approved with 5 left"""
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)

    leave = decide(db, leave.id, 1, "approve", org.hr_officer.id)
    assert leave.status == LeaveStatus.PENDING
    assert _balance(db, director) == Decimal("10")

    leave = decide(db, leave.id, 2, "approve", org.chief_director.id)
    assert leave.status == LeaveStatus.APPROVED
    assert leave.locked is True
    assert leave.deducted_days == Decimal("5")
    assert _balance(db, director) == Decimal("5")

    deductions = (
        db.query(LeaveTransaction)
        .filter(LeaveTransaction.leave_request_id == leave.id, LeaveTransaction.action == "DEDUCT")
        .all()
    )
    assert len(deductions) == 1


def test_final_approval_fails_when_balance_dropped(db, director, org, policies, grant):
    """Balance drops to 3 before level 2: InsufficientBalanceError, request still pending at level 2"""
    grant(director, 10)
    first = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    other = create_leave_request(db, director.id, LeaveType.ANNUAL, WEEK_2[0], WEEK_3[1], day_count=7)
    decide(db, first.id, 1, "approve", org.hr_officer.id)

    _approve_all(db, other, [org.hr_officer, org.chief_director])
    assert _balance(db, director) == Decimal("3")

    with pytest.raises(InsufficientBalanceError):
        decide(db, first.id, 2, "approve", org.chief_director.id)

    first = get_leave_request(db, first.id)
    assert _balance(db, director) == Decimal("3")
    assert first.status == LeaveStatus.PENDING
    assert first.locked is False
    assert first.deducted_days is None
    assert [s.status for s in first.approval_steps] == [StepStatus.APPROVED, StepStatus.PENDING]
    assert approval_service.get_next_pending_step(first).level == 2




def test_most_senior_grade_is_recorded(db, org, policies, grant):
    """Chief Director's chain ends at recorded, not approved"""
    org.chief_director.acting_officer_id = org.hr_officer.id
    db.commit()
    grant(org.chief_director, 10)

    leave = create_leave_request(db, org.chief_director.id, LeaveType.ANNUAL, *WEEK_1)
    assert leave.recorded_chain is True

    leave = decide(db, leave.id, 1, "approve", org.hr_director.id)
    assert leave.status == LeaveStatus.RECORDED
    assert leave.locked is True
    assert _balance(db, org.chief_director) == Decimal("5")


def test_full_standard_chain(db, staff, policies, grant, standard_approvers):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    leave = _approve_all(db, leave, standard_approvers)

    assert leave.status == LeaveStatus.APPROVED
    assert all(s.status == StepStatus.APPROVED for s in leave.approval_steps)
    assert [s.approver_id for s in leave.approval_steps] == [a.id for a in standard_approvers]
    assert _balance(db, staff) == Decimal("5")


# Sequencing and authorization


def test_level_cannot_be_decided_before_lower_level(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    with pytest.raises(SequencingError):
        decide(db, leave.id, 2, "approve", org.unit_head.id)

    leave = get_leave_request(db, leave.id)
    assert all(s.status == StepStatus.PENDING for s in leave.approval_steps)


def test_level_cannot_be_decided_twice(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)
    decide(db, leave.id, 1, "approve", org.supervisor.id)

    with pytest.raises(SequencingError):
        decide(db, leave.id, 1, "approve", org.supervisor.id)


def test_unknown_level(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)
    with pytest.raises(ValidationError):
        decide(db, leave.id, 9, "approve", org.admin.id)


def test_actor_must_hold_level_role(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    with pytest.raises(PermissionDenied) as exc_info:
        decide(db, leave.id, 1, "approve", org.hod.id)
    assert exc_info.value.kind == "PermissionError"


def test_supervisor_level_bound_to_assigned_supervisor(db, staff, make_employee, policies, grant):
    from leave_engine.utils.roles import ApproverRole

    other_supervisor = make_employee(role=ApproverRole.SUPERVISOR, position="Principal Officer")
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    with pytest.raises(PermissionDenied):
        decide(db, leave.id, 1, "approve", other_supervisor.id)


def test_elevated_role_may_decide_any_level(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    leave = decide(db, leave.id, 1, "approve", org.admin.id)
    assert leave.approval_steps[0].approver_id == org.admin.id


def test_no_self_approval_even_when_elevated(db, org, make_employee, policies, grant):
    from leave_engine.utils.roles import ApproverRole

    admin_applicant = make_employee(role=ApproverRole.SYSTEM_ADMIN, immediate_supervisor_id=org.supervisor.id)
    grant(admin_applicant, 10)
    leave = create_leave_request(db, admin_applicant.id, LeaveType.ANNUAL, *WEEK_1)

    with pytest.raises(PermissionDenied):
        decide(db, leave.id, 1, "approve", admin_applicant.id)


def test_inactive_approver_refused(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)
    org.supervisor.active = False
    db.commit()

    with pytest.raises(PermissionDenied):
        decide(db, leave.id, 1, "approve", org.supervisor.id)


# Rejection


def test_rejection_requires_comment(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    for comments in (None, "", "too short"):
        with pytest.raises(ValidationError):
            decide(db, leave.id, 1, "reject", org.supervisor.id, comments=comments)

    leave = get_leave_request(db, leave.id)
    assert leave.status == LeaveStatus.PENDING


def test_rejection_comment_length_from_settings(db, staff, org, policies, grant, monkeypatch):
    monkeypatch.setattr(settings, "REJECTION_COMMENT_MIN_LENGTH", 3)
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    leave = decide(db, leave.id, 1, "reject", org.supervisor.id, comments="No.")
    assert leave.status == LeaveStatus.REJECTED


def test_rejection_skips_remaining_levels(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)
    decide(db, leave.id, 1, "approve", org.supervisor.id)

    leave = decide(db, leave.id, 2, "reject", org.unit_head.id, comments=REJECTION_COMMENT)

    assert leave.status == LeaveStatus.REJECTED
    assert [s.status for s in leave.approval_steps] == [
        StepStatus.APPROVED,
        StepStatus.REJECTED,
        StepStatus.SKIPPED,
        StepStatus.SKIPPED,
        StepStatus.SKIPPED,
    ]
    assert leave.approval_steps[1].comments == REJECTION_COMMENT
    assert _balance(db, staff) == Decimal("10")
    assert leave.deducted_days is None


# Locking


def test_finalized_request_cannot_be_decided(db, director, org, policies, grant):
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    _approve_all(db, leave, [org.hr_officer, org.chief_director])
    transactions = _transaction_count(db, director)
    audits = db.query(AuditLog).count()

    with pytest.raises(AlreadyFinalizedError):
        decide(db, leave.id, 2, "reject", org.admin.id, comments=REJECTION_COMMENT)

    assert _transaction_count(db, director) == transactions
    assert db.query(AuditLog).count() == audits
    assert _balance(db, director) == Decimal("5")


def test_rejected_request_cannot_be_decided(db, staff, org, policies, grant):
    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)
    decide(db, leave.id, 1, "reject", org.supervisor.id, comments=REJECTION_COMMENT)

    with pytest.raises(AlreadyFinalizedError):
        decide(db, leave.id, 2, "approve", org.unit_head.id)


# Compliance


def test_compliance_failure_blocks_approval(db, staff, org, policies, grant):
    class RefusingValidator:
        def validate_before_approval(self, db, leave_request, approver):
            return ComplianceResult.from_errors(["Budget freeze in effect"])

    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)

    with pytest.raises(ComplianceError) as exc_info:
        decide(db, leave.id, 1, "approve", org.supervisor.id, compliance_validator=RefusingValidator())
    assert exc_info.value.errors == ["Budget freeze in effect"]

    leave = get_leave_request(db, leave.id)
    assert leave.approval_steps[0].status == StepStatus.PENDING


def test_compliance_not_consulted_for_rejection(db, staff, org, policies, grant):
    class ExplodingValidator:
        def validate_before_approval(self, db, leave_request, approver):
            raise AssertionError("validator must not run for rejections")

    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)
    leave = decide(
        db, leave.id, 1, "reject", org.supervisor.id,
        comments=REJECTION_COMMENT, compliance_validator=ExplodingValidator(),
    )
    assert leave.status == LeaveStatus.REJECTED


def test_director_needs_acting_officer_before_final_approval(db, make_employee, org, policies, grant):
    from leave_engine.utils.roles import ApproverRole

    director = make_employee(role=ApproverRole.DIRECTOR, grade="Director", position="Director")
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    decide(db, leave.id, 1, "approve", org.hr_officer.id)

    with pytest.raises(ComplianceError, match="Acting officer"):
        decide(db, leave.id, 2, "approve", org.chief_director.id)

    director.acting_officer_id = org.unit_head.id
    db.commit()
    leave = decide(db, leave.id, 2, "approve", org.chief_director.id)
    assert leave.status == LeaveStatus.APPROVED


def test_study_leave_needs_external_clearance(db, director, org, policies, grant):
    grant(director, 30, leave_type=LeaveType.STUDY)
    leave = create_leave_request(db, director.id, LeaveType.STUDY, *WEEK_1)
    decide(db, leave.id, 1, "approve", org.hr_officer.id)

    with pytest.raises(ComplianceError, match="external clearance"):
        decide(db, leave.id, 2, "approve", org.chief_director.id)

    cleared = create_leave_request(db, director.id, LeaveType.STUDY, *WEEK_2, external_clearance_approved=True)
    decide(db, cleared.id, 1, "approve", org.hr_officer.id)
    cleared = decide(db, cleared.id, 2, "approve", org.chief_director.id)
    assert cleared.status == LeaveStatus.APPROVED


# Audit


def test_each_decision_is_audited(db, director, org, policies, grant):
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    _approve_all(db, leave, [org.hr_officer, org.chief_director])

    entries = (
        db.query(AuditLog)
        .filter(AuditLog.event_type == "LEAVE_STEP_DECIDED", AuditLog.entity_id == leave.id)
        .order_by(AuditLog.id)
        .all()
    )
    assert [e.meta_json["level"] for e in entries] == [1, 2]
    assert entries[-1].before_state["status"] == "pending"
    assert entries[-1].after_state["status"] == "approved"
    assert entries[-1].actor_id == org.chief_director.id


def test_audit_failure_aborts_decision(db, director, org, policies, grant, monkeypatch):
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    decide(db, leave.id, 1, "approve", org.hr_officer.id)

    def broken_audit(*args, **kwargs):
        raise RuntimeError("audit sink unavailable")

    monkeypatch.setattr(approval_service, "log_audit", broken_audit)
    with pytest.raises(RuntimeError):
        decide(db, leave.id, 2, "approve", org.chief_director.id)

    leave = get_leave_request(db, leave.id)
    assert leave.status == LeaveStatus.PENDING
    assert leave.locked is False
    assert _balance(db, director) == Decimal("10")
    assert _transaction_count(db, director) == 1


def test_audit_entries_are_append_only(db, director, org, policies, grant):
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    entry = db.query(AuditLog).filter(AuditLog.entity_id == leave.id).first()

    entry.event_type = "TAMPERED"
    with pytest.raises(InvariantViolation):
        db.flush()
    db.rollback()


# Reversal


def _approved_request(db, director, org, grant):
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    return _approve_all(db, leave, [org.hr_officer, org.chief_director])


def test_reversal_restores_exactly_deducted_days(db, director, org, policies, grant):
    leave = _approved_request(db, director, org, grant)
    assert _balance(db, director) == Decimal("5")

    leave = reverse_approval(db, leave.id, org.admin.id, "Approved in error, staff recalled")

    assert leave.status == LeaveStatus.REJECTED
    assert leave.deducted_days is None
    assert leave.approval_steps[-1].status == StepStatus.REJECTED
    assert leave.approval_steps[-1].approver_id == org.admin.id
    assert _balance(db, director) == Decimal("10")
    restore = (
        db.query(LeaveTransaction)
        .filter(LeaveTransaction.leave_request_id == leave.id, LeaveTransaction.action == "RESTORE")
        .one()
    )
    assert restore.delta_days == Decimal("5")
    assert db.query(AuditLog).filter(AuditLog.event_type == "LEAVE_APPROVAL_REVERSED").count() == 1


def test_reversal_requires_elevated_role(db, director, org, policies, grant):
    leave = _approved_request(db, director, org, grant)
    with pytest.raises(PermissionDenied):
        reverse_approval(db, leave.id, org.chief_director.id, "Approved in error, staff recalled")
    assert _balance(db, director) == Decimal("5")


def test_reversal_of_pending_request(db, director, org, policies, grant):
    grant(director, 10)
    leave = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEK_1)
    with pytest.raises(SequencingError):
        reverse_approval(db, leave.id, org.admin.id, "Approved in error, staff recalled")


def test_reversal_cannot_run_twice(db, director, org, policies, grant):
    leave = _approved_request(db, director, org, grant)
    reverse_approval(db, leave.id, org.admin.id, "Approved in error, staff recalled")

    with pytest.raises(AlreadyFinalizedError):
        reverse_approval(db, leave.id, org.admin.id, "Approved in error, staff recalled")
    assert _balance(db, director) == Decimal("10")


def test_reversal_without_deduction_is_invariant_violation(db, director, org, policies, grant):
    leave = _approved_request(db, director, org, grant)
    leave.deducted_days = None
    db.commit()

    with pytest.raises(InvariantViolation):
        reverse_approval(db, leave.id, org.admin.id, "Approved in error, staff recalled")
    assert get_leave_request(db, leave.id).status == LeaveStatus.APPROVED


def test_unpaid_leave_never_touches_ledger(db, director, org, policies):
    leave = create_leave_request(db, director.id, LeaveType.UNPAID, *WEEK_1)
    leave = _approve_all(db, leave, [org.hr_officer, org.chief_director])

    assert leave.status == LeaveStatus.APPROVED
    assert leave.deducted_days is None
    assert _transaction_count(db, director) == 0

    leave = reverse_approval(db, leave.id, org.admin.id, "Unpaid leave cancelled by HR")
    assert leave.status == LeaveStatus.REJECTED
    assert _transaction_count(db, director) == 0


def test_pending_for_role(db, staff, org, make_employee, policies, grant):
    from leave_engine.utils.roles import ApproverRole

    grant(staff, 10)
    leave = create_leave_request(db, staff.id, LeaveType.ANNUAL, *WEEK_1)
    other_supervisor = make_employee(role=ApproverRole.SUPERVISOR, position="Principal Officer")

    assert [r.id for r in approval_service.list_pending_for_role(db, "SUPERVISOR", actor=org.supervisor)] == [leave.id]
    assert approval_service.list_pending_for_role(db, "SUPERVISOR", actor=other_supervisor) == []
    assert approval_service.list_pending_for_role(db, ApproverRole.UNIT_HEAD) == []

    decide(db, leave.id, 1, "approve", org.supervisor.id)
    assert [r.id for r in approval_service.list_pending_for_role(db, "unit head")] == [leave.id]
