"""
Tests for bulk approval with per-item failure isolation
"""
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from leave_engine.core.exceptions import ValidationError
from leave_engine.models.leave import LeaveStatus, LeaveType, StepStatus
from leave_engine.services import approval_service, ledger_service as ledger
from leave_engine.services.bulk_service import bulk_decide
from leave_engine.services.leave_service import create_leave_request, get_leave_request
from leave_engine.tests.helpers import REJECTION_COMMENT, WEEKS


@pytest.fixture
def five_requests(db, director, org, policies, grant):
    grant(director, 30)
    return [
        create_leave_request(db, director.id, LeaveType.ANNUAL, *week, day_count=2)
        for week in WEEKS
    ]


def test_bulk_approval_isolates_finalized_request(db, five_requests, org):
    rejected = five_requests[2]
    approval_service.decide(db, rejected.id, 1, "reject", org.hr_officer.id, comments=REJECTION_COMMENT)

    result = bulk_decide(db, [r.id for r in five_requests], "approve", org.hr_officer.id)

    assert result["processed_count"] == 4
    assert result["failed_count"] == 1
    (failure,) = result["failed"]
    assert failure["id"] == rejected.id
    assert failure["kind"] == "AlreadyFinalizedError"
    assert failure["code"] == "ALREADY_FINALIZED"

    for leave in five_requests:
        leave = get_leave_request(db, leave.id)
        if leave.id == rejected.id:
            assert leave.status == LeaveStatus.REJECTED
            assert [s.status for s in leave.approval_steps] == [StepStatus.REJECTED, StepStatus.SKIPPED]
        else:
            assert leave.status == LeaveStatus.PENDING
            assert leave.approval_steps[0].status == StepStatus.APPROVED


def test_bulk_final_level_deducts_each_request(db, director, five_requests, org):
    ids = [r.id for r in five_requests]
    bulk_decide(db, ids, "approve", org.hr_officer.id)

    result = bulk_decide(db, ids, "approve", org.chief_director.id)

    assert result["processed_count"] == 5
    assert {s["status"] for s in result["success"]} == {"approved"}
    assert ledger.available_days(db, director.id, LeaveType.ANNUAL) == Decimal("20")


def test_bulk_reports_insufficient_balance_per_item(db, director, org, policies, grant):
    grant(director, 4)
    first = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEKS[0], day_count=3)
    second = create_leave_request(db, director.id, LeaveType.ANNUAL, *WEEKS[1], day_count=3)
    bulk_decide(db, [first.id, second.id], "approve", org.hr_officer.id)

    result = bulk_decide(db, [first.id, second.id], "approve", org.chief_director.id)

    assert [s["id"] for s in result["success"]] == [first.id]
    assert result["failed"][0]["id"] == second.id
    assert result["failed"][0]["kind"] == "InsufficientBalanceError"
    assert get_leave_request(db, second.id).status == LeaveStatus.PENDING
    assert ledger.available_days(db, director.id, LeaveType.ANNUAL) == Decimal("1")


def test_bulk_ignores_duplicate_ids(db, five_requests, org):
    first = five_requests[0].id

    result = bulk_decide(db, [first, first, first], "approve", org.hr_officer.id)

    assert result["processed_count"] == 1
    assert result["failed_count"] == 0


def test_bulk_rejection_needs_comment_for_each(db, five_requests, org):
    ids = [r.id for r in five_requests[:2]]

    result = bulk_decide(db, ids, "reject", org.hr_officer.id)
    assert result["failed_count"] == 2
    assert {f["kind"] for f in result["failed"]} == {"ValidationError"}

    result = bulk_decide(db, ids, "reject", org.hr_officer.id, comments=REJECTION_COMMENT)
    assert result["processed_count"] == 2


def test_bulk_unknown_request_is_not_found(db, five_requests, org):
    result = bulk_decide(db, [five_requests[0].id, 9999], "approve", org.hr_officer.id)

    assert result["processed_count"] == 1
    (failure,) = result["failed"]
    assert failure["id"] == 9999
    assert failure["kind"] == "NotFound"
    assert failure["code"] == "NOT_FOUND"


def test_bulk_database_failure_is_system_error(db, five_requests, org, monkeypatch):
    real_decide = approval_service.decide
    broken_id = five_requests[1].id

    def flaky_decide(db, leave_request_id, *args, **kwargs):
        if leave_request_id == broken_id:
            raise OperationalError("UPDATE approval_steps", {}, Exception("database is locked"))
        return real_decide(db, leave_request_id, *args, **kwargs)

    monkeypatch.setattr(approval_service, "decide", flaky_decide)

    result = bulk_decide(db, [r.id for r in five_requests], "approve", org.hr_officer.id)

    assert result["processed_count"] == 4
    (failure,) = result["failed"]
    assert failure["id"] == broken_id
    assert failure["kind"] == "SystemError"
    assert failure["code"] == "SYSTEM_ERROR"


def test_bulk_validates_input(db, org):
    with pytest.raises(ValidationError):
        bulk_decide(db, [], "approve", org.hr_officer.id)
    with pytest.raises(ValidationError):
        bulk_decide(db, [1], "maybe", org.hr_officer.id)
