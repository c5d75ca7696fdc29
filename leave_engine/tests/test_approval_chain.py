"""
Tests for approval chain resolution
"""
from decimal import Decimal

import pytest

from leave_engine.core.exceptions import ConfigurationError
from leave_engine.models.employee import Employee
from leave_engine.models.leave import LeaveType
from leave_engine.models.policy import LeavePolicy
from leave_engine.services.approval_chain import build_approval_chain, resolve_chain
from leave_engine.utils.roles import ApproverRole as R

ACTIVE_POLICY = LeavePolicy(leave_type=LeaveType.ANNUAL, annual_entitlement=Decimal("21"), active=True)


def _employee(role=R.EMPLOYEE, grade="Senior Officer", position="Officer", unit="Planning & Budgeting Unit", **kwargs):
    return Employee(id=kwargs.pop("id", 100), role=role, grade=grade, position=position, unit=unit, **kwargs)


@pytest.mark.parametrize(
    "employee_kwargs, expected_roles",
    [
        (
            {},
            [R.SUPERVISOR, R.UNIT_HEAD, R.HEAD_OF_DEPARTMENT, R.HR_OFFICER, R.CHIEF_DIRECTOR],
        ),
        (
            {"unit": "Legal Unit", "position": "Legal Officer"},
            [R.SUPERVISOR, R.UNIT_HEAD, R.HEAD_OF_INDEPENDENT_UNIT, R.HR_OFFICER, R.CHIEF_DIRECTOR],
        ),
        (
            {"role": R.UNIT_HEAD, "position": "Unit Head", "unit": "Transport Unit"},
            [R.HEAD_OF_DEPARTMENT, R.HR_OFFICER, R.CHIEF_DIRECTOR],
        ),
        (
            {"role": R.HEAD_OF_INDEPENDENT_UNIT, "position": "Head of Internal Audit", "unit": "Internal Audit Unit"},
            [R.HR_OFFICER, R.CHIEF_DIRECTOR],
        ),
        (
            {"role": R.HR_OFFICER, "position": "HR Officer", "unit": "Personnel / Records Unit"},
            [R.HR_DIRECTOR, R.CHIEF_DIRECTOR],
        ),
        (
            {"role": R.DIRECTOR, "grade": "Director", "position": "Director"},
            [R.HR_OFFICER, R.CHIEF_DIRECTOR],
        ),
        (
            {"role": R.HR_DIRECTOR, "grade": "Director", "position": "Director, HRMD", "unit": "Training & Development Unit"},
            [R.CHIEF_DIRECTOR],
        ),
        (
            {"role": R.CHIEF_DIRECTOR, "grade": "Chief Director", "position": "Chief Director", "unit": None},
            [R.HR_DIRECTOR],
        ),
    ],
    ids=[
        "standard_staff",
        "independent_unit_staff",
        "directorate_unit_head",
        "head_of_independent_unit",
        "hrmd_staff",
        "director",
        "hrmd_director",
        "chief_director",
    ],
)
def test_chain_routing(employee_kwargs, expected_roles):
    chain = resolve_chain(_employee(**employee_kwargs), ACTIVE_POLICY)

    assert chain.roles == expected_roles
    assert [lvl.level for lvl in chain.levels] == list(range(1, len(expected_roles) + 1))


def test_only_chief_director_chain_is_recorded():
    chief = _employee(role=R.CHIEF_DIRECTOR, grade="Chief Director", position="Chief Director", unit=None)
    director = _employee(role=R.DIRECTOR, grade="Director", position="Director")

    assert resolve_chain(chief, ACTIVE_POLICY).recorded is True
    assert resolve_chain(director, ACTIVE_POLICY).recorded is False


def test_chief_director_recognized_by_grade_alone():
    chain = resolve_chain(_employee(grade="Chief Director", position=None, unit=None), ACTIVE_POLICY)
    assert chain.roles == [R.HR_DIRECTOR]
    assert chain.recorded is True


def test_supervisor_level_bound_to_immediate_supervisor():
    chain = resolve_chain(_employee(immediate_supervisor_id=7), ACTIVE_POLICY)

    assert chain.levels[0].approver_role == R.SUPERVISOR
    assert chain.levels[0].assigned_approver_id == 7
    assert all(lvl.assigned_approver_id is None for lvl in chain.levels[1:])


def test_applicant_role_never_in_own_chain():
    chain = resolve_chain(_employee(role=R.SUPERVISOR, position="Principal Officer"), ACTIVE_POLICY)

    assert R.SUPERVISOR not in chain.roles
    assert chain.roles[0] == R.UNIT_HEAD
    assert chain.levels[0].level == 1


@pytest.mark.parametrize("grade", [None, "", "   "])
def test_blank_grade_is_configuration_error(grade):
    with pytest.raises(ConfigurationError):
        resolve_chain(_employee(grade=grade), ACTIVE_POLICY)


def test_missing_or_inactive_policy_is_configuration_error():
    with pytest.raises(ConfigurationError):
        resolve_chain(_employee(), None)
    inactive = LeavePolicy(leave_type=LeaveType.ANNUAL, annual_entitlement=Decimal("21"), active=False)
    with pytest.raises(ConfigurationError):
        resolve_chain(_employee(), inactive)


def test_unmapped_unit_without_directorate_is_configuration_error():
    with pytest.raises(ConfigurationError):
        resolve_chain(_employee(unit="Space Programme Unit", directorate=None), ACTIVE_POLICY)


def test_unmapped_unit_with_recorded_directorate_resolves():
    chain = resolve_chain(_employee(unit="Space Programme Unit", directorate="Special Projects Directorate"), ACTIVE_POLICY)
    assert len(chain.levels) == 5


def test_build_chain_reads_active_policy(db, staff, policies):
    chain = build_approval_chain(db, staff, LeaveType.ANNUAL)
    assert chain.route == "standard"
    assert chain.levels[0].assigned_approver_id == staff.immediate_supervisor_id


def test_build_chain_without_policy(db, staff):
    with pytest.raises(ConfigurationError):
        build_approval_chain(db, staff, LeaveType.ANNUAL)
