"""
Pytest configuration and fixtures
"""
import itertools
from datetime import date
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from leave_engine.main import app
from leave_engine.db.base import Base
from leave_engine.core.deps import get_db

# Import all models to ensure they're registered with Base.metadata
from leave_engine.models import (  # noqa: F401
    Employee,
    EmploymentStatus,
    AuditLog,
    LeaveRequest,
    ApprovalStep,
    LeaveBalance,
    LeaveTransaction,
    LeavePolicy,
    LeaveType,
    EncashmentRequest,
    SettlementRun,
)
from leave_engine.services import balance_service, policy_service
from leave_engine.services.notification_service import RecordingNotificationDispatcher, set_notifier
from leave_engine.utils.roles import ApproverRole
from leave_engine.tests.helpers import PERIOD


# Use in-memory SQLite for testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db():
    """Create a fresh database for each test"""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    """Test client fixture with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def notifications():
    """Capture notifications instead of logging them"""
    recorder = RecordingNotificationDispatcher()
    previous = set_notifier(recorder)
    yield recorder
    set_notifier(previous)


@pytest.fixture
def make_employee(db):
    """Factory for employees with an organizational placement"""
    counter = itertools.count(1)

    def _make(
        role=ApproverRole.EMPLOYEE,
        grade="Senior Officer",
        position="Officer",
        unit="Planning & Budgeting Unit",
        directorate=None,
        **kwargs,
    ) -> Employee:
        n = next(counter)
        employee = Employee(
            staff_code=kwargs.pop("staff_code", f"CS{n:04d}"),
            name=kwargs.pop("name", f"Employee {n}"),
            role=role,
            grade=grade,
            position=position,
            unit=unit,
            directorate=directorate,
            join_date=date(2015, 1, 5),
            **kwargs,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee

    return _make


@pytest.fixture
def org(make_employee):
    """One approver per role, placed in the civil service structure"""
    supervisor = make_employee(role=ApproverRole.SUPERVISOR, position="Principal Officer", name="Supervisor")
    unit_head = make_employee(role=ApproverRole.UNIT_HEAD, position="Unit Head", name="Unit Head")
    hod = make_employee(role=ApproverRole.HEAD_OF_DEPARTMENT, position="Head of Department", name="HoD")
    hr_officer = make_employee(
        role=ApproverRole.HR_OFFICER, position="HR Officer", unit="Personnel / Records Unit", name="HR Officer"
    )
    hr_director = make_employee(
        role=ApproverRole.HR_DIRECTOR, grade="Director", position="Director, HRMD",
        unit="Personnel / Records Unit", name="HR Director",
    )
    chief_director = make_employee(
        role=ApproverRole.CHIEF_DIRECTOR, grade="Chief Director", position="Chief Director",
        unit=None, name="Chief Director",
    )
    admin = make_employee(role=ApproverRole.SYSTEM_ADMIN, position="Systems Administrator", name="Admin")
    auditor = make_employee(
        role=ApproverRole.AUDITOR, position="Internal Auditor", unit="Internal Audit Unit", name="Auditor"
    )
    return SimpleNamespace(
        supervisor=supervisor,
        unit_head=unit_head,
        hod=hod,
        hr_officer=hr_officer,
        hr_director=hr_director,
        chief_director=chief_director,
        admin=admin,
        auditor=auditor,
    )


@pytest.fixture
def policies(db):
    """Default leave policies (annual: carry up to 5 days, expiring after 3 months)"""
    return policy_service.seed_default_policies(db)


@pytest.fixture
def staff(make_employee, org):
    """Standard directorate staff reporting to org.supervisor"""
    return make_employee(name="Ama Mensah", immediate_supervisor_id=org.supervisor.id)


@pytest.fixture
def director(make_employee, org):
    """Directorate director (two-level chain) with an acting officer assigned"""
    return make_employee(
        role=ApproverRole.DIRECTOR, grade="Director", position="Director",
        name="Kofi Boateng", acting_officer_id=org.unit_head.id,
    )


@pytest.fixture
def grant(db):
    """Credit entitlement days to an employee"""
    def _grant(employee, days, leave_type=LeaveType.ANNUAL, period=PERIOD, **kwargs):
        return balance_service.credit_entitlement(db, employee.id, leave_type, days, period, **kwargs)
    return _grant
