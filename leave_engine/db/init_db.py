"""
Database initialization script
Helper function to seed the minimum an empty deployment needs
"""
from datetime import date

from sqlalchemy.orm import Session

from leave_engine.models.employee import Employee
from leave_engine.services.policy_service import seed_default_policies
from leave_engine.utils.roles import ApproverRole


def init_db(db: Session) -> Employee:
    """
    Seed default leave policies and a system administrator if none exists

    This is a helper function and should NOT be auto-run on startup.
    Call manually when needed for initial setup.

    Returns:
        The existing or newly created system administrator
    """
    seed_default_policies(db)

    existing_admin = db.query(Employee).filter(Employee.role == ApproverRole.SYSTEM_ADMIN).first()
    if existing_admin:
        print(f"System administrator already exists: staff_code={existing_admin.staff_code}")
        return existing_admin

    admin = Employee(
        staff_code="SYS001",
        name="System Administrator",
        role=ApproverRole.SYSTEM_ADMIN,
        grade="Administrator",
        position="Systems Administrator",
        join_date=date.today(),
        active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    print(f"System administrator created: staff_code=SYS001 id={admin.id}")
    return admin
