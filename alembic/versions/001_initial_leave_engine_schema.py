"""Initial leave engine schema

Revision ID: 001_initial_leave_engine
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_leave_engine'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEAVE_TYPES = (
    'ANNUAL', 'SICK', 'SPECIAL_SERVICE', 'TRAINING', 'STUDY',
    'MATERNITY', 'PATERNITY', 'COMPASSIONATE', 'UNPAID',
)
APPROVER_ROLES = (
    'EMPLOYEE', 'SUPERVISOR', 'UNIT_HEAD', 'HEAD_OF_DEPARTMENT', 'HEAD_OF_INDEPENDENT_UNIT',
    'DIRECTOR', 'HR_OFFICER', 'HR_DIRECTOR', 'CHIEF_DIRECTOR', 'AUDITOR', 'SYSTEM_ADMIN',
)


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)


def upgrade() -> None:
    leave_type = sa.Enum(*LEAVE_TYPES, name='leavetype')
    approver_role = sa.Enum(*APPROVER_ROLES, name='approverrole')

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('staff_code', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role', approver_role, nullable=False, server_default='EMPLOYEE'),
        sa.Column('grade', sa.String(), nullable=True),
        sa.Column('position', sa.String(), nullable=True),
        sa.Column('directorate', sa.String(), nullable=True),
        sa.Column('unit', sa.String(), nullable=True),
        sa.Column('immediate_supervisor_id', sa.Integer(), nullable=True),
        sa.Column('acting_officer_id', sa.Integer(), nullable=True),
        sa.Column(
            'employment_status',
            sa.Enum('ACTIVE', 'RETIRED', 'TERMINATED', 'RESIGNED', name='employmentstatus'),
            nullable=False,
            server_default='ACTIVE',
        ),
        sa.Column('join_date', sa.Date(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['immediate_supervisor_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['acting_officer_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_employees_id'), 'employees', ['id'], unique=False)
    op.create_index(op.f('ix_employees_staff_code'), 'employees', ['staff_code'], unique=True)

    op.create_table(
        'leave_policies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('annual_entitlement', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('carryover_allowed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_carryover', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('expires_after_months', sa.Integer(), nullable=True),
        sa.Column('requires_balance', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('encashable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('leave_type'),
    )
    op.create_index(op.f('ix_leave_policies_id'), 'leave_policies', ['id'], unique=False)

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('day_count', sa.Numeric(7, 2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'RECORDED', name='leavestatus'),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('recorded_chain', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deducted_days', sa.Numeric(7, 2), nullable=True),
        sa.Column('external_clearance_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('start_date <= end_date', name='check_start_date_le_end_date'),
        sa.CheckConstraint('day_count > 0', name='check_day_count_positive'),
    )
    op.create_index(op.f('ix_leave_requests_id'), 'leave_requests', ['id'], unique=False)
    op.create_index(op.f('ix_leave_requests_employee_id'), 'leave_requests', ['employee_id'], unique=False)
    op.create_index('ix_leave_requests_employee_dates', 'leave_requests', ['employee_id', 'start_date', 'end_date'], unique=False)

    op.create_table(
        'approval_steps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('approver_role', approver_role, nullable=False),
        sa.Column('assigned_approver_id', sa.Integer(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'SKIPPED', name='stepstatus'),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('approver_id', sa.Integer(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.ForeignKeyConstraint(['assigned_approver_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['approver_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('leave_request_id', 'level', name='uq_approval_steps_request_level'),
        sa.CheckConstraint('level >= 1', name='check_level_positive'),
    )
    op.create_index(op.f('ix_approval_steps_id'), 'approval_steps', ['id'], unique=False)
    op.create_index(op.f('ix_approval_steps_leave_request_id'), 'approval_steps', ['leave_request_id'], unique=False)

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('period', sa.Integer(), nullable=False),
        sa.Column('remaining_days', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('carry_forward_days', sa.Numeric(7, 2), nullable=False, server_default='0'),
        sa.Column('entitlement_ceiling', sa.Numeric(7, 2), nullable=True),
        sa.Column('expires_at', sa.Date(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'leave_type', name='uq_leave_balances_employee_type'),
        sa.CheckConstraint('remaining_days >= 0', name='check_remaining_days_non_negative'),
    )
    op.create_index(op.f('ix_leave_balances_id'), 'leave_balances', ['id'], unique=False)
    op.create_index(op.f('ix_leave_balances_employee_id'), 'leave_balances', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_balances_period'), 'leave_balances', ['period'], unique=False)

    op.create_table(
        'encashment_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('days', sa.Numeric(7, 2), nullable=False),
        sa.Column(
            'reason',
            sa.Enum('RETIREMENT', 'EXIT', 'SPECIAL_AUTHORIZATION', name='encashmentreason'),
            nullable=False,
        ),
        sa.Column('reason_details', sa.Text(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'APPROVED', 'REJECTED', name='encashmentstatus'),
            nullable=False,
            server_default='PENDING',
        ),
        sa.Column('amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('decided_by_id', sa.Integer(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['decided_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('days > 0', name='check_encashment_days_positive'),
    )
    op.create_index(op.f('ix_encashment_requests_id'), 'encashment_requests', ['id'], unique=False)
    op.create_index(op.f('ix_encashment_requests_employee_id'), 'encashment_requests', ['employee_id'], unique=False)

    op.create_table(
        'leave_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('period', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=30), nullable=False),
        sa.Column('delta_days', sa.Numeric(7, 2), nullable=False),
        sa.Column('balance_before', sa.Numeric(7, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(7, 2), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=True),
        sa.Column('encashment_id', sa.Integer(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('action_by_employee_id', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.ForeignKeyConstraint(['encashment_id'], ['encashment_requests.id'], ),
        sa.ForeignKeyConstraint(['action_by_employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_leave_transactions_id'), 'leave_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_employee_id'), 'leave_transactions', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_period'), 'leave_transactions', ['period'], unique=False)
    op.create_index(op.f('ix_leave_transactions_leave_request_id'), 'leave_transactions', ['leave_request_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_encashment_id'), 'leave_transactions', ['encashment_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('before_state', sa.JSON(), nullable=True),
        sa.Column('after_state', sa.JSON(), nullable=True),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_event_type'), 'audit_logs', ['event_type'], unique=False)

    op.create_table(
        'settlement_runs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('period', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('balances_settled', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_carry_forward', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_forfeited', sa.Numeric(10, 2), nullable=False, server_default='0'),
        _timestamp('settled_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('period'),
    )
    op.create_index(op.f('ix_settlement_runs_id'), 'settlement_runs', ['id'], unique=False)


def downgrade() -> None:
    op.drop_table('settlement_runs')
    op.drop_table('audit_logs')
    op.drop_table('leave_transactions')
    op.drop_table('encashment_requests')
    op.drop_table('leave_balances')
    op.drop_table('approval_steps')
    op.drop_table('leave_requests')
    op.drop_table('leave_policies')
    op.drop_table('employees')
    for enum_name in (
        'encashmentstatus', 'encashmentreason', 'stepstatus', 'leavestatus',
        'employmentstatus', 'approverrole', 'leavetype',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
