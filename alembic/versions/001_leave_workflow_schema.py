"""Leave workflow schema

Revision ID: 001_leave_workflow
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_leave_workflow'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LEAVE_TYPES = (
    'Annual', 'Sick', 'Maternity', 'Paternity', 'Compassionate', 'Study', 'StudyWithPay',
    'StudyWithoutPay', 'SpecialService', 'Training', 'Unpaid', 'LeaveOfAbsence', 'Secondment',
)

employee_role = postgresql.ENUM(
    'STAFF', 'SUPERVISOR', 'UNIT_HEAD', 'DIRECTOR', 'HR_OFFICER', 'HR_DIRECTOR', 'CHIEF_DIRECTOR',
    name='employee_role', create_type=False,
)
duty_station = postgresql.ENUM('HQ', 'Region', 'District', 'Agency', name='duty_station', create_type=False)
leave_type = postgresql.ENUM(*LEAVE_TYPES, name='leave_type', create_type=False)
leave_status = postgresql.ENUM(
    'draft', 'pending', 'approved', 'rejected', 'cancelled', 'recorded', name='leave_status', create_type=False,
)
step_status = postgresql.ENUM(
    'pending', 'approved', 'rejected', 'delegated', 'skipped', name='step_status', create_type=False,
)
approver_role = postgresql.ENUM(
    'MANAGER', 'UNIT_HEAD', 'DIRECTOR', 'HR_OFFICER', 'HR_DIRECTOR', 'CHIEF_DIRECTOR',
    name='approver_role', create_type=False,
)

ENUMS = (employee_role, duty_station, leave_type, leave_status, step_status, approver_role)


def _timestamp(name, nullable=False):
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=nullable)


def upgrade() -> None:
    bind = op.get_bind()
    if 'leave_requests' in sa.inspect(bind).get_table_names():
        return
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emp_code', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('role', employee_role, nullable=False),
        sa.Column('unit', sa.String(), nullable=True),
        sa.Column('directorate', sa.String(), nullable=True),
        sa.Column('department', sa.String(), nullable=True),
        sa.Column('duty_station', duty_station, nullable=True),
        sa.Column('reporting_manager_id', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['reporting_manager_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_employees_id'), 'employees', ['id'], unique=False)
    op.create_index(op.f('ix_employees_emp_code'), 'employees', ['emp_code'], unique=True)
    op.create_index(op.f('ix_employees_reporting_manager_id'), 'employees', ['reporting_manager_id'], unique=False)

    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('days', sa.Numeric(6, 2), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', leave_status, nullable=False, server_default='draft'),
        sa.Column('current_round', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('requires_external_clearance', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('record_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('payroll_impact', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by_id', sa.Integer(), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['cancelled_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('start_date <= end_date', name='check_start_date_le_end_date'),
        sa.CheckConstraint('days > 0', name='check_days_positive')
    )
    op.create_index(op.f('ix_leave_requests_id'), 'leave_requests', ['id'], unique=False)
    op.create_index(op.f('ix_leave_requests_employee_id'), 'leave_requests', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_requests_status'), 'leave_requests', ['status'], unique=False)
    op.create_index('ix_leave_requests_employee_dates', 'leave_requests', ['employee_id', 'start_date', 'end_date'], unique=False)

    op.create_table(
        'approval_steps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('round', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('approver_role', approver_role, nullable=False),
        sa.Column('approver_id', sa.Integer(), nullable=True),
        sa.Column('status', step_status, nullable=False, server_default='pending'),
        sa.Column('delegate_id', sa.Integer(), nullable=True),
        sa.Column('delegated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('decided_by_id', sa.Integer(), nullable=True),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.ForeignKeyConstraint(['approver_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['delegate_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['decided_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('leave_request_id', 'round', 'level', name='uq_approval_steps_request_round_level'),
        sa.CheckConstraint('level >= 1', name='check_level_positive')
    )
    op.create_index(op.f('ix_approval_steps_id'), 'approval_steps', ['id'], unique=False)
    op.create_index(op.f('ix_approval_steps_leave_request_id'), 'approval_steps', ['leave_request_id'], unique=False)
    op.create_index(op.f('ix_approval_steps_approver_id'), 'approval_steps', ['approver_id'], unique=False)
    op.create_index(op.f('ix_approval_steps_delegate_id'), 'approval_steps', ['delegate_id'], unique=False)
    op.create_index(op.f('ix_approval_steps_status'), 'approval_steps', ['status'], unique=False)

    op.create_table(
        'approval_step_actions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('step_id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('from_status', sa.String(20), nullable=False),
        sa.Column('to_status', sa.String(20), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('action_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['step_id'], ['approval_steps.id'], ),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_approval_step_actions_id'), 'approval_step_actions', ['id'], unique=False)
    op.create_index(op.f('ix_approval_step_actions_step_id'), 'approval_step_actions', ['step_id'], unique=False)
    op.create_index(op.f('ix_approval_step_actions_leave_request_id'), 'approval_step_actions', ['leave_request_id'], unique=False)

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('remaining', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('last_accrual_month', sa.String(7), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'leave_type', name='uq_leave_balances_employee_type'),
        sa.CheckConstraint('remaining >= 0', name='check_remaining_non_negative')
    )
    op.create_index(op.f('ix_leave_balances_id'), 'leave_balances', ['id'], unique=False)
    op.create_index(op.f('ix_leave_balances_employee_id'), 'leave_balances', ['employee_id'], unique=False)

    op.create_table(
        'leave_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=True),
        sa.Column('entry_type', sa.String(20), nullable=False),
        sa.Column('days', sa.Numeric(6, 2), nullable=False),
        sa.Column('balance_after', sa.Numeric(6, 2), nullable=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('leave_request_id', 'entry_type', name='uq_leave_transactions_request_entry')
    )
    op.create_index(op.f('ix_leave_transactions_id'), 'leave_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_employee_id'), 'leave_transactions', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_leave_request_id'), 'leave_transactions', ['leave_request_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_actor_id'), 'leave_transactions', ['actor_id'], unique=False)

    op.create_table(
        'leave_policies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_type', leave_type, nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_days', sa.Integer(), nullable=False),
        sa.Column('accrual_per_month', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('carryover_max', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('required_approval_levels', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('leave_type', 'version', name='uq_leave_policies_type_version'),
        sa.CheckConstraint('max_days >= 0', name='check_max_days_non_negative'),
        sa.CheckConstraint('required_approval_levels >= 1', name='check_required_levels_positive')
    )
    op.create_index(op.f('ix_leave_policies_id'), 'leave_policies', ['id'], unique=False)
    op.create_index(op.f('ix_leave_policies_active'), 'leave_policies', ['active'], unique=False)
    op.create_index(op.f('ix_leave_policies_leave_type'), 'leave_policies', ['leave_type'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_id'), 'audit_logs', ['entity_id'], unique=False)

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(), nullable=True),
        sa.Column('link', sa.String(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_notifications_id'), 'notifications', ['id'], unique=False)
    op.create_index(op.f('ix_notifications_user_id'), 'notifications', ['user_id'], unique=False)

    op.create_table(
        'reminder_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('leave_request_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('recipient_ids', sa.JSON(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['leave_request_id'], ['leave_requests.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_reminder_logs_id'), 'reminder_logs', ['id'], unique=False)
    op.create_index('ix_reminder_logs_request_level_kind', 'reminder_logs', ['leave_request_id', 'level', 'kind'], unique=False)


def downgrade() -> None:
    for table in (
        'reminder_logs',
        'notifications',
        'audit_logs',
        'leave_policies',
        'leave_transactions',
        'leave_balances',
        'approval_step_actions',
        'approval_steps',
        'leave_requests',
        'employees',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
