"""Add PSC/OHCS external clearance tracking to leave_requests

Revision ID: 002_external_clearance
Revises: 001_leave_workflow
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '002_external_clearance'
down_revision: Union[str, None] = '001_leave_workflow'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

external_clearance_status = postgresql.ENUM(
    'pending', 'cleared', 'rejected', name='external_clearance_status', create_type=False,
)


def upgrade() -> None:
    bind = op.get_bind()
    cols = [c['name'] for c in sa.inspect(bind).get_columns('leave_requests')]
    if 'external_clearance_status' in cols:
        return
    external_clearance_status.create(bind, checkfirst=True)
    op.add_column('leave_requests', sa.Column('external_clearance_status', external_clearance_status, nullable=True))
    op.add_column('leave_requests', sa.Column('external_clearance_date', sa.DateTime(timezone=True), nullable=True))
    op.add_column('leave_requests', sa.Column('psc_reference_number', sa.String(50), nullable=True))
    op.add_column('leave_requests', sa.Column('ohcs_reference_number', sa.String(50), nullable=True))
    # Requests already flagged start out awaiting clearance
    op.execute(
        "UPDATE leave_requests SET external_clearance_status = 'pending' "
        "WHERE requires_external_clearance AND status IN ('draft', 'pending')"
    )


def downgrade() -> None:
    op.drop_column('leave_requests', 'ohcs_reference_number')
    op.drop_column('leave_requests', 'psc_reference_number')
    op.drop_column('leave_requests', 'external_clearance_date')
    op.drop_column('leave_requests', 'external_clearance_status')
    external_clearance_status.drop(op.get_bind(), checkfirst=True)
