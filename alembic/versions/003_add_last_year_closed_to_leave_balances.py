"""Add last_year_closed to leave_balances for year-end carry-forward

Revision ID: 003_year_close
Revises: 002_external_clearance
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '003_year_close'
down_revision: Union[str, None] = '002_external_clearance'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    cols = [c['name'] for c in sa.inspect(op.get_bind()).get_columns('leave_balances')]
    if 'last_year_closed' in cols:
        return
    op.add_column('leave_balances', sa.Column('last_year_closed', sa.Integer(), nullable=True))


def downgrade() -> None:
    op.drop_column('leave_balances', 'last_year_closed')
