"""create_timesheets_table

Create Date: 2026-01-06 09:00:06+00:00

"""
from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        'timesheets',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('technician_id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('task_id', sa.Integer(), nullable=True),
        sa.Column('location_id', sa.Integer(), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('hours_worked', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='submitted'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['technician_id'], ['technicians.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['task_id'], ['tasks.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['location_id'], ['locations.id'], ondelete='RESTRICT'),
    )
    op.create_index('idx_timesheets_technician_date', 'timesheets', ['technician_id', 'date'])


def downgrade() -> None:
    op.drop_index('idx_timesheets_technician_date', table_name='timesheets')
    op.drop_table('timesheets')
