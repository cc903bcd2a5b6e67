"""create_technicians_table

Create Date: 2026-01-06 09:00:02+00:00

"""
from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        'technicians',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, server_default='technician'),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('idx_technicians_user_id', 'technicians', ['user_id'])


def downgrade() -> None:
    op.drop_index('idx_technicians_user_id', table_name='technicians')
    op.drop_table('technicians')
