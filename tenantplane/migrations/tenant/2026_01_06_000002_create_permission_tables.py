"""create_permission_tables

Create Date: 2026-01-06 09:00:01+00:00

"""
from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
    )

    op.create_table(
        'permissions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(100), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.current_timestamp()),
    )

    op.create_table(
        'role_has_permissions',
        sa.Column('role_id', sa.Integer(), primary_key=True),
        sa.Column('permission_id', sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['permission_id'], ['permissions.id'], ondelete='CASCADE'),
    )

    op.create_table(
        'user_has_roles',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('role_id', sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ondelete='CASCADE'),
    )


def downgrade() -> None:
    op.drop_table('user_has_roles')
    op.drop_table('role_has_permissions')
    op.drop_table('permissions')
    op.drop_table('roles')
