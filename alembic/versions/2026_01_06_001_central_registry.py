"""Central registry: tenants, domains, subscriptions, daily metrics

Revision ID: 001_central_registry
Revises: 
Create Date: 2026-01-06

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001_central_registry'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Create tenants table
    op.create_table(
        'tenants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('plan', sa.String(50), nullable=False, server_default='trial'),
        sa.Column('owner_email', sa.String(255), nullable=False),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='UTC'),
        sa.Column('settings', sa.JSON(), nullable=True),
        sa.Column('trial_ends_at', sa.DateTime(), nullable=True),
        sa.Column('deactivated_at', sa.DateTime(), nullable=True),
        sa.Column('scheduled_for_deletion_at', sa.DateTime(), nullable=True),
        sa.Column('data_retention_until', sa.DateTime(), nullable=True),
        sa.Column('subscription_state', sa.String(20), nullable=True),
        sa.Column('subscription_last_status_change_at', sa.DateTime(), nullable=True),
        sa.Column('tenancy_db_name', sa.String(128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    # Create indexes for tenant table
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)
    op.create_index('ix_tenants_name', 'tenants', ['name'])
    op.create_index('ix_tenants_status', 'tenants', ['status'])
    op.create_index('ix_tenants_owner_email', 'tenants', ['owner_email'])
    op.create_index('ix_tenants_scheduled_for_deletion_at', 'tenants', ['scheduled_for_deletion_at'])

    # Create domains table
    op.create_table(
        'domains',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('domain', sa.String(255), nullable=False, unique=True),
        sa.Column('is_primary', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
    )
    op.create_index('ix_domains_tenant_id', 'domains', ['tenant_id'])

    # Create subscriptions table
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('plan', sa.String(50), nullable=False),
        sa.Column('user_limit', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('is_trial', sa.Boolean(), nullable=False),
        sa.Column('trial_ends_at', sa.DateTime(), nullable=True),
        sa.Column('billing_period_ends_at', sa.DateTime(), nullable=True),
        sa.Column('next_renewal_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
    )
    op.create_index('ix_subscriptions_tenant_id', 'subscriptions', ['tenant_id'], unique=True)

    # Create tenant_metrics_daily table
    op.create_table(
        'tenant_metrics_daily',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('timesheets_total', sa.Integer(), nullable=False),
        sa.Column('timesheets_today', sa.Integer(), nullable=False),
        sa.Column('expenses_total', sa.Integer(), nullable=False),
        sa.Column('expenses_today', sa.Integer(), nullable=False),
        sa.Column('users_total', sa.Integer(), nullable=False),
        sa.Column('users_active_today', sa.Integer(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['tenant_id'], ['tenants.id']),
        sa.UniqueConstraint('tenant_id', 'date', name='uq_tenant_metrics_daily_tenant_date'),
    )
    op.create_index('ix_tenant_metrics_daily_tenant_id', 'tenant_metrics_daily', ['tenant_id'])


def downgrade():
    op.drop_index('ix_tenant_metrics_daily_tenant_id', 'tenant_metrics_daily')
    op.drop_table('tenant_metrics_daily')
    op.drop_index('ix_subscriptions_tenant_id', 'subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_domains_tenant_id', 'domains')
    op.drop_table('domains')
    op.drop_index('ix_tenants_scheduled_for_deletion_at', 'tenants')
    op.drop_index('ix_tenants_owner_email', 'tenants')
    op.drop_index('ix_tenants_status', 'tenants')
    op.drop_index('ix_tenants_name', 'tenants')
    op.drop_index('ix_tenants_slug', 'tenants')
    op.drop_table('tenants')
