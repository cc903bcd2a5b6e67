"""
Tests for the tenant migration catalog and ledger
"""

import pytest
from sqlalchemy import inspect, select, text

from tenantplane.core.config import PACKAGED_TENANT_MIGRATIONS
from tenantplane.core.exceptions import ConfigurationError
from tenantplane.migrations import LEDGER_TABLE, TenantMigrationSource, TenantMigrator

PACKAGED = [
    "2026_01_06_000001_create_users_table",
    "2026_01_06_000002_create_permission_tables",
    "2026_01_06_000003_create_technicians_table",
    "2026_01_06_000004_create_locations_table",
    "2026_01_06_000005_create_projects_tables",
    "2026_01_06_000006_create_tasks_table",
    "2026_01_06_000007_create_timesheets_table",
    "2026_01_06_000008_create_expenses_table",
]

NOTES_MIGRATION = '''
from alembic import op
import sqlalchemy as sa


def upgrade():
    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("body", sa.Text(), nullable=True),
    )
'''


@pytest.fixture
def tenant(plane, make_tenant):
    tenant = make_tenant("acme")
    plane.driver.create_if_not_exists(tenant.tenancy_db_name)
    return tenant


def _ledger(plane, tenant):
    engine = plane.database.tenant_engine(tenant.tenancy_db_name)
    with engine.connect() as conn:
        rows = conn.execute(select(LEDGER_TABLE.c.migration, LEDGER_TABLE.c.batch)).all()
    return {row.migration: row.batch for row in rows}


def _tables(plane, tenant):
    return set(inspect(plane.database.tenant_engine(tenant.tenancy_db_name)).get_table_names())


def test_source_enumerates_packaged_migrations(tmp_path):
    source = TenantMigrationSource([PACKAGED_TENANT_MIGRATIONS, tmp_path / "missing"])
    assert source.definitions() == PACKAGED
    assert source.enumerate() == set(PACKAGED)


def test_source_load_requires_upgrade(tmp_path):
    (tmp_path / "2026_02_01_000001_broken.py").write_text("x = 1\n")
    source = TenantMigrationSource([tmp_path])
    with pytest.raises(ConfigurationError):
        source.load("2026_02_01_000001_broken")
    with pytest.raises(ConfigurationError):
        source.path_for("does_not_exist")


def test_migrate_creates_schema_and_ledger(plane, tenant):
    applied = plane.migrator.migrate(tenant)

    assert applied == PACKAGED
    assert {"users", "roles", "user_has_roles", "timesheets", "expenses", "migrations"} <= _tables(plane, tenant)
    assert _ledger(plane, tenant) == {name: 1 for name in PACKAGED}


def test_migrate_twice_applies_nothing(plane, tenant):
    plane.migrator.migrate(tenant)
    assert plane.migrator.migrate(tenant) == []
    assert len(_ledger(plane, tenant)) == len(PACKAGED)


def test_new_migration_gets_next_batch(plane, tenant, tmp_path):
    plane.migrator.migrate(tenant)

    extra = tmp_path / "extra_migrations"
    extra.mkdir()
    (extra / "2026_02_01_000001_create_notes_table.py").write_text(NOTES_MIGRATION)
    migrator = TenantMigrator(plane.switcher, TenantMigrationSource([PACKAGED_TENANT_MIGRATIONS, extra]))

    assert migrator.migrate(tenant) == ["2026_02_01_000001_create_notes_table"]
    ledger = _ledger(plane, tenant)
    assert ledger["2026_02_01_000001_create_notes_table"] == 2
    assert ledger[PACKAGED[0]] == 1
    assert "notes" in _tables(plane, tenant)


def test_fresh_drops_data_and_reapplies(plane, tenant):
    plane.migrator.migrate(tenant)
    engine = plane.database.tenant_engine(tenant.tenancy_db_name)
    with engine.begin() as conn:
        conn.execute(text(
            "INSERT INTO users (name, email, password_hash) VALUES ('A', 'a@example.com', 'x')"
        ))

    applied = plane.migrator.migrate(tenant, fresh=True)

    assert applied == PACKAGED
    with engine.connect() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM users")).scalar() == 0
    assert _ledger(plane, tenant) == {name: 1 for name in PACKAGED}


def test_apply_pending_requires_tenant_context(plane):
    """Test that migrations never run against the central database"""
    with pytest.raises(ConfigurationError):
        plane.migrator.apply_pending()
    assert not inspect(plane.database.central_engine).has_table("migrations")
