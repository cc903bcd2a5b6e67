"""
Tests for tenant database seeders and the RBAC catalog
"""

import pytest
from sqlalchemy import text
from sqlmodel import select

from tenantplane.core.exceptions import ConfigurationError
from tenantplane.core.permissions import (
    ADMINISTRATIVE_ROLES,
    Permission,
    ROLE_PERMISSIONS,
    canonical_role,
    get_permissions_for_role,
)
from tenantplane.models import Role, RolePermission, UserRole
from tenantplane.services.seeders import (
    RolesAndPermissionsSeeder,
    TenantDatabaseSeeder,
    get_seeder,
)


def test_get_permissions_for_role():
    """Test permission retrieval for all roles"""
    # Owners and admins have every permission
    assert get_permissions_for_role("Owner") == set(Permission)
    assert get_permissions_for_role("admin") == set(Permission)

    manager = get_permissions_for_role("manager")
    assert Permission.APPROVE_TIMESHEETS in manager
    assert Permission.MANAGE_USERS not in manager

    technician = get_permissions_for_role("Technician")
    assert Permission.CREATE_EXPENSES in technician
    assert Permission.APPROVE_EXPENSES not in technician

    assert get_permissions_for_role("unknown") == set()


def test_canonical_role():
    assert canonical_role("owner") == "Owner"
    assert canonical_role(" Manager ") == "Manager"
    assert canonical_role("contractor") == "Technician"
    assert canonical_role(None) == "Technician"
    assert set(ADMINISTRATIVE_ROLES) == {"Owner", "Admin"}


def test_get_seeder_by_name():
    assert get_seeder("TenantDatabaseSeeder") is TenantDatabaseSeeder
    assert get_seeder("Database\\Seeders\\RolesAndPermissionsSeeder") is RolesAndPermissionsSeeder
    assert get_seeder("seeders.TenantDatabaseSeeder") is TenantDatabaseSeeder
    with pytest.raises(ConfigurationError):
        get_seeder("MissingSeeder")


def test_roles_seeder_is_repeatable(plane, provision):
    tenant = provision("acme").tenant

    with plane.switcher.scope(tenant):
        stats = RolesAndPermissionsSeeder(plane.switcher).run()
        session = plane.switcher.session()
        grants = session.exec(select(RolePermission)).all()
        roles = session.exec(select(Role.name)).all()

    assert stats == {"permissions": 0, "roles": 0, "grants": 0}
    assert sorted(roles) == sorted(ROLE_PERMISSIONS)
    assert len(grants) == sum(len(perms) for perms in ROLE_PERMISSIONS.values())


def test_tenant_seeder_links_users_by_label(plane, provision):
    tenant = provision("acme").tenant
    engine = plane.database.tenant_engine(tenant.tenancy_db_name)
    with engine.begin() as conn:
        conn.execute(text(
            "INSERT INTO users (name, email, password_hash, role) VALUES "
            "('Mia', 'mia@example.com', 'x', 'manager'), "
            "('Tom', 'tom@example.com', 'x', 'field-tech')"
        ))

    stats = plane.switcher.run(tenant, lambda: TenantDatabaseSeeder(plane.switcher).run())
    again = plane.switcher.run(tenant, lambda: TenantDatabaseSeeder(plane.switcher).run())

    assert stats["linked_users"] == 2
    assert again["linked_users"] == 0
    with plane.switcher.scope(tenant):
        session = plane.switcher.session()
        links = session.exec(
            select(Role.name).join(UserRole, UserRole.role_id == Role.id).order_by(UserRole.user_id)
        ).all()
    assert links == ["Owner", "Manager", "Technician"]
