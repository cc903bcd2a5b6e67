"""
Tenant database seeders

Seeders write through the switcher's current session, so they must run
inside a tenant scope. Every seeder is get-or-create and safe to repeat.
"""

import re
from typing import Dict, Type

from sqlmodel import Session, select
import structlog

from tenantplane.core import permissions as rbac
from tenantplane.core.exceptions import ConfigurationError
from tenantplane.core.tenancy import ConnectionSwitcher
from tenantplane.models import Permission, Role, RolePermission, User, UserRole

logger = structlog.get_logger(__name__)


def get_or_create_role(session: Session, name: str) -> Role:
    role = session.exec(select(Role).where(Role.name == name)).first()
    if role is None:
        role = Role(name=name)
        session.add(role)
        session.flush()
    return role


def assign_role(session: Session, user: User, role_name: str) -> bool:
    """Link a user to a role; returns False when the link already existed"""
    role = get_or_create_role(session, role_name)
    if session.get(UserRole, (user.id, role.id)) is not None:
        return False
    session.add(UserRole(user_id=user.id, role_id=role.id))
    session.flush()
    return True


class Seeder:
    def __init__(self, switcher: ConnectionSwitcher):
        self.switcher = switcher

    def run(self) -> Dict[str, int]:
        raise NotImplementedError


class RolesAndPermissionsSeeder(Seeder):
    """Permission catalog plus the default roles and their grants"""

    def run(self) -> Dict[str, int]:
        session = self.switcher.session()
        stats = {"permissions": 0, "roles": 0, "grants": 0}

        records = {record.name: record for record in session.exec(select(Permission)).all()}
        for permission in rbac.Permission:
            if permission.value not in records:
                record = Permission(name=permission.value)
                session.add(record)
                records[permission.value] = record
                stats["permissions"] += 1
        session.flush()

        for role_name, grants in rbac.ROLE_PERMISSIONS.items():
            existed = session.exec(select(Role).where(Role.name == role_name)).first() is not None
            role = get_or_create_role(session, role_name)
            if not existed:
                stats["roles"] += 1

            granted = set(session.exec(
                select(RolePermission.permission_id).where(RolePermission.role_id == role.id)
            ).all())
            for permission in sorted(grants, key=lambda p: p.value):
                permission_id = records[permission.value].id
                if permission_id not in granted:
                    session.add(RolePermission(role_id=role.id, permission_id=permission_id))
                    stats["grants"] += 1

        session.commit()
        logger.info("Roles and permissions seeded", database=self.switcher.target_name(), **stats)
        return stats


class TenantDatabaseSeeder(Seeder):
    """Baseline seeding, then every user linked to the role its label names"""

    def run(self) -> Dict[str, int]:
        stats = RolesAndPermissionsSeeder(self.switcher).run()
        session = self.switcher.session()
        linked = 0
        for user in session.exec(select(User).order_by(User.id)).all():
            if assign_role(session, user, rbac.canonical_role(user.role)):
                linked += 1
        session.commit()
        stats["linked_users"] = linked
        logger.info("Tenant database seeded", database=self.switcher.target_name(), linked_users=linked)
        return stats


SEEDERS: Dict[str, Type[Seeder]] = {
    "RolesAndPermissionsSeeder": RolesAndPermissionsSeeder,
    "TenantDatabaseSeeder": TenantDatabaseSeeder,
}

DEFAULT_SEEDER = "TenantDatabaseSeeder"


def get_seeder(name: str) -> Type[Seeder]:
    """Seeder class by name; namespaced names use their last segment"""
    short = re.split(r"[\\./:]", name or DEFAULT_SEEDER)[-1]
    try:
        return SEEDERS[short]
    except KeyError:
        raise ConfigurationError(f"Unknown seeder: {name}") from None
