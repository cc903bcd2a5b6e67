"""
Principal models living inside each tenant database

The tables are created by the tenant migration catalog, never by create_all.
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional

from tenantplane.core.timeutils import utcnow


class User(SQLModel, table=True):
    """Tenant principal (login identity)"""

    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(max_length=255)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(max_length=255)

    # Free-form role label; authoritative grants live in user_has_roles
    role: str = Field(default="Technician", max_length=50)

    email_verified_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    last_login_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    last_seen_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)


class Role(SQLModel, table=True):
    """Named role"""

    __tablename__ = "roles"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, max_length=100)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class Permission(SQLModel, table=True):
    """Named permission"""

    __tablename__ = "permissions"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, max_length=100)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


class RolePermission(SQLModel, table=True):
    """Permission granted to a role"""

    __tablename__ = "role_has_permissions"

    role_id: int = Field(foreign_key="roles.id", primary_key=True)
    permission_id: int = Field(foreign_key="permissions.id", primary_key=True)


class UserRole(SQLModel, table=True):
    """Role assigned to a user"""

    __tablename__ = "user_has_roles"

    user_id: int = Field(foreign_key="users.id", primary_key=True)
    role_id: int = Field(foreign_key="roles.id", primary_key=True)


class Technician(SQLModel, table=True):
    """Profile record linked to a principal"""

    __tablename__ = "technicians"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    name: str = Field(max_length=255)
    email: str = Field(max_length=255)
    role: str = Field(default="technician", max_length=50)
    phone: Optional[str] = Field(default=None, max_length=50)

    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
