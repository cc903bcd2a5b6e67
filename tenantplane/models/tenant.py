"""
Tenant model - central registry record for a database-per-tenant workspace
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, DateTime, JSON
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from tenantplane.core.timeutils import utcnow


class TenantStatus(str, Enum):
    """Operational status flag of a tenant"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class Tenant(SQLModel, table=True):
    """Tenant record in the central registry"""

    __tablename__ = "tenants"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(index=True, max_length=255)
    slug: str = Field(unique=True, index=True, max_length=100, description="Unique tenant identifier for routing")
    status: str = Field(default=TenantStatus.ACTIVE.value, index=True, max_length=20)

    # Plan and ownership
    plan: str = Field(default="trial", max_length=50, description="Plan label, informational only")
    owner_email: str = Field(index=True, max_length=255)
    timezone: str = Field(default="UTC", max_length=64)

    # Provisioning status and other free-form flags
    settings: Optional[dict] = Field(default=None, sa_column=Column(JSON))

    # Lifecycle facts
    trial_ends_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    deactivated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    scheduled_for_deletion_at: Optional[datetime] = Field(default=None, index=True, sa_type=DateTime)
    data_retention_until: Optional[datetime] = Field(default=None, sa_type=DateTime)
    subscription_state: Optional[str] = Field(default=None, max_length=20, description="Cached derived lifecycle state")
    subscription_last_status_change_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    # Internal: physical database name, derived from the id at creation
    tenancy_db_name: Optional[str] = Field(default=None, max_length=128)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    @property
    def provisioning_status(self) -> Optional[str]:
        return (self.settings or {}).get("provisioning_status")


class Domain(SQLModel, table=True):
    """Hostname routed to a tenant"""

    __tablename__ = "domains"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    domain: str = Field(unique=True, max_length=255)
    is_primary: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)


def tenant_database_name(tenant_id: uuid.UUID, prefix: str) -> str:
    """Deterministic physical database name for a tenant id"""
    return f"{prefix}{tenant_id.hex}"
