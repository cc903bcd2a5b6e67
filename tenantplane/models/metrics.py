"""
Daily tenant usage metrics (central registry)
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime, UniqueConstraint
from datetime import date as date_type, datetime
from typing import Optional
import uuid

from tenantplane.core.timeutils import utcnow


class TenantMetricsDaily(SQLModel, table=True):
    """Usage counts read from a tenant database, one row per tenant per day"""

    __tablename__ = "tenant_metrics_daily"
    __table_args__ = (UniqueConstraint("tenant_id", "date", name="uq_tenant_metrics_daily_tenant_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", index=True)
    date: date_type

    timesheets_total: int = 0
    timesheets_today: int = 0
    expenses_total: int = 0
    expenses_today: int = 0
    users_total: int = 0
    users_active_today: int = 0
    last_login_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
