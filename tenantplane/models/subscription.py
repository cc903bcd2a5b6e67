"""
Subscription model - billing facts owned by the billing collaborators
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import DateTime
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from tenantplane.core.timeutils import utcnow


class SubscriptionStatus(str, Enum):
    """Gateway-level subscription status strings"""
    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    CANCELED = "canceled"
    CANCELLED = "cancelled"


class Subscription(SQLModel, table=True):
    """One optional subscription per tenant (read-only for the lifecycle core)"""

    __tablename__ = "subscriptions"

    id: Optional[int] = Field(default=None, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="tenants.id", unique=True, index=True)

    plan: str = Field(default="starter", max_length=50)
    user_limit: int = Field(default=1)
    status: str = Field(default=SubscriptionStatus.ACTIVE.value, max_length=20)

    # Trial and billing period
    is_trial: bool = Field(default=False)
    trial_ends_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    billing_period_ends_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    next_renewal_at: Optional[datetime] = Field(default=None, sa_type=DateTime)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
