"""
API schemas for tenant signup, lookup and verification
"""

from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import Dict, List, Optional
import uuid


# ============================================================================
# Signup Schemas
# ============================================================================

class TenantSignup(BaseModel):
    """Signup request"""
    name: str = Field(..., min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=100)
    owner_name: str = Field(..., min_length=1, max_length=255)
    owner_email: EmailStr
    password: str = Field(..., min_length=8, max_length=255)
    plan: str = Field(default="trial", max_length=50)
    timezone: str = Field(default="UTC", max_length=64)
    domain: Optional[str] = Field(default=None, max_length=255)


class TenantRead(BaseModel):
    id: uuid.UUID
    name: str
    slug: str
    status: str
    plan: str
    owner_email: str
    timezone: str
    trial_ends_at: Optional[datetime] = None
    scheduled_for_deletion_at: Optional[datetime] = None
    subscription_state: Optional[str] = None
    provisioning_status: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TenantSignupResponse(BaseModel):
    """Signup response with the onboarding token"""
    tenant: TenantRead
    database: str
    owner_id: Optional[int] = None
    access_token: str
    token_type: str = "bearer"


# ============================================================================
# Verification Schemas
# ============================================================================

class CheckRead(BaseModel):
    name: str
    ok: bool
    detail: str = ""


class VerificationRead(BaseModel):
    identifier: str
    healthy: bool
    tenant_id: Optional[str] = None
    slug: Optional[str] = None
    checks: List[CheckRead]
    missing_tables: List[str] = []
    admin_email: Optional[str] = None
    admin_roles: List[str] = []
    domains: List[str] = []
    table_counts: Dict[str, int] = {}
