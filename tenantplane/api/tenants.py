"""
Tenant API endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List, Optional
import structlog

from tenantplane.api.schemas import (
    CheckRead,
    TenantRead,
    TenantSignup,
    TenantSignupResponse,
    VerificationRead,
)
from tenantplane.core import permissions as rbac
from tenantplane.core.auth import create_access_token
from tenantplane.core.dependencies import ControlPlane, get_control_plane, require_provisioning_token
from tenantplane.core.exceptions import InvalidTenantError, TenantConflictError, TenantNotFoundError
from tenantplane.services.provisioning import ProvisioningRequest, provision_new_tenant

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/",
    response_model=TenantSignupResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_provisioning_token)],
)
def signup_tenant(
    signup: TenantSignup,
    plane: ControlPlane = Depends(get_control_plane)
):
    """Register a new tenant and provision its database"""
    request = ProvisioningRequest(
        name=signup.name,
        slug=signup.slug,
        owner_name=signup.owner_name,
        owner_email=signup.owner_email,
        password=signup.password,
        plan=signup.plan,
        timezone=signup.timezone,
        domain=signup.domain,
    )
    try:
        result = provision_new_tenant(plane.pipeline, plane.deleter, request)
    except TenantConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except InvalidTenantError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except Exception as e:
        logger.error(f"Tenant signup failed: {e}", slug=signup.slug, exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Tenant provisioning failed"
        )

    tenant = result.tenant
    access_token = create_access_token(
        plane.settings,
        user_id=result.owner_id,
        tenant_id=tenant.id,
        role=rbac.OWNER_ROLE,
    )
    logger.info(f"Tenant signed up: {tenant.slug}", tenant_id=str(tenant.id))
    return TenantSignupResponse(
        tenant=_tenant_read(tenant),
        database=result.database_name,
        owner_id=result.owner_id,
        access_token=access_token,
    )


@router.get("/", response_model=List[TenantRead])
def list_tenants(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    plane: ControlPlane = Depends(get_control_plane)
):
    """List tenants in creation order"""
    return [_tenant_read(tenant) for tenant in plane.registry.list(status=status_filter)]


@router.get("/{identifier}", response_model=TenantRead)
def get_tenant(
    identifier: str,
    plane: ControlPlane = Depends(get_control_plane)
):
    """Get tenant by slug or ID"""
    try:
        tenant = plane.registry.get(identifier)
    except TenantNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found"
        )
    return _tenant_read(tenant)


@router.get("/{identifier}/verify", response_model=VerificationRead)
def verify_tenant(
    identifier: str,
    detailed: bool = False,
    plane: ControlPlane = Depends(get_control_plane)
):
    """Run the tenant integrity checks"""
    report = plane.probe.verify(identifier, detailed=detailed)
    if report.tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found"
        )
    return VerificationRead(
        identifier=report.identifier,
        healthy=report.healthy,
        tenant_id=report.tenant_id,
        slug=report.slug,
        checks=[CheckRead(name=c.name, ok=c.ok, detail=c.detail) for c in report.checks],
        missing_tables=report.missing_tables,
        admin_email=report.admin_email,
        admin_roles=report.admin_roles,
        domains=report.domains,
        table_counts=report.table_counts,
    )


def _tenant_read(tenant) -> TenantRead:
    return TenantRead.model_validate(tenant)
