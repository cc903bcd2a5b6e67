"""
Tenant provisioning

Brings a tenant to a usable state: central record, physical database, schema,
baseline roles and the owner principal. Every step checks for existing state
first, so a partially provisioned tenant is completed by simply running the
pipeline again.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional
import re

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
import structlog

from tenantplane.core import permissions as rbac
from tenantplane.core.auth import hash_password
from tenantplane.core.config import Settings
from tenantplane.core.database import DatabaseManager
from tenantplane.core.drivers import DatabaseDriver
from tenantplane.core.events import AuditSink, TenantProvisioned
from tenantplane.core.exceptions import (
    AlreadySatisfied,
    InvalidTenantError,
    TenantConflictError,
)
from tenantplane.core.tenancy import ConnectionSwitcher, TenantLocks
from tenantplane.core.timeutils import utcnow
from tenantplane.migrations import TenantMigrator
from tenantplane.models import Domain, Technician, Tenant, TenantStatus, User, tenant_database_name
from tenantplane.services.seeders import RolesAndPermissionsSeeder, assign_role

logger = structlog.get_logger(__name__)

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")
_SLUG_VALID = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,98}[a-z0-9])?$")


def slugify(value: str) -> str:
    return _SLUG_STRIP.sub("-", (value or "").lower()).strip("-")[:100].strip("-")


@dataclass
class ProvisioningRequest:
    name: str
    owner_email: str
    slug: Optional[str] = None
    owner_name: Optional[str] = None
    password: Optional[str] = None
    password_hash: Optional[str] = None
    plan: str = "trial"
    timezone: str = "UTC"
    domain: Optional[str] = None


@dataclass
class ProvisioningResult:
    tenant: Tenant
    database_name: str
    tenant_created: bool = False
    database_created: bool = False
    owner_created: bool = False
    owner_id: Optional[int] = None
    migrations_applied: List[str] = field(default_factory=list)


class ProvisioningPipeline:
    def __init__(
        self,
        settings: Settings,
        database: DatabaseManager,
        driver: DatabaseDriver,
        switcher: ConnectionSwitcher,
        migrator: TenantMigrator,
        locks: TenantLocks,
        audit: AuditSink,
    ):
        self.settings = settings
        self.database = database
        self.driver = driver
        self.switcher = switcher
        self.migrator = migrator
        self.locks = locks
        self.audit = audit

    def resolve_slug(self, request: ProvisioningRequest) -> str:
        slug = (request.slug or "").strip().lower() or slugify(request.name)
        if not _SLUG_VALID.match(slug):
            raise InvalidTenantError(f"Invalid tenant slug: {slug!r}")
        if slug in {reserved.lower() for reserved in self.settings.RESERVED_SLUGS}:
            raise InvalidTenantError(f"Tenant slug is reserved: {slug}")
        return slug

    def provision(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Create or resume provisioning for the tenant named by the request"""
        slug = self.resolve_slug(request)
        with self.locks.hold(slug):
            tenant, tenant_created = self.ensure_tenant(request, slug)
            return self.complete(tenant, request, tenant_created)

    def complete(self, tenant: Tenant, request: ProvisioningRequest, tenant_created: bool = False) -> ProvisioningResult:
        """Database, schema, roles and owner for a tenant that has a central record"""
        log = logger.bind(tenant_id=str(tenant.id), slug=tenant.slug)
        result = ProvisioningResult(
            tenant=tenant,
            database_name=tenant.tenancy_db_name,
            tenant_created=tenant_created,
        )
        with self.locks.hold(tenant.slug):
            try:
                result.database_created = self.driver.create_if_not_exists(tenant.tenancy_db_name)

                with self.switcher.scope(tenant):
                    result.migrations_applied = self.migrator.apply_pending()
                    RolesAndPermissionsSeeder(self.switcher).run()
                    result.owner_id, result.owner_created = self.ensure_owner(request)
            except Exception as exc:
                log.error("Provisioning failed", error=str(exc))
                self._mark(tenant, "failed", error=str(exc))
                raise

            result.tenant = self._mark(tenant, "active")
            log.info(
                "Tenant provisioned",
                database=result.database_name,
                migrations=len(result.migrations_applied),
                owner_created=result.owner_created,
            )
            self.audit.emit(TenantProvisioned(
                tenant.id,
                tenant.slug,
                details={
                    "database": result.database_name,
                    "tenant_created": result.tenant_created,
                    "database_created": result.database_created,
                    "owner_created": result.owner_created,
                },
            ))
            return result

    def ensure_tenant(self, request: ProvisioningRequest, slug: str, create_only: bool = False):
        """
        Central record for the slug; returns (tenant, created).

        An existing record is reused only when it belongs to the same owner and
        `create_only` is off; otherwise TenantConflictError is raised before
        anything is written.
        """
        with self.database.central_session() as session:
            tenant = session.exec(select(Tenant).where(Tenant.slug == slug)).first()
            created = False
            if tenant is not None:
                if create_only or tenant.owner_email.lower() != request.owner_email.lower():
                    raise TenantConflictError(f"Tenant slug already taken: {slug}")
            else:
                now = utcnow()
                tenant = Tenant(
                    name=request.name,
                    slug=slug,
                    status=TenantStatus.ACTIVE.value,
                    plan=request.plan,
                    owner_email=request.owner_email,
                    timezone=request.timezone,
                    trial_ends_at=now + timedelta(days=self.settings.TENANT_TRIAL_DAYS),
                    settings={"provisioning_status": "pending", "provisioning_error": None},
                    created_at=now,
                    updated_at=now,
                )
                tenant.tenancy_db_name = tenant_database_name(tenant.id, self.settings.TENANT_DATABASE_PREFIX)
                session.add(tenant)
                created = True

            if not tenant.tenancy_db_name:
                tenant.tenancy_db_name = tenant_database_name(tenant.id, self.settings.TENANT_DATABASE_PREFIX)
                session.add(tenant)

            if request.domain:
                exists = session.exec(select(Domain).where(Domain.domain == request.domain)).first()
                if exists is None:
                    session.add(Domain(tenant_id=tenant.id, domain=request.domain, is_primary=True))

            try:
                session.commit()
            except IntegrityError as exc:
                # Another process inserted the slug after the lookup above
                session.rollback()
                raise TenantConflictError(f"Tenant slug already taken: {slug}") from exc
            session.refresh(tenant)
            if created:
                logger.info("Tenant record created", tenant_id=str(tenant.id), slug=slug)
            return tenant, created

    def ensure_owner(self, request: ProvisioningRequest):
        """Owner principal, Owner role and linked profile; returns (user_id, created)"""
        session = self.switcher.session()
        existing = session.exec(select(User).where(User.email == request.owner_email)).first()
        if existing is not None:
            logger.info("Owner already exists, skipping", email=request.owner_email)
            return existing.id, False

        try:
            owner = self._create_owner(session, request)
        except AlreadySatisfied:
            session.rollback()
            existing = session.exec(select(User).where(User.email == request.owner_email)).first()
            return existing.id if existing else None, False
        return owner.id, True

    def _create_owner(self, session, request: ProvisioningRequest) -> User:
        now = utcnow()
        password_hash = request.password_hash or hash_password(request.password or "")
        owner = User(
            name=request.owner_name or request.name,
            email=request.owner_email,
            password_hash=password_hash,
            role=rbac.OWNER_ROLE,
            email_verified_at=now,
            created_at=now,
        )
        session.add(owner)
        try:
            session.flush()
        except IntegrityError as exc:
            # Another run created the same owner concurrently
            raise AlreadySatisfied(f"Owner already exists: {request.owner_email}") from exc

        assign_role(session, owner, rbac.OWNER_ROLE)
        session.add(Technician(
            user_id=owner.id,
            name=owner.name,
            email=owner.email,
            role="owner",
            created_by=owner.id,
            updated_by=owner.id,
            created_at=now,
        ))
        session.commit()
        logger.info("Owner created", email=owner.email, user_id=owner.id)
        return owner

    def _mark(self, tenant: Tenant, provisioning_status: str, error: Optional[str] = None) -> Tenant:
        with self.database.central_session() as session:
            record = session.get(Tenant, tenant.id)
            if record is None:
                return tenant
            settings = dict(record.settings or {})
            previous = settings.get("provisioning_status")
            settings["provisioning_status"] = provisioning_status
            settings["provisioning_error"] = error
            record.settings = settings
            # Re-running on a finished tenant leaves a suspended or inactive status alone
            if provisioning_status == "active" and previous != "active":
                record.status = TenantStatus.ACTIVE.value
            record.updated_at = utcnow()
            session.add(record)
            session.commit()
            session.refresh(record)
            return record


def provision_new_tenant(pipeline: ProvisioningPipeline, deleter, request: ProvisioningRequest) -> ProvisioningResult:
    """
    First-time signup: refuse an existing slug, and remove the tenant this
    call created when provisioning fails.
    """
    slug = pipeline.resolve_slug(request)
    with pipeline.locks.hold(slug):
        # Conflicts surface here, before this call owns anything worth cleaning up
        tenant, _ = pipeline.ensure_tenant(request, slug, create_only=True)
        try:
            return pipeline.complete(tenant, request, tenant_created=True)
        except Exception as exc:
            logger.warning("Signup provisioning failed, removing tenant", tenant_id=str(tenant.id), slug=slug, error=str(exc))
            try:
                deleter.delete(tenant)
            except Exception as cleanup_exc:
                logger.error("Signup cleanup failed", tenant_id=str(tenant.id), slug=slug, error=str(cleanup_exc))
            raise
