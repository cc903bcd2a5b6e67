"""
Test configuration for pytest

Every test gets its own central SQLite file and tenant database directory
under tmp_path.
"""

import pytest
from datetime import timedelta
from typing import Generator

from tenantplane.core.config import Settings
from tenantplane.core.dependencies import ControlPlane, build_control_plane
from tenantplane.core.events import RecordingAuditSink
from tenantplane.core.logging import configure_logging
from tenantplane.core.timeutils import utcnow
from tenantplane.models import Subscription, Tenant, tenant_database_name
from tenantplane.services.provisioning import ProvisioningRequest


@pytest.fixture(scope="session", autouse=True)
def _logging():
    configure_logging(Settings(_env_file=None, LOG_JSON=False, LOG_LEVEL="WARNING"))


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=f"sqlite:///{tmp_path / 'central.sqlite'}",
        TENANT_DATABASE_DIR=str(tmp_path / "tenants"),
        JWT_SECRET_KEY="test-jwt-secret",
        PROVISIONING_TOKEN=None,
    )


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def plane(settings, audit) -> Generator[ControlPlane, None, None]:
    """Control plane over a fresh central registry"""
    plane = build_control_plane(settings, audit=audit)
    plane.database.init_db()
    yield plane
    plane.database.dispose()


@pytest.fixture
def make_tenant(plane):
    """Insert a central tenant row without provisioning anything"""
    def _make(slug: str = "acme", **fields) -> Tenant:
        tenant = Tenant(
            name=fields.pop("name", slug.title()),
            slug=slug,
            owner_email=fields.pop("owner_email", f"owner@{slug}.example.com"),
            **fields,
        )
        if "tenancy_db_name" not in fields:
            tenant.tenancy_db_name = tenant_database_name(tenant.id, plane.settings.TENANT_DATABASE_PREFIX)
        with plane.database.central_session() as session:
            session.add(tenant)
            session.commit()
            session.refresh(tenant)
        return tenant
    return _make


@pytest.fixture
def add_subscription(plane):
    def _add(tenant: Tenant, **fields) -> Subscription:
        subscription = Subscription(tenant_id=tenant.id, **fields)
        with plane.database.central_session() as session:
            session.add(subscription)
            session.commit()
            session.refresh(subscription)
        return subscription
    return _add


@pytest.fixture
def request_for():
    def _request(slug: str = "acme", **fields) -> ProvisioningRequest:
        return ProvisioningRequest(
            name=fields.pop("name", slug.title()),
            slug=slug,
            owner_name=fields.pop("owner_name", "Owner"),
            owner_email=fields.pop("owner_email", f"owner@{slug}.example.com"),
            password=fields.pop("password", "secret-pass"),
            **fields,
        )
    return _request


@pytest.fixture
def provision(plane, request_for):
    """Fully provision a tenant and return the pipeline result"""
    def _provision(slug: str = "acme", **fields):
        return plane.pipeline.provision(request_for(slug, **fields))
    return _provision


@pytest.fixture
def now():
    return utcnow()


def days(n: int) -> timedelta:
    return timedelta(days=n)
