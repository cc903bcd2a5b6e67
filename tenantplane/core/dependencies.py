"""
Service wiring and FastAPI dependencies
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional
import secrets

from fastapi import Depends, Header, HTTPException, status
import structlog

from tenantplane.core.config import Settings, get_settings
from tenantplane.core.database import DatabaseManager
from tenantplane.core.drivers import DatabaseDriver, build_driver
from tenantplane.core.events import AuditSink
from tenantplane.core.tenancy import ConnectionSwitcher, TenantLocks
from tenantplane.migrations import TenantMigrationSource, TenantMigrator
from tenantplane.services.baseline import MigrationBaseline
from tenantplane.services.deletion import TenantDeleter
from tenantplane.services.metrics import TenantMetricsCollector
from tenantplane.services.provisioning import ProvisioningPipeline
from tenantplane.services.purge import PurgeExecutor
from tenantplane.services.registry import TenantRegistry
from tenantplane.services.retention import RetentionScheduler
from tenantplane.services.verification import VerificationProbe

logger = structlog.get_logger(__name__)


@dataclass
class ControlPlane:
    """Every lifecycle service, built once per settings object"""

    settings: Settings
    database: DatabaseManager
    driver: DatabaseDriver
    switcher: ConnectionSwitcher
    locks: TenantLocks
    audit: AuditSink
    registry: TenantRegistry
    source: TenantMigrationSource
    migrator: TenantMigrator
    pipeline: ProvisioningPipeline
    baseline: MigrationBaseline
    deleter: TenantDeleter
    scheduler: RetentionScheduler
    purger: PurgeExecutor
    probe: VerificationProbe
    metrics: TenantMetricsCollector


def build_control_plane(settings: Settings, audit: Optional[AuditSink] = None) -> ControlPlane:
    database = DatabaseManager(settings)
    driver = build_driver(database)
    switcher = ConnectionSwitcher(database)
    locks = TenantLocks()
    audit = audit or AuditSink()
    registry = TenantRegistry(database)
    source = TenantMigrationSource(settings.TENANT_MIGRATION_PATHS)
    migrator = TenantMigrator(switcher, source)
    deleter = TenantDeleter(database, driver, locks, audit)
    return ControlPlane(
        settings=settings,
        database=database,
        driver=driver,
        switcher=switcher,
        locks=locks,
        audit=audit,
        registry=registry,
        source=source,
        migrator=migrator,
        pipeline=ProvisioningPipeline(settings, database, driver, switcher, migrator, locks, audit),
        baseline=MigrationBaseline(switcher, source),
        deleter=deleter,
        scheduler=RetentionScheduler(settings, database, registry, audit),
        purger=PurgeExecutor(settings, database, registry, deleter, audit),
        probe=VerificationProbe(registry, driver, switcher),
        metrics=TenantMetricsCollector(settings, database, switcher),
    )


@lru_cache()
def get_control_plane() -> ControlPlane:
    """Process-wide control plane for the configured settings"""
    return build_control_plane(get_settings())


async def require_provisioning_token(
    x_provisioning_token: Optional[str] = Header(default=None),
    plane: ControlPlane = Depends(get_control_plane),
) -> None:
    """Guard signup when PROVISIONING_TOKEN is configured"""
    expected = plane.settings.PROVISIONING_TOKEN
    if not expected:
        return
    if not x_provisioning_token or not secrets.compare_digest(x_provisioning_token, expected):
        logger.warning("Rejected provisioning request with invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid provisioning token",
        )
