"""
Tenant deletion

Removes the central record (tenant row, domains, subscription, metrics) in one
transaction, then drops the physical database. If the drop keeps failing the
central record is already gone and the database is left orphaned; the error is
raised so the caller sees it.
"""

from typing import Dict
import structlog
from sqlmodel import select

from tenantplane.core.database import DatabaseManager
from tenantplane.core.drivers import DatabaseDriver
from tenantplane.core.events import AuditSink, TenantDeleted
from tenantplane.core.exceptions import TransientOperationError
from tenantplane.core.tenancy import TenantLocks
from tenantplane.models import Domain, Subscription, Tenant, TenantMetricsDaily

logger = structlog.get_logger(__name__)

DROP_ATTEMPTS = 2


class TenantDeleter:
    def __init__(self, database: DatabaseManager, driver: DatabaseDriver, locks: TenantLocks, audit: AuditSink):
        self.database = database
        self.driver = driver
        self.locks = locks
        self.audit = audit

    def delete(self, tenant: Tenant) -> Dict[str, int]:
        """Hard-delete a tenant and its database"""
        log = logger.bind(tenant_id=str(tenant.id), slug=tenant.slug)
        with self.locks.hold(tenant.slug):
            removed = self._delete_central(tenant)
            log.info("Tenant record deleted from central database", **removed)

            if tenant.tenancy_db_name:
                self._drop_database(tenant, log)

        self.audit.emit(TenantDeleted(tenant.id, tenant.slug, details={"database": tenant.tenancy_db_name, **removed}))
        return removed

    def _delete_central(self, tenant: Tenant) -> Dict[str, int]:
        removed = {"domains": 0, "subscriptions": 0, "metrics": 0}
        with self.database.central_session() as session:
            for model, key in (
                (TenantMetricsDaily, "metrics"),
                (Domain, "domains"),
                (Subscription, "subscriptions"),
            ):
                for row in session.exec(select(model).where(model.tenant_id == tenant.id)).all():
                    session.delete(row)
                    removed[key] += 1
            # Dependents must be gone before the tenant row on FK-enforcing backends
            session.flush()
            record = session.get(Tenant, tenant.id)
            if record is not None:
                session.delete(record)
            session.commit()
        return removed

    def _drop_database(self, tenant: Tenant, log) -> None:
        database_name = tenant.tenancy_db_name
        last_error = None
        for attempt in range(1, DROP_ATTEMPTS + 1):
            try:
                self.driver.drop(database_name)
            except TransientOperationError as exc:
                last_error = exc
                log.warning("Database drop failed", database=database_name, attempt=attempt, error=str(exc))
            if not self.driver.exists(database_name):
                log.info("Tenant database removed", database=database_name)
                return
            log.warning("Database still exists after drop", database=database_name, attempt=attempt)

        raise TransientOperationError(
            f"Database '{database_name}' could not be dropped; central record already removed"
            + (f": {last_error}" if last_error else ""),
            tenant_id=tenant.id,
            slug=tenant.slug,
        )
