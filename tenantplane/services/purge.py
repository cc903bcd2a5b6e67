"""
Purge of tenants whose retention deadline has passed

Candidates are taken earliest deadline first. Each candidate's state is
re-derived right before deletion and active or trial tenants are skipped,
whatever their deadline says. One tenant failing does not stop the others.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from sqlmodel import select
import structlog

from tenantplane.core.config import Settings
from tenantplane.core.database import DatabaseManager
from tenantplane.core.events import AuditSink, TenantPurged, TenantPurgeFailed
from tenantplane.core.exceptions import SafetyViolation
from tenantplane.core.timeutils import as_naive_utc, utcnow
from tenantplane.models import Tenant
from tenantplane.services.batch import BatchReport, ItemResult
from tenantplane.services.deletion import TenantDeleter
from tenantplane.services.lifecycle import derive_subscription_state, is_protected
from tenantplane.services.registry import TenantRegistry
from tenantplane.services.retention import ScheduledTenant

logger = structlog.get_logger(__name__)


@dataclass
class PurgeReport(BatchReport):
    dry_run: bool = False
    candidates: int = 0

    @property
    def purged(self) -> int:
        return self.succeeded


class PurgeExecutor:
    def __init__(
        self,
        settings: Settings,
        database: DatabaseManager,
        registry: TenantRegistry,
        deleter: TenantDeleter,
        audit: AuditSink,
    ):
        self.settings = settings
        self.database = database
        self.registry = registry
        self.deleter = deleter
        self.audit = audit

    def candidates(self, now: datetime, limit: int, planned: Iterable[ScheduledTenant] = ()) -> List[Tenant]:
        """
        Tenants whose deadline has passed, earliest first. `planned` adds
        deadlines a dry-run schedule computed but did not persist.
        """
        statement = (
            select(Tenant)
            .where(Tenant.scheduled_for_deletion_at.is_not(None))
            .where(Tenant.scheduled_for_deletion_at <= now)
            .order_by(Tenant.scheduled_for_deletion_at, Tenant.created_at)
            .limit(limit)
        )
        with self.database.central_session() as session:
            due = [(tenant.scheduled_for_deletion_at, tenant) for tenant in session.exec(statement).all()]
            for entry in planned:
                if entry.deadline > now:
                    continue
                tenant = session.get(Tenant, entry.tenant_id)
                if tenant is not None and tenant.scheduled_for_deletion_at is None:
                    due.append((entry.deadline, tenant))

        due.sort(key=lambda pair: (pair[0], pair[1].created_at))
        return [tenant for _, tenant in due[:limit]]

    def check_purgeable(self, tenant: Tenant, now: datetime) -> None:
        """Raise SafetyViolation when the freshly derived state is active or trial"""
        state = derive_subscription_state(self.registry.subscription_for(tenant), tenant, now)
        if is_protected(state):
            raise SafetyViolation(tenant.slug, state.value)

    def purge(
        self,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        dry_run: bool = False,
        planned: Iterable[ScheduledTenant] = (),
    ) -> PurgeReport:
        now = as_naive_utc(now) if now is not None else utcnow()
        if limit is None:
            limit = self.settings.TENANT_PURGE_LIMIT
        limit = max(0, int(limit))

        report = PurgeReport(dry_run=dry_run)
        # Unpersisted deadlines only count when nothing will be deleted
        candidates = self.candidates(now, limit, planned if dry_run else ()) if limit else []
        report.candidates = len(candidates)

        for tenant in candidates:
            log = logger.bind(tenant_id=str(tenant.id), slug=tenant.slug)
            details = {
                "scheduled_for_deletion_at": tenant.scheduled_for_deletion_at,
                "data_retention_until": tenant.data_retention_until,
            }
            try:
                self.check_purgeable(tenant, now)
            except SafetyViolation as exc:
                log.info("Skipping purge candidate", reason=str(exc))
                report.add(ItemResult(key=tenant.slug, ok=True, skipped=True, detail=f"skipped ({exc.state})"))
                continue

            if dry_run:
                log.info("Would purge tenant")
                report.add(ItemResult(key=tenant.slug, ok=True, detail="would purge"))
                continue

            try:
                self.deleter.delete(tenant)
            except Exception as exc:
                log.error("Purge failed", error=str(exc))
                report.add(ItemResult(key=tenant.slug, ok=False, error=str(exc)))
                self.audit.emit(TenantPurgeFailed(tenant.id, tenant.slug, details={**details, "error": str(exc)}))
                continue

            log.info("Tenant purged")
            report.add(ItemResult(key=tenant.slug, ok=True, detail="purged"))
            self.audit.emit(TenantPurged(tenant.id, tenant.slug, details=details))

        return report
