"""
Retention scheduling

Assigns a deletion deadline to every tenant that has none yet and whose
derived state is neither active nor trial. A deadline, once set, is never
recomputed or cleared here.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
import uuid

from sqlmodel import select
import structlog

from tenantplane.core.config import Settings
from tenantplane.core.database import DatabaseManager
from tenantplane.core.events import AuditSink, TenantScheduledForDeletion
from tenantplane.core.timeutils import as_naive_utc, utcnow
from tenantplane.models import Tenant
from tenantplane.services.batch import ItemResult
from tenantplane.services.lifecycle import SubscriptionState, derive_subscription_state, is_protected
from tenantplane.services.registry import TenantRegistry

logger = structlog.get_logger(__name__)


@dataclass
class ScheduledTenant:
    tenant_id: uuid.UUID
    slug: str
    state: SubscriptionState
    anchor: datetime
    deadline: datetime


@dataclass
class ScheduleReport:
    retention_days: int
    dry_run: bool
    scheduled: List[ScheduledTenant] = field(default_factory=list)
    failures: List[ItemResult] = field(default_factory=list)
    skipped: int = 0

    @property
    def count(self) -> int:
        return len(self.scheduled)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0


def retention_anchor(tenant: Tenant, now: datetime) -> datetime:
    """First known timestamp of the tenant leaving active use"""
    for value in (
        tenant.subscription_last_status_change_at,
        tenant.deactivated_at,
        tenant.trial_ends_at,
        tenant.updated_at,
    ):
        if value is not None:
            return as_naive_utc(value)
    return now


class RetentionScheduler:
    def __init__(self, settings: Settings, database: DatabaseManager, registry: TenantRegistry, audit: AuditSink):
        self.settings = settings
        self.database = database
        self.registry = registry
        self.audit = audit

    def schedule(
        self,
        now: Optional[datetime] = None,
        retention_days: Optional[int] = None,
        dry_run: bool = False,
    ) -> ScheduleReport:
        now = as_naive_utc(now) if now is not None else utcnow()
        if retention_days is None:
            retention_days = self.settings.TENANT_RETENTION_DAYS
        retention_days = max(0, int(retention_days))

        report = ScheduleReport(retention_days=retention_days, dry_run=dry_run)
        subscriptions = self.registry.subscriptions_by_tenant()

        with self.database.central_session() as session:
            candidates = session.exec(
                select(Tenant)
                .where(Tenant.scheduled_for_deletion_at.is_(None))
                .order_by(Tenant.created_at)
            ).all()
            keys = [(tenant.id, tenant.slug) for tenant in candidates]

            for tenant, (tenant_id, slug) in zip(candidates, keys):
                try:
                    entry = self._schedule_one(session, tenant, subscriptions.get(tenant_id), now, retention_days, dry_run)
                except Exception as exc:
                    session.rollback()
                    logger.error("Retention scheduling failed", tenant_id=str(tenant_id), slug=slug, error=str(exc))
                    report.failures.append(ItemResult(key=slug, ok=False, error=str(exc)))
                    continue

                if entry is None:
                    report.skipped += 1
                    continue
                report.scheduled.append(entry)
                if not dry_run:
                    self.audit.emit(TenantScheduledForDeletion(
                        tenant_id,
                        slug,
                        details={
                            "state": entry.state.value,
                            "anchor": entry.anchor,
                            "scheduled_for_deletion_at": entry.deadline,
                        },
                    ))

        return report

    def _schedule_one(self, session, tenant: Tenant, subscription, now: datetime, retention_days: int, dry_run: bool):
        """Deadline for one tenant, persisted unless dry_run; None while the tenant is protected"""
        state = derive_subscription_state(subscription, tenant, now)
        if is_protected(state):
            return None

        anchor = retention_anchor(tenant, now)
        deadline = anchor + timedelta(days=retention_days)
        entry = ScheduledTenant(tenant.id, tenant.slug, state, anchor, deadline)

        if dry_run:
            logger.info("Would schedule tenant for deletion", slug=tenant.slug, deadline=deadline.isoformat())
            return entry

        tenant.data_retention_until = deadline
        tenant.scheduled_for_deletion_at = deadline
        tenant.updated_at = now
        session.add(tenant)
        session.commit()

        logger.info("Tenant scheduled for deletion", slug=entry.slug, state=state.value, deadline=deadline.isoformat())
        return entry
