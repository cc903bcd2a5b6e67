"""
Daily tenant usage metrics

Reads usage counts from each tenant database through the connection switcher
and upserts one row per tenant and day into the central registry.
"""

from datetime import date, datetime, time
from typing import Dict, Optional

from sqlalchemy import MetaData, Table, func, inspect, select as sa_select
from sqlalchemy.engine import Connection
from sqlmodel import select
import structlog

from tenantplane.core.config import Settings
from tenantplane.core.database import DatabaseManager
from tenantplane.core.tenancy import ConnectionSwitcher
from tenantplane.core.timeutils import utcnow
from tenantplane.models import Tenant, TenantMetricsDaily, TenantStatus
from tenantplane.services.batch import BatchReport, ItemResult

logger = structlog.get_logger(__name__)

METRICS_TABLE = TenantMetricsDaily.__tablename__


def _count(conn: Connection, table: Table, since: Optional[datetime] = None, column: str = "created_at") -> int:
    statement = sa_select(func.count()).select_from(table)
    if since is not None:
        statement = statement.where(table.c[column] >= since)
    return int(conn.execute(statement).scalar() or 0)


class TenantMetricsCollector:
    def __init__(self, settings: Settings, database: DatabaseManager, switcher: ConnectionSwitcher):
        self.settings = settings
        self.database = database
        self.switcher = switcher

    def metrics_table_exists(self) -> bool:
        return inspect(self.database.central_engine).has_table(METRICS_TABLE)

    def read_metrics(self, as_of: date) -> Dict[str, object]:
        """Usage counts of the database the switcher currently points at"""
        start = datetime.combine(as_of, time.min)
        metrics = {
            "timesheets_total": 0,
            "timesheets_today": 0,
            "expenses_total": 0,
            "expenses_today": 0,
            "users_total": 0,
            "users_active_today": 0,
            "last_login_at": None,
        }
        with self.switcher.engine().connect() as conn:
            inspector = inspect(conn)
            existing = set(inspector.get_table_names())
            metadata = MetaData()

            def columns(name):
                return {column["name"] for column in inspector.get_columns(name)}

            for name in ("timesheets", "expenses"):
                if name not in existing:
                    continue
                table = Table(name, metadata, autoload_with=conn)
                metrics[f"{name}_total"] = _count(conn, table)
                if "created_at" in columns(name):
                    metrics[f"{name}_today"] = _count(conn, table, since=start)

            # Prefer users; fall back to technicians for older schemas
            principal = "users" if "users" in existing else "technicians" if "technicians" in existing else None
            if principal:
                table = Table(principal, metadata, autoload_with=conn)
                metrics["users_total"] = _count(conn, table)
                present = columns(principal)
                seen_column = next((c for c in ("last_seen_at", "last_login_at") if c in present), None)
                if seen_column:
                    metrics["users_active_today"] = _count(conn, table, since=start, column=seen_column)
                    metrics["last_login_at"] = conn.execute(sa_select(func.max(table.c[seen_column]))).scalar()
        return metrics

    def upsert(self, tenant: Tenant, as_of: date, metrics: Dict[str, object]) -> None:
        now = utcnow()
        with self.database.central_session() as session:
            row = session.exec(
                select(TenantMetricsDaily)
                .where(TenantMetricsDaily.tenant_id == tenant.id)
                .where(TenantMetricsDaily.date == as_of)
            ).first()
            if row is None:
                row = TenantMetricsDaily(tenant_id=tenant.id, date=as_of, created_at=now)
            for key, value in metrics.items():
                setattr(row, key, value)
            row.updated_at = now
            session.add(row)
            session.commit()

    def compute(
        self,
        as_of: Optional[date] = None,
        tenant_slug: Optional[str] = None,
        dry_run: bool = False,
        limit: Optional[int] = None,
    ) -> BatchReport:
        report = BatchReport()
        if not self.metrics_table_exists():
            logger.info("Metrics table not found, skipping")
            return report

        as_of = as_of or utcnow().date()
        if limit is None:
            limit = self.settings.TENANT_METRICS_LIMIT

        statement = (
            select(Tenant)
            .where(Tenant.status == TenantStatus.ACTIVE.value)
            .order_by(Tenant.created_at)
            .limit(max(0, int(limit)))
        )
        if tenant_slug:
            statement = statement.where(Tenant.slug == tenant_slug)
        with self.database.central_session() as session:
            tenants = list(session.exec(statement).all())

        for tenant in tenants:
            log = logger.bind(tenant_id=str(tenant.id), slug=tenant.slug, date=as_of.isoformat())
            try:
                metrics = self.switcher.run(tenant, self.read_metrics, as_of)
                if not dry_run:
                    self.upsert(tenant, as_of, metrics)
            except Exception as exc:
                log.warning("Failed computing tenant metrics", error=str(exc))
                report.add(ItemResult(key=tenant.slug, ok=False, error=str(exc)))
                continue
            report.add(ItemResult(
                key=tenant.slug,
                ok=True,
                detail="dry-run" if dry_run else "stored",
                data=metrics,
            ))
        return report
