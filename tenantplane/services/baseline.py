"""
Migration baseline

Marks tenant migrations as applied, without running them, for schemas that
were created out of band.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy import inspect
import structlog

from tenantplane.core.tenancy import ConnectionSwitcher
from tenantplane.migrations import (
    LEDGER_TABLE,
    TenantMigrationSource,
    ensure_ledger,
    record_migrations,
    recorded_migrations,
)

logger = structlog.get_logger(__name__)


@dataclass
class BaselineReport:
    slug: str
    batch: int
    dry_run: bool
    known: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    inserted: int = 0
    created_ledger: bool = False


class MigrationBaseline:
    def __init__(self, switcher: ConnectionSwitcher, source: TenantMigrationSource):
        self.switcher = switcher
        self.source = source

    def baseline(
        self,
        tenant,
        batch: int = 1,
        dry_run: bool = False,
        names: Optional[Iterable[str]] = None,
    ) -> BaselineReport:
        """Record every known migration missing from the tenant ledger under `batch`"""
        known = sorted(set(names) if names is not None else self.source.enumerate())
        report = BaselineReport(slug=tenant.slug, batch=max(1, int(batch)), dry_run=dry_run, known=known)

        with self.switcher.scope(tenant):
            engine = self.switcher.engine()
            if dry_run:
                with engine.connect() as conn:
                    if inspect(conn).has_table(LEDGER_TABLE.name):
                        report.existing = sorted(recorded_migrations(conn))
            else:
                with engine.begin() as conn:
                    report.created_ledger = ensure_ledger(conn)
                    report.existing = sorted(recorded_migrations(conn))

            recorded = set(report.existing)
            report.missing = [name for name in known if name not in recorded]

            if dry_run or not report.missing:
                return report

            with engine.begin() as conn:
                record_migrations(conn, report.missing, report.batch)
            report.inserted = len(report.missing)

        logger.info(
            "Migrations baselined",
            slug=tenant.slug,
            inserted=report.inserted,
            batch=report.batch,
            created_ledger=report.created_ledger,
        )
        return report
