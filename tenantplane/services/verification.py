"""
Tenant verification

Read-only health check of one tenant: central record, physical database,
required tables and an administrative principal. Each check is reported on
its own; the tenant is healthy only when all of them pass.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sqlalchemy import func, inspect, select as sa_select, table
from sqlmodel import select
import structlog

from tenantplane.core.drivers import DatabaseDriver
from tenantplane.core.exceptions import TenantPlaneError
from tenantplane.core.permissions import ADMINISTRATIVE_ROLES
from tenantplane.core.tenancy import ConnectionSwitcher
from tenantplane.models import Role, User, UserRole
from tenantplane.services.registry import TenantRegistry

logger = structlog.get_logger(__name__)

REQUIRED_TABLES = (
    "users",
    "projects",
    "timesheets",
    "expenses",
    "tasks",
    "locations",
    "technicians",
    "project_members",
    "roles",
    "permissions",
    "role_has_permissions",
    "user_has_roles",
)

CHECKS = ("central_record", "database", "tables", "admin_principal")


@dataclass
class CheckResult:
    name: str
    ok: bool
    detail: str = ""


@dataclass
class VerificationReport:
    identifier: str
    tenant_id: Optional[str] = None
    slug: Optional[str] = None
    database_name: Optional[str] = None
    checks: List[CheckResult] = field(default_factory=list)
    present_tables: List[str] = field(default_factory=list)
    missing_tables: List[str] = field(default_factory=list)
    admin_email: Optional[str] = None
    admin_roles: List[str] = field(default_factory=list)
    domains: List[str] = field(default_factory=list)
    table_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def healthy(self) -> bool:
        passed = {check.name for check in self.checks if check.ok}
        return all(name in passed for name in CHECKS)

    @property
    def exit_code(self) -> int:
        return 0 if self.healthy else 1

    def check(self, name: str) -> Optional[CheckResult]:
        return next((check for check in self.checks if check.name == name), None)


class VerificationProbe:
    def __init__(
        self,
        registry: TenantRegistry,
        driver: DatabaseDriver,
        switcher: ConnectionSwitcher,
        required_tables=REQUIRED_TABLES,
    ):
        self.registry = registry
        self.driver = driver
        self.switcher = switcher
        self.required_tables = tuple(required_tables)

    def verify(self, identifier: str, detailed: bool = False) -> VerificationReport:
        report = VerificationReport(identifier=str(identifier))

        tenant = self.registry.find(identifier)
        if tenant is None:
            report.checks.append(CheckResult("central_record", False, f"Tenant '{identifier}' not found"))
            self._skip_remaining(report, "no central record")
            return report

        report.tenant_id = str(tenant.id)
        report.slug = tenant.slug
        report.database_name = tenant.tenancy_db_name
        report.domains = [domain.domain for domain in self.registry.domains_for(tenant)]
        report.checks.append(CheckResult("central_record", True, f"{tenant.name} ({tenant.status})"))
        log = logger.bind(tenant_id=report.tenant_id, slug=tenant.slug)

        try:
            database_exists = self.driver.exists(tenant.tenancy_db_name)
        except TenantPlaneError as exc:
            log.warning("Database check failed", error=str(exc))
            report.checks.append(CheckResult("database", False, str(exc)))
            self._skip_remaining(report, "database check failed")
            return report

        if not database_exists:
            report.checks.append(CheckResult("database", False, f"Database '{tenant.tenancy_db_name}' does not exist"))
            self._skip_remaining(report, "database missing")
            return report
        report.checks.append(CheckResult("database", True, tenant.tenancy_db_name))

        try:
            with self.switcher.scope(tenant):
                self._check_tables(report, detailed)
                self._check_admin(report)
        except Exception as exc:
            log.warning("Tenant database inspection failed", error=str(exc))
            for name in ("tables", "admin_principal"):
                if report.check(name) is None:
                    report.checks.append(CheckResult(name, False, str(exc)))

        log.info("Tenant verified", healthy=report.healthy)
        return report

    def _skip_remaining(self, report: VerificationReport, reason: str) -> None:
        done = {check.name for check in report.checks}
        for name in CHECKS:
            if name not in done:
                report.checks.append(CheckResult(name, False, f"skipped: {reason}"))

    def _check_tables(self, report: VerificationReport, detailed: bool) -> None:
        engine = self.switcher.engine()
        existing = set(inspect(engine).get_table_names())
        report.present_tables = [name for name in self.required_tables if name in existing]
        report.missing_tables = [name for name in self.required_tables if name not in existing]

        if detailed:
            with engine.connect() as conn:
                for name in report.present_tables:
                    report.table_counts[name] = conn.execute(sa_select(func.count()).select_from(table(name))).scalar()

        total = len(self.required_tables)
        detail = f"{len(report.present_tables)}/{total} present"
        if report.missing_tables:
            detail += f"; missing: {', '.join(report.missing_tables)}"
        report.checks.append(CheckResult("tables", not report.missing_tables, detail))

    def _check_admin(self, report: VerificationReport) -> None:
        needed = {"users", "roles", "user_has_roles"}
        if not needed.issubset(set(report.present_tables)):
            report.checks.append(CheckResult("admin_principal", False, "role tables missing"))
            return

        session = self.switcher.session()
        admin = session.exec(
            select(User)
            .join(UserRole, UserRole.user_id == User.id)
            .join(Role, Role.id == UserRole.role_id)
            .where(Role.name.in_(ADMINISTRATIVE_ROLES))
            .order_by(User.id)
        ).first()
        if admin is None:
            report.checks.append(CheckResult("admin_principal", False, "No user holds the Owner or Admin role"))
            return

        report.admin_email = admin.email
        report.admin_roles = sorted(session.exec(
            select(Role.name).join(UserRole, UserRole.role_id == Role.id).where(UserRole.user_id == admin.id)
        ).all())
        report.checks.append(CheckResult("admin_principal", True, admin.email))
