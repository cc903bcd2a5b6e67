"""tenantplane CLI -- Typer-based operator interface.

Tenant lifecycle commands: listing, provisioning, migrations, seeding,
baselining, deletion, verification, retention purge and daily metrics.
Human-readable output goes to *stderr* via Rich. Exit code is 0 on full
success and 1 when the command, or any tenant in a batch, failed.
"""

from contextlib import contextmanager
from datetime import date
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
import structlog

from tenantplane.cli.display import (
    display_baseline_report,
    display_batch_report,
    display_purge_report,
    display_schedule_report,
    display_tenant_list,
    display_verification,
)
from tenantplane.core.dependencies import ControlPlane, get_control_plane
from tenantplane.core.exceptions import ConfigurationError
from tenantplane.core.logging import configure_logging
from tenantplane.core.timeutils import utcnow
from tenantplane.models import Tenant
from tenantplane.services.batch import run_batch
from tenantplane.services.provisioning import ProvisioningRequest
from tenantplane.services.seeders import DEFAULT_SEEDER, get_seeder

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="tenantplane",
    help="Tenant lifecycle and database provisioning control plane",
    no_args_is_help=True,
)
console = Console(stderr=True, soft_wrap=True)


@app.callback()
def _global_options() -> None:
    """Configure logging before any command runs."""
    configure_logging(get_control_plane().settings)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@contextmanager
def _fail_on_error(action: str) -> Iterator[None]:
    """Turn an exception from a single-tenant command into exit code 1."""
    try:
        yield
    except typer.Exit:
        raise
    except Exception as exc:
        logger.error(f"{action} failed", error=str(exc))
        console.print(f"[red]{escape(action)} failed: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc


def _resolve_targets(plane: ControlPlane, tenant: Optional[str], all_tenants: bool) -> List[Tenant]:
    if all_tenants:
        return plane.registry.active_tenants()
    if not tenant:
        console.print("[red]Please provide a tenant slug/ID or use --all[/red]")
        raise typer.Exit(code=1)
    with _fail_on_error("Lookup"):
        return [plane.registry.get(tenant)]


def _finish(report, title: str) -> None:
    display_batch_report(console, report, title)
    raise typer.Exit(code=report.exit_code)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command(name="tenants:list")
def list_tenants(
    status: Optional[str] = typer.Option(None, "--status", help="Only tenants with this status."),
) -> None:
    """List tenants from the central registry."""
    plane = get_control_plane()
    tenants = plane.registry.list(status=status)
    display_tenant_list(console, tenants, plane.registry.subscriptions_by_tenant())


@app.command(name="tenants:provision")
def provision_tenant(
    slug: str = typer.Argument(..., help="Tenant slug."),
    name: str = typer.Option(..., "--name", help="Tenant display name."),
    owner_email: str = typer.Option(..., "--owner-email", help="Owner principal email."),
    owner_name: Optional[str] = typer.Option(None, "--owner-name", help="Owner display name."),
    password: Optional[str] = typer.Option(None, "--password", help="Owner password (only used on creation)."),
    plan: str = typer.Option("trial", "--plan", help="Plan label."),
    domain: Optional[str] = typer.Option(None, "--domain", help="Primary domain."),
) -> None:
    """Create a tenant or resume its provisioning."""
    plane = get_control_plane()
    request = ProvisioningRequest(
        name=name,
        slug=slug,
        owner_name=owner_name,
        owner_email=owner_email,
        password=password,
        plan=plan,
        domain=domain,
    )
    with _fail_on_error(f"Provisioning {slug}"):
        result = plane.pipeline.provision(request)

    console.print(f"Tenant: {escape(result.tenant.slug)} ({result.tenant.id})")
    console.print(f"  Database: {result.database_name} ({'created' if result.database_created else 'existing'})")
    console.print(f"  Migrations applied: {len(result.migrations_applied)}")
    console.print(f"  Owner: {'created' if result.owner_created else 'existing'} (id {result.owner_id})")
    console.print(f"[green]Tenant '{escape(result.tenant.slug)}' provisioned.[/green]")


@app.command(name="tenants:migrate")
def migrate_tenants(
    tenant: Optional[str] = typer.Argument(None, help="Tenant slug or ID."),
    all_tenants: bool = typer.Option(False, "--all", help="Migrate every active tenant."),
    fresh: bool = typer.Option(False, "--fresh", help="Drop all tables and re-run migrations."),
    seed: bool = typer.Option(False, "--seed", help="Seed after migrating."),
) -> None:
    """Run tenant migrations for one or all tenant databases."""
    plane = get_control_plane()
    targets = _resolve_targets(plane, tenant, all_tenants)
    if not targets:
        console.print("[yellow]No active tenants found.[/yellow]")
        return

    def migrate_one(target: Tenant) -> str:
        applied = plane.migrator.migrate(target, fresh=fresh)
        detail = f"{len(applied)} migration(s) applied"
        if seed:
            plane.switcher.run(target, lambda: get_seeder(DEFAULT_SEEDER)(plane.switcher).run())
            detail += ", seeded"
        return detail

    console.print(f"Migrating {len(targets)} tenant(s)...")
    _finish(run_batch(targets, lambda t: t.slug, migrate_one), "Migrate")


@app.command(name="tenants:seed")
def seed_tenants(
    tenant: Optional[str] = typer.Argument(None, help="Tenant slug or ID."),
    seeder_class: Optional[str] = typer.Option(None, "--class", help="Seeder class to run."),
    all_tenants: bool = typer.Option(False, "--all", help="Seed every active tenant."),
) -> None:
    """Run a seeder against one or all tenant databases."""
    plane = get_control_plane()
    try:
        seeder = get_seeder(seeder_class or DEFAULT_SEEDER)
    except ConfigurationError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=1) from exc

    targets = _resolve_targets(plane, tenant, all_tenants)
    if not targets:
        console.print("[yellow]No active tenants found.[/yellow]")
        return

    def seed_one(target: Tenant) -> str:
        plane.switcher.run(target, lambda: seeder(plane.switcher).run())
        return seeder.__name__

    console.print(f"Seeding {len(targets)} tenant(s)...")
    _finish(run_batch(targets, lambda t: t.slug, seed_one), "Seed")


@app.command(name="tenant:baseline-migrations")
def baseline_migrations(
    slug: str = typer.Argument(..., help="Tenant slug or ID."),
    batch: int = typer.Option(1, "--batch", help="Batch number to record."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show missing migrations without inserting."),
) -> None:
    """Mark tenant migrations as executed without running them."""
    plane = get_control_plane()
    with _fail_on_error("Baseline"):
        tenant = plane.registry.get(slug)
        if not plane.source.enumerate():
            console.print("[yellow]No tenant migration files found.[/yellow]")
            return
        report = plane.baseline.baseline(tenant, batch=batch, dry_run=dry_run)
    display_baseline_report(console, report)


@app.command(name="tenants:delete")
def delete_tenant(
    slug: str = typer.Argument(..., help="The tenant slug to delete."),
    force: bool = typer.Option(False, "--force", help="Skip confirmation prompts."),
) -> None:
    """Delete a tenant and its database permanently."""
    plane = get_control_plane()
    with _fail_on_error("Lookup"):
        tenant = plane.registry.get(slug)

    console.print("[yellow]You are about to PERMANENTLY DELETE:[/yellow]")
    console.print(f"  Tenant ID:   {tenant.id}")
    console.print(f"  Slug:        {escape(tenant.slug)}")
    console.print(f"  Name:        {escape(tenant.name)}")
    console.print(f"  Database:    {tenant.tenancy_db_name}")
    console.print(f"  Owner Email: {escape(tenant.owner_email)}")

    if not force:
        if not typer.confirm("This action cannot be undone. Delete this tenant?", default=False):
            console.print("Operation cancelled.")
            return
        typed = typer.prompt(f"Type the tenant slug '{tenant.slug}' to confirm deletion")
        if typed != tenant.slug:
            console.print("[red]Slug mismatch. Operation cancelled for safety.[/red]")
            raise typer.Exit(code=1)

    with _fail_on_error(f"Deleting {slug}"):
        plane.deleter.delete(tenant)
    console.print(f"[green]Tenant '{escape(slug)}' deleted.[/green]")


@app.command(name="tenants:verify")
def verify_tenant(
    slug: str = typer.Argument(..., help="The tenant slug to verify."),
    detailed: bool = typer.Option(False, "--detailed", help="Show table counts and roles."),
) -> None:
    """Verify tenant integrity (central record, database, tables, admin)."""
    plane = get_control_plane()
    report = plane.probe.verify(slug, detailed=detailed)
    display_verification(console, report, detailed=detailed)
    raise typer.Exit(code=report.exit_code)


@app.command(name="tenants:purge-expired")
def purge_expired(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report only; delete nothing."),
    retention_days: Optional[int] = typer.Option(None, "--retention-days", help="Retention window in days."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Max tenants to purge in one run (default 200)."),
) -> None:
    """Schedule and purge tenants after expiry plus the retention window."""
    plane = get_control_plane()
    now = utcnow()
    schedule = plane.scheduler.schedule(now=now, retention_days=retention_days, dry_run=dry_run)

    console.print("Tenant purge run started")
    console.print(f"Retention days: {schedule.retention_days}")
    console.print(f"Dry run: {'yes' if dry_run else 'no'}")
    display_schedule_report(console, schedule)

    report = plane.purger.purge(now=now, limit=limit, dry_run=dry_run, planned=schedule.scheduled)
    display_purge_report(console, report)
    console.print(f"Scheduled: {schedule.count}")
    console.print(f"{'Would purge' if dry_run else 'Purged'}: {report.purged}")
    console.print(f"Failed: {schedule.failed + report.failed}")
    raise typer.Exit(code=max(schedule.exit_code, report.exit_code))


@app.command(name="tenants:compute-metrics-daily")
def compute_metrics_daily(
    as_of: Optional[str] = typer.Option(None, "--date", help="YYYY-MM-DD (defaults to today)."),
    tenant: Optional[str] = typer.Option(None, "--tenant", help="Only this tenant slug."),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not write to the central database."),
    limit: Optional[int] = typer.Option(None, "--limit", help="Max tenants to process (default 500)."),
) -> None:
    """Compute daily usage metrics per tenant."""
    plane = get_control_plane()
    day = None
    if as_of:
        try:
            day = date.fromisoformat(as_of)
        except ValueError as exc:
            console.print(f"[red]Invalid date '{escape(as_of)}': {escape(str(exc))}[/red]")
            raise typer.Exit(code=1) from exc

    if not plane.metrics.metrics_table_exists():
        console.print("Metrics table not found, skipping.")
        return

    report = plane.metrics.compute(as_of=day, tenant_slug=tenant, dry_run=dry_run, limit=limit)
    if not report.items:
        console.print("No tenants to process.")
        return
    if dry_run:
        for item in report.items:
            if item.ok:
                console.print(f"  dry-run {escape(item.key)}: {escape(str(item.data))}")
    _finish(report, "Metrics")


@app.command(name="central:init")
def central_init() -> None:
    """Create the central registry tables (development and tests)."""
    plane = get_control_plane()
    with _fail_on_error("Central init"):
        plane.database.init_db()
    console.print("[green]Central registry tables ready.[/green]")


def main() -> None:
    app()
