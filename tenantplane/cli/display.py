"""
Rich output formatting for the tenantplane CLI.

Every function writes to the console it is given (bound to stderr by the
app), one line per tenant plus a closing summary.
"""

from typing import Dict, Iterable, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tenantplane.services.baseline import BaselineReport
from tenantplane.services.batch import BatchReport
from tenantplane.services.purge import PurgeReport
from tenantplane.services.retention import ScheduleReport
from tenantplane.services.verification import VerificationReport


def _fmt(value) -> str:
    if value is None:
        return "-"
    if hasattr(value, "strftime"):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return str(value)


def display_tenant_list(console: Console, tenants: Iterable, subscriptions: Optional[Dict] = None) -> None:
    tenants = list(tenants)
    if not tenants:
        console.print("[yellow]No tenants found.[/yellow]")
        return

    subscriptions = subscriptions or {}
    table = Table(title="Tenants", show_lines=False)
    table.add_column("Slug", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Plan")
    table.add_column("Owner")
    table.add_column("Subscription")
    table.add_column("Provisioning")
    table.add_column("Scheduled deletion")
    table.add_column("Created")

    for tenant in tenants:
        subscription = subscriptions.get(tenant.id)
        table.add_row(
            escape(tenant.slug),
            escape(tenant.name),
            tenant.status,
            tenant.plan,
            escape(tenant.owner_email),
            subscription.status if subscription else "-",
            _fmt(tenant.provisioning_status),
            _fmt(tenant.scheduled_for_deletion_at),
            _fmt(tenant.created_at),
        )
    console.print(table)
    console.print(f"Total: {len(tenants)}")


def display_batch_report(console: Console, report: BatchReport, title: str) -> None:
    for item in report.items:
        if item.skipped:
            console.print(f"  [dim]- {escape(item.key)}: {escape(item.detail or 'skipped')}[/dim]")
        elif item.ok:
            detail = f" ({escape(item.detail)})" if item.detail else ""
            console.print(f"  [green]OK[/green] {escape(item.key)}{detail}")
        else:
            console.print(f"  [red]FAILED[/red] {escape(item.key)}: {escape(item.error or '')}")
    colour = "red" if report.failed else "green"
    console.print(
        f"[{colour}]{title}: {report.succeeded} succeeded, {report.failed} failed"
        f", {report.skipped} skipped[/{colour}]"
    )


def display_baseline_report(console: Console, report: BaselineReport) -> None:
    console.print(f"Tenant: {escape(report.slug)}")
    console.print(f"Migration files found: {len(report.known)}")
    if report.created_ledger:
        console.print("Created migrations table in tenant database.")
    console.print(f"Already present: {len(report.existing)}")
    console.print(f"Missing: {len(report.missing)}")
    if report.dry_run:
        for name in report.missing:
            console.print(f"  - {escape(name)}")
        console.print("[yellow]Dry run: nothing inserted.[/yellow]")
    elif report.inserted:
        console.print(f"[green]Inserted: {report.inserted} migration records (batch {report.batch}).[/green]")
    else:
        console.print("[green]Nothing to baseline.[/green]")


def display_verification(console: Console, report: VerificationReport, detailed: bool = False) -> None:
    console.print(f"Verifying tenant: {escape(report.identifier)}")
    for check in report.checks:
        mark = "[green]PASS[/green]" if check.ok else "[red]FAIL[/red]"
        console.print(f"  {mark} {check.name}: {escape(check.detail)}")

    if report.missing_tables:
        console.print("  Missing tables:")
        for name in report.missing_tables:
            console.print(f"    - {name}")
    if detailed and report.table_counts:
        for name, count in report.table_counts.items():
            console.print(f"    {name}: {count} records")
    if detailed and report.admin_roles:
        console.print(f"  Admin roles: {', '.join(report.admin_roles)}")
    if report.tenant_id is not None:
        if report.domains:
            console.print(f"  Domains: {escape(', '.join(report.domains))}")
        else:
            console.print("  [yellow]No domains configured for this tenant[/yellow]")

    if report.healthy:
        console.print(f"[green]Tenant '{escape(report.identifier)}' is fully operational.[/green]")
    else:
        console.print(f"[red]Tenant '{escape(report.identifier)}' has issues (see above).[/red]")


def display_schedule_report(console: Console, report: ScheduleReport) -> None:
    verb = "would schedule" if report.dry_run else "scheduled"
    for entry in report.scheduled:
        console.print(
            f"  {verb} {escape(entry.slug)} ({entry.state.value}) for purge at {_fmt(entry.deadline)}"
        )
    for item in report.failures:
        console.print(f"  [red]FAILED[/red] scheduling {escape(item.key)}: {escape(item.error or '')}")


def display_purge_report(console: Console, report: PurgeReport) -> None:
    display_batch_report(console, report, "Purge")
