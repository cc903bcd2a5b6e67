"""
Tests for the tenantplane CLI commands
"""

import pytest
from datetime import timedelta
from typer.testing import CliRunner

import tenantplane.cli.app as cli_module
from tenantplane.cli.app import app
from tenantplane.core.timeutils import utcnow

runner = CliRunner()


@pytest.fixture(autouse=True)
def _use_test_plane(plane, monkeypatch):
    monkeypatch.setattr(cli_module, "get_control_plane", lambda: plane)


def test_provision_then_verify():
    result = runner.invoke(app, [
        "tenants:provision", "acme",
        "--name", "Acme",
        "--owner-email", "owner@acme.example.com",
        "--password", "secret-pass",
    ])
    assert result.exit_code == 0, result.output
    assert "provisioned" in result.output

    result = runner.invoke(app, ["tenants:verify", "acme", "--detailed"])
    assert result.exit_code == 0, result.output
    assert "fully operational" in result.output


def test_verify_unknown_tenant_fails():
    result = runner.invoke(app, ["tenants:verify", "nobody"])
    assert result.exit_code == 1
    assert "FAIL" in result.output


def test_provision_reserved_slug_fails():
    result = runner.invoke(app, [
        "tenants:provision", "admin", "--name", "Admin", "--owner-email", "owner@example.com",
    ])
    assert result.exit_code == 1


def test_list_tenants(provision):
    provision("acme")
    provision("globex")

    result = runner.invoke(app, ["tenants:list"])

    assert result.exit_code == 0, result.output
    assert "Total: 2" in result.output


def test_list_without_tenants():
    result = runner.invoke(app, ["tenants:list"])
    assert result.exit_code == 0
    assert "No tenants found" in result.output


def test_migrate_requires_target():
    result = runner.invoke(app, ["tenants:migrate"])
    assert result.exit_code == 1


def test_migrate_all_reports_failures(plane, provision, make_tenant):
    provision("acme")
    make_tenant("broken", tenancy_db_name="bad-name")

    result = runner.invoke(app, ["tenants:migrate", "--all"])

    assert result.exit_code == 1
    assert "FAILED" in result.output
    assert "1 succeeded, 1 failed" in result.output


def test_migrate_single_tenant_with_seed(provision):
    provision("acme")
    result = runner.invoke(app, ["tenants:migrate", "acme", "--seed"])
    assert result.exit_code == 0, result.output
    assert "0 migration(s) applied, seeded" in result.output


def test_migrate_unknown_tenant():
    result = runner.invoke(app, ["tenants:migrate", "nobody"])
    assert result.exit_code == 1


def test_seed_all(provision):
    provision("acme")
    provision("globex")
    result = runner.invoke(app, ["tenants:seed", "--all"])
    assert result.exit_code == 0, result.output
    assert "2 succeeded, 0 failed" in result.output


def test_seed_unknown_class(provision):
    provision("acme")
    result = runner.invoke(app, ["tenants:seed", "acme", "--class", "MissingSeeder"])
    assert result.exit_code == 1


def test_baseline_dry_run(plane, make_tenant):
    tenant = make_tenant("legacy")
    plane.driver.create_if_not_exists(tenant.tenancy_db_name)

    result = runner.invoke(app, ["tenant:baseline-migrations", "legacy", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "Missing: 8" in result.output
    assert "nothing inserted" in result.output

    result = runner.invoke(app, ["tenant:baseline-migrations", "legacy", "--batch", "2"])
    assert result.exit_code == 0, result.output
    assert "Inserted: 8" in result.output


def test_delete_cancelled_at_first_prompt(plane, provision):
    provision("acme")
    result = runner.invoke(app, ["tenants:delete", "acme"], input="n\n")
    assert result.exit_code == 0
    assert "Operation cancelled" in result.output
    assert plane.registry.find("acme") is not None


def test_delete_slug_mismatch(plane, provision):
    provision("acme")
    result = runner.invoke(app, ["tenants:delete", "acme"], input="y\nwrong\n")
    assert result.exit_code == 1
    assert plane.registry.find("acme") is not None


def test_delete_confirmed(plane, provision):
    tenant = provision("acme").tenant
    result = runner.invoke(app, ["tenants:delete", "acme"], input="y\nacme\n")
    assert result.exit_code == 0, result.output
    assert plane.registry.find("acme") is None
    assert not plane.driver.exists(tenant.tenancy_db_name)


def test_delete_force_unknown_tenant():
    result = runner.invoke(app, ["tenants:delete", "nobody", "--force"])
    assert result.exit_code == 1


def test_purge_expired_dry_run_then_real(plane, make_tenant):
    make_tenant("gone", subscription_state="cancelled", deactivated_at=utcnow() - timedelta(days=40))

    result = runner.invoke(app, ["tenants:purge-expired", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "would schedule gone" in result.output
    assert "Would purge: 1" in result.output
    assert plane.registry.get("gone").scheduled_for_deletion_at is None

    result = runner.invoke(app, ["tenants:purge-expired", "--retention-days", "30"])
    assert result.exit_code == 0, result.output
    assert "Scheduled: 1" in result.output
    assert "Purged: 1" in result.output
    assert plane.registry.find("gone") is None


def test_compute_metrics(plane, provision):
    provision("acme")

    result = runner.invoke(app, ["tenants:compute-metrics-daily", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "dry-run acme" in result.output

    result = runner.invoke(app, ["tenants:compute-metrics-daily", "--date", "2026-01-15"])
    assert result.exit_code == 0, result.output
    assert "1 succeeded" in result.output


def test_compute_metrics_invalid_date():
    result = runner.invoke(app, ["tenants:compute-metrics-daily", "--date", "15/01/2026"])
    assert result.exit_code == 1


def test_central_init():
    result = runner.invoke(app, ["central:init"])
    assert result.exit_code == 0
    assert "ready" in result.output


def test_purge_expired_continues_past_a_scheduling_failure(plane, make_tenant, monkeypatch):
    import tenantplane.services.retention as retention

    make_tenant("broken", subscription_state="cancelled", deactivated_at=utcnow() - timedelta(days=40))
    make_tenant("gone", subscription_state="cancelled", deactivated_at=utcnow() - timedelta(days=40))
    anchor = retention.retention_anchor

    def failing_anchor(tenant, now):
        if tenant.slug == "broken":
            raise RuntimeError("boom")
        return anchor(tenant, now)

    monkeypatch.setattr(retention, "retention_anchor", failing_anchor)
    result = runner.invoke(app, ["tenants:purge-expired", "--retention-days", "30"])

    assert result.exit_code == 1, result.output
    assert "FAILED scheduling broken: boom" in result.output
    assert "Purged: 1" in result.output
    assert "Failed: 1" in result.output
    assert plane.registry.find("gone") is None
    assert plane.registry.find("broken") is not None
