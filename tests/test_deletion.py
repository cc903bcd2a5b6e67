"""
Tests for hard tenant deletion
"""

import pytest
from datetime import date
from sqlmodel import select

from tenantplane.core.events import TenantDeleted
from tenantplane.core.exceptions import TransientOperationError
from tenantplane.models import Domain, Subscription, TenantMetricsDaily


def test_delete_removes_central_records_and_database(plane, provision, add_subscription, audit):
    tenant = provision("acme", domain="acme.example.com").tenant
    add_subscription(tenant, status="cancelled")
    with plane.database.central_session() as session:
        session.add(TenantMetricsDaily(tenant_id=tenant.id, date=date(2026, 1, 1)))
        session.commit()

    removed = plane.deleter.delete(tenant)

    assert removed == {"domains": 1, "subscriptions": 1, "metrics": 1}
    assert plane.registry.find("acme") is None
    assert not plane.driver.exists(tenant.tenancy_db_name)
    with plane.database.central_session() as session:
        for model in (Domain, Subscription, TenantMetricsDaily):
            assert session.exec(select(model)).all() == []

    events = audit.of_type(TenantDeleted)
    assert len(events) == 1
    assert events[0].details["database"] == tenant.tenancy_db_name


def test_delete_leaves_other_tenants_alone(plane, provision):
    acme = provision("acme").tenant
    globex = provision("globex").tenant

    plane.deleter.delete(acme)

    assert plane.registry.find("globex") is not None
    assert plane.driver.exists(globex.tenancy_db_name)
    assert plane.probe.verify("globex").healthy


def test_drop_is_retried_once(plane, provision, monkeypatch):
    tenant = provision("acme").tenant
    drop = plane.driver.drop
    calls = []

    def flaky_drop(name):
        calls.append(name)
        if len(calls) == 1:
            raise TransientOperationError("database is locked")
        drop(name)

    monkeypatch.setattr(plane.driver, "drop", flaky_drop)
    plane.deleter.delete(tenant)

    assert len(calls) == 2
    assert not plane.driver.exists(tenant.tenancy_db_name)


def test_failed_drop_leaves_orphaned_database(plane, provision, audit, monkeypatch):
    """Test that the central record is gone even when the drop keeps failing"""
    tenant = provision("acme").tenant

    def failing_drop(name):
        raise TransientOperationError("permission denied")

    monkeypatch.setattr(plane.driver, "drop", failing_drop)
    with pytest.raises(TransientOperationError) as excinfo:
        plane.deleter.delete(tenant)

    assert excinfo.value.slug == "acme"
    assert plane.registry.find("acme") is None
    assert plane.driver.exists(tenant.tenancy_db_name)
    assert audit.of_type(TenantDeleted) == []
