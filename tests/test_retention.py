"""
Tests for retention scheduling
"""

from datetime import datetime, timedelta

from tenantplane.core.events import TenantScheduledForDeletion
from tenantplane.services.lifecycle import SubscriptionState

NOW = datetime(2026, 3, 1, 12, 0, 0)


def test_active_and_trial_tenants_are_not_scheduled(plane, make_tenant, add_subscription):
    paid = make_tenant("paid")
    add_subscription(paid, status="active", next_renewal_at=NOW + timedelta(days=20))
    trial = make_tenant("trial")
    add_subscription(trial, is_trial=True, trial_ends_at=NOW + timedelta(days=5))
    make_tenant("fresh")  # no subscription, no trial date: seeded active

    report = plane.scheduler.schedule(now=NOW)

    assert report.scheduled == []
    assert report.skipped == 3
    assert all(t.scheduled_for_deletion_at is None for t in plane.registry.list())


def test_expired_tenant_gets_deadline_from_anchor(plane, make_tenant, add_subscription, audit):
    changed = NOW - timedelta(days=10)
    tenant = make_tenant(
        "lapsed",
        subscription_last_status_change_at=changed,
        deactivated_at=NOW - timedelta(days=50),
    )
    add_subscription(tenant, is_trial=True, trial_ends_at=NOW - timedelta(days=12))

    report = plane.scheduler.schedule(now=NOW, retention_days=30)

    assert report.count == 1
    entry = report.scheduled[0]
    assert entry.state == SubscriptionState.EXPIRED
    assert entry.anchor == changed
    assert entry.deadline == changed + timedelta(days=30)

    stored = plane.registry.get("lapsed")
    assert stored.scheduled_for_deletion_at == changed + timedelta(days=30)
    assert stored.data_retention_until == stored.scheduled_for_deletion_at
    assert stored.updated_at == NOW

    events = audit.of_type(TenantScheduledForDeletion)
    assert [e.slug for e in events] == ["lapsed"]
    assert events[0].details["state"] == "expired"


def test_anchor_precedence(plane, make_tenant, add_subscription):
    deactivated = make_tenant("deactivated", deactivated_at=NOW - timedelta(days=40), trial_ends_at=NOW - timedelta(days=60))
    add_subscription(deactivated, status="cancelled")
    trial_end = make_tenant("trialend", trial_ends_at=NOW - timedelta(days=3), updated_at=NOW - timedelta(days=1))

    report = plane.scheduler.schedule(now=NOW, retention_days=30)
    by_slug = {entry.slug: entry for entry in report.scheduled}

    assert by_slug["deactivated"].anchor == NOW - timedelta(days=40)
    assert by_slug["trialend"].anchor == NOW - timedelta(days=3)
    assert by_slug["trialend"].state == SubscriptionState.EXPIRED


def test_anchor_falls_back_to_now(plane, make_tenant):
    make_tenant("nofacts", subscription_state="cancelled")

    report = plane.scheduler.schedule(now=NOW, retention_days=7)

    assert report.scheduled[0].anchor == NOW
    assert report.scheduled[0].deadline == NOW + timedelta(days=7)


def test_negative_retention_is_clamped(plane, make_tenant, add_subscription):
    tenant = make_tenant("gone", deactivated_at=NOW - timedelta(days=2))
    add_subscription(tenant, status="cancelled")

    report = plane.scheduler.schedule(now=NOW, retention_days=-5)

    assert report.retention_days == 0
    assert report.scheduled[0].deadline == NOW - timedelta(days=2)


def test_default_retention_comes_from_settings(plane, make_tenant):
    make_tenant("nofacts", subscription_state="past_due")
    report = plane.scheduler.schedule(now=NOW)
    assert report.retention_days == plane.settings.TENANT_RETENTION_DAYS
    assert report.scheduled[0].deadline == NOW + timedelta(days=30)


def test_dry_run_does_not_write(plane, make_tenant, audit):
    make_tenant("nofacts", subscription_state="cancelled")

    report = plane.scheduler.schedule(now=NOW, dry_run=True)

    assert report.count == 1
    assert plane.registry.get("nofacts").scheduled_for_deletion_at is None
    assert audit.of_type(TenantScheduledForDeletion) == []


def test_existing_deadline_is_never_recomputed(plane, make_tenant, add_subscription):
    """Test that a later reactivation leaves the old deadline in place"""
    deadline = NOW + timedelta(days=2)
    tenant = make_tenant(
        "scheduled",
        scheduled_for_deletion_at=deadline,
        subscription_last_status_change_at=NOW - timedelta(days=1),
    )
    add_subscription(tenant, status="cancelled")

    report = plane.scheduler.schedule(now=NOW, retention_days=90)

    assert report.scheduled == []
    assert plane.registry.get("scheduled").scheduled_for_deletion_at == deadline


def test_one_failing_tenant_does_not_stop_scheduling(plane, make_tenant, add_subscription, audit, monkeypatch):
    import tenantplane.services.retention as retention

    for slug in ("broken", "fine"):
        tenant = make_tenant(slug, deactivated_at=NOW - timedelta(days=40))
        add_subscription(tenant, status="cancelled")

    anchor = retention.retention_anchor

    def failing_anchor(tenant, now):
        if tenant.slug == "broken":
            raise RuntimeError("boom")
        return anchor(tenant, now)

    monkeypatch.setattr(retention, "retention_anchor", failing_anchor)
    report = plane.scheduler.schedule(now=NOW, retention_days=30)

    assert [entry.slug for entry in report.scheduled] == ["fine"]
    assert [(item.key, item.error) for item in report.failures] == [("broken", "boom")]
    assert report.exit_code == 1
    assert plane.registry.get("broken").scheduled_for_deletion_at is None
    assert plane.registry.get("fine").scheduled_for_deletion_at == NOW - timedelta(days=10)
    assert [e.slug for e in audit.of_type(TenantScheduledForDeletion)] == ["fine"]
