"""
Tests for scoped tenant connection switching
"""

import asyncio
import contextvars
import pytest
import threading
from types import SimpleNamespace
import uuid

from sqlmodel import select

from tenantplane.core.exceptions import ConfigurationError
from tenantplane.core.tenancy import CENTRAL_TARGET, TenantLocks
from tenantplane.models import Domain


def _tenant(db_name="tenant_alpha", slug="alpha"):
    return SimpleNamespace(id=uuid.uuid4(), slug=slug, tenancy_db_name=db_name)


def test_default_target_is_central(plane):
    switcher = plane.switcher
    assert switcher.current() is None
    assert switcher.target_name() == CENTRAL_TARGET
    assert switcher.engine() is plane.database.central_engine


def test_scope_switches_and_restores(plane):
    switcher = plane.switcher
    tenant = _tenant()

    with switcher.scope(tenant) as context:
        assert context.database_name == "tenant_alpha"
        assert context.slug == "alpha"
        assert switcher.target_name() == "tenant_alpha"
        assert switcher.engine().url.database.endswith("tenant_alpha.sqlite")

    assert switcher.target_name() == CENTRAL_TARGET


def test_run_returns_value_and_passes_arguments(plane):
    switcher = plane.switcher

    def work(a, b=0):
        return switcher.target_name(), a + b

    assert switcher.run(_tenant(), work, 1, b=2) == ("tenant_alpha", 3)
    assert switcher.target_name() == CENTRAL_TARGET


def test_run_restores_target_when_work_raises(plane):
    switcher = plane.switcher

    def boom():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        switcher.run(_tenant(), boom)

    assert switcher.target_name() == CENTRAL_TARGET


@pytest.mark.parametrize("db_name", [None, "", "tenant-alpha", "tenant_alpha; DROP DATABASE x"])
def test_enter_rejects_missing_or_unsafe_names(plane, db_name):
    """Test that an unroutable tenant fails before the target changes"""
    switcher = plane.switcher

    with pytest.raises(ConfigurationError):
        switcher.run(_tenant(db_name=db_name), lambda: None)

    assert switcher.target_name() == CENTRAL_TARGET


def test_nested_scopes_restore_in_order(plane):
    switcher = plane.switcher
    with switcher.scope(_tenant("tenant_one", "one")):
        with switcher.scope(_tenant("tenant_two", "two")):
            assert switcher.target_name() == "tenant_two"
        assert switcher.target_name() == "tenant_one"
    assert switcher.target_name() == CENTRAL_TARGET


def test_session_is_replaced_after_switching(plane):
    """Test that no session leaks across a switch"""
    switcher = plane.switcher
    central_session = switcher.session()

    with switcher.scope(_tenant()):
        tenant_session = switcher.session()
        assert tenant_session is not central_session
        assert tenant_session.get_bind().url.database.endswith("tenant_alpha.sqlite")

    restored = switcher.session()
    assert restored is not central_session
    assert restored is not tenant_session
    assert restored.get_bind() is plane.database.central_engine


def test_binding_is_isolated_per_thread(plane):
    switcher = plane.switcher
    seen = []

    def other_thread():
        seen.append(switcher.target_name())

    with switcher.scope(_tenant()):
        worker = threading.Thread(target=other_thread)
        worker.start()
        worker.join()
        assert switcher.target_name() == "tenant_alpha"

    assert seen == [CENTRAL_TARGET]



def test_copied_context_does_not_close_the_parent_session(plane, make_tenant):
    """Test that a worker thread running in a copied context keeps its own session"""
    switcher = plane.switcher
    tenant = make_tenant("acme")
    session = switcher.session()
    session.add(Domain(tenant_id=tenant.id, domain="acme.example.com"))
    seen = []

    def work():
        seen.append(switcher.session() is session)
        with switcher.scope(_tenant()):
            seen.append(switcher.target_name())
        seen.append(switcher.session() is session)

    worker = threading.Thread(target=contextvars.copy_context().run, args=(work,))
    worker.start()
    worker.join()

    assert seen == [False, "tenant_alpha", False]
    assert switcher.session() is session
    assert len(session.new) == 1
    session.commit()

    with plane.database.central_session() as check:
        assert [d.domain for d in check.exec(select(Domain)).all()] == ["acme.example.com"]


def test_asyncio_tasks_get_independent_sessions(plane):
    switcher = plane.switcher

    async def child():
        with switcher.scope(_tenant()):
            tenant_session = switcher.session()
        return switcher.session(), tenant_session

    async def main():
        parent = switcher.session()
        child_session, tenant_session = await asyncio.create_task(child())
        return parent, child_session, tenant_session, switcher.session()

    parent, child_session, tenant_session, parent_after = asyncio.run(main())

    assert child_session is not parent
    assert tenant_session is not parent
    assert parent_after is parent
    assert parent.get_bind() is plane.database.central_engine


def test_tenant_locks_are_released_after_use():
    locks = TenantLocks()

    with locks.hold("acme"):
        # Re-entrant for the holding thread
        with locks.hold("acme"):
            assert len(locks) == 1
        with locks.hold("globex"):
            assert len(locks) == 2

    assert len(locks) == 0


def test_tenant_locks_serialize_the_same_key():
    locks = TenantLocks()
    order = []
    entered = threading.Event()

    def other():
        entered.set()
        with locks.hold("acme"):
            order.append("other")

    with locks.hold("acme"):
        worker = threading.Thread(target=other)
        worker.start()
        entered.wait()
        order.append("first")
    worker.join()

    assert order == ["first", "other"]
    assert len(locks) == 0
