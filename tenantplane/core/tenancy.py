"""
Tenant connection switching

Routes default data access to one tenant database for a block of work and
restores the previous target afterwards. The active binding is held in a
ContextVar, so every thread and asyncio task sees its own target; there is no
process-wide "current tenant" pointer.
"""

import asyncio
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import threading
import uuid

from sqlalchemy.engine import Engine
from sqlmodel import Session
import structlog

from tenantplane.core.database import DatabaseManager
from tenantplane.core.drivers import validate_database_name

logger = structlog.get_logger(__name__)

CENTRAL_TARGET = "central"


@dataclass(frozen=True)
class TenantContext:
    """The tenant database a unit of work is bound to"""

    tenant_id: uuid.UUID
    slug: str
    database_name: str
    engine: Engine


def _current_owner() -> Tuple[threading.Thread, Optional[asyncio.Task]]:
    """The thread and, inside an event loop, the task doing the current work"""
    try:
        task = asyncio.current_task()
    except RuntimeError:
        task = None
    return threading.current_thread(), task


class _Binding:
    """
    Target plus the session lazily opened against it.

    Copied contexts (threads, asyncio tasks) inherit the binding object, so
    only the owner that created it may open or close its session.
    """

    __slots__ = ("context", "owner", "session")

    def __init__(self, context: Optional[TenantContext] = None):
        self.context = context
        self.owner = _current_owner()
        self.session: Optional[Session] = None

    def is_owned(self) -> bool:
        owner = _current_owner()
        return self.owner[0] is owner[0] and self.owner[1] is owner[1]

    def discard_session(self) -> None:
        session, self.session = self.session, None
        if session is not None:
            session.close()


class ConnectionSwitcher:
    """
    Scoped routing of the default session to a tenant database.

    Use `run()` or `scope()`; a bare `enter()` must always be paired with
    `exit()` on every path.
    """

    def __init__(self, database: DatabaseManager):
        self.database = database
        self._binding: ContextVar[Optional[_Binding]] = ContextVar(
            f"tenantplane_binding_{id(self)}", default=None
        )

    def _owned_binding(self) -> _Binding:
        """Binding of this unit of work, forked from an inherited one on first use"""
        binding = self._binding.get()
        if binding is None or not binding.is_owned():
            binding = _Binding(binding.context if binding is not None else None)
            self._binding.set(binding)
        return binding

    def enter(self, tenant) -> Token:
        """Point the default target at the tenant database"""
        # Raises ConfigurationError before anything is touched
        database_name = validate_database_name(getattr(tenant, "tenancy_db_name", None))

        previous = self._binding.get()
        if previous is not None and previous.is_owned():
            previous.discard_session()

        context = TenantContext(
            tenant_id=tenant.id,
            slug=tenant.slug,
            database_name=database_name,
            engine=self.database.tenant_engine(database_name),
        )
        token = self._binding.set(_Binding(context))
        logger.debug("Entered tenant context", slug=tenant.slug, database=database_name)
        return token

    def exit(self, token: Token) -> None:
        """Close the tenant session and restore the binding active before enter()"""
        binding = self._binding.get()
        try:
            if binding is not None and binding.is_owned():
                binding.discard_session()
        finally:
            self._binding.reset(token)
        logger.debug("Restored connection target", target=self.target_name())

    def run(self, tenant, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Call fn with the tenant database as default target"""
        token = self.enter(tenant)
        try:
            return fn(*args, **kwargs)
        finally:
            self.exit(token)

    @contextmanager
    def scope(self, tenant) -> Iterator[TenantContext]:
        token = self.enter(tenant)
        try:
            yield self.current()
        finally:
            self.exit(token)

    def current(self) -> Optional[TenantContext]:
        """Active tenant context, or None while on the central database"""
        binding = self._binding.get()
        return binding.context if binding is not None else None

    def target_name(self) -> str:
        context = self.current()
        return context.database_name if context else CENTRAL_TARGET

    def engine(self) -> Engine:
        context = self.current()
        return context.engine if context else self.database.central_engine

    def session(self) -> Session:
        """Session against the current target, opened on first use"""
        binding = self._owned_binding()
        if binding.session is None:
            binding.session = Session(self.engine(), expire_on_commit=False)
        return binding.session


class TenantLocks:
    """
    In-process lock per tenant, held around provisioning and deletion.

    A key's lock lives only while someone holds or waits on it.
    """

    def __init__(self):
        self._locks: Dict[str, List[Any]] = {}
        self._guard = threading.Lock()

    def __len__(self) -> int:
        return len(self._locks)

    def _acquire_entry(self, key: str) -> List[Any]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.RLock(), 0]
            entry[1] += 1
            return entry

    def _release_entry(self, key: str, entry: List[Any]) -> None:
        with self._guard:
            entry[1] -= 1
            if entry[1] == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        entry = self._acquire_entry(key)
        try:
            with entry[0]:
                yield
        finally:
            self._release_entry(key, entry)
