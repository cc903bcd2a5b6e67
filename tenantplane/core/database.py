"""
Database configuration and session management

One engine for the central registry, plus one lazily created engine per
tenant database, cached by database name.
"""

from pathlib import Path
from typing import Dict
import threading

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL, make_url
from sqlmodel import Session, SQLModel
import structlog

from tenantplane.core.config import Settings
from tenantplane.models import CENTRAL_TABLES

logger = structlog.get_logger(__name__)


def _engine_kwargs(url: URL, echo: bool) -> dict:
    kwargs = {"echo": echo, "future": True}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs["pool_pre_ping"] = True
    return kwargs


class DatabaseManager:
    """Owns the central engine and the per-tenant engine cache"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.central_url = make_url(settings.DATABASE_URL)
        self.central_engine = create_engine(
            self.central_url,
            **_engine_kwargs(self.central_url, settings.DATABASE_ECHO),
        )
        self._tenant_engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    @property
    def backend(self) -> str:
        return self.central_url.get_backend_name()

    def central_session(self) -> Session:
        """New session against the central registry"""
        return Session(self.central_engine, expire_on_commit=False)

    def sqlite_path(self, database_name: str) -> Path:
        return Path(self.settings.TENANT_DATABASE_DIR) / f"{database_name}.sqlite"

    def tenant_url(self, database_name: str) -> URL:
        """Connection URL of a tenant database on the central server"""
        if self.backend == "sqlite":
            return make_url(f"sqlite:///{self.sqlite_path(database_name)}")
        return self.central_url.set(database=database_name)

    def tenant_engine(self, database_name: str) -> Engine:
        """Cached engine bound to one tenant database"""
        with self._lock:
            engine = self._tenant_engines.get(database_name)
            if engine is None:
                url = self.tenant_url(database_name)
                engine = create_engine(url, **_engine_kwargs(url, self.settings.DATABASE_ECHO))
                self._tenant_engines[database_name] = engine
            return engine

    def dispose_tenant_engine(self, database_name: str) -> None:
        """Close pooled connections to a tenant database and forget its engine"""
        with self._lock:
            engine = self._tenant_engines.pop(database_name, None)
        if engine is not None:
            engine.dispose()

    def init_db(self) -> None:
        """Create the central registry tables (development and tests)"""
        SQLModel.metadata.create_all(self.central_engine, tables=CENTRAL_TABLES)
        logger.info("Central registry tables created")

    def dispose(self) -> None:
        with self._lock:
            engines = list(self._tenant_engines.values())
            self._tenant_engines.clear()
        for engine in engines:
            engine.dispose()
        self.central_engine.dispose()
