"""
Tenant schema migrations

Each file under a migration path is one migration, named by its file stem
and applied in sorted order. Files expose `upgrade()` (and optionally
`downgrade()`) written against `alembic.op`. Applied names are kept in the
`migrations` ledger table of each tenant database, grouped by batch.
"""

from pathlib import Path
from types import ModuleType
from typing import Iterable, List, Set, Union
import importlib.util

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import MetaData, func, inspect, insert, select
from sqlalchemy.engine import Connection
import structlog

from tenantplane.core.exceptions import ConfigurationError
from tenantplane.core.tenancy import ConnectionSwitcher
from tenantplane.models.migration import MigrationRecord

logger = structlog.get_logger(__name__)

LEDGER_TABLE = MigrationRecord.__table__


class TenantMigrationSource:
    """Migration definitions found in one or more directories"""

    def __init__(self, paths: Iterable[Union[str, Path]]):
        self.paths = [Path(path) for path in paths]

    def enumerate(self) -> Set[str]:
        """Names of every migration file on disk"""
        names = set()
        for path in self.paths:
            if not path.is_dir():
                logger.warning("Migration path not found, skipping", path=str(path))
                continue
            for file in path.glob("*.py"):
                if not file.name.startswith("_"):
                    names.add(file.stem)
        return names

    def definitions(self) -> List[str]:
        return sorted(self.enumerate())

    def path_for(self, name: str) -> Path:
        for path in self.paths:
            candidate = path / f"{name}.py"
            if candidate.is_file():
                return candidate
        raise ConfigurationError(f"Migration not found: {name}")

    def load(self, name: str) -> ModuleType:
        spec = importlib.util.spec_from_file_location(f"tenantplane_migration_{name}", self.path_for(name))
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        if not hasattr(module, "upgrade"):
            raise ConfigurationError(f"Migration {name} has no upgrade()")
        return module


def ensure_ledger(connection: Connection) -> bool:
    """Create the ledger table when missing; returns True if it was created"""
    if inspect(connection).has_table(LEDGER_TABLE.name):
        return False
    LEDGER_TABLE.create(connection, checkfirst=True)
    return True


def recorded_migrations(connection: Connection) -> Set[str]:
    return set(connection.execute(select(LEDGER_TABLE.c.migration)).scalars())


def next_batch(connection: Connection) -> int:
    current = connection.execute(select(func.max(LEDGER_TABLE.c.batch))).scalar()
    return (current or 0) + 1


def record_migrations(connection: Connection, names: Iterable[str], batch: int) -> None:
    for name in names:
        connection.execute(insert(LEDGER_TABLE).values(migration=name, batch=batch))


class TenantMigrator:
    """Applies pending migrations to the database the switcher points at"""

    def __init__(self, switcher: ConnectionSwitcher, source: TenantMigrationSource):
        self.switcher = switcher
        self.source = source

    def _tenant_engine(self):
        if self.switcher.current() is None:
            raise ConfigurationError("Tenant migrations require an active tenant context")
        return self.switcher.engine()

    def pending(self) -> List[str]:
        engine = self._tenant_engine()
        with engine.begin() as conn:
            ensure_ledger(conn)
            recorded = recorded_migrations(conn)
        return [name for name in self.source.definitions() if name not in recorded]

    def apply_pending(self) -> List[str]:
        """Run every unrecorded migration, each in its own transaction"""
        engine = self._tenant_engine()
        pending = self.pending()
        if not pending:
            return []

        with engine.connect() as conn:
            batch = next_batch(conn)

        applied = []
        for name in pending:
            module = self.source.load(name)
            with engine.begin() as conn:
                with Operations.context(MigrationContext.configure(conn)):
                    module.upgrade()
                record_migrations(conn, [name], batch)
            applied.append(name)
            logger.info("Migrated", migration=name, database=self.switcher.target_name(), batch=batch)
        return applied

    def drop_all_tables(self) -> None:
        engine = self._tenant_engine()
        metadata = MetaData()
        metadata.reflect(bind=engine)
        metadata.drop_all(bind=engine)
        logger.info("Dropped all tables", database=self.switcher.target_name())

    def migrate(self, tenant, fresh: bool = False) -> List[str]:
        """Bring one tenant database up to date, optionally from scratch"""
        with self.switcher.scope(tenant):
            if fresh:
                self.drop_all_tables()
            return self.apply_pending()
