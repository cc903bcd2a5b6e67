"""
Physical-database drivers

A driver creates, drops, and inspects whole tenant databases. SQLite keeps
one file per tenant; server backends issue DDL through the central engine.
"""

from typing import List
import re

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError, ProgrammingError
import structlog

from tenantplane.core.database import DatabaseManager
from tenantplane.core.exceptions import ConfigurationError, TransientOperationError

logger = structlog.get_logger(__name__)

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_]+$")


def validate_database_name(database_name) -> str:
    """Reject empty or unsafe database names before any DDL is built"""
    if not database_name or not _SAFE_NAME.match(str(database_name)):
        raise ConfigurationError(f"Invalid tenant database name: {database_name!r}")
    return str(database_name)


class DatabaseDriver:
    """Interface of a physical-database driver"""

    def __init__(self, database: DatabaseManager):
        self.database = database

    def create_if_not_exists(self, database_name: str) -> bool:
        """Create the database; returns False when it was already there"""
        raise NotImplementedError

    def drop(self, database_name: str) -> None:
        raise NotImplementedError

    def exists(self, database_name: str) -> bool:
        raise NotImplementedError

    def list_tables(self, database_name: str) -> List[str]:
        """Table names inside a tenant database"""
        validate_database_name(database_name)
        engine = self.database.tenant_engine(database_name)
        try:
            return sorted(inspect(engine).get_table_names())
        except OperationalError as exc:
            raise TransientOperationError(f"Cannot inspect database '{database_name}': {exc}") from exc


class SQLiteDatabaseDriver(DatabaseDriver):
    """One SQLite file per tenant under TENANT_DATABASE_DIR"""

    def create_if_not_exists(self, database_name: str) -> bool:
        validate_database_name(database_name)
        path = self.database.sqlite_path(database_name)
        if path.exists():
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        # Connecting creates the file
        with self.database.tenant_engine(database_name).connect():
            pass
        logger.info("Tenant database created", database=database_name)
        return True

    def drop(self, database_name: str) -> None:
        validate_database_name(database_name)
        self.database.dispose_tenant_engine(database_name)
        path = self.database.sqlite_path(database_name)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise TransientOperationError(f"Cannot drop database '{database_name}': {exc}") from exc
        logger.info("Tenant database dropped", database=database_name)

    def exists(self, database_name: str) -> bool:
        validate_database_name(database_name)
        return self.database.sqlite_path(database_name).exists()

    def list_tables(self, database_name: str) -> List[str]:
        if not self.exists(database_name):
            return []
        return super().list_tables(database_name)


class ServerDatabaseDriver(DatabaseDriver):
    """MySQL/MariaDB and PostgreSQL, via the central server connection"""

    def _execute(self, statement: str, fetch: bool = False, **params):
        engine = self.database.central_engine
        try:
            with engine.connect().execution_options(isolation_level="AUTOCOMMIT") as conn:
                result = conn.execute(text(statement), params)
                return result.fetchall() if fetch else None
        except (OperationalError, ProgrammingError) as exc:
            raise TransientOperationError(str(exc.orig or exc)) from exc

    def _quote(self, database_name: str) -> str:
        preparer = self.database.central_engine.dialect.identifier_preparer
        return preparer.quote_identifier(database_name)

    def create_if_not_exists(self, database_name: str) -> bool:
        validate_database_name(database_name)
        if self.exists(database_name):
            return False
        quoted = self._quote(database_name)
        if self.database.backend == "postgresql":
            statement = f"CREATE DATABASE {quoted} ENCODING 'UTF8'"
        else:
            statement = f"CREATE DATABASE IF NOT EXISTS {quoted} CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        try:
            self._execute(statement)
        except TransientOperationError:
            # Lost a race with a concurrent create
            if self.exists(database_name):
                return False
            raise
        logger.info("Tenant database created", database=database_name)
        return True

    def drop(self, database_name: str) -> None:
        validate_database_name(database_name)
        self.database.dispose_tenant_engine(database_name)
        self._execute(f"DROP DATABASE IF EXISTS {self._quote(database_name)}")
        logger.info("Tenant database dropped", database=database_name)

    def exists(self, database_name: str) -> bool:
        validate_database_name(database_name)
        if self.database.backend == "postgresql":
            rows = self._execute("SELECT 1 FROM pg_database WHERE datname = :name", fetch=True, name=database_name)
        else:
            rows = self._execute(
                "SELECT SCHEMA_NAME FROM information_schema.SCHEMATA WHERE SCHEMA_NAME = :name",
                fetch=True,
                name=database_name,
            )
        return bool(rows)


def build_driver(database: DatabaseManager) -> DatabaseDriver:
    """Pick the driver matching the central database backend"""
    if database.backend == "sqlite":
        return SQLiteDatabaseDriver(database)
    if database.backend in ("mysql", "mariadb", "postgresql"):
        return ServerDatabaseDriver(database)
    raise ConfigurationError(f"Unsupported database backend: {database.backend}")
