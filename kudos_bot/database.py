"""Storage backends and session management.

Two interchangeable backends share one contract: an embedded SQLite file for
local development and a pooled PostgreSQL database when ``KUDOS_DATABASE_URL``
is set. The backend is chosen once by :func:`initialize` and then passed
around explicitly; nothing in this module holds a process-wide connection.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import event, func, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncConnection,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from kudos_bot.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _ensure_sqlite_directory(sqlite_path: str) -> None:
    if sqlite_path in {"", ":memory:"}:
        return
    db_file = Path(sqlite_path)
    if db_file.parent and str(db_file.parent) != ".":
        db_file.parent.mkdir(parents=True, exist_ok=True)


def _create_indexes(sync_conn) -> None:
    # create_all() only emits indexes together with a brand new table, so
    # tables that predate an index need it created separately.
    for table in Base.metadata.sorted_tables:
        for index in table.indexes:
            index.create(sync_conn, checkfirst=True)


class StorageBackend:
    """Common contract for the relational backends."""

    name = "abstract"

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self._sessionmaker = async_sessionmaker(
            engine, class_=AsyncSession, expire_on_commit=False
        )
        self._closed = False

    def session(self) -> AsyncSession:
        return self._sessionmaker()

    async def open(self) -> None:
        """Verify connectivity and bring the schema up to date."""
        # Register the mapped tables on Base.metadata.
        import kudos_bot.models.kudos  # noqa: F401
        import kudos_bot.models.manager_relationship  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(Base.metadata.create_all)
            await self._migrate_visibility(conn)
            await conn.run_sync(_create_indexes)
        logger.info("Connected to %s database", self.name)

    async def _migrate_visibility(self, conn: AsyncConnection) -> None:
        raise NotImplementedError

    def insert(self, table):
        """Return a dialect INSERT supporting ``on_conflict_do_update``."""
        raise NotImplementedError

    def recent_cutoff(self, days: int):
        """SQL expression for ``now - days`` evaluated by the database clock."""
        raise NotImplementedError

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.engine.dispose()
        logger.info("%s connection closed", self.name)


class SqliteBackend(StorageBackend):
    name = "SQLite"

    def __init__(self, sqlite_path: str, echo: bool = False) -> None:
        _ensure_sqlite_directory(sqlite_path)
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{sqlite_path}",
            echo=echo,
            connect_args={"timeout": 30},
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA busy_timeout=30000;")
            cursor.close()

        super().__init__(engine)
        self.sqlite_path = sqlite_path

    async def _migrate_visibility(self, conn: AsyncConnection) -> None:
        result = await conn.exec_driver_sql("PRAGMA table_info(kudos)")
        columns = {row[1] for row in result.fetchall()}
        if "visibility" in columns:
            return
        logger.info("Adding visibility column to kudos table")
        await conn.exec_driver_sql(
            "ALTER TABLE kudos ADD COLUMN visibility TEXT NOT NULL DEFAULT 'public'"
        )

    def insert(self, table):
        return sqlite.insert(table)

    def recent_cutoff(self, days: int):
        return func.datetime("now", f"-{int(days)} days")


_PG_VISIBILITY_MIGRATION = """
DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1 FROM information_schema.columns
        WHERE table_name = 'kudos' AND column_name = 'visibility'
    ) THEN
        ALTER TABLE kudos ADD COLUMN visibility TEXT NOT NULL DEFAULT 'public';
    END IF;
END $$;
"""


def _asyncpg_url(database_url: str) -> tuple[URL, dict]:
    """Point a plain postgres URL at asyncpg and lift ``sslmode`` out of it."""
    url = make_url(database_url)
    connect_args: dict = {}
    sslmode = url.query.get("sslmode")
    if sslmode and sslmode != "disable":
        connect_args["ssl"] = sslmode
    url = url.difference_update_query(["sslmode"]).set(drivername="postgresql+asyncpg")
    return url, connect_args


class PostgresBackend(StorageBackend):
    name = "PostgreSQL"

    def __init__(self, database_url: str, echo: bool = False) -> None:
        url, connect_args = _asyncpg_url(database_url)
        engine = create_async_engine(url, echo=echo, connect_args=connect_args)
        super().__init__(engine)

    async def _migrate_visibility(self, conn: AsyncConnection) -> None:
        await conn.exec_driver_sql(_PG_VISIBILITY_MIGRATION)

    def insert(self, table):
        return postgresql.insert(table)

    def recent_cutoff(self, days: int):
        return func.now() - func.make_interval(0, 0, 0, int(days))


def create_backend(config: Settings) -> StorageBackend:
    if config.database_url:
        return PostgresBackend(config.database_url, echo=config.debug)
    return SqliteBackend(config.sqlite_path, echo=config.debug)


async def initialize(config: Settings) -> StorageBackend:
    """Select, open and return the storage backend for this process.

    Connection and DDL failures propagate so that startup aborts.
    """
    backend = create_backend(config)
    try:
        await backend.open()
    except Exception:
        logger.error("Failed to initialize %s database", backend.name)
        await backend.close()
        raise
    return backend
