"""
SQLite backing store for eavdb.

This module owns the database file that holds the three EAV tables:
- eav_entities: one row per managed object
- eav_attributes: the global, append-only attribute registry
- eav_values: one typed value per (entity, attribute)

It also owns the transaction boundary. Reads ask Database.connection()
and writes ask Database.write_connection(); outside a transaction that is
a short-lived autocommit connection, inside transaction() it is the single
connection pinned to the current context, so all work commits or rolls
back together.

Writers in one process are serialized by an asyncio lock that an open
transaction holds until it commits. A write issued while another task's
transaction is suspended therefore waits on the event loop instead of in
SQLite's busy handler, which would block the loop and starve the
transaction of its COMMIT.

Invariants:
    - eav_attributes.attribute_name is UNIQUE (first writer wins the type)
    - eav_values has UNIQUE (entity_id, attribute_id)
    - Exactly one value column is non-null per eav_values row (CHECK)
    - Deleting an entity cascades to its values (foreign_keys=ON)

How to change safely:
    - Schema changes bump SCHEMA_VERSION and must be additive
    - Keep every multi-statement write inside transaction()
    - Every INSERT/UPDATE/DELETE goes through write_connection()

Table schema:
    eav_entities:
        - entity_id INTEGER PRIMARY KEY
        - entity_type TEXT
        - name TEXT
        - is_active INTEGER (0/1)
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)

    eav_attributes:
        - attribute_id INTEGER PRIMARY KEY
        - attribute_name TEXT UNIQUE
        - data_type TEXT (string|number|text|boolean|date)
        - description TEXT

    eav_values:
        - value_id INTEGER PRIMARY KEY
        - entity_id INTEGER -> eav_entities ON DELETE CASCADE
        - attribute_id INTEGER -> eav_attributes
        - value_string TEXT, value_number REAL, value_text TEXT,
          value_boolean INTEGER, value_date TEXT
        - UNIQUE (entity_id, attribute_id)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

from ..config import SQL_LOGGER_NAME, Settings
from ..errors import DatabaseNotInitializedError

logger = logging.getLogger(__name__)
sql_logger = logging.getLogger(SQL_LOGGER_NAME)


def now_ms() -> int:
    """Current time as Unix milliseconds."""
    return int(time.time() * 1000)


class Database:
    """SQLite database holding the EAV tables.

    Thread safety:
        Each operation outside a transaction uses its own connection.
        SQLite handles concurrent access via WAL mode and busy_timeout.
        Writers sharing this handle are serialized by an asyncio lock.

    Example:
        >>> db = Database("/var/lib/eav/campus.db")
        >>> await db.initialize()
        >>> async with db.transaction():
        ...     ...  # store calls here share one connection
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        path: str,
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -64000,
        trace_sql: bool = False,
    ) -> None:
        """Initialize the database handle.

        Args:
            path: SQLite database file
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
            trace_sql: Log executed statements to the eavdb.sql logger
        """
        self.path = Path(path)
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self.trace_sql = trace_sql
        self._write_lock = asyncio.Lock()
        self._active: ContextVar[Optional[sqlite3.Connection]] = ContextVar(
            f"eavdb_tx_{id(self)}", default=None
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Create a database handle from settings."""
        return cls(
            settings.database_path,
            wal_mode=settings.wal_mode,
            busy_timeout_ms=settings.busy_timeout_ms,
            cache_size_pages=settings.cache_size_pages,
            trace_sql=settings.trace_sql,
        )

    @property
    def in_transaction(self) -> bool:
        """Whether the current context is inside transaction()."""
        return self._active.get() is not None

    def _connect(self, create: bool = False) -> sqlite3.Connection:
        if not create and not self.path.exists():
            raise DatabaseNotInitializedError(str(self.path))

        self.path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.path),
            timeout=self.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        try:
            conn.row_factory = sqlite3.Row

            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")

            if self.trace_sql:
                conn.set_trace_callback(sql_logger.debug)
        except BaseException:
            conn.close()
            raise
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get a connection for one read.

        Yields the transaction's connection when one is active in the
        current context, otherwise a fresh autocommit connection that is
        closed afterwards.

        Raises:
            DatabaseNotInitializedError: If the database file does not exist
        """
        active = self._active.get()
        if active is not None:
            yield active
            return

        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @asynccontextmanager
    async def write_connection(self) -> AsyncIterator[sqlite3.Connection]:
        """Get a connection for one write.

        Inside a transaction this is the transaction's connection. Otherwise
        the write lock is held for the duration of the statement, so the
        write waits for any open transaction in this process to finish.
        """
        active = self._active.get()
        if active is not None:
            yield active
            return

        async with self._write_lock:
            with self.connection() as conn:
                yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[sqlite3.Connection]:
        """Run the enclosed store operations as one atomic unit.

        Nested use joins the outer transaction. Any exception rolls back
        everything written inside the block and is re-raised. Writes from
        other tasks wait until the transaction commits or rolls back; reads
        proceed.

        Example:
            >>> async with db.transaction():
            ...     entity_id = await store.create_entity("course", "CS101")
            ...     await store.set_entity_attributes(entity_id, attrs)
        """
        active = self._active.get()
        if active is not None:
            yield active
            return

        async with self._write_lock:
            conn = self._connect()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except BaseException:
                conn.close()
                raise

            token = self._active.set(conn)
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                logger.debug("Rolled back transaction", extra={"path": str(self.path)})
                raise
            else:
                conn.execute("COMMIT")
            finally:
                self._active.reset(token)
                conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS eav_entities (
                entity_id INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_type TEXT NOT NULL,
                name TEXT NOT NULL,
                is_active INTEGER NOT NULL DEFAULT 1,
                created_at INTEGER NOT NULL,
                updated_at INTEGER NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_entities_type
                ON eav_entities(entity_type, is_active);

            CREATE TABLE IF NOT EXISTS eav_attributes (
                attribute_id INTEGER PRIMARY KEY AUTOINCREMENT,
                attribute_name TEXT NOT NULL UNIQUE,
                data_type TEXT NOT NULL
                    CHECK (data_type IN ('string', 'number', 'text', 'boolean', 'date')),
                description TEXT
            );

            CREATE TABLE IF NOT EXISTS eav_values (
                value_id INTEGER PRIMARY KEY AUTOINCREMENT,
                entity_id INTEGER NOT NULL
                    REFERENCES eav_entities(entity_id) ON DELETE CASCADE,
                attribute_id INTEGER NOT NULL
                    REFERENCES eav_attributes(attribute_id),
                value_string TEXT,
                value_number REAL,
                value_text TEXT,
                value_boolean INTEGER,
                value_date TEXT,
                UNIQUE (entity_id, attribute_id),
                CHECK (
                    (value_string IS NOT NULL) + (value_number IS NOT NULL)
                    + (value_text IS NOT NULL) + (value_boolean IS NOT NULL)
                    + (value_date IS NOT NULL) = 1
                )
            );

            CREATE INDEX IF NOT EXISTS idx_values_attribute
                ON eav_values(attribute_id);

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        async with self._write_lock:
            conn = self._connect(create=True)
            try:
                self._create_schema(conn)
            finally:
                conn.close()
        logger.info(f"Initialized EAV database: {self.path}")

    async def is_initialized(self) -> bool:
        """Check whether the EAV tables exist."""
        if not self.path.exists():
            return False
        with self.connection() as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' "
                "AND name IN ('eav_entities', 'eav_attributes', 'eav_values')"
            )
            return cursor.fetchone()[0] == 3

    async def get_stats(self) -> dict[str, int]:
        """Get row counts for the EAV tables.

        Returns:
            Dictionary with entity, attribute and value counts
        """
        with self.connection() as conn:
            stats = {}

            cursor = conn.execute("SELECT COUNT(*) FROM eav_entities")
            stats["entities"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM eav_attributes")
            stats["attributes"] = cursor.fetchone()[0]

            cursor = conn.execute("SELECT COUNT(*) FROM eav_values")
            stats["values"] = cursor.fetchone()[0]

            return stats
