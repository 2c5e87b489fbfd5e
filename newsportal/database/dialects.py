"""
Store dialects for the News Portal backend.

Each supported store kind has one strategy object that knows how to build
its DSN, open/probe/close connections through its async driver, format
query placeholders, and which idempotent schema statements it needs.
"""

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncGenerator, Dict, List
from urllib.parse import quote, urlsplit, urlunsplit

import aiosqlite
import asyncpg

from newsportal.config.config_manager import ConfigManager

from .pool import PoolLimits


class StoreKind(str, Enum):
    """Supported relational stores."""
    SQLITE = "sqlite"
    POSTGRES = "postgres"


class StoreDialect:
    """Base class for store strategies."""

    kind: StoreKind
    default_limits: PoolLimits

    def build_dsn(self, config: ConfigManager) -> str:
        raise NotImplementedError

    def describe(self, dsn: str) -> str:
        """DSN safe for logging."""
        return dsn

    def pool_limits(self, config: ConfigManager) -> PoolLimits:
        """Dialect defaults overridden by any configured limits."""
        defaults = self.default_limits
        max_open = config.db_max_open_conns
        max_idle = config.db_max_idle_conns
        max_lifetime = config.db_conn_max_lifetime
        max_idle_time = config.db_conn_max_idle_time
        return PoolLimits(
            max_open=max_open if max_open is not None else defaults.max_open,
            max_idle=max_idle if max_idle is not None else defaults.max_idle,
            max_lifetime=max_lifetime if max_lifetime is not None else defaults.max_lifetime,
            max_idle_time=max_idle_time if max_idle_time is not None else defaults.max_idle_time,
        )

    def placeholders(self, count: int) -> str:
        """Comma-separated positional placeholders for ``count`` parameters."""
        raise NotImplementedError

    def schema_statements(self) -> List[str]:
        raise NotImplementedError

    async def open(self, dsn: str) -> Any:
        raise NotImplementedError

    async def close(self, raw: Any) -> None:
        raise NotImplementedError

    def is_closed(self, raw: Any) -> bool:
        return False

    async def ping(self, raw: Any) -> Any:
        raise NotImplementedError

    async def execute(self, raw: Any, query: str, *args) -> Any:
        raise NotImplementedError

    async def fetch(self, raw: Any, query: str, *args) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def transaction(self, raw: Any):
        raise NotImplementedError

    def is_connection_error(self, error: BaseException) -> bool:
        """Whether the connection that raised ``error`` must not be reused."""
        return isinstance(error, (ConnectionError, OSError, asyncio.TimeoutError, asyncio.CancelledError))


class PostgresDialect(StoreDialect):
    """PostgreSQL through asyncpg."""

    kind = StoreKind.POSTGRES
    default_limits = PoolLimits(
        max_open=50,
        max_idle=5,
        max_lifetime=30 * 60,
        max_idle_time=5 * 60,
    )

    def build_dsn(self, config: ConfigManager) -> str:
        if config.database_url:
            return config.database_url
        user = quote(config.db_user, safe='')
        password = quote(config.db_password, safe='')
        credentials = f"{user}:{password}" if password else user
        return (
            f"postgresql://{credentials}@{config.db_host}:{config.db_port}/"
            f"{quote(config.db_name, safe='')}?sslmode=disable"
        )

    def describe(self, dsn: str) -> str:
        parts = urlsplit(dsn)
        if parts.password is None:
            return dsn
        netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
        return urlunsplit(parts._replace(netloc=netloc))

    def placeholders(self, count: int) -> str:
        return ", ".join(f"${i}" for i in range(1, count + 1))

    def schema_statements(self) -> List[str]:
        return [
            """
            CREATE TABLE IF NOT EXISTS articles (
                id SERIAL PRIMARY KEY,
                title VARCHAR(255) NOT NULL,
                content TEXT NOT NULL,
                category VARCHAR(100) NOT NULL,
                author VARCHAR(100) NOT NULL,
                image VARCHAR(255),
                created TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                featured BOOLEAN DEFAULT FALSE
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_articles_category ON articles(category)",
            "CREATE INDEX IF NOT EXISTS idx_articles_featured ON articles(featured)",
            "CREATE INDEX IF NOT EXISTS idx_articles_created ON articles(created DESC)",
            """
            CREATE TABLE IF NOT EXISTS users (
                id SERIAL PRIMARY KEY,
                name VARCHAR(100) NOT NULL,
                email VARCHAR(100) UNIQUE NOT NULL,
                password_hash VARCHAR(255) NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)",
        ]

    async def open(self, dsn: str) -> asyncpg.Connection:
        return await asyncpg.connect(dsn)

    async def close(self, raw: asyncpg.Connection) -> None:
        await raw.close()

    def is_closed(self, raw: asyncpg.Connection) -> bool:
        return raw.is_closed()

    async def ping(self, raw: asyncpg.Connection) -> Any:
        return await raw.fetchval('SELECT 1')

    async def execute(self, raw: asyncpg.Connection, query: str, *args) -> str:
        return await raw.execute(query, *args)

    async def fetch(self, raw: asyncpg.Connection, query: str, *args) -> List[Dict[str, Any]]:
        rows = await raw.fetch(query, *args)
        return [dict(row) for row in rows]

    def transaction(self, raw: asyncpg.Connection):
        return raw.transaction()

    def is_connection_error(self, error: BaseException) -> bool:
        if isinstance(error, (asyncpg.PostgresConnectionError, asyncpg.InterfaceError)):
            return True
        return super().is_connection_error(error)


class SQLiteDialect(StoreDialect):
    """SQLite through aiosqlite, in autocommit mode with explicit transactions."""

    kind = StoreKind.SQLITE
    default_limits = PoolLimits(
        max_open=10,
        max_idle=2,
        max_lifetime=10 * 60,
        max_idle_time=5 * 60,
    )

    def build_dsn(self, config: ConfigManager) -> str:
        return config.db_path

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def schema_statements(self) -> List[str]:
        return [
            """
            CREATE TABLE IF NOT EXISTS articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                content TEXT NOT NULL,
                category TEXT NOT NULL,
                author TEXT NOT NULL,
                image TEXT,
                created DATETIME DEFAULT CURRENT_TIMESTAMP,
                featured BOOLEAN DEFAULT 0
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_articles_category ON articles(category)",
            "CREATE INDEX IF NOT EXISTS idx_articles_featured ON articles(featured)",
            "CREATE INDEX IF NOT EXISTS idx_articles_created ON articles(created DESC)",
            """
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT UNIQUE NOT NULL,
                password_hash TEXT NOT NULL,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)",
        ]

    async def open(self, dsn: str) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(dsn, isolation_level=None)
        conn.row_factory = aiosqlite.Row
        return conn

    async def close(self, raw: aiosqlite.Connection) -> None:
        await raw.close()

    async def ping(self, raw: aiosqlite.Connection) -> Any:
        async with raw.execute('SELECT 1') as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def execute(self, raw: aiosqlite.Connection, query: str, *args) -> int:
        async with raw.execute(query, args) as cursor:
            return cursor.rowcount

    async def fetch(self, raw: aiosqlite.Connection, query: str, *args) -> List[Dict[str, Any]]:
        async with raw.execute(query, args) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    @asynccontextmanager
    async def transaction(self, raw: aiosqlite.Connection) -> AsyncGenerator[aiosqlite.Connection, None]:
        await raw.execute('BEGIN')
        try:
            yield raw
        except BaseException:
            await raw.rollback()
            raise
        else:
            await raw.commit()

    # Raised by aiosqlite once its worker thread has stopped, and by sqlite3
    # on a closed handle. Any other ValueError/ProgrammingError is a query error.
    CLOSED_MESSAGES = ("no active connection", "connection closed", "closed database")

    def is_connection_error(self, error: BaseException) -> bool:
        if isinstance(error, (sqlite3.ProgrammingError, ValueError)):
            message = str(error).lower()
            return any(closed in message for closed in self.CLOSED_MESSAGES)
        return super().is_connection_error(error)


_DIALECTS = {
    StoreKind.POSTGRES: PostgresDialect,
    StoreKind.SQLITE: SQLiteDialect,
}


def get_dialect(kind) -> StoreDialect:
    """Return the dialect strategy for a store kind (enum member or name)."""
    try:
        return _DIALECTS[StoreKind(kind)]()
    except ValueError:
        raise ValueError(f"Unsupported store kind: {kind}")
