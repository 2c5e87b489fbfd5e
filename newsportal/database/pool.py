"""
Connection pool for the News Portal backend.

A ConnectionPool is the handle request handlers share: a bounded set of
physical connections opened through a store dialect, with limits on open
connections, idle connections, connection lifetime and idle time. The idle
limit can be lowered at runtime to flush stale connections.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Callable, Dict, List, Optional

from .errors import HealthCheckError, PoolClosedError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolLimits:
    """Pool tuning. Lifetimes are in seconds; 0 disables the limit."""

    max_open: int
    max_idle: int
    max_lifetime: float = 0.0
    max_idle_time: float = 0.0

    def __post_init__(self):
        if self.max_open < 1:
            raise ValueError("max_open must be at least 1")
        if self.max_idle < 0:
            raise ValueError("max_idle must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'max_open': self.max_open,
            'max_idle': self.max_idle,
            'max_lifetime': self.max_lifetime,
            'max_idle_time': self.max_idle_time,
        }


class PooledConnection:
    """A physical connection checked out of a ConnectionPool."""

    def __init__(self, raw: Any, dialect, created_at: float):
        self.raw = raw
        self.dialect = dialect
        self.created_at = created_at
        self.returned_at = created_at

    async def execute(self, query: str, *args) -> Any:
        return await self.dialect.execute(self.raw, query, *args)

    async def fetch(self, query: str, *args) -> List[Dict[str, Any]]:
        return await self.dialect.fetch(self.raw, query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[Dict[str, Any]]:
        rows = await self.dialect.fetch(self.raw, query, *args)
        return rows[0] if rows else None

    async def fetchval(self, query: str, *args) -> Any:
        row = await self.fetchrow(query, *args)
        if not row:
            return None
        return next(iter(row.values()))

    def transaction(self):
        return self.dialect.transaction(self.raw)

    def __repr__(self) -> str:
        return f"<PooledConnection kind={self.dialect.kind.value}>"


class ConnectionPool:
    """
    Bounded pool of store connections.

    Features:
    - At most ``max_open`` connections exist at a time
    - At most ``max_idle`` connections are kept for reuse
    - Connections older than ``max_lifetime`` or idle longer than
      ``max_idle_time`` are closed instead of reused
    - Connections that raised a connection-level error are discarded
    """

    def __init__(
        self,
        dialect,
        dsn: str,
        limits: PoolLimits,
        clock: Callable[[], float] = time.monotonic
    ):
        self.dialect = dialect
        self.dsn = dsn
        self.limits = limits
        self._clock = clock

        self._max_idle = limits.max_idle
        self._idle: List[PooledConnection] = []
        self._open_count = 0
        self._in_use = 0
        self._slots = asyncio.Semaphore(limits.max_open)
        self._closed = False

    @property
    def kind(self):
        return self.dialect.kind

    @property
    def max_idle(self) -> int:
        """Current idle limit (may differ from limits.max_idle during recovery)."""
        return self._max_idle

    @property
    def is_closed(self) -> bool:
        return self._closed

    def stats(self) -> Dict[str, Any]:
        """Snapshot of pool usage."""
        return {
            'store': self.dialect.kind.value,
            'open': self._open_count,
            'idle': len(self._idle),
            'in_use': self._in_use,
            'max_open': self.limits.max_open,
            'max_idle': self._max_idle,
        }

    def _expired(self, conn: PooledConnection, now: float) -> bool:
        if self.limits.max_lifetime and now - conn.created_at >= self.limits.max_lifetime:
            return True
        if self.limits.max_idle_time and now - conn.returned_at >= self.limits.max_idle_time:
            return True
        return self.dialect.is_closed(conn.raw)

    async def _discard(self, conn: PooledConnection):
        self._open_count -= 1
        try:
            await self.dialect.close(conn.raw)
        except Exception as e:
            logger.debug(f"Error closing {self.dialect.kind.value} connection: {e}")

    async def _checkout(self) -> PooledConnection:
        while self._idle:
            conn = self._idle.pop()
            if self._expired(conn, self._clock()):
                await self._discard(conn)
                continue
            return conn

        # Count the connection before the first await so concurrent callers
        # see the slot as taken.
        self._open_count += 1
        try:
            raw = await self.dialect.open(self.dsn)
        except BaseException:
            self._open_count -= 1
            raise
        return PooledConnection(raw, self.dialect, self._clock())

    async def _checkin(self, conn: PooledConnection, error: Optional[BaseException]):
        now = self._clock()
        broken = error is not None and self.dialect.is_connection_error(error)
        if (
            self._closed
            or broken
            or len(self._idle) >= self._max_idle
            or self._expired(conn, now)
        ):
            await self._discard(conn)
            return
        conn.returned_at = now
        self._idle.append(conn)

    @asynccontextmanager
    async def acquire(self, timeout: Optional[float] = None) -> AsyncGenerator[PooledConnection, None]:
        """
        Check a connection out of the pool.

        Args:
            timeout: Seconds to wait in total for a free slot and, if needed, a new
                connection

        Yields:
            PooledConnection

        Raises:
            PoolClosedError: If the pool has been closed
            asyncio.TimeoutError: If no connection could be obtained in time
        """
        if self._closed:
            raise PoolClosedError("Connection pool is closed")

        # One deadline covers both the slot wait and the open
        acquired = False
        try:
            async with asyncio.timeout(timeout):
                await self._slots.acquire()
                acquired = True
                conn = await self._checkout()
        except BaseException:
            if acquired:
                self._slots.release()
            raise

        self._in_use += 1
        error: Optional[BaseException] = None
        try:
            yield conn
        except BaseException as e:
            error = e
            raise
        finally:
            self._in_use -= 1
            try:
                await self._checkin(conn, error)
            finally:
                self._slots.release()

    async def ping(self, timeout: Optional[float] = None) -> None:
        """
        Liveness probe: run ``SELECT 1`` on a pooled connection.

        Raises:
            HealthCheckError: If the probe returned an unexpected value
            Exception: Driver or timeout errors propagate unchanged
        """
        async def probe():
            async with self.acquire() as conn:
                result = await self.dialect.ping(conn.raw)
            if result != 1:
                raise HealthCheckError(f"Liveness probe returned {result!r}")

        async with asyncio.timeout(timeout):
            await probe()

    async def _run(self, operation: str, query: str, args: tuple, timeout: Optional[float]):
        async def call():
            async with self.acquire() as conn:
                return await getattr(conn, operation)(query, *args)

        async with asyncio.timeout(timeout):
            return await call()

    async def execute(self, query: str, *args, timeout: Optional[float] = None) -> Any:
        """Execute a statement and return the driver's status."""
        return await self._run('execute', query, args, timeout)

    async def fetch(self, query: str, *args, timeout: Optional[float] = None) -> List[Dict[str, Any]]:
        """Run a query and return every row as a dict."""
        return await self._run('fetch', query, args, timeout)

    async def fetchrow(self, query: str, *args, timeout: Optional[float] = None) -> Optional[Dict[str, Any]]:
        return await self._run('fetchrow', query, args, timeout)

    async def fetchval(self, query: str, *args, timeout: Optional[float] = None) -> Any:
        return await self._run('fetchval', query, args, timeout)

    @asynccontextmanager
    async def transaction(self, timeout: Optional[float] = None) -> AsyncGenerator[PooledConnection, None]:
        """Run the block inside a transaction on one pooled connection."""
        async with self.acquire(timeout=timeout) as conn:
            async with conn.transaction():
                yield conn

    async def set_max_idle(self, max_idle: int) -> None:
        """Change the idle limit, closing idle connections beyond it."""
        self._max_idle = max(0, max_idle)
        excess = []
        while len(self._idle) > self._max_idle:
            excess.append(self._idle.pop(0))
        for conn in excess:
            await self._discard(conn)
        if excess:
            logger.debug(f"Closed {len(excess)} idle connections (idle limit {self._max_idle})")

    async def close(self) -> None:
        """Close idle connections and refuse new checkouts."""
        if self._closed:
            return
        self._closed = True
        idle, self._idle = self._idle, []
        for conn in idle:
            await self._discard(conn)
        logger.info(f"{self.dialect.kind.value} connection pool closed")

    def __repr__(self) -> str:
        return f"<ConnectionPool {self.dialect.describe(self.dsn)} {self.stats()}>"


__all__ = [
    'ConnectionPool',
    'PoolLimits',
    'PooledConnection',
]
