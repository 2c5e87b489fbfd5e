"""
Database Connection Manager for the News Portal backend.

Owns the lifecycle of the pooled store connection: initial connect with
bounded exponential backoff, idempotent schema provisioning, publication of
the connection handle, and the background health monitor.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from newsportal.config.config_manager import ConfigManager

from .dialects import StoreDialect, get_dialect
from .errors import FatalStartupError
from .monitor import ConnectionMonitor
from .pool import ConnectionPool, PoolLimits


logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages the store connection for the lifetime of the process.

    Features:
    - SQLite or PostgreSQL selected by configuration
    - Connect with retry and capped exponential backoff
    - Pool limits applied before the handle is published
    - Idempotent schema creation; failures are warnings
    - Background health monitoring with in-place recovery
    """

    def __init__(
        self,
        config_manager: ConfigManager,
        dialect: Optional[StoreDialect] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize ConnectionManager.

        Args:
            config_manager: Configuration manager for store settings
            dialect: Store strategy (defaults to the one named by DB_TYPE)
            sleep: Coroutine used for backoff waits
        """
        self.config = config_manager
        self.dialect = dialect or get_dialect(config_manager.db_type)
        self._sleep = sleep

        # Retry settings
        self.max_attempts: int = config_manager.db_connect_max_attempts
        self.backoff_base: float = config_manager.db_backoff_base
        self.backoff_cap: float = config_manager.db_backoff_cap

        # Deadlines
        self.probe_timeout: float = config_manager.db_probe_timeout
        self.schema_timeout: float = config_manager.db_schema_timeout

        # Health monitoring
        self.monitor_interval: float = config_manager.db_monitor_interval
        self.recovery_pause: float = config_manager.db_recovery_pause

        self._handle: Optional[ConnectionPool] = None
        self._monitor: Optional[ConnectionMonitor] = None
        self._connect_lock = asyncio.Lock()

    @property
    def handle(self) -> Optional[ConnectionPool]:
        """The published connection pool, or None before a successful connect."""
        return self._handle

    @property
    def monitor(self) -> Optional[ConnectionMonitor]:
        return self._monitor

    def get_connection_string(self) -> str:
        return self.dialect.build_dsn(self.config)

    def get_pool_limits(self) -> PoolLimits:
        return self.dialect.pool_limits(self.config)

    def backoff_delay(self, attempt_index: int) -> float:
        """Wait after failed attempt ``attempt_index`` (0-based): min(cap, base * 2**index)."""
        try:
            delay = self.backoff_base * (2 ** attempt_index)
        except OverflowError:
            return self.backoff_cap
        return min(self.backoff_cap, delay)

    async def _open_and_probe(self, dsn: str, limits: PoolLimits) -> ConnectionPool:
        pool = ConnectionPool(self.dialect, dsn, limits)
        try:
            await pool.ping(timeout=self.probe_timeout)
        except BaseException:
            await pool.close()
            raise
        return pool

    async def connect(self) -> ConnectionPool:
        """
        Connect to the store, provision the schema and start monitoring.

        Concurrent calls are serialized, so at most one handle is ever
        published and later callers receive it.

        Returns:
            The published ConnectionPool

        Raises:
            FatalStartupError: If every attempt failed
        """
        if self._handle is not None:
            return self._handle

        async with self._connect_lock:
            if self._handle is not None:
                return self._handle
            return await self._connect_with_retry()

    async def _connect_with_retry(self) -> ConnectionPool:
        dsn = self.get_connection_string()
        limits = self.get_pool_limits()
        target = self.dialect.describe(dsn)
        last_error: Optional[BaseException] = None
        pool: Optional[ConnectionPool] = None

        for attempt in range(self.max_attempts):
            logger.info(
                f"Attempting {self.dialect.kind.value} connection to {target} "
                f"(attempt {attempt + 1}/{self.max_attempts})..."
            )
            try:
                pool = await self._open_and_probe(dsn, limits)
                break
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Failed to connect to database (attempt {attempt + 1}/{self.max_attempts}): {e!r}"
                )
                if attempt < self.max_attempts - 1:
                    delay = self.backoff_delay(attempt)
                    logger.info(f"Waiting {delay}s before retry...")
                    await self._sleep(delay)

        if pool is None:
            logger.error(
                f"❌ Failed to connect to database after {self.max_attempts} attempts: {last_error!r}"
            )
            raise FatalStartupError(self.max_attempts, last_error)

        logger.info(f"✅ Database connection established ({self.dialect.kind.value}, limits {limits.to_dict()})")

        await self.ensure_schema(pool)

        self._handle = pool
        self._monitor = ConnectionMonitor(
            pool,
            interval=self.monitor_interval,
            probe_timeout=self.probe_timeout,
            recovery_pause=self.recovery_pause,
        )
        self._monitor.start()
        return pool

    async def ensure_schema(self, pool: ConnectionPool) -> bool:
        """
        Create the required tables and indexes if they do not exist.

        Each statement runs with its own deadline. A failing statement is
        logged and the rest still run.

        Returns:
            True if every statement succeeded
        """
        failures = 0
        for statement in self.dialect.schema_statements():
            try:
                await pool.execute(statement, timeout=self.schema_timeout)
            except Exception as e:
                failures += 1
                logger.warning(f"Warning: Error creating schema: {e!r}")

        if failures:
            logger.warning(f"{self.dialect.kind.value} schema ensured with {failures} failed statements")
            return False
        logger.info(f"✅ {self.dialect.kind.value} schema ready")
        return True

    async def health_check(self) -> bool:
        """One-off liveness probe against the published handle."""
        if self._handle is None:
            return False
        try:
            await self._handle.ping(timeout=self.probe_timeout)
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e!r}")
            return False

    async def close(self) -> None:
        """Stop monitoring and close the pool."""
        if self._monitor is not None:
            await self._monitor.stop()
            self._monitor = None
        if self._handle is not None:
            await self._handle.close()
            self._handle = None
            logger.info("Database connection closed")
