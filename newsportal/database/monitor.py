"""
Background connection health monitor.

Runs a liveness probe against a published ConnectionPool on a fixed interval.
A failing probe triggers one recovery attempt per tick: idle connections are
flushed by dropping the idle limit to zero, then the configured limit is
restored and the probe is retried. Failures are reported, never raised.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

from .pool import ConnectionPool


logger = logging.getLogger(__name__)


class TickOutcome(str, Enum):
    """Result of one monitor tick."""
    HEALTHY = "healthy"
    RECOVERED = "recovered"
    FAILING = "failing"


@dataclass
class MonitorStatus:
    """State kept across ticks for health reporting."""
    ticks: int = 0
    last_outcome: Optional[TickOutcome] = None
    last_tick_at: Optional[datetime] = None
    consecutive_failures: int = 0
    last_error: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.last_outcome != TickOutcome.FAILING

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ticks': self.ticks,
            'last_outcome': self.last_outcome.value if self.last_outcome else None,
            'last_tick_at': self.last_tick_at.isoformat() if self.last_tick_at else None,
            'consecutive_failures': self.consecutive_failures,
            'last_error': self.last_error,
        }


class ConnectionMonitor:
    """Periodic liveness check with in-place recovery for a ConnectionPool."""

    def __init__(
        self,
        pool: ConnectionPool,
        interval: float = 30.0,
        probe_timeout: float = 5.0,
        recovery_pause: float = 1.0,
        idle_limit: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Args:
            pool: Published connection pool to watch
            interval: Seconds between the end of one tick and the start of the next
            probe_timeout: Deadline for each liveness probe
            recovery_pause: Seconds to hold the idle limit at zero during recovery
            idle_limit: Idle limit to restore after recovery (defaults to the pool's configured limit)
            sleep: Coroutine used for the recovery pause
        """
        self.pool = pool
        self.interval = interval
        self.probe_timeout = probe_timeout
        self.recovery_pause = recovery_pause
        self.idle_limit = pool.limits.max_idle if idle_limit is None else idle_limit
        self._sleep = sleep

        self.status = MonitorStatus()
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _recover(self) -> None:
        await self.pool.set_max_idle(0)
        try:
            await self._sleep(self.recovery_pause)
        finally:
            await self.pool.set_max_idle(self.idle_limit)

    async def tick(self) -> TickOutcome:
        """Run one probe, and one recovery attempt if the probe fails."""
        try:
            await self.pool.ping(timeout=self.probe_timeout)
        except Exception as e:
            logger.warning(f"Connection monitor: Database ping failed: {e!r}")
            logger.info("Connection monitor: Attempting to recover connection...")
            await self._recover()
            try:
                await self.pool.ping(timeout=self.probe_timeout)
            except Exception as retry_error:
                logger.error(f"Connection monitor: ❌ Connection recovery failed: {retry_error!r}")
                return self._record(TickOutcome.FAILING, retry_error)
            logger.info("Connection monitor: ✅ Connection recovered!")
            return self._record(TickOutcome.RECOVERED)

        logger.debug("Connection monitor: database ping ok")
        return self._record(TickOutcome.HEALTHY)

    def _record(self, outcome: TickOutcome, error: Optional[BaseException] = None) -> TickOutcome:
        self.status.ticks += 1
        self.status.last_outcome = outcome
        self.status.last_tick_at = datetime.now(timezone.utc)
        if outcome == TickOutcome.FAILING:
            self.status.consecutive_failures += 1
            self.status.last_error = repr(error)
        else:
            self.status.consecutive_failures = 0
            self.status.last_error = None
        return outcome

    async def _run(self) -> None:
        logger.info(f"Connection monitor started (interval {self.interval}s)")
        while True:
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass

            try:
                await self.tick()
            except Exception as e:
                # A tick must never end the monitor
                logger.error(f"Connection monitor: tick error: {e!r}")
        logger.info("Connection monitor stopped")

    def start(self) -> asyncio.Task:
        """Schedule the monitor loop on the running event loop."""
        if self.is_running:
            return self._task
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="db-connection-monitor")
        return self._task

    async def stop(self) -> None:
        """Stop the loop, cancelling an in-flight tick, and wait for it to finish."""
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
