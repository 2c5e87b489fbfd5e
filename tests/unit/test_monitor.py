"""
Test suite for the background ConnectionMonitor.
"""
import asyncio

import pytest
from unittest.mock import AsyncMock, patch

from newsportal.database.monitor import ConnectionMonitor, MonitorStatus, TickOutcome
from newsportal.database.pool import ConnectionPool, PoolLimits


@pytest.fixture
def pool(fake_dialect):
    return ConnectionPool(fake_dialect, "fake://news", PoolLimits(max_open=10, max_idle=5))


@pytest.fixture
def monitor(pool, sleep_recorder):
    return ConnectionMonitor(pool, interval=30.0, probe_timeout=1.0, recovery_pause=1.0, sleep=sleep_recorder)


class TestMonitorTick:
    """Test a single health check tick"""

    @pytest.mark.asyncio
    async def test_healthy_tick(self, monitor, sleep_recorder):
        outcome = await monitor.tick()

        assert outcome == TickOutcome.HEALTHY
        assert monitor.status.healthy
        assert monitor.status.ticks == 1
        assert sleep_recorder.delays == []

    @pytest.mark.asyncio
    async def test_failed_ping_recovers_within_tick(self, monitor, pool, fake_dialect, sleep_recorder):
        """Idle limit drops to zero, pauses, is restored, and the second ping succeeds"""
        # Arrange
        fake_dialect.ping_failures = 1
        idle_during_pause = []
        sleep_recorder.on_sleep = lambda delay: idle_during_pause.append(pool.max_idle)

        # Act
        outcome = await monitor.tick()

        # Assert
        assert outcome == TickOutcome.RECOVERED
        assert sleep_recorder.delays == [1.0]
        assert idle_during_pause == [0]
        assert pool.max_idle == 5
        assert fake_dialect.pings == 2
        assert monitor.status.healthy

    @pytest.mark.asyncio
    async def test_persistent_failure_reports_failing(self, monitor, pool, fake_dialect):
        """Every tick reports failing and the idle limit is restored each time"""
        fake_dialect.ping_error = ConnectionResetError("server closed the connection")

        outcomes = [await monitor.tick() for _ in range(3)]

        assert outcomes == [TickOutcome.FAILING] * 3
        assert monitor.status.consecutive_failures == 3
        assert not monitor.status.healthy
        assert "server closed the connection" in monitor.status.last_error
        assert pool.max_idle == 5

    @pytest.mark.asyncio
    async def test_success_after_failures_resets_counter(self, monitor, fake_dialect):
        fake_dialect.ping_error = ConnectionResetError("down")
        await monitor.tick()
        await monitor.tick()

        fake_dialect.ping_error = None
        outcome = await monitor.tick()

        assert outcome == TickOutcome.HEALTHY
        assert monitor.status.consecutive_failures == 0
        assert monitor.status.last_error is None

    @pytest.mark.asyncio
    async def test_explicit_idle_limit_is_restored(self, pool, fake_dialect, sleep_recorder):
        monitor = ConnectionMonitor(pool, idle_limit=3, sleep=sleep_recorder)
        fake_dialect.ping_failures = 1

        await monitor.tick()

        assert pool.max_idle == 3

    @pytest.mark.asyncio
    async def test_ping_timeout_is_a_failure(self, pool, fake_dialect, sleep_recorder):
        monitor = ConnectionMonitor(pool, probe_timeout=0.05, sleep=sleep_recorder)

        async def hang(raw):
            await asyncio.sleep(10)

        fake_dialect.ping = hang

        outcome = await monitor.tick()

        assert outcome == TickOutcome.FAILING


class TestMonitorLoop:
    """Test the background task lifecycle"""

    @pytest.mark.asyncio
    async def test_loop_keeps_running_while_failing(self, pool, fake_dialect, sleep_recorder):
        """Three or more failing ticks do not stop the monitor"""
        # Arrange
        fake_dialect.ping_error = ConnectionResetError("down")
        monitor = ConnectionMonitor(pool, interval=0.01, probe_timeout=1.0, sleep=sleep_recorder)

        # Act
        monitor.start()
        try:
            for _ in range(100):
                if monitor.status.ticks >= 3:
                    break
                await asyncio.sleep(0.01)

            # Assert
            assert monitor.status.ticks >= 3
            assert monitor.status.last_outcome == TickOutcome.FAILING
            assert monitor.is_running
        finally:
            await monitor.stop()

    @pytest.mark.asyncio
    async def test_tick_exception_does_not_end_loop(self, monitor):
        monitor.interval = 0.01

        with patch.object(monitor, 'tick', new_callable=AsyncMock) as mock_tick:
            mock_tick.side_effect = RuntimeError("unexpected")
            monitor.start()
            try:
                await asyncio.sleep(0.1)

                assert mock_tick.call_count >= 2
                assert monitor.is_running
            finally:
                await monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_is_deterministic(self, monitor):
        task = monitor.start()
        assert monitor.is_running

        await monitor.stop()

        assert task.done()
        assert not monitor.is_running
        assert monitor.status.ticks == 0

    @pytest.mark.asyncio
    async def test_start_twice_returns_same_task(self, monitor):
        first = monitor.start()
        try:
            assert monitor.start() is first
        finally:
            await monitor.stop()

    @pytest.mark.asyncio
    async def test_stop_without_start(self, monitor):
        await monitor.stop()

        assert not monitor.is_running


class TestMonitorStatus:
    """Test status reporting"""

    def test_initial_status_is_healthy(self):
        status = MonitorStatus()

        assert status.healthy
        assert status.to_dict() == {
            'ticks': 0,
            'last_outcome': None,
            'last_tick_at': None,
            'consecutive_failures': 0,
            'last_error': None,
        }

    @pytest.mark.asyncio
    async def test_status_after_tick(self, monitor):
        await monitor.tick()

        data = monitor.status.to_dict()
        assert data['ticks'] == 1
        assert data['last_outcome'] == 'healthy'
        assert data['last_tick_at'] is not None
