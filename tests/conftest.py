"""
Centralized test configuration and fixtures for the News Portal backend.

This module provides shared test fixtures that:
1. Isolate configuration from the developer's environment
2. Provide an in-memory store dialect for unit tests
3. Record backoff and recovery waits instead of sleeping
"""

import pytest
import os
import sys
import asyncio
from unittest.mock import patch
from pathlib import Path
from typing import Any, Dict, List, Optional
import logging

# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Make the project root importable when running from a checkout
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from newsportal.config.config_manager import ConfigManager
from newsportal.database.dialects import StoreDialect, StoreKind
from newsportal.database.pool import PoolLimits


class FakeConnection:
    """Stand-in for a driver connection."""

    def __init__(self, number: int):
        self.number = number
        self.closed = False

    def __repr__(self) -> str:
        return f"<FakeConnection #{self.number} closed={self.closed}>"


class FakeDialect(StoreDialect):
    """
    In-memory store dialect with scriptable failures.

    Attributes:
        open_failures: Number of upcoming open() calls that fail
        ping_failures: Number of upcoming ping() calls that fail
        ping_error: When set, every ping() raises it
        ping_result: Value returned by a successful ping()
        failing_statements: Statements whose execute() raises
        rows: Rows returned by fetch(), keyed by query (an exception value is raised)
    """

    kind = StoreKind.SQLITE
    default_limits = PoolLimits(max_open=10, max_idle=2, max_lifetime=600, max_idle_time=300)

    def __init__(self, open_failures: int = 0, ping_failures: int = 0):
        self.open_failures = open_failures
        self.ping_failures = ping_failures
        self.ping_error: Optional[BaseException] = None
        self.ping_result: Any = 1
        self.failing_statements: set = set()
        self.rows: Dict[str, Any] = {}

        self.open_attempts = 0
        self.opened = 0
        self.closed = 0
        self.peak_live = 0
        self.pings = 0
        self.executed: List[tuple] = []

    @property
    def live(self) -> int:
        return self.opened - self.closed

    def build_dsn(self, config) -> str:
        return "fake://news"

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def schema_statements(self) -> List[str]:
        return ["CREATE TABLE IF NOT EXISTS articles", "CREATE TABLE IF NOT EXISTS users"]

    async def open(self, dsn: str) -> FakeConnection:
        self.open_attempts += 1
        await asyncio.sleep(0)
        if self.open_failures > 0:
            self.open_failures -= 1
            raise ConnectionRefusedError("connection refused")
        self.opened += 1
        self.peak_live = max(self.peak_live, self.live)
        return FakeConnection(self.opened)

    async def close(self, raw: FakeConnection) -> None:
        raw.closed = True
        self.closed += 1

    def is_closed(self, raw: FakeConnection) -> bool:
        return raw.closed

    async def ping(self, raw: FakeConnection) -> Any:
        self.pings += 1
        await asyncio.sleep(0)
        if self.ping_error is not None:
            raise self.ping_error
        if self.ping_failures > 0:
            self.ping_failures -= 1
            raise ConnectionResetError("server closed the connection")
        return self.ping_result

    async def execute(self, raw: FakeConnection, query: str, *args) -> str:
        await asyncio.sleep(0)
        self.executed.append((query, args))
        if query in self.failing_statements:
            raise RuntimeError(f"statement failed: {query}")
        return "OK"

    async def fetch(self, raw: FakeConnection, query: str, *args) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        result = self.rows.get(query, [])
        if isinstance(result, BaseException):
            raise result
        return list(result)


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []
        self.on_sleep = None

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(delay)
        await asyncio.sleep(0)


@pytest.fixture
def fake_dialect():
    """A fresh in-memory dialect."""
    return FakeDialect()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def clean_environment(tmp_path):
    """Clear the process environment and point the SQLite store at a temp file."""
    env_vars = {
        'DB_TYPE': 'sqlite',
        'DB_PATH': str(tmp_path / 'news.db'),
    }
    with patch.dict(os.environ, env_vars, clear=True):
        yield env_vars


@pytest.fixture
def config_manager(clean_environment, tmp_path):
    """ConfigManager that ignores any .env files in the working directory."""
    return ConfigManager(config_dir=str(tmp_path))


@pytest.fixture
def sqlite_path(tmp_path) -> str:
    return str(tmp_path / 'news.db')
