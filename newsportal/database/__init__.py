"""Database package for the News Portal backend."""

from .connection_manager import ConnectionManager
from .dialects import PostgresDialect, SQLiteDialect, StoreDialect, StoreKind, get_dialect
from .errors import DatabaseConnectionError, FatalStartupError, HealthCheckError, PoolClosedError
from .monitor import ConnectionMonitor, MonitorStatus, TickOutcome
from .pool import ConnectionPool, PoolLimits, PooledConnection
from .seeder import SAMPLE_ARTICLES, seed_sample_articles

__all__ = [
    'ConnectionManager',
    'ConnectionMonitor',
    'ConnectionPool',
    'DatabaseConnectionError',
    'FatalStartupError',
    'HealthCheckError',
    'MonitorStatus',
    'PoolClosedError',
    'PoolLimits',
    'PooledConnection',
    'PostgresDialect',
    'SAMPLE_ARTICLES',
    'SQLiteDialect',
    'StoreDialect',
    'StoreKind',
    'TickOutcome',
    'get_dialect',
    'seed_sample_articles',
]
