"""Exception types raised by the database package."""

from typing import Optional


class DatabaseConnectionError(Exception):
    """Raised when database connection operations fail."""
    pass


class HealthCheckError(DatabaseConnectionError):
    """Raised when a liveness probe returns an unexpected result."""
    pass


class PoolClosedError(DatabaseConnectionError):
    """Raised when a connection is requested from a closed pool."""
    pass


class FatalStartupError(DatabaseConnectionError):
    """
    Raised when every connection attempt at startup has failed.

    The process cannot serve traffic without a store, so the entry point is
    expected to abort.
    """

    def __init__(self, attempts: int, last_error: Optional[BaseException] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Database connection failed after {attempts} attempts. "
            f"Last error: {last_error}"
        )
