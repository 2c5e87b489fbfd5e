"""
Dependency injection for News Portal backend services.

This module provides dependency injection patterns for:
- Configuration management
- The connection manager started by the application lifespan
- The published connection handle
"""

from fastapi import HTTPException, Request, status

from newsportal.config.config_manager import ConfigManager
from newsportal.database.connection_manager import ConnectionManager
from newsportal.database.pool import ConnectionPool
import logging

logger = logging.getLogger(__name__)


# Dependency providers
def get_config_manager() -> ConfigManager:
    """Get configuration manager instance."""
    return ConfigManager()


def get_connection_manager(request: Request) -> ConnectionManager:
    """Get the connection manager created at startup."""
    manager = getattr(request.app.state, "connection_manager", None)
    if manager is None:
        logger.error("Connection manager requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not available"
        )
    return manager


def get_connection_handle(request: Request) -> ConnectionPool:
    """
    Get the published connection pool.

    Request handlers depend on this instead of reaching for a global.
    """
    handle = getattr(request.app.state, "db", None)
    if handle is None or handle.is_closed:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not available"
        )
    return handle
