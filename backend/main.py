"""
Backend API Service - News Portal
FastAPI service whose lifespan owns the database connection lifecycle
"""
import os
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Dict, Any, Optional

import uvicorn

from newsportal import __version__
from newsportal.config.config_manager import ConfigManager
from newsportal.database.connection_manager import ConnectionManager
from newsportal.database.errors import FatalStartupError
from newsportal.database.pool import ConnectionPool
from newsportal.database.seeder import seed_sample_articles

from backend.dependencies import get_connection_handle, get_connection_manager

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle events."""
    # Startup
    config = ConfigManager()
    configure_logging(config.log_level)

    manager = ConnectionManager(config)
    try:
        handle = await manager.connect()
    except FatalStartupError as e:
        # No traffic is served without a store; uvicorn exits non-zero
        logger.critical(f"❌ {e}")
        raise

    app.state.config = config
    app.state.connection_manager = manager
    app.state.db = handle

    if config.seed_sample_data:
        await seed_sample_articles(handle, timeout=config.db_schema_timeout)

    logger.info(f"News Portal backend ready ({config.app_env}, {config.db_type})")

    yield

    # Shutdown
    try:
        await manager.close()
    except Exception as e:
        logger.error(f"Error closing database connection: {e}")


app = FastAPI(
    title="News Portal Backend",
    version=__version__,
    lifespan=lifespan,
)

# Configure CORS
allowed_origins = os.getenv("ALLOWED_CORS")
if allowed_origins:
    allowed_origins = allowed_origins.split(",")
else:
    allowed_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class HealthResponse(BaseModel):
    service: str
    status: str
    version: str
    environment: Dict[str, Any]
    database: Dict[str, Any]
    monitor: Optional[Dict[str, Any]] = None


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "News Portal Backend API", "status": "ready"}


@app.get("/health", response_model=HealthResponse)
async def health_check(manager: ConnectionManager = Depends(get_connection_manager)):
    """Health check endpoint showing pool usage and the last monitor outcome"""
    config = manager.config
    monitor = manager.monitor
    healthy = monitor is None or monitor.status.healthy
    return HealthResponse(
        service="backend",
        status="ready" if healthy else "degraded",
        version=__version__,
        environment={
            "env": config.app_env,
            "app_port": config.app_port,
            "log_level": config.log_level,
        },
        database=manager.handle.stats() if manager.handle else {"store": config.db_type},
        monitor=monitor.status.to_dict() if monitor else None,
    )


@app.get("/health/database")
async def database_health(
    handle: ConnectionPool = Depends(get_connection_handle),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Run a liveness probe against the store now"""
    try:
        await handle.ping(timeout=manager.probe_timeout)
    except Exception as e:
        logger.warning(f"Database liveness probe failed: {e!r}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database liveness probe failed"
        )
    return {"status": "ok", "store": handle.kind.value}


def main() -> None:
    """Run the backend with uvicorn on APP_PORT."""
    config = ConfigManager()
    configure_logging(config.log_level)
    uvicorn.run(app, host="0.0.0.0", port=config.app_port, log_level=config.log_level.lower())


if __name__ == "__main__":
    main()
