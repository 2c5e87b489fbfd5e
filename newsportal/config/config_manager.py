"""
Configuration Manager for the News Portal backend.

Handles environment file loading, store selection (SQLite or PostgreSQL),
connection pool limits, retry and health-monitor timings, and validation.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional


logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


class ConfigManager:
    """
    Central configuration management for the News Portal backend.

    Provides:
    - Environment file loading with precedence
    - Store selection and DSN parts
    - Pool limits and connection lifecycle timings
    - Configuration validation
    """

    SUPPORTED_STORES = ('sqlite', 'postgres')

    # Connection lifecycle defaults
    DEFAULT_CONNECT_MAX_ATTEMPTS = 10
    DEFAULT_BACKOFF_BASE = 2.0
    DEFAULT_BACKOFF_CAP = 60.0
    DEFAULT_PROBE_TIMEOUT = 5.0
    DEFAULT_SCHEMA_TIMEOUT = 10.0
    DEFAULT_MONITOR_INTERVAL = 30.0
    DEFAULT_RECOVERY_PAUSE = 1.0

    def __init__(self, config_dir: Optional[str] = None, validate_database: bool = False):
        """
        Initialize ConfigManager.

        Args:
            config_dir: Directory containing environment files
            validate_database: Whether to validate the store configuration eagerly
        """
        self.config_dir = Path(config_dir) if config_dir else Path.cwd()
        self.validate_database = validate_database

        self._env_vars: Dict[str, str] = {}
        self._load_env_files()

        if validate_database:
            self._validate_database_config()

    def _load_env_files(self):
        """Load environment files with precedence: .env.prod > .env.staging > .env.dev > .env"""
        env = os.getenv('ENV', 'dev')

        env_files = ['.env']
        if env in ['dev', 'staging', 'prod']:
            env_files.append('.env.dev')
        if env in ['staging', 'prod']:
            env_files.append('.env.staging')
        if env == 'prod':
            env_files.append('.env.prod')

        # Later files override earlier ones
        for env_file in env_files:
            env_path = self.config_dir / env_file
            if env_path.exists():
                self._load_env_file(env_path)

    def _load_env_file(self, env_path: Path):
        """Load a single environment file into our internal env_vars dict."""
        try:
            with open(env_path, 'r') as f:
                for line in f:
                    line = line.strip()
                    if line and not line.startswith('#') and '=' in line:
                        key, value = line.split('=', 1)
                        self._env_vars[key.strip()] = value.strip()
        except OSError as e:
            logger.warning(f"Could not read environment file {env_path}: {e}")

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Look up a setting: os.environ first (highest precedence), then file-loaded env_vars."""
        value = os.getenv(name)
        if value is None or value == '':
            value = self._env_vars.get(name)
        if value is None or value == '':
            return default
        return value

    def _get_int(self, name: str, default: Optional[int]) -> Optional[int]:
        raw = self.get(name)
        if raw is None:
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ConfigValidationError(f"Invalid {name}: '{raw}' - must be an integer")
        if value < 0:
            raise ConfigValidationError(f"Invalid {name}: '{raw}' - must not be negative")
        return value

    def _get_float(self, name: str, default: Optional[float]) -> Optional[float]:
        raw = self.get(name)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError:
            raise ConfigValidationError(f"Invalid {name}: '{raw}' - must be a number")
        if value < 0:
            raise ConfigValidationError(f"Invalid {name}: '{raw}' - must not be negative")
        return value

    def _get_bool(self, name: str, default: bool) -> bool:
        raw = self.get(name)
        if raw is None:
            return default
        return raw.lower() in ('1', 'true', 'yes', 'on')

    def _validate_database_config(self):
        """Validate store configuration."""
        store = self.db_type
        if store == 'postgres' and not self.database_url:
            missing = [var for var in ('DB_HOST', 'DB_NAME', 'DB_USER') if not self.get(var)]
            if missing:
                raise ConfigValidationError(
                    f"Missing required database configuration: {', '.join(missing)}"
                )
        self._validate_port(self.db_port, 'DB_PORT')
        self._validate_port(self.app_port, 'APP_PORT')

    def _validate_port(self, port: int, env_var: str):
        """Validate a port number."""
        if not (1 <= port <= 65535):
            raise ConfigValidationError(
                f"Invalid {env_var}: '{port}' - port must be between 1 and 65535"
            )

    # ------------------------------------------------------------------
    # Store selection and DSN parts
    # ------------------------------------------------------------------

    @property
    def db_type(self) -> str:
        """Get the store kind ('sqlite' or 'postgres')."""
        store = self.get('DB_TYPE', 'sqlite').lower()
        if store == 'postgresql':
            store = 'postgres'
        if store not in self.SUPPORTED_STORES:
            raise ConfigValidationError(
                f"Invalid DB_TYPE: '{store}' - must be one of {', '.join(self.SUPPORTED_STORES)}"
            )
        return store

    @property
    def database_url(self) -> Optional[str]:
        """Get a full PostgreSQL DSN override, if configured."""
        return self.get('DATABASE_URL')

    @property
    def db_host(self) -> str:
        return self.get('DB_HOST', 'localhost')

    @property
    def db_port(self) -> int:
        return self._get_int('DB_PORT', 5432)

    @property
    def db_user(self) -> str:
        return self.get('DB_USER', 'postgres')

    @property
    def db_password(self) -> str:
        return self.get('DB_PASSWORD', '')

    @property
    def db_name(self) -> str:
        return self.get('DB_NAME', 'news_portal')

    @property
    def db_path(self) -> str:
        """Get the SQLite database file path."""
        return self.get('DB_PATH', './news.db')

    # ------------------------------------------------------------------
    # Pool limits (None means "use the store dialect's default")
    # ------------------------------------------------------------------

    @property
    def db_max_open_conns(self) -> Optional[int]:
        return self._get_int('DB_MAX_OPEN_CONNS', None)

    @property
    def db_max_idle_conns(self) -> Optional[int]:
        return self._get_int('DB_MAX_IDLE_CONNS', None)

    @property
    def db_conn_max_lifetime(self) -> Optional[float]:
        """Maximum connection lifetime in seconds."""
        return self._get_float('DB_CONN_MAX_LIFETIME', None)

    @property
    def db_conn_max_idle_time(self) -> Optional[float]:
        """Maximum time in seconds a connection may sit idle."""
        return self._get_float('DB_CONN_MAX_IDLE_TIME', None)

    # ------------------------------------------------------------------
    # Connection lifecycle timings
    # ------------------------------------------------------------------

    @property
    def db_connect_max_attempts(self) -> int:
        attempts = self._get_int('DB_CONNECT_MAX_ATTEMPTS', self.DEFAULT_CONNECT_MAX_ATTEMPTS)
        if attempts < 1:
            raise ConfigValidationError("Invalid DB_CONNECT_MAX_ATTEMPTS: must be at least 1")
        return attempts

    @property
    def db_backoff_base(self) -> float:
        return self._get_float('DB_BACKOFF_BASE', self.DEFAULT_BACKOFF_BASE)

    @property
    def db_backoff_cap(self) -> float:
        return self._get_float('DB_BACKOFF_CAP', self.DEFAULT_BACKOFF_CAP)

    @property
    def db_probe_timeout(self) -> float:
        return self._get_float('DB_PROBE_TIMEOUT', self.DEFAULT_PROBE_TIMEOUT)

    @property
    def db_schema_timeout(self) -> float:
        return self._get_float('DB_SCHEMA_TIMEOUT', self.DEFAULT_SCHEMA_TIMEOUT)

    @property
    def db_monitor_interval(self) -> float:
        return self._get_float('DB_MONITOR_INTERVAL', self.DEFAULT_MONITOR_INTERVAL)

    @property
    def db_recovery_pause(self) -> float:
        return self._get_float('DB_RECOVERY_PAUSE', self.DEFAULT_RECOVERY_PAUSE)

    # ------------------------------------------------------------------
    # Process settings
    # ------------------------------------------------------------------

    @property
    def seed_sample_data(self) -> bool:
        return self._get_bool('SEED_SAMPLE_DATA', True)

    @property
    def app_port(self) -> int:
        return self._get_int('APP_PORT', 9999)

    @property
    def app_env(self) -> str:
        return self.get('APP_ENV', 'development')

    @property
    def log_level(self) -> str:
        """Get the logging level name (upper-cased for the logging module)."""
        return self.get('LOG_LEVEL', 'info').upper()
