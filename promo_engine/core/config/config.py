"""
Static configuration management for the promotions engine.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. Everything the
engine's collaborators need at startup lives here: environment and logging
settings, the storage backend choice, and the backend connection settings.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate the storage backend selection and its connection settings
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- Promotion definitions (stored through the Storage collaborator)
- Secrets management (use environment variables)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Loaded on module import via Config.load(); Config.validate() is the
  explicit startup check used by the CLI
- Metrics track which values came from environment vs defaults

Dependencies
------------
- python-dotenv: Environment variable loading
- pathlib: Cross-platform path handling

Environment Variables
---------------------
- ENVIRONMENT: Environment type (default: development)
- DEBUG / LOG_LEVEL / LOG_JSON / LOGS_DIR: logging behaviour
- STORAGE_BACKEND: memory, redis or database (default: memory)
- REDIS_URL, REDIS_KEY_PREFIX, REDIS_SOCKET_TIMEOUT, REDIS_MAX_CONNECTIONS
- PLAYER_LOCK_TIMEOUT_SECONDS, PLAYER_LOCK_WAIT_SECONDS
- DATABASE_URL, DATABASE_POOL_SIZE, DATABASE_ECHO
- PLAYER_LOG_RETENTION, PLAYER_LOG_DEFAULT_LIMIT
"""

import logging
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


# ============================================================================
# Enums and Constants
# ============================================================================


class Environment(Enum):
    """Deployment environment types."""

    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: str) -> "Environment":
        """
        Parse environment string safely with fallback.

        Example
        -------
        >>> Environment.from_string("production") == Environment.PRODUCTION
        True
        >>> Environment.from_string("invalid") == Environment.DEVELOPMENT
        True
        """
        try:
            return cls(value.lower())
        except ValueError:
            # Structured logger is not initialized while config bootstraps
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


class StorageBackend(Enum):
    """Persistence backends available to the engine's storage collaborator."""

    MEMORY = "memory"
    REDIS = "redis"
    DATABASE = "database"


# ============================================================================
# Configuration Metrics Tracker
# ============================================================================


class _ConfigLoadMetrics:
    """
    Internal metrics tracker for configuration loading.

    Tracks which configuration values came from environment variables
    versus defaults, and any validation errors encountered.
    """

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any):
        """Record whether a config value came from environment."""
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        """Record a validation error."""
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        """Get configuration loading summary."""
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


# ============================================================================
# Main Configuration Class
# ============================================================================


class Config:
    """
    Centralized static configuration for the promotions engine.

    Usage
    -----
    >>> backend = Config.storage_backend()
    >>> if Config.is_production():
    ...     logger.info("Running in production mode")
    >>> logger.info("Config loaded", extra=Config.get_config_summary())
    """

    # =========================================================================
    # Internal State
    # =========================================================================

    _metrics: Optional[_ConfigLoadMetrics] = None
    _enable_metrics: bool = True
    _validated: bool = False

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True

    # Place logs at project root
    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"

    # =========================================================================
    # Storage Configuration
    # =========================================================================

    STORAGE_BACKEND: str = StorageBackend.MEMORY.value
    PLAYER_LOG_RETENTION: int = 100
    PLAYER_LOG_DEFAULT_LIMIT: int = 50

    # =========================================================================
    # Redis Configuration
    # =========================================================================

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_KEY_PREFIX: str = "promo:"
    REDIS_MAX_CONNECTIONS: int = 50
    REDIS_SOCKET_TIMEOUT: int = 5
    PLAYER_LOCK_TIMEOUT_SECONDS: int = 10
    PLAYER_LOCK_WAIT_SECONDS: int = 5
    PLAYER_LOCK_RETRY_INTERVAL: float = 0.05

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = ""
    DATABASE_POOL_SIZE: int = 5
    DATABASE_ECHO: bool = False

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls):
        """Initialize metrics tracking if enabled."""
        if cls._enable_metrics and cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _safe_int(
        cls,
        key: str,
        default: int,
        min_val: Optional[int] = None,
        max_val: Optional[int] = None,
    ) -> int:
        """
        Safely parse integer from environment with validation.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set or invalid.
        min_val:
            Minimum allowed value (inclusive).
        max_val:
            Maximum allowed value (inclusive).

        Example
        -------
        >>> Config._safe_int("PLAYER_LOG_RETENTION", 100, min_val=1)
        100
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = int(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid integer, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if max_val is not None and value > max_val:
            error = f"{key}={value} exceeds maximum {max_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_float(cls, key: str, default: float, min_val: Optional[float] = None) -> float:
        """Safely parse a float from environment, falling back to default."""
        cls._init_metrics()

        raw_value = os.getenv(key)
        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = float(raw_value)
        except ValueError:
            error = f"{key}='{raw_value}' is not a valid number, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if min_val is not None and value < min_val:
            error = f"{key}={value} is below minimum {min_val}, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)
        return value

    @classmethod
    def _safe_bool(cls, key: str, default: bool) -> bool:
        """
        Safely parse boolean from environment.

        Recognizes: true/false, yes/no, 1/0, on/off (case-insensitive).
        """
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        normalized = raw_value.lower().strip()
        true_values = {"true", "yes", "1", "on"}
        false_values = {"false", "no", "0", "off"}

        if normalized in true_values:
            value = True
        elif normalized in false_values:
            value = False
        else:
            error = f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            logging.warning(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        """Parse an optional boolean; unset means None."""
        if os.getenv(key) is None:
            return None
        return cls._safe_bool(key, False)

    @classmethod
    def _safe_str(
        cls,
        key: str,
        default: str,
        required: bool = False,
    ) -> str:
        """
        Safely get string from environment.

        Parameters
        ----------
        key:
            Environment variable name.
        default:
            Default value if not set.
        required:
            Whether this config is required (logged as an error if missing).
        """
        cls._init_metrics()

        value = os.getenv(key, default)
        from_env = key in os.environ

        if cls._metrics:
            cls._metrics.record_env_load(key, from_env, value, default)

        if required and not value:
            error = f"Required environment variable {key} is not set"
            logging.error(error)
            if cls._metrics:
                cls._metrics.record_validation_error(key, error)

        return value

    # =========================================================================
    # Configuration Loading
    # =========================================================================

    @classmethod
    def load(cls) -> None:
        """
        Load all configuration from environment variables with validation.

        Called automatically on module import; call again to pick up
        environment changes (tests do this after monkeypatching).
        """
        cls._init_metrics()

        # Environment Configuration
        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.DEBUG = cls._safe_bool("DEBUG", False)
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)
        logs_dir = os.getenv("LOGS_DIR")
        if logs_dir:
            cls.LOGS_DIR = Path(logs_dir)

        # Storage Configuration
        cls.STORAGE_BACKEND = cls._safe_str(
            "STORAGE_BACKEND", StorageBackend.MEMORY.value
        ).lower()
        cls.PLAYER_LOG_RETENTION = cls._safe_int(
            "PLAYER_LOG_RETENTION", 100, min_val=1, max_val=10_000
        )
        cls.PLAYER_LOG_DEFAULT_LIMIT = cls._safe_int(
            "PLAYER_LOG_DEFAULT_LIMIT", 50, min_val=1, max_val=10_000
        )

        # Redis Configuration
        cls.REDIS_URL = cls._safe_str("REDIS_URL", "redis://localhost:6379/0")
        cls.REDIS_KEY_PREFIX = cls._safe_str("REDIS_KEY_PREFIX", "promo:")
        cls.REDIS_MAX_CONNECTIONS = cls._safe_int(
            "REDIS_MAX_CONNECTIONS", 50, min_val=1, max_val=500
        )
        cls.REDIS_SOCKET_TIMEOUT = cls._safe_int(
            "REDIS_SOCKET_TIMEOUT", 5, min_val=1, max_val=60
        )
        cls.PLAYER_LOCK_TIMEOUT_SECONDS = cls._safe_int(
            "PLAYER_LOCK_TIMEOUT_SECONDS", 10, min_val=1, max_val=300
        )
        cls.PLAYER_LOCK_WAIT_SECONDS = cls._safe_int(
            "PLAYER_LOCK_WAIT_SECONDS", 5, min_val=0, max_val=300
        )
        cls.PLAYER_LOCK_RETRY_INTERVAL = cls._safe_float(
            "PLAYER_LOCK_RETRY_INTERVAL", 0.05, min_val=0.001
        )

        # Database Configuration
        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", "")
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 5, min_val=1, max_val=200
        )
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)

        if cls._metrics:
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls) -> None:
        """
        Validate critical configuration values on startup.

        Raises
        ------
        ConfigurationError:
            If the storage backend is unknown or its connection settings
            are missing.
        """
        from promo_engine.core.exceptions import ConfigurationError

        logger = logging.getLogger(__name__)
        cls.load()

        try:
            backend = StorageBackend(cls.STORAGE_BACKEND)
        except ValueError:
            raise ConfigurationError(
                "STORAGE_BACKEND",
                f"unknown backend '{cls.STORAGE_BACKEND}', expected one of "
                f"{[b.value for b in StorageBackend]}",
            )

        if backend is StorageBackend.DATABASE and not cls.DATABASE_URL:
            raise ConfigurationError(
                "DATABASE_URL", "required when STORAGE_BACKEND=database"
            )

        if backend is StorageBackend.REDIS and not cls.REDIS_URL:
            raise ConfigurationError("REDIS_URL", "required when STORAGE_BACKEND=redis")

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if cls.LOG_LEVEL.upper() not in valid_log_levels:
            logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
            cls.LOG_LEVEL = "INFO"

        if cls.is_production() and backend is StorageBackend.MEMORY:
            logger.warning(
                "Production environment using in-memory storage - "
                "player state will not survive a restart"
            )

        cls._validated = True

        if cls._metrics:
            logger.info(f"Configuration loaded: {cls._metrics.get_summary()}")
            if cls._metrics.validation_errors:
                logger.warning(
                    f"Configuration warnings: {cls._metrics.validation_errors}"
                )

    # =========================================================================
    # Environment Checks
    # =========================================================================

    @classmethod
    def is_production(cls) -> bool:
        """Check if running in production environment."""
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        """Check if running in development environment."""
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        """Check if running in testing environment."""
        return cls.ENVIRONMENT.lower() == "testing"

    @classmethod
    def storage_backend(cls) -> StorageBackend:
        """Configured storage backend, falling back to memory when unknown."""
        try:
            return StorageBackend(cls.STORAGE_BACKEND)
        except ValueError:
            return StorageBackend.MEMORY

    # =========================================================================
    # Metrics & Summary
    # =========================================================================

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        """Get configuration loading metrics."""
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Get non-sensitive configuration summary for debugging."""
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "storage_backend": cls.STORAGE_BACKEND,
            "player_log_retention": cls.PLAYER_LOG_RETENTION,
            "redis_max_connections": cls.REDIS_MAX_CONNECTIONS,
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "database_url_set": bool(cls.DATABASE_URL),
        }


Config.load()
