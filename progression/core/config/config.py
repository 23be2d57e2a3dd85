"""
Static configuration management for the progression engine.

Purpose
-------
Provides centralized static configuration loaded from environment variables
with sensible defaults, type validation, and bounds checking. Everything is
set once at process start; nothing here changes per request.

Responsibilities
----------------
- Load configuration from environment variables with .env support
- Provide type-safe access to all static configuration values
- Validate critical settings on startup
- Track which values came from the environment versus defaults

Non-Responsibilities
--------------------
- The action tariff and achievement rules (static tables in code)
- Secrets management (use environment variables)

Architecture Notes
------------------
- Singleton pattern via class methods (no instantiation)
- Auto-loads on module import via Config.validate()
- Invalid values log a warning and fall back to their documented default
- `Config.get(key, default)` gives services keyed access for tunables

Environment Variables
---------------------
Database:
- DATABASE_URL: Shared fallback for both stores
- PROGRESS_DATABASE_URL: Store A (progress ledger)
- ACHIEVEMENT_DATABASE_URL: Store B (achievement log), defaults to Store A
- DATABASE_POOL_SIZE, DATABASE_MAX_OVERFLOW, DATABASE_POOL_RECYCLE,
  DATABASE_POOL_TIMEOUT, DATABASE_STATEMENT_TIMEOUT_MS, DATABASE_ECHO
- STORE_CALL_TIMEOUT_SECONDS: Budget for one store call
- DATABASE_RETRY_MAX_ATTEMPTS, DATABASE_RETRY_INITIAL_BACKOFF_MS,
  DATABASE_RETRY_MAX_BACKOFF_MS, DATABASE_RETRY_JITTER_MS

Progression:
- XP_MAX_CONFLICT_RETRIES: Optimistic-concurrency attempts per XP write
- ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS: Total budget for the achievement
  follow-up of one XP award

Environment:
- ENVIRONMENT, DEBUG, LOG_LEVEL, LOG_JSON, LOG_COLORS, LOG_TO_FILE, LOGS_DIR
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

_DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./progression.db"


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
            # Structured logger is not configured this early
            import logging
            logging.warning(
                f"Unknown environment '{value}', defaulting to development"
            )
            return cls.DEVELOPMENT


class _ConfigLoadMetrics:
    """Tracks which values came from the environment and which failed validation."""

    def __init__(self):
        self.env_vars_loaded: Dict[str, bool] = {}
        self.validation_errors: Dict[str, str] = {}
        self.defaults_used: Dict[str, Any] = {}
        self.last_reload: Optional[str] = None

    def record_env_load(self, key: str, from_env: bool, value: Any, default: Any):
        self.env_vars_loaded[key] = from_env
        if not from_env:
            self.defaults_used[key] = default

    def record_validation_error(self, key: str, error: str):
        self.validation_errors[key] = error

    def get_summary(self) -> Dict[str, Any]:
        return {
            "total_configs": len(self.env_vars_loaded),
            "from_environment": sum(1 for v in self.env_vars_loaded.values() if v),
            "from_defaults": sum(1 for v in self.env_vars_loaded.values() if not v),
            "validation_errors": len(self.validation_errors),
            "defaults_used": list(self.defaults_used.keys()),
            "last_reload": self.last_reload,
        }


class Config:
    """
    Centralized static configuration for the progression engine.

    Usage
    -----
    >>> Config.PROGRESS_DATABASE_URL
    'sqlite+aiosqlite:///./progression.db'
    >>> Config.get("XP_MAX_CONFLICT_RETRIES", 25)
    25
    """

    _metrics: Optional[_ConfigLoadMetrics] = None
    _enable_metrics: bool = True
    _validated: bool = False

    # =========================================================================
    # Database Configuration
    # =========================================================================

    DATABASE_URL: str = _DEFAULT_DATABASE_URL
    PROGRESS_DATABASE_URL: str = _DEFAULT_DATABASE_URL
    ACHIEVEMENT_DATABASE_URL: str = _DEFAULT_DATABASE_URL
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 1800
    DATABASE_POOL_TIMEOUT: int = 30
    DATABASE_STATEMENT_TIMEOUT_MS: int = 5_000
    DATABASE_ECHO: bool = False
    STORE_CALL_TIMEOUT_SECONDS: float = 5.0

    DATABASE_RETRY_MAX_ATTEMPTS: int = 3
    DATABASE_RETRY_INITIAL_BACKOFF_MS: int = 50
    DATABASE_RETRY_MAX_BACKOFF_MS: int = 1000
    DATABASE_RETRY_JITTER_MS: int = 50

    # =========================================================================
    # Progression
    # =========================================================================

    XP_MAX_CONFLICT_RETRIES: int = 25
    ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS: float = 10.0

    # =========================================================================
    # Environment Configuration
    # =========================================================================

    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_JSON: Optional[bool] = None
    LOG_COLORS: bool = True
    LOG_TO_FILE: bool = False

    PROJECT_ROOT = Path(__file__).resolve().parents[3]
    LOGS_DIR = PROJECT_ROOT / "logs"

    # =========================================================================
    # Helper Methods
    # =========================================================================

    @classmethod
    def _init_metrics(cls):
        if cls._enable_metrics and cls._metrics is None:
            cls._metrics = _ConfigLoadMetrics()

    @classmethod
    def _reject(cls, key: str, error: str) -> None:
        import logging
        logging.warning(error)
        if cls._metrics:
            cls._metrics.record_validation_error(key, error)

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

        Example
        -------
        >>> Config._safe_int("DATABASE_POOL_SIZE", 5, min_val=1, max_val=200)
        5
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
            cls._reject(
                key, f"{key}='{raw_value}' is not a valid integer, using default {default}"
            )
            return default

        if min_val is not None and value < min_val:
            cls._reject(
                key, f"{key}={value} is below minimum {min_val}, using default {default}"
            )
            return default

        if max_val is not None and value > max_val:
            cls._reject(
                key, f"{key}={value} exceeds maximum {max_val}, using default {default}"
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_float(
        cls,
        key: str,
        default: float,
        min_val: Optional[float] = None,
        max_val: Optional[float] = None,
    ) -> float:
        """Safely parse a float from environment with bounds checking."""
        cls._init_metrics()

        raw_value = os.getenv(key)

        if raw_value is None:
            if cls._metrics:
                cls._metrics.record_env_load(key, False, default, default)
            return default

        try:
            value = float(raw_value)
        except ValueError:
            cls._reject(
                key, f"{key}='{raw_value}' is not a valid number, using default {default}"
            )
            return default

        if (min_val is not None and value < min_val) or (
            max_val is not None and value > max_val
        ):
            cls._reject(
                key,
                f"{key}={value} is outside [{min_val}, {max_val}], using default {default}",
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _parse_bool(cls, key: str, raw_value: str) -> Optional[bool]:
        normalized = raw_value.lower().strip()
        if normalized in {"true", "yes", "1", "on"}:
            return True
        if normalized in {"false", "no", "0", "off"}:
            return False
        return None

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

        value = cls._parse_bool(key, raw_value)
        if value is None:
            cls._reject(
                key, f"{key}='{raw_value}' is not a valid boolean, using default {default}"
            )
            return default

        if cls._metrics:
            cls._metrics.record_env_load(key, True, value, default)

        return value

    @classmethod
    def _safe_optional_bool(cls, key: str) -> Optional[bool]:
        raw_value = os.getenv(key)
        if raw_value is None:
            return None
        value = cls._parse_bool(key, raw_value)
        if value is None:
            cls._reject(key, f"{key}='{raw_value}' is not a valid boolean, ignoring")
        return value

    @classmethod
    def _safe_str(
        cls,
        key: str,
        default: str,
        required: bool = False,
    ) -> str:
        """Safely get string from environment."""
        cls._init_metrics()

        value = os.getenv(key) or default
        from_env = bool(os.getenv(key))

        if cls._metrics:
            cls._metrics.record_env_load(key, from_env, value, default)

        if required and not value:
            error = f"Required environment variable {key} is not set"
            import logging
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

        Called automatically on module import; call again after changing the
        environment (tests do this through monkeypatch).
        """
        cls._init_metrics()

        # Database
        cls.DATABASE_URL = cls._safe_str("DATABASE_URL", _DEFAULT_DATABASE_URL)
        cls.PROGRESS_DATABASE_URL = cls._safe_str(
            "PROGRESS_DATABASE_URL", cls.DATABASE_URL, required=True
        )
        cls.ACHIEVEMENT_DATABASE_URL = cls._safe_str(
            "ACHIEVEMENT_DATABASE_URL", cls.PROGRESS_DATABASE_URL, required=True
        )
        cls.DATABASE_POOL_SIZE = cls._safe_int(
            "DATABASE_POOL_SIZE", 5, min_val=1, max_val=200
        )
        cls.DATABASE_MAX_OVERFLOW = cls._safe_int(
            "DATABASE_MAX_OVERFLOW", 10, min_val=0, max_val=200
        )
        cls.DATABASE_POOL_RECYCLE = cls._safe_int(
            "DATABASE_POOL_RECYCLE", 1800, min_val=60
        )
        cls.DATABASE_POOL_TIMEOUT = cls._safe_int(
            "DATABASE_POOL_TIMEOUT", 30, min_val=1, max_val=600
        )
        cls.DATABASE_STATEMENT_TIMEOUT_MS = cls._safe_int(
            "DATABASE_STATEMENT_TIMEOUT_MS", 5_000, min_val=100
        )
        cls.DATABASE_ECHO = cls._safe_bool("DATABASE_ECHO", False)
        cls.STORE_CALL_TIMEOUT_SECONDS = cls._safe_float(
            "STORE_CALL_TIMEOUT_SECONDS", 5.0, min_val=0.01, max_val=300.0
        )

        # Retry policy
        cls.DATABASE_RETRY_MAX_ATTEMPTS = cls._safe_int(
            "DATABASE_RETRY_MAX_ATTEMPTS", 3, min_val=1, max_val=20
        )
        cls.DATABASE_RETRY_INITIAL_BACKOFF_MS = cls._safe_int(
            "DATABASE_RETRY_INITIAL_BACKOFF_MS", 50, min_val=0
        )
        cls.DATABASE_RETRY_MAX_BACKOFF_MS = cls._safe_int(
            "DATABASE_RETRY_MAX_BACKOFF_MS", 1000, min_val=0
        )
        cls.DATABASE_RETRY_JITTER_MS = cls._safe_int(
            "DATABASE_RETRY_JITTER_MS", 50, min_val=0
        )

        # Progression
        cls.XP_MAX_CONFLICT_RETRIES = cls._safe_int(
            "XP_MAX_CONFLICT_RETRIES", 25, min_val=1, max_val=1000
        )
        cls.ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS = cls._safe_float(
            "ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS", 10.0, min_val=0.01, max_val=600.0
        )

        # Environment
        cls.ENVIRONMENT = cls._safe_str("ENVIRONMENT", "development")
        cls.DEBUG = cls._safe_bool("DEBUG", False)
        cls.LOG_LEVEL = cls._safe_str("LOG_LEVEL", "INFO")
        cls.LOG_JSON = cls._safe_optional_bool("LOG_JSON")
        cls.LOG_COLORS = cls._safe_bool("LOG_COLORS", True)
        cls.LOG_TO_FILE = cls._safe_bool("LOG_TO_FILE", False)
        logs_dir = os.getenv("LOGS_DIR")
        cls.LOGS_DIR = Path(logs_dir) if logs_dir else cls.PROJECT_ROOT / "logs"

        if cls._metrics:
            from datetime import datetime, timezone
            cls._metrics.last_reload = datetime.now(timezone.utc).isoformat()

    @classmethod
    def validate(cls, force: bool = False) -> None:
        """
        Validate critical configuration values on startup.

        Raises
        ------
        ValueError:
            If required config values are missing or invalid in production.
        """
        if cls._validated and not force:
            return

        import logging
        logger = logging.getLogger(__name__)
        cls._init_metrics()

        try:
            cls.load()

            if not cls.PROGRESS_DATABASE_URL:
                raise ValueError("PROGRESS_DATABASE_URL (or DATABASE_URL) is required")

            if not cls.ACHIEVEMENT_DATABASE_URL:
                raise ValueError("ACHIEVEMENT_DATABASE_URL is required")

            if cls.is_production():
                for attr in ("PROGRESS_DATABASE_URL", "ACHIEVEMENT_DATABASE_URL"):
                    url = getattr(cls, attr)
                    if url.startswith("sqlite"):
                        raise ValueError(f"{attr} must not be SQLite in production")
                    if "user:password" in url:
                        logger.error(
                            f"SECURITY: {attr} uses default credentials in production"
                        )

            valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
            if cls.LOG_LEVEL.upper() not in valid_log_levels:
                logger.warning(f"Invalid LOG_LEVEL '{cls.LOG_LEVEL}', using INFO")
                cls.LOG_LEVEL = "INFO"

            cls._validated = True

            if cls._metrics and cls._metrics.validation_errors:
                logger.warning(
                    f"Configuration warnings: {cls._metrics.validation_errors}"
                )

        except Exception as e:
            logger.warning(f"Config validation warning: {e}")
            if cls.is_production():
                logger.error("Configuration validation failed in production")
                raise

    # =========================================================================
    # Access
    # =========================================================================

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """Keyed access for services; unknown keys return `default`."""
        if key.startswith("_"):
            return default
        return getattr(cls, key, default)

    @classmethod
    def is_production(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "production"

    @classmethod
    def is_development(cls) -> bool:
        return cls.ENVIRONMENT.lower() == "development"

    @classmethod
    def is_testing(cls) -> bool:
        return cls.ENVIRONMENT.lower() in ("testing", "test")

    @classmethod
    def get_metrics(cls) -> Optional[_ConfigLoadMetrics]:
        return cls._metrics

    @classmethod
    def get_config_summary(cls) -> Dict[str, Any]:
        """Non-sensitive configuration summary for debugging."""
        return {
            "environment": cls.ENVIRONMENT,
            "debug": cls.DEBUG,
            "log_level": cls.LOG_LEVEL,
            "progress_store_scheme": cls.PROGRESS_DATABASE_URL.split(":", 1)[0],
            "achievement_store_scheme": cls.ACHIEVEMENT_DATABASE_URL.split(":", 1)[0],
            "separate_stores": cls.PROGRESS_DATABASE_URL != cls.ACHIEVEMENT_DATABASE_URL,
            "database_pool_size": cls.DATABASE_POOL_SIZE,
            "store_call_timeout_seconds": cls.STORE_CALL_TIMEOUT_SECONDS,
            "xp_max_conflict_retries": cls.XP_MAX_CONFLICT_RETRIES,
            "achievement_evaluation_timeout_seconds": cls.ACHIEVEMENT_EVALUATION_TIMEOUT_SECONDS,
        }


# Auto-validate on import
Config.validate()
