"""
=============================================================================
SERVICE CONFIGURATION
=============================================================================

All settings live in one dataclass. Only a few of them come from the
environment; the listener address is fixed.

    ┌──────────────────────┬────────────────────────┬─────────────────────┐
    │ Environment variable │ Field                  │ Default             │
    ├──────────────────────┼────────────────────────┼─────────────────────┤
    │ DATABASE_URL         │ database_url           │ (required)          │
    │ USERSERVICE_WORKERS  │ workers                │ 4                   │
    │ DB_POOL_MIN          │ db_min_connections     │ 1                   │
    │ DB_POOL_MAX          │ db_max_connections     │ 10                  │
    │ LOG_LEVEL            │ log_level              │ INFO                │
    │ LOG_FORMAT           │ log_format             │ text                │
    └──────────────────────┴────────────────────────┴─────────────────────┘

Missing DATABASE_URL is a ConfigError raised from from_env(); the entry
point turns that into exit code 2 before anything is bound or connected.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from . import __version__
from .errors import ConfigError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


@dataclass
class ServiceConfig:
    """
    Runtime settings for the user service.

    Tests build this directly (e.g. host="127.0.0.1", port=0); production
    goes through from_env().
    """

    database_url: str = ""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK (fixed in production)
    # ─────────────────────────────────────────────────────────────────────
    host: str = "0.0.0.0"
    port: int = 8080
    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = None
    """
    Socket read timeout in seconds. None = block until the client sends
    or disconnects.
    """

    max_request_size: int = 1024 * 1024
    """User payloads are tiny; 1 MiB is far more than any valid request."""

    # ─────────────────────────────────────────────────────────────────────
    # WORKERS
    # ─────────────────────────────────────────────────────────────────────
    workers: int = 4
    queue_size: int = 100

    # ─────────────────────────────────────────────────────────────────────
    # DATABASE POOL
    # ─────────────────────────────────────────────────────────────────────
    db_min_connections: int = 1
    db_max_connections: int = 10

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING / IDENTITY
    # ─────────────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "text"
    server_name: str = f"userservice/{__version__}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServiceConfig":
        """
        Build a config from environment variables.

        Args:
            environ: Mapping to read instead of os.environ (tests).

        Raises:
            ConfigError: If DATABASE_URL is missing/empty or a number
                         does not parse.
        """
        env = os.environ if environ is None else environ

        database_url = env.get("DATABASE_URL", "").strip()
        if not database_url:
            raise ConfigError("DATABASE_URL must be set")

        return cls(
            database_url=database_url,
            workers=_int_from_env(env, "USERSERVICE_WORKERS", 4),
            db_min_connections=_int_from_env(env, "DB_POOL_MIN", 1),
            db_max_connections=_int_from_env(env, "DB_POOL_MAX", 10),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_format=env.get("LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        """
        Check ranges once at startup.

        Raises:
            ConfigError: On the first invalid value.
        """
        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")
        if self.workers < 1:
            raise ConfigError("workers must be >= 1")
        if self.queue_size < 1:
            raise ConfigError("queue_size must be >= 1")
        if self.db_min_connections < 1:
            raise ConfigError("DB_POOL_MIN must be >= 1")
        if self.db_max_connections < self.db_min_connections:
            raise ConfigError("DB_POOL_MAX must be >= DB_POOL_MIN")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Unknown log level: {self.log_level}")
        if self.log_format not in LOG_FORMATS:
            raise ConfigError(f"Unknown log format: {self.log_format}")


def _int_from_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
