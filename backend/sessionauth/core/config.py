"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Load .env in development (no-op when the file is missing)
load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def env_float(name: str, default: float) -> float:
    """Parse a float from an environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return float(val)


def engine_options(database_uri: str, timeout_seconds: float) -> dict[str, Any]:
    """Build ``SQLALCHEMY_ENGINE_OPTIONS`` bounding every durable-store call.

    Parameters
    ----------
    database_uri: str
        SQLAlchemy URL; PostgreSQL URLs also receive a server-side
        ``statement_timeout``.
    timeout_seconds: float
        Upper bound for acquiring a pooled connection and running a statement.

    Returns
    -------
    dict[str, Any]
        Keyword arguments forwarded to :func:`sqlalchemy.create_engine`.
    """
    options: dict[str, Any] = {"pool_pre_ping": True}
    if database_uri.startswith("sqlite"):
        return options
    options["pool_timeout"] = timeout_seconds
    if database_uri.startswith("postgresql"):
        millis = int(timeout_seconds * 1000)
        options["connect_args"] = {
            "connect_timeout": max(1, int(timeout_seconds)),
            "options": f"-c statement_timeout={millis}",
        }
    return options


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Defaults to a development-safe placeholder.
    JWT_SECRET_KEY: str
        Server-held key used by ``flask-jwt-extended`` to sign access tokens.
    ACCESS_TOKEN_EXPIRES_HOURS: float
        Access token lifetime (24 hours by default).
    REFRESH_TOKEN_EXPIRES_DAYS: float
        Absolute lifetime of a refresh-token lineage (30 days by default).
    REFRESH_SECRET_HASH_METHOD: str
        Werkzeug hashing method applied to refresh secrets before persistence.
    PASSWORD_HASH_METHOD: str
        Werkzeug hashing method of the default in-memory credential verifier.
    SQLALCHEMY_DATABASE_URI: str
        Durable token store connection string.
    REDIS_URL: str | None
        Fast token cache location. When unset the cache is disabled and every
        read goes to the durable store.
    CACHE_TIMEOUT_SECONDS: float
        Socket timeout for every Redis call.
    STORE_TIMEOUT_SECONDS: float
        Pool checkout and statement timeout for the durable store.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT")
    JWT_ALGORITHM = "HS256"
    JWT_TOKEN_LOCATION = ["headers"]

    # Token lifetimes
    ACCESS_TOKEN_EXPIRES_HOURS = env_float("ACCESS_TOKEN_EXPIRES_HOURS", 24)
    REFRESH_TOKEN_EXPIRES_DAYS = env_float("REFRESH_TOKEN_EXPIRES_DAYS", 30)
    REFRESH_SECRET_HASH_METHOD = os.getenv("REFRESH_SECRET_HASH_METHOD", "scrypt")
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt")

    # Durable store
    STORE_TIMEOUT_SECONDS = env_float("STORE_TIMEOUT_SECONDS", 5.0)
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI, STORE_TIMEOUT_SECONDS)
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Fast cache
    REDIS_URL = os.getenv("REDIS_URL") or None
    CACHE_TIMEOUT_SECONDS = env_float("CACHE_TIMEOUT_SECONDS", 0.25)

    # Rate limits
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    AUTH_LOGIN_RATE_LIMIT = os.getenv("AUTH_LOGIN_RATE_LIMIT", "5 per minute")
    AUTH_REFRESH_RATE_LIMIT = os.getenv("AUTH_REFRESH_RATE_LIMIT", "30 per minute")

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables rate limiting.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Never talks to Redis; tests inject their own cache.
    - Uses a cheap hash method: refresh secrets are already high-entropy.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS: dict[str, Any] = {}
    SQLALCHEMY_ECHO = False
    REDIS_URL = None
    RATELIMIT_ENABLED = False
    REFRESH_SECRET_HASH_METHOD = "pbkdf2:sha256:1000"
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    JWT_SECRET_KEY = "testing-secret-key-with-enough-length-for-hs256"
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config(name: str | None = None) -> type[BaseConfig]:
    """Return the configuration class for ``name`` or, when omitted, ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when the name is unset or
    unknown.
    """
    selected = name if name is not None else os.getenv(ENV_VAR, "development")
    return CONFIG_MAP.get(selected.strip().lower(), DevelopmentConfig)
