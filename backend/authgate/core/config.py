"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'


# Loads .env during development (no-op when the file is missing)
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


def env_int(name: str, default: int) -> int:
    """Parse an integer environment variable, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret; also keys the HMAC used to store one-time passcodes.
    JWT_SECRET_KEY: str
        Access-token signing secret. ``flask-jwt-extended`` reads the same key
        so its request guard accepts the access tokens minted by the codec.
    JWT_ACCESS_TOKEN_EXPIRES_MINUTES: int
        Access-token lifetime in minutes.
    JWT_REFRESH_SECRET_KEY: str
        Refresh-token signing secret. Must differ from ``JWT_SECRET_KEY``.
    JWT_REFRESH_TOKEN_EXPIRES_DAYS: int
        Refresh-token lifetime in days.
    REDIS_URL: str | None
        Redis connection string for refresh records and OTP codes. When unset
        the application falls back to process-local in-memory stores
        (refused in production).
    OTP_LENGTH, OTP_TTL_SECONDS, OTP_MAX_ATTEMPTS: int
        One-time passcode shape, lifetime and attempt budget.
    OTP_EMAIL_SUBJECT: str
        Subject line of the passcode email.
    REGISTRATION_TTL_MINUTES: int
        How long an unconfirmed registration may wait for its passcode.
    LOCKOUT_MAX_FAILED_ATTEMPTS, LOCKOUT_MINUTES: int
        Password lockout policy applied by the identity service.
    DEFAULT_USER_ROLE: str
        Role granted to users promoted from a registration (blank disables).
    SMTP_*: str | int | bool
        Outgoing mail settings. Without ``SMTP_HOST`` passcodes are only
        logged, and only while ``DEBUG`` is on.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "CHANGE_ME_JWT_ACCESS")
    JWT_ALGORITHM = "HS256"
    JWT_ACCESS_TOKEN_EXPIRES_MINUTES = env_int("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", 15)
    JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", "CHANGE_ME_JWT_REFRESH")
    JWT_REFRESH_TOKEN_EXPIRES_DAYS = env_int("JWT_REFRESH_TOKEN_EXPIRES_DAYS", 7)

    # DB / cache
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    REDIS_URL = os.getenv("REDIS_URL") or None

    # One-time passcodes & registration staging
    OTP_LENGTH = env_int("OTP_LENGTH", 6)
    OTP_TTL_SECONDS = env_int("OTP_TTL_SECONDS", 300)
    OTP_MAX_ATTEMPTS = env_int("OTP_MAX_ATTEMPTS", 5)
    OTP_EMAIL_SUBJECT = os.getenv("OTP_EMAIL_SUBJECT", "Validate Email Code")
    REGISTRATION_TTL_MINUTES = env_int("REGISTRATION_TTL_MINUTES", 60 * 24)

    # Identity policy
    LOCKOUT_MAX_FAILED_ATTEMPTS = env_int("LOCKOUT_MAX_FAILED_ATTEMPTS", 5)
    LOCKOUT_MINUTES = env_int("LOCKOUT_MINUTES", 5)
    DEFAULT_USER_ROLE = os.getenv("DEFAULT_USER_ROLE", "user")

    # Mail
    SMTP_HOST = os.getenv("SMTP_HOST") or None
    SMTP_PORT = env_int("SMTP_PORT", 587)
    SMTP_USER = os.getenv("SMTP_USER") or None
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD") or None
    SMTP_USE_TLS = env_bool("SMTP_USE_TLS", True)
    MAIL_FROM = os.getenv("MAIL_FROM") or None
    MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "AuthGate")

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging, CORS & proxy
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    PROXY_FIX_HOPS = int(os.getenv("PROXY_FIX_HOPS", "1"))

    # Flask built-ins
    DEBUG = False
    TESTING = False

    # Refuse to boot without Redis, SMTP and real secrets
    REQUIRE_EXTERNAL_SERVICES = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    # Passcodes are only logged at DEBUG while no SMTP host is configured
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Never talks to Redis or SMTP: in-memory stores and logged mail only.
    """

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ECHO = False
    REDIS_URL = None
    SMTP_HOST = None
    PROPAGATE_EXCEPTIONS = True
    USE_PROXYFIX = False


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control. The app refuses to start without
    Redis, SMTP and non-default secrets (see :func:`validate_config`).
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    REQUIRE_EXTERNAL_SERVICES = True


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)


REQUIRED_SETTINGS: Final[tuple[str, ...]] = ("REDIS_URL", "SMTP_HOST", "MAIL_FROM")
SECRET_SETTINGS: Final[tuple[str, ...]] = (
    "SECRET_KEY",
    "JWT_SECRET_KEY",
    "JWT_REFRESH_SECRET_KEY",
)
PLACEHOLDER_PREFIX: Final[str] = "CHANGE_ME"


def validate_config(config: Mapping[str, object]) -> None:
    """Fail fast when a deployment would silently degrade.

    Only enforced when ``REQUIRE_EXTERNAL_SERVICES`` is set (production).
    Without Redis every worker keeps its own passcodes and refresh records;
    without SMTP no passcode is ever delivered.

    Raises
    ------
    RuntimeError
        Listing every missing setting and placeholder secret.
    """
    if not config.get("REQUIRE_EXTERNAL_SERVICES"):
        return

    problems = [f"{name} is not set" for name in REQUIRED_SETTINGS if not config.get(name)]
    for name in SECRET_SETTINGS:
        value = str(config.get(name) or "")
        if not value or value.startswith(PLACEHOLDER_PREFIX):
            problems.append(f"{name} still has its placeholder value")
    if config.get("JWT_SECRET_KEY") == config.get("JWT_REFRESH_SECRET_KEY"):
        problems.append("JWT_SECRET_KEY and JWT_REFRESH_SECRET_KEY must differ")

    if problems:
        raise RuntimeError("Refusing to start: " + "; ".join(problems))
