"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Placeholder secrets; ProductionConfig refuses to boot with these.
INSECURE_SECRETS: Final[frozenset[str]] = frozenset(
    {"CHANGE_ME", "CHANGE_ME_ACCESS", "CHANGE_ME_REFRESH"}
)

# Load .env during development (no-op when the file is absent)
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
    """Parse an integer from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: int
        Value returned when the variable is unset or blank.

    Returns
    -------
    int
        Parsed integer value.

    Raises
    ------
    ValueError
        If the variable is set to something that is not an integer.
    """
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return int(val.strip())


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Not used for token signing.
    ACCESS_TOKEN_SECRET: str
        HMAC key signing access tokens.
    REFRESH_TOKEN_SECRET: str
        HMAC key signing refresh tokens (distinct from the access key).
    ACCESS_TOKEN_EXPIRES_MINUTES: int
        Access token lifetime.
    REFRESH_TOKEN_EXPIRES_DAYS: int
        Refresh token lifetime.
    JWT_ALGORITHM: str
        Signing algorithm passed to PyJWT.
    JWT_ISSUER: str | None
        Optional ``iss`` claim added to and required on every token.
    PASSWORD_HASH_METHOD: str
        Werkzeug hash method string, including its fixed cost parameters.
    PASSWORD_SALT_LENGTH: int
        Salt length for password hashes.
    EPHEMERAL_TOKEN_TTL_MINUTES: int
        Lifetime of e-mail verification and password reset secrets.
    ROTATE_REFRESH_TOKENS: bool
        Issue a new refresh token on every refresh.
    REVOKE_SESSIONS_ON_PASSWORD_CHANGE: bool
        Clear the stored refresh reference when a password is changed.
    EMAIL_VERIFICATION_URL: str
        Link template; ``{token}`` is replaced with the plaintext secret.
    PASSWORD_RESET_URL: str
        Link template; ``{token}`` is replaced with the plaintext secret.
    MAIL_BACKEND: str
        ``"smtp"`` or ``"memory"``.
    SQLALCHEMY_DATABASE_URI: str
        Database connection string consumed by SQLAlchemy.
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
    APP_VERSION = os.getenv("APP_VERSION", "dev")

    # Secrets / security
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET", "CHANGE_ME_ACCESS")
    REFRESH_TOKEN_SECRET = os.getenv("REFRESH_TOKEN_SECRET", "CHANGE_ME_REFRESH")
    ACCESS_TOKEN_EXPIRES_MINUTES = env_int("ACCESS_TOKEN_EXPIRES_MINUTES", 15)
    REFRESH_TOKEN_EXPIRES_DAYS = env_int("REFRESH_TOKEN_EXPIRES_DAYS", 7)
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER") or None

    # Credentials
    PASSWORD_HASH_METHOD = os.getenv("PASSWORD_HASH_METHOD", "scrypt:32768:8:1")
    PASSWORD_SALT_LENGTH = env_int("PASSWORD_SALT_LENGTH", 16)
    EPHEMERAL_TOKEN_TTL_MINUTES = env_int("EPHEMERAL_TOKEN_TTL_MINUTES", 20)

    # Session policy
    ROTATE_REFRESH_TOKENS = env_bool("ROTATE_REFRESH_TOKENS", True)
    REVOKE_SESSIONS_ON_PASSWORD_CHANGE = env_bool("REVOKE_SESSIONS_ON_PASSWORD_CHANGE", True)
    AUTH_COOKIE_SECURE = env_bool("AUTH_COOKIE_SECURE", True)

    # Out-of-band links
    EMAIL_VERIFICATION_URL = os.getenv(
        "EMAIL_VERIFICATION_URL",
        "http://localhost:8000/api/v1/auth/verify-email/{token}",
    )
    PASSWORD_RESET_URL = os.getenv(
        "PASSWORD_RESET_URL",
        "http://localhost:8000/api/v1/auth/reset-password/{token}",
    )

    # Mail
    MAIL_BACKEND = os.getenv("MAIL_BACKEND", "smtp")
    MAIL_SERVER = os.getenv("MAIL_SERVER", "localhost")
    MAIL_PORT = env_int("MAIL_PORT", 25)
    MAIL_USERNAME = os.getenv("MAIL_USERNAME") or None
    MAIL_PASSWORD = os.getenv("MAIL_PASSWORD") or None
    MAIL_USE_TLS = env_bool("MAIL_USE_TLS", False)
    MAIL_TIMEOUT = env_int("MAIL_TIMEOUT", 10)
    MAIL_DEFAULT_SENDER = os.getenv("MAIL_DEFAULT_SENDER", "no-reply@example.com")
    MAIL_PRODUCT_NAME = os.getenv("MAIL_PRODUCT_NAME", "Project Manager")
    MAIL_PRODUCT_LINK = os.getenv("MAIL_PRODUCT_LINK", "http://localhost:3000")

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode, keeps mail in memory unless ``MAIL_BACKEND`` says
    otherwise and allows auth cookies over plain HTTP.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    MAIL_BACKEND = os.getenv("MAIL_BACKEND", "memory")
    AUTH_COOKIE_SECURE = env_bool("AUTH_COOKIE_SECURE", False)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables debug logs.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Uses a cheap hash method so the suite stays fast.
    - Propagates exceptions so pytest can surface tracebacks directly.
    """

    TESTING = True
    DEBUG = False
    ACCESS_TOKEN_SECRET = "test-access-secret-0123456789abcdef"
    REFRESH_TOKEN_SECRET = "test-refresh-secret-0123456789abcdef"
    PASSWORD_HASH_METHOD = "pbkdf2:sha256:1000"
    MAIL_BACKEND = "memory"
    AUTH_COOKIE_SECURE = False
    LOG_LEVEL = "WARNING"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    Keeps debug and SQL echoing disabled while relying on WSGI-level log
    configuration for noise control. Placeholder secrets are rejected by
    :func:`validate_secrets` at startup.
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


def validate_secrets(config: Mapping[str, object]) -> None:
    """Refuse to run outside debug/testing with placeholder token secrets.

    :param config: Loaded Flask configuration mapping.
    :raises RuntimeError: If a signing secret is a known placeholder or both
        token kinds share the same secret.
    """
    if config.get("DEBUG") or config.get("TESTING"):
        return
    access = str(config.get("ACCESS_TOKEN_SECRET") or "")
    refresh = str(config.get("REFRESH_TOKEN_SECRET") or "")
    if access in INSECURE_SECRETS or refresh in INSECURE_SECRETS:
        raise RuntimeError("Token signing secrets must be configured for production.")
    if access == refresh:
        raise RuntimeError("Access and refresh tokens must use distinct secrets.")
