"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

from typing import Any

from flask import Flask, current_app
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import MetaData

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)

AUTH_SETTINGS_KEY = "authcore.settings"
EMAIL_DISPATCHER_KEY = "authcore.email_dispatcher"


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations and the credential components.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`authcore.models` package to ensure SQLAlchemy metadata is ready
        for migrations, then freezes the auth settings and builds the e-mail
        dispatcher selected by ``MAIL_BACKEND``.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from authcore import models as _models  # noqa: F401

    migrate.init_app(app, db)

    from authcore.services.sessions.dto import AuthSettings

    app.extensions[AUTH_SETTINGS_KEY] = AuthSettings.from_config(app.config)
    app.extensions[EMAIL_DISPATCHER_KEY] = build_email_dispatcher(app.config)


def build_email_dispatcher(config: Any):
    """Return the dispatcher configured by ``MAIL_BACKEND``.

    :param config: Flask config mapping.
    :raises RuntimeError: For an unknown backend name.
    """
    from authcore.infra.mail.smtp_dispatcher import SMTPEmailDispatcher
    from authcore.services._shared.ports.email_dispatcher import InMemoryEmailDispatcher

    backend = str(config.get("MAIL_BACKEND", "smtp")).strip().lower()
    if backend == "memory":
        return InMemoryEmailDispatcher()
    if backend == "smtp":
        return SMTPEmailDispatcher(
            host=config.get("MAIL_SERVER", "localhost"),
            port=int(config.get("MAIL_PORT", 25)),
            sender=config.get("MAIL_DEFAULT_SENDER", "no-reply@example.com"),
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            use_tls=bool(config.get("MAIL_USE_TLS", False)),
            timeout=float(config.get("MAIL_TIMEOUT", 10)),
            product_name=config.get("MAIL_PRODUCT_NAME", "Project Manager"),
            product_link=config.get("MAIL_PRODUCT_LINK", "http://localhost:3000"),
        )
    raise RuntimeError(f"Unknown MAIL_BACKEND {backend!r}")


def get_auth_settings():
    """Return the frozen :class:`AuthSettings` of the current app."""
    settings = current_app.extensions.get(AUTH_SETTINGS_KEY)
    if settings is None:
        raise RuntimeError("Auth settings are not initialized. Call init_app() first.")
    return settings


def get_email_dispatcher():
    """Return the e-mail dispatcher of the current app."""
    dispatcher = current_app.extensions.get(EMAIL_DISPATCHER_KEY)
    if dispatcher is None:
        raise RuntimeError("E-mail dispatcher is not initialized. Call init_app() first.")
    return dispatcher
