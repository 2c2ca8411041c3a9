"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside one outer transaction on a shared connection to an
in-memory SQLite database. Sessions join it through SAVEPOINTs, so service
commits stay visible to the test and everything is rolled back afterwards.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime

import pytest
from sqlalchemy import event
from sqlalchemy.orm import scoped_session, sessionmaker

from authcore.core.config import TestingConfig
from authcore.core.extensions import db as _db  # Flask-SQLAlchemy instance
from authcore.core.extensions import get_auth_settings, get_email_dispatcher
from authcore.factory import create_app  # application factory under test
from authcore.services._shared.ports import FrozenClock
from authcore.services.sessions.service import SessionService


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Always uses an in-memory SQLite database.
    - Keeps e-mail in memory and auth cookies over plain HTTP.
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    EMAIL_VERIFICATION_URL = "http://testserver/verify-email/{token}"
    PASSWORD_RESET_URL = "http://testserver/reset-password/{token}"


def _enable_sqlite_savepoints(engine) -> None:
    """Let pysqlite emit BEGIN/SAVEPOINT itself instead of deferring them."""

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestConfig, instance_relative_config=False)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        if _db.engine.dialect.name == "sqlite":
            _enable_sqlite_savepoints(_db.engine)
        _db.create_all()
    yield _db
    with app.app_context():
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(app, db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    with app.app_context():
        conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(autouse=True)
def app_context(app):
    """Push a fresh application context per test so ``g`` never leaks across tests."""
    with app.app_context() as ctx:
        yield ctx


@pytest.fixture(scope="function")
def session(db, connection, app_context):
    """Provide a scoped session joined to a per-test outer transaction.

    Yields
    ------
    sqlalchemy.orm.scoping.scoped_session
        Session bound to the shared connection. ``commit()`` only releases a
        SAVEPOINT; the outer transaction is rolled back after each test.

    Notes
    -----
    Mirrors the SQLAlchemy 2.0 "join a session into an external transaction"
    recipe (``join_transaction_mode="create_savepoint"``).
    """
    outer = connection.begin()

    SessionFactory = sessionmaker(
        bind=connection,
        autoflush=False,
        join_transaction_mode="create_savepoint",
    )
    scoped = scoped_session(SessionFactory)

    # Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        outer.rollback()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


@pytest.fixture()
def clock() -> FrozenClock:
    """Clock frozen at a fixed instant; tests move it explicitly."""
    return FrozenClock(datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC))


@pytest.fixture()
def settings(app_context):
    return get_auth_settings()


@pytest.fixture()
def mailer(app_context):
    """The app's in-memory dispatcher, emptied for each test."""
    dispatcher = get_email_dispatcher()
    dispatcher.fail = False
    dispatcher.clear()
    yield dispatcher
    dispatcher.fail = False
    dispatcher.clear()


@pytest.fixture()
def service(settings, mailer, clock, session) -> SessionService:
    """SessionService with production adapters and a frozen clock."""
    return SessionService.from_settings(settings, mailer=mailer, clock=clock)


@pytest.fixture()
def client(app, session, mailer):
    """Flask test client sharing the transactional session."""
    return app.test_client()


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Wire Factory Boy's session helper to the transactional session fixture."""
    from tests.factories import SQLAlchemySession

    SQLAlchemySession.set(session)
    yield
