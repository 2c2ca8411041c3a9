"""
SQLAlchemy implementation of UnitOfWork for Flask.
"""

from __future__ import annotations

import logging
from contextlib import suppress

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from authcore.core.extensions import db
from authcore.repositories import UserRepository
from authcore.uow.base import UnitOfWork

log = logging.getLogger(__name__)


class SQLAlchemyRepositoryContainer:
    """Provide repository instances that share a SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    SQLAlchemy-backed UoW using the Flask-scoped session.

    Commits when the block exits cleanly, rolls back otherwise. A failing
    commit (e.g. a version-counter mismatch) is rolled back and re-raised.
    """

    def __init__(self, session: Session | None = None) -> None:
        super().__init__(session=session if session is not None else db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # No-op: the session is lazily started on the first statement.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only Unit of Work backed by the Flask-scoped SQLAlchemy session.

    This UoW:
    - Blocks ORM flushes carrying new/dirty/deleted objects.
    - Applies ``SET TRANSACTION READ ONLY`` on PostgreSQL when it owns the
      transaction.
    - Rolls back on exit when it owns the transaction; when attached to an
      already-open transaction it only discards unflushed ORM changes.
    - Disallows ``commit()``.
    """

    def __init__(self, session: Session | None = None, *, enforce_db_readonly: bool = True) -> None:
        super().__init__(session=session if session is not None else db.session)
        self.enforce_db_readonly = enforce_db_readonly
        self._owns_transaction = False
        self._listener_installed = False

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._owns_transaction = not self._event_target().in_transaction()
        self._install_listener()

        if self._owns_transaction and self.enforce_db_readonly:
            dialect = self._event_target().get_bind().dialect.name
            if dialect == "postgresql":
                try:
                    self.session.execute(text("SET TRANSACTION READ ONLY"))
                except SQLAlchemyError as exc:
                    log.warning("SET TRANSACTION READ ONLY failed (%s); guards only.", exc)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owns_transaction:
                self.session.rollback()
            else:
                self._discard_changes()
        finally:
            self._remove_listener()
            self._owns_transaction = False

    def commit(self) -> None:
        """
        :raises RuntimeError: always, to prevent accidental writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ----------------------------- Guards --------------------------------------

    def _install_listener(self) -> None:
        if self._listener_installed:
            return

        def _before_flush(session, flush_context, instances):
            if session.new or session.dirty or session.deleted:
                raise RuntimeError(
                    "Read-only UnitOfWork: ORM flush blocked (new/dirty/deleted objects present)."
                )

        self._before_flush = _before_flush
        event.listen(self._event_target(), "before_flush", _before_flush)
        self._listener_installed = True

    def _remove_listener(self) -> None:
        if not self._listener_installed:
            return
        with suppress(Exception):
            event.remove(self._event_target(), "before_flush", self._before_flush)
        self._listener_installed = False

    def _discard_changes(self) -> None:
        """Drop unflushed ORM changes without ending the outer transaction."""
        session = self._event_target()
        for obj in list(session.new):
            session.expunge(obj)
        for obj in list(session.dirty):
            session.expire(obj)

    def _event_target(self) -> Session:
        # scoped_session proxies neither emit events nor expose transaction
        # state; resolve the real Session.
        registry = getattr(self.session, "registry", None)
        if registry is not None and callable(registry):
            return registry()
        return self.session
