"""Unit tests for SQLAlchemyReadOnlyUnitOfWork guards."""

import pytest

from authcore.models.user import User
from authcore.uow import SQLAlchemyReadOnlyUnitOfWork as ROuow
from authcore.uow import SQLAlchemyUnitOfWork as RWuow
from tests.factories.user import UserFactory


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_blocks_orm_flush_writes(self, session):
        """Flushing new objects inside the RO UoW raises."""
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            uow.session.add(UserFactory.build())
            uow.session.flush()

    def test_allows_reads(self, session):
        u = UserFactory()

        with ROuow() as uow:
            assert uow.users.find_by_id(u.id) is not None
            assert uow.session.query(User).count() >= 1

    def test_disallows_commit(self, session):
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()

    def test_always_rolls_back_changes(self, session):
        """Attempted modifications never persist after RO UoW exits."""
        user_id = UserFactory(email="keep@example.com").id

        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            u = uow.users.find_by_id(user_id)
            u.email = "mutated-in-ro@example.com"
            uow.session.flush()

        with RWuow() as uow:
            assert uow.users.find_by_id(user_id).email == "keep@example.com"

    def test_works_with_scoped_session_proxy(self, session):
        """The Flask-style ``scoped_session`` proxy is resolved to a real Session."""
        u = UserFactory()

        with ROuow(session=session) as uow:
            assert uow.users.find_by_id(u.id) is not None

    def test_joined_transaction_only_discards_pending_changes(self, session):
        """Inside an already-open transaction, unflushed edits are dropped on exit."""
        user_id = UserFactory(email="joined@example.com").id
        session.get(User, user_id)
        assert session().in_transaction()

        with ROuow() as uow:
            uow.users.find_by_id(user_id).email = "changed@example.com"
            uow.session.add(UserFactory.build())

        assert session().in_transaction()
        assert not session.new and not session.dirty
        assert session.get(User, user_id).email == "joined@example.com"

    def test_guard_is_removed_on_exit(self, session):
        with ROuow():
            pass

        with RWuow() as uow:
            uow.users.add(UserFactory.build())
