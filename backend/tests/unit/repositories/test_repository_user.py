"""Unit tests for UserRepository."""

from datetime import UTC, datetime, timedelta

import pytest

from authcore.infra.crypto.ephemeral_tokens import EphemeralTokenGenerator
from authcore.models.user import SecretPurpose
from authcore.repositories.user import UserRepository
from authcore.services._shared.errors import ConflictError
from tests.factories.user import UserFactory

LATER = datetime(2026, 1, 15, 12, 20, tzinfo=UTC)


class TestUserRepository:
    """Ensure ``UserRepository`` performs core persistence operations."""

    @pytest.fixture()
    def repo(self, session):
        return UserRepository(session=session)

    def test_create_and_get_user(self, repo, session):
        """Create a user and fetch it by email to verify retrieval."""
        u = repo.create(email="Alice@Example.com", username="alice", password_hash="h$x")
        session.commit()

        fetched = repo.find_by_identity(email="ALICE@example.com ")
        assert fetched is not None
        assert fetched.id == u.id
        assert fetched.username == "alice"
        assert repo.find_by_identity(username=" Alice").id == u.id
        assert repo.find_by_id(u.id) is fetched

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"email": "carol@example.com"},
            {"username": "carol"},
            {"email": "other@example.com", "username": "carol"},
            {"email": "CAROL@example.com", "username": "nobody"},
        ],
    )
    def test_find_by_identity_matches_either_field(self, repo, kwargs):
        u = UserFactory(email="carol@example.com", username="carol")
        assert repo.find_by_identity(**kwargs).id == u.id

    def test_find_by_identity_without_criteria(self, repo):
        UserFactory()
        assert repo.find_by_identity() is None
        assert repo.find_by_identity(email="  ", username="") is None

    def test_create_maps_duplicate_email_to_conflict(self, repo, session):
        UserFactory(email="dup@example.com", username="first")
        with pytest.raises(ConflictError, match="email"):
            repo.create(email="dup@example.com", username="second", password_hash="h$x")
        session.rollback()

    def test_create_maps_duplicate_username_to_conflict(self, repo, session):
        UserFactory(email="one@example.com", username="taken")
        with pytest.raises(ConflictError, match="username"):
            repo.create(email="two@example.com", username="taken", password_hash="h$x")
        session.rollback()

    def test_create_rejects_non_assignable_fields(self, repo):
        with pytest.raises(ValueError):
            repo.create(
                email="e@example.com",
                username="e",
                password_hash="h$x",
                email_verification_token_hash="x",
            )

    @pytest.mark.parametrize("purpose", list(SecretPurpose))
    def test_find_by_pending_secret(self, repo, session, purpose):
        u = UserFactory()
        digest = EphemeralTokenGenerator.digest("plain-secret")
        u.set_pending_secret(purpose, digest, LATER)
        session.commit()

        assert repo.find_by_pending_secret(purpose, digest).id == u.id
        assert repo.find_by_pending_secret(purpose, EphemeralTokenGenerator.digest("other")) is None
        assert repo.find_by_pending_secret(purpose, "") is None

        other = next(p for p in SecretPurpose if p is not purpose)
        assert repo.find_by_pending_secret(other, digest) is None

    def test_save_flushes_and_can_validate(self, repo, session):
        u = UserFactory()
        u.refresh_token_jti = "jti-1"
        repo.save(u)
        session.commit()
        assert repo.get(u.id).refresh_token_jti == "jti-1"

        # bypass the attribute validator to simulate a corrupt in-memory state
        u.__dict__["password_hash"] = ""
        with pytest.raises(ValueError):
            repo.save(u, skip_validation=False)
