"""User repository: identity lookups and credential record persistence."""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError

from authcore.models.user import SecretPurpose, User
from authcore.repositories.base import BaseRepository
from authcore.services._shared.errors import ConflictError, violates


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Implements the ``UserStore`` port. It NEVER hashes passwords or issues
    tokens; the session service does that and hands finished values in.
    """

    model = User

    # ---------------------------- Whitelists ----------------------------

    def _assignable_fields(self):
        return {
            "email",
            "username",
            "full_name",
            "avatar_url",
            "password_hash",
            "is_email_verified",
            "refresh_token_jti",
        }

    # ---------------------------- Lookup helpers ----------------------------

    def find_by_identity(
        self, *, email: str | None = None, username: str | None = None
    ) -> User | None:
        """Return the first user matching ``email`` OR ``username``.

        Both values are normalised the way the model stores them. Missing or
        blank arguments are skipped; with nothing to match, ``None`` is returned.

        :param email: Email to match.
        :type email: str | None
        :param username: Username to match.
        :type username: str | None
        :returns: Matching user or ``None``.
        :rtype: User | None
        """
        clauses = []
        if email and email.strip():
            clauses.append(User.email == email.strip().lower())
        if username and username.strip():
            clauses.append(User.username == username.strip().lower())
        if not clauses:
            return None
        stmt = self._default_eagerload(select(User).where(or_(*clauses)))
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    def find_by_id(self, user_id: int) -> User | None:
        """Fetch a user by primary key."""
        return self.get(user_id)

    def find_by_pending_secret(self, purpose: SecretPurpose, hashed_value: str) -> User | None:
        """Fetch the user holding ``hashed_value`` as its pending secret for ``purpose``.

        Expiry is NOT checked here; callers compare against their clock.

        :param purpose: Flow owning the secret.
        :type purpose: SecretPurpose
        :param hashed_value: Digest of the presented plaintext.
        :type hashed_value: str
        :returns: Matching user or ``None``.
        :rtype: User | None
        """
        if not hashed_value:
            return None
        column = getattr(User, purpose.hash_column)
        stmt = self._default_eagerload(select(User).where(column == hashed_value))
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    # ---------------------------- Writes ----------------------------

    def create(self, **fields: Any) -> User:
        """Create and flush a new user.

        :param fields: Column values (whitelisted).
        :type fields: Any
        :returns: Persisted user with its primary key.
        :rtype: User
        :raises ConflictError: If the email or username is already taken.
        """
        user = User(**self._sanitize_fields(fields))
        try:
            return self.add(user)
        except IntegrityError as exc:
            if violates(exc, "uq_users_email") or violates(exc, "users.email"):
                raise ConflictError("User", "email already in use") from exc
            if violates(exc, "uq_users_username") or violates(exc, "users.username"):
                raise ConflictError("User", "username already in use") from exc
            raise  # unknown integrity error -> bubble up

    def save(self, user: User, *, skip_validation: bool = True) -> User:
        """Flush pending changes on ``user``.

        :param user: Tracked entity.
        :type user: User
        :param skip_validation: When ``False``, re-run model validators first.
        :type skip_validation: bool
        :returns: The same user.
        :rtype: User
        :raises ValueError: On failed validation.
        """
        if not skip_validation:
            user.validate()
        self.session.add(user)
        self.flush()
        return user
