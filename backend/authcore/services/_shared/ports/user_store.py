from __future__ import annotations

from typing import Any, Protocol

from authcore.models.user import SecretPurpose, User


class UserStore(Protocol):
    """Port for user record persistence used by the session service.

    ``create`` raises ``ConflictError`` on a duplicate email or username.
    Lookups return ``None`` rather than raising when nothing matches.
    """

    def find_by_identity(
        self, *, email: str | None = None, username: str | None = None
    ) -> User | None: ...

    def find_by_id(self, user_id: int) -> User | None: ...

    def find_by_pending_secret(
        self, purpose: SecretPurpose, hashed_value: str
    ) -> User | None: ...

    def create(self, **fields: Any) -> User: ...

    def save(self, user: User, *, skip_validation: bool = True) -> User: ...
