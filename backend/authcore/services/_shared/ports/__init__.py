"""
authcore.services._shared.ports
===============================

Collection of *ports* (hexagonal interfaces) the session service depends on.

Modules
-------
- :mod:`password_hasher`:
    :class:`~.PasswordHasher`: one-way hashing and constant-time verification.
- :mod:`token_signer`:
    :class:`~.TokenSigner`, :class:`~.TokenKind`, :class:`~.IssuedToken` and
    the opaque :class:`~.InvalidToken` failure.
- :mod:`email_dispatcher`:
    :class:`~.EmailDispatcher` plus the in-memory outbox implementation.
- :mod:`clock`:
    :class:`~.Clock`, :class:`~.SystemClock` and :class:`~.FrozenClock`.
- :mod:`user_store`:
    :class:`~.UserStore`: user record persistence.

Design Notes
------------
Concrete adapters (werkzeug, PyJWT, SMTP, SQLAlchemy) live under
``authcore.infra`` and ``authcore.repositories``.
"""

from __future__ import annotations

from .clock import Clock, FrozenClock, SystemClock
from .email_dispatcher import EmailDispatcher, InMemoryEmailDispatcher, MailContent, OutboundEmail
from .password_hasher import PasswordHasher
from .token_signer import InvalidToken, IssuedToken, TokenKind, TokenSigner
from .user_store import UserStore

__all__ = [
    "Clock",
    "SystemClock",
    "FrozenClock",
    "EmailDispatcher",
    "InMemoryEmailDispatcher",
    "MailContent",
    "OutboundEmail",
    "PasswordHasher",
    "InvalidToken",
    "IssuedToken",
    "TokenKind",
    "TokenSigner",
    "UserStore",
]
