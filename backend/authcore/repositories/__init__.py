"""Repository package exposing persistence-layer access for domain models."""

from __future__ import annotations

from authcore.repositories.base import BaseRepository
from authcore.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "UserRepository",
]
