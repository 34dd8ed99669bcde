"""Repository package exposing persistence-layer access for the token tables."""

from __future__ import annotations

from sessionauth.repositories.base import BaseRepository
from sessionauth.repositories.refresh_token import RefreshTokenRepository
from sessionauth.repositories.user_session import UserSessionRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserSessionRepository",
]
