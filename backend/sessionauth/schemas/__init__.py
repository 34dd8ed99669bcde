"""Marshmallow schemas for request validation and response serialization."""

from __future__ import annotations

from .auth import (
    ChangePasswordSchema,
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    SessionSchema,
    TokenPairSchema,
    WhoAmISchema,
)

__all__ = [
    "ChangePasswordSchema",
    "LoginSchema",
    "LogoutSchema",
    "RefreshSchema",
    "SessionSchema",
    "TokenPairSchema",
    "WhoAmISchema",
]
