"""Refresh-token lifecycle: rotation engine, session registry and secret hashing."""

from __future__ import annotations

from .dto import ClientContext, IssuedTokens, RefreshCredential, SweepResult, TokenLifetimes
from .engine import RotationEngine
from .hashing import CredentialHasher
from .session_registry import SessionRegistry

__all__ = [
    "ClientContext",
    "CredentialHasher",
    "IssuedTokens",
    "RefreshCredential",
    "RotationEngine",
    "SessionRegistry",
    "SweepResult",
    "TokenLifetimes",
]
