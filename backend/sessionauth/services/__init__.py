"""Service layer public API.

This package exposes the essential building blocks for the service layer so that
callers can import from :mod:`sessionauth.services` without knowing internal
structure.

Re-exports
----------
- Base primitives (from ``sessionauth.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Token lifecycle (from ``sessionauth.services.tokens``)
    * :class:`RotationEngine`
    * :class:`SessionRegistry`
    * :class:`CredentialHasher`
    * DTOs: :class:`ClientContext`, :class:`IssuedTokens`,
      :class:`RefreshCredential`, :class:`SweepResult`, :class:`TokenLifetimes`
"""

from __future__ import annotations

# Base primitives (service base + request-scoped context)
from ._shared.base import BaseService, ServiceContext

# Token lifecycle service + DTOs
from .tokens import (
    ClientContext,
    CredentialHasher,
    IssuedTokens,
    RefreshCredential,
    RotationEngine,
    SessionRegistry,
    SweepResult,
    TokenLifetimes,
)

__all__ = [
    # Base
    "BaseService",
    "ServiceContext",
    # Tokens
    "RotationEngine",
    "SessionRegistry",
    "CredentialHasher",
    "ClientContext",
    "IssuedTokens",
    "RefreshCredential",
    "SweepResult",
    "TokenLifetimes",
]
