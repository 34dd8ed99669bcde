"""
sessionauth.services._shared.ports
==================================

Collection of *ports* (hexagonal interfaces) that define the contracts
between the rotation engine and its infrastructure.

Modules
-------
- :mod:`token_store`:
    Defines :class:`~.RefreshTokenStore` and :class:`~.SessionStore`, the
    durable, authoritative stores, plus the :class:`~.RefreshTokenRecord` and
    :class:`~.SessionEntry` read-models.

- :mod:`token_cache`:
    Defines :class:`~.TokenCache`, the best-effort fast mirror, with a no-op
    and an in-memory implementation.

- :mod:`token_codec`:
    Defines :class:`~.TokenCodec` and :class:`~.AccessTokenClaims` for
    stateless access tokens.

- :mod:`credential_verifier`:
    Defines :class:`~.CredentialVerifier`, the external credential owner.

Design Notes
------------
All these ports follow the *Dependency Inversion Principle* so the service
layer never imports Flask, SQLAlchemy or Redis. Concrete adapters live under
``sessionauth.infra``.
"""

from __future__ import annotations

from .credential_verifier import (
    CredentialVerifier,
    InMemoryCredentialVerifier,
    VerifiedPrincipal,
)
from .token_cache import InMemoryTokenCache, NullTokenCache, TokenCache
from .token_codec import AccessTokenClaims, TokenCodec
from .token_store import (
    InMemoryRefreshTokenStore,
    InMemorySessionStore,
    RefreshTokenRecord,
    RefreshTokenStore,
    SessionEntry,
    SessionStore,
)

__all__ = [
    "AccessTokenClaims",
    "CredentialVerifier",
    "InMemoryCredentialVerifier",
    "InMemoryRefreshTokenStore",
    "InMemorySessionStore",
    "InMemoryTokenCache",
    "NullTokenCache",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "SessionEntry",
    "SessionStore",
    "TokenCache",
    "TokenCodec",
    "VerifiedPrincipal",
]
