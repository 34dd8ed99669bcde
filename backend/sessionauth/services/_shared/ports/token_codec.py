from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True, slots=True)
class AccessTokenClaims:
    """
    Signed access-token claims. Never persisted.

    Wire names: ``sub``, ``sid``, ``jti``, ``iat``, ``exp``, ``roles``, ``lang``.
    """

    subject: str
    session_id: str
    token_identifier: str
    issued_at: datetime
    expires_at: datetime
    roles: tuple[str, ...] = ()
    language_preference: str | None = None


class TokenCodec(Protocol):
    """Port for signing and verifying access tokens (stateless)."""

    def encode(self, claims: AccessTokenClaims) -> str:
        """Serialize and sign ``claims`` into a compact token."""

    def verify(self, token: str) -> AccessTokenClaims:
        """
        Verify signature and expiry, returning the claims.

        :raises AccessTokenMalformed: Unparseable token or missing claims.
        :raises AccessTokenSignatureInvalid: Signature does not verify.
        :raises AccessTokenExpired: ``exp`` is in the past.
        """
