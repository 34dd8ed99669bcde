# sessionauth/services/tokens/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sessionauth.services._shared.errors import TokenInvalid

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class ClientContext:
    """
    Client details captured when a session is opened.

    :param ip_address: Remote address as seen by the app.
    :type ip_address: str | None
    :param user_agent: ``User-Agent`` header value.
    :type user_agent: str | None
    """

    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshCredential:
    """
    Opaque refresh credential handed to clients as ``"<token id>.<secret>"``.

    The identifier locates the record; only the secret's hash is stored.
    """

    token_id: str
    secret: str

    SEPARATOR = "."

    @classmethod
    def parse(cls, raw: str) -> RefreshCredential:
        """
        Split a wire credential into identifier and secret.

        :param raw: Value received from the client.
        :type raw: str
        :raises TokenInvalid: If either part is missing or malformed.
        """
        if not isinstance(raw, str):
            raise TokenInvalid()
        token_id, sep, secret = raw.strip().partition(cls.SEPARATOR)
        if not sep or not token_id or not secret or cls.SEPARATOR in secret:
            raise TokenInvalid()
        if not token_id.isalnum() or len(token_id) > 64:
            raise TokenInvalid()
        return cls(token_id=token_id, secret=secret)

    def compose(self) -> str:
        return f"{self.token_id}{self.SEPARATOR}{self.secret}"


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class IssuedTokens:
    """
    Access/refresh pair returned by login and rotation.

    :param access_token: Signed access token.
    :param refresh_token: Opaque refresh credential (``id.secret``).
    :param session_id: Lineage the pair belongs to.
    :param access_expires_at: Access token expiry.
    :param refresh_expires_at: Absolute lineage expiry.
    """

    access_token: str
    refresh_token: str
    session_id: str
    access_expires_at: datetime
    refresh_expires_at: datetime
    token_type: str = "Bearer"


@dataclass(frozen=True, slots=True)
class SweepResult:
    """Row counts removed by one expiry sweep."""

    tokens_deleted: int
    sessions_deleted: int


# ------------------------ Config DTO -------------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenLifetimes:
    """
    Token emission configuration.

    :param access: Access token lifetime.
    :type access: timedelta
    :param refresh: Absolute lifetime of a session lineage.
    :type refresh: timedelta
    """

    access: timedelta = timedelta(hours=24)
    refresh: timedelta = timedelta(days=30)
