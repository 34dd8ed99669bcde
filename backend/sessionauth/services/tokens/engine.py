# sessionauth/services/tokens/engine.py
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime
from uuid import uuid4

from sessionauth.services._shared.base import BaseService, Clock, ServiceContext
from sessionauth.services._shared.errors import (
    ReplayDetected,
    StorageUnavailable,
    TokenExpired,
    TokenInvalid,
    TokenNotFound,
)
from sessionauth.services._shared.ports import (
    AccessTokenClaims,
    NullTokenCache,
    RefreshTokenRecord,
    RefreshTokenStore,
    SessionEntry,
    TokenCache,
    TokenCodec,
)
from sessionauth.services.tokens.dto import (
    ClientContext,
    IssuedTokens,
    RefreshCredential,
    SweepResult,
    TokenLifetimes,
)
from sessionauth.services.tokens.hashing import CredentialHasher
from sessionauth.services.tokens.session_registry import SessionRegistry

log = logging.getLogger(__name__)


class RotationEngine(BaseService):
    """
    Refresh-token lifecycle (issue / rotate / invalidate).

    Every refresh token is single-use: presenting it returns a new pair and
    consumes it. Presenting a consumed token again is treated as theft and
    revokes its whole lineage (the session), and nothing else.

    Consistency
    -----------
    - The durable store is the only authority. Its conditional consume is
      the single synchronisation point between concurrent rotations.
    - The cache is read first and written after the durable store; its
      failures are absorbed by the adapter. Only a cached record that is
      already consumed may shortcut into the replay path.
    - Session entries are advanced after the consume commits; if the session
      was closed meanwhile, the fresh successor is revoked again (the pair
      is still returned to the caller that won the consume).
    """

    def __init__(
        self,
        *,
        token_store: RefreshTokenStore,
        sessions: SessionRegistry,
        codec: TokenCodec,
        cache: TokenCache | None = None,
        hasher: CredentialHasher | None = None,
        lifetimes: TokenLifetimes | None = None,
        ctx: ServiceContext | None = None,
        clock: Clock | None = None,
    ) -> None:
        """
        Initialize the engine with its collaborators.

        :param token_store: Durable, authoritative refresh-token store.
        :param sessions: Session registry (shares ``cache``).
        :param codec: Access-token signer/verifier.
        :param cache: Fast mirror; ``None`` disables caching.
        :param hasher: Secret generator and hasher.
        :param lifetimes: Access and refresh lifetimes.
        :param ctx: Request-scoped context (client address, user agent).
        :param clock: Source of "now" (aware UTC).
        """
        super().__init__(ctx=ctx, clock=clock)
        self.store = token_store
        self.sessions = sessions
        self.codec = codec
        self.cache = cache if cache is not None else NullTokenCache()
        self.hasher = hasher or CredentialHasher()
        self.lifetimes = lifetimes or TokenLifetimes()

    # ------------------------------------------------------------------ #
    # Issue
    # ------------------------------------------------------------------ #

    def issue(
        self,
        user_id: str,
        *,
        roles: Iterable[str] = (),
        language: str | None = None,
        client: ClientContext | None = None,
    ) -> IssuedTokens:
        """
        Open a new session for an authenticated user and emit its first pair.

        :param user_id: Stable identifier returned by the credential verifier.
        :param roles: Role claims to embed (frozen for the whole lineage).
        :param language: Language preference claim.
        :param client: Client details stored with the session.
        :raises StorageUnavailable: If the durable store cannot be reached.
        """
        now = self.now_utc()
        client = client or ClientContext(self.ctx.ip_address, self.ctx.user_agent)
        secret = self.hasher.new_secret()
        record = RefreshTokenRecord(
            id=self.store.new_id(),
            user_id=str(user_id),
            session_id=uuid4().hex,
            secret_hash=self.hasher.hash(secret),
            issued_at=now,
            expires_at=now + self.lifetimes.refresh,
            roles=tuple(roles),
            language=language,
        )
        self.store.insert(record)
        entry = SessionEntry(
            session_id=record.session_id,
            user_id=record.user_id,
            current_refresh_token_id=record.id,
            created_at=now,
            last_rotated_at=now,
            expires_at=record.expires_at,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
        try:
            self.sessions.open(entry)
        except StorageUnavailable:
            self._discard(record, now)
            raise
        self.cache.put_record(record)

        log.info(
            "Session opened",
            extra={
                "event": "session.opened",
                "user_id": record.user_id,
                "session_id": record.session_id,
                "token_id": record.id,
            },
        )
        return self._pair(record, secret)

    # ------------------------------------------------------------------ #
    # Rotate
    # ------------------------------------------------------------------ #

    def rotate_token(self, raw: str) -> IssuedTokens:
        """Rotate a refresh credential received in its ``id.secret`` wire form."""
        credential = RefreshCredential.parse(raw)
        return self.rotate(credential.token_id, credential.secret)

    def rotate(self, presented_id: str, presented_secret: str) -> IssuedTokens:
        """
        Exchange a refresh token for a new pair in the same session.

        :raises TokenNotFound: Unknown identifier, or token revoked without use.
        :raises TokenInvalid: Secret does not match.
        :raises TokenExpired: Lineage reached its absolute expiry (nothing is changed).
        :raises ReplayDetected: Token was already used; the lineage is now revoked.
        :raises StorageUnavailable: If the durable store cannot be reached.
        """
        now = self.now_utc()
        record = self._lookup(presented_id, presented_secret)
        self._check_presented(record, presented_id, presented_secret)

        if record.is_expired(now):
            self._rejected("expired", record)
            raise TokenExpired()
        if record.consumed:
            self._replay(record)
        if record.revoked:
            self._rejected("revoked", record)
            raise TokenNotFound()

        secret = self.hasher.new_secret()
        successor = RefreshTokenRecord(
            id=self.store.new_id(),
            user_id=record.user_id,
            session_id=record.session_id,
            secret_hash=self.hasher.hash(secret),
            issued_at=now,
            expires_at=record.expires_at,
            roles=record.roles,
            language=record.language,
        )

        if not self.store.rotate(old_id=record.id, successor=successor, now=now):
            # Lost the race (or the lineage was revoked meanwhile): ask the store.
            current = self.store.get(record.id)
            if current is not None and current.consumed:
                self._replay(current)
            self._rejected("lost_race", record)
            self.cache.evict_records([record.id])
            raise TokenNotFound()

        self.cache.put_record(
            replace(record, consumed=True, consumed_at=now, superseded_by=successor.id)
        )
        self.cache.put_record(successor)

        if not self.sessions.advance(record.session_id, token_id=successor.id, rotated_at=now):
            # The session was closed while we rotated; do not leave a live successor.
            # The pair is still returned: this call did win the consume.
            ids = self.store.revoke_lineage(record.session_id, now=now)
            self.cache.evict_records(ids)
            log.warning(
                "Session closed during rotation; successor revoked",
                extra={
                    "event": "refresh.session_closed",
                    "user_id": record.user_id,
                    "session_id": record.session_id,
                    "token_id": successor.id,
                },
            )

        log.info(
            "Refresh token rotated",
            extra={
                "event": "refresh.rotated",
                "user_id": record.user_id,
                "session_id": record.session_id,
                "token_id": successor.id,
            },
        )
        return self._pair(successor, secret)

    # ------------------------------------------------------------------ #
    # Invalidation
    # ------------------------------------------------------------------ #

    def invalidate_session(self, session_id: str) -> list[str]:
        """
        Revoke every token of a lineage and close its session. Idempotent.

        The registry entry is removed before the tokens are revoked so that a
        rotation racing with this call either sees its successor revoked here
        or finds the session gone and revokes it itself.

        :returns: Identifiers of the lineage's tokens.
        :rtype: list[str]
        """
        now = self.now_utc()
        self.sessions.close(session_id)
        ids = self.store.revoke_lineage(session_id, now=now)
        self.cache.evict_records(ids)
        log.info(
            "Session invalidated",
            extra={"event": "session.invalidated", "session_id": session_id},
        )
        return ids

    def invalidate_all_except(self, user_id: str, keep_session_id: str | None) -> list[str]:
        """
        Invalidate every active session of ``user_id`` except ``keep_session_id``.

        Used after a credential change: the session that performed it stays.

        :returns: Session identifiers that were invalidated.
        :rtype: list[str]
        """
        now = self.now_utc()
        closed: list[str] = []
        for entry in self.sessions.sessions_for(str(user_id), now=now):
            if entry.session_id == keep_session_id:
                continue
            self.invalidate_session(entry.session_id)
            closed.append(entry.session_id)
        log.info(
            "Sessions invalidated after credential change",
            extra={
                "event": "session.invalidated_all_except",
                "user_id": str(user_id),
                "session_id": keep_session_id,
            },
        )
        return closed

    def logout(self, raw: str) -> str:
        """
        Close the session a refresh credential belongs to.

        Already used or revoked tokens are accepted so that repeating a
        logout is harmless; the secret must still match.

        :returns: The closed session identifier.
        :raises TokenNotFound: Unknown identifier.
        :raises TokenInvalid: Malformed credential or wrong secret.
        """
        credential = RefreshCredential.parse(raw)
        record = self._lookup(credential.token_id, credential.secret)
        self._check_presented(record, credential.token_id, credential.secret)
        self.invalidate_session(record.session_id)
        return record.session_id

    # ------------------------------------------------------------------ #
    # Queries / maintenance
    # ------------------------------------------------------------------ #

    def verify_access(self, token: str) -> AccessTokenClaims:
        """Validate an access token statelessly (no store access)."""
        return self.codec.verify(token)

    def list_sessions(self, user_id: str) -> list[SessionEntry]:
        return self.sessions.sessions_for(str(user_id), now=self.now_utc())

    def sweep_expired(self) -> SweepResult:
        """Hard-delete expired tokens and sessions."""
        now = self.now_utc()
        result = SweepResult(
            tokens_deleted=self.store.delete_expired(now),
            sessions_deleted=self.sessions.sweep(now),
        )
        log.info(
            "Expired tokens swept: %d tokens, %d sessions",
            result.tokens_deleted,
            result.sessions_deleted,
            extra={"event": "tokens.swept"},
        )
        return result

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _lookup(self, token_id: str, secret: str) -> RefreshTokenRecord:
        cached = self.cache.get_record(token_id)
        if cached is not None:
            return cached
        record = self.store.get(token_id)
        if record is None:
            self.hasher.verify_missing(secret)
            log.info(
                "Refresh token rejected: unknown",
                extra={"event": "refresh.rejected", "token_id": token_id},
            )
            raise TokenNotFound()
        self.cache.put_record(record)
        return record

    def _discard(self, record: RefreshTokenRecord, now: datetime) -> None:
        """Revoke a freshly inserted record whose session could not be opened."""
        try:
            self.store.revoke_lineage(record.session_id, now=now)
        except StorageUnavailable:
            # Unreachable without a session entry; the expiry sweep removes it.
            log.warning(
                "Orphan refresh token left after failed session open",
                extra={
                    "event": "session.open_failed",
                    "user_id": record.user_id,
                    "session_id": record.session_id,
                    "token_id": record.id,
                },
            )

    def _check_presented(self, record: RefreshTokenRecord, token_id: str, secret: str) -> None:
        if record.id != token_id or not self.hasher.verify(secret, record.secret_hash):
            self._rejected("bad_secret", record)
            raise TokenInvalid()

    def _replay(self, record: RefreshTokenRecord) -> None:
        self.invalidate_session(record.session_id)
        log.error(
            "Refresh token reuse detected; session revoked",
            extra={
                "event": "refresh.replay_detected",
                "user_id": record.user_id,
                "session_id": record.session_id,
                "token_id": record.id,
            },
        )
        raise ReplayDetected(user_id=record.user_id, session_id=record.session_id)

    @staticmethod
    def _rejected(reason: str, record: RefreshTokenRecord) -> None:
        log.warning(
            "Refresh token rejected: %s",
            reason,
            extra={
                "event": "refresh.rejected",
                "user_id": record.user_id,
                "session_id": record.session_id,
                "token_id": record.id,
            },
        )

    def _pair(self, record: RefreshTokenRecord, secret: str) -> IssuedTokens:
        issued_at = record.issued_at
        access_expires_at = issued_at + self.lifetimes.access
        access = self.codec.encode(
            AccessTokenClaims(
                subject=record.user_id,
                session_id=record.session_id,
                token_identifier=uuid4().hex,
                issued_at=issued_at,
                expires_at=access_expires_at,
                roles=record.roles,
                language_preference=record.language,
            )
        )
        return IssuedTokens(
            access_token=access,
            refresh_token=RefreshCredential(record.id, secret).compose(),
            session_id=record.session_id,
            access_expires_at=access_expires_at,
            refresh_expires_at=record.expires_at,
        )
