# sessionauth/infra/redis/redis_token_cache.py
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError  # type: ignore[import-untyped]

from sessionauth.services._shared.ports import RefreshTokenRecord, SessionEntry, TokenCache

log = logging.getLogger(__name__)


def _b(value: bytes | str | None, default: str = "") -> str:
    if value is None:
        return default
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _dt(value: str) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass(slots=True)
class RedisTokenCache(TokenCache):
    """
    Redis mirror of refresh records and session entries.

    Keys are hashes (``rt:<token id>`` and ``rs:<session id>``) that expire
    together with the lineage. Every Redis failure is logged and absorbed: a
    read becomes a miss, a write is skipped.

    :param r: A Redis client configured with short socket timeouts.
    :param clock: Source of "now" used to derive key TTLs.
    """

    r: redis.Redis
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(UTC))

    # -------------------- helpers --------------------

    @staticmethod
    def _k(token_id: str) -> str:
        return f"rt:{token_id}"

    @staticmethod
    def _ks(session_id: str) -> str:
        return f"rs:{session_id}"

    def _ttl(self, expires_at: datetime) -> int:
        return int((expires_at - self.clock()).total_seconds())

    @staticmethod
    def _degraded(operation: str, key: str, exc: Exception) -> None:
        log.warning(
            "Token cache %s failed for %s: %s",
            operation,
            key,
            exc.__class__.__name__,
            extra={"event": "cache.degraded"},
        )

    def _write(self, key: str, mapping: dict[str, str], ttl: int) -> None:
        pipe = self.r.pipeline(transaction=True)
        pipe.delete(key)
        pipe.hset(key, mapping=mapping)
        pipe.expire(key, ttl)
        pipe.execute()

    # -------------------- records --------------------

    def get_record(self, token_id: str) -> RefreshTokenRecord | None:
        key = self._k(token_id)
        try:
            h = self.r.hgetall(key)
            if not h:
                return None
            fields = {_b(k): _b(v) for k, v in h.items()}
            return RefreshTokenRecord(
                id=token_id,
                user_id=fields["user_id"],
                session_id=fields["session_id"],
                secret_hash=fields["secret_hash"],
                issued_at=datetime.fromisoformat(fields["issued_at"]),
                expires_at=datetime.fromisoformat(fields["expires_at"]),
                roles=tuple(r for r in fields.get("roles", "").split(",") if r),
                language=fields.get("language") or None,
                consumed=fields.get("consumed", "0") == "1",
                consumed_at=_dt(fields.get("consumed_at", "")),
                superseded_by=fields.get("superseded_by") or None,
                revoked_at=_dt(fields.get("revoked_at", "")),
            )
        except (RedisError, KeyError, ValueError) as exc:
            self._degraded("read", key, exc)
            return None

    def put_record(self, record: RefreshTokenRecord) -> None:
        key = self._k(record.id)
        ttl = self._ttl(record.expires_at)
        if ttl <= 0:
            return
        mapping = {
            "user_id": record.user_id,
            "session_id": record.session_id,
            "secret_hash": record.secret_hash,
            "issued_at": record.issued_at.isoformat(),
            "expires_at": record.expires_at.isoformat(),
            "roles": ",".join(record.roles),
            "language": record.language or "",
            "consumed": "1" if record.consumed else "0",
            "consumed_at": record.consumed_at.isoformat() if record.consumed_at else "",
            "superseded_by": record.superseded_by or "",
            "revoked_at": record.revoked_at.isoformat() if record.revoked_at else "",
        }
        try:
            self._write(key, mapping, ttl)
        except RedisError as exc:
            self._degraded("write", key, exc)

    def evict_records(self, token_ids: Iterable[str]) -> None:
        keys = [self._k(t) for t in token_ids]
        if not keys:
            return
        try:
            self.r.delete(*keys)
        except RedisError as exc:
            self._degraded("evict", keys[0], exc)

    # -------------------- sessions -------------------

    def get_session(self, session_id: str) -> SessionEntry | None:
        key = self._ks(session_id)
        try:
            h = self.r.hgetall(key)
            if not h:
                return None
            fields = {_b(k): _b(v) for k, v in h.items()}
            return SessionEntry(
                session_id=session_id,
                user_id=fields["user_id"],
                current_refresh_token_id=fields["current_refresh_token_id"],
                created_at=datetime.fromisoformat(fields["created_at"]),
                last_rotated_at=datetime.fromisoformat(fields["last_rotated_at"]),
                expires_at=datetime.fromisoformat(fields["expires_at"]),
                ip_address=fields.get("ip_address") or None,
                user_agent=fields.get("user_agent") or None,
            )
        except (RedisError, KeyError, ValueError) as exc:
            self._degraded("read", key, exc)
            return None

    def put_session(self, entry: SessionEntry) -> None:
        key = self._ks(entry.session_id)
        ttl = self._ttl(entry.expires_at)
        if ttl <= 0:
            return
        mapping = {
            "user_id": entry.user_id,
            "current_refresh_token_id": entry.current_refresh_token_id,
            "created_at": entry.created_at.isoformat(),
            "last_rotated_at": entry.last_rotated_at.isoformat(),
            "expires_at": entry.expires_at.isoformat(),
            "ip_address": entry.ip_address or "",
            "user_agent": entry.user_agent or "",
        }
        try:
            self._write(key, mapping, ttl)
        except RedisError as exc:
            self._degraded("write", key, exc)

    def evict_session(self, session_id: str) -> None:
        key = self._ks(session_id)
        try:
            self.r.delete(key)
        except RedisError as exc:
            self._degraded("evict", key, exc)
