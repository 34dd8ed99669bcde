from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol
from uuid import uuid4


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    One issued refresh token.

    :ivar id: Opaque, non-secret identifier.
    :ivar user_id: Owning principal.
    :ivar session_id: Lineage (one login on one device) this token belongs to.
    :ivar secret_hash: One-way hash of the secret handed to the client.
    :ivar issued_at: Creation instant (UTC).
    :ivar expires_at: Absolute lineage expiry (UTC), inherited on rotation.
    :ivar roles: Role claims granted at login, carried forward on rotation.
    :ivar language: Language preference claim granted at login.
    :ivar consumed: Set once, when the token is exchanged for a new pair.
    :ivar consumed_at: Consumption instant.
    :ivar superseded_by: Identifier of the successor token.
    :ivar revoked_at: Tombstone set when the lineage is invalidated.
    """

    id: str
    user_id: str
    session_id: str
    secret_hash: str
    issued_at: datetime
    expires_at: datetime
    roles: tuple[str, ...] = ()
    language: str | None = None
    consumed: bool = False
    consumed_at: datetime | None = None
    superseded_by: str | None = None
    revoked_at: datetime | None = None

    @property
    def revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True, slots=True)
class SessionEntry:
    """
    Registry row for one active login session.

    :ivar session_id: Lineage identifier.
    :ivar user_id: Owner.
    :ivar current_refresh_token_id: Head of the lineage.
    :ivar created_at: Login instant.
    :ivar last_rotated_at: Last successful rotation (login instant until then).
    :ivar expires_at: Absolute lineage expiry.
    :ivar ip_address: Client address seen at login.
    :ivar user_agent: Client user agent seen at login.
    """

    session_id: str
    user_id: str
    current_refresh_token_id: str
    created_at: datetime
    last_rotated_at: datetime
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None


class RefreshTokenStore(Protocol):
    """
    Durable, authoritative store for refresh-token records.

    ``rotate`` MUST be an atomic compare-and-set on ``consumed``; it is the
    only synchronisation point between concurrent rotations, across processes.
    """

    def insert(self, record: RefreshTokenRecord) -> None:
        """Persist a brand-new record."""

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        """Fetch a record by identifier, tombstoned ones included."""

    def rotate(self, *, old_id: str, successor: RefreshTokenRecord, now: datetime) -> bool:
        """
        Consume ``old_id`` and insert ``successor`` in one transaction.

        :returns: ``True`` only for the single caller whose conditional update
            matched an unconsumed, unrevoked row.
        """

    def revoke_lineage(self, session_id: str, *, now: datetime) -> list[str]:
        """
        Tombstone every record of a lineage.

        :returns: Identifiers of all records in the lineage (for cache eviction).
        """

    def list_lineage(self, session_id: str) -> list[RefreshTokenRecord]:
        """Return the lineage ordered by issuance (audit view)."""

    def delete_expired(self, now: datetime) -> int:
        """Hard-delete expired records. :returns: Number of rows removed."""

    def new_id(self) -> str:
        """Generate a new random record identifier."""
        return uuid4().hex


class SessionStore(Protocol):
    """Durable store backing the session registry."""

    def create(self, entry: SessionEntry) -> None: ...
    def get(self, session_id: str) -> SessionEntry | None: ...
    def advance(self, session_id: str, *, token_id: str, rotated_at: datetime) -> bool: ...
    def delete(self, session_id: str) -> bool: ...
    def list_for_user(self, user_id: str, *, now: datetime) -> list[SessionEntry]: ...
    def delete_expired(self, now: datetime) -> int: ...


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh-token store with atomic rotation behavior.

    .. note::
       Uses a threading lock to emulate the conditional update in unit tests.
    """

    def __init__(self) -> None:
        self._by_id: dict[str, RefreshTokenRecord] = {}
        self._by_session: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def new_id(self) -> str:
        return uuid4().hex

    def insert(self, record: RefreshTokenRecord) -> None:
        with self._lock:
            self._insert(record)

    def _insert(self, record: RefreshTokenRecord) -> None:
        if record.id in self._by_id:
            raise ValueError(f"Duplicate refresh token id: {record.id}")
        self._by_id[record.id] = record
        self._by_session.setdefault(record.session_id, []).append(record.id)

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        with self._lock:
            return self._by_id.get(token_id)

    def rotate(self, *, old_id: str, successor: RefreshTokenRecord, now: datetime) -> bool:
        with self._lock:
            current = self._by_id.get(old_id)
            if current is None or current.consumed or current.revoked:
                return False
            self._by_id[old_id] = replace(
                current, consumed=True, consumed_at=now, superseded_by=successor.id
            )
            self._insert(successor)
            return True

    def revoke_lineage(self, session_id: str, *, now: datetime) -> list[str]:
        with self._lock:
            ids = list(self._by_session.get(session_id, []))
            for token_id in ids:
                record = self._by_id.get(token_id)
                if record is not None and not record.revoked:
                    self._by_id[token_id] = replace(record, revoked_at=now)
            return ids

    def list_lineage(self, session_id: str) -> list[RefreshTokenRecord]:
        with self._lock:
            records = [self._by_id[i] for i in self._by_session.get(session_id, [])]
        return sorted(records, key=lambda r: r.issued_at)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [r for r in self._by_id.values() if r.is_expired(now)]
            for record in expired:
                del self._by_id[record.id]
                lineage = self._by_session.get(record.session_id, [])
                if record.id in lineage:
                    lineage.remove(record.id)
                if not lineage:
                    self._by_session.pop(record.session_id, None)
            return len(expired)


class InMemorySessionStore(SessionStore):
    """Simple in-memory session registry backend for unit tests."""

    def __init__(self) -> None:
        self._by_id: dict[str, SessionEntry] = {}
        self._lock = threading.Lock()

    def create(self, entry: SessionEntry) -> None:
        with self._lock:
            self._by_id[entry.session_id] = entry

    def get(self, session_id: str) -> SessionEntry | None:
        with self._lock:
            return self._by_id.get(session_id)

    def advance(self, session_id: str, *, token_id: str, rotated_at: datetime) -> bool:
        with self._lock:
            entry = self._by_id.get(session_id)
            if entry is None:
                return False
            self._by_id[session_id] = replace(
                entry, current_refresh_token_id=token_id, last_rotated_at=rotated_at
            )
            return True

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._by_id.pop(session_id, None) is not None

    def list_for_user(self, user_id: str, *, now: datetime) -> list[SessionEntry]:
        with self._lock:
            entries: Iterable[SessionEntry] = list(self._by_id.values())
        return sorted(
            (e for e in entries if e.user_id == user_id and e.expires_at > now),
            key=lambda e: e.created_at,
        )

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [sid for sid, e in self._by_id.items() if e.expires_at <= now]
            for sid in expired:
                del self._by_id[sid]
            return len(expired)
