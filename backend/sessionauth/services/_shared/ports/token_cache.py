from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Protocol

from .token_store import RefreshTokenRecord, SessionEntry


class TokenCache(Protocol):
    """
    Fast, non-authoritative mirror of refresh records and session entries.

    Implementations MUST NOT raise on backend failures: a failed read is a
    miss and a failed write is skipped. Callers never trust a miss, nor an
    unconsumed hit, as proof of consumption state.
    """

    def get_record(self, token_id: str) -> RefreshTokenRecord | None: ...
    def put_record(self, record: RefreshTokenRecord) -> None: ...
    def evict_records(self, token_ids: Iterable[str]) -> None: ...
    def get_session(self, session_id: str) -> SessionEntry | None: ...
    def put_session(self, entry: SessionEntry) -> None: ...
    def evict_session(self, session_id: str) -> None: ...


class NullTokenCache(TokenCache):
    """Cache that stores nothing; every read goes to the durable store."""

    def get_record(self, token_id: str) -> RefreshTokenRecord | None:
        return None

    def put_record(self, record: RefreshTokenRecord) -> None:
        return None

    def evict_records(self, token_ids: Iterable[str]) -> None:
        return None

    def get_session(self, session_id: str) -> SessionEntry | None:
        return None

    def put_session(self, entry: SessionEntry) -> None:
        return None

    def evict_session(self, session_id: str) -> None:
        return None


class InMemoryTokenCache(TokenCache):
    """Process-local cache used in unit tests and single-node development."""

    def __init__(self) -> None:
        self.records: dict[str, RefreshTokenRecord] = {}
        self.sessions: dict[str, SessionEntry] = {}
        self._lock = threading.Lock()

    def get_record(self, token_id: str) -> RefreshTokenRecord | None:
        with self._lock:
            return self.records.get(token_id)

    def put_record(self, record: RefreshTokenRecord) -> None:
        with self._lock:
            self.records[record.id] = record

    def evict_records(self, token_ids: Iterable[str]) -> None:
        with self._lock:
            for token_id in token_ids:
                self.records.pop(token_id, None)

    def get_session(self, session_id: str) -> SessionEntry | None:
        with self._lock:
            return self.sessions.get(session_id)

    def put_session(self, entry: SessionEntry) -> None:
        with self._lock:
            self.sessions[entry.session_id] = entry

    def evict_session(self, session_id: str) -> None:
        with self._lock:
            self.sessions.pop(session_id, None)
