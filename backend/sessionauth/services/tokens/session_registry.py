# sessionauth/services/tokens/session_registry.py
from __future__ import annotations

from datetime import datetime

from sessionauth.services._shared.ports import SessionEntry, SessionStore, TokenCache


class SessionRegistry:
    """
    Directory of active sessions (one per login, per device).

    The durable :class:`SessionStore` is authoritative; the cache only speeds
    up :meth:`get`. Entries are advisory: rotation correctness never depends
    on them, only on the refresh-token store.

    :param store: Durable session backend.
    :param cache: Best-effort mirror shared with the rotation engine.
    """

    def __init__(self, *, store: SessionStore, cache: TokenCache) -> None:
        self.store = store
        self.cache = cache

    def open(self, entry: SessionEntry) -> None:
        self.store.create(entry)
        self.cache.put_session(entry)

    def advance(self, session_id: str, *, token_id: str, rotated_at: datetime) -> bool:
        """
        Move the session head to ``token_id``.

        Never recreates a session that was closed in the meantime.

        :returns: ``False`` if the session no longer exists.
        :rtype: bool
        """
        advanced = self.store.advance(session_id, token_id=token_id, rotated_at=rotated_at)
        self.cache.evict_session(session_id)
        return advanced

    def close(self, session_id: str) -> bool:
        removed = self.store.delete(session_id)
        self.cache.evict_session(session_id)
        return removed

    def get(self, session_id: str) -> SessionEntry | None:
        cached = self.cache.get_session(session_id)
        if cached is not None:
            return cached
        entry = self.store.get(session_id)
        if entry is not None:
            self.cache.put_session(entry)
        return entry

    def sessions_for(self, user_id: str, *, now: datetime) -> list[SessionEntry]:
        """Unexpired sessions of ``user_id``, oldest first (durable read)."""
        return self.store.list_for_user(user_id, now=now)

    def sweep(self, now: datetime) -> int:
        return self.store.delete_expired(now)
