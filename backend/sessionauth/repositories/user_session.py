"""Session registry repository."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult

from sessionauth.models.user_session import UserSession
from sessionauth.repositories.base import BaseRepository


class UserSessionRepository(BaseRepository[UserSession]):
    """Persistence-only repository for :class:`UserSession`."""

    model = UserSession

    def advance(self, session_id: str, *, token_id: str, rotated_at: datetime) -> bool:
        """Point an existing session at its new head token.

        A missing row is left missing: a concurrent invalidation wins.

        :returns: ``True`` when the row existed and was updated.
        :rtype: bool
        """
        stmt = (
            update(UserSession)
            .where(UserSession.id == session_id)
            .values(current_refresh_token_id=token_id, last_rotated_at=rotated_at)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return result.rowcount == 1

    def delete_by_id(self, session_id: str) -> bool:
        stmt = (
            delete(UserSession)
            .where(UserSession.id == session_id)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return result.rowcount == 1

    def list_active_for_user(self, user_id: str, *, now: datetime) -> list[UserSession]:
        """Return the user's unexpired sessions, oldest first."""
        stmt = (
            select(UserSession)
            .where(UserSession.user_id == user_id, UserSession.expires_at > now)
            .order_by(UserSession.created_at.asc(), UserSession.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars().all())

    def delete_expired(self, now: datetime) -> int:
        stmt = (
            delete(UserSession)
            .where(UserSession.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return int(result.rowcount or 0)
