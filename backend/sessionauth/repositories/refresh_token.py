"""Refresh-token repository: lineage lookups and the conditional consume."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, select, update
from sqlalchemy.engine import CursorResult

from sessionauth.models.refresh_token import RefreshToken
from sessionauth.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken`.

    It NEVER verifies secrets nor decides on replay; the rotation engine does.
    """

    model = RefreshToken

    def consume(self, token_id: str, *, consumed_at: datetime, superseded_by: str) -> bool:
        """Mark a token consumed if, and only if, nobody else did first.

        Issues a single ``UPDATE ... WHERE consumed = false AND revoked_at IS NULL``
        so the database serialises concurrent callers on the row.

        :param token_id: Identifier of the token being exchanged.
        :type token_id: str
        :param consumed_at: Consumption instant.
        :type consumed_at: datetime
        :param superseded_by: Identifier of the successor token.
        :type superseded_by: str
        :returns: ``True`` when exactly one row was updated.
        :rtype: bool
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.id == token_id,
                RefreshToken.consumed.is_(False),
                RefreshToken.revoked_at.is_(None),
            )
            .values(consumed=True, consumed_at=consumed_at, superseded_by=superseded_by)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return result.rowcount == 1

    def list_by_session(self, session_id: str) -> list[RefreshToken]:
        """Return every token of a lineage ordered by issuance."""
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.session_id == session_id)
            .order_by(RefreshToken.issued_at.asc(), RefreshToken.id.asc())
            .execution_options(populate_existing=True)
        )
        return list(self.session.execute(stmt).scalars().all())

    def ids_by_session(self, session_id: str) -> list[str]:
        stmt = select(RefreshToken.id).where(RefreshToken.session_id == session_id)
        return list(self.session.execute(stmt).scalars().all())

    def revoke_session(self, session_id: str, *, revoked_at: datetime) -> list[str]:
        """Tombstone every live token of a lineage.

        Tokens already tombstoned keep their original ``revoked_at``.

        :returns: Identifiers of every token in the lineage.
        :rtype: list[str]
        """
        ids = self.ids_by_session(session_id)
        if ids:
            stmt = (
                update(RefreshToken)
                .where(
                    RefreshToken.session_id == session_id,
                    RefreshToken.revoked_at.is_(None),
                )
                .values(revoked_at=revoked_at)
                .execution_options(synchronize_session=False)
            )
            self.session.execute(stmt)
        return ids

    def delete_expired(self, now: datetime) -> int:
        """Hard-delete tokens whose lineage expired at or before ``now``."""
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        result = cast(CursorResult, self.session.execute(stmt))
        return int(result.rowcount or 0)
