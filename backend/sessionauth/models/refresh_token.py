"""Refresh-token record model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Index, String, false
from sqlalchemy.orm import Mapped, mapped_column

from sessionauth.core.extensions import db

from .base import ReprMixin, UTCDateTime


class RefreshToken(ReprMixin, db.Model):
    """
    One issued refresh token within a session lineage.

    Fields
    ------
    id : str
        Opaque identifier, sent to the client next to the secret.
    user_id : str
        Owning principal.
    session_id : str
        Lineage identifier shared by every rotation of one login.
    secret_hash : str
        Werkzeug hash of the raw secret. The raw secret is never stored.
    roles : str
        Comma-separated role claims granted at login.
    language : str | None
        Language preference claim granted at login.
    issued_at, expires_at : datetime
        Creation instant and absolute lineage expiry.
    consumed, consumed_at, superseded_by
        Set together, once, by the conditional update that rotates the token.
    revoked_at : datetime | None
        Tombstone written when the lineage is invalidated.
    """

    __tablename__ = "refresh_tokens"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    session_id: Mapped[str] = mapped_column(String(32), nullable=False)
    secret_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    roles: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    consumed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    consumed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    superseded_by: Mapped[str | None] = mapped_column(String(32), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_session_id", "session_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )
