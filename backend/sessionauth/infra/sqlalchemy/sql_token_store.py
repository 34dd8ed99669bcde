# sessionauth/infra/sqlalchemy/sql_token_store.py
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from uuid import uuid4

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from sessionauth.models import RefreshToken, UserSession
from sessionauth.services._shared.errors import StorageUnavailable
from sessionauth.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    SessionEntry,
    SessionStore,
)
from sessionauth.uow import SQLAlchemyUnitOfWork

log = logging.getLogger(__name__)

# Driver-level failures that mean "the store is not reachable right now".
_STORAGE_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)


@contextmanager
def _storage_guard(operation: str) -> Iterator[None]:
    """Re-raise connectivity and timeout errors as :class:`StorageUnavailable`."""
    try:
        yield
    except _STORAGE_ERRORS as exc:
        log.error(
            "Durable token store failed during %s: %s",
            operation,
            exc.__class__.__name__,
            extra={"event": "store.unavailable"},
        )
        raise StorageUnavailable() from exc


def _join_roles(roles: tuple[str, ...]) -> str:
    return ",".join(roles)


def _split_roles(raw: str | None) -> tuple[str, ...]:
    return tuple(r for r in (raw or "").split(",") if r)


def _record_from_row(row: RefreshToken) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        id=row.id,
        user_id=row.user_id,
        session_id=row.session_id,
        secret_hash=row.secret_hash,
        issued_at=row.issued_at,
        expires_at=row.expires_at,
        roles=_split_roles(row.roles),
        language=row.language,
        consumed=bool(row.consumed),
        consumed_at=row.consumed_at,
        superseded_by=row.superseded_by,
        revoked_at=row.revoked_at,
    )


def _row_from_record(record: RefreshTokenRecord) -> RefreshToken:
    return RefreshToken(
        id=record.id,
        user_id=record.user_id,
        session_id=record.session_id,
        secret_hash=record.secret_hash,
        roles=_join_roles(record.roles),
        language=record.language,
        issued_at=record.issued_at,
        expires_at=record.expires_at,
        consumed=record.consumed,
        consumed_at=record.consumed_at,
        superseded_by=record.superseded_by,
        revoked_at=record.revoked_at,
    )


def _entry_from_row(row: UserSession) -> SessionEntry:
    return SessionEntry(
        session_id=row.id,
        user_id=row.user_id,
        current_refresh_token_id=row.current_refresh_token_id,
        created_at=row.created_at,
        last_rotated_at=row.last_rotated_at,
        expires_at=row.expires_at,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


class SQLAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Relational refresh-token store.

    Every method runs in its own :class:`~sessionauth.uow.SQLAlchemyUnitOfWork`;
    :meth:`rotate` puts the conditional consume and the successor insert in the
    same transaction, so a failed insert also undoes the consume.

    :param session: Explicit session; defaults to the Flask-scoped one.
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    def _uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(self._session)

    def new_id(self) -> str:
        return uuid4().hex

    def insert(self, record: RefreshTokenRecord) -> None:
        with _storage_guard("insert"), self._uow() as uow:
            uow.refresh_tokens.add(_row_from_record(record))

    def get(self, token_id: str) -> RefreshTokenRecord | None:
        with _storage_guard("get"), self._uow() as uow:
            row = uow.refresh_tokens.get(token_id)
            return _record_from_row(row) if row is not None else None

    def rotate(self, *, old_id: str, successor: RefreshTokenRecord, now: datetime) -> bool:
        with _storage_guard("rotate"), self._uow() as uow:
            won = uow.refresh_tokens.consume(
                old_id, consumed_at=now, superseded_by=successor.id
            )
            if not won:
                return False
            uow.refresh_tokens.add(_row_from_record(successor))
        return True

    def revoke_lineage(self, session_id: str, *, now: datetime) -> list[str]:
        with _storage_guard("revoke_lineage"), self._uow() as uow:
            return uow.refresh_tokens.revoke_session(session_id, revoked_at=now)

    def list_lineage(self, session_id: str) -> list[RefreshTokenRecord]:
        with _storage_guard("list_lineage"), self._uow() as uow:
            return [_record_from_row(r) for r in uow.refresh_tokens.list_by_session(session_id)]

    def delete_expired(self, now: datetime) -> int:
        with _storage_guard("delete_expired"), self._uow() as uow:
            return uow.refresh_tokens.delete_expired(now)


class SQLAlchemySessionStore(SessionStore):
    """Relational backend of the session registry (``user_sessions`` table)."""

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    def _uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(self._session)

    def create(self, entry: SessionEntry) -> None:
        row = UserSession(
            id=entry.session_id,
            user_id=entry.user_id,
            current_refresh_token_id=entry.current_refresh_token_id,
            created_at=entry.created_at,
            last_rotated_at=entry.last_rotated_at,
            expires_at=entry.expires_at,
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
        )
        with _storage_guard("session_create"), self._uow() as uow:
            uow.sessions.add(row)

    def get(self, session_id: str) -> SessionEntry | None:
        with _storage_guard("session_get"), self._uow() as uow:
            row = uow.sessions.get(session_id)
            return _entry_from_row(row) if row is not None else None

    def advance(self, session_id: str, *, token_id: str, rotated_at: datetime) -> bool:
        with _storage_guard("session_advance"), self._uow() as uow:
            return uow.sessions.advance(session_id, token_id=token_id, rotated_at=rotated_at)

    def delete(self, session_id: str) -> bool:
        with _storage_guard("session_delete"), self._uow() as uow:
            return uow.sessions.delete_by_id(session_id)

    def list_for_user(self, user_id: str, *, now: datetime) -> list[SessionEntry]:
        with _storage_guard("session_list"), self._uow() as uow:
            return [_entry_from_row(r) for r in uow.sessions.list_active_for_user(user_id, now=now)]

    def delete_expired(self, now: datetime) -> int:
        with _storage_guard("session_sweep"), self._uow() as uow:
            return uow.sessions.delete_expired(now)
