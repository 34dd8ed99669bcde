# tests/unit/services/test_rotation_engine.py
from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from sessionauth.services._shared.errors import (
    ReplayDetected,
    StorageUnavailable,
    TokenExpired,
    TokenInvalid,
    TokenNotFound,
)
from sessionauth.services._shared.ports import (
    InMemoryRefreshTokenStore,
    InMemorySessionStore,
    InMemoryTokenCache,
)
from sessionauth.services.tokens import ClientContext, IssuedTokens, RefreshCredential

from tests.helpers.wiring import build_engine


def _login(engine, user_id="u-alice", **kwargs) -> IssuedTokens:
    kwargs.setdefault("roles", ("editor",))
    kwargs.setdefault("language", "en")
    return engine.issue(user_id, **kwargs)


def _id(pair: IssuedTokens) -> str:
    return RefreshCredential.parse(pair.refresh_token).token_id


# ------------------------------- Issue ------------------------------------ #
def test_issue_opens_a_session_and_stores_only_the_hash(engine, clock):
    """Login persists a live record and a registry entry for the new lineage."""
    pair = _login(engine, client=ClientContext("198.51.100.7", "pytest-agent"))

    credential = RefreshCredential.parse(pair.refresh_token)
    record = engine.store.get(credential.token_id)
    assert record is not None
    assert record.session_id == pair.session_id
    assert record.secret_hash != credential.secret
    assert credential.secret not in record.secret_hash
    assert record.consumed is False and record.revoked is False
    assert record.expires_at == clock() + timedelta(days=30)
    assert pair.refresh_expires_at == record.expires_at
    assert pair.access_expires_at == clock() + timedelta(hours=24)
    assert pair.token_type == "Bearer"

    entry = engine.sessions.get(pair.session_id)
    assert entry.current_refresh_token_id == credential.token_id
    assert entry.ip_address == "198.51.100.7"
    assert entry.user_agent == "pytest-agent"


def test_issue_access_token_carries_session_claims(engine):
    pair = _login(engine, roles=("editor", "admin"), language="es")

    claims = engine.verify_access(pair.access_token)
    assert claims.subject == "u-alice"
    assert claims.session_id == pair.session_id
    assert claims.roles == ("editor", "admin")
    assert claims.language_preference == "es"


def test_each_login_is_a_separate_session(engine):
    a = _login(engine)
    b = _login(engine)

    assert a.session_id != b.session_id
    assert {e.session_id for e in engine.list_sessions("u-alice")} == {a.session_id, b.session_id}


# ------------------------------- Rotate ----------------------------------- #
def test_rotate_consumes_and_links_the_successor(engine, clock):
    first = _login(engine)
    clock.advance(minutes=10)

    second = engine.rotate_token(first.refresh_token)

    assert second.session_id == first.session_id
    assert second.refresh_token != first.refresh_token
    old = engine.store.get(_id(first))
    new = engine.store.get(_id(second))
    assert old.consumed is True
    assert old.consumed_at == clock()
    assert old.superseded_by == new.id
    assert new.consumed is False
    assert new.expires_at == old.expires_at
    assert new.roles == old.roles and new.language == old.language

    entry = engine.sessions.get(first.session_id)
    assert entry.current_refresh_token_id == new.id
    assert entry.last_rotated_at == clock()


def test_rotate_unknown_id(engine):
    with pytest.raises(TokenNotFound):
        engine.rotate("deadbeef", "whatever")


def test_rotate_wrong_secret_changes_nothing(engine):
    pair = _login(engine)

    with pytest.raises(TokenInvalid):
        engine.rotate(_id(pair), "not-the-secret")

    assert engine.store.get(_id(pair)).consumed is False
    engine.rotate_token(pair.refresh_token)


def test_rotate_malformed_credential(engine):
    with pytest.raises(TokenInvalid):
        engine.rotate_token("no-separator")


def test_rotate_expired_lineage_is_left_untouched(engine, clock):
    pair = _login(engine)
    clock.advance(days=30)

    with pytest.raises(TokenExpired):
        engine.rotate_token(pair.refresh_token)

    record = engine.store.get(_id(pair))
    assert record.consumed is False
    assert record.revoked is False


def test_rotate_after_logout_is_not_found(engine):
    pair = _login(engine)
    engine.logout(pair.refresh_token)

    with pytest.raises(TokenNotFound):
        engine.rotate_token(pair.refresh_token)


# ------------------------------- Replay ----------------------------------- #
def test_replay_revokes_the_whole_lineage(engine, caplog):
    first = _login(engine)
    second = engine.rotate_token(first.refresh_token)

    with caplog.at_level(logging.WARNING), pytest.raises(ReplayDetected) as info:
        engine.rotate_token(first.refresh_token)

    assert info.value.user_id == "u-alice"
    assert info.value.session_id == first.session_id
    assert all(r.revoked for r in engine.store.list_lineage(first.session_id))
    assert engine.sessions.get(first.session_id) is None
    with pytest.raises(TokenNotFound):
        engine.rotate_token(second.refresh_token)

    replay_logs = [
        r for r in caplog.records if getattr(r, "event", None) == "refresh.replay_detected"
    ]
    assert len(replay_logs) == 1
    assert replay_logs[0].levelno == logging.ERROR
    assert replay_logs[0].session_id == first.session_id


def test_replay_again_still_reports_reuse(engine):
    first = _login(engine)
    engine.rotate_token(first.refresh_token)
    with pytest.raises(ReplayDetected):
        engine.rotate_token(first.refresh_token)

    with pytest.raises(ReplayDetected):
        engine.rotate_token(first.refresh_token)


def test_replay_with_wrong_secret_is_only_invalid(engine):
    """A consumed id with a guessed secret does not revoke anything."""
    first = _login(engine)
    second = engine.rotate_token(first.refresh_token)

    with pytest.raises(TokenInvalid):
        engine.rotate(_id(first), "guess")

    engine.rotate_token(second.refresh_token)


def test_stale_cache_entry_cannot_hide_a_consumption(db, clock):
    """A cached copy still showing 'unconsumed' loses the conditional consume."""
    cache = InMemoryTokenCache()
    engine = build_engine(
        token_store=InMemoryRefreshTokenStore(),
        session_store=InMemorySessionStore(),
        cache=cache,
        clock=clock,
    )
    first = _login(engine)
    stale = cache.get_record(_id(first))
    engine.rotate_token(first.refresh_token)
    cache.put_record(stale)

    with pytest.raises(ReplayDetected):
        engine.rotate_token(first.refresh_token)

    assert all(r.revoked for r in engine.store.list_lineage(first.session_id))


def test_session_closed_during_rotation_leaves_no_live_successor(engine):
    first = _login(engine)
    # Registry entry disappears between the consume and the advance.
    engine.sessions.close(first.session_id)

    second = engine.rotate_token(first.refresh_token)

    assert engine.store.get(_id(second)).revoked is True
    with pytest.raises(TokenNotFound):
        engine.rotate_token(second.refresh_token)


# ----------------------------- Invalidation ------------------------------- #
def test_invalidate_session_is_idempotent(engine):
    pair = _login(engine)
    second = engine.rotate_token(pair.refresh_token)

    ids = engine.invalidate_session(pair.session_id)
    assert sorted(ids) == sorted([_id(pair), _id(second)])
    assert engine.invalidate_session(pair.session_id) == ids
    assert engine.invalidate_session("unknown-session") == []
    assert engine.list_sessions("u-alice") == []


def test_invalidate_all_except_keeps_the_current_session(engine):
    keep = _login(engine)
    other1 = _login(engine)
    other2 = _login(engine)
    bob = _login(engine, user_id="u-bob")

    closed = engine.invalidate_all_except("u-alice", keep.session_id)

    assert sorted(closed) == sorted([other1.session_id, other2.session_id])
    assert [e.session_id for e in engine.list_sessions("u-alice")] == [keep.session_id]
    for pair in (other1, other2):
        with pytest.raises(TokenNotFound):
            engine.rotate_token(pair.refresh_token)
    engine.rotate_token(keep.refresh_token)
    engine.rotate_token(bob.refresh_token)


def test_invalidate_all_except_without_a_session_closes_everything(engine):
    _login(engine)
    _login(engine)

    assert len(engine.invalidate_all_except("u-alice", None)) == 2
    assert engine.list_sessions("u-alice") == []


def test_logout_is_repeatable_but_checks_the_secret(engine):
    pair = _login(engine)

    with pytest.raises(TokenInvalid):
        engine.logout(f"{_id(pair)}.wrong")
    assert engine.logout(pair.refresh_token) == pair.session_id
    assert engine.logout(pair.refresh_token) == pair.session_id
    with pytest.raises(TokenNotFound):
        engine.logout("cafebabe.secret")


def test_logout_with_a_consumed_token_closes_the_session(engine):
    first = _login(engine)
    second = engine.rotate_token(first.refresh_token)

    engine.logout(first.refresh_token)

    with pytest.raises(TokenNotFound):
        engine.rotate_token(second.refresh_token)


# ----------------------------- Maintenance -------------------------------- #
def test_sweep_expired_removes_tokens_and_sessions(engine, clock):
    old = _login(engine)
    engine.rotate_token(old.refresh_token)
    clock.advance(days=20)
    young = _login(engine)

    result = engine.sweep_expired()
    assert (result.tokens_deleted, result.sessions_deleted) == (0, 0)

    clock.advance(days=10)
    result = engine.sweep_expired()

    assert result.tokens_deleted == 2
    assert result.sessions_deleted == 1
    assert engine.store.list_lineage(old.session_id) == []
    assert [e.session_id for e in engine.list_sessions("u-alice")] == [young.session_id]


def test_unknown_and_forged_ids_cost_the_same_hash_check(engine, monkeypatch):
    """Rejecting an unknown id runs one hash check, like a wrong secret."""
    from sessionauth.services.tokens import hashing

    pair = _login(engine)
    checks: list[str] = []
    real_check = hashing.check_password_hash

    def _counting_check(pwhash, password):
        checks.append(pwhash)
        return real_check(pwhash, password)

    monkeypatch.setattr(hashing, "check_password_hash", _counting_check)

    with pytest.raises(TokenNotFound):
        engine.rotate("deadbeef", "guess")
    assert len(checks) == 1

    with pytest.raises(TokenInvalid):
        engine.rotate(_id(pair), "guess")
    assert len(checks) == 2


class _UnreachableSessionStore(InMemorySessionStore):
    def __init__(self) -> None:
        super().__init__()
        self.attempted: list[str] = []

    def create(self, entry):
        self.attempted.append(entry.session_id)
        raise StorageUnavailable()


def test_failed_session_open_revokes_the_new_token(db, clock):
    token_store = InMemoryRefreshTokenStore()
    session_store = _UnreachableSessionStore()
    engine = build_engine(
        token_store=token_store,
        session_store=session_store,
        cache=InMemoryTokenCache(),
        clock=clock,
    )

    with pytest.raises(StorageUnavailable):
        engine.issue("u-alice")

    [session_id] = session_store.attempted
    [record] = token_store.list_lineage(session_id)
    assert record.revoked is True
