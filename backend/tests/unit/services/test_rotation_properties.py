"""Lifecycle guarantees of refresh-token rotation, over every store/cache pairing."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sessionauth.services._shared.errors import (
    ReplayDetected,
    TokenExpired,
    TokenNotFound,
)
from sessionauth.services.tokens import RefreshCredential


def _live(engine, session_id: str) -> list[str]:
    return [
        r.id
        for r in engine.store.list_lineage(session_id)
        if not r.consumed and not r.revoked
    ]


def test_a_lineage_has_at_most_one_live_token(engine, clock):
    pair = engine.issue("u-alice", roles=("editor",))
    for _ in range(5):
        clock.advance(minutes=15)
        pair = engine.rotate_token(pair.refresh_token)
        assert _live(engine, pair.session_id) == [
            RefreshCredential.parse(pair.refresh_token).token_id
        ]

    lineage = engine.store.list_lineage(pair.session_id)
    assert len(lineage) == 6
    # Each consumed token points at the next one issued.
    for prev, nxt in zip(lineage, lineage[1:], strict=False):
        assert prev.superseded_by == nxt.id


def test_every_token_is_accepted_exactly_once(engine):
    first = engine.issue("u-alice")
    second = engine.rotate_token(first.refresh_token)

    for presented in (first, second):
        with pytest.raises((ReplayDetected, TokenNotFound)):
            engine.rotate_token(presented.refresh_token)


def test_replay_is_confined_to_its_own_lineage(engine):
    """Reuse in one session leaves the user's other sessions working."""
    laptop = engine.issue("u-alice")
    phone = engine.issue("u-alice")
    other_user = engine.issue("u-bob")
    engine.rotate_token(laptop.refresh_token)

    with pytest.raises(ReplayDetected):
        engine.rotate_token(laptop.refresh_token)

    assert _live(engine, laptop.session_id) == []
    engine.rotate_token(phone.refresh_token)
    engine.rotate_token(other_user.refresh_token)
    assert [e.session_id for e in engine.list_sessions("u-alice")] == [phone.session_id]


def test_rotation_never_extends_the_lineage(engine, clock):
    pair = engine.issue("u-alice")
    deadline = pair.refresh_expires_at

    for _ in range(3):
        clock.advance(days=9)
        pair = engine.rotate_token(pair.refresh_token)
        assert pair.refresh_expires_at == deadline

    clock.advance(days=3)
    with pytest.raises(TokenExpired):
        engine.rotate_token(pair.refresh_token)


def test_password_change_spares_only_the_current_session(engine):
    current = engine.issue("u-alice")
    stale = [engine.issue("u-alice") for _ in range(3)]

    closed = engine.invalidate_all_except("u-alice", current.session_id)

    assert sorted(closed) == sorted(p.session_id for p in stale)
    for pair in stale:
        assert _live(engine, pair.session_id) == []
    assert engine.rotate_token(current.refresh_token).session_id == current.session_id


def test_stolen_token_scenario(engine, clock):
    """
    GIVEN a token copied by an attacker
    WHEN the legitimate client rotates it and the attacker replays the copy
    THEN both the attacker and the legitimate client are logged out of that session.
    """
    login = engine.issue("u-alice", roles=("editor",), language="en")
    stolen = login.refresh_token

    clock.advance(hours=1)
    legit = engine.rotate_token(login.refresh_token)

    clock.advance(minutes=5)
    with pytest.raises(ReplayDetected):
        engine.rotate_token(stolen)

    with pytest.raises(TokenNotFound):
        engine.rotate_token(legit.refresh_token)
    assert engine.list_sessions("u-alice") == []

    fresh = engine.issue("u-alice", roles=("editor",), language="en")
    assert fresh.session_id != login.session_id
    assert engine.rotate_token(fresh.refresh_token).session_id == fresh.session_id


def test_rotation_survives_session_sweeps(engine, clock):
    pair = engine.issue("u-alice")
    clock.advance(days=1)
    engine.sweep_expired()

    assert engine.rotate_token(pair.refresh_token).refresh_expires_at == (
        pair.refresh_expires_at
    )
    assert pair.refresh_expires_at - clock() == timedelta(days=29)
