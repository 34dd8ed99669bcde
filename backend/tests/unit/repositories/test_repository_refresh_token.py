"""Unit tests for RefreshTokenRepository."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sessionauth.repositories import RefreshTokenRepository

from tests.factories.refresh_token import RefreshTokenFactory


class TestRefreshTokenRepository:
    """Ensure the conditional consume and lineage helpers behave."""

    @pytest.fixture()
    def repo(self):
        return RefreshTokenRepository()

    def test_consume_only_succeeds_once(self, repo, session):
        """The second conditional update matches no row."""
        token = RefreshTokenFactory()
        session.commit()
        now = datetime.now(UTC)

        assert repo.consume(token.id, consumed_at=now, superseded_by="next1") is True
        assert repo.consume(token.id, consumed_at=now, superseded_by="next2") is False
        session.commit()

        row = repo.get(token.id)
        assert row.consumed is True
        assert row.superseded_by == "next1"

    def test_consume_refuses_revoked_and_unknown(self, repo, session):
        token = RefreshTokenFactory(revoked_at=datetime.now(UTC))
        session.commit()

        assert repo.consume(token.id, consumed_at=datetime.now(UTC), superseded_by="x") is False
        assert repo.consume("missing", consumed_at=datetime.now(UTC), superseded_by="x") is False

    def test_revoke_session_keeps_earlier_tombstones(self, repo, session):
        """Only live rows get a tombstone; every lineage id is returned."""
        earlier = datetime(2030, 1, 1, tzinfo=UTC)
        a = RefreshTokenFactory(session_id="s1", revoked_at=earlier)
        b = RefreshTokenFactory(session_id="s1")
        other = RefreshTokenFactory(session_id="s2")
        session.commit()

        later = datetime(2030, 1, 2, tzinfo=UTC)
        ids = repo.revoke_session("s1", revoked_at=later)
        session.commit()

        assert sorted(ids) == sorted([a.id, b.id])
        assert repo.get(a.id).revoked_at == earlier
        assert repo.get(b.id).revoked_at == later
        assert repo.get(other.id).revoked_at is None

    def test_list_by_session_is_ordered_by_issuance(self, repo, session):
        base = datetime.now(UTC).replace(microsecond=0)
        second = RefreshTokenFactory(session_id="lin", issued_at=base + timedelta(minutes=1))
        first = RefreshTokenFactory(session_id="lin", issued_at=base)
        session.commit()

        assert [r.id for r in repo.list_by_session("lin")] == [first.id, second.id]
        assert repo.list_by_session("nope") == []

    def test_delete_expired(self, repo, session):
        now = datetime.now(UTC)
        RefreshTokenFactory(issued_at=now - timedelta(days=31), expires_at=now - timedelta(days=1))
        live = RefreshTokenFactory()
        session.commit()

        assert repo.delete_expired(now) == 1
        session.commit()
        assert repo.get(live.id) is not None
