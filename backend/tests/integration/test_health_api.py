"""Smoke tests for the health endpoint."""

from __future__ import annotations

import fakeredis


def test_health_reports_database_and_cache(client) -> None:
    """Health endpoint returns db/cache status; the cache is disabled in tests."""

    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    assert resp.get_json() == {
        "data": {"status": "ok", "db": "ok", "cache": "disabled", "version": "dev"}
    }


def test_health_flags_an_unreachable_cache(app, client) -> None:
    """A Redis outage degrades the cache but keeps the service healthy."""

    server = fakeredis.FakeServer()
    server.connected = False
    app.extensions["redis_client"] = fakeredis.FakeRedis(server=server)

    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    assert resp.get_json()["data"]["cache"] == "degraded"


def test_health_with_reachable_cache(app, client, fake_redis) -> None:
    app.extensions["redis_client"] = fake_redis

    assert client.get("/api/v1/health").get_json()["data"]["cache"] == "ok"


def test_unknown_route_is_a_problem_document(client) -> None:
    resp = client.get("/api/v1/nope")

    assert resp.status_code == 404
    assert resp.mimetype == "application/problem+json"
    assert resp.get_json()["code"] == "not_found"
