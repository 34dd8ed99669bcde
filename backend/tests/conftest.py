"""Pytest fixtures: application, per-test database, clock, caches and engines.

Each test gets a fresh in-memory SQLite database (Flask-SQLAlchemy pins it to
a single connection), so rows never leak between cases.
"""

from __future__ import annotations

import os

import fakeredis
import pytest
from sessionauth.core.config import TestingConfig
from sessionauth.core.extensions import db as _db  # Flask-SQLAlchemy instance
from sessionauth.factory import create_app  # application factory under test
from sessionauth.infra.sqlalchemy.sql_token_store import (
    SQLAlchemyRefreshTokenStore,
    SQLAlchemySessionStore,
)
from sessionauth.services._shared.ports import (
    InMemoryCredentialVerifier,
    InMemoryRefreshTokenStore,
    InMemorySessionStore,
    InMemoryTokenCache,
)

from tests.helpers.clock import FrozenClock
from tests.helpers.wiring import TEST_HASH_METHOD, build_engine, make_cache

CACHE_KINDS = ("none", "memory", "redis", "redis_down")
STORE_KINDS = ("memory", "sql")


@pytest.fixture
def clock() -> FrozenClock:
    """Provide a controllable UTC clock starting at the current instant."""
    return FrozenClock()


@pytest.fixture
def credential_verifier() -> InMemoryCredentialVerifier:
    """Credential owner preloaded with two users."""
    verifier = InMemoryCredentialVerifier(method=TEST_HASH_METHOD)
    verifier.add_user(
        user_id="u-alice",
        identifier="alice@example.com",
        password="correct horse battery",
        roles=("editor",),
        language="en",
    )
    verifier.add_user(
        user_id="u-bob",
        identifier="bob@example.com",
        password="hunter2hunter2",
        roles=("student",),
        language="fr",
    )
    return verifier


@pytest.fixture
def app_token_cache() -> InMemoryTokenCache:
    """Cache injected into the application under test."""
    return InMemoryTokenCache()


@pytest.fixture
def app(credential_verifier, app_token_cache):
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application with :class:`TestingConfig` applied and logging noise
        reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(
        TestingConfig,
        credential_verifier=credential_verifier,
        token_cache=app_token_cache,
    )
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture
def db(app):
    """Create the schema inside an application context for one test.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def session(db):
    """Return the Flask-scoped session used by repositories and stores."""
    return db.session


@pytest.fixture
def client(app, db):
    """Flask test client with the schema in place."""
    return app.test_client()


# -- Hook up Factory Boy to the Flask-SQLAlchemy session -----------------------
@pytest.fixture(autouse=True)
def _factories_session(request):
    """Wire Factory Boy's session helper when the test uses the database."""
    from tests.factories import SQLAlchemySession

    if "session" in request.fixturenames or "db" in request.fixturenames:
        SQLAlchemySession.set(request.getfixturevalue("session"))
    yield
    SQLAlchemySession.set(None)


# -- Building blocks for the rotation engine -----------------------------------


@pytest.fixture
def fake_redis_server():
    """Provide an isolated FakeRedis server."""
    return fakeredis.FakeServer()


@pytest.fixture
def fake_redis(fake_redis_server):
    """Provide a fresh FakeRedis client for each test."""
    return fakeredis.FakeRedis(server=fake_redis_server)


@pytest.fixture(params=CACHE_KINDS)
def cache(request, clock):
    """Every cache flavour, including an unreachable Redis."""
    return make_cache(request.param, clock=clock)


@pytest.fixture(params=STORE_KINDS)
def stores(request, db):
    """Token and session stores, in memory or on SQLAlchemy."""
    if request.param == "memory":
        return InMemoryRefreshTokenStore(), InMemorySessionStore()
    return SQLAlchemyRefreshTokenStore(), SQLAlchemySessionStore()


@pytest.fixture
def engine(db, stores, cache, clock):
    """Rotation engine over every store/cache combination.

    Depends on ``db`` for the application context: access tokens are signed
    with Flask-JWT-Extended.
    """
    token_store, session_store = stores
    return build_engine(
        token_store=token_store, session_store=session_store, cache=cache, clock=clock
    )


@pytest.fixture()
def freeze_time():
    """Factory returning :func:`freezegun.freeze_time`.

    Examples
    --------
    >>> def test_with_frozen_time(freeze_time):
    ...     with freeze_time("2030-01-01"):
    ...         ...
    """

    from freezegun import freeze_time as _freeze_time

    def _factory(target=None):
        return _freeze_time(target or "2030-01-01")

    return _factory
