"""Global Flask extension instances and initialization helpers."""

from __future__ import annotations

import logging

import redis  # type: ignore[import-untyped]
from flask import Flask
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

log = logging.getLogger(__name__)

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, JWT, rate limiting and the token cache.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`sessionauth.models` package to ensure SQLAlchemy metadata is
        ready for migrations.

    Notes
    -----
    An unreachable Redis is not fatal: the cache adapter degrades every call
    to a miss and the durable store keeps serving requests.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from sessionauth import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    from sessionauth.infra.redis.redis_token_cache import RedisTokenCache
    from sessionauth.services._shared.ports import NullTokenCache

    if "token_cache" in app.extensions:
        # Injected by the caller (tests, embedding applications)
        return

    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        app.extensions["token_cache"] = NullTokenCache()
        return

    timeout = float(app.config.get("CACHE_TIMEOUT_SECONDS", 0.25))
    client = redis.Redis.from_url(
        redis_url,
        socket_timeout=timeout,
        socket_connect_timeout=timeout,
    )
    try:
        client.ping()
    except RedisError as exc:
        log.warning("Redis at %r is unreachable (%s); token cache degraded.", redis_url, exc)
    app.extensions["redis_client"] = client
    app.extensions["token_cache"] = RedisTokenCache(r=client)
