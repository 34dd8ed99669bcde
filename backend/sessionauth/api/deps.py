"""Shared API helpers: responses, timing, bearer authentication and wiring."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, TypeVar, cast

from flask import Flask, Response, current_app, g, has_request_context, jsonify, request

from sessionauth.core.errors import Unauthorized
from sessionauth.core.logger import ensure_request_id
from sessionauth.infra.jwt.flask_jwt_token_codec import JWTTokenCodec
from sessionauth.infra.sqlalchemy.sql_token_store import (
    SQLAlchemyRefreshTokenStore,
    SQLAlchemySessionStore,
)
from sessionauth.services._shared.base import ServiceContext
from sessionauth.services._shared.ports import (
    AccessTokenClaims,
    CredentialVerifier,
    NullTokenCache,
    TokenCache,
)
from sessionauth.services.tokens import (
    CredentialHasher,
    RotationEngine,
    SessionRegistry,
    TokenLifetimes,
)

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "Bearer "


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


# --------------------------------------------------------------------------- #
# Wiring
# --------------------------------------------------------------------------- #


def token_cache(app: Flask | None = None) -> TokenCache:
    """Return the cache configured by :mod:`sessionauth.core.extensions`."""

    target = app or current_app
    return cast(TokenCache, target.extensions.get("token_cache") or NullTokenCache())


def get_credential_verifier() -> CredentialVerifier:
    return cast(CredentialVerifier, current_app.extensions["credential_verifier"])


def build_rotation_engine(
    app: Flask | None = None, *, ctx: ServiceContext | None = None
) -> RotationEngine:
    """Assemble a :class:`RotationEngine` from application config and extensions.

    Parameters
    ----------
    app:
        Application providing configuration; defaults to ``current_app``.
    ctx:
        Request-scoped context; omitted for CLI usage.
    """

    target = app or current_app
    config = target.config
    cache = token_cache(target)
    return RotationEngine(
        token_store=SQLAlchemyRefreshTokenStore(),
        sessions=SessionRegistry(store=SQLAlchemySessionStore(), cache=cache),
        codec=JWTTokenCodec(),
        cache=cache,
        hasher=CredentialHasher(method=config.get("REFRESH_SECRET_HASH_METHOD", "scrypt")),
        lifetimes=TokenLifetimes(
            access=timedelta(hours=float(config.get("ACCESS_TOKEN_EXPIRES_HOURS", 24))),
            refresh=timedelta(days=float(config.get("REFRESH_TOKEN_EXPIRES_DAYS", 30))),
        ),
        ctx=ctx,
    )


def request_context() -> ServiceContext:
    """Build a :class:`ServiceContext` from the current request."""

    claims = cast(AccessTokenClaims | None, g.get("access_claims"))
    return ServiceContext(
        actor_id=claims.subject if claims else None,
        request_id=ensure_request_id() if has_request_context() else None,
        ip_address=request.remote_addr,
        user_agent=request.user_agent.string or None,
    )


def get_rotation_engine() -> RotationEngine:
    """Return the engine for the current request."""

    return build_rotation_engine(ctx=request_context())


# --------------------------------------------------------------------------- #
# Authentication
# --------------------------------------------------------------------------- #


def _bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith(BEARER_PREFIX):
        raise Unauthorized("Missing bearer token", code="missing_access_token")
    token = header[len(BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthorized("Missing bearer token", code="missing_access_token")
    return token


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token.

    The token is verified statelessly; the resulting claims are stored in
    ``g.access_claims``.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        g.access_claims = JWTTokenCodec().verify(_bearer_token())
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_claims() -> AccessTokenClaims:
    """Return the claims verified by :func:`require_auth`."""

    return cast(AccessTokenClaims, g.access_claims)
