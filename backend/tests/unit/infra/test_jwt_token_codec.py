"""Unit tests for the Flask-JWT-Extended access-token codec."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt as pyjwt
import pytest
from sessionauth.infra.jwt.flask_jwt_token_codec import JWTTokenCodec
from sessionauth.services._shared.errors import (
    AccessTokenExpired,
    AccessTokenMalformed,
    AccessTokenSignatureInvalid,
)
from sessionauth.services._shared.ports import AccessTokenClaims


@pytest.fixture()
def codec(app):
    with app.app_context():
        yield JWTTokenCodec()


def _claims(**overrides) -> AccessTokenClaims:
    issued = datetime.now(UTC).replace(microsecond=0)
    data = dict(
        subject="u-alice",
        session_id="sess1",
        token_identifier="jti-1",
        issued_at=issued,
        expires_at=issued + timedelta(hours=24),
        roles=("editor",),
        language_preference="en",
    )
    data.update(overrides)
    return AccessTokenClaims(**data)


def test_encode_then_verify_returns_same_claims(codec):
    claims = _claims()

    assert codec.verify(codec.encode(claims)) == claims


def test_wire_claim_names(codec, app):
    token = codec.encode(_claims())
    payload = pyjwt.decode(token, app.config["JWT_SECRET_KEY"], algorithms=["HS256"])

    assert payload["sub"] == "u-alice"
    assert payload["sid"] == "sess1"
    assert payload["jti"] == "jti-1"
    assert payload["roles"] == ["editor"]
    assert payload["lang"] == "en"
    assert payload["exp"] - payload["iat"] == 24 * 3600


def test_expired_token(codec):
    issued = datetime.now(UTC).replace(microsecond=0) - timedelta(hours=2)
    token = codec.encode(_claims(issued_at=issued, expires_at=issued + timedelta(hours=1)))

    with pytest.raises(AccessTokenExpired):
        codec.verify(token)


def test_foreign_signature(codec):
    now = datetime.now(UTC)
    forged = pyjwt.encode(
        {
            "sub": "u-alice",
            "sid": "sess1",
            "jti": "x",
            "type": "access",
            "iat": now,
            "exp": now + timedelta(hours=1),
        },
        "another-key-that-is-long-enough-for-hs256!",
        algorithm="HS256",
    )

    with pytest.raises(AccessTokenSignatureInvalid):
        codec.verify(forged)


@pytest.mark.parametrize("token", ["", "not-a-jwt", "a.b.c"])
def test_garbage_is_malformed(codec, token):
    with pytest.raises(AccessTokenMalformed):
        codec.verify(token)


def test_missing_session_claim_is_malformed(codec, app):
    now = datetime.now(UTC)
    token = pyjwt.encode(
        {"sub": "u-alice", "jti": "x", "type": "access", "iat": now, "exp": now + timedelta(hours=1)},
        app.config["JWT_SECRET_KEY"],
        algorithm="HS256",
    )

    with pytest.raises(AccessTokenMalformed):
        codec.verify(token)
