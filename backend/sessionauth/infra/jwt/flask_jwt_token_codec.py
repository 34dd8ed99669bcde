# sessionauth/infra/jwt/flask_jwt_token_codec.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, cast

import jwt as pyjwt
from flask_jwt_extended.exceptions import JWTExtendedException

from sessionauth.services._shared.errors import (
    AccessTokenExpired,
    AccessTokenMalformed,
    AccessTokenSignatureInvalid,
)
from sessionauth.services._shared.ports import AccessTokenClaims, TokenCodec


def _ts(dt: datetime) -> int:
    return int(dt.astimezone(UTC).timestamp())


@dataclass(slots=True)
class JWTTokenCodec(TokenCodec):
    """
    Adapter for Flask-JWT-Extended.

    Claims are written as ``{sub, sid, jti, iat, exp, roles, lang}``; the
    library adds ``type``, ``nbf`` and ``fresh`` on top. Verification never
    touches storage.

    .. note::
       Requires an active Flask app context with ``JWT_SECRET_KEY`` and
       ``JWT_ALGORITHM`` configured.
    """

    def encode(self, claims: AccessTokenClaims) -> str:
        from flask_jwt_extended import create_access_token as _create_access

        issued = _ts(claims.issued_at)
        expires = _ts(claims.expires_at)
        extra: dict[str, Any] = {
            "sid": claims.session_id,
            "jti": claims.token_identifier,
            "iat": issued,
            "nbf": issued,
            "exp": expires,
            "roles": list(claims.roles),
            "lang": claims.language_preference,
        }
        return cast(
            str,
            _create_access(
                identity=claims.subject,
                additional_claims=extra,
                expires_delta=claims.expires_at - claims.issued_at,
            ),
        )

    def verify(self, token: str) -> AccessTokenClaims:
        from flask_jwt_extended import decode_token

        try:
            decoded = cast(dict[str, Any], decode_token(token))
        except pyjwt.ExpiredSignatureError as exc:
            raise AccessTokenExpired() from exc
        except pyjwt.InvalidSignatureError as exc:
            raise AccessTokenSignatureInvalid("Access token signature is invalid") from exc
        except (pyjwt.InvalidTokenError, JWTExtendedException) as exc:
            raise AccessTokenMalformed() from exc

        if decoded.get("type") != "access":
            raise AccessTokenMalformed("Token is not an access token")
        try:
            return AccessTokenClaims(
                subject=str(decoded["sub"]),
                session_id=str(decoded["sid"]),
                token_identifier=str(decoded["jti"]),
                issued_at=datetime.fromtimestamp(int(decoded["iat"]), tz=UTC),
                expires_at=datetime.fromtimestamp(int(decoded["exp"]), tz=UTC),
                roles=tuple(str(r) for r in decoded.get("roles") or ()),
                language_preference=decoded.get("lang"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AccessTokenMalformed() from exc
