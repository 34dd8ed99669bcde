"""Authentication endpoints backed by the rotation engine."""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, request

from sessionauth.api.deps import (
    current_claims,
    get_credential_verifier,
    get_rotation_engine,
    json_response,
    require_auth,
    timing,
)
from sessionauth.core.errors import Unauthorized
from sessionauth.core.extensions import limiter
from sessionauth.schemas import (
    ChangePasswordSchema,
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    SessionSchema,
    TokenPairSchema,
    WhoAmISchema,
)

log = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
change_password_schema = ChangePasswordSchema()
token_schema = TokenPairSchema()
session_schema = SessionSchema()
whoami_schema = WhoAmISchema()


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


def _refresh_rate_limit() -> str:
    return str(current_app.config.get("AUTH_REFRESH_RATE_LIMIT", "30 per minute"))


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and open a new session."""

    data = login_schema.load(request.get_json(silent=True) or {})
    principal = get_credential_verifier().verify(data["identifier"], data["password"])
    if principal is None:
        raise Unauthorized("Invalid credentials", code="invalid_credentials")
    pair = get_rotation_engine().issue(
        principal.user_id, roles=principal.roles, language=principal.language
    )
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/refresh")
@limiter.limit(_refresh_rate_limit)
@timing
def refresh():
    """Exchange a refresh token for a new pair (single use)."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    pair = get_rotation_engine().rotate_token(data["refresh_token"])
    return json_response({"data": token_schema.dump(pair)})


@bp.post("/logout")
@timing
def logout():
    """Close the session the presented refresh token belongs to."""

    data = logout_schema.load(request.get_json(silent=True) or {})
    get_rotation_engine().logout(data["refresh_token"])
    return "", 204


@bp.put("/change-password")
@require_auth
@timing
def change_password():
    """Change the caller's password and close every other session."""

    data = change_password_schema.load(request.get_json(silent=True) or {})
    claims = current_claims()
    changed = get_credential_verifier().change_password(
        claims.subject, data["current_password"], data["new_password"]
    )
    if not changed:
        raise Unauthorized("Current password is incorrect", code="invalid_credentials")
    closed = get_rotation_engine().invalidate_all_except(claims.subject, claims.session_id)
    log.info(
        "Password changed",
        extra={"event": "password.changed", "user_id": claims.subject},
    )
    return json_response({"data": {"invalidatedSessions": len(closed)}})


@bp.get("/sessions")
@require_auth
@timing
def sessions():
    """List the caller's active sessions."""

    claims = current_claims()
    items = session_schema.dump(get_rotation_engine().list_sessions(claims.subject), many=True)
    for item in items:
        item["current"] = item["sessionId"] == claims.session_id
    return json_response({"data": items})


@bp.get("/whoami")
@require_auth
@timing
def whoami():
    """Return the verified claims of the caller."""

    return json_response({"data": whoami_schema.dump(current_claims())})
