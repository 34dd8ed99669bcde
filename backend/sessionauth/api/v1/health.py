"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from sessionauth.api.deps import json_response, timing
from sessionauth.core.extensions import db

bp = Blueprint("health", __name__)


def _cache_status() -> str:
    client = current_app.extensions.get("redis_client")
    if client is None:
        return "disabled"
    try:
        client.ping()
    except RedisError:
        current_app.logger.warning("healthcheck.cache_error")
        return "degraded"
    return "ok"


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and cache health information."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db.session.rollback()
        db_status = "fail"
    version = current_app.config.get("APP_VERSION", "dev")
    payload = {
        "status": "ok" if db_status == "ok" else "degraded",
        "db": db_status,
        "cache": _cache_status(),
        "version": version,
    }
    return json_response({"data": payload}, status=200 if db_status == "ok" else 503)
