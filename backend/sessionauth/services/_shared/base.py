# sessionauth/services/_shared/base.py
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from sessionauth.core import errors as api_errors
from sessionauth.services._shared.errors import (
    AccessTokenError,
    ReplayDetected,
    ServiceError,
    StorageUnavailable,
    TokenError,
    TokenExpired,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return a timezone-aware UTC "now"."""
    return datetime.now(UTC)


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data (auth, request ids, client info).

    :param actor_id: Authenticated user identifier.
    :param request_id: Correlation id for logging/tracing.
    :param ip_address: Client address as seen by the app.
    :param user_agent: Client user agent.
    """

    actor_id: str | None = None
    request_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Own the clock, so time-dependent rules are testable.
    * Centralize error translation to the API layer.
    * Keep services thin and free of web/ORM leakage.
    """

    def __init__(self, *, ctx: ServiceContext | None = None, clock: Clock | None = None) -> None:
        """
        Initialize the base service.

        :param ctx: Optional request-scoped context.
        :type ctx: ServiceContext | None
        :param clock: Callable returning an aware UTC ``datetime``.
        :type clock: Clock | None
        """
        self.ctx = ctx or ServiceContext()
        self._clock = clock or utc_now

    def now_utc(self) -> datetime:
        return self._clock()

    # -------------------------- Error handling ------------------------------

    @staticmethod
    def translate_exceptions(exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :type exc: Exception
        :returns: Translated exception ready to be re-raised.
        :rtype: Exception
        """
        if isinstance(exc, StorageUnavailable):
            # → 503 Service Unavailable
            return api_errors.ServiceUnavailable(str(exc))

        if isinstance(exc, (TokenExpired, ReplayDetected)):
            # → 401 with a distinct code
            return api_errors.Unauthorized(str(exc), code=exc.code)

        if isinstance(exc, TokenError):
            # NotFound and Invalid collapse into one answer (no enumeration oracle)
            return api_errors.Unauthorized(TokenError.default_message, code=TokenError.code)

        if isinstance(exc, AccessTokenError):
            return api_errors.Unauthorized(str(exc), code=exc.code)

        if isinstance(exc, ServiceError):
            return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
