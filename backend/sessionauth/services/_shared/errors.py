"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask, HTTP or
SQLAlchemy. They are the stable contract between stores, the rotation engine
and the API layer.

The translation to HTTP responses (RFC 7807) is handled by
``sessionauth/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to ``APIError`` instances.
    """

    code = "service_error"


class StorageUnavailable(ServiceError):
    """
    Raised when the durable token store cannot be reached in time.

    Cache failures never raise this: the cache degrades to the durable store.
    """

    code = "storage_unavailable"

    def __init__(self, message: str = "Token storage is unavailable") -> None:
        super().__init__(message)


# --------------------------------------------------------------------------- #
# Refresh-token errors
# --------------------------------------------------------------------------- #


class TokenError(ServiceError):
    """Base class for rejected refresh credentials."""

    code = "invalid_refresh_token"
    default_message = "Refresh token is not valid"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class TokenNotFound(TokenError):
    """No live record matches the presented identifier."""


class TokenInvalid(TokenError):
    """
    The presented secret does not match the stored hash, or the credential
    is malformed.

    Shares ``code`` and message with :class:`TokenNotFound` so callers cannot
    tell a wrong secret from an unknown identifier.
    """


class TokenExpired(TokenError):
    """The lineage reached its absolute expiry."""

    code = "refresh_token_expired"
    default_message = "Refresh token has expired"


class ReplayDetected(TokenError):
    """
    An already-consumed refresh token was presented again.

    :param user_id: Owner of the compromised lineage.
    :type user_id: str
    :param session_id: Lineage that has been invalidated.
    :type session_id: str
    """

    code = "refresh_token_reused"
    default_message = "Refresh token reuse detected; the session has been revoked"

    def __init__(self, *, user_id: str, session_id: str) -> None:
        super().__init__()
        self.user_id = user_id
        self.session_id = session_id


# --------------------------------------------------------------------------- #
# Access-token errors
# --------------------------------------------------------------------------- #


class AccessTokenError(ServiceError):
    """Base class for access tokens rejected by the codec."""

    code = "invalid_access_token"

    def __init__(self, message: str = "Access token is not valid") -> None:
        super().__init__(message)


class AccessTokenMalformed(AccessTokenError):
    """The token cannot be parsed or lacks required claims."""


class AccessTokenSignatureInvalid(AccessTokenError):
    """The signature does not verify against the server key."""


class AccessTokenExpired(AccessTokenError):
    """The ``exp`` claim is in the past."""

    code = "access_token_expired"

    def __init__(self, message: str = "Access token has expired") -> None:
        super().__init__(message)
