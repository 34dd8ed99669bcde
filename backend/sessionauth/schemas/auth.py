"""Authentication-related Marshmallow schemas (camelCase on the wire)."""

from __future__ import annotations

from marshmallow import Schema, fields, validate


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    identifier = fields.String(required=True, validate=validate.Length(min=1, max=254))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))


class RefreshSchema(Schema):
    """Input payload carrying an opaque refresh credential."""

    refresh_token = fields.String(
        required=True, data_key="refreshToken", validate=validate.Length(min=3, max=512)
    )


class LogoutSchema(RefreshSchema):
    """Input payload for closing the session of a refresh credential."""


class ChangePasswordSchema(Schema):
    """Input payload for a password change by the authenticated user."""

    current_password = fields.String(
        required=True, data_key="currentPassword", validate=validate.Length(min=1, max=128)
    )
    new_password = fields.String(
        required=True, data_key="newPassword", validate=validate.Length(min=8, max=128)
    )


class TokenPairSchema(Schema):
    """Response payload with an access/refresh pair."""

    access_token = fields.String(required=True, data_key="accessToken")
    refresh_token = fields.String(required=True, data_key="refreshToken")
    token_type = fields.String(data_key="tokenType")
    session_id = fields.String(data_key="sessionId")
    access_expires_at = fields.DateTime(data_key="accessTokenExpiresAt")
    refresh_expires_at = fields.DateTime(data_key="refreshTokenExpiresAt")


class SessionSchema(Schema):
    """One active session of the authenticated user."""

    session_id = fields.String(data_key="sessionId")
    created_at = fields.DateTime(data_key="createdAt")
    last_rotated_at = fields.DateTime(data_key="lastRotatedAt")
    expires_at = fields.DateTime(data_key="expiresAt")
    ip_address = fields.String(allow_none=True, data_key="ipAddress")
    user_agent = fields.String(allow_none=True, data_key="userAgent")


class WhoAmISchema(Schema):
    """Verified access-token claims of the caller."""

    subject = fields.String(required=True, data_key="userId")
    session_id = fields.String(required=True, data_key="sessionId")
    token_identifier = fields.String(data_key="tokenId")
    roles = fields.List(fields.String())
    language_preference = fields.String(allow_none=True, data_key="language")
    issued_at = fields.DateTime(data_key="issuedAt")
    expires_at = fields.DateTime(data_key="expiresAt")
