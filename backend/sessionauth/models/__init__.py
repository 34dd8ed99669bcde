from sessionauth.models.refresh_token import RefreshToken
from sessionauth.models.user_session import UserSession

__all__ = [
    "RefreshToken",
    "UserSession",
]
