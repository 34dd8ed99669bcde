"""One-way hashing of refresh-token secrets."""

from __future__ import annotations

import secrets
from functools import lru_cache

from werkzeug.security import check_password_hash, generate_password_hash


@lru_cache(maxsize=8)
def _decoy_hash(method: str) -> str:
    return generate_password_hash(secrets.token_urlsafe(32), method=method)


class CredentialHasher:
    """
    Generate refresh secrets and store only their hash.

    :param method: Werkzeug hashing method (``"scrypt"``, ``"pbkdf2:sha256:600000"``...).
    :param nbytes: Entropy of generated secrets, in bytes.
    """

    def __init__(self, *, method: str = "scrypt", nbytes: int = 32) -> None:
        self.method = method
        self.nbytes = nbytes

    def new_secret(self) -> str:
        return secrets.token_urlsafe(self.nbytes)

    def hash(self, secret: str) -> str:
        return generate_password_hash(secret, method=self.method)

    def verify(self, secret: str, secret_hash: str) -> bool:
        """Constant-time comparison of ``secret`` against a stored hash."""
        if not secret or not secret_hash:
            return False
        return check_password_hash(secret_hash, secret)

    def verify_missing(self, secret: str) -> bool:
        """
        Check ``secret`` against a throwaway hash and return ``False``.

        Used when the token id is unknown, so that the rejection costs the
        same as a wrong secret on a known id.
        """
        check_password_hash(_decoy_hash(self.method), secret or "-")
        return False
