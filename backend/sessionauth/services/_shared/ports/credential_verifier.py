from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol

from werkzeug.security import check_password_hash, generate_password_hash


@dataclass(frozen=True, slots=True)
class VerifiedPrincipal:
    """
    Identity returned by a successful credential check.

    :ivar user_id: Stable user identifier (becomes the ``sub`` claim).
    :ivar roles: Role claims.
    :ivar language: Preferred language (``lang`` claim).
    """

    user_id: str
    roles: tuple[str, ...] = ()
    language: str | None = None


class CredentialVerifier(Protocol):
    """Port to the external service that owns user credentials."""

    def verify(self, identifier: str, password: str) -> VerifiedPrincipal | None:
        """Return the principal when the credential is valid, else ``None``."""

    def change_password(self, user_id: str, current_password: str, new_password: str) -> bool:
        """Replace the password after checking the current one. :returns: success."""


@dataclass(slots=True)
class _Account:
    principal: VerifiedPrincipal
    password_hash: str


class InMemoryCredentialVerifier(CredentialVerifier):
    """
    Credential verifier keeping Werkzeug password hashes in memory.

    Used by tests and local development; deployments inject their own adapter
    through ``create_app(credential_verifier=...)``.
    """

    def __init__(self, *, method: str = "scrypt") -> None:
        self._method = method
        self._by_identifier: dict[str, _Account] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _normalize(identifier: str) -> str:
        return identifier.strip().lower()

    def add_user(
        self,
        *,
        user_id: str,
        identifier: str,
        password: str,
        roles: tuple[str, ...] = (),
        language: str | None = None,
    ) -> VerifiedPrincipal:
        """Register an account and return its principal."""
        principal = VerifiedPrincipal(user_id=user_id, roles=tuple(roles), language=language)
        with self._lock:
            self._by_identifier[self._normalize(identifier)] = _Account(
                principal=principal,
                password_hash=generate_password_hash(password, method=self._method),
            )
        return principal

    def verify(self, identifier: str, password: str) -> VerifiedPrincipal | None:
        with self._lock:
            account = self._by_identifier.get(self._normalize(identifier))
        if account is None or not check_password_hash(account.password_hash, password):
            return None
        return account.principal

    def change_password(self, user_id: str, current_password: str, new_password: str) -> bool:
        with self._lock:
            account = next(
                (a for a in self._by_identifier.values() if a.principal.user_id == user_id),
                None,
            )
            if account is None or not check_password_hash(account.password_hash, current_password):
                return False
            account.password_hash = generate_password_hash(new_password, method=self._method)
            return True
