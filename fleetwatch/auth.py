from __future__ import annotations

import hmac
from dataclasses import dataclass

ADMIN_KEY_HEADER = "x-admin-key"
ADMIN_KEY_QUERY = "admin_key"


@dataclass
class AuthResult:
    ok: bool
    source: str | None = None
    reason: str | None = None


def safe_equal(a: str | None, b: str | None) -> bool:
    """Timing-safe comparison for strings (handles None)."""
    if a is None or b is None:
        return False
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class AdminGate:
    """
    Shared-secret check for administrative routes.

    The credential may arrive in the ``x-admin-key`` header or the
    ``admin_key`` query parameter; either one matching is enough. With no
    secret configured nothing is authorized.
    """

    def __init__(self, secret: str | None):
        self._secret = secret or None

    @property
    def configured(self) -> bool:
        return self._secret is not None

    def authorize(self, credential: str | None) -> bool:
        if not credential:
            return False
        return safe_equal(self._secret, credential)

    def authorize_request(self, header_value: str | None, query_value: str | None) -> AuthResult:
        if not self.configured:
            return AuthResult(ok=False, reason="admin_key_missing_config")
        if header_value is None and query_value is None:
            return AuthResult(ok=False, reason="admin_key_missing")
        if self.authorize(header_value):
            return AuthResult(ok=True, source="header")
        if self.authorize(query_value):
            return AuthResult(ok=True, source="query")
        return AuthResult(ok=False, reason="admin_key_mismatch")


__all__ = [
    "ADMIN_KEY_HEADER",
    "ADMIN_KEY_QUERY",
    "AdminGate",
    "AuthResult",
    "safe_equal",
]
