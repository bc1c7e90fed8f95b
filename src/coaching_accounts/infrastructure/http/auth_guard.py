"""Bearer-token guard for admin account-management endpoints."""

from __future__ import annotations

import hmac


class MissingAuthTokenError(PermissionError):
    """Raised when a bearer token is required but not provided."""


class InvalidAuthTokenError(PermissionError):
    """Raised when the bearer token header is malformed or does not match."""


def extract_bearer_token(authorization_header: str | None) -> str:
    """Extract opaque token from standard `Authorization: Bearer <token>` header."""

    if authorization_header is None or not authorization_header.strip():
        raise MissingAuthTokenError("missing bearer token")

    parts = authorization_header.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise InvalidAuthTokenError("invalid bearer token header")

    return parts[1]


class AdminTokenGuard:
    """Compare caller bearer tokens against the configured admin API secret."""

    def __init__(self, *, admin_token: str) -> None:
        token_value = admin_token.strip()
        if not token_value:
            raise ValueError("admin_token must be a non-empty string")
        self._admin_token = token_value.encode("utf-8")

    def require_admin(self, *, authorization_header: str | None) -> None:
        """Raise unless the header carries the admin API token."""

        token = extract_bearer_token(authorization_header)
        if not hmac.compare_digest(token.encode("utf-8"), self._admin_token):
            raise InvalidAuthTokenError("invalid admin token")
