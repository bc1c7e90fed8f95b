"""Management API token acquisition and single-slot caching."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol

from coaching_accounts.application.ports.identity_provider_port import (
    IdentityErrorKind,
    IdentityProviderError,
)
from coaching_accounts.infrastructure.http.transport import (
    HttpTransportPort,
    UrllibHttpTransport,
    decode_json,
    describe_error_payload,
    encode_json,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class TokenGrant:
    """Access token issued by the client-credentials grant."""

    access_token: str
    token_type: str
    expires_in: int


@dataclass(frozen=True)
class CachedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenInfo:
    """Debug view of the cache slot."""

    has_token: bool
    is_valid: bool
    expires_at: datetime | None = None


class TokenFetcherPort(Protocol):
    """Source of fresh management tokens."""

    async def fetch_token(self) -> TokenGrant:
        """Request one new token from the authorization server."""


class ClientCredentialsTokenFetcher:
    """OAuth2 client-credentials grant against `/oauth/token`."""

    def __init__(
        self,
        *,
        domain: str,
        client_id: str,
        client_secret: str | None,
        transport: HttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._domain = normalize_domain(domain)
        self._client_id = client_id
        self._client_secret = client_secret
        self._transport = transport or UrllibHttpTransport()
        self._timeout_seconds = timeout_seconds

    @property
    def audience(self) -> str:
        return f"https://{self._domain}/api/v2/"

    async def fetch_token(self) -> TokenGrant:
        """Exchange client credentials for a management API token."""

        if not self._client_secret:
            raise IdentityProviderError(
                "client_credentials grant unavailable: client secret is not configured",
                kind=IdentityErrorKind.CLIENT_CREDENTIALS,
            )

        payload = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "audience": self.audience,
            "grant_type": "client_credentials",
        }
        try:
            response = await self._transport.request(
                method="POST",
                url=f"https://{self._domain}/oauth/token",
                headers={"Content-Type": "application/json"},
                body=encode_json(payload),
                timeout_seconds=self._timeout_seconds,
            )
        except Exception as error:  # noqa: BLE001
            raise IdentityProviderError(
                "fetch_token transport failure",
                kind=IdentityErrorKind.TRANSPORT,
            ) from error

        if response.status_code in {401, 403}:
            raise IdentityProviderError(
                "client_credentials grant rejected: "
                f"{describe_error_payload(response.body_bytes)}",
                kind=IdentityErrorKind.CLIENT_CREDENTIALS,
                status_code=response.status_code,
            )
        if not response.ok:
            raise IdentityProviderError(
                f"fetch_token failed with status {response.status_code}: "
                f"{describe_error_payload(response.body_bytes)}",
                kind=IdentityErrorKind.HTTP_STATUS,
                status_code=response.status_code,
            )

        try:
            decoded = decode_json(response.body_bytes)
        except ValueError as error:
            raise IdentityProviderError(
                "fetch_token returned invalid JSON payload",
                kind=IdentityErrorKind.INVALID_RESPONSE,
            ) from error
        if not isinstance(decoded, dict):
            raise IdentityProviderError(
                "fetch_token returned non-object JSON payload",
                kind=IdentityErrorKind.INVALID_RESPONSE,
            )
        access_token = decoded.get("access_token")
        expires_in = decoded.get("expires_in")
        if not isinstance(access_token, str) or not access_token:
            raise IdentityProviderError(
                "fetch_token response missing access_token",
                kind=IdentityErrorKind.INVALID_RESPONSE,
            )
        if not isinstance(expires_in, int) or isinstance(expires_in, bool) or expires_in <= 0:
            raise IdentityProviderError(
                "fetch_token response missing expires_in",
                kind=IdentityErrorKind.INVALID_RESPONSE,
            )
        token_type = decoded.get("token_type")
        return TokenGrant(
            access_token=access_token,
            token_type=token_type if isinstance(token_type, str) else "Bearer",
            expires_in=expires_in,
        )


class ManagementTokenCache:
    """Single-slot management token cache with early refresh.

    Concurrent callers hitting an expired slot may each fetch a token; the
    last write wins.
    """

    def __init__(
        self,
        *,
        fetcher: TokenFetcherPort,
        refresh_buffer: timedelta = timedelta(minutes=5),
        clock: Clock = utc_now,
    ) -> None:
        self._fetcher = fetcher
        self._refresh_buffer = refresh_buffer
        self._clock = clock
        self._cached: CachedToken | None = None

    async def get(self) -> str:
        """Return a valid management token, fetching a new one when needed."""

        cached = self._cached
        if cached is not None and self._is_valid(cached):
            return cached.token

        grant = await self._fetcher.fetch_token()
        expires_at = self._clock() + timedelta(seconds=grant.expires_in)
        self._cached = CachedToken(token=grant.access_token, expires_at=expires_at)
        logger.info("management token cached, expires at %s", expires_at.isoformat())
        return grant.access_token

    def invalidate(self) -> None:
        """Drop the cached token so the next call fetches a fresh one."""

        self._cached = None
        logger.info("management token cache cleared")

    def token_info(self) -> TokenInfo:
        cached = self._cached
        if cached is None:
            return TokenInfo(has_token=False, is_valid=False)
        return TokenInfo(
            has_token=True,
            is_valid=self._is_valid(cached),
            expires_at=cached.expires_at,
        )

    def _is_valid(self, cached: CachedToken) -> bool:
        return self._clock() < cached.expires_at - self._refresh_buffer


def normalize_domain(domain: str) -> str:
    value = domain.strip()
    for prefix in ("https://", "http://"):
        if value.startswith(prefix):
            value = value[len(prefix) :]
    value = value.rstrip("/")
    if not value:
        raise ValueError("domain must be a non-empty string")
    return value
