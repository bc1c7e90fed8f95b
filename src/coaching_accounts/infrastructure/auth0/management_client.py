"""Auth0 Management/Authentication API adapter implementing the identity port."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol
from urllib.parse import quote, urlencode

from coaching_accounts.application.ports.identity_provider_port import (
    IdentityAccount,
    IdentityAccountCreateInput,
    IdentityErrorKind,
    IdentityProviderError,
)
from coaching_accounts.config.settings import DEFAULT_AUTH0_CONNECTION
from coaching_accounts.infrastructure.auth0.token_cache import normalize_domain
from coaching_accounts.infrastructure.http.transport import (
    HttpResponse,
    HttpTransportPort,
    UrllibHttpTransport,
    decode_json,
    describe_error_payload,
    encode_json,
)

logger = logging.getLogger(__name__)


class ManagementTokenProviderPort(Protocol):
    """Token source consumed by the management client."""

    async def get(self) -> str:
        """Return a valid management API bearer token."""

    def invalidate(self) -> None:
        """Forget the current token."""


class Auth0ManagementClient:
    """Identity-provider adapter over the Auth0 REST APIs."""

    def __init__(
        self,
        *,
        domain: str,
        client_id: str,
        tokens: ManagementTokenProviderPort,
        connection: str = DEFAULT_AUTH0_CONNECTION,
        transport: HttpTransportPort | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        client_id_value = client_id.strip()
        if not client_id_value:
            raise ValueError("client_id must be a non-empty string")
        self._domain = normalize_domain(domain)
        self._client_id = client_id_value
        self._tokens = tokens
        self._connection = connection
        self._transport = transport or UrllibHttpTransport()
        self._timeout_seconds = timeout_seconds

    async def find_accounts_by_email(self, *, email: str) -> list[IdentityAccount]:
        """Return identity accounts registered for one email."""

        path = f"/api/v2/users-by-email?{urlencode({'email': email})}"
        decoded = await self._management_request(
            operation="find_accounts_by_email",
            method="GET",
            path=path,
            payload=None,
        )
        if not isinstance(decoded, list):
            raise IdentityProviderError(
                "find_accounts_by_email returned non-list JSON payload",
                kind=IdentityErrorKind.INVALID_RESPONSE,
            )
        return [
            _parse_account(item, operation="find_accounts_by_email")
            for item in decoded
        ]

    async def create_account(self, payload: IdentityAccountCreateInput) -> IdentityAccount:
        """Create one database-connection account without a password."""

        body = {
            "email": payload.email,
            "given_name": payload.given_name,
            "family_name": payload.family_name,
            "name": f"{payload.given_name} {payload.family_name}",
            "connection": self._connection,
            "email_verified": False,
            "app_metadata": payload.app_metadata,
        }
        decoded = await self._management_request(
            operation="create_account",
            method="POST",
            path="/api/v2/users",
            payload=body,
        )
        return _parse_account(decoded, operation="create_account")

    async def update_account(
        self,
        *,
        external_id: str,
        blocked: bool,
        app_metadata: dict[str, object],
    ) -> IdentityAccount:
        """PATCH blocked flag and app metadata; null metadata values delete keys."""

        decoded = await self._management_request(
            operation="update_account",
            method="PATCH",
            path=f"/api/v2/users/{quote(external_id, safe='')}",
            payload={"blocked": blocked, "app_metadata": app_metadata},
        )
        return _parse_account(decoded, operation="update_account")

    async def send_change_password_email(self, *, email: str) -> None:
        """Trigger the database-connection change-password email."""

        payload = {
            "client_id": self._client_id,
            "email": email,
            "connection": self._connection,
        }
        response = await self._send(
            operation="send_change_password_email",
            method="POST",
            path="/dbconnections/change_password",
            headers={"Content-Type": "application/json"},
            body=encode_json(payload),
        )
        if not response.ok:
            raise IdentityProviderError(
                "send_change_password_email failed with status "
                f"{response.status_code}: {describe_error_payload(response.body_bytes)}",
                kind=IdentityErrorKind.HTTP_STATUS,
                status_code=response.status_code,
            )

    def build_hosted_login_url(self, *, redirect_uri: str) -> str:
        """Return the Universal Login URL used for self-service password reset."""

        query = urlencode(
            {
                "client_id": self._client_id,
                "protocol": "oauth2",
                "response_type": "code",
                "redirect_uri": redirect_uri,
                "scope": "openid profile email",
                "screen_hint": "login",
                "prompt": "login",
            },
            quote_via=quote,
        )
        return f"https://{self._domain}/login?{query}"

    async def _management_request(
        self,
        *,
        operation: str,
        method: str,
        path: str,
        payload: dict[str, object] | None,
    ) -> object:
        token = await self._tokens.get()
        headers = {"Authorization": f"Bearer {token}"}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        response = await self._send(
            operation=operation,
            method=method,
            path=path,
            headers=headers,
            body=encode_json(payload) if payload is not None else None,
        )

        if response.status_code == 401:
            # Token revoked or rotated server-side; next call refetches.
            self._tokens.invalidate()
        if response.status_code == 404:
            raise IdentityProviderError(
                f"{operation} target not found",
                kind=IdentityErrorKind.NOT_FOUND,
                status_code=404,
            )
        if not response.ok:
            raise IdentityProviderError(
                f"{operation} failed with status {response.status_code}: "
                f"{describe_error_payload(response.body_bytes)}",
                kind=IdentityErrorKind.HTTP_STATUS,
                status_code=response.status_code,
            )
        try:
            return decode_json(response.body_bytes)
        except ValueError as error:
            raise IdentityProviderError(
                f"{operation} returned invalid JSON payload",
                kind=IdentityErrorKind.INVALID_RESPONSE,
            ) from error

    async def _send(
        self,
        *,
        operation: str,
        method: str,
        path: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> HttpResponse:
        url = f"https://{self._domain}{path}"
        try:
            return await self._transport.request(
                method=method,
                url=url,
                headers=headers,
                body=body,
                timeout_seconds=self._timeout_seconds,
            )
        except Exception as error:  # noqa: BLE001
            raise IdentityProviderError(
                f"{operation} transport failure",
                kind=IdentityErrorKind.TRANSPORT,
            ) from error


def _parse_account(item: object, *, operation: str) -> IdentityAccount:
    if not isinstance(item, Mapping):
        raise IdentityProviderError(
            f"{operation} returned non-object user payload",
            kind=IdentityErrorKind.INVALID_RESPONSE,
        )
    external_id = item.get("user_id")
    if not isinstance(external_id, str) or not external_id:
        raise IdentityProviderError(
            f"{operation} user payload missing user_id",
            kind=IdentityErrorKind.INVALID_RESPONSE,
        )
    email = item.get("email")
    app_metadata = item.get("app_metadata")
    return IdentityAccount(
        external_id=external_id,
        email=email if isinstance(email, str) else "",
        blocked=item.get("blocked") is True,
        email_verified=item.get("email_verified") is True,
        app_metadata=dict(app_metadata) if isinstance(app_metadata, Mapping) else {},
    )
