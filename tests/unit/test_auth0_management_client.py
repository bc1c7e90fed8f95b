from __future__ import annotations

import json
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

import pytest

from coaching_accounts.application.ports.identity_provider_port import (
    IdentityAccountCreateInput,
    IdentityErrorKind,
    IdentityProviderError,
)
from coaching_accounts.infrastructure.auth0.management_client import Auth0ManagementClient
from coaching_accounts.infrastructure.http.transport import HttpResponse


@dataclass
class _QueuedTransport:
    responses: list[HttpResponse]
    error: Exception | None = None

    def __post_init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    async def request(
        self,
        *,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float,
    ) -> HttpResponse:
        self.calls.append(
            {
                "method": method,
                "url": url,
                "headers": headers,
                "body": body,
                "timeout_seconds": timeout_seconds,
            }
        )
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


@dataclass
class _StaticTokens:
    token: str = "mgmt-token"
    invalidations: int = 0

    async def get(self) -> str:
        return self.token

    def invalidate(self) -> None:
        self.invalidations += 1


def _client(
    transport: _QueuedTransport,
    tokens: _StaticTokens | None = None,
) -> Auth0ManagementClient:
    return Auth0ManagementClient(
        domain="coaching.us.auth0.com",
        client_id="spa-client-id",
        tokens=tokens or _StaticTokens(),
        transport=transport,
        timeout_seconds=5.0,
    )


def _json_response(status_code: int, payload: object) -> HttpResponse:
    return HttpResponse(status_code=status_code, body_bytes=json.dumps(payload).encode("utf-8"))


@pytest.mark.asyncio
async def test_find_accounts_by_email_encodes_query_and_parses_accounts() -> None:
    transport = _QueuedTransport(
        responses=[
            _json_response(
                200,
                [
                    {
                        "user_id": "auth0|abc",
                        "email": "jane+coach@example.org",
                        "blocked": True,
                        "email_verified": False,
                        "app_metadata": {"role": "coach"},
                    }
                ],
            )
        ]
    )

    accounts = await _client(transport).find_accounts_by_email(email="jane+coach@example.org")

    assert len(accounts) == 1
    assert accounts[0].external_id == "auth0|abc"
    assert accounts[0].blocked is True
    assert accounts[0].app_metadata == {"role": "coach"}
    call = transport.calls[0]
    assert call["method"] == "GET"
    url = urlsplit(str(call["url"]))
    assert url.netloc == "coaching.us.auth0.com"
    assert url.path == "/api/v2/users-by-email"
    assert parse_qs(url.query) == {"email": ["jane+coach@example.org"]}
    headers = call["headers"]
    assert isinstance(headers, dict)
    assert headers["Authorization"] == "Bearer mgmt-token"
    assert call["body"] is None


@pytest.mark.asyncio
async def test_find_accounts_by_email_returns_empty_list() -> None:
    transport = _QueuedTransport(responses=[_json_response(200, [])])

    assert await _client(transport).find_accounts_by_email(email="nobody@example.org") == []


@pytest.mark.asyncio
async def test_find_accounts_by_email_rejects_non_list_payload() -> None:
    transport = _QueuedTransport(responses=[_json_response(200, {"users": []})])

    with pytest.raises(IdentityProviderError) as exc_info:
        await _client(transport).find_accounts_by_email(email="jane@example.org")

    assert exc_info.value.kind is IdentityErrorKind.INVALID_RESPONSE


@pytest.mark.asyncio
async def test_create_account_posts_passwordless_unverified_user() -> None:
    transport = _QueuedTransport(
        responses=[_json_response(201, {"user_id": "auth0|new", "email": "jane@example.org"})]
    )

    account = await _client(transport).create_account(
        IdentityAccountCreateInput(
            email="jane@example.org",
            given_name="Jane",
            family_name="Doe",
            app_metadata={"role": "user", "user_id": "rec-1"},
        )
    )

    assert account.external_id == "auth0|new"
    call = transport.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://coaching.us.auth0.com/api/v2/users"
    payload = json.loads((call["body"] or b"").decode("utf-8"))
    assert payload == {
        "email": "jane@example.org",
        "given_name": "Jane",
        "family_name": "Doe",
        "name": "Jane Doe",
        "connection": "Username-Password-Authentication",
        "email_verified": False,
        "app_metadata": {"role": "user", "user_id": "rec-1"},
    }
    assert "password" not in payload


@pytest.mark.asyncio
async def test_create_account_conflict_raises_http_status_error() -> None:
    transport = _QueuedTransport(
        responses=[_json_response(409, {"message": "The user already exists."})]
    )

    with pytest.raises(IdentityProviderError, match="The user already exists") as exc_info:
        await _client(transport).create_account(
            IdentityAccountCreateInput(
                email="jane@example.org",
                given_name="Jane",
                family_name="Doe",
                app_metadata={},
            )
        )

    assert exc_info.value.kind is IdentityErrorKind.HTTP_STATUS
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_update_account_patches_blocked_flag_with_quoted_id() -> None:
    transport = _QueuedTransport(
        responses=[_json_response(200, {"user_id": "auth0|abc", "blocked": True})]
    )

    account = await _client(transport).update_account(
        external_id="auth0|abc",
        blocked=True,
        app_metadata={"blocked_reason": "late payment"},
    )

    assert account.blocked is True
    call = transport.calls[0]
    assert call["method"] == "PATCH"
    assert call["url"] == "https://coaching.us.auth0.com/api/v2/users/auth0%7Cabc"
    payload = json.loads((call["body"] or b"").decode("utf-8"))
    assert payload == {"blocked": True, "app_metadata": {"blocked_reason": "late payment"}}


@pytest.mark.asyncio
async def test_update_account_not_found_reports_not_found_kind() -> None:
    transport = _QueuedTransport(responses=[_json_response(404, {"message": "not found"})])

    with pytest.raises(IdentityProviderError) as exc_info:
        await _client(transport).update_account(
            external_id="auth0|gone",
            blocked=True,
            app_metadata={},
        )

    assert exc_info.value.kind is IdentityErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_unauthorized_response_invalidates_token_cache() -> None:
    tokens = _StaticTokens()
    transport = _QueuedTransport(responses=[_json_response(401, {"message": "expired"})])

    with pytest.raises(IdentityProviderError):
        await _client(transport, tokens).find_accounts_by_email(email="jane@example.org")

    assert tokens.invalidations == 1


@pytest.mark.asyncio
async def test_send_change_password_email_uses_public_endpoint_without_token() -> None:
    transport = _QueuedTransport(
        responses=[
            HttpResponse(
                status_code=200,
                body_bytes=b"\"We've just sent you an email to reset your password.\"",
            )
        ]
    )

    await _client(transport).send_change_password_email(email="jane@example.org")

    call = transport.calls[0]
    assert call["url"] == "https://coaching.us.auth0.com/dbconnections/change_password"
    headers = call["headers"]
    assert isinstance(headers, dict)
    assert "Authorization" not in headers
    payload = json.loads((call["body"] or b"").decode("utf-8"))
    assert payload == {
        "client_id": "spa-client-id",
        "email": "jane@example.org",
        "connection": "Username-Password-Authentication",
    }


@pytest.mark.asyncio
async def test_send_change_password_email_failure_raises() -> None:
    transport = _QueuedTransport(
        responses=[_json_response(400, {"error": "invalid connection"})]
    )

    with pytest.raises(IdentityProviderError, match="invalid connection"):
        await _client(transport).send_change_password_email(email="jane@example.org")


@pytest.mark.asyncio
async def test_transport_failure_is_normalized() -> None:
    transport = _QueuedTransport(responses=[], error=TimeoutError("timed out"))

    with pytest.raises(IdentityProviderError) as exc_info:
        await _client(transport).find_accounts_by_email(email="jane@example.org")

    assert exc_info.value.kind is IdentityErrorKind.TRANSPORT


def test_build_hosted_login_url() -> None:
    url = _client(_QueuedTransport(responses=[])).build_hosted_login_url(
        redirect_uri="https://app.example.org/auth/callback"
    )

    parts = urlsplit(url)
    assert parts.scheme == "https"
    assert parts.netloc == "coaching.us.auth0.com"
    assert parts.path == "/login"
    assert "scope=openid%20profile%20email" in parts.query
    assert parse_qs(parts.query) == {
        "client_id": ["spa-client-id"],
        "protocol": ["oauth2"],
        "response_type": ["code"],
        "redirect_uri": ["https://app.example.org/auth/callback"],
        "scope": ["openid profile email"],
        "screen_hint": ["login"],
        "prompt": ["login"],
    }
