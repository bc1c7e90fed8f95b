"""Port for identity-provider account operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol


class IdentityErrorKind(StrEnum):
    """Structured categories of identity-provider failures."""

    CLIENT_CREDENTIALS = "client_credentials"
    NOT_FOUND = "not_found"
    HTTP_STATUS = "http_status"
    TRANSPORT = "transport"
    INVALID_RESPONSE = "invalid_response"


class IdentityProviderError(RuntimeError):
    """Normalized identity-provider failure with a branchable kind."""

    def __init__(
        self,
        message: str,
        *,
        kind: IdentityErrorKind,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


@dataclass(frozen=True)
class IdentityAccount:
    """Identity-provider account snapshot."""

    external_id: str
    email: str
    blocked: bool = False
    email_verified: bool = False
    app_metadata: dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class IdentityAccountCreateInput:
    """Payload for creating one identity account without a password."""

    email: str
    given_name: str
    family_name: str
    app_metadata: dict[str, object]


class IdentityProviderPort(Protocol):
    """Identity-provider contract used by lifecycle orchestrators."""

    async def find_accounts_by_email(self, *, email: str) -> list[IdentityAccount]:
        """Return all accounts registered for the email (possibly empty)."""

    async def create_account(self, payload: IdentityAccountCreateInput) -> IdentityAccount:
        """Create one account with an unverified email and no password."""

    async def update_account(
        self,
        *,
        external_id: str,
        blocked: bool,
        app_metadata: dict[str, object],
    ) -> IdentityAccount:
        """Set the blocked flag and merge app metadata for one account."""

    async def send_change_password_email(self, *, email: str) -> None:
        """Ask the provider to email a set/reset password link."""

    def build_hosted_login_url(self, *, redirect_uri: str) -> str:
        """Return the provider-hosted login/reset page URL."""
