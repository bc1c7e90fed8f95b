"""Self-service password reset requests."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from coaching_accounts.application.ports.identity_provider_port import (
    IdentityErrorKind,
    IdentityProviderError,
    IdentityProviderPort,
)
from coaching_accounts.domain.credentials import normalize_user_email
from coaching_accounts.infrastructure.logging import mask_email

logger = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = (
    "If an account with that email exists, a password reset email has been sent."
)
RESET_SENT_MESSAGE = "Password reset email sent successfully. Please check your inbox."
DEFAULT_REDIRECT_PATH = "/auth/callback"


@dataclass(frozen=True)
class PasswordResetResult:
    """Outcome of one reset request."""

    success: bool
    message: str | None = None
    error: str | None = None
    error_kind: IdentityErrorKind | None = None


class PasswordResetService:
    """Request reset emails without revealing whether an account exists."""

    def __init__(self, *, identity: IdentityProviderPort, app_base_url: str) -> None:
        self._identity = identity
        self._app_base_url = app_base_url.rstrip("/")

    async def request_password_reset(self, *, email: str) -> PasswordResetResult:
        """Check the account exists, then send the reset email.

        Unknown emails get the same success response as known ones.
        """

        normalized = normalize_user_email(email=email)
        try:
            accounts = await self._identity.find_accounts_by_email(email=normalized)
        except IdentityProviderError as error:
            logger.warning(
                "reset existence check failed for %s (%s): %s",
                mask_email(normalized),
                error.kind.value,
                error,
            )
            return PasswordResetResult(success=False, error=str(error), error_kind=error.kind)

        if not accounts:
            return PasswordResetResult(success=True, message=GENERIC_RESET_MESSAGE)
        return await self.send_password_reset_email(email=normalized)

    async def request_password_reset_with_fallback(self, *, email: str) -> PasswordResetResult:
        """Like `request_password_reset`, sending directly when M2M credentials are missing."""

        result = await self.request_password_reset(email=email)
        if result.success or result.error_kind is not IdentityErrorKind.CLIENT_CREDENTIALS:
            return result
        logger.info("management credentials unavailable, sending reset email without lookup")
        return await self.send_password_reset_email(email=email)

    async def send_password_reset_email(self, *, email: str) -> PasswordResetResult:
        """Send the reset email without an existence check."""

        normalized = normalize_user_email(email=email)
        try:
            await self._identity.send_change_password_email(email=normalized)
        except IdentityProviderError as error:
            logger.warning(
                "reset email failed for %s: %s",
                mask_email(normalized),
                error,
            )
            return PasswordResetResult(success=False, error=str(error), error_kind=error.kind)
        return PasswordResetResult(success=True, message=RESET_SENT_MESSAGE)

    def password_reset_url(self, *, redirect_path: str = DEFAULT_REDIRECT_PATH) -> str:
        """Return the hosted login page where users can start a reset themselves."""

        if not redirect_path.startswith("/"):
            raise ValueError("redirect_path must start with '/'")
        return self._identity.build_hosted_login_url(
            redirect_uri=f"{self._app_base_url}{redirect_path}"
        )
