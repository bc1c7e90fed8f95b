"""Cross-system existence check for one email address."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from coaching_accounts.application.ports.identity_provider_port import (
    IdentityProviderError,
    IdentityProviderPort,
)
from coaching_accounts.application.ports.record_store_port import RecordStorePort, UserRecord
from coaching_accounts.domain.credentials import normalize_user_email
from coaching_accounts.infrastructure.logging import mask_email

logger = logging.getLogger(__name__)


class AccountDrift(StrEnum):
    """Disagreement between the record store and the identity provider."""

    NONE = "none"
    RECORD_ONLY = "record_only"
    IDENTITY_ONLY = "identity_only"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ExistenceCheck:
    """Outcome of looking an email up in both systems.

    `identity_exists` is None when the identity provider could not be asked.
    """

    exists: bool
    identity_exists: bool | None
    user: UserRecord | None = None
    identity_error: str | None = None

    @property
    def drift(self) -> AccountDrift:
        if self.identity_exists is None:
            return AccountDrift.UNKNOWN
        if self.exists and not self.identity_exists:
            return AccountDrift.RECORD_ONLY
        if self.identity_exists and not self.exists:
            return AccountDrift.IDENTITY_ONLY
        return AccountDrift.NONE


class AccountExistenceService:
    """Report whether an email is known to the record store and identity provider."""

    def __init__(
        self,
        *,
        records: RecordStorePort,
        identity: IdentityProviderPort,
    ) -> None:
        self._records = records
        self._identity = identity

    async def check_user_exists(self, *, email: str) -> ExistenceCheck:
        """Look the email up in both systems.

        Record-store failures propagate as `RecordStoreError`; identity-side
        failures are logged and reported as an unknown identity state.
        """

        normalized = normalize_user_email(email=email)
        user = await self._records.get_user_by_email(email=normalized)

        try:
            accounts = await self._identity.find_accounts_by_email(email=normalized)
        except IdentityProviderError as error:
            logger.warning(
                "identity existence check failed for %s (%s): %s",
                mask_email(normalized),
                error.kind.value,
                error,
            )
            return ExistenceCheck(
                exists=user is not None,
                identity_exists=None,
                user=user,
                identity_error=str(error),
            )

        return ExistenceCheck(
            exists=user is not None,
            identity_exists=bool(accounts),
            user=user,
        )

    async def list_accounts(self, *, first: int = 100, skip: int = 0) -> list[UserRecord]:
        """Return one page of record-store users, newest first."""

        if first < 1 or skip < 0:
            raise ValueError("first must be positive and skip non-negative")
        return await self._records.list_users(first=first, skip=skip)
