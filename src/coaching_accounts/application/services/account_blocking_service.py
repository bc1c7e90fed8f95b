"""Application service toggling an account's ability to log in."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from coaching_accounts.application.ports.identity_provider_port import (
    IdentityAccount,
    IdentityProviderError,
    IdentityProviderPort,
)
from coaching_accounts.application.ports.record_store_port import (
    RecordStoreError,
    RecordStorePort,
    UserRecord,
)
from coaching_accounts.domain.credentials import normalize_user_email
from coaching_accounts.domain.failures import (
    AccountLifecycleError,
    AccountNotFoundError,
    CompensationFailure,
    IdentityWriteError,
    LifecycleStep,
    StepFailure,
    StoreWriteError,
)
from coaching_accounts.infrastructure.logging import mask_email

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Account deactivated by admin"


@dataclass(frozen=True)
class BlockingResult:
    """Outcome of one block/unblock call."""

    success: bool
    message: str
    error: str | None = None
    compensation_failed: bool = False
    failures: tuple[StepFailure, ...] = ()


@dataclass(frozen=True)
class BlockingStatus:
    """Blocked state as seen by the record store."""

    is_blocked: bool
    blocked_at: datetime | None = None
    blocked_by: str | None = None
    reason: str | None = None


class AccountBlockingService:
    """Keep identity `blocked` and record `is_active` flags in agreement."""

    def __init__(
        self,
        *,
        records: RecordStorePort,
        identity: IdentityProviderPort,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._records = records
        self._identity = identity
        self._clock = clock or _utc_now

    async def block_user_account(
        self,
        *,
        email: str,
        reason: str | None = None,
        blocked_by: str | None = None,
    ) -> BlockingResult:
        """Block login in the identity provider, then deactivate the user record.

        When the record update fails the identity block is rolled back.
        """

        normalized = normalize_user_email(email=email)
        logger.info("blocking account %s", mask_email(normalized))

        try:
            account = await self._resolve_account(email=normalized)
            await self._set_identity_blocked(
                account=account,
                blocked=True,
                app_metadata={
                    "blocked_at": self._clock().isoformat(),
                    "blocked_reason": reason or DEFAULT_BLOCK_REASON,
                    "blocked_by": blocked_by,
                },
            )
        except AccountLifecycleError as error:
            return _failure("Failed to block user in identity provider", error)

        try:
            await self._set_record_active(email=normalized, is_active=False)
        except StoreWriteError as store_error:
            logger.warning(
                "record update failed for %s, reverting identity block",
                mask_email(normalized),
            )
            failures = [StepFailure.from_error(store_error)]
            try:
                await self._set_identity_blocked(
                    account=account,
                    blocked=False,
                    app_metadata=_cleared_block_metadata(),
                )
            except IdentityWriteError as rollback_error:
                compensation = CompensationFailure(
                    f"identity block could not be reverted for {normalized}: {rollback_error}",
                    step=LifecycleStep.COMPENSATION,
                )
                logger.error("%s; manual intervention required", compensation)
                failures.append(StepFailure.from_error(compensation))
                return BlockingResult(
                    success=False,
                    message=(
                        "Failed to update user status in record store and the identity "
                        "block could not be reverted; manual intervention required"
                    ),
                    error=str(store_error),
                    compensation_failed=True,
                    failures=tuple(failures),
                )
            return BlockingResult(
                success=False,
                message="Failed to update user status in record store",
                error=str(store_error),
                failures=tuple(failures),
            )

        return BlockingResult(
            success=True,
            message=(
                "User account has been successfully blocked. "
                "The user will not be able to log in."
            ),
        )

    async def unblock_user_account(
        self,
        *,
        email: str,
        unblocked_by: str | None = None,
    ) -> BlockingResult:
        """Unblock login in the identity provider, then reactivate the user record."""

        normalized = normalize_user_email(email=email)
        logger.info("unblocking account %s", mask_email(normalized))

        try:
            account = await self._resolve_account(email=normalized)
            await self._set_identity_blocked(
                account=account,
                blocked=False,
                app_metadata={
                    **_cleared_block_metadata(),
                    "unblocked_at": self._clock().isoformat(),
                    "unblocked_by": unblocked_by,
                },
            )
        except AccountLifecycleError as error:
            return _failure("Failed to unblock user in identity provider", error)

        try:
            await self._set_record_active(email=normalized, is_active=True)
        except StoreWriteError as error:
            logger.warning(
                "identity unblocked but record update failed for %s",
                mask_email(normalized),
            )
            return _failure("Failed to update user status in record store", error)

        return BlockingResult(
            success=True,
            message=(
                "User account has been successfully unblocked. "
                "The user can now log in again."
            ),
        )

    async def get_user_blocking_status(self, *, email: str) -> BlockingStatus:
        """Derive blocked state from the user record only."""

        normalized = normalize_user_email(email=email)
        try:
            user = await self._records.get_user_by_email(email=normalized)
        except RecordStoreError as error:
            logger.warning(
                "blocking status lookup failed for %s: %s",
                mask_email(normalized),
                error,
            )
            return BlockingStatus(is_blocked=False)
        if user is None or user.is_active:
            return BlockingStatus(is_blocked=False)
        return BlockingStatus(
            is_blocked=True,
            blocked_at=user.updated_at,
            blocked_by="System",
            reason="Account deactivated",
        )

    async def is_user_blocked(self, *, email: str) -> bool:
        status = await self.get_user_blocking_status(email=email)
        return status.is_blocked

    async def _resolve_account(self, *, email: str) -> IdentityAccount:
        try:
            accounts = await self._identity.find_accounts_by_email(email=email)
        except IdentityProviderError as error:
            raise IdentityWriteError(
                f"identity lookup failed: {error}",
                step=LifecycleStep.IDENTITY_LOOKUP,
            ) from error
        if not accounts:
            raise AccountNotFoundError(
                "User not found in identity provider",
                step=LifecycleStep.IDENTITY_LOOKUP,
            )
        return accounts[0]

    async def _set_identity_blocked(
        self,
        *,
        account: IdentityAccount,
        blocked: bool,
        app_metadata: dict[str, object],
    ) -> None:
        try:
            await self._identity.update_account(
                external_id=account.external_id,
                blocked=blocked,
                app_metadata={**account.app_metadata, **app_metadata},
            )
        except IdentityProviderError as error:
            action = "block" if blocked else "unblock"
            raise IdentityWriteError(
                f"failed to {action} user: {error}",
                step=LifecycleStep.IDENTITY_BLOCK,
            ) from error

    async def _set_record_active(self, *, email: str, is_active: bool) -> UserRecord:
        try:
            user = await self._records.get_user_by_email(email=email)
            if user is None:
                raise StoreWriteError(
                    "User not found in record store",
                    step=LifecycleStep.STORE_STATUS,
                )
            return await self._records.set_user_active(user_id=user.id, is_active=is_active)
        except RecordStoreError as error:
            raise StoreWriteError(
                f"user status update failed: {error}",
                step=LifecycleStep.STORE_STATUS,
            ) from error


def _cleared_block_metadata() -> dict[str, object]:
    return {"blocked_at": None, "blocked_reason": None, "blocked_by": None}


def _failure(message: str, error: AccountLifecycleError) -> BlockingResult:
    logger.warning("%s at %s: %s", message, error.step.value, error)
    return BlockingResult(
        success=False,
        message=message,
        error=str(error),
        failures=(StepFailure.from_error(error),),
    )


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)
