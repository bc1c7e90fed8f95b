"""Failure taxonomy for multi-system account lifecycle operations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class LifecycleStep(StrEnum):
    """Named steps of account lifecycle orchestrations."""

    EXISTENCE_CHECK = "existence_check"
    STORE_USER = "store_user"
    ROLE_PROFILE = "role_profile"
    IDENTITY_ACCOUNT = "identity_account"
    PASSWORD_RESET = "password_reset"
    COACH_ASSIGNMENT = "coach_assignment"
    INVITATION_EMAIL = "invitation_email"
    INVITATION_RECORD = "invitation_record"
    IDENTITY_LOOKUP = "identity_lookup"
    IDENTITY_BLOCK = "identity_block"
    STORE_STATUS = "store_status"
    COMPENSATION = "compensation"


class AccountLifecycleError(RuntimeError):
    """Base error for one failed lifecycle step."""

    def __init__(self, message: str, *, step: LifecycleStep) -> None:
        super().__init__(message)
        self.step = step


class StoreWriteError(AccountLifecycleError):
    """Record-store write failed; aborts the orchestration."""


class DuplicateAccountError(AccountLifecycleError):
    """Account already exists in at least one system; provisioning refused."""


class AccountNotFoundError(AccountLifecycleError):
    """No account to act on."""


class IdentityWriteError(AccountLifecycleError):
    """Identity-provider write failed."""


class EmailSendError(AccountLifecycleError):
    """Transactional email could not be dispatched."""


class ProfileLinkError(AccountLifecycleError):
    """Role-specific profile record could not be created."""


class CoachAssignError(AccountLifecycleError):
    """Student could not be linked to the requested coach."""


class CompensationFailure(AccountLifecycleError):
    """Rollback of a partially applied change failed; manual fix required."""


@dataclass(frozen=True)
class StepFailure:
    """Recorded non-fatal (or compensating) failure surfaced to the caller."""

    step: LifecycleStep
    kind: str
    message: str

    @classmethod
    def from_error(cls, error: AccountLifecycleError) -> StepFailure:
        return cls(step=error.step, kind=type(error).__name__, message=str(error))
