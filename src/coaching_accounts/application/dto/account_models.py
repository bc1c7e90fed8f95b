"""Pydantic models for the admin account-management HTTP API."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from coaching_accounts.application.ports.invitation_repository_port import InvitationRecord
from coaching_accounts.application.ports.record_store_port import UserRecord
from coaching_accounts.application.services.account_blocking_service import (
    BlockingResult,
    BlockingStatus,
)
from coaching_accounts.application.services.account_existence_service import (
    AccountDrift,
    ExistenceCheck,
)
from coaching_accounts.application.services.account_provisioning_service import (
    ProvisioningRequest,
    ProvisioningResult,
)
from coaching_accounts.domain.failures import StepFailure
from coaching_accounts.domain.roles import Role


class StrictModel(BaseModel):
    """Base model with strict unknown-field rejection."""

    model_config = ConfigDict(extra="forbid")


class ProvisionAccountRequest(StrictModel):
    """Admin request to create and invite one user."""

    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: Role
    role_id: str = Field(min_length=1)
    assigned_coach_id: str | None = None
    access_start: date | None = None
    access_end: date | None = None
    has_paid: bool = False
    invited_by: str | None = None
    custom_message: str | None = None

    @model_validator(mode="after")
    def _validate_access_window(self) -> ProvisionAccountRequest:
        if (
            self.access_start is not None
            and self.access_end is not None
            and self.access_end < self.access_start
        ):
            raise ValueError("access_end cannot precede access_start")
        return self

    def to_domain(self) -> ProvisioningRequest:
        return ProvisioningRequest(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            role=self.role,
            role_id=self.role_id,
            assigned_coach_id=self.assigned_coach_id,
            access_start=self.access_start,
            access_end=self.access_end,
            has_paid=self.has_paid,
            invited_by=self.invited_by,
            custom_message=self.custom_message,
        )


class ResendInvitationRequest(StrictModel):
    """Re-invite request; access window and paid flag override the stored record."""

    invited_by: str | None = None
    custom_message: str | None = None
    access_start: date | None = None
    access_end: date | None = None
    has_paid: bool | None = None

    @model_validator(mode="after")
    def _validate_access_window(self) -> ResendInvitationRequest:
        if (
            self.access_start is not None
            and self.access_end is not None
            and self.access_end < self.access_start
        ):
            raise ValueError("access_end cannot precede access_start")
        return self


class BlockAccountRequest(StrictModel):
    email: str = Field(min_length=3)
    reason: str | None = None
    blocked_by: str | None = None


class UnblockAccountRequest(StrictModel):
    email: str = Field(min_length=3)
    unblocked_by: str | None = None


class PasswordResetRequest(StrictModel):
    email: str = Field(min_length=3)


class StepFailureResponse(StrictModel):
    step: str
    kind: str
    message: str

    @classmethod
    def from_failure(cls, failure: StepFailure) -> StepFailureResponse:
        return cls(step=failure.step.value, kind=failure.kind, message=failure.message)


class UserRecordResponse(StrictModel):
    id: str
    first_name: str
    last_name: str
    email: str
    role: Role
    is_active: bool
    assigned_coach_id: str | None
    access_start: date | None
    access_end: date | None
    has_paid: bool
    created_at: datetime | None

    @classmethod
    def from_record(cls, user: UserRecord) -> UserRecordResponse:
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            assigned_coach_id=user.assigned_coach_id,
            access_start=user.access_start,
            access_end=user.access_end,
            has_paid=user.has_paid,
            created_at=user.created_at,
        )


class ProvisionAccountResponse(StrictModel):
    """Provisioning outcome with per-step flags and the human-readable status."""

    success: bool
    message: str
    user: UserRecordResponse | None
    invitation_id: str | None
    email_sent: bool
    identity_account_created: bool
    password_reset_sent: bool
    role_specific_record_created: bool
    coach_assigned: bool | None
    failures: list[StepFailureResponse]
    error: str | None

    @classmethod
    def from_result(cls, result: ProvisioningResult) -> ProvisionAccountResponse:
        return cls(
            success=result.success,
            message=result.message,
            user=UserRecordResponse.from_record(result.user) if result.user else None,
            invitation_id=result.invitation_id,
            email_sent=result.email_sent,
            identity_account_created=result.identity_account_created,
            password_reset_sent=result.password_reset_sent,
            role_specific_record_created=result.role_specific_record_created,
            coach_assigned=result.coach_assigned,
            failures=[StepFailureResponse.from_failure(item) for item in result.failures],
            error=result.error,
        )


class InvitationStatusResponse(StrictModel):
    id: str
    user_id: str
    email: str
    role: Role
    invited_by: str | None
    email_sent: bool
    message_id: str | None
    status: str
    created_at: datetime

    @classmethod
    def from_record(cls, record: InvitationRecord) -> InvitationStatusResponse:
        return cls(
            id=record.id,
            user_id=record.user_id,
            email=record.email,
            role=record.role,
            invited_by=record.invited_by,
            email_sent=record.email_sent,
            message_id=record.message_id,
            status=record.status.value,
            created_at=record.created_at,
        )


class UserListResponse(StrictModel):
    users: list[UserRecordResponse]

    @classmethod
    def from_records(cls, users: list[UserRecord]) -> UserListResponse:
        return cls(users=[UserRecordResponse.from_record(user) for user in users])


class CancelInvitationResponse(StrictModel):
    cancelled: bool


class ExistenceCheckResponse(StrictModel):
    exists: bool
    identity_exists: bool | None
    drift: AccountDrift
    user: UserRecordResponse | None

    @classmethod
    def from_check(cls, check: ExistenceCheck) -> ExistenceCheckResponse:
        return cls(
            exists=check.exists,
            identity_exists=check.identity_exists,
            drift=check.drift,
            user=UserRecordResponse.from_record(check.user) if check.user else None,
        )


class BlockingResultResponse(StrictModel):
    success: bool
    message: str
    error: str | None
    compensation_failed: bool
    failures: list[StepFailureResponse]

    @classmethod
    def from_result(cls, result: BlockingResult) -> BlockingResultResponse:
        return cls(
            success=result.success,
            message=result.message,
            error=result.error,
            compensation_failed=result.compensation_failed,
            failures=[StepFailureResponse.from_failure(item) for item in result.failures],
        )


class BlockingStatusResponse(StrictModel):
    is_blocked: bool
    blocked_at: datetime | None
    blocked_by: str | None
    reason: str | None

    @classmethod
    def from_status(cls, status: BlockingStatus) -> BlockingStatusResponse:
        return cls(
            is_blocked=status.is_blocked,
            blocked_at=status.blocked_at,
            blocked_by=status.blocked_by,
            reason=status.reason,
        )


class PasswordResetResponse(StrictModel):
    success: bool
    message: str | None
    error: str | None


class PasswordResetUrlResponse(StrictModel):
    url: str
