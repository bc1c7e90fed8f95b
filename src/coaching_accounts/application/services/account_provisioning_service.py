"""Provision user accounts across the record store, identity provider and email."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime

from coaching_accounts.application.ports.email_dispatcher_port import (
    EmailDispatcherPort,
    EmailDispatchError,
    TemplateEmail,
)
from coaching_accounts.application.ports.identity_provider_port import (
    IdentityAccountCreateInput,
    IdentityProviderError,
    IdentityProviderPort,
)
from coaching_accounts.application.ports.invitation_repository_port import (
    InvitationCreateInput,
    InvitationRecord,
    InvitationRepositoryPort,
    InvitationStatus,
)
from coaching_accounts.application.ports.record_store_port import (
    RecordStoreError,
    RecordStorePort,
    RoleProfileCreateInput,
    UserRecord,
    UserRecordCreateInput,
)
from coaching_accounts.application.services.account_existence_service import (
    AccountDrift,
    AccountExistenceService,
)
from coaching_accounts.domain.credentials import normalize_person_name, normalize_user_email
from coaching_accounts.domain.failures import (
    AccountLifecycleError,
    AccountNotFoundError,
    CoachAssignError,
    DuplicateAccountError,
    EmailSendError,
    IdentityWriteError,
    LifecycleStep,
    ProfileLinkError,
    StepFailure,
    StoreWriteError,
)
from coaching_accounts.domain.roles import (
    ProfileKind,
    Role,
    profile_kind_for_role,
    role_display_name,
)
from coaching_accounts.infrastructure.logging import mask_email

logger = logging.getLogger(__name__)

NO_COACH_SENTINEL = "none"
DEFAULT_INVITER = "System Administrator"


@dataclass(frozen=True)
class ProvisioningRequest:
    """Input for creating one fully usable account."""

    first_name: str
    last_name: str
    email: str
    role: Role
    role_id: str
    assigned_coach_id: str | None = None
    access_start: date | None = None
    access_end: date | None = None
    has_paid: bool = False
    invited_by: str | None = None
    custom_message: str | None = None


@dataclass(frozen=True)
class ProvisioningResult:
    """Outcome of a provisioning (or invitation resend) call."""

    success: bool
    message: str
    user: UserRecord | None = None
    invitation_id: str | None = None
    email_sent: bool = False
    identity_account_created: bool = False
    password_reset_sent: bool = False
    role_specific_record_created: bool = False
    coach_assigned: bool | None = None
    failures: tuple[StepFailure, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class _InvitationContext:
    first_name: str
    last_name: str
    email: str
    role: Role
    invited_by: str | None
    custom_message: str | None
    access_start: date | None
    access_end: date | None
    has_paid: bool


class AccountProvisioningService:
    """Create accounts end-to-end and manage their invitations.

    Steps run strictly in sequence. Only the record-store user write is fatal;
    every later step records its failure and the flow continues.
    """

    def __init__(
        self,
        *,
        records: RecordStorePort,
        identity: IdentityProviderPort,
        email: EmailDispatcherPort,
        invitations: InvitationRepositoryPort,
        existence: AccountExistenceService,
        invitation_template_ids: Mapping[Role, str],
        login_url: str,
        today: Callable[[], date] | None = None,
    ) -> None:
        missing = [role.value for role in Role if role not in invitation_template_ids]
        if missing:
            raise ValueError(f"missing invitation template ids for roles: {missing}")
        self._records = records
        self._identity = identity
        self._email = email
        self._invitations = invitations
        self._existence = existence
        self._template_ids = dict(invitation_template_ids)
        self._login_url = login_url
        self._today = today or _utc_today

    async def provision_account(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Create record, profile, identity account and invitation for one person."""

        request = self._normalize_request(request)
        logger.info(
            "provisioning %s account for %s",
            request.role.value,
            mask_email(request.email),
        )

        try:
            await self._require_new_account(email=request.email)
            user = await self._create_user_record(request)
        except AccountLifecycleError as error:
            logger.error("provisioning aborted at %s: %s", error.step.value, error)
            return ProvisioningResult(
                success=False,
                message="Failed to create user",
                failures=(StepFailure.from_error(error),),
                error=str(error),
            )

        failures: list[StepFailure] = []
        profile_created = await self._create_role_profile(
            request=request,
            user=user,
            failures=failures,
        )

        identity_error: str | None = None
        try:
            await self._create_identity_account(request=request, user=user)
            identity_created = True
        except IdentityWriteError as error:
            _record(failures, error)
            identity_created = False
            identity_error = str(error)

        reset_sent = False
        reset_error: str | None = None
        if identity_created:
            reset_sent, reset_error = await self._send_password_setup(
                email=request.email,
                failures=failures,
            )

        coach_assigned = await self._assign_coach(request=request, user=user, failures=failures)
        if coach_assigned:
            user = replace(user, assigned_coach_id=request.assigned_coach_id)

        context = _InvitationContext(
            first_name=request.first_name,
            last_name=request.last_name,
            email=request.email,
            role=request.role,
            invited_by=request.invited_by,
            custom_message=request.custom_message,
            access_start=request.access_start,
            access_end=request.access_end,
            has_paid=request.has_paid,
        )
        email_sent, message_id = await self._send_invitation_email(
            context=context,
            password_reset_sent=reset_sent,
            reset_error=reset_error,
            failures=failures,
        )
        invitation = await self._write_invitation_record(
            user=user,
            context=context,
            email_sent=email_sent,
            message_id=message_id,
            failures=failures,
        )

        message = build_provisioning_message(
            role=request.role,
            identity_account_created=identity_created,
            identity_error=identity_error,
            profile_kind=profile_kind_for_role(request.role) if profile_created else None,
            password_reset_sent=reset_sent,
            coach_assigned=coach_assigned,
            email_sent=email_sent,
        )
        logger.info(
            "provisioned user %s (identity=%s reset=%s profile=%s email=%s)",
            user.id,
            identity_created,
            reset_sent,
            profile_created,
            email_sent,
        )
        return ProvisioningResult(
            success=True,
            message=message,
            user=user,
            invitation_id=invitation.id if invitation is not None else None,
            email_sent=email_sent,
            identity_account_created=identity_created,
            password_reset_sent=reset_sent,
            role_specific_record_created=profile_created,
            coach_assigned=coach_assigned,
            failures=tuple(failures),
        )

    async def resend_invitation(
        self,
        *,
        user_id: str,
        invited_by: str | None = None,
        custom_message: str | None = None,
        access_start: date | None = None,
        access_end: date | None = None,
        has_paid: bool | None = None,
    ) -> ProvisioningResult:
        """Re-send the password-setup and invitation emails for an existing user.

        The record store does not keep the access window or paid flag, so the
        caller supplies them; omitted values fall back to the stored record.
        """

        if access_start and access_end and access_end < access_start:
            raise ValueError("access_end cannot precede access_start")

        try:
            user = await self._records.get_user_by_id(user_id=user_id)
        except RecordStoreError as error:
            logger.error("resend_invitation lookup failed for %s: %s", user_id, error)
            return ProvisioningResult(
                success=False,
                message="Failed to resend invitation",
                error=str(error),
            )
        if user is None:
            missing = AccountNotFoundError(
                f"user not found: {user_id}",
                step=LifecycleStep.STORE_USER,
            )
            return ProvisioningResult(
                success=False,
                message="Failed to resend invitation",
                failures=(StepFailure.from_error(missing),),
                error=str(missing),
            )

        failures: list[StepFailure] = []
        reset_sent, reset_error = await self._send_password_setup(
            email=user.email,
            failures=failures,
        )
        context = _InvitationContext(
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            role=user.role,
            invited_by=invited_by,
            custom_message=custom_message,
            access_start=access_start or user.access_start,
            access_end=access_end or user.access_end,
            has_paid=user.has_paid if has_paid is None else has_paid,
        )
        email_sent, message_id = await self._send_invitation_email(
            context=context,
            password_reset_sent=reset_sent,
            reset_error=reset_error,
            failures=failures,
        )
        invitation = await self._write_invitation_record(
            user=user,
            context=context,
            email_sent=email_sent,
            message_id=message_id,
            failures=failures,
        )
        return ProvisioningResult(
            success=True,
            message="Invitation email sent" if email_sent else "Invitation email could not be sent",
            user=user,
            invitation_id=invitation.id if invitation is not None else None,
            email_sent=email_sent,
            password_reset_sent=reset_sent,
            failures=tuple(failures),
        )

    async def get_invitation_status(self, *, user_id: str) -> InvitationRecord | None:
        """Return the latest invitation for a user; lookup failures read as none."""

        try:
            return await self._invitations.get_latest_invitation(user_id=user_id)
        except RecordStoreError as error:
            logger.warning("invitation status lookup failed for %s: %s", user_id, error)
            return None

    async def cancel_invitation(self, *, user_id: str) -> bool:
        """Mark the latest invitation cancelled; False when none could be cancelled."""

        try:
            latest = await self._invitations.get_latest_invitation(user_id=user_id)
            if latest is None:
                return False
            if latest.status is not InvitationStatus.CANCELLED:
                await self._invitations.set_invitation_status(
                    invitation_id=latest.id,
                    status=InvitationStatus.CANCELLED,
                )
        except RecordStoreError as error:
            logger.warning("invitation cancel failed for %s: %s", user_id, error)
            return False
        return True

    def _normalize_request(self, request: ProvisioningRequest) -> ProvisioningRequest:
        role_id = request.role_id.strip()
        if not role_id:
            raise ValueError("role_id cannot be blank")
        if (
            request.access_start is not None
            and request.access_end is not None
            and request.access_end < request.access_start
        ):
            raise ValueError("access_end cannot precede access_start")
        access_start = request.access_start or self._today()
        access_end = request.access_end or _one_year_after(access_start)
        coach_id = (request.assigned_coach_id or "").strip() or None
        return replace(
            request,
            first_name=normalize_person_name(value=request.first_name, field_name="first_name"),
            last_name=normalize_person_name(value=request.last_name, field_name="last_name"),
            email=normalize_user_email(email=request.email),
            role_id=role_id,
            assigned_coach_id=coach_id,
            access_start=access_start,
            access_end=access_end,
        )

    async def _require_new_account(self, *, email: str) -> None:
        try:
            check = await self._existence.check_user_exists(email=email)
        except RecordStoreError as error:
            raise StoreWriteError(
                f"could not verify existing users: {error}",
                step=LifecycleStep.EXISTENCE_CHECK,
            ) from error

        if check.exists:
            raise DuplicateAccountError(
                f"a user with email {email} already exists (drift: {check.drift.value})",
                step=LifecycleStep.EXISTENCE_CHECK,
            )
        if check.drift is AccountDrift.IDENTITY_ONLY:
            raise DuplicateAccountError(
                f"an identity account for {email} exists without a user record "
                f"(drift: {check.drift.value})",
                step=LifecycleStep.EXISTENCE_CHECK,
            )

    async def _create_user_record(self, request: ProvisioningRequest) -> UserRecord:
        try:
            created = await self._records.create_user(
                UserRecordCreateInput(
                    first_name=request.first_name,
                    last_name=request.last_name,
                    email=request.email,
                    role_id=request.role_id,
                )
            )
        except RecordStoreError as error:
            raise StoreWriteError(
                f"user record creation failed: {error}",
                step=LifecycleStep.STORE_USER,
            ) from error
        return replace(
            created,
            role=request.role,
            is_active=True,
            assigned_coach_id=None,
            access_start=request.access_start,
            access_end=request.access_end,
            has_paid=request.has_paid,
        )

    async def _create_role_profile(
        self,
        *,
        request: ProvisioningRequest,
        user: UserRecord,
        failures: list[StepFailure],
    ) -> bool:
        kind = profile_kind_for_role(request.role)
        if kind is None:
            return False
        try:
            await self._records.create_role_profile(
                RoleProfileCreateInput(
                    kind=kind,
                    user_id=user.id,
                    first_name=request.first_name,
                    last_name=request.last_name,
                    email=request.email,
                )
            )
        except RecordStoreError as error:
            _record(
                failures,
                ProfileLinkError(
                    f"{kind.value} profile creation failed: {error}",
                    step=LifecycleStep.ROLE_PROFILE,
                ),
            )
            return False
        return True

    async def _create_identity_account(
        self,
        *,
        request: ProvisioningRequest,
        user: UserRecord,
    ) -> None:
        app_metadata: dict[str, object] = {
            "role": request.role.value,
            "invited_by": request.invited_by,
            "user_id": user.id,
            "access_start": request.access_start.isoformat() if request.access_start else None,
            "access_end": request.access_end.isoformat() if request.access_end else None,
            "has_paid": request.has_paid,
        }
        try:
            await self._identity.create_account(
                IdentityAccountCreateInput(
                    email=request.email,
                    given_name=request.first_name,
                    family_name=request.last_name,
                    app_metadata=app_metadata,
                )
            )
        except IdentityProviderError as error:
            raise IdentityWriteError(
                f"identity account creation failed: {error}",
                step=LifecycleStep.IDENTITY_ACCOUNT,
            ) from error

    async def _send_password_setup(
        self,
        *,
        email: str,
        failures: list[StepFailure],
    ) -> tuple[bool, str | None]:
        try:
            await self._identity.send_change_password_email(email=email)
        except IdentityProviderError as error:
            failure = IdentityWriteError(
                f"password reset email failed: {error}",
                step=LifecycleStep.PASSWORD_RESET,
            )
            _record(failures, failure)
            return False, str(failure)
        return True, None

    async def _assign_coach(
        self,
        *,
        request: ProvisioningRequest,
        user: UserRecord,
        failures: list[StepFailure],
    ) -> bool | None:
        coach_id = request.assigned_coach_id
        if request.role is not Role.USER or coach_id is None or coach_id == NO_COACH_SENTINEL:
            return None
        try:
            await self._records.assign_coach_to_student(
                student_user_id=user.id,
                coach_id=coach_id,
            )
        except RecordStoreError as error:
            _record(
                failures,
                CoachAssignError(
                    f"coach assignment failed: {error}",
                    step=LifecycleStep.COACH_ASSIGNMENT,
                ),
            )
            return False
        return True

    async def _send_invitation_email(
        self,
        *,
        context: _InvitationContext,
        password_reset_sent: bool,
        reset_error: str | None,
        failures: list[StepFailure],
    ) -> tuple[bool, str | None]:
        template_data: dict[str, object] = {
            "firstName": context.first_name,
            "lastName": context.last_name,
            "email": context.email,
            "role": role_display_name(context.role),
            "loginUrl": self._login_url,
            "invitedBy": context.invited_by or DEFAULT_INVITER,
            "customMessage": context.custom_message,
            "accessStart": context.access_start.isoformat() if context.access_start else None,
            "accessEnd": context.access_end.isoformat() if context.access_end else None,
            "hasPaid": context.has_paid,
            "passwordResetSent": password_reset_sent,
            "resetError": reset_error,
        }
        try:
            message_id = await self._email.send_template(
                TemplateEmail(
                    to_email=context.email,
                    to_name=f"{context.first_name} {context.last_name}".strip(),
                    template_id=self._template_ids[context.role],
                    template_data=template_data,
                )
            )
        except EmailDispatchError as error:
            _record(
                failures,
                EmailSendError(
                    f"invitation email failed: {error}",
                    step=LifecycleStep.INVITATION_EMAIL,
                ),
            )
            return False, None
        return True, message_id

    async def _write_invitation_record(
        self,
        *,
        user: UserRecord,
        context: _InvitationContext,
        email_sent: bool,
        message_id: str | None,
        failures: list[StepFailure],
    ) -> InvitationRecord | None:
        try:
            return await self._invitations.create_invitation(
                InvitationCreateInput(
                    user_id=user.id,
                    email=context.email,
                    role=context.role,
                    invited_by=context.invited_by,
                    email_sent=email_sent,
                    message_id=message_id,
                )
            )
        except RecordStoreError as error:
            failures.append(
                StepFailure(
                    step=LifecycleStep.INVITATION_RECORD,
                    kind=type(error).__name__,
                    message=f"invitation record write failed: {error}",
                )
            )
            logger.warning("invitation record write failed for user %s: %s", user.id, error)
            return None


def build_provisioning_message(
    *,
    role: Role,
    identity_account_created: bool,
    identity_error: str | None,
    profile_kind: ProfileKind | None,
    password_reset_sent: bool,
    coach_assigned: bool | None,
    email_sent: bool,
) -> str:
    """Render the multi-line provisioning status shown to the inviting admin."""

    lines = [f"User created successfully as {role.value}"]
    if identity_account_created:
        lines.append("Identity account created")
    else:
        lines.append("Identity account creation failed")
        if identity_error:
            lines.append(f"   Error: {identity_error}")

    if profile_kind is ProfileKind.STUDENT:
        lines.append("Student profile created")
    elif profile_kind is ProfileKind.COACH:
        lines.append("Coach profile created")

    if password_reset_sent:
        lines.append("Password reset link sent to email")
    else:
        lines.append("Note: Password reset link could not be sent")

    if coach_assigned is True:
        lines.append("Coach assigned to student")
    elif coach_assigned is False:
        lines.append("Note: Coach could not be assigned")

    if email_sent:
        lines.append("Invitation email sent")
    else:
        lines.append("Note: Invitation email could not be sent")

    lines.append("")
    if identity_account_created and password_reset_sent:
        lines.append(
            "User can now log in using their email and the password they set via the reset link."
        )
    else:
        lines.append(
            "Note: User may need to be created in the identity provider manually "
            "or use an alternative login method."
        )
    return "\n".join(lines)


def _record(failures: list[StepFailure], error: AccountLifecycleError) -> None:
    logger.warning("step %s failed (%s): %s", error.step.value, type(error).__name__, error)
    failures.append(StepFailure.from_error(error))


def _utc_today() -> date:
    return datetime.now(tz=UTC).date()


def _one_year_after(start: date) -> date:
    try:
        return start.replace(year=start.year + 1)
    except ValueError:
        # Feb 29 -> Feb 28 of the following year.
        return start.replace(year=start.year + 1, day=28)
